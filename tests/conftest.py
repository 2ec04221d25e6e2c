"""Shared fixtures for the test suite."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

import pytest

from contentflow.workflow import InMemoryStore, NodeCatalog, NodeDefinition, PersistenceError

ENV_VARS = {
    "CONTENTFLOW_MODEL",
    "CONTENTFLOW_API_KEY",
    "CONTENTFLOW_API_KEY_ENV",
    "CONTENTFLOW_BASE_URL",
    "CONTENTFLOW_TEMPERATURE",
    "CONTENTFLOW_MAX_TOKENS",
    "CONTENTFLOW_STATE_ROOT",
    "CONTENTFLOW_SESSION",
    "CONTENTFLOW_STRICT_CATALOG",
    "CONTENTFLOW_LOG_LEVEL",
    "OPENAI_MODEL",
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
}


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure configuration environment variables do not leak between tests."""

    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class FakeClock:
    """Deterministic clock that advances one second per call."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(seconds=1)
        return self.current


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def abc_catalog() -> NodeCatalog:
    """A (no deps, next B and C), B (needs A), C (needs A and B)."""

    return NodeCatalog(
        [
            NodeDefinition(id="A", name="Alpha", next_steps=("B", "C"), can_start_independently=True),
            NodeDefinition(id="B", name="Bravo", dependencies=("A",)),
            NodeDefinition(id="C", name="Charlie", dependencies=("A", "B")),
        ]
    )


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


class FailingStore:
    """Store whose every operation fails, as an unavailable medium would."""

    def __init__(self) -> None:
        self.attempts: list[str] = []

    def get(self, key: str) -> Optional[str]:
        self.attempts.append("get")
        raise PersistenceError("store unavailable")

    def set(self, key: str, value: str) -> None:
        self.attempts.append("set")
        raise PersistenceError("quota exceeded")

    def remove(self, key: str) -> None:
        self.attempts.append("remove")
        raise PersistenceError("store unavailable")


@pytest.fixture
def failing_store() -> FailingStore:
    return FailingStore()


@pytest.fixture
def dummy_chat_model(monkeypatch: pytest.MonkeyPatch):
    """Patch the LangChain chat client used by the provider abstraction."""

    from langchain_core.messages import AIMessage

    from contentflow.llm import providers

    class DummyChatModel:
        reply = "Generated text"
        error: Optional[Exception] = None

        def __init__(self, **kwargs: Any) -> None:
            self.kwargs = kwargs
            self.invocations: list[tuple[tuple[Any, ...], dict[str, Any]]] = []

        def invoke(self, messages: Iterable[Any], **kwargs: Any) -> AIMessage:
            self.invocations.append((tuple(messages), dict(kwargs)))
            if self.error is not None:
                raise self.error
            return AIMessage(
                content=self.reply,
                usage_metadata={"input_tokens": 12, "output_tokens": 5, "total_tokens": 17},
                response_metadata={"model_name": self.kwargs.get("model", "dummy")},
            )

    monkeypatch.setattr(providers, "ChatOpenAI", DummyChatModel)
    return DummyChatModel
