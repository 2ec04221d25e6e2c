"""Generation backends: the service that turns a step's inputs into text.

The workflow engine never calls a backend itself. :class:`StepRunner` in
:mod:`contentflow.pipeline.orchestrator` is the caller that honours the
``execute(node_id, inputs, conversation_id)`` contract and reports the
outcome to the engine.
"""

from __future__ import annotations

import json
import logging
import random
import textwrap
import uuid
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, Sequence

from ..llm.providers import LangChainChatProvider, ProviderError, build_provider

logger = logging.getLogger(__name__)

__all__ = [
    "GenerationResult",
    "GenerationBackend",
    "MockGenerationBackend",
    "ChatGenerationBackend",
    "SYSTEM_PROMPTS",
    "build_backend",
    "format_step_inputs",
]

SYSTEM_PROMPTS: dict[str, str] = {
    "ai_search": (
        "You are a research assistant for an automotive technology team. Answer the question "
        "precisely and list the facts and sources the answer relies on."
    ),
    "tech_package": (
        "You package technical findings into a clear selling story: name the technology, the "
        "problem it solves, how it works, and the user-facing benefit."
    ),
    "promotion_strategy": (
        "You are a marketing strategist. Turn the packaged technology into a promotion strategy "
        "with target audience, key messages, channels and a rollout sequence."
    ),
    "core_draft": (
        "You are a senior copywriter. Write the core article draft that follows the promotion "
        "strategy, using Markdown headings and short paragraphs."
    ),
    "speech": (
        "You are a speechwriter. Rewrite the core draft as a spoken script with an opening hook, "
        "three talking points and a closing line."
    ),
}
DEFAULT_SYSTEM_PROMPT = "You are a content assistant. Respond with concise Markdown."


@dataclass(slots=True)
class GenerationResult:
    """Outcome of a single backend call: output text or an error message."""

    ok: bool
    output: str = ""
    error: Optional[str] = None
    conversation_id: Optional[str] = None
    model: str = ""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, output: str, **kwargs: Any) -> "GenerationResult":
        return cls(ok=True, output=output, **kwargs)

    @classmethod
    def failure(cls, error: str, **kwargs: Any) -> "GenerationResult":
        return cls(ok=False, error=error, **kwargs)


class GenerationBackend(Protocol):
    """Protocol for pluggable generation services."""

    def execute(
        self,
        node_id: str,
        inputs: Mapping[str, Any],
        conversation_id: Optional[str] = None,
    ) -> GenerationResult:  # pragma: no cover - interface
        ...


def _numbered(items: Sequence[Any]) -> list[str]:
    lines: list[str] = []
    for idx, item in enumerate(items, start=1):
        if isinstance(item, Mapping):
            label = item.get("title") or item.get("content") or json.dumps(item, ensure_ascii=False)
        else:
            label = item
        lines.append(f"{idx}. {label}")
    return lines


_LAID_OUT_KEYS = frozenset({"searchResults", "query", "selectedKnowledgePoints", "template"})


def format_step_inputs(inputs: Mapping[str, Any] | None) -> str:
    """Render step inputs as the free-text context block sent to the model.

    Search results, the query, selected knowledge points and the packaging
    template get a readable layout; every other non-empty input (upstream
    outputs such as ``aiSearchData``) follows as its own labelled section.
    """

    inputs = inputs or {}
    parts: list[str] = []

    search = inputs.get("searchResults")
    query = inputs.get("query")
    if isinstance(search, Mapping):
        query = search.get("query") or query
    if query:
        parts.append(f"Query: {query}")
    if isinstance(search, Mapping) and isinstance(search.get("results"), list):
        parts.append("\n".join(["Search results:", *_numbered(search["results"])]))
    points = inputs.get("selectedKnowledgePoints")
    if isinstance(points, list) and points:
        parts.append("\n".join(["Related knowledge points:", *_numbered(points)]))
    if inputs.get("template"):
        parts.append(f"Packaging template: {inputs['template']}")

    for key, value in inputs.items():
        if key in _LAID_OUT_KEYS or value is None or value == "":
            continue
        rendered = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False, indent=2, default=str)
        parts.append(f"{key}:\n{rendered}")

    return "\n\n".join(parts)


def _new_conversation_id() -> str:
    return f"conv-{uuid.uuid4().hex[:12]}"


class MockGenerationBackend:
    """Deterministic backend used for testing and offline development."""

    def __init__(
        self,
        *,
        seed: int | None = None,
        model: str = "mock-latest",
        fail_on: Sequence[str] = (),
    ) -> None:
        self.model = model
        self.fail_on = set(fail_on)
        self.calls: list[tuple[str, dict[str, Any], Optional[str]]] = []
        self._rng = random.Random(seed or 0)

    def execute(
        self,
        node_id: str,
        inputs: Mapping[str, Any],
        conversation_id: Optional[str] = None,
    ) -> GenerationResult:
        self.calls.append((node_id, dict(inputs), conversation_id))
        conversation = conversation_id or f"conv-mock-{len(self.calls):04d}"
        if node_id in self.fail_on:
            return GenerationResult.failure(
                f"Mock backend configured to fail for '{node_id}'.",
                conversation_id=conversation,
                model=self.model,
            )

        context = format_step_inputs(inputs)
        content = self._render(node_id, context)
        return GenerationResult.success(
            content,
            conversation_id=conversation,
            model=self.model,
            prompt_tokens=self._estimate_tokens(context),
            completion_tokens=self._estimate_tokens(content),
            metadata={"provider": "mock"},
        )

    def _render(self, node_id: str, context: str) -> str:
        flourish = self._rng.choice(
            ["Clarity first.", "Lead with the benefit.", "Keep it concrete.", "Show, then tell."]
        )
        excerpt = " ".join(context.split())[:280] or "(no inputs supplied)"
        return textwrap.dedent(
            f"""
            # {node_id.replace('_', ' ').title()}

            - Guidance: {flourish}
            - Built from: {excerpt}
            """
        ).strip()

    @staticmethod
    def _estimate_tokens(text: str) -> int:
        return max(1, len(text.split()))


class ChatGenerationBackend:
    """Backend that sends one system + user prompt per step to a chat model."""

    def __init__(
        self,
        provider: LangChainChatProvider,
        *,
        system_prompts: Mapping[str, str] | None = None,
    ) -> None:
        self._provider = provider
        self._system_prompts = dict(system_prompts or SYSTEM_PROMPTS)

    @property
    def model(self) -> str:
        return self._provider.model

    def execute(
        self,
        node_id: str,
        inputs: Mapping[str, Any],
        conversation_id: Optional[str] = None,
    ) -> GenerationResult:
        conversation = conversation_id or _new_conversation_id()
        system_prompt = self._system_prompts.get(node_id, DEFAULT_SYSTEM_PROMPT)
        user_prompt = format_step_inputs(inputs)
        try:
            completion = self._provider.complete(system_prompt, user_prompt)
        except ProviderError as exc:
            logger.warning("Generation failed for node '%s': %s", node_id, exc)
            return GenerationResult.failure(str(exc), conversation_id=conversation, model=self.model)

        if not completion.content:
            return GenerationResult.failure(
                f"Generation for '{node_id}' returned empty content.",
                conversation_id=conversation,
                model=completion.model,
            )
        return GenerationResult.success(
            completion.content,
            conversation_id=conversation,
            model=completion.model,
            prompt_tokens=completion.prompt_tokens,
            completion_tokens=completion.completion_tokens,
            metadata=completion.metadata,
        )


def build_backend(
    kind: str = "mock",
    *,
    seed: int | None = None,
    **provider_kwargs: Any,
) -> GenerationBackend:
    """Create a backend by name: ``mock`` (aliases ``test``/``stub``) or ``openai``."""

    key = (kind or "mock").lower()
    if key in {"mock", "test", "stub"}:
        return MockGenerationBackend(seed=seed)
    if key in {"openai", "chat", "langchain"}:
        return ChatGenerationBackend(build_provider(**provider_kwargs))
    raise ValueError(f"Unsupported backend '{kind}'.")
