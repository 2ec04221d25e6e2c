"""Dataclass-driven configuration for the contentflow console."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Iterable

from .paths import resolve_state_path

__all__ = [
    "DEFAULT_SESSION_KEY",
    "LLMConfig",
    "StoreConfig",
    "ContentFlowConfig",
]

DEFAULT_SESSION_KEY = "workflowContext"


def _env_float(name: str, default: float | None = None) -> float | None:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:  # pragma: no cover - defensive guard
        return default


def _env_int(name: str, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:  # pragma: no cover - defensive guard
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(slots=True)
class LLMConfig:
    """Configuration for the LangChain-backed generation backend."""

    model: str = field(default_factory=lambda: os.getenv("CONTENTFLOW_MODEL", "gpt-4o-mini"))
    base_url: str | None = field(
        default_factory=lambda: os.getenv("CONTENTFLOW_BASE_URL") or os.getenv("OPENAI_BASE_URL")
    )
    temperature: float = field(default_factory=lambda: _env_float("CONTENTFLOW_TEMPERATURE", 0.7) or 0.0)
    max_tokens: int | None = field(default_factory=lambda: _env_int("CONTENTFLOW_MAX_TOKENS"))
    api_key_env: str = field(default_factory=lambda: os.getenv("CONTENTFLOW_API_KEY_ENV", "CONTENTFLOW_API_KEY"))
    fallback_api_key_envs: tuple[str, ...] = ("OPENAI_API_KEY",)

    def resolve_api_key(self, override: str | None = None) -> str | None:
        if override:
            return override
        env_candidates: Iterable[str | None] = (self.api_key_env, *self.fallback_api_key_envs)
        for name in env_candidates:
            if not name:
                continue
            value = os.getenv(name)
            if value:
                return value
        return None

    def provider_kwargs(
        self,
        *,
        model: str | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict[str, object | None]:
        return {
            "model": model or self.model,
            "base_url": base_url or self.base_url,
            "api_key": api_key if api_key is not None else self.resolve_api_key(),
            "temperature": self.temperature if temperature is None else temperature,
            "max_tokens": self.max_tokens if max_tokens is None else max_tokens,
        }


@dataclass(slots=True)
class StoreConfig:
    """Where workflow contexts are persisted and under which session key."""

    state_root: Path = field(
        default_factory=lambda: Path(os.getenv("CONTENTFLOW_STATE_ROOT", ".contentflow")) / "state"
    )
    session_key: str = field(default_factory=lambda: os.getenv("CONTENTFLOW_SESSION", DEFAULT_SESSION_KEY))
    create: bool = True

    def resolved_root(self) -> Path:
        return resolve_state_path(self.state_root, create=self.create)


@dataclass(slots=True)
class ContentFlowConfig:
    """Primary configuration entry point for the console."""

    llm: LLMConfig = field(default_factory=LLMConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    strict_catalog: bool = field(default_factory=lambda: _env_bool("CONTENTFLOW_STRICT_CATALOG", True))
    log_level: str = field(default_factory=lambda: os.getenv("CONTENTFLOW_LOG_LEVEL", "WARNING"))

    def with_store(
        self,
        *,
        state_root: Path | str | None = None,
        session_key: str | None = None,
    ) -> "ContentFlowConfig":
        new_store = replace(
            self.store,
            state_root=Path(state_root).expanduser() if state_root is not None else self.store.state_root,
            session_key=session_key or self.store.session_key,
        )
        return replace(self, store=new_store)

    @property
    def state_root(self) -> Path:
        return self.store.resolved_root()

    def as_provider_kwargs(self, **overrides: object) -> dict[str, object | None]:
        return self.llm.provider_kwargs(**overrides)
