"""LangChain chat provider used by the generation backend."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Sequence, Tuple

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

try:  # pragma: no cover - import guard for optional dependency
    from langchain_openai import ChatOpenAI
except ImportError:  # pragma: no cover - gracefully degrade when dependency missing
    ChatOpenAI = None  # type: ignore[assignment]

__all__ = [
    "ProviderError",
    "ProviderDependencyError",
    "ProviderSettings",
    "ChatCompletion",
    "LangChainChatProvider",
    "build_provider",
]

MessagesLike = Sequence[BaseMessage] | Sequence[Mapping[str, Any]]

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_MODEL_ENVS: Tuple[str, ...] = ("CONTENTFLOW_MODEL", "OPENAI_MODEL")
DEFAULT_API_KEY_ENVS: Tuple[str, ...] = ("CONTENTFLOW_API_KEY", "OPENAI_API_KEY")
DEFAULT_BASE_URL_ENVS: Tuple[str, ...] = ("CONTENTFLOW_BASE_URL", "OPENAI_BASE_URL")
DEFAULT_TEMPERATURE_ENV = "CONTENTFLOW_TEMPERATURE"
DEFAULT_MAX_TOKEN_ENV = "CONTENTFLOW_MAX_TOKENS"


class ProviderError(RuntimeError):
    """Base error raised when interacting with a chat provider."""


class ProviderDependencyError(ProviderError):
    """Raised when required dependencies are unavailable."""


@dataclass(slots=True)
class ProviderSettings:
    """Mutable settings bundle for a chat provider."""

    model: str = DEFAULT_MODEL
    base_url: str | None = None
    api_key: str | None = None
    temperature: float = 0.7
    max_tokens: int | None = None
    timeout: float | None = None

    def as_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "temperature": self.temperature,
        }
        if self.base_url:
            kwargs["base_url"] = self.base_url
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.max_tokens is not None:
            kwargs["max_tokens"] = self.max_tokens
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        return kwargs


@dataclass(slots=True)
class ChatCompletion:
    """Text and token usage of one chat call."""

    content: str
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)


class LangChainChatProvider:
    """Thin wrapper around ``langchain_openai.ChatOpenAI`` with safeguards."""

    def __init__(self, settings: ProviderSettings):
        if ChatOpenAI is None:
            raise ProviderDependencyError(
                "langchain-openai is required to instantiate LangChainChatProvider"
            )
        self.settings = settings
        self._client = self._build_client(settings)

    def _build_client(self, settings: ProviderSettings):
        try:
            return ChatOpenAI(**settings.as_kwargs())  # type: ignore[arg-type]
        except Exception as exc:  # pragma: no cover - passthrough
            raise ProviderError(f"Failed to initialise chat model '{settings.model}': {exc}") from exc

    @property
    def model(self) -> str:
        return self.settings.model

    def invoke(self, messages: MessagesLike, **kwargs: Any) -> Any:
        try:
            return self._client.invoke(messages, **kwargs)
        except Exception as exc:
            raise ProviderError(f"Invocation failed for model '{self.settings.model}': {exc}") from exc

    def complete(self, system_prompt: str, user_prompt: str, **kwargs: Any) -> ChatCompletion:
        """Send a system + user message pair and normalise the response."""

        response = self.invoke(
            [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)],
            **kwargs,
        )
        usage = _extract_usage(response)
        model_name = (
            usage.get("model")
            or getattr(response, "model", None)
            or getattr(response, "model_name", None)
            or self.settings.model
        )
        return ChatCompletion(
            content=_extract_content(response).strip(),
            model=str(model_name),
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
            metadata=dict(getattr(response, "response_metadata", None) or {}),
        )

    def with_model(self, model: str, **overrides: Any) -> "LangChainChatProvider":
        new_settings = replace(self.settings, model=model)
        for key, value in overrides.items():
            if hasattr(new_settings, key):
                setattr(new_settings, key, value)
        return self.__class__(new_settings)


def build_provider(
    *,
    model: str | None = None,
    model_envs: Sequence[str] | None = None,
    base_url: str | None = None,
    api_key: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
    timeout: float | None = None,
    api_key_envs: Sequence[str] | None = None,
    base_url_envs: Sequence[str] | None = None,
) -> LangChainChatProvider:
    """Factory that mirrors CLI/env resolution for provider credentials."""

    resolved_model = model or _resolve_from_env(model_envs or DEFAULT_MODEL_ENVS) or DEFAULT_MODEL
    resolved_base_url = base_url or _resolve_from_env(base_url_envs or DEFAULT_BASE_URL_ENVS)
    resolved_api_key = api_key or _resolve_from_env(api_key_envs or DEFAULT_API_KEY_ENVS)

    settings = ProviderSettings(
        model=resolved_model,
        base_url=resolved_base_url,
        api_key=resolved_api_key,
        temperature=_coerce_float(temperature, os.getenv(DEFAULT_TEMPERATURE_ENV), default=0.7),
        max_tokens=_coerce_int(max_tokens, os.getenv(DEFAULT_MAX_TOKEN_ENV)),
        timeout=timeout,
    )
    return LangChainChatProvider(settings)


def _resolve_from_env(envs: Sequence[str]) -> str | None:
    for env_name in envs:
        value = os.getenv(env_name)
        if value:
            return value
    return None


def _coerce_float(explicit: float | None, env_value: str | None, *, default: float) -> float:
    if explicit is not None:
        return explicit
    if env_value is None:
        return default
    try:
        return float(env_value)
    except ValueError:  # pragma: no cover - defensive guard
        return default


def _coerce_int(explicit: int | None, env_value: str | None) -> int | None:
    if explicit is not None:
        return explicit
    if env_value is None:
        return None
    try:
        return int(env_value)
    except ValueError:  # pragma: no cover - defensive guard
        return None


def _extract_content(response: Any) -> str:
    if isinstance(response, Mapping):
        content = response.get("content", "")
    else:
        content = getattr(response, "content", "")
    if isinstance(content, list):
        pieces = [
            str(segment.get("text", "")) if isinstance(segment, dict) else str(segment)
            for segment in content
        ]
        return "".join(pieces)
    return str(content or "")


def _extract_usage(response: Any) -> Dict[str, Any]:
    """Normalise token usage reported by different langchain providers."""

    usage: Dict[str, Any] = {}
    if getattr(response, "usage_metadata", None):
        usage.update(response.usage_metadata)

    response_meta = getattr(response, "response_metadata", None) or {}
    if isinstance(response_meta, dict):
        for key in ("token_usage", "usage"):
            maybe_usage = response_meta.get(key)
            if not usage and isinstance(maybe_usage, dict):
                usage.update(maybe_usage)
        if "model_name" in response_meta and "model" not in usage:
            usage["model"] = response_meta.get("model_name")

    normalised: Dict[str, Any] = {
        "prompt_tokens": int(usage.get("input_tokens") or usage.get("prompt_tokens") or 0),
        "completion_tokens": int(usage.get("output_tokens") or usage.get("completion_tokens") or 0),
    }
    if usage.get("model"):
        normalised["model"] = usage["model"]
    return normalised
