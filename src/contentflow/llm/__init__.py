"""LLM tooling for the contentflow generation backend."""

from .providers import (
    ChatCompletion,
    LangChainChatProvider,
    ProviderDependencyError,
    ProviderError,
    ProviderSettings,
    build_provider,
)
from .usage import NodeUsage, UsageSnapshot, UsageTracker

__all__ = [
    "ChatCompletion",
    "LangChainChatProvider",
    "ProviderError",
    "ProviderDependencyError",
    "ProviderSettings",
    "build_provider",
    "NodeUsage",
    "UsageSnapshot",
    "UsageTracker",
]
