"""Workflow orchestration for the AI-assisted content console."""

from .config import ContentFlowConfig, LLMConfig, StoreConfig
from .paths import DEFAULT_STATE_ROOT, resolve_state_path
from .pipeline import (
    GenerationResult,
    MockGenerationBackend,
    PipelineOrchestrator,
    StepNotEligibleError,
    StepRunner,
)
from .workflow import (
    CatalogConfigurationError,
    ContextPersistence,
    InMemoryStore,
    JsonFileStore,
    NodeCatalog,
    NodeDefinition,
    NodeState,
    Recommendation,
    WorkflowContext,
    WorkflowEngine,
    WorkflowSessions,
    build_default_catalog,
)

__all__ = [
    "ContentFlowConfig",
    "LLMConfig",
    "StoreConfig",
    "DEFAULT_STATE_ROOT",
    "resolve_state_path",
    "GenerationResult",
    "MockGenerationBackend",
    "PipelineOrchestrator",
    "StepNotEligibleError",
    "StepRunner",
    "CatalogConfigurationError",
    "ContextPersistence",
    "InMemoryStore",
    "JsonFileStore",
    "NodeCatalog",
    "NodeDefinition",
    "NodeState",
    "Recommendation",
    "WorkflowContext",
    "WorkflowEngine",
    "WorkflowSessions",
    "build_default_catalog",
]
