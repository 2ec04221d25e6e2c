"""Workflow orchestration core: catalog, state, eligibility, recommendations, persistence."""

from .catalog import (
    DEFAULT_NODES,
    CatalogConfigurationError,
    NodeCatalog,
    NodeDefinition,
    build_default_catalog,
)
from .engine import WorkflowEngine, WorkflowSessions, utc_now
from .persistence import (
    ContextDocument,
    ContextPersistence,
    InMemoryStore,
    JsonFileStore,
    KeyValueStore,
    PersistenceError,
)
from .recommendations import (
    BLOCKED_CONFIDENCE,
    ELIGIBLE_CONFIDENCE,
    Recommendation,
    get_next_step_recommendations,
    rank_recommendations,
)
from .resolver import (
    can_execute_node,
    missing_dependencies,
    reachable_next_steps,
    resolve_prerequisite_chain,
)
from .state import NODE_STATUSES, NodeState, NodeStatus, WorkflowContext, is_regular_transition

__all__ = [
    "DEFAULT_NODES",
    "CatalogConfigurationError",
    "NodeCatalog",
    "NodeDefinition",
    "build_default_catalog",
    "WorkflowEngine",
    "WorkflowSessions",
    "utc_now",
    "ContextDocument",
    "ContextPersistence",
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
    "PersistenceError",
    "BLOCKED_CONFIDENCE",
    "ELIGIBLE_CONFIDENCE",
    "Recommendation",
    "get_next_step_recommendations",
    "rank_recommendations",
    "can_execute_node",
    "missing_dependencies",
    "reachable_next_steps",
    "resolve_prerequisite_chain",
    "NODE_STATUSES",
    "NodeState",
    "NodeStatus",
    "WorkflowContext",
    "is_regular_transition",
]
