"""Node execution state and the per-session workflow context."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Literal, Optional

__all__ = [
    "NodeStatus",
    "NODE_STATUSES",
    "UPDATABLE_FIELDS",
    "NodeState",
    "WorkflowContext",
    "is_regular_transition",
    "as_utc",
]

NodeStatus = Literal["idle", "loading", "completed", "error"]
NODE_STATUSES: tuple[str, ...] = ("idle", "loading", "completed", "error")

# Fields a caller may set through a partial update; timestamp is owned by the engine.
UPDATABLE_FIELDS = frozenset({"status", "data", "error"})

_REGULAR_TRANSITIONS: frozenset[tuple[str, str]] = frozenset(
    {
        ("idle", "loading"),
        ("loading", "completed"),
        ("loading", "error"),
        ("completed", "loading"),
        ("error", "loading"),
    }
)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so every stored timestamp stays comparable."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_regular_transition(previous: str, new: str) -> bool:
    """Whether ``previous -> new`` follows the node state machine.

    Repeating a status and forcing a node back to ``idle`` or into ``error``
    are always regular.
    """

    if previous == new or new in {"idle", "error"}:
        return True
    return (previous, new) in _REGULAR_TRANSITIONS


@dataclass(slots=True)
class NodeState:
    """Execution state of a single node."""

    node_id: str
    status: NodeStatus = "idle"
    data: Any = None
    error: Optional[str] = None
    timestamp: Optional[datetime] = None

    def merged(self, partial: dict[str, Any], *, timestamp: datetime) -> "NodeState":
        """Return a copy with ``partial`` applied and ``timestamp`` stamped.

        ``error`` only survives while the node is in the ``error`` state.
        """

        unknown = set(partial) - UPDATABLE_FIELDS
        if unknown:
            raise TypeError(f"Unsupported node state fields: {', '.join(sorted(unknown))}")
        status = partial.get("status", self.status)
        if status not in NODE_STATUSES:
            raise ValueError(f"Unknown node status '{status}'")

        updated = replace(self, **partial, timestamp=timestamp)
        if updated.status != "error":
            updated.error = None
        return updated

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodeId": self.node_id,
            "status": self.status,
            "data": self.data,
            "error": self.error,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass(slots=True)
class WorkflowContext:
    """Aggregate root: every node state plus the navigation cursor for a session."""

    nodes: dict[str, NodeState] = field(default_factory=dict)
    current_node: Optional[str] = None
    completed_nodes: list[str] = field(default_factory=list)
    available_next_steps: list[str] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "WorkflowContext":
        return cls()

    def is_empty(self) -> bool:
        return not self.nodes and self.current_node is None and not self.completed_nodes

    def copy(self) -> "WorkflowContext":
        return copy.deepcopy(self)

    def node_state(self, node_id: str) -> NodeState:
        existing = self.nodes.get(node_id)
        if existing is not None:
            return replace(existing)
        return NodeState(node_id=node_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": {node_id: state.to_dict() for node_id, state in self.nodes.items()},
            "currentNode": self.current_node,
            "completedNodes": list(self.completed_nodes),
            "availableNextSteps": list(self.available_next_steps),
        }

