"""Workflow orchestration engine: the single entry point callers drive.

The engine owns one :class:`WorkflowContext` and is its only writer. Two
mutations exist, :meth:`WorkflowEngine.update_node_state` and
:meth:`WorkflowEngine.set_current_node`; each one recomputes the cached
``available_next_steps`` and then persists the context, so a caller reading
the snapshot right after a mutation never sees stale derived data.
Mutations are serialized with a re-entrant lock, one writer per session.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from .catalog import NodeCatalog, NodeDefinition, build_default_catalog
from .persistence import ContextPersistence, InMemoryStore, KeyValueStore
from .recommendations import Recommendation, get_next_step_recommendations
from .resolver import can_execute_node, missing_dependencies
from .state import NodeState, WorkflowContext, as_utc, is_regular_transition

logger = logging.getLogger(__name__)

__all__ = ["Clock", "WorkflowEngine", "WorkflowSessions", "utc_now"]

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowEngine:
    """Tracks node states, eligibility and recommendations for one session."""

    def __init__(
        self,
        catalog: Optional[NodeCatalog] = None,
        persistence: Optional[ContextPersistence] = None,
        *,
        clock: Optional[Clock] = None,
    ) -> None:
        self._catalog = catalog or build_default_catalog()
        self._persistence = persistence
        self._clock = clock or utc_now
        self._lock = threading.RLock()
        self._context = persistence.load() if persistence is not None else WorkflowContext.empty()
        self._refresh_next_steps()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def catalog(self) -> NodeCatalog:
        return self._catalog

    @property
    def context(self) -> WorkflowContext:
        """Deep copy of the current context; mutating it has no effect on the engine."""

        with self._lock:
            return self._context.copy()

    def get_node_by_id(self, node_id: str) -> Optional[NodeDefinition]:
        return self._catalog.get_node_by_id(node_id)

    def get_independent_nodes(self) -> list[NodeDefinition]:
        return self._catalog.get_independent_nodes()

    def get_node_state(self, node_id: str) -> NodeState:
        with self._lock:
            return self._context.node_state(node_id)

    def can_execute_node(self, node_id: str) -> bool:
        with self._lock:
            completed = list(self._context.completed_nodes)
        return can_execute_node(self._catalog, node_id, completed)

    def missing_dependencies(self, node_id: str) -> list[str]:
        with self._lock:
            completed = list(self._context.completed_nodes)
        return missing_dependencies(self._catalog, node_id, completed)

    def get_next_step_recommendations(self) -> list[Recommendation]:
        with self._lock:
            return get_next_step_recommendations(self._context, self._catalog)

    def has_active_node(self) -> bool:
        with self._lock:
            return any(state.status == "loading" for state in self._context.nodes.values())

    def most_recent_node(self) -> Optional[NodeState]:
        with self._lock:
            stamped = [state for state in self._context.nodes.values() if state.timestamp is not None]
            if not stamped:
                return None
            latest = max(stamped, key=lambda state: state.timestamp)
            return self._context.node_state(latest.node_id)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def update_node_state(self, node_id: str, **partial: Any) -> NodeState:
        """Merge ``partial`` into the node's state and apply the side effects.

        In order: a ``completed`` status appends the node to the completed
        set (once), a ``loading`` status makes it the current node, and the
        available next steps are recomputed whenever a current node exists.
        The context is then saved before this method returns; a failed save
        is logged and does not raise.
        """

        with self._lock:
            previous = self._context.node_state(node_id)
            updated = previous.merged(partial, timestamp=as_utc(self._clock()))
            if "status" in partial and not is_regular_transition(previous.status, updated.status):
                logger.warning(
                    "Irregular transition for node '%s': %s -> %s",
                    node_id,
                    previous.status,
                    updated.status,
                )
            self._context.nodes[node_id] = updated

            status = partial.get("status")
            if status == "completed" and node_id not in self._context.completed_nodes:
                self._context.completed_nodes.append(node_id)
            if status == "loading":
                self._context.current_node = node_id
            self._refresh_next_steps()
            self._persist()
            return self._context.node_state(node_id)

    def set_current_node(self, node_id: str) -> None:
        """Move the navigation cursor without touching the node's status."""

        with self._lock:
            self._context.current_node = node_id
            self._refresh_next_steps()
            self._persist()

    def reset_context(self) -> WorkflowContext:
        with self._lock:
            if self._persistence is not None:
                self._context = self._persistence.reset()
            else:
                self._context = WorkflowContext.empty()
            return self._context.copy()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _refresh_next_steps(self) -> None:
        if self._context.current_node is not None:
            self._context.available_next_steps = self._catalog.get_next_step_candidates(
                self._context.current_node,
                self._context.completed_nodes,
            )

    def _persist(self) -> None:
        """Write the context through to the store synchronously, under the engine lock.

        Store failures are logged by :class:`ContextPersistence` and never raised.
        """

        if self._persistence is not None:
            self._persistence.save(self._context)


class WorkflowSessions:
    """One :class:`WorkflowEngine` per session key over a shared store."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        *,
        catalog: Optional[NodeCatalog] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._store = store if store is not None else InMemoryStore()
        self._catalog = catalog or build_default_catalog()
        self._clock = clock
        self._engines: dict[str, WorkflowEngine] = {}
        self._lock = threading.Lock()

    def get(self, session_key: str) -> WorkflowEngine:
        with self._lock:
            engine = self._engines.get(session_key)
            if engine is None:
                persistence = ContextPersistence(self._store, session_key=session_key)
                engine = WorkflowEngine(self._catalog, persistence, clock=self._clock)
                self._engines[session_key] = engine
            return engine

    def discard(self, session_key: str) -> None:
        """Reset the session's context and forget its engine."""

        with self._lock:
            engine = self._engines.pop(session_key, None)
        if engine is None:
            ContextPersistence(self._store, session_key=session_key).reset()
        else:
            engine.reset_context()

    def __contains__(self, session_key: object) -> bool:
        return session_key in self._engines

    def __len__(self) -> int:
        return len(self._engines)
