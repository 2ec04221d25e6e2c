"""Durable storage for workflow contexts.

A context is stored as one JSON document under a session key. The document
keeps the console's historical field names (``currentNode``,
``completedNodes``...) and writes timestamps as ISO-8601 strings, which the
pydantic document model parses back into :class:`~datetime.datetime` values
on load. Every failure on this boundary is recovered locally: loading
degrades to an empty context and saving only logs.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import DEFAULT_SESSION_KEY
from ..paths import session_filename
from .state import NodeState, WorkflowContext, as_utc

logger = logging.getLogger(__name__)

__all__ = [
    "PersistenceError",
    "KeyValueStore",
    "InMemoryStore",
    "JsonFileStore",
    "ContextDocument",
    "ContextPersistence",
]


class PersistenceError(RuntimeError):
    """Raised by stores when the durable medium cannot be read or written."""


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal durable store: one serialized blob per key."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class InMemoryStore:
    """Process-local store, used by tests and embedded callers."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data


class JsonFileStore:
    """Filesystem-backed store writing one ``<key>.json`` file per key."""

    def __init__(self, root: Path | str, *, encoding: str = "utf-8") -> None:
        self.root = Path(root).expanduser()
        self.encoding = encoding

    def path_for(self, key: str) -> Path:
        return self.root / session_filename(key)

    def get(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding=self.encoding)
        except OSError as exc:
            raise PersistenceError(f"Failed to read {path}: {exc}") from exc

    def set(self, key: str, value: str) -> None:
        path = self.path_for(key)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(value, encoding=self.encoding)
            os.replace(tmp_path, path)
        except OSError as exc:
            raise PersistenceError(f"Failed to write {path}: {exc}") from exc

    def remove(self, key: str) -> None:
        path = self.path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Failed to remove {path}: {exc}") from exc


class _DocumentModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class NodeStateRecord(_DocumentModel):
    node_id: str = Field(..., alias="nodeId")
    status: Literal["idle", "loading", "completed", "error"] = "idle"
    data: Any = None
    error: Optional[str] = None
    timestamp: Optional[datetime] = None

    @field_validator("timestamp")
    @classmethod
    def _timestamp_as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

    @classmethod
    def from_state(cls, state: NodeState) -> "NodeStateRecord":
        return cls(
            node_id=state.node_id,
            status=state.status,
            data=state.data,
            error=state.error,
            timestamp=state.timestamp,
        )

    def to_state(self) -> NodeState:
        return NodeState(
            node_id=self.node_id,
            status=self.status,
            data=self.data,
            error=self.error,
            timestamp=self.timestamp,
        )


class ContextDocument(_DocumentModel):
    """Serialized shape of a :class:`WorkflowContext`."""

    nodes: Dict[str, NodeStateRecord] = Field(default_factory=dict)
    current_node: Optional[str] = Field(default=None, alias="currentNode")
    completed_nodes: List[str] = Field(default_factory=list, alias="completedNodes")
    available_next_steps: List[str] = Field(default_factory=list, alias="availableNextSteps")

    @classmethod
    def from_context(cls, context: WorkflowContext) -> "ContextDocument":
        return cls(
            nodes={node_id: NodeStateRecord.from_state(state) for node_id, state in context.nodes.items()},
            current_node=context.current_node,
            completed_nodes=list(context.completed_nodes),
            available_next_steps=list(context.available_next_steps),
        )

    def to_context(self) -> WorkflowContext:
        return WorkflowContext(
            nodes={node_id: record.to_state() for node_id, record in self.nodes.items()},
            current_node=self.current_node,
            completed_nodes=list(self.completed_nodes),
            available_next_steps=list(self.available_next_steps),
        )


class ContextPersistence:
    """Load, save and clear one session's context in a :class:`KeyValueStore`."""

    def __init__(self, store: KeyValueStore, *, session_key: str = DEFAULT_SESSION_KEY) -> None:
        self.store = store
        self.session_key = session_key

    @staticmethod
    def serialize(context: WorkflowContext) -> str:
        return ContextDocument.from_context(context).model_dump_json(by_alias=True, indent=2)

    @staticmethod
    def deserialize(payload: str) -> WorkflowContext:
        return ContextDocument.model_validate_json(payload).to_context()

    def load(self) -> WorkflowContext:
        try:
            payload = self.store.get(self.session_key)
        except Exception as exc:
            logger.warning(
                "Failed to load workflow context '%s': %s", self.session_key, exc, exc_info=True
            )
            return WorkflowContext.empty()
        if not payload:
            return WorkflowContext.empty()
        try:
            context = self.deserialize(payload)
        except ValueError as exc:
            logger.warning("Discarding corrupt workflow context '%s': %s", self.session_key, exc)
            return WorkflowContext.empty()
        logger.debug("Loaded workflow context '%s' with %d node(s)", self.session_key, len(context.nodes))
        return context

    def save(self, context: WorkflowContext) -> None:
        try:
            self.store.set(self.session_key, self.serialize(context))
        except Exception as exc:
            logger.warning(
                "Failed to save workflow context '%s': %s", self.session_key, exc, exc_info=True
            )
            return
        logger.debug("Saved workflow context '%s'", self.session_key)

    def reset(self) -> WorkflowContext:
        try:
            self.store.remove(self.session_key)
        except Exception as exc:
            logger.warning(
                "Failed to clear workflow context '%s': %s", self.session_key, exc, exc_info=True
            )
        return WorkflowContext.empty()
