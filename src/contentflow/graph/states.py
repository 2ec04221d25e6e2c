"""Typed state definitions for the contentflow LangGraph pipeline."""

from __future__ import annotations

from typing import Any, Optional, TypedDict


class StepRecord(TypedDict):
    """Outcome of one executed step as seen by the pipeline."""

    node_id: str
    status: str
    error: Optional[str]


class PipelineState(TypedDict, total=False):
    """Shared state passed between graph nodes."""

    # caller-supplied inputs, offered to every step
    inputs: dict[str, Any]
    conversation_id: Optional[str]

    # per-step outputs keyed by node id
    outputs: dict[str, str]
    steps: list[StepRecord]

    # set when a step fails; the graph stops after it
    failed_node: Optional[str]
    errors: list[str]


__all__ = ["PipelineState", "StepRecord"]
