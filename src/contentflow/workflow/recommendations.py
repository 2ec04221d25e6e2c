"""Next-step recommendations derived from the workflow context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .catalog import NodeCatalog
from .resolver import can_execute_node, missing_dependencies
from .state import WorkflowContext

__all__ = [
    "ELIGIBLE_CONFIDENCE",
    "BLOCKED_CONFIDENCE",
    "Recommendation",
    "get_next_step_recommendations",
    "rank_recommendations",
]

ELIGIBLE_CONFIDENCE = 0.9
BLOCKED_CONFIDENCE = 0.5


@dataclass(frozen=True, slots=True)
class Recommendation:
    """A suggested next node with a confidence score and justification."""

    node_id: str
    confidence: float
    reason: str
    required_data: tuple[str, ...] = ()

    @property
    def eligible(self) -> bool:
        return not self.required_data

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "nodeId": self.node_id,
            "confidence": self.confidence,
            "reason": self.reason,
        }
        if self.required_data:
            payload["requiredData"] = list(self.required_data)
        return payload


def get_next_step_recommendations(context: WorkflowContext, catalog: NodeCatalog) -> list[Recommendation]:
    """One recommendation per available next step, in declared order.

    Eligible steps score :data:`ELIGIBLE_CONFIDENCE`; steps with unmet
    dependencies score :data:`BLOCKED_CONFIDENCE` and list every declared
    dependency in ``required_data``. The result is not sorted by confidence;
    use :func:`rank_recommendations` for a best-first view.
    """

    if context.current_node is None:
        return []

    current = catalog.get_node_by_id(context.current_node)
    current_name = current.name if current is not None else context.current_node
    completed = list(context.completed_nodes)

    recommendations: list[Recommendation] = []
    for node_id in context.available_next_steps:
        node = catalog.get_node_by_id(node_id)
        if node is None:
            continue
        if can_execute_node(catalog, node_id, completed):
            recommendations.append(
                Recommendation(
                    node_id=node_id,
                    confidence=ELIGIBLE_CONFIDENCE,
                    reason=f"Builds on the {current_name} result; ready to run {node.name}.",
                )
            )
        else:
            missing = missing_dependencies(catalog, node_id, completed)
            recommendations.append(
                Recommendation(
                    node_id=node_id,
                    confidence=BLOCKED_CONFIDENCE,
                    reason=f"Prerequisite steps are missing: {', '.join(missing)}.",
                    required_data=tuple(node.dependencies),
                )
            )
    return recommendations


def rank_recommendations(recommendations: Iterable[Recommendation]) -> list[Recommendation]:
    """Best first; ties keep their declared order."""

    return sorted(recommendations, key=lambda rec: -rec.confidence)
