"""Pure dependency and eligibility checks over a :class:`NodeCatalog`.

None of these functions perform I/O or look at the current node; the result
depends only on the catalog and the completed set handed in.
"""

from __future__ import annotations

from typing import Iterable, Optional

from .catalog import NodeCatalog

__all__ = [
    "can_execute_node",
    "missing_dependencies",
    "reachable_next_steps",
    "resolve_prerequisite_chain",
]


def can_execute_node(catalog: NodeCatalog, node_id: str, completed_ids: Iterable[str]) -> bool:
    """True when every declared dependency of ``node_id`` is completed.

    Unknown nodes are never executable. Nodes without dependencies always
    are, whatever their ``can_start_independently`` flag says; that flag only
    governs which nodes are offered as entry points.
    """

    node = catalog.get_node_by_id(node_id)
    if node is None:
        return False
    if not node.dependencies:
        return True
    completed = set(completed_ids)
    return all(dep in completed for dep in node.dependencies)


def missing_dependencies(catalog: NodeCatalog, node_id: str, completed_ids: Iterable[str]) -> list[str]:
    node = catalog.get_node_by_id(node_id)
    if node is None:
        return []
    completed = set(completed_ids)
    return [dep for dep in node.dependencies if dep not in completed]


def reachable_next_steps(
    catalog: NodeCatalog,
    current_id: Optional[str],
    completed_ids: Iterable[str],
) -> list[str]:
    """Candidate next steps of ``current_id`` that are executable right now."""

    completed = list(completed_ids)
    return [
        step
        for step in catalog.get_next_step_candidates(current_id, completed)
        if can_execute_node(catalog, step, completed)
    ]


def resolve_prerequisite_chain(catalog: NodeCatalog, node_id: str) -> list[str]:
    """Transitive prerequisites of ``node_id``, dependencies before dependants.

    The walk keeps a visited set, so a lenient catalog that contains a cycle
    still terminates; members of the cycle are listed once, in discovery order.
    The node itself is not included.
    """

    ordered: list[str] = []
    visited: set[str] = {node_id}

    def walk(current: str) -> None:
        node = catalog.get_node_by_id(current)
        if node is None:
            return
        for dep in node.dependencies:
            if dep in visited or dep not in catalog:
                continue
            visited.add(dep)
            walk(dep)
            ordered.append(dep)

    walk(node_id)
    return ordered
