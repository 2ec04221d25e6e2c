"""Static node catalog for the content pipeline.

The catalog is pure configuration: a fixed, ordered set of node definitions
and lookups over it. Lookups against unknown ids resolve to nothing rather
than raising, so every query built on top of the catalog stays total.
Configuration problems (dangling references, duplicate ids, dependency
cycles) are detected once, when the catalog is built.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

__all__ = [
    "CatalogConfigurationError",
    "NodeDefinition",
    "NodeCatalog",
    "DEFAULT_NODES",
    "build_default_catalog",
]


class CatalogConfigurationError(ValueError):
    """Raised when a strict catalog references nodes it does not define."""


class FrozenBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class NodeDefinition(FrozenBaseModel):
    """One step of the pipeline, as declared at process start."""

    id: str = Field(..., description="Unique node identifier.")
    name: str = Field(..., description="Display name shown to the operator.")
    type: str = Field(default="", description="Step kind; defaults to the node id.")
    description: str = Field(default="", description="Short description of what the step produces.")
    path: str = Field(default="", description="Route of the step's standalone page.")
    dependencies: tuple[str, ...] = Field(
        default=(),
        description="Node ids that must be completed before this node may execute.",
    )
    next_steps: tuple[str, ...] = Field(
        default=(),
        description="Candidate successors once this node completes (a hint, not a constraint).",
    )
    can_start_independently: bool = Field(
        default=False,
        description="Whether the node may be entered without any other node having run.",
    )
    required_inputs: tuple[str, ...] = Field(default=(), description="Input keys the step cannot run without.")
    optional_inputs: tuple[str, ...] = Field(default=(), description="Input keys the step understands.")
    default_values: dict[str, Any] = Field(default_factory=dict, description="Defaults merged under caller inputs.")

    @property
    def kind(self) -> str:
        return self.type or self.id


class NodeCatalog:
    """Ordered, read-only collection of :class:`NodeDefinition` objects."""

    def __init__(self, nodes: Iterable[NodeDefinition], *, strict: bool = True) -> None:
        self._nodes: dict[str, NodeDefinition] = {}
        self._duplicates: list[str] = []
        for node in nodes:
            if node.id in self._nodes:
                self._duplicates.append(node.id)
                continue
            self._nodes[node.id] = node

        problems = self.validate()
        if problems:
            if strict:
                raise CatalogConfigurationError("; ".join(problems))
            for problem in problems:
                logger.warning("Ignoring catalog configuration problem: %s", problem)

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]], *, strict: bool = True) -> "NodeCatalog":
        return cls((NodeDefinition.model_validate(dict(record)) for record in records), strict=strict)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[NodeDefinition]:
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    def ids(self) -> list[str]:
        return list(self._nodes)

    def get_node_by_id(self, node_id: str) -> Optional[NodeDefinition]:
        return self._nodes.get(node_id)

    def get_independent_nodes(self) -> list[NodeDefinition]:
        return [node for node in self._nodes.values() if node.can_start_independently]

    def get_next_step_candidates(self, current_id: Optional[str], completed_ids: Sequence[str]) -> list[str]:
        """Return the current node's declared next steps that are not completed yet."""

        if current_id is None:
            return []
        node = self._nodes.get(current_id)
        if node is None:
            return []
        completed = set(completed_ids)
        return [step for step in node.next_steps if step not in completed]

    # Validation -------------------------------------------------------------------

    def validate(self) -> list[str]:
        """Return human-readable configuration problems; empty when the catalog is sound."""

        problems = [f"duplicate node id '{node_id}'" for node_id in self._duplicates]
        for node in self._nodes.values():
            for dep in node.dependencies:
                if dep not in self._nodes:
                    problems.append(f"node '{node.id}' depends on unknown node '{dep}'")
            for step in node.next_steps:
                if step not in self._nodes:
                    problems.append(f"node '{node.id}' lists unknown next step '{step}'")
        for cycle in self.find_dependency_cycles():
            problems.append("dependency cycle " + " -> ".join(cycle))
        return problems

    def find_dependency_cycles(self) -> list[list[str]]:
        """Depth-first search over ``dependencies``; each cycle is reported once."""

        visiting: set[str] = set()
        done: set[str] = set()
        stack: list[str] = []
        cycles: list[list[str]] = []

        def visit(node_id: str) -> None:
            visiting.add(node_id)
            stack.append(node_id)
            for dep in self._nodes[node_id].dependencies:
                if dep not in self._nodes or dep in done:
                    continue
                if dep in visiting:
                    start = stack.index(dep)
                    cycles.append(stack[start:] + [dep])
                    continue
                visit(dep)
            stack.pop()
            visiting.discard(node_id)
            done.add(node_id)

        for node_id in self._nodes:
            if node_id not in done:
                visit(node_id)
        return cycles


DEFAULT_NODES: tuple[NodeDefinition, ...] = (
    NodeDefinition(
        id="ai_search",
        name="AI Search",
        type="ai_search",
        description="Ask the assistant a question and collect a sourced answer.",
        path="/node/ai-search",
        next_steps=("tech_package", "promotion_strategy"),
        can_start_independently=True,
        required_inputs=("query",),
        optional_inputs=("selectedKnowledgePoints",),
        default_values={"query": ""},
    ),
    NodeDefinition(
        id="tech_package",
        name="Tech Packaging",
        type="tech_package",
        description="Package the search findings into a technical selling story.",
        path="/node/tech-package",
        dependencies=("ai_search",),
        next_steps=("promotion_strategy", "core_draft"),
        can_start_independently=True,
        optional_inputs=("aiSearchData", "template"),
        default_values={"template": "default"},
    ),
    NodeDefinition(
        id="promotion_strategy",
        name="Promotion Strategy",
        type="promotion_strategy",
        description="Draft a promotion strategy for the packaged technology.",
        path="/node/promotion-strategy",
        dependencies=("tech_package",),
        next_steps=("core_draft",),
        can_start_independently=True,
        optional_inputs=("techPackageData", "targetAudience"),
    ),
    NodeDefinition(
        id="core_draft",
        name="Core Draft",
        type="core_draft",
        description="Write the core article draft.",
        path="/node/core-draft",
        dependencies=("promotion_strategy",),
        next_steps=("speech",),
        can_start_independently=True,
        optional_inputs=("promotionStrategyData", "contentType"),
    ),
    NodeDefinition(
        id="speech",
        name="Speech",
        type="speech",
        description="Turn the core draft into a speech script.",
        path="/node/speech",
        dependencies=("core_draft",),
        can_start_independently=True,
        optional_inputs=("coreDraftData", "speechType", "duration"),
    ),
)


def build_default_catalog(*, strict: bool = True) -> NodeCatalog:
    """Catalog for the search → packaging → strategy → draft → speech pipeline."""

    return NodeCatalog(DEFAULT_NODES, strict=strict)
