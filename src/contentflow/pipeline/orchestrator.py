"""LangGraph-powered guided pipeline over the workflow engine.

:class:`StepRunner` is the caller side of the generation contract: it checks
eligibility, marks the node ``loading``, calls the backend and reports the
outcome back through :meth:`WorkflowEngine.update_node_state`. The
:class:`PipelineOrchestrator` chains every catalog node in dependency order
into a LangGraph ``StateGraph`` (search → packaging → strategy → draft →
speech for the default catalog) and stops after the first failed step. Each
step can also be run on its own through :meth:`StepRunner.run_step`.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from langgraph.graph import END, START, StateGraph

from ..graph.states import PipelineState, StepRecord
from ..llm.usage import UsageTracker
from ..workflow.catalog import NodeDefinition
from ..workflow.engine import WorkflowEngine
from ..workflow.resolver import resolve_prerequisite_chain
from ..workflow.state import NodeState
from .backends import GenerationBackend, GenerationResult

logger = logging.getLogger(__name__)

__all__ = [
    "UPSTREAM_INPUT_KEYS",
    "StepNotEligibleError",
    "StepOutcome",
    "StepRunner",
    "PipelineOrchestrator",
    "pipeline_order",
]

# Input key under which a completed dependency's output is handed to its dependants.
UPSTREAM_INPUT_KEYS: dict[str, str] = {
    "ai_search": "aiSearchData",
    "tech_package": "techPackageData",
    "promotion_strategy": "promotionStrategyData",
    "core_draft": "coreDraftData",
}


class StepNotEligibleError(RuntimeError):
    """Raised when a step is started before its dependencies are completed."""


@dataclass(slots=True)
class StepOutcome:
    state: NodeState
    result: GenerationResult

    @property
    def ok(self) -> bool:
        return self.state.status == "completed"


def pipeline_order(engine: WorkflowEngine) -> list[str]:
    """Catalog node ids with every node placed after its prerequisites."""

    ordered: list[str] = []
    for node_id in engine.catalog.ids():
        for candidate in [*resolve_prerequisite_chain(engine.catalog, node_id), node_id]:
            if candidate not in ordered:
                ordered.append(candidate)
    return ordered


class StepRunner:
    """Run single steps against a backend and report them to the engine."""

    def __init__(
        self,
        engine: WorkflowEngine,
        backend: GenerationBackend,
        *,
        usage: Optional[UsageTracker] = None,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.engine = engine
        self.backend = backend
        self.usage = usage or UsageTracker()
        self._timer = timer

    def prepare_inputs(self, node: NodeDefinition, inputs: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Defaults, then completed upstream outputs, then caller inputs."""

        prepared: dict[str, Any] = dict(node.default_values)
        for dep in node.dependencies:
            state = self.engine.get_node_state(dep)
            if state.status == "completed" and state.data is not None:
                prepared[UPSTREAM_INPUT_KEYS.get(dep, f"{dep}Data")] = state.data
        prepared.update(inputs or {})

        missing = [key for key in node.required_inputs if _is_blank(prepared.get(key))]
        if missing:
            raise ValueError(f"Step '{node.id}' is missing required inputs: {', '.join(missing)}")
        return prepared

    def run_step(
        self,
        node_id: str,
        inputs: Mapping[str, Any] | None = None,
        conversation_id: Optional[str] = None,
        *,
        force: bool = False,
    ) -> StepOutcome:
        node = self.engine.get_node_by_id(node_id)
        if node is None:
            raise ValueError(f"Unknown node '{node_id}'.")
        prepared = self.prepare_inputs(node, inputs)
        if not force and not self.engine.can_execute_node(node_id):
            missing = self.engine.missing_dependencies(node_id)
            raise StepNotEligibleError(
                f"Step '{node_id}' requires completed steps: {', '.join(missing)}"
            )

        self.engine.update_node_state(node_id, status="loading")
        started = self._timer()
        try:
            result = self.backend.execute(node_id, prepared, conversation_id)
        except Exception as exc:
            self.engine.update_node_state(node_id, status="error", error=str(exc))
            self.usage.record(node_id, seconds=self._timer() - started, failed=True)
            raise
        elapsed = self._timer() - started

        if result.ok:
            state = self.engine.update_node_state(node_id, status="completed", data=result.output)
        else:
            logger.warning("Step '%s' failed: %s", node_id, result.error)
            state = self.engine.update_node_state(
                node_id,
                status="error",
                error=result.error or "Generation failed.",
            )
        self.usage.record(
            node_id,
            model=result.model,
            prompt_tokens=result.prompt_tokens,
            completion_tokens=result.completion_tokens,
            seconds=elapsed,
            failed=not result.ok,
        )
        return StepOutcome(state=state, result=result)


class PipelineOrchestrator:
    """Coordinate the guided pipeline as a LangGraph workflow."""

    def __init__(
        self,
        engine: WorkflowEngine,
        backend: GenerationBackend,
        *,
        usage: Optional[UsageTracker] = None,
    ) -> None:
        self.engine = engine
        self.runner = StepRunner(engine, backend, usage=usage)
        self.order = pipeline_order(engine)
        self._workflow = self._build_workflow()

    @property
    def usage(self) -> UsageTracker:
        return self.runner.usage

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def run_all(
        self,
        inputs: Mapping[str, Any] | None = None,
        conversation_id: Optional[str] = None,
    ) -> PipelineState:
        """Execute every step in dependency order, stopping at the first failure."""

        initial = self._initial_state(inputs, conversation_id)
        return self._workflow.invoke(
            initial,
            config={"configurable": {"thread_id": f"pipeline-{conversation_id or 'new'}"}},
        )

    def run_until(
        self,
        final_node: str,
        inputs: Mapping[str, Any] | None = None,
        conversation_id: Optional[str] = None,
    ) -> PipelineState:
        """Run the prerequisite chain of ``final_node`` and the node itself."""

        if final_node not in self.engine.catalog:
            raise ValueError(f"Unsupported node '{final_node}'.")
        selected = [*resolve_prerequisite_chain(self.engine.catalog, final_node), final_node]

        state = self._initial_state(inputs, conversation_id)
        for node_id in selected:
            state = self._step_function(node_id)(state)
            if state.get("failed_node"):
                break
        return state

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _initial_state(inputs: Mapping[str, Any] | None, conversation_id: Optional[str]) -> PipelineState:
        return {
            "inputs": dict(inputs or {}),
            "conversation_id": conversation_id,
            "outputs": {},
            "steps": [],
            "failed_node": None,
            "errors": [],
        }

    def _build_workflow(self):
        graph = StateGraph(PipelineState)
        for node_id in self.order:
            graph.add_node(node_id, self._step_function(node_id))

        if not self.order:
            graph.add_edge(START, END)
            return graph.compile()

        graph.add_edge(START, self.order[0])
        for current, following in zip(self.order, [*self.order[1:], END]):
            graph.add_conditional_edges(
                current,
                self._route_after_step,
                {"continue": following, "stop": END},
            )
        return graph.compile()

    @staticmethod
    def _route_after_step(state: PipelineState) -> str:
        return "stop" if state.get("failed_node") else "continue"

    def _step_function(self, node_id: str) -> Callable[[PipelineState], PipelineState]:
        def step(state: PipelineState) -> PipelineState:
            outcome = self.runner.run_step(
                node_id,
                state.get("inputs"),
                state.get("conversation_id"),
            )
            updated: PipelineState = dict(state)  # type: ignore[assignment]
            updated["conversation_id"] = outcome.result.conversation_id or state.get("conversation_id")
            updated["steps"] = [
                *state.get("steps", []),
                StepRecord(node_id=node_id, status=outcome.state.status, error=outcome.state.error),
            ]
            if outcome.ok:
                updated["outputs"] = {**state.get("outputs", {}), node_id: outcome.result.output}
            else:
                updated["failed_node"] = node_id
                updated["errors"] = [*state.get("errors", []), f"{node_id}: {outcome.state.error}"]
            return updated

        return step


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False
