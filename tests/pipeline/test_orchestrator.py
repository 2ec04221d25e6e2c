from __future__ import annotations

from typing import Any, Mapping, Optional

import pytest

from contentflow.llm import UsageTracker
from contentflow.pipeline import (
    GenerationResult,
    MockGenerationBackend,
    PipelineOrchestrator,
    StepNotEligibleError,
    StepRunner,
    pipeline_order,
)
from contentflow.workflow import ContextPersistence, InMemoryStore, WorkflowEngine, build_default_catalog

PIPELINE = ["ai_search", "tech_package", "promotion_strategy", "core_draft", "speech"]


@pytest.fixture
def engine(clock, memory_store: InMemoryStore) -> WorkflowEngine:
    return WorkflowEngine(build_default_catalog(), ContextPersistence(memory_store), clock=clock)


class ExplodingBackend:
    def execute(self, node_id: str, inputs: Mapping[str, Any], conversation_id: Optional[str] = None) -> GenerationResult:
        raise ConnectionError("backend unreachable")


def test_pipeline_order_follows_dependencies(engine: WorkflowEngine) -> None:
    assert pipeline_order(engine) == PIPELINE


def test_run_step_completes_node_and_records_usage(engine: WorkflowEngine) -> None:
    backend = MockGenerationBackend(seed=1)
    runner = StepRunner(engine, backend)

    outcome = runner.run_step("ai_search", {"query": "What is sensor fusion?"}, "conv-7")

    assert outcome.ok is True
    assert outcome.state.status == "completed"
    assert outcome.state.data == outcome.result.output
    assert outcome.result.conversation_id == "conv-7"
    assert engine.context.completed_nodes == ["ai_search"]
    assert engine.context.current_node == "ai_search"
    assert engine.context.available_next_steps == ["tech_package", "promotion_strategy"]

    usage = runner.usage.usage_for("ai_search")
    assert usage is not None
    assert usage.calls == 1
    assert usage.failures == 0


def test_run_step_hands_upstream_output_and_defaults_to_backend(engine: WorkflowEngine) -> None:
    backend = MockGenerationBackend()
    runner = StepRunner(engine, backend)
    search = runner.run_step("ai_search", {"query": "fusion"})

    runner.run_step("tech_package", {"targetAudience": "buyers"})

    node_id, inputs, _ = backend.calls[-1]
    assert node_id == "tech_package"
    assert inputs["aiSearchData"] == search.result.output
    assert inputs["template"] == "default"
    assert inputs["targetAudience"] == "buyers"


def test_caller_inputs_override_defaults(engine: WorkflowEngine) -> None:
    backend = MockGenerationBackend()
    runner = StepRunner(engine, backend)
    runner.run_step("ai_search", {"query": "fusion"})

    runner.run_step("tech_package", {"template": "launch"})

    assert backend.calls[-1][1]["template"] == "launch"


def test_run_step_requires_completed_dependencies(engine: WorkflowEngine) -> None:
    runner = StepRunner(engine, MockGenerationBackend())

    with pytest.raises(StepNotEligibleError, match="ai_search"):
        runner.run_step("tech_package")

    assert engine.context.is_empty()


def test_force_runs_ineligible_step(engine: WorkflowEngine) -> None:
    runner = StepRunner(engine, MockGenerationBackend())

    outcome = runner.run_step("core_draft", force=True)

    assert outcome.ok is True
    assert engine.context.completed_nodes == ["core_draft"]


def test_run_step_rejects_unknown_nodes_and_blank_required_inputs(engine: WorkflowEngine) -> None:
    runner = StepRunner(engine, MockGenerationBackend())

    with pytest.raises(ValueError, match="Unknown node"):
        runner.run_step("mystery")
    with pytest.raises(ValueError, match="query"):
        runner.run_step("ai_search", {"query": "   "})


def test_backend_failure_marks_node_error(engine: WorkflowEngine) -> None:
    runner = StepRunner(engine, MockGenerationBackend(fail_on=["ai_search"]))

    outcome = runner.run_step("ai_search", {"query": "fusion"})

    assert outcome.ok is False
    assert outcome.state.status == "error"
    assert outcome.state.error == "Mock backend configured to fail for 'ai_search'."
    assert engine.context.completed_nodes == []
    assert engine.has_active_node() is False
    assert runner.usage.usage_for("ai_search").failures == 1


def test_backend_exception_marks_node_error_and_propagates(engine: WorkflowEngine) -> None:
    usage = UsageTracker()
    runner = StepRunner(engine, ExplodingBackend(), usage=usage)

    with pytest.raises(ConnectionError):
        runner.run_step("ai_search", {"query": "fusion"})

    state = engine.get_node_state("ai_search")
    assert state.status == "error"
    assert state.error == "backend unreachable"
    assert usage.to_dict()["failures"] == 1


def test_retry_after_failure_completes(engine: WorkflowEngine) -> None:
    backend = MockGenerationBackend(fail_on=["ai_search"])
    runner = StepRunner(engine, backend)
    runner.run_step("ai_search", {"query": "fusion"})

    backend.fail_on.clear()
    outcome = runner.run_step("ai_search", {"query": "fusion"})

    assert outcome.ok is True
    assert outcome.state.error is None
    assert engine.context.completed_nodes == ["ai_search"]


def test_run_all_executes_every_step(engine: WorkflowEngine) -> None:
    orchestrator = PipelineOrchestrator(engine, MockGenerationBackend(seed=3))

    final_state = orchestrator.run_all({"query": "sensor fusion"}, "conv-run")

    assert [record["node_id"] for record in final_state["steps"]] == PIPELINE
    assert all(record["status"] == "completed" for record in final_state["steps"])
    assert final_state.get("failed_node") is None
    assert final_state["conversation_id"] == "conv-run"
    assert set(final_state["outputs"]) == set(PIPELINE)
    assert engine.context.completed_nodes == PIPELINE
    assert orchestrator.usage.to_dict()["calls"] == 5


def test_run_all_stops_after_first_failure(engine: WorkflowEngine) -> None:
    backend = MockGenerationBackend(fail_on=["promotion_strategy"])
    orchestrator = PipelineOrchestrator(engine, backend)

    final_state = orchestrator.run_all({"query": "sensor fusion"})

    assert [record["node_id"] for record in final_state["steps"]] == PIPELINE[:3]
    assert final_state["failed_node"] == "promotion_strategy"
    assert final_state["errors"] == [
        "promotion_strategy: Mock backend configured to fail for 'promotion_strategy'."
    ]
    assert [call[0] for call in backend.calls] == PIPELINE[:3]
    assert engine.get_node_state("core_draft").status == "idle"


def test_run_all_threads_generated_conversation_id(engine: WorkflowEngine) -> None:
    backend = MockGenerationBackend()
    orchestrator = PipelineOrchestrator(engine, backend)

    final_state = orchestrator.run_all({"query": "sensor fusion"})

    assert final_state["conversation_id"] == "conv-mock-0001"
    assert [call[2] for call in backend.calls[1:]] == ["conv-mock-0001"] * 4


def test_run_until_runs_prerequisite_chain_only(engine: WorkflowEngine) -> None:
    backend = MockGenerationBackend()
    orchestrator = PipelineOrchestrator(engine, backend)

    final_state = orchestrator.run_until("promotion_strategy", {"query": "fusion"})

    assert [record["node_id"] for record in final_state["steps"]] == PIPELINE[:3]
    assert engine.context.completed_nodes == PIPELINE[:3]

    with pytest.raises(ValueError, match="Unsupported node"):
        orchestrator.run_until("mystery")
