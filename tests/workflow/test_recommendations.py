from __future__ import annotations

from contentflow.workflow import (
    BLOCKED_CONFIDENCE,
    ELIGIBLE_CONFIDENCE,
    NodeCatalog,
    NodeState,
    Recommendation,
    WorkflowContext,
    build_default_catalog,
    get_next_step_recommendations,
    rank_recommendations,
)


def _context(current: str | None, completed: list[str], available: list[str]) -> WorkflowContext:
    return WorkflowContext(
        nodes={node_id: NodeState(node_id=node_id, status="completed") for node_id in completed},
        current_node=current,
        completed_nodes=list(completed),
        available_next_steps=list(available),
    )


def test_no_current_node_means_no_recommendations(abc_catalog: NodeCatalog) -> None:
    assert get_next_step_recommendations(_context(None, ["A"], ["B"]), abc_catalog) == []


def test_eligible_and_blocked_steps_keep_declared_order(abc_catalog: NodeCatalog) -> None:
    recommendations = get_next_step_recommendations(_context("A", ["A"], ["B", "C"]), abc_catalog)

    eligible, blocked = recommendations
    assert eligible.node_id == "B"
    assert eligible.confidence == ELIGIBLE_CONFIDENCE
    assert eligible.eligible is True
    assert "Alpha" in eligible.reason

    assert blocked.node_id == "C"
    assert blocked.confidence == BLOCKED_CONFIDENCE
    assert blocked.required_data == ("A", "B")
    assert blocked.eligible is False
    assert "B" in blocked.reason


def test_unknown_available_steps_are_skipped(abc_catalog: NodeCatalog) -> None:
    recommendations = get_next_step_recommendations(_context("A", ["A"], ["ghost", "B"]), abc_catalog)

    assert [rec.node_id for rec in recommendations] == ["B"]


def test_recommendations_are_idempotent(abc_catalog: NodeCatalog) -> None:
    context = _context("A", ["A"], ["B", "C"])

    first = get_next_step_recommendations(context, abc_catalog)
    second = get_next_step_recommendations(context, abc_catalog)

    assert first == second
    assert context.completed_nodes == ["A"]


def test_default_pipeline_recommends_packaging_after_search() -> None:
    catalog = build_default_catalog()
    context = _context("ai_search", ["ai_search"], ["tech_package", "promotion_strategy"])

    recommendations = get_next_step_recommendations(context, catalog)

    assert [(rec.node_id, rec.confidence) for rec in recommendations] == [
        ("tech_package", 0.9),
        ("promotion_strategy", 0.5),
    ]
    assert recommendations[1].required_data == ("tech_package",)


def test_rank_recommendations_is_stable() -> None:
    low = Recommendation(node_id="C", confidence=0.5, reason="", required_data=("B",))
    high_first = Recommendation(node_id="B", confidence=0.9, reason="")
    high_second = Recommendation(node_id="D", confidence=0.9, reason="")

    ranked = rank_recommendations([low, high_first, high_second])

    assert [rec.node_id for rec in ranked] == ["B", "D", "C"]


def test_recommendation_to_dict_only_lists_required_data_when_blocked() -> None:
    assert Recommendation(node_id="B", confidence=0.9, reason="ready").to_dict() == {
        "nodeId": "B",
        "confidence": 0.9,
        "reason": "ready",
    }
    assert Recommendation(node_id="C", confidence=0.5, reason="wait", required_data=("A",)).to_dict()[
        "requiredData"
    ] == ["A"]
