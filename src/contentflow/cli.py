"""Command line interface for the contentflow console."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Any, Callable, Sequence

from dotenv import load_dotenv

from .config import ContentFlowConfig
from .pipeline import PipelineOrchestrator, StepRunner, build_backend
from .workflow import (
    NODE_STATUSES,
    ContextPersistence,
    JsonFileStore,
    WorkflowEngine,
    build_default_catalog,
    rank_recommendations,
)

__all__ = ["main", "build_parser"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="contentflow",
        description=(
            "Guided content pipeline (search → tech packaging → strategy → draft → speech). "
            "Workflow state is kept per session in the state directory."
        ),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        allow_abbrev=False,
    )
    parser.add_argument("--state-dir", dest="state_dir", default=None, help="Directory holding session state files.")
    parser.add_argument("--session", default=None, help="Session key the workflow context is stored under.")
    parser.add_argument("--log-level", dest="log_level", default=None, help="Logging level (DEBUG, INFO, WARNING...).")
    subparsers = parser.add_subparsers(dest="command")

    nodes = subparsers.add_parser("nodes", help="List the steps of the pipeline.")
    nodes.add_argument("--independent", action="store_true", help="Only list steps that can be entered directly.")

    status = subparsers.add_parser("status", help="Show the workflow context of the session.")
    status.add_argument("--json", action="store_true", help="Print the raw context document.")

    recommend = subparsers.add_parser("recommend", help="Suggest next steps from the current node.")
    recommend.add_argument("--ranked", action="store_true", help="Sort suggestions best first.")
    recommend.add_argument("--json", action="store_true", help="Print suggestions as JSON.")

    select = subparsers.add_parser("select", help="Make a step the current node without running it.")
    select.add_argument("node")

    mark = subparsers.add_parser("mark", help="Force a step into a given status.")
    mark.add_argument("node")
    mark.add_argument("status", choices=NODE_STATUSES)
    mark.add_argument("--error", default=None, help="Error message recorded with the 'error' status.")

    run = subparsers.add_parser(
        "run",
        help="Run a single step against the generation backend.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    run.add_argument("node")
    run.add_argument("--force", action="store_true", help="Run even when prerequisite steps are incomplete.")
    _register_generation_arguments(run)

    run_all = subparsers.add_parser(
        "run-all",
        help="Run the whole guided pipeline, stopping at the first failure.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    run_all.add_argument("--until", default=None, help="Stop after this step (and its prerequisites).")
    _register_generation_arguments(run_all)

    subparsers.add_parser("reset", help="Discard the session's workflow context.")
    return parser


def _register_generation_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--query", default=None, help="Question for the search step.")
    parser.add_argument(
        "--input",
        dest="inputs",
        action="append",
        type=_key_value_type,
        default=[],
        help="Extra step input as key=value (repeatable).",
    )
    parser.add_argument("--conversation-id", dest="conversation_id", default=None)
    parser.add_argument("--backend", default="mock", help="Generation backend to use (mock, openai).")
    parser.add_argument("--model", default=None, help="Model name or identifier to target.")
    parser.add_argument("--base-url", dest="base_url", default=None)
    parser.add_argument("--api-key-env", dest="api_key_env", default=None)
    parser.add_argument("--temperature", type=float, default=None)
    parser.add_argument("--max-tokens", dest="max_tokens", type=int, default=None)
    parser.add_argument("--seed", type=int, default=None, help="Random seed for deterministic mock outputs.")


def _key_value_type(value: str) -> tuple[str, str]:
    key, sep, raw = value.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"Expected key=value, got '{value}'")
    return key.strip(), raw


def _build_config(args: argparse.Namespace) -> ContentFlowConfig:
    config = ContentFlowConfig().with_store(state_root=args.state_dir, session_key=args.session)
    if args.log_level:
        config.log_level = args.log_level
    return config


def _build_engine(config: ContentFlowConfig) -> WorkflowEngine:
    store = JsonFileStore(config.state_root)
    persistence = ContextPersistence(store, session_key=config.store.session_key)
    return WorkflowEngine(build_default_catalog(strict=config.strict_catalog), persistence)


def _build_step_inputs(args: argparse.Namespace) -> dict[str, Any]:
    inputs: dict[str, Any] = dict(args.inputs)
    if args.query is not None:
        inputs["query"] = args.query
    return inputs


def _build_backend(args: argparse.Namespace, config: ContentFlowConfig):
    provider_kwargs: dict[str, Any] = {}
    if args.backend.lower() not in {"mock", "test", "stub"}:
        api_key = os.getenv(args.api_key_env) if args.api_key_env else None
        provider_kwargs = config.as_provider_kwargs(
            model=args.model,
            base_url=args.base_url,
            api_key=api_key,
            temperature=args.temperature,
            max_tokens=args.max_tokens,
        )
    return build_backend(args.backend, seed=args.seed, **provider_kwargs)


def _cmd_nodes(engine: WorkflowEngine, args: argparse.Namespace) -> int:
    nodes = engine.get_independent_nodes() if args.independent else list(engine.catalog)
    for node in nodes:
        deps = ", ".join(node.dependencies) or "-"
        print(f"{node.id:<20} {node.name:<20} requires: {deps}")
    return 0


def _cmd_status(engine: WorkflowEngine, args: argparse.Namespace) -> int:
    context = engine.context
    if args.json:
        print(json.dumps(context.to_dict(), ensure_ascii=False, indent=2, default=str))
        return 0
    print(f"Current node:   {context.current_node or '-'}")
    print(f"Completed:      {', '.join(context.completed_nodes) or '-'}")
    print(f"Next steps:     {', '.join(context.available_next_steps) or '-'}")
    for node in engine.catalog:
        state = context.node_state(node.id)
        stamp = state.timestamp.isoformat(timespec="seconds") if state.timestamp else ""
        marker = "" if engine.can_execute_node(node.id) else " (blocked)"
        line = f"  {node.id:<20} {state.status:<10} {stamp}{marker}"
        if state.error:
            line += f"  error: {state.error}"
        print(line)
    return 0


def _cmd_recommend(engine: WorkflowEngine, args: argparse.Namespace) -> int:
    recommendations = engine.get_next_step_recommendations()
    if args.ranked:
        recommendations = rank_recommendations(recommendations)
    if args.json:
        print(json.dumps([rec.to_dict() for rec in recommendations], ensure_ascii=False, indent=2))
        return 0
    if not recommendations:
        print("No recommendations; select a node first.")
        return 0
    for rec in recommendations:
        print(f"{rec.node_id:<20} {rec.confidence:.1f}  {rec.reason}")
    return 0


def _cmd_select(engine: WorkflowEngine, args: argparse.Namespace) -> int:
    if engine.get_node_by_id(args.node) is None:
        raise ValueError(f"Unknown node '{args.node}'.")
    engine.set_current_node(args.node)
    print(f"Current node: {args.node}")
    return 0


def _cmd_mark(engine: WorkflowEngine, args: argparse.Namespace) -> int:
    partial: dict[str, Any] = {"status": args.status}
    if args.status == "error":
        partial["error"] = args.error or "Marked as failed."
    state = engine.update_node_state(args.node, **partial)
    print(f"{state.node_id}: {state.status}")
    return 0


def _cmd_run(engine: WorkflowEngine, args: argparse.Namespace, config: ContentFlowConfig) -> int:
    runner = StepRunner(engine, _build_backend(args, config))
    outcome = runner.run_step(args.node, _build_step_inputs(args), args.conversation_id, force=args.force)
    if not outcome.ok:
        print(f"Error: {outcome.state.error}", file=sys.stderr)
        return 1
    print(outcome.result.output)
    return 0


def _cmd_run_all(engine: WorkflowEngine, args: argparse.Namespace, config: ContentFlowConfig) -> int:
    orchestrator = PipelineOrchestrator(engine, _build_backend(args, config))
    inputs = _build_step_inputs(args)
    if args.until:
        final_state = orchestrator.run_until(args.until, inputs, args.conversation_id)
    else:
        final_state = orchestrator.run_all(inputs, args.conversation_id)
    for record in final_state.get("steps", []):
        print(f"{record['node_id']:<20} {record['status']}")
    for error in final_state.get("errors", []):
        print(f"Error: {error}", file=sys.stderr)
    return 1 if final_state.get("failed_node") else 0


def _cmd_reset(engine: WorkflowEngine, args: argparse.Namespace) -> int:
    engine.reset_context()
    print("Workflow context cleared.")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    simple_commands: dict[str, Callable[[WorkflowEngine, argparse.Namespace], int]] = {
        "nodes": _cmd_nodes,
        "status": _cmd_status,
        "recommend": _cmd_recommend,
        "select": _cmd_select,
        "mark": _cmd_mark,
        "reset": _cmd_reset,
    }

    try:
        config = _build_config(args)
        logging.basicConfig(
            level=config.log_level.upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        engine = _build_engine(config)
        if args.command == "run":
            return _cmd_run(engine, args, config)
        if args.command == "run-all":
            return _cmd_run_all(engine, args, config)
        return simple_commands[args.command](engine, args)
    except (FileNotFoundError, ValueError, RuntimeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
