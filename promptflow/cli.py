"""Command-line interface for running and validating workflow files.

Usage:
    python -m promptflow run workflow.json --input '{"topic": "llamas"}' --key openai=sk-...
    python -m promptflow validate workflow.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import uuid
from pathlib import Path
from typing import Dict, List, Optional

from .engine.context import NodeServices
from .engine.coordinator import ExecutionCoordinator, ExecutionRun
from .engine.graph import WorkflowGraph
from .engine.validation import validate_graph
from .integrations.providers import ProviderClient, StaticCredentials
from .logging_config import get_engine_logger


def _load_graph(path: str) -> WorkflowGraph:
    workflow_path = Path(path)
    if not workflow_path.exists():
        raise SystemExit(f"Error: Workflow file not found: {workflow_path}")
    with open(workflow_path, encoding="utf-8") as f:
        return WorkflowGraph.from_dict(json.load(f))


def _parse_keys(pairs: List[str]) -> Dict[str, str]:
    keys = {}
    for pair in pairs:
        provider, sep, key = pair.partition("=")
        if not sep or not provider:
            raise SystemExit(f"Error: --key expects provider=KEY, got '{pair}'")
        keys[provider.strip()] = key
    return keys


async def _run(args) -> int:
    graph = _load_graph(args.workflow)
    initial = json.loads(args.input) if args.input else {}
    if not isinstance(initial, dict):
        raise SystemExit("Error: --input must be a JSON object")

    services = NodeServices(provider=ProviderClient(StaticCredentials(_parse_keys(args.key))))
    coordinator = ExecutionCoordinator(services=services)
    run = ExecutionRun(
        id=uuid.uuid4().hex[:8],
        workflow_id=Path(args.workflow).stem,
        graph=graph,
        input_data=initial,
    )
    try:
        outcome = await coordinator.execute(run)
    finally:
        await services.aclose()

    print(json.dumps(outcome.to_dict(), indent=2, ensure_ascii=False, default=str))
    return 0 if outcome.success else 1


def _validate(args) -> int:
    result = validate_graph(_load_graph(args.workflow))
    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    return 0 if result.valid else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="promptflow", description="Run AI prompt workflows")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Execute a workflow file")
    run_parser.add_argument("workflow", help="Path to a workflow or export JSON file")
    run_parser.add_argument("--input", help="Initial variables as a JSON object")
    run_parser.add_argument(
        "--key", action="append", default=[], metavar="PROVIDER=KEY",
        help="Provider API key (Ollama: base URL); repeatable",
    )

    validate_parser = subparsers.add_parser("validate", help="Validate a workflow file")
    validate_parser.add_argument("workflow", help="Path to a workflow or export JSON file")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    get_engine_logger()
    if args.command == "run":
        return asyncio.run(_run(args))
    return _validate(args)


if __name__ == "__main__":
    sys.exit(main())
