"""
Command line interface.

Runs workflow files locally against an in-memory store:
- run: execute a workflow file and print the run
- check: print the integration readiness report
- nodes: list registered node types

A workflow file is either a workflow object or a bundle:

    {"workflow": {...}, "integrations": [{"type": "slack", "credentials": {...}}]}
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from eduflow.errors import EduflowError
from eduflow.executor import WorkflowExecutor
from eduflow.integrations import ReadinessChecker, summarize
from eduflow.models import IntegrationConnection, RunStatus, Workflow, parse_nodes
from eduflow.nodes import get_global_registry
from eduflow.observability import setup_logging
from eduflow.storage import InMemoryStore

DEFAULT_ORGANIZATION = "local"


def load_workflow_file(path: Path, store: InMemoryStore) -> Workflow:
    """Load a workflow (and optional integration connections) into `store`."""
    data = json.loads(path.read_text())
    if "workflow" in data:
        bundle, data = data, data["workflow"]
    else:
        bundle = {}

    data.setdefault("id", path.stem)
    data.setdefault("organizationId", DEFAULT_ORGANIZATION)
    workflow = store.add_workflow(Workflow.model_validate(data))

    for item in bundle.get("integrations", []):
        item.setdefault("organizationId", workflow.organization_id)
        store.add_connection(IntegrationConnection.model_validate(item))
    return workflow


def _parse_payload(raw: Optional[str]) -> dict[str, Any]:
    if not raw:
        return {}
    payload = json.loads(raw)
    if not isinstance(payload, dict):
        raise ValueError("--payload must be a JSON object")
    return payload


def cmd_run(args: argparse.Namespace) -> int:
    """Execute a workflow file."""
    setup_logging(sys.stderr)
    store = InMemoryStore()

    try:
        workflow = load_workflow_file(Path(args.file), store)
        payload = _parse_payload(args.payload)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    executor = WorkflowExecutor(workflows=store, integrations=store, tokens=store, users=store)
    try:
        run_id = asyncio.run(executor.execute(workflow.id, payload, args.user))
    except EduflowError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    run = store.runs[run_id]
    print(run.model_dump_json(by_alias=True, indent=2))
    return 0 if run.status == RunStatus.SUCCESS else 1


def cmd_check(args: argparse.Namespace) -> int:
    """Print the integration readiness report of a workflow file."""
    store = InMemoryStore()
    try:
        workflow = load_workflow_file(Path(args.file), store)
        nodes = parse_nodes(workflow.nodes)
    except (OSError, ValueError, EduflowError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    report = asyncio.run(ReadinessChecker(store).check(workflow.organization_id, nodes))
    print(json.dumps({"summary": summarize(report), **report.model_dump()}, indent=2))
    return 0


def cmd_nodes(args: argparse.Namespace) -> int:
    """List registered node types."""
    definitions = get_global_registry().list_nodes()
    if args.json:
        print(json.dumps([d.model_dump() for d in definitions], indent=2))
        return 0

    for definition in sorted(definitions, key=lambda d: (d.category, d.node_type)):
        print(f"{definition.node_type:<22} {definition.category:<18} {definition.label}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="eduflow",
        description="EduFlow workflow engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    run_parser = subparsers.add_parser("run", help="Execute a workflow file")
    run_parser.add_argument("file", help="Workflow JSON file")
    run_parser.add_argument("--payload", help="Trigger payload as a JSON object")
    run_parser.add_argument("--user", help="Acting user id")

    check_parser = subparsers.add_parser("check", help="Check integration readiness")
    check_parser.add_argument("file", help="Workflow JSON file")

    nodes_parser = subparsers.add_parser("nodes", help="List registered node types")
    nodes_parser.add_argument("--json", action="store_true", help="Print as JSON")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "run":
        return cmd_run(args)
    elif args.command == "check":
        return cmd_check(args)
    elif args.command == "nodes":
        return cmd_nodes(args)
    else:
        print(f"Unknown command: {args.command}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
