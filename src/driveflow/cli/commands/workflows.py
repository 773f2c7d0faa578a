"""Workflow commands: compile, executions."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ...automation import Graph, compile_flow_path
from ...core import DriveflowError, GraphInvalidError
from ..base import load_config, open_store


def cmd_compile(args: argparse.Namespace) -> int:
    """Compile a graph file and print its flow path."""
    graph_path = Path(args.graph)
    if not graph_path.exists():
        print(f"Error: Graph file not found: {graph_path}")
        return 1

    try:
        data = json.loads(graph_path.read_text(encoding="utf-8"))
        graph = Graph.from_json(json.dumps(data.get("nodes", [])), json.dumps(data.get("edges", [])))
        flow_path = compile_flow_path(graph)
    except (json.JSONDecodeError, AttributeError) as e:
        print(f"Error: {graph_path} is not a graph object: {e}")
        return 1
    except GraphInvalidError as e:
        print("Invalid workflow graph:")
        for problem in e.problems:
            print(f"  - {problem}")
        return 1

    console = Console()
    console.print(" -> ".join(["Trigger", *flow_path]))
    console.print_json(data=flow_path)
    return 0


def cmd_executions(args: argparse.Namespace) -> int:
    """Print a page of execution history."""
    try:
        store = open_store(load_config(args))
        executions, total = store.query_executions(
            user_id=args.user,
            workflow_id=args.workflow,
            status=args.status,
            limit=args.limit,
            offset=args.offset,
        )
    except (DriveflowError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    table = Table(title=f"Executions {args.offset + 1}-{args.offset + len(executions)} of {total}")
    table.add_column("ID", style="dim")
    table.add_column("Workflow", style="cyan")
    table.add_column("Status")
    table.add_column("Actions")
    table.add_column("Credits")
    table.add_column("Time (ms)")
    for item in executions:
        actions = ", ".join(f"{a['action']}:{a['status']}" for a in item["executedActions"])
        table.add_row(
            item["id"],
            item["workflow"]["name"],
            item["status"],
            actions or "-",
            str(item["creditsUsed"]),
            str(item["executionTime"]),
        )
    Console().print(table)
    return 0
