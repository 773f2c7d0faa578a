"""CLI argument parser."""

from __future__ import annotations

import argparse

from .. import __version__


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser.

    Returns:
        ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="driveflow",
        description="Driveflow - run workflows when files change",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve notifications and resume callbacks
  driveflow -c driveflow.yaml serve --port 8000

  # Inspect users, workflows and recent executions
  driveflow status

  # Send a test notification to a running server
  driveflow notify --resource-id abc123

  # Compile an exported graph
  driveflow compile graph.json
        """,
    )
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="Configuration file (YAML or JSON); defaults to DRIVEFLOW_* environment variables",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve = subparsers.add_parser("serve", help="Run the event server and resume scheduler")
    serve.add_argument("--host", default=None, help="Override the bind host")
    serve.add_argument("--port", type=int, default=None, help="Override the bind port")
    serve.add_argument("--debug", action="store_true", help="Enable debug logging")

    status = subparsers.add_parser("status", help="Show users, workflows and recent executions")
    status.add_argument("--limit", type=int, default=10, help="Recent executions to show")

    notify = subparsers.add_parser("notify", help="Send a test change notification")
    notify.add_argument("--resource-id", required=True, help="Listener resource id of the user")
    notify.add_argument(
        "--message-number", default=None, help="Message sequence token (default: timestamp)"
    )
    notify.add_argument("--url", default=None, help="Notification URL (default: local server)")

    compile_cmd = subparsers.add_parser("compile", help="Compile a graph file into a flow path")
    compile_cmd.add_argument("graph", help="JSON file holding 'nodes' and 'edges'")

    executions = subparsers.add_parser("executions", help="Query execution history")
    executions.add_argument("--user", default=None, help="Filter by user id")
    executions.add_argument("--workflow", default=None, help="Filter by workflow id")
    executions.add_argument("--status", default=None, help="Filter by status")
    executions.add_argument("--limit", type=int, default=50)
    executions.add_argument("--offset", type=int, default=0)

    subparsers.add_parser("reset-listeners", help="Clear every stored listener resource id")

    return parser


__all__ = ["build_parser"]
