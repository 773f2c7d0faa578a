"""Diagnostic commands: status, notify, reset-listeners."""

from __future__ import annotations

import argparse
import json
import time

import httpx
from rich.console import Console
from rich.table import Table

from ...core import DriveflowError
from ..base import load_config, open_store


def cmd_status(args: argparse.Namespace) -> int:
    """Print users with their listeners, credits and workflows, then recent executions."""
    try:
        store = open_store(load_config(args))
        users = store.list_users()
        executions, total = store.query_executions(limit=args.limit)
    except (DriveflowError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    console = Console()
    console.print(f"[bold]Found {len(users)} user(s)[/bold]")

    for user in users:
        table = Table(title=f"{user.email or user.clerk_id}")
        table.add_column("Workflow", style="cyan")
        table.add_column("ID")
        table.add_column("Published")
        table.add_column("Flow path")
        table.add_column("Pending")
        for workflow in store.list_workflows(user.clerk_id):
            flow_path = json.loads(workflow.flow_path) if workflow.flow_path else []
            table.add_row(
                workflow.name,
                workflow.id,
                "YES" if workflow.publish else "NO",
                " -> ".join(flow_path) or "-",
                workflow.cron_path or "-",
            )
        console.print(
            f"Clerk ID: {user.clerk_id}  Credits: {user.credits}  "
            f"Listener: {user.google_resource_id or 'NOT SET'}"
        )
        console.print(table)

    console.print(f"\n[bold]Recent executions ({len(executions)} of {total})[/bold]")
    if not executions:
        console.print("No workflow executions found.")
        return 0

    table = Table()
    table.add_column("Workflow", style="cyan")
    table.add_column("Status")
    table.add_column("Triggered by")
    table.add_column("Time")
    table.add_column("Error")
    for item in executions:
        table.add_row(
            item["workflow"]["name"],
            item["status"],
            item["triggeredBy"],
            item["createdAt"] or "-",
            item["error"] or "",
        )
    console.print(table)
    return 0


def cmd_notify(args: argparse.Namespace) -> int:
    """Send a change notification the way the drive service does."""
    try:
        config = load_config(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    server = config.event_server
    url = args.url or f"http://127.0.0.1:{server.port}{server.notification_path}"
    message_number = args.message_number or str(int(time.time() * 1000))
    headers = {
        "x-goog-resource-id": args.resource_id,
        "x-goog-message-number": message_number,
        "x-goog-resource-state": "change",
    }

    try:
        response = httpx.post(url, headers=headers, timeout=30.0)
    except httpx.HTTPError as e:
        print(f"Error: could not reach {url}: {e}")
        return 1

    console = Console()
    console.print(f"Status: [bold]{response.status_code}[/bold]")
    try:
        console.print_json(data=response.json())
    except ValueError:
        console.print(response.text)
    return 0 if response.is_success else 1


def cmd_reset_listeners(args: argparse.Namespace) -> int:
    """Clear stored listener resource ids so users reconnect their drive listener."""
    try:
        store = open_store(load_config(args))
        count = store.reset_resource_ids()
    except (DriveflowError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    print(f"✓ Reset {count} listener(s). Users need to reconnect their drive listener.")
    return 0
