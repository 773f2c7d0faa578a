"""Serve command."""

from __future__ import annotations

import argparse

from rich.console import Console
from rich.panel import Panel

from ... import __version__
from ...app import DriveflowApp
from ...core import DriveflowConfig
from ..base import load_config, logger


def print_banner(config: DriveflowConfig) -> None:
    """Print a startup banner with configuration info."""
    server = config.event_server
    info = f"""[bold]Driveflow[/bold] [green]v{__version__}[/]
[dim]----------------------------------------------------[/]
[bold]Listening:[/bold]     [yellow]http://{server.host}:{server.port}[/]
[bold]Notifications:[/bold] [yellow]{server.notification_path}[/]
[bold]Resume:[/bold]        [yellow]{config.resume_callback_url()}[/]
[bold]Scheduler:[/bold]     [yellow]{config.scheduler.backend}[/]
[bold]Database:[/bold]      [yellow]{config.database.url}[/]"""
    Console().print(
        Panel(info, title="[bold white]Startup[/]", border_style="blue", expand=False)
    )


def cmd_serve(args: argparse.Namespace) -> int:
    """Handle serve command.

    Args:
        args: Parsed arguments

    Returns:
        Exit code
    """
    try:
        config = load_config(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    if args.host:
        config.event_server.host = args.host
    if args.port:
        config.event_server.port = args.port
    if args.debug:
        config.logging.level = "DEBUG"

    try:
        app = DriveflowApp(config)
        print_banner(config)
        app.start()
        return 0
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.error("Error starting Driveflow: %s", e, exc_info=True)
        return 1
