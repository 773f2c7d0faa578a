"""Command-line interface for Driveflow."""

from __future__ import annotations

from collections.abc import Sequence

from .commands import (
    cmd_compile,
    cmd_executions,
    cmd_notify,
    cmd_reset_listeners,
    cmd_serve,
    cmd_status,
)
from .parser import build_parser


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point.

    Args:
        argv: Optional sequence of CLI arguments (without the program name).

    Returns:
        Process exit code. 0 for success.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        raise SystemExit(0)

    handlers = {
        "serve": cmd_serve,
        "status": cmd_status,
        "notify": cmd_notify,
        "compile": cmd_compile,
        "executions": cmd_executions,
        "reset-listeners": cmd_reset_listeners,
    }

    handler = handlers.get(args.command)
    if handler:
        return handler(args)

    parser.print_help()
    return 1


__all__ = ["build_parser", "main"]
