"""CLI command handlers."""

from .diagnostics import cmd_notify, cmd_reset_listeners, cmd_status
from .serve import cmd_serve, print_banner
from .workflows import cmd_compile, cmd_executions

__all__ = [
    "cmd_compile",
    "cmd_executions",
    "cmd_notify",
    "cmd_reset_listeners",
    "cmd_serve",
    "cmd_status",
    "print_banner",
]
