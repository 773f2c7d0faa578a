"""Driveflow: file-change triggered workflow automation.

Workflows are graphs drawn in an editor: a trigger node followed by actions
(webhook messages, team channel posts, content store records and Wait
steps). When a drive change notification arrives, every published workflow
of the affected user runs once.

Example:
    ```python
    from driveflow import DriveflowApp

    app = DriveflowApp.from_config("driveflow.yaml")
    app.start()
    ```
"""

from importlib.metadata import PackageNotFoundError, version

from .app import DriveflowApp
from .automation import (
    ActionKind,
    EventGate,
    ExecutionCoordinator,
    Graph,
    RunOutcome,
    RunStatus,
    compile_flow_path,
)
from .core import DriveflowConfig, get_logger, setup_logging
from .storage import DatabaseManager, WorkflowStore

try:
    __version__ = version("driveflow")
except PackageNotFoundError:  # pragma: no cover - source checkout
    __version__ = "0.0.0"

__all__ = [
    "ActionKind",
    "DatabaseManager",
    "DriveflowApp",
    "DriveflowConfig",
    "EventGate",
    "ExecutionCoordinator",
    "Graph",
    "RunOutcome",
    "RunStatus",
    "WorkflowStore",
    "__version__",
    "compile_flow_path",
    "get_logger",
    "setup_logging",
]
