"""Persistence for users, workflows and execution history."""

from .models import (
    UNLIMITED_CREDITS,
    Base,
    DiscordWebhook,
    ExecutionStatus,
    User,
    Workflow,
    WorkflowExecution,
)
from .database import DatabaseManager, init_database
from .repository import WorkflowStore

__all__ = [
    "UNLIMITED_CREDITS",
    "Base",
    "DatabaseManager",
    "DiscordWebhook",
    "ExecutionStatus",
    "User",
    "Workflow",
    "WorkflowExecution",
    "WorkflowStore",
    "init_database",
]
