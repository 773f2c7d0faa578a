"""Database models for workflows, users and execution history."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

UNLIMITED_CREDITS = "Unlimited"


class ExecutionStatus(str, Enum):
    """Persisted status values of an execution record."""

    PENDING = "Pending"
    SUCCESS = "Success"
    FAILED = "Failed"
    PARTIAL = "Partial"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class User(Base):
    """A workflow owner.

    Attributes:
        clerk_id: External identity of the user (primary key)
        google_resource_id: Resource id of the active drive change listener
        credits: ``"Unlimited"`` or a non-negative integer encoded as text
        tier: Billing tier label
    """

    __tablename__ = "users"

    clerk_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    google_resource_id: Mapped[str | None] = mapped_column(
        String(255), unique=True, index=True, nullable=True
    )
    credits: Mapped[str | None] = mapped_column(String(32), default="10", nullable=True)
    tier: Mapped[str | None] = mapped_column(String(32), default="Free", nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    @property
    def has_unlimited_credits(self) -> bool:
        return self.credits == UNLIMITED_CREDITS

    @property
    def credit_balance(self) -> int:
        """Numeric credit balance; unparseable values count as zero."""
        try:
            return max(0, int(self.credits or "0"))
        except ValueError:
            return 0

    @property
    def has_credits(self) -> bool:
        return self.has_unlimited_credits or self.credit_balance > 0

    def __repr__(self) -> str:
        return f"<User(clerk_id={self.clerk_id!r}, credits={self.credits!r})>"


class DiscordWebhook(Base):
    """A messaging webhook the user connected."""

    __tablename__ = "discord_webhooks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("users.clerk_id", ondelete="CASCADE"), index=True
    )
    url: Mapped[str] = mapped_column(Text)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    channel_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    guild_name: Mapped[str | None] = mapped_column(String(255), nullable=True)


class Workflow(Base):
    """A user-designed workflow graph and its compiled paths.

    ``flow_path`` and ``cron_path`` are JSON arrays of action kinds;
    ``cron_path`` is set only while a Wait step is pending, and
    ``cron_execution_id`` names the execution record it will resume.
    """

    __tablename__ = "workflows"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("users.clerk_id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text, default="")
    nodes: Mapped[str | None] = mapped_column(Text, nullable=True)
    edges: Mapped[str | None] = mapped_column(Text, nullable=True)
    flow_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    cron_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    cron_execution_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    publish: Mapped[bool] = mapped_column(Boolean, default=False, index=True)

    discord_template: Mapped[str | None] = mapped_column(Text, nullable=True)
    slack_template: Mapped[str | None] = mapped_column(Text, nullable=True)
    slack_access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    slack_channels: Mapped[list[str]] = mapped_column(JSON, default=list)
    notion_template: Mapped[str | None] = mapped_column(Text, nullable=True)
    notion_access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    notion_db_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    wait_delay_seconds: Mapped[float | None] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        return f"<Workflow(id={self.id!r}, name={self.name!r}, publish={self.publish})>"


class WorkflowExecution(Base):
    """One execution record per (workflow, trigger event) attempt."""

    __tablename__ = "workflow_executions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    workflow_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("workflows.id", ondelete="CASCADE"), index=True
    )
    status: Mapped[str] = mapped_column(String(16), index=True)
    triggered_by: Mapped[str] = mapped_column(String(64))
    trigger_data: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    executed_actions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    credits_used: Mapped[int] = mapped_column(Integer, default=0)
    execution_time: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, index=True
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "workflowId": self.workflow_id,
            "status": self.status,
            "triggeredBy": self.triggered_by,
            "triggerData": self.trigger_data,
            "executedActions": self.executed_actions,
            "error": self.error,
            "creditsUsed": self.credits_used,
            "executionTime": self.execution_time,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<WorkflowExecution(id={self.id!r}, status={self.status!r})>"
