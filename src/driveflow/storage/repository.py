"""Workflow data store.

``WorkflowStore`` is the only component that talks to the database. Its
methods are synchronous; the async core awaits them through
``asyncio.to_thread``. A re-entrant lock serializes access so an in-memory
SQLite database shared through a single connection stays consistent.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..automation.compiler import compile_flow_path, dump_flow_path
from ..automation.graph import Graph
from ..automation.kinds import ActionKind
from ..core.exceptions import PersistenceError, WorkflowNotFoundError
from ..core.logger import get_logger
from .database import DatabaseManager
from .models import (
    UNLIMITED_CREDITS,
    DiscordWebhook,
    ExecutionStatus,
    User,
    Workflow,
    WorkflowExecution,
)

logger = get_logger("storage.repository")

SUPERSEDED_ERROR = "Superseded by a newer trigger before resuming"


class WorkflowStore:
    """Repository over users, workflows and execution records."""

    def __init__(self, database: DatabaseManager) -> None:
        self._db = database
        self._lock = threading.RLock()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        with self._lock:
            try:
                with self._db.get_session() as session:
                    yield session
            except SQLAlchemyError as exc:
                logger.error("Data store operation failed: %s", exc)
                raise PersistenceError(f"Data store operation failed: {exc}", exc) from exc

    # ------------------------------------------------------------------
    # Users and entitlement
    # ------------------------------------------------------------------
    def create_user(
        self,
        clerk_id: str,
        *,
        email: str | None = None,
        name: str | None = None,
        credits: str = "10",
        tier: str = "Free",
        google_resource_id: str | None = None,
    ) -> User:
        user = User(
            clerk_id=clerk_id,
            email=email,
            name=name,
            credits=credits,
            tier=tier,
            google_resource_id=google_resource_id,
        )
        with self._session() as session:
            session.add(user)
        return user

    def get_user(self, clerk_id: str) -> User | None:
        with self._session() as session:
            return session.get(User, clerk_id)

    def list_users(self) -> list[User]:
        with self._session() as session:
            return list(session.scalars(select(User).order_by(User.created_at)))

    def find_user_by_resource_id(self, resource_id: str) -> User | None:
        """Map a drive listener resource id to its owner."""
        with self._session() as session:
            return session.scalars(
                select(User).where(User.google_resource_id == resource_id).limit(1)
            ).first()

    def set_resource_id(self, clerk_id: str, resource_id: str | None) -> bool:
        with self._session() as session:
            result = session.execute(
                update(User)
                .where(User.clerk_id == clerk_id)
                .values(google_resource_id=resource_id)
            )
            return bool(result.rowcount)

    def reset_resource_ids(self) -> int:
        """Clear every stored listener resource id so listeners get recreated."""
        with self._session() as session:
            result = session.execute(
                update(User)
                .where(User.google_resource_id.is_not(None))
                .values(google_resource_id=None)
            )
            count = result.rowcount or 0
        logger.info("Reset %d drive listener(s)", count)
        return count

    def get_credits(self, clerk_id: str) -> dict[str, str] | None:
        user = self.get_user(clerk_id)
        if user is None:
            return None
        return {"credits": user.credits or "0", "tier": user.tier or "Free"}

    def decrement_credits(self, clerk_id: str) -> str | None:
        """Take one credit from a user.

        ``"Unlimited"`` is never decremented and balances never go below zero.

        Returns:
            The credit value after the update, or None if the user is unknown
        """
        with self._session() as session:
            user = session.get(User, clerk_id)
            if user is None:
                return None
            if user.has_unlimited_credits:
                return UNLIMITED_CREDITS
            user.credits = str(max(0, user.credit_balance - 1))
            return user.credits

    # ------------------------------------------------------------------
    # Delivery references
    # ------------------------------------------------------------------
    def add_discord_webhook(
        self,
        user_id: str,
        url: str,
        *,
        name: str | None = None,
        channel_id: str | None = None,
        guild_name: str | None = None,
    ) -> DiscordWebhook:
        webhook = DiscordWebhook(
            user_id=user_id,
            url=url,
            name=name,
            channel_id=channel_id,
            guild_name=guild_name,
        )
        with self._session() as session:
            session.add(webhook)
        return webhook

    def get_discord_webhook_url(self, user_id: str) -> str | None:
        with self._session() as session:
            return session.scalars(
                select(DiscordWebhook.url).where(DiscordWebhook.user_id == user_id).limit(1)
            ).first()

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------
    def create_workflow(self, user_id: str, name: str, description: str = "") -> Workflow:
        workflow = Workflow(user_id=user_id, name=name, description=description)
        with self._session() as session:
            session.add(workflow)
        logger.info("Created workflow %s (%s)", workflow.name, workflow.id)
        return workflow

    def get_workflow(self, workflow_id: str) -> Workflow | None:
        with self._session() as session:
            return session.get(Workflow, workflow_id)

    def _require_workflow(self, session: Session, workflow_id: str) -> Workflow:
        workflow = session.get(Workflow, workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        return workflow

    def list_workflows(self, user_id: str) -> list[Workflow]:
        with self._session() as session:
            return list(
                session.scalars(
                    select(Workflow)
                    .where(Workflow.user_id == user_id)
                    .order_by(Workflow.created_at.desc())
                )
            )

    def list_published_workflows(self, user_id: str) -> list[Workflow]:
        """Workflows of ``user_id`` that take part in trigger fan-out."""
        with self._session() as session:
            return list(
                session.scalars(
                    select(Workflow)
                    .where(Workflow.user_id == user_id, Workflow.publish.is_(True))
                    .order_by(Workflow.created_at)
                )
            )

    def save_flow(
        self,
        workflow_id: str,
        nodes: str,
        edges: str,
        flow_path: str | None = None,
    ) -> str:
        """Persist an edited graph together with its freshly compiled flow path.

        A client-supplied ``flow_path`` that disagrees with the compiled one is
        replaced, so the stored path always matches the stored graph.

        Raises:
            GraphInvalidError: If the graph is invalid; nothing is persisted.
            WorkflowNotFoundError: If the workflow does not exist.
        """
        graph = Graph.from_json(nodes, edges)
        compiled = compile_flow_path(graph)

        if flow_path is not None:
            try:
                supplied = json.loads(flow_path)
            except json.JSONDecodeError:
                supplied = None
            if supplied != compiled:
                logger.warning(
                    "Supplied flow path for %s differs from compiled path; using %s",
                    workflow_id,
                    compiled,
                )

        with self._session() as session:
            workflow = self._require_workflow(session, workflow_id)
            workflow.nodes = graph.nodes_json()
            workflow.edges = graph.edges_json()
            workflow.flow_path = dump_flow_path(compiled)
        logger.info("Saved flow for workflow %s: %s", workflow_id, compiled)
        return "flow saved"

    def set_publish(self, workflow_id: str, state: bool) -> str:
        with self._session() as session:
            workflow = self._require_workflow(session, workflow_id)
            workflow.publish = state
        return "Workflow published" if state else "Workflow unpublished"

    def save_template(
        self,
        workflow_id: str,
        kind: ActionKind | str,
        content: str,
        *,
        channels: Sequence[str] | None = None,
        access_token: str | None = None,
        notion_db_id: str | None = None,
        delay_seconds: float | None = None,
    ) -> str:
        """Store the per-kind configuration of an action.

        Team channels are merged with the channels already stored, keeping
        first-seen order and dropping duplicates. A Wait action has no
        content; it stores ``delay_seconds``, and None restores the default
        delay.
        """
        action = kind if isinstance(kind, ActionKind) else ActionKind.parse(kind)
        if action is None:
            raise ValueError(f"Action kind has no template: {kind}")
        if action is ActionKind.WAIT and delay_seconds is not None and delay_seconds < 0:
            raise ValueError(f"Wait delay must not be negative: {delay_seconds}")

        with self._session() as session:
            workflow = self._require_workflow(session, workflow_id)
            if action is ActionKind.WAIT:
                workflow.wait_delay_seconds = delay_seconds
                return "Wait delay saved"
            if action is ActionKind.MESSAGING_WEBHOOK:
                workflow.discord_template = content
                return "Discord template saved"
            if action is ActionKind.TEAM_CHANNEL_POST:
                merged = list(dict.fromkeys([*(workflow.slack_channels or []), *(channels or [])]))
                workflow.slack_template = content
                workflow.slack_access_token = access_token
                workflow.slack_channels = merged
                return "Slack template saved"
            workflow.notion_template = content
            workflow.notion_access_token = access_token
            workflow.notion_db_id = notion_db_id or None
            return "Notion template saved"

    def set_cron_path(
        self,
        workflow_id: str,
        remainder: Sequence[str] | None,
        execution_id: str | None = None,
    ) -> str | None:
        """Persist (or clear, with None) the suspended remainder of a flow path.

        ``execution_id`` is the record the remainder will be resumed on. A
        different record that was still waiting on the replaced remainder can
        no longer be resumed, so it is finalized as Partial.

        Returns:
            The id of the superseded execution record, if any
        """
        superseded: str | None = None
        with self._session() as session:
            workflow = self._require_workflow(session, workflow_id)
            previous = workflow.cron_execution_id
            if remainder is None:
                workflow.cron_path = None
                workflow.cron_execution_id = None
                return None

            workflow.cron_path = dump_flow_path(list(remainder))
            workflow.cron_execution_id = execution_id
            if previous and previous != execution_id:
                replaced = session.get(WorkflowExecution, previous)
                if replaced is not None and replaced.status == ExecutionStatus.PENDING.value:
                    replaced.status = ExecutionStatus.PARTIAL.value
                    replaced.error = SUPERSEDED_ERROR
                    superseded = previous
        if superseded:
            logger.info("Execution %s of workflow %s superseded", superseded, workflow_id)
        return superseded

    def delete_workflow(self, workflow_id: str) -> bool:
        """Delete a workflow and its execution history."""
        with self._session() as session:
            workflow = session.get(Workflow, workflow_id)
            if workflow is None:
                return False
            session.execute(
                WorkflowExecution.__table__.delete().where(
                    WorkflowExecution.workflow_id == workflow_id
                )
            )
            session.delete(workflow)
        logger.info("Deleted workflow %s", workflow_id)
        return True

    # ------------------------------------------------------------------
    # Execution records
    # ------------------------------------------------------------------
    def create_execution(
        self,
        workflow_id: str,
        triggered_by: str,
        trigger_data: dict[str, Any] | None = None,
    ) -> str:
        execution = WorkflowExecution(
            workflow_id=workflow_id,
            status=ExecutionStatus.PENDING.value,
            triggered_by=triggered_by,
            trigger_data=dict(trigger_data or {}),
            executed_actions=[],
        )
        with self._session() as session:
            session.add(execution)
        return execution.id

    def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        with self._session() as session:
            return session.get(WorkflowExecution, execution_id)

    def finalize_execution(
        self,
        execution_id: str,
        *,
        status: ExecutionStatus | str,
        executed_actions: list[dict[str, Any]],
        error: str | None = None,
        execution_time: int = 0,
    ) -> None:
        """Write the outcome of a run segment onto its record.

        Action records and execution time are appended to what the record
        already holds, so a resumed segment extends the suspended one.

        Raises:
            ValueError: If ``status`` is not a known execution status.
        """
        status_value = ExecutionStatus(status).value
        with self._session() as session:
            execution = session.get(WorkflowExecution, execution_id)
            if execution is None:
                raise PersistenceError(f"Execution record vanished: {execution_id}")
            execution.status = status_value
            execution.executed_actions = [*(execution.executed_actions or []), *executed_actions]
            execution.error = error
            execution.execution_time = (execution.execution_time or 0) + execution_time

    def set_execution_credits(self, execution_id: str, credits_used: int) -> None:
        with self._session() as session:
            execution = session.get(WorkflowExecution, execution_id)
            if execution is not None:
                execution.credits_used = credits_used

    def query_executions(
        self,
        *,
        user_id: str | None = None,
        workflow_id: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[dict[str, Any]], int]:
        """Filter execution history, newest first.

        Returns:
            Tuple of (page of execution dictionaries, total matching count)
        """
        conditions = []
        if user_id:
            conditions.append(Workflow.user_id == user_id)
        if workflow_id:
            conditions.append(WorkflowExecution.workflow_id == workflow_id)
        if status:
            conditions.append(WorkflowExecution.status == status)

        base = (
            select(WorkflowExecution, Workflow.name, Workflow.description)
            .join(Workflow, Workflow.id == WorkflowExecution.workflow_id)
            .where(*conditions)
        )
        count_query = (
            select(func.count())
            .select_from(WorkflowExecution)
            .join(Workflow, Workflow.id == WorkflowExecution.workflow_id)
            .where(*conditions)
        )

        with self._session() as session:
            total = session.scalar(count_query) or 0
            rows = session.execute(
                base.order_by(WorkflowExecution.created_at.desc())
                .limit(max(0, limit))
                .offset(max(0, offset))
            ).all()

        executions = []
        for execution, name, description in rows:
            item = execution.to_dict()
            item["workflow"] = {"id": execution.workflow_id, "name": name, "description": description}
            executions.append(item)
        return executions, total


__all__ = ["ExecutionStatus", "WorkflowStore"]
