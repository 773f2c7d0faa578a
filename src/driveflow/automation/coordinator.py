"""Execution coordinator: runs one workflow's flow path for one trigger.

A run walks an immutable copy of the flow path with a cursor, executing each
action kind at most once. Per-action failures are recorded and the run moves
on. A successful Wait step persists the remaining kinds as the workflow's
cron path and suspends the run; the resume scheduler later calls ``resume``,
which executes that remainder and extends the same execution record.

Run states::

    Running -> Completed | CompletedWithFailures | Suspended
    Running -> Failed        (data store failure or unreadable flow path)
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..core.exceptions import PersistenceError, WorkflowNotFoundError
from ..core.logger import get_logger
from ..storage.models import ExecutionStatus
from .actions import ActionContext, ActionDispatcher, ActionRecord, ActionStatus
from .compiler import compile_serialized
from .kinds import ActionKind

if TYPE_CHECKING:
    from ..scheduler import BaseResumeScheduler
    from ..storage.models import Workflow
    from ..storage.repository import WorkflowStore

logger = get_logger("automation.coordinator")


class RunStatus(str, Enum):
    """Lifecycle states of a workflow run."""

    RUNNING = "Running"
    COMPLETED = "Completed"
    COMPLETED_WITH_FAILURES = "CompletedWithFailures"
    SUSPENDED = "Suspended"
    FAILED = "Failed"


_RECORD_STATUS = {
    RunStatus.COMPLETED: ExecutionStatus.SUCCESS,
    RunStatus.COMPLETED_WITH_FAILURES: ExecutionStatus.PARTIAL,
    RunStatus.SUSPENDED: ExecutionStatus.PENDING,
    RunStatus.FAILED: ExecutionStatus.FAILED,
}


@dataclass
class RunOutcome:
    """Result of one run segment."""

    workflow_id: str
    status: RunStatus
    execution_id: str | None = None
    records: list[ActionRecord] = field(default_factory=list)
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        """True unless the run hit an unrecoverable error."""
        return self.status is not RunStatus.FAILED

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflowId": self.workflow_id,
            "executionId": self.execution_id,
            "status": self.status.value,
            "actions": [r.to_dict() for r in self.records],
            "error": self.error,
        }


def parse_flow_path(raw: str) -> list[str]:
    """Decode a stored flow path or cron path.

    Raises:
        ValueError: If ``raw`` is not a JSON array of strings.
    """
    path = json.loads(raw)
    if not isinstance(path, list) or not all(isinstance(item, str) for item in path):
        raise ValueError("Stored flow path is not a list of action kinds")
    return path


class ExecutionCoordinator:
    """Executes flow paths and keeps their execution records."""

    def __init__(
        self,
        store: WorkflowStore,
        dispatcher: ActionDispatcher,
        *,
        scheduler: BaseResumeScheduler | None = None,
        default_wait_seconds: float = 60.0,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.scheduler = scheduler
        self.default_wait_seconds = default_wait_seconds

    def resolve_flow_path(self, workflow: Workflow) -> list[str]:
        """Flow path to execute for ``workflow``.

        The path is compiled from the stored graph so a run never uses a path
        older than the graph. The stored flow path is only used for workflows
        that have no graph.
        """
        if workflow.nodes:
            return compile_serialized(workflow.nodes, workflow.edges)
        if workflow.flow_path:
            return parse_flow_path(workflow.flow_path)
        return []

    async def run(
        self,
        workflow: Workflow,
        *,
        triggered_by: str = "google_drive",
        trigger_data: dict[str, Any] | None = None,
    ) -> RunOutcome:
        """Execute ``workflow`` for one trigger event.

        Never raises for failures inside the run; they are reported through
        the returned outcome and the execution record.
        """
        start = time.monotonic()
        logger.info("Running workflow %s (%s)", workflow.name, workflow.id)
        try:
            execution_id = await asyncio.to_thread(
                self.store.create_execution, workflow.id, triggered_by, trigger_data
            )
        except PersistenceError as exc:
            logger.error("Could not open execution record for %s: %s", workflow.id, exc)
            return RunOutcome(workflow.id, RunStatus.FAILED, error=str(exc))

        try:
            path = self.resolve_flow_path(workflow)
        except Exception as exc:
            return await self._fail(workflow.id, execution_id, exc, start)
        return await self._run_segment(workflow, path, execution_id, start)

    async def resume(self, workflow_id: str) -> RunOutcome | None:
        """Continue a workflow suspended at a Wait step.

        Returns:
            The outcome of the resumed segment, or None when the workflow has
            nothing pending

        Raises:
            WorkflowNotFoundError: If the workflow does not exist.
        """
        start = time.monotonic()
        workflow = await asyncio.to_thread(self.store.get_workflow, workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)

        await self._cancel_callback(workflow_id)

        if workflow.cron_path is None:
            logger.info("Workflow %s has no pending steps", workflow_id)
            return None

        pending = None
        if workflow.cron_execution_id:
            pending = await asyncio.to_thread(self.store.get_execution, workflow.cron_execution_id)
        if pending is not None and pending.status == ExecutionStatus.PENDING.value:
            execution_id = pending.id
        else:
            execution_id = await asyncio.to_thread(
                self.store.create_execution,
                workflow_id,
                "scheduler",
                {"resumed": True},
            )
        logger.info("Resuming workflow %s on execution %s", workflow_id, execution_id)

        try:
            remainder = parse_flow_path(workflow.cron_path)
        except ValueError as exc:
            outcome = await self._fail(workflow_id, execution_id, exc, start)
        else:
            outcome = await self._run_segment(workflow, remainder, execution_id, start)

        if outcome.status is not RunStatus.SUSPENDED:
            try:
                await asyncio.to_thread(self.store.set_cron_path, workflow_id, None)
            except PersistenceError as exc:
                logger.error("Could not clear cron path of %s: %s", workflow_id, exc)
        return outcome

    async def _cancel_callback(self, workflow_id: str) -> None:
        if self.scheduler is None:
            return
        try:
            await self.scheduler.cancel(workflow_id)
        except Exception as exc:
            logger.warning("Could not cancel resume job of %s: %s", workflow_id, exc)

    async def _run_segment(
        self,
        workflow: Workflow,
        path: Sequence[str],
        execution_id: str,
        start: float,
    ) -> RunOutcome:
        try:
            status, records = await self._walk(workflow, tuple(path), execution_id)
        except Exception as exc:
            return await self._fail(workflow.id, execution_id, exc, start)

        problems = [f"{r.action}: {r.reason}" for r in records if not r.ok and r.reason]
        error = "; ".join(problems) or None
        try:
            await asyncio.to_thread(
                self.store.finalize_execution,
                execution_id,
                status=_RECORD_STATUS[status],
                executed_actions=[r.to_dict() for r in records],
                error=error,
                execution_time=self._elapsed_ms(start),
            )
        except PersistenceError as exc:
            logger.error("Could not record outcome of %s: %s", workflow.id, exc)
            return RunOutcome(workflow.id, RunStatus.FAILED, execution_id, records, str(exc))

        logger.info("Workflow %s finished: %s", workflow.id, status.value)
        return RunOutcome(workflow.id, status, execution_id, records, error)

    async def _walk(
        self, workflow: Workflow, sequence: tuple[str, ...], execution_id: str
    ) -> tuple[RunStatus, list[ActionRecord]]:
        context = ActionContext(
            workflow=workflow,
            store=self.store,
            default_wait_seconds=self.default_wait_seconds,
        )
        executed: set[ActionKind] = set()
        records: list[ActionRecord] = []
        cursor = 0

        while cursor < len(sequence):
            label = sequence[cursor]
            cursor += 1

            kind = ActionKind.parse(label)
            if kind is None:
                records.append(
                    ActionRecord(label, ActionStatus.SKIPPED, f"Unknown action kind: {label}")
                )
                continue
            if kind in executed:
                logger.debug("Skipping %s (already executed in this run)", kind.value)
                continue

            executed.add(kind)
            record = await self.dispatcher.dispatch(kind, context)
            records.append(record)

            if kind is ActionKind.WAIT:
                if not record.ok:
                    # Wait stays in the path; the next trigger runs it again
                    return RunStatus.COMPLETED_WITH_FAILURES, records
                remainder = [
                    item for item in sequence[cursor:] if ActionKind.parse(item) not in executed
                ]
                await asyncio.to_thread(
                    self.store.set_cron_path, workflow.id, remainder, execution_id
                )
                logger.info("Workflow %s suspended; remaining: %s", workflow.id, remainder)
                return RunStatus.SUSPENDED, records

        if all(r.ok for r in records):
            return RunStatus.COMPLETED, records
        return RunStatus.COMPLETED_WITH_FAILURES, records

    async def _fail(
        self,
        workflow_id: str,
        execution_id: str,
        exc: Exception,
        start: float,
    ) -> RunOutcome:
        logger.error("Workflow %s failed: %s", workflow_id, exc, exc_info=True)
        try:
            await asyncio.to_thread(
                self.store.finalize_execution,
                execution_id,
                status=ExecutionStatus.FAILED,
                executed_actions=[],
                error=str(exc),
                execution_time=self._elapsed_ms(start),
            )
        except PersistenceError as store_exc:
            logger.error("Could not record failure of %s: %s", workflow_id, store_exc)
        return RunOutcome(workflow_id, RunStatus.FAILED, execution_id, error=str(exc))

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)


__all__ = ["ExecutionCoordinator", "RunOutcome", "RunStatus", "parse_flow_path"]
