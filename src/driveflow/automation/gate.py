"""Event gate: the single entry point for file change notifications.

A notification passes, in order, through message deduplication, subject
resolution, the per-user cooldown and the entitlement check. Only then are
the user's published workflows run concurrently. One credit is charged per
accepted notification, not per workflow.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..core.cache import CooldownTracker, RecentTokenSet
from ..core.exceptions import (
    EntitlementExhaustedError,
    RateLimitedError,
    SubjectNotFoundError,
    WorkflowNotFoundError,
)
from ..core.logger import get_logger
from .coordinator import ExecutionCoordinator, RunOutcome

if TYPE_CHECKING:
    from ..storage.models import User
    from ..storage.repository import WorkflowStore

logger = get_logger("automation.gate")

TRIGGER_SOURCE = "google_drive"


@dataclass
class GateResponse:
    """HTTP-shaped answer of the gate."""

    status_code: int
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def message(self) -> str:
        return str(self.body.get("message", ""))


class EventGate:
    """Admits notifications and fans them out to published workflows."""

    def __init__(
        self,
        store: WorkflowStore,
        coordinator: ExecutionCoordinator,
        dedup: RecentTokenSet,
        cooldown: CooldownTracker,
    ) -> None:
        self.store = store
        self.coordinator = coordinator
        self.dedup = dedup
        self.cooldown = cooldown

    async def handle_notification(
        self,
        resource_id: str | None,
        message_number: str | None,
    ) -> GateResponse:
        """Process one inbound notification.

        Args:
            resource_id: Listener resource identifier, maps to the user
            message_number: Sequence token used for deduplication

        Returns:
            Status code and JSON body for the caller
        """
        try:
            return await self._handle(resource_id, message_number)
        except Exception as exc:
            logger.error("Notification handler error: %s", exc, exc_info=True)
            return GateResponse(500, {"message": "Internal server error", "error": str(exc)})

    async def _handle(self, resource_id: str | None, message_number: str | None) -> GateResponse:
        if message_number and not self.dedup.add(message_number):
            logger.info("Duplicate notification %s ignored", message_number)
            return GateResponse(200, {"message": "Duplicate notification ignored"})

        if not resource_id:
            return GateResponse(400, {"message": "Missing resource ID"})

        try:
            user = await self._admit(resource_id)
        except SubjectNotFoundError:
            logger.warning("No user for resource %s", resource_id)
            return GateResponse(404, {"message": "User not found"})
        except RateLimitedError as exc:
            logger.info("User %s is cooling down (%.1fs left)", exc.user_id, exc.retry_after)
            return GateResponse(
                429, {"message": "Too many requests", "retryAfter": round(exc.retry_after, 1)}
            )
        except EntitlementExhaustedError as exc:
            logger.info("User %s has no credits left", exc.user_id)
            return GateResponse(403, {"message": "Insufficient credits"})

        workflows = await asyncio.to_thread(self.store.list_published_workflows, user.clerk_id)
        if not workflows:
            return GateResponse(200, {"message": "No published workflows to execute"})

        logger.info("Fanning out to %d workflow(s) of %s", len(workflows), user.clerk_id)
        trigger_data = {"resourceId": resource_id, "messageNumber": message_number}
        results = await asyncio.gather(
            *(
                self.coordinator.run(
                    workflow, triggered_by=TRIGGER_SOURCE, trigger_data=trigger_data
                )
                for workflow in workflows
            ),
            return_exceptions=True,
        )

        outcomes: list[RunOutcome] = []
        for workflow, result in zip(workflows, results):
            if isinstance(result, BaseException):
                logger.error("Workflow %s raised: %s", workflow.id, result, exc_info=result)
            else:
                outcomes.append(result)

        await self._charge(user, outcomes)

        succeeded = sum(1 for outcome in outcomes if outcome.succeeded)
        logger.info("Workflows complete: %d succeeded, %d failed", succeeded, len(results) - succeeded)
        return GateResponse(
            200,
            {
                "message": "Workflows executed",
                "executed": len(results),
                "succeeded": succeeded,
                "failed": len(results) - succeeded,
            },
        )

    async def _admit(self, resource_id: str) -> User:
        """Resolve the user behind ``resource_id`` and apply cooldown and credits.

        Raises:
            SubjectNotFoundError: No user owns the resource.
            RateLimitedError: The user triggered inside the cooldown window.
            EntitlementExhaustedError: The user has no credits.
        """
        user = await asyncio.to_thread(self.store.find_user_by_resource_id, resource_id)
        if user is None:
            raise SubjectNotFoundError(resource_id)

        retry_after = self.cooldown.try_acquire(user.clerk_id)
        if retry_after > 0:
            raise RateLimitedError(user.clerk_id, retry_after)

        if not user.has_credits:
            raise EntitlementExhaustedError(user.clerk_id)
        return user

    async def _charge(self, user: User, outcomes: list[RunOutcome]) -> None:
        if user.has_unlimited_credits:
            return
        try:
            remaining = await asyncio.to_thread(self.store.decrement_credits, user.clerk_id)
            logger.info("Credit deducted from %s, %s left", user.clerk_id, remaining)
            first = next((o.execution_id for o in outcomes if o.execution_id), None)
            if first is not None:
                await asyncio.to_thread(self.store.set_execution_credits, first, 1)
        except Exception as exc:
            logger.error("Credit deduction error for %s: %s", user.clerk_id, exc)

    async def resume(self, flow_id: str | None) -> GateResponse:
        """Handle a resume callback from the scheduler.

        Resumption bypasses deduplication, cooldown and credits.
        """
        if not flow_id:
            return GateResponse(400, {"message": "Missing flow_id"})
        try:
            outcome = await self.coordinator.resume(flow_id)
        except WorkflowNotFoundError:
            return GateResponse(404, {"message": "Workflow not found"})
        except Exception as exc:
            logger.error("Resume of %s failed: %s", flow_id, exc, exc_info=True)
            return GateResponse(500, {"message": "Internal server error", "error": str(exc)})

        if outcome is None:
            return GateResponse(200, {"message": "No pending steps to resume"})
        return GateResponse(200, {"message": "Workflow resumed", **outcome.to_dict()})


__all__ = ["EventGate", "GateResponse", "TRIGGER_SOURCE"]
