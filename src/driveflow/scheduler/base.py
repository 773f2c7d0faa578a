"""Interface of the scheduler that resumes workflows suspended at a Wait step."""

from __future__ import annotations

from abc import ABC, abstractmethod


def job_id_for(workflow_id: str) -> str:
    """Scheduler job id used for a workflow's pending resumption."""
    return f"resume-{workflow_id}"


class BaseResumeScheduler(ABC):
    """Registers future callbacks that carry a workflow id as correlation token.

    ``register`` must raise ``SchedulerRegistrationError`` when the callback
    could not be registered; ``cancel`` is best effort and never raises for
    unknown workflows.
    """

    def __init__(self, callback_url: str) -> None:
        self.callback_url = callback_url

    def callback_for(self, workflow_id: str) -> str:
        separator = "&" if "?" in self.callback_url else "?"
        return f"{self.callback_url}{separator}flow_id={workflow_id}"

    @abstractmethod
    async def register(self, workflow_id: str, delay_seconds: float) -> str:
        """Schedule a resume callback for ``workflow_id``.

        Args:
            workflow_id: Workflow to resume
            delay_seconds: Delay before the callback fires

        Returns:
            Identifier of the registered job
        """

    @abstractmethod
    async def cancel(self, workflow_id: str) -> None:
        """Remove the pending callback of ``workflow_id`` if there is one."""

    def start(self) -> None:
        """Start background machinery, if any."""

    async def shutdown(self) -> None:
        """Release resources."""


__all__ = ["BaseResumeScheduler", "job_id_for"]
