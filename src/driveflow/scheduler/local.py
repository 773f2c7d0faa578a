"""In-process resume scheduler built on APScheduler.

Each Wait step becomes a one-shot date job that calls the resume endpoint
with the workflow id. With a SQLAlchemy job store the pending jobs survive a
process restart; jobs that were missed while the process was down run as
soon as it comes back.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from ..core.exceptions import SchedulerRegistrationError
from ..core.logger import get_logger
from .base import BaseResumeScheduler, job_id_for

logger = get_logger("scheduler.local")


def fire_resume_callback(url: str, timeout: float = 10.0) -> int:
    """Call a resume URL. Runs on the scheduler's worker thread.

    Module level so persistent job stores can reference it by name.

    Returns:
        HTTP status code of the callback
    """
    response = httpx.post(url, timeout=timeout)
    response.raise_for_status()
    logger.info("Resume callback %s answered %s", url, response.status_code)
    return response.status_code


class LocalResumeScheduler(BaseResumeScheduler):
    """Resume scheduler running APScheduler's ``BackgroundScheduler``."""

    def __init__(
        self,
        callback_url: str,
        *,
        timezone_name: str = "UTC",
        job_store_url: str | None = None,
        max_workers: int = 4,
    ) -> None:
        """Initialize the scheduler.

        Args:
            callback_url: Resume endpoint; ``flow_id`` is appended per job
            timezone_name: Scheduler timezone
            job_store_url: SQLAlchemy URL for a persistent job store
            max_workers: Worker threads firing callbacks
        """
        super().__init__(callback_url)
        jobstores: dict[str, Any] = {}
        if job_store_url:
            jobstores["default"] = SQLAlchemyJobStore(url=job_store_url)
            logger.info("Using persistent resume job store: %s", job_store_url)
        else:
            jobstores["default"] = MemoryJobStore()
            logger.info("Using in-memory resume job store")

        self._scheduler = BackgroundScheduler(
            jobstores=jobstores,
            executors={"default": ThreadPoolExecutor(max_workers=max_workers)},
            job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": None},
            timezone=timezone_name,
        )
        self._scheduler.add_listener(self._job_executed, EVENT_JOB_EXECUTED)
        self._scheduler.add_listener(self._job_error, EVENT_JOB_ERROR)

    def _job_executed(self, event: JobExecutionEvent) -> None:
        logger.info("Resume job %s fired", event.job_id)

    def _job_error(self, event: JobExecutionEvent) -> None:
        logger.error(
            "Resume job %s failed: %s",
            event.job_id,
            event.exception,
            exc_info=event.exception,
        )

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Resume scheduler started")

    async def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Resume scheduler stopped")

    def get_job(self, workflow_id: str) -> Any:
        return self._scheduler.get_job(job_id_for(workflow_id))

    def _add_job(self, workflow_id: str, delay_seconds: float) -> str:
        run_date = datetime.now(timezone.utc) + timedelta(seconds=delay_seconds)
        job = self._scheduler.add_job(
            fire_resume_callback,
            DateTrigger(run_date=run_date),
            args=[self.callback_for(workflow_id)],
            id=job_id_for(workflow_id),
            name=f"resume workflow {workflow_id}",
            replace_existing=True,
        )
        logger.info("Scheduled resume of %s at %s", workflow_id, run_date.isoformat())
        return job.id

    async def register(self, workflow_id: str, delay_seconds: float) -> str:
        try:
            return await asyncio.to_thread(self._add_job, workflow_id, delay_seconds)
        except Exception as exc:
            raise SchedulerRegistrationError(
                f"Could not schedule resume: {exc}", workflow_id=workflow_id
            ) from exc

    def _remove_job(self, workflow_id: str) -> None:
        try:
            self._scheduler.remove_job(job_id_for(workflow_id))
            logger.info("Cancelled resume job of %s", workflow_id)
        except JobLookupError:
            logger.debug("No resume job pending for %s", workflow_id)

    async def cancel(self, workflow_id: str) -> None:
        await asyncio.to_thread(self._remove_job, workflow_id)


__all__ = ["LocalResumeScheduler", "fire_resume_callback"]
