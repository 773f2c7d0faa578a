"""Resume scheduler backed by the cron-job.org REST API.

The external service keeps the callback alive across restarts of this
process. A job is scheduled for the minute the Wait step elapses and expires
shortly after, so it fires once.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo

import httpx

from ..core.config import RetryPolicyConfig
from ..core.exceptions import DeliveryError, SchedulerRegistrationError
from ..core.logger import get_logger
from ..delivery.http import AsyncHTTPDeliveryMixin
from .base import BaseResumeScheduler

logger = get_logger("scheduler.cron_job")


def build_schedule(run_at: datetime, timezone_name: str) -> dict[str, Any]:
    """Schedule block firing at ``run_at`` (already in ``timezone_name``)."""
    expires = run_at + timedelta(minutes=1)
    return {
        "timezone": timezone_name,
        "expiresAt": int(expires.strftime("%Y%m%d%H%M%S")),
        "hours": [run_at.hour],
        "mdays": [run_at.day],
        "minutes": [run_at.minute],
        "months": [run_at.month],
        "wdays": [-1],
    }


def _require_job_id(result: dict[str, Any]) -> None:
    if "jobId" not in result:
        raise ValueError("cron-job.org response carries no jobId")


class CronJobResumeScheduler(AsyncHTTPDeliveryMixin, BaseResumeScheduler):
    """Registers resume callbacks as cron-job.org jobs."""

    def __init__(
        self,
        callback_url: str,
        api_key: str,
        *,
        api_url: str = "https://api.cron-job.org",
        timezone_name: str = "Europe/Istanbul",
        retry: RetryPolicyConfig | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        super().__init__(callback_url)
        self._api_url = api_url.rstrip("/")
        self._timezone_name = timezone_name
        self._retry = retry
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._job_ids: dict[str, int] = {}

    def pending_job(self, workflow_id: str) -> int | None:
        return self._job_ids.get(workflow_id)

    async def register(self, workflow_id: str, delay_seconds: float) -> str:
        run_at = datetime.now(ZoneInfo(self._timezone_name)) + timedelta(seconds=delay_seconds)
        payload = {
            "job": {
                "url": self.callback_for(workflow_id),
                "enabled": True,
                "saveResponses": False,
                "requestMethod": 1,  # POST
                "schedule": build_schedule(run_at, self._timezone_name),
            }
        }
        try:
            result = await self._request_with_retry(
                client=self._client,
                url=f"{self._api_url}/jobs",
                payload=payload,
                retry_policy=self._retry,
                channel="cron-job",
                response_validator=_require_job_id,
                method="PUT",
                headers=self._headers,
            )
        except DeliveryError as exc:
            raise SchedulerRegistrationError(str(exc), workflow_id=workflow_id) from exc

        job_id = int(result["jobId"])
        self._job_ids[workflow_id] = job_id
        logger.info("Registered cron job %s to resume %s at %s", job_id, workflow_id, run_at)
        return str(job_id)

    async def cancel(self, workflow_id: str) -> None:
        job_id = self._job_ids.pop(workflow_id, None)
        if job_id is None:
            logger.debug("No cron job known for %s", workflow_id)
            return
        try:
            response = await self._client.delete(
                f"{self._api_url}/jobs/{job_id}", headers=self._headers
            )
            response.raise_for_status()
            logger.info("Deleted cron job %s of %s", job_id, workflow_id)
        except httpx.HTTPError as exc:
            # The job expires on its own; a failed delete only leaves a no-op callback
            logger.warning("Could not delete cron job %s: %s", job_id, exc)

    async def shutdown(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["CronJobResumeScheduler", "build_schedule"]
