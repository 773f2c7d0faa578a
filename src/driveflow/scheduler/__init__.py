"""Schedulers that resume workflows suspended at a Wait step."""

from __future__ import annotations

from ..core.config import DriveflowConfig
from .base import BaseResumeScheduler, job_id_for
from .cron_job import CronJobResumeScheduler, build_schedule
from .local import LocalResumeScheduler, fire_resume_callback


def create_resume_scheduler(config: DriveflowConfig) -> BaseResumeScheduler:
    """Build the resume scheduler selected by ``config.scheduler.backend``."""
    settings = config.scheduler
    callback_url = config.resume_callback_url()
    if settings.backend == "cron_job":
        return CronJobResumeScheduler(
            callback_url,
            settings.cron_job_api_key or "",
            api_url=settings.cron_job_api_url,
            timezone_name=settings.timezone,
            retry=config.delivery.retry,
            timeout=config.delivery.timeout,
        )
    return LocalResumeScheduler(
        callback_url,
        timezone_name=settings.timezone,
        job_store_url=settings.job_store_url,
    )


__all__ = [
    "BaseResumeScheduler",
    "CronJobResumeScheduler",
    "LocalResumeScheduler",
    "build_schedule",
    "create_resume_scheduler",
    "fire_resume_callback",
    "job_id_for",
]
