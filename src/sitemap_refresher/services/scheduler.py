"""APScheduler integration for the recurring sitemap refresh."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import cast

from apscheduler.events import EVENT_JOB_ERROR  # type: ignore[import-untyped]
from apscheduler.events import EVENT_JOB_EXECUTED
from apscheduler.events import EVENT_JOB_MISSED
from apscheduler.events import EVENT_JOB_SUBMITTED
from apscheduler.events import JobExecutionEvent
from apscheduler.events import JobSubmissionEvent
from apscheduler.events import SchedulerEvent
from apscheduler.job import Job  # type: ignore[import-untyped]
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore  # type: ignore[import-untyped]
from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore[import-untyped]

from sitemap_refresher.config import Settings

JobCallable = Callable[[], Awaitable[None] | None]

_scheduler_logger = logging.getLogger("sitemap_refresher.scheduler")


@dataclass(slots=True, frozen=True)
class SchedulerJobState:
    """Snapshot of one registered job."""

    job_id: str
    name: str | None
    trigger: str
    next_run_time: datetime | None


class SchedulerService:
    """Own the scheduler lifecycle, job registration, and event logging."""

    def __init__(
        self,
        *,
        enabled: bool,
        jobstore_url: str,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._enabled = enabled
        self._scheduler = scheduler or AsyncIOScheduler(
            jobstores={"default": SQLAlchemyJobStore(url=jobstore_url)},
            job_defaults={"coalesce": True, "max_instances": 1},
        )
        self._scheduler.add_listener(
            self._handle_job_event,
            EVENT_JOB_SUBMITTED | EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MISSED,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> SchedulerService:
        return cls(
            enabled=settings.SCHEDULER_ENABLED,
            jobstore_url=settings.SCHEDULER_JOBSTORE_URL,
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def running(self) -> bool:
        if not self._enabled:
            return False
        return cast(bool, self._scheduler.running)

    async def start(self) -> None:
        if not self._enabled:
            _scheduler_logger.info("scheduler_disabled")
            return

        if self._scheduler.running:
            return

        self._scheduler.start()
        _scheduler_logger.info("scheduler_started")

    async def shutdown(self) -> None:
        if not self._enabled or not self._scheduler.running:
            return

        self._scheduler.shutdown(wait=False)
        _scheduler_logger.info("scheduler_shutdown")

    def add_interval_job(
        self,
        *,
        job_id: str,
        func: JobCallable,
        seconds: int,
        name: str | None = None,
        replace_existing: bool = True,
    ) -> Job:
        self._ensure_enabled()
        if seconds <= 0:
            raise ValueError("Interval seconds must be greater than zero")

        return self._scheduler.add_job(
            func=func,
            trigger="interval",
            seconds=seconds,
            id=job_id,
            name=name,
            replace_existing=replace_existing,
        )

    def add_cron_job(
        self,
        *,
        job_id: str,
        func: JobCallable,
        minute: str = "0",
        hour: str = "*",
        day_of_week: str = "*",
        name: str | None = None,
        replace_existing: bool = True,
    ) -> Job:
        self._ensure_enabled()

        return self._scheduler.add_job(
            func=func,
            trigger="cron",
            minute=minute,
            hour=hour,
            day_of_week=day_of_week,
            timezone="UTC",
            id=job_id,
            name=name,
            replace_existing=replace_existing,
        )

    def list_jobs(self) -> list[SchedulerJobState]:
        self._ensure_enabled()
        return [
            SchedulerJobState(
                job_id=job.id,
                name=job.name,
                trigger=str(job.trigger),
                next_run_time=getattr(job, "next_run_time", None),
            )
            for job in self._scheduler.get_jobs()
        ]

    def _ensure_enabled(self) -> None:
        if self._enabled:
            return
        raise RuntimeError("Scheduler is disabled")

    @staticmethod
    def _handle_job_event(event: SchedulerEvent) -> None:
        if isinstance(event, JobSubmissionEvent):
            _scheduler_logger.info(
                "scheduler_job_started",
                extra={
                    "job_id": event.job_id,
                    "scheduled_run_times": [
                        run_time.isoformat() for run_time in event.scheduled_run_times
                    ],
                },
            )
            return

        if not isinstance(event, JobExecutionEvent):
            return

        if event.code == EVENT_JOB_MISSED:
            _scheduler_logger.warning(
                "scheduler_job_missed",
                extra={
                    "job_id": event.job_id,
                    "scheduled_run_time": event.scheduled_run_time.isoformat(),
                },
            )
            return

        if event.exception is None:
            _scheduler_logger.info(
                "scheduler_job_succeeded",
                extra={"job_id": event.job_id},
            )
            return

        _scheduler_logger.error(
            "scheduler_job_failed",
            extra={
                "job_id": event.job_id,
                "exception": str(event.exception),
                "traceback": event.traceback,
            },
        )


__all__ = ["JobCallable", "SchedulerJobState", "SchedulerService"]
