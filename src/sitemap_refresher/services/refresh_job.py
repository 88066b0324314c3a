"""Scheduled sitemap refresh job with overlap protection and a deadline."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from time import perf_counter

from sitemap_refresher.config import Settings
from sitemap_refresher.services.scheduler import SchedulerService
from sitemap_refresher.services.sitemap_refresh import (
    SitemapRefreshReport,
    SitemapRefreshService,
)

SITEMAP_REFRESH_JOB_ID = "sitemap-refresh-job"

_job_logger = logging.getLogger("sitemap_refresher.scheduler.jobs")

_refresh_job: SitemapRefreshJob | None = None


@dataclass(slots=True)
class RefreshJobMetrics:
    """In-memory runtime metrics for the refresh job."""

    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    overlap_skips: int = 0
    running: bool = False
    last_started_at: datetime | None = None
    last_finished_at: datetime | None = None
    last_duration_ms: float | None = None
    last_error: str | None = None
    last_file_count: int | None = None
    last_url_count: int | None = None


class SitemapRefreshJob:
    """Register and run the sitemap refresh on the scheduler."""

    def __init__(
        self,
        *,
        scheduler: SchedulerService,
        refresh_service: SitemapRefreshService,
        settings: Settings,
    ) -> None:
        self._scheduler = scheduler
        self._refresh_service = refresh_service
        self._settings = settings
        self._lock = asyncio.Lock()
        self._metrics = RefreshJobMetrics()

    def register(self) -> None:
        if not self._scheduler.enabled:
            return

        interval_seconds = self._settings.SITEMAP_REFRESH_INTERVAL_SECONDS
        if interval_seconds is not None:
            self._scheduler.add_interval_job(
                job_id=SITEMAP_REFRESH_JOB_ID,
                func=run_scheduled_sitemap_refresh_job,
                seconds=interval_seconds,
                name="Scheduled sitemap refresh",
            )
            return

        self._scheduler.add_cron_job(
            job_id=SITEMAP_REFRESH_JOB_ID,
            func=run_scheduled_sitemap_refresh_job,
            hour=self._settings.SITEMAP_REFRESH_CRON_HOUR,
            minute=self._settings.SITEMAP_REFRESH_CRON_MINUTE,
            name="Scheduled sitemap refresh",
        )

    def metrics_snapshot(self) -> RefreshJobMetrics:
        return replace(self._metrics)

    async def run(self) -> SitemapRefreshReport | None:
        """Run one refresh; returns ``None`` when a previous run is still active."""

        if self._lock.locked():
            self._metrics.overlap_skips += 1
            _job_logger.warning(
                "scheduler_job_overlap_skipped",
                extra={"job_id": SITEMAP_REFRESH_JOB_ID},
            )
            return None

        async with self._lock:
            metrics = self._metrics
            metrics.total_runs += 1
            metrics.running = True
            metrics.last_started_at = datetime.now(UTC)
            started_at = perf_counter()

            cancel_event = asyncio.Event()
            deadline = asyncio.get_running_loop().call_later(
                self._settings.SITEMAP_REFRESH_TIMEOUT_SECONDS,
                self._signal_deadline,
                cancel_event,
            )
            try:
                report = await self._refresh_service.refresh(cancel_event=cancel_event)
            except Exception as error:
                metrics.failed_runs += 1
                metrics.last_error = str(error)
                _job_logger.exception(
                    "sitemap_refresh_job_failed",
                    extra={
                        "job_id": SITEMAP_REFRESH_JOB_ID,
                        "error_type": type(error).__name__,
                    },
                )
                raise
            finally:
                deadline.cancel()
                metrics.running = False
                metrics.last_finished_at = datetime.now(UTC)
                metrics.last_duration_ms = round(
                    (perf_counter() - started_at) * 1000, 2
                )

            metrics.successful_runs += 1
            metrics.last_error = None
            metrics.last_file_count = report.file_count
            metrics.last_url_count = report.url_count
            _job_logger.info(
                "sitemap_refresh_job_completed",
                extra={
                    "job_id": SITEMAP_REFRESH_JOB_ID,
                    "file_count": report.file_count,
                    "url_count": report.url_count,
                },
            )
            return report

    def _signal_deadline(self, cancel_event: asyncio.Event) -> None:
        _job_logger.warning(
            "sitemap_refresh_deadline_exceeded",
            extra={
                "job_id": SITEMAP_REFRESH_JOB_ID,
                "timeout_seconds": self._settings.SITEMAP_REFRESH_TIMEOUT_SECONDS,
            },
        )
        cancel_event.set()


def set_sitemap_refresh_job(job: SitemapRefreshJob | None) -> None:
    global _refresh_job
    _refresh_job = job


def _require_refresh_job() -> SitemapRefreshJob:
    if _refresh_job is None:
        raise RuntimeError("Sitemap refresh job is not configured")
    return _refresh_job


async def run_scheduled_sitemap_refresh_job() -> None:
    await _require_refresh_job().run()


__all__ = [
    "RefreshJobMetrics",
    "SITEMAP_REFRESH_JOB_ID",
    "SitemapRefreshJob",
    "run_scheduled_sitemap_refresh_job",
    "set_sitemap_refresh_job",
]
