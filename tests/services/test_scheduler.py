"""Tests for scheduler service lifecycle and trigger support."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

import pytest
from apscheduler.events import (  # type: ignore[import-untyped]
    EVENT_JOB_ERROR,
    EVENT_JOB_MISSED,
    JobExecutionEvent,
)

from sitemap_refresher.services.scheduler import SchedulerService


async def _noop_job() -> None:
    return None


@pytest.mark.asyncio
async def test_scheduler_service_supports_interval_and_cron_jobs(
    tmp_path: Path,
) -> None:
    scheduler = SchedulerService(
        enabled=True,
        jobstore_url=f"sqlite:///{tmp_path / 'scheduler-jobs.sqlite'}",
    )

    scheduler.add_interval_job(job_id="interval-job", func=_noop_job, seconds=60)
    scheduler.add_cron_job(
        job_id="cron-job",
        func=_noop_job,
        hour="3",
        minute="0",
    )

    await scheduler.start()
    try:
        assert scheduler.running is True
        jobs = scheduler.list_jobs()
        assert {job.job_id for job in jobs} == {"interval-job", "cron-job"}
        assert any("interval" in job.trigger.lower() for job in jobs)
        cron_job = next(job for job in jobs if job.job_id == "cron-job")
        assert "cron" in cron_job.trigger.lower()
        assert cron_job.next_run_time is not None
        assert cron_job.next_run_time.hour == 3
    finally:
        await scheduler.shutdown()


@pytest.mark.asyncio
async def test_scheduler_service_rejects_operations_when_disabled(
    tmp_path: Path,
) -> None:
    scheduler = SchedulerService(
        enabled=False,
        jobstore_url=f"sqlite:///{tmp_path / 'scheduler-disabled.sqlite'}",
    )

    await scheduler.start()

    assert scheduler.running is False
    with pytest.raises(RuntimeError, match="disabled"):
        scheduler.add_interval_job(job_id="job", func=_noop_job, seconds=60)
    with pytest.raises(RuntimeError, match="disabled"):
        scheduler.list_jobs()


def test_scheduler_service_rejects_non_positive_interval(tmp_path: Path) -> None:
    scheduler = SchedulerService(
        enabled=True,
        jobstore_url=f"sqlite:///{tmp_path / 'scheduler-interval.sqlite'}",
    )

    with pytest.raises(ValueError, match="greater than zero"):
        scheduler.add_interval_job(job_id="job", func=_noop_job, seconds=0)


def test_scheduler_service_logs_missed_and_failed_runs(
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO, logger="sitemap_refresher.scheduler")
    run_time = datetime(2026, 10, 19, 3, 0, tzinfo=UTC)

    SchedulerService._handle_job_event(
        JobExecutionEvent(EVENT_JOB_MISSED, "sitemap-refresh-job", "default", run_time)
    )
    SchedulerService._handle_job_event(
        JobExecutionEvent(
            EVENT_JOB_ERROR,
            "sitemap-refresh-job",
            "default",
            run_time,
            exception=RuntimeError("boom"),
            traceback="Traceback",
        )
    )

    messages = [record.getMessage() for record in caplog.records]
    assert messages == ["scheduler_job_missed", "scheduler_job_failed"]
    assert caplog.records[1].levelno == logging.ERROR
