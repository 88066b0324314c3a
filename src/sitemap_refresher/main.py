"""Command line entry point for the sitemap refresher."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from collections.abc import Sequence

from sqlalchemy.exc import SQLAlchemyError

from sitemap_refresher import __version__
from sitemap_refresher.config import Settings, get_settings
from sitemap_refresher.database import check_database_connection, close_database
from sitemap_refresher.services.object_store import S3ObjectStore
from sitemap_refresher.services.refresh_job import (
    SitemapRefreshJob,
    set_sitemap_refresh_job,
)
from sitemap_refresher.services.scheduler import SchedulerService
from sitemap_refresher.services.sitemap_errors import (
    SitemapGenerationError,
    SitemapProtocolError,
)
from sitemap_refresher.services.sitemap_refresh import SitemapRefreshService
from sitemap_refresher.utils.logging import setup_logging

__all__ = ["main"]

_lifecycle_logger = logging.getLogger("sitemap_refresher.lifecycle")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitemap-refresher",
        description="Regenerate and publish the sitemap feed.",
    )
    parser.add_argument("--version", action="version", version=__version__)
    subcommands = parser.add_subparsers(dest="command", required=True)
    subcommands.add_parser("run", help="Regenerate every sitemap file once.")
    subcommands.add_parser("serve", help="Run the refresh on its schedule.")
    return parser


def _build_job(settings: Settings, scheduler: SchedulerService) -> SitemapRefreshJob:
    refresh_service = SitemapRefreshService(
        settings=settings,
        object_store=S3ObjectStore.from_settings(settings),
    )
    return SitemapRefreshJob(
        scheduler=scheduler,
        refresh_service=refresh_service,
        settings=settings,
    )


async def _database_reachable() -> bool:
    try:
        await check_database_connection()
    except (SQLAlchemyError, OSError):
        _lifecycle_logger.exception("database_connection_failed")
        return False
    return True


async def _run_once(settings: Settings) -> int:
    scheduler = SchedulerService(
        enabled=False, jobstore_url=settings.SCHEDULER_JOBSTORE_URL
    )
    job = _build_job(settings, scheduler)
    try:
        if not await _database_reachable():
            return 1
        report = await job.run()
    except (SitemapGenerationError, SitemapProtocolError):
        return 1
    finally:
        await close_database()

    if report is None:
        return 1
    sys.stdout.write(json.dumps(report.as_dict(), indent=2) + "\n")
    return 0


def _request_shutdown(stop_event: asyncio.Event, received: signal.Signals) -> None:
    if stop_event.is_set():
        return
    _lifecycle_logger.warning(
        "shutdown_signal_received", extra={"signal": received.name}
    )
    stop_event.set()


async def _serve(settings: Settings) -> int:
    scheduler = SchedulerService.from_settings(settings)
    if not scheduler.enabled:
        _lifecycle_logger.error("scheduler_disabled_nothing_to_serve")
        return 1
    if not await _database_reachable():
        await close_database()
        return 1

    job = _build_job(settings, scheduler)
    set_sitemap_refresh_job(job)
    job.register()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for handled_signal in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            handled_signal, _request_shutdown, stop_event, handled_signal
        )

    await scheduler.start()
    for job_state in scheduler.list_jobs():
        _lifecycle_logger.info(
            "scheduler_job_registered",
            extra={
                "job_id": job_state.job_id,
                "trigger": job_state.trigger,
                "next_run_time": job_state.next_run_time,
            },
        )

    try:
        await stop_event.wait()
    finally:
        await scheduler.shutdown()
        set_sitemap_refresh_job(None)
        metrics = job.metrics_snapshot()
        _lifecycle_logger.info(
            "shutdown_summary",
            extra={
                "total_runs": metrics.total_runs,
                "successful_runs": metrics.successful_runs,
                "failed_runs": metrics.failed_runs,
                "overlap_skips": metrics.overlap_skips,
            },
        )
        await close_database()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings)

    if args.command == "run":
        return asyncio.run(_run_once(settings))
    return asyncio.run(_serve(settings))


if __name__ == "__main__":
    raise SystemExit(main())
