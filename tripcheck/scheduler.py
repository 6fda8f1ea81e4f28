import asyncio
from datetime import UTC, datetime
import logging
from pathlib import Path

from apscheduler.schedulers.blocking import BlockingScheduler

from tripcheck.config import Settings
from tripcheck.records import read_store_csv
from tripcheck.runner import VerificationRunner


logger = logging.getLogger(__name__)


def _run_daily_verification(settings: Settings, runner: VerificationRunner) -> None:
    run_date = datetime.now(UTC).date()
    run_key = f"scheduled-{run_date.isoformat()}"

    try:
        stores = read_store_csv(Path(settings.input_csv))
    except (FileNotFoundError, ValueError):
        logger.exception("scheduled run skipped, store list unreadable", extra={"input_csv": settings.input_csv})
        return

    result = asyncio.run(runner.run(stores=stores, run_key=run_key, trigger_source="scheduled"))
    extra = {
        "run_key": result.run_key,
        "status": result.status,
        "reused_existing_run": result.reused_existing_run,
        "report_path": result.report_path,
    }
    if result.status == "failed":
        logger.error("scheduled verification run failed", extra=extra)
        return
    logger.info("scheduled verification run completed", extra=extra)


def start_scheduler(settings: Settings, runner: VerificationRunner, *, run_now: bool = False) -> None:
    scheduler = BlockingScheduler(timezone="UTC")
    scheduler.add_job(
        _run_daily_verification,
        "cron",
        args=[settings, runner],
        hour=settings.schedule_hour_utc,
        minute=settings.schedule_minute_utc,
        id="daily_verification",
        replace_existing=True,
    )

    logger.info(
        "scheduler started",
        extra={
            "schedule_hour_utc": settings.schedule_hour_utc,
            "schedule_minute_utc": settings.schedule_minute_utc,
            "input_csv": settings.input_csv,
        },
    )

    if run_now:
        _run_daily_verification(settings, runner)

    scheduler.start()
