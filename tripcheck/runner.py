import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
import logging
from pathlib import Path
from uuid import uuid4

from sqlalchemy.orm import Session, sessionmaker

from tripcheck.batch import BatchScheduler
from tripcheck.config import Settings
from tripcheck.database import build_session_factory
from tripcheck.db_models import VerificationRun
from tripcheck.navigation import BrowserDriver, PlaywrightDriver
from tripcheck.records import write_report
from tripcheck.retry import run_with_retries
from tripcheck.run_store import (
    create_or_get_run,
    load_check_results,
    mark_run_failed,
    mark_run_running,
    mark_run_succeeded,
    reset_failed_run_state,
    store_check_results,
    summary_from_run,
)
from tripcheck.schemas import RunResult, RunSummary, StoreSpec, TestResult
from tripcheck.session_store import SessionStore


logger = logging.getLogger(__name__)


class VerificationRunner:
    def __init__(self, settings: Settings, session_factory: sessionmaker[Session], scheduler: BatchScheduler) -> None:
        self.settings = settings
        self.session_factory = session_factory
        self.scheduler = scheduler

    async def run(
        self,
        *,
        stores: list[StoreSpec],
        run_key: str,
        trigger_source: str = "manual",
        batch_size: int | None = None,
        on_result: Callable[[TestResult], None] | None = None,
    ) -> RunResult:
        with self.session_factory() as db:
            run, created = create_or_get_run(db, run_key=run_key, trigger_source=trigger_source)
            if not created:
                if run.status == "failed":
                    # Same run key, fresh attempt.
                    logger.info("retrying previously failed run", extra={"run_key": run_key})
                    reset_failed_run_state(db, run)
                else:
                    logger.info("idempotent run reused", extra={"run_key": run_key, "status": run.status})
                    results = load_check_results(db, run)
                    if on_result is not None:
                        for result in results:
                            on_result(result)
                    return self._result_from_run(run, results, reused_existing_run=True)

            mark_run_running(db, run, total_stores=len(stores))

            produced: list[TestResult] = []

            def collect(result: TestResult) -> None:
                produced.append(result)
                if on_result is not None:
                    on_result(result)

            report_path = self.report_path(run_key)
            results: list[TestResult] = []
            try:
                results = await self.scheduler.run(stores, batch_size=batch_size, on_result=collect)
                # Retry backoff sleeps, so keep it off the event loop.
                await asyncio.to_thread(
                    run_with_retries,
                    lambda: write_report(report_path, results),
                    description="report write",
                    max_retries=self.settings.max_report_retries,
                    backoff_seconds=self.settings.retry_backoff_seconds,
                    should_retry=lambda exc: not isinstance(exc, PermissionError),
                )
                store_check_results(db, run_id=run.id, results=results)
                summary = RunSummary.from_results(results)
                mark_run_succeeded(db, run, summary=summary, report_path=str(report_path))
            except Exception as exc:
                db.rollback()
                # Input order once the batches finished, arrival order before that.
                results = results or produced
                mark_run_failed(db, run, error=str(exc), summary=RunSummary.from_results(results))
                logger.exception("verification run failed", extra={"run_key": run_key})
                return self._result_from_run(run, results, reused_existing_run=False)

            self._log_summary(run_key, summary)
            return self._result_from_run(run, results, reused_existing_run=False)

    def report_path(self, run_key: str) -> Path:
        return Path(self.settings.results_dir) / f"{run_key}.csv"

    def _log_summary(self, run_key: str, summary: RunSummary) -> None:
        logger.info(
            "verification run completed: total=%d passed=%d failed=%d pending=%d manual_review=%d errors=%d screenshots=%d",
            summary.total,
            summary.passed,
            summary.failed,
            summary.pending,
            summary.manual_review,
            summary.errors,
            summary.screenshots,
            extra={"run_key": run_key},
        )

    def _result_from_run(self, run: VerificationRun, results: list[TestResult], reused_existing_run: bool) -> RunResult:
        return RunResult(
            run_id=run.id,
            run_key=run.run_key,
            trigger_source=run.trigger_source,
            status=run.status,
            summary=summary_from_run(run),
            results=results,
            report_path=run.report_path,
            error=run.error,
            reused_existing_run=reused_existing_run,
        )


def build_runner(
    settings: Settings,
    *,
    session_factory: sessionmaker[Session] | None = None,
    driver: BrowserDriver | None = None,
    session_store: SessionStore | None = None,
) -> VerificationRunner:
    scheduler = BatchScheduler(
        settings,
        driver or PlaywrightDriver(settings),
        session_store or SessionStore(settings.session_file),
    )
    return VerificationRunner(settings, session_factory or build_session_factory(settings.database_url), scheduler)


def new_run_key(prefix: str) -> str:
    millis = int(datetime.now(UTC).timestamp() * 1000)
    return f"{prefix}_{millis}_{uuid4().hex[:6]}"
