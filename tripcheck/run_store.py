from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tripcheck.db_models import StoreCheck, VerificationRun, utc_now
from tripcheck.schemas import RunSummary, TestResult, TestStatus


def get_run_by_key(db: Session, run_key: str) -> VerificationRun | None:
    stmt = select(VerificationRun).where(VerificationRun.run_key == run_key)
    return db.execute(stmt).scalar_one_or_none()


def create_or_get_run(db: Session, *, run_key: str, trigger_source: str) -> tuple[VerificationRun, bool]:
    run = VerificationRun(run_key=run_key, trigger_source=trigger_source, status="queued")
    db.add(run)
    try:
        db.commit()
    except IntegrityError:
        # run_key is unique, so a second submission finds the first run.
        db.rollback()
        existing = get_run_by_key(db, run_key)
        if existing:
            return existing, False
        raise

    db.refresh(run)
    return run, True


def reset_failed_run_state(db: Session, run: VerificationRun) -> None:
    db.execute(delete(StoreCheck).where(StoreCheck.run_id == run.id))
    run.status = "queued"
    run.error = None
    run.completed_at = None
    run.report_path = None
    _apply_summary(run, RunSummary.from_results([]))
    db.commit()
    db.expire(run, ["checks"])


def mark_run_running(db: Session, run: VerificationRun, *, total_stores: int) -> None:
    run.status = "running"
    run.started_at = utc_now()
    run.total_stores = total_stores
    run.error = None
    db.commit()


def mark_run_succeeded(db: Session, run: VerificationRun, *, summary: RunSummary, report_path: str) -> None:
    run.status = "succeeded"
    _apply_summary(run, summary)
    run.report_path = report_path
    run.completed_at = utc_now()
    run.error = None
    db.commit()


def mark_run_failed(
    db: Session,
    run: VerificationRun,
    *,
    error: str,
    summary: RunSummary,
    report_path: str | None = None,
) -> None:
    run.status = "failed"
    run.error = error
    _apply_summary(run, summary)
    run.report_path = report_path
    run.completed_at = utc_now()
    db.commit()


def store_check_results(db: Session, *, run_id: int, results: list[TestResult]) -> None:
    for position, result in enumerate(results):
        db.add(StoreCheck(run_id=run_id, position=position, **result.as_dict()))
    db.commit()


def load_check_results(db: Session, run: VerificationRun) -> list[TestResult]:
    stmt = select(StoreCheck).where(StoreCheck.run_id == run.id).order_by(StoreCheck.position)
    return [
        TestResult(
            store_id=check.store_id,
            store_name=check.store_name,
            xfas_url=check.xfas_url,
            merchant_site_url=check.merchant_site_url,
            network_id=check.network_id,
            test_url=check.test_url,
            status=TestStatus(check.status),
            actual_landing_url=check.actual_landing_url,
            error_details=check.error_details,
            screenshot_path=check.screenshot_path,
            tested_date=check.tested_date,
        )
        for check in db.execute(stmt).scalars()
    ]


def summary_from_run(run: VerificationRun) -> RunSummary:
    return RunSummary(
        total=run.total_stores,
        passed=run.passed,
        failed=run.failed,
        pending=run.pending,
        manual_review=run.manual_review,
        errors=run.errors,
        screenshots=run.screenshots,
    )


def _apply_summary(run: VerificationRun, summary: RunSummary) -> None:
    run.total_stores = summary.total
    run.passed = summary.passed
    run.failed = summary.failed
    run.pending = summary.pending
    run.manual_review = summary.manual_review
    run.errors = summary.errors
    run.screenshots = summary.screenshots
