import asyncio
import json
import logging
from pathlib import Path

from fastapi import FastAPI, File, HTTPException, UploadFile, status
from fastapi.responses import StreamingResponse
from fastapi.staticfiles import StaticFiles

from tripcheck.api_models import (
    LoginStatusResponse,
    MessageResponse,
    RunResponse,
    SingleResultResponse,
    StoreRequest,
    SummaryResponse,
    TestResultResponse,
)
from tripcheck.config import Settings, get_settings
from tripcheck.navigation import capture_login_session
from tripcheck.records import StoreRecordError, load_stores
from tripcheck.runner import VerificationRunner, build_runner, new_run_key
from tripcheck.schemas import RunResult, StoreSpec, TestResult


logger = logging.getLogger(__name__)


def _result_file(result: RunResult) -> str | None:
    if not result.report_path:
        return None
    return f"/results/{Path(result.report_path).name}"


def _sse(payload: dict[str, object]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


async def _read_stores(file: UploadFile) -> list[StoreSpec]:
    try:
        content = (await file.read()).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Store CSV must be UTF-8") from exc
    finally:
        await file.close()

    try:
        return load_stores(content)
    except StoreRecordError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": str(exc),
                "invalid_records": [
                    {"line_number": invalid.line_number, "reason": invalid.reason}
                    for invalid in exc.invalid_records
                ],
            },
        ) from exc


def create_app(settings: Settings | None = None, runner: VerificationRunner | None = None) -> FastAPI:
    settings = settings or get_settings()
    runner = runner or build_runner(settings)
    session_store = runner.scheduler.session_store

    screenshot_dir = Path(settings.screenshot_dir)
    results_dir = Path(settings.results_dir)
    screenshot_dir.mkdir(parents=True, exist_ok=True)
    results_dir.mkdir(parents=True, exist_ok=True)

    app = FastAPI(title=settings.app_name)
    app.state.settings = settings
    app.state.runner = runner

    @app.get("/api/login-status", response_model=LoginStatusResponse)
    def login_status() -> LoginStatusResponse:
        return LoginStatusResponse(logged_in=session_store.exists(), session_file=str(session_store.path))

    @app.post("/api/setup-login", response_model=MessageResponse)
    async def setup_login() -> MessageResponse:
        try:
            await capture_login_session(settings, session_store)
        except Exception as exc:
            logger.exception("login setup failed")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
        return MessageResponse(success=True, message="Login session saved successfully!")

    @app.delete("/api/logout", response_model=MessageResponse)
    def logout() -> MessageResponse:
        try:
            deleted = session_store.delete()
        except OSError as exc:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
        return MessageResponse(success=True, message="Session deleted" if deleted else "No session to delete")

    @app.post("/api/test-csv-stream")
    async def test_csv_stream(file: UploadFile = File(...)) -> StreamingResponse:
        stores = await _read_stores(file)
        run_key = new_run_key("results")
        logger.info("starting streaming run", extra={"run_key": run_key, "total": len(stores)})

        async def events():
            queue: asyncio.Queue[TestResult | None] = asyncio.Queue()
            yield _sse({"type": "start", "total": len(stores)})

            task = asyncio.create_task(runner.run(stores=stores, run_key=run_key, on_result=queue.put_nowait))
            task.add_done_callback(lambda _: queue.put_nowait(None))
            while True:
                result = await queue.get()
                if result is None:
                    break
                yield _sse({"type": "result", "result": result.as_dict()})

            try:
                outcome = task.result()
            except Exception as exc:
                logger.exception("streaming run failed", extra={"run_key": run_key})
                yield _sse({"type": "error", "error": str(exc)})
                return

            if outcome.status == "failed":
                yield _sse({"type": "error", "error": outcome.error or "run failed"})
            yield _sse(
                {
                    "type": "complete",
                    "run_key": outcome.run_key,
                    "summary": SummaryResponse.from_summary(outcome.summary).model_dump(),
                    "result_file": _result_file(outcome),
                }
            )

        return StreamingResponse(
            events(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    @app.post("/api/test-csv", response_model=RunResponse)
    async def test_csv(file: UploadFile = File(...)) -> RunResponse:
        stores = await _read_stores(file)
        outcome = await runner.run(stores=stores, run_key=new_run_key("results"))
        return RunResponse(
            success=outcome.status == "succeeded",
            run_key=outcome.run_key,
            summary=SummaryResponse.from_summary(outcome.summary),
            results=[TestResultResponse.from_result(result) for result in outcome.results],
            result_file=_result_file(outcome),
            error=outcome.error,
        )

    @app.post("/api/test-single", response_model=SingleResultResponse)
    async def test_single(request: StoreRequest) -> SingleResultResponse:
        store = request.to_store()
        outcome = await runner.run(stores=[store], run_key=new_run_key("single_result"))
        result = outcome.results[0] if outcome.results else None
        return SingleResultResponse(
            success=outcome.status == "succeeded",
            run_key=outcome.run_key,
            result=TestResultResponse.from_result(result) if result else None,
            result_file=_result_file(outcome),
            error=outcome.error,
        )

    app.mount("/screenshots", StaticFiles(directory=screenshot_dir), name="screenshots")
    app.mount("/results", StaticFiles(directory=results_dir), name="results")
    return app
