import argparse
import asyncio
import logging
from pathlib import Path

from tripcheck.config import Settings, get_settings
from tripcheck.navigation import capture_login_session
from tripcheck.records import StoreRecordError, read_store_csv
from tripcheck.runner import build_runner, new_run_key
from tripcheck.schemas import RunResult, StoreSpec
from tripcheck.session_store import SessionStore


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Verify shopping trip tracking link redirects")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="verify every store in a CSV file")
    run_parser.add_argument("--input", required=False, help="Store CSV path (defaults to INPUT_CSV)")
    run_parser.add_argument("--run-key", required=False, help="Idempotency key for this run")
    run_parser.add_argument("--batch-size", type=int, required=False, help="Stores checked concurrently")
    run_parser.add_argument(
        "--trigger-source",
        default="manual",
        choices=["manual", "scheduled"],
        help="Metadata label for how this run was triggered",
    )

    check_parser = subparsers.add_parser("check", help="verify a single store")
    check_parser.add_argument("--store-id", required=True)
    check_parser.add_argument("--store-name", required=True)
    check_parser.add_argument("--xfas-url", required=True, help="Tracking URL to test")
    check_parser.add_argument("--merchant-site-url", required=True, help="Expected landing site")
    check_parser.add_argument("--network-id", default="N/A")

    subparsers.add_parser("login", help="open a browser once and save the logged-in session")
    subparsers.add_parser("logout", help="delete the saved session")
    subparsers.add_parser("login-status", help="report whether a saved session exists")

    schedule_parser = subparsers.add_parser("schedule", help="start daily scheduler")
    schedule_parser.add_argument("--run-now", action="store_true", help="also run once immediately")

    serve_parser = subparsers.add_parser("serve", help="start the HTTP API")
    serve_parser.add_argument("--host", required=False)
    serve_parser.add_argument("--port", type=int, required=False)

    return parser.parse_args()


def _print_result(result: RunResult) -> None:
    summary = result.summary
    print(
        "run_id={run_id} run_key={run_key} trigger={trigger} status={status} total={total} passed={passed} failed={failed} pending={pending} manual_review={manual} errors={errors} screenshots={screenshots} reused={reused} report={report}".format(
            run_id=result.run_id,
            run_key=result.run_key,
            trigger=result.trigger_source,
            status=result.status,
            total=summary.total,
            passed=summary.passed,
            failed=summary.failed,
            pending=summary.pending,
            manual=summary.manual_review,
            errors=summary.errors,
            screenshots=summary.screenshots,
            reused=result.reused_existing_run,
            report=result.report_path,
        )
    )


def _run_stores(settings: Settings, stores: list[StoreSpec], run_key: str, **options) -> None:
    runner = build_runner(settings)
    result = asyncio.run(runner.run(stores=stores, run_key=run_key, **options))
    _print_result(result)
    if result.status == "failed":
        raise SystemExit(1)


def main() -> None:
    args = parse_args()
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    session_store = SessionStore(settings.session_file)

    if args.command == "login-status":
        print(f"logged_in={session_store.exists()} session_file={session_store.path}")
        return

    if args.command == "logout":
        deleted = session_store.delete()
        print("session deleted" if deleted else "no session to delete")
        return

    if args.command == "login":
        path = asyncio.run(capture_login_session(settings, session_store))
        print(f"session saved to {path}")
        return

    if args.command == "schedule":
        from tripcheck.scheduler import start_scheduler

        start_scheduler(settings, build_runner(settings), run_now=args.run_now)
        return

    if args.command == "serve":
        import uvicorn

        from tripcheck.api import create_app

        uvicorn.run(create_app(settings), host=args.host or settings.api_host, port=args.port or settings.api_port)
        return

    if args.command == "check":
        store = StoreSpec(
            store_id=args.store_id,
            store_name=args.store_name,
            xfas_url=args.xfas_url,
            merchant_site_url=args.merchant_site_url,
            network_id=args.network_id,
        )
        _run_stores(settings, [store], new_run_key("single_result"))
        return

    input_path = Path(args.input or settings.input_csv)
    try:
        stores = read_store_csv(input_path)
    except FileNotFoundError as exc:
        print(f"status=failed error={exc}")
        raise SystemExit(1) from exc
    except StoreRecordError as exc:
        print(f"status=failed error={exc}")
        for invalid in exc.invalid_records:
            print(f"  line {invalid.line_number}: {invalid.reason}")
        raise SystemExit(1) from exc

    _run_stores(
        settings,
        stores,
        args.run_key or new_run_key("results"),
        trigger_source=args.trigger_source,
        batch_size=args.batch_size,
    )


if __name__ == "__main__":
    main()
