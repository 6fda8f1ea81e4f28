from pathlib import Path

import pytest

from tripcheck.config import Settings
from tripcheck.database import build_session_factory
from tripcheck.schemas import StoreSpec


@pytest.fixture()
def temp_workspace(tmp_path: Path) -> Path:
    (tmp_path / "screenshots").mkdir(parents=True, exist_ok=True)
    (tmp_path / "results").mkdir(parents=True, exist_ok=True)
    return tmp_path


@pytest.fixture()
def test_settings(temp_workspace: Path) -> Settings:
    return Settings(
        app_name="tripcheck",
        database_url=f"sqlite:///{temp_workspace / 'test.db'}",
        log_level="INFO",
        input_csv=str(temp_workspace / "stores.csv"),
        screenshot_dir=str(temp_workspace / "screenshots"),
        results_dir=str(temp_workspace / "results"),
        session_file=str(temp_workspace / "session.json"),
        batch_size=3,
        max_poll_attempts=15,
        poll_interval_seconds=0,
        wrong_domain_min_attempt=3,
        navigation_timeout_ms=1000,
        tracking_domain="rakuten.com",
        login_url="https://www.rakuten.com",
        login_wait_seconds=0,
        headless=True,
        max_report_retries=1,
        retry_backoff_seconds=0,
        schedule_hour_utc=2,
        schedule_minute_utc=0,
        api_host="127.0.0.1",
        api_port=3001,
    )


@pytest.fixture()
def session_factory(test_settings: Settings):
    return build_session_factory(test_settings.database_url)


@pytest.fixture()
def store() -> StoreSpec:
    return StoreSpec(
        store_id="1001",
        store_name="Acme & Sons, Ltd.",
        xfas_url="https://www.rakuten.com/xfas/acme",
        merchant_site_url="https://www.acme.com",
        network_id="7",
    )

