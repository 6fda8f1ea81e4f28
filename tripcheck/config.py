from dataclasses import dataclass
import os

from dotenv import load_dotenv


load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    database_url: str
    log_level: str
    input_csv: str
    screenshot_dir: str
    results_dir: str
    session_file: str
    batch_size: int
    max_poll_attempts: int
    poll_interval_seconds: float
    wrong_domain_min_attempt: int
    navigation_timeout_ms: int
    tracking_domain: str
    login_url: str
    login_wait_seconds: float
    headless: bool
    max_report_retries: int
    retry_backoff_seconds: float
    schedule_hour_utc: int
    schedule_minute_utc: int
    api_host: str
    api_port: int


def get_settings() -> Settings:
    return Settings(
        app_name=os.getenv("APP_NAME", "tripcheck"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./tripcheck.db"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        input_csv=os.getenv("INPUT_CSV", "./data/stores.csv"),
        screenshot_dir=os.getenv("SCREENSHOT_DIR", "./screenshots"),
        results_dir=os.getenv("RESULTS_DIR", "./results"),
        session_file=os.getenv("SESSION_FILE", "./rakuten-session.json"),
        batch_size=int(os.getenv("BATCH_SIZE", "3")),
        max_poll_attempts=int(os.getenv("MAX_POLL_ATTEMPTS", "15")),
        poll_interval_seconds=float(os.getenv("POLL_INTERVAL_SECONDS", "3")),
        wrong_domain_min_attempt=int(os.getenv("WRONG_DOMAIN_MIN_ATTEMPT", "3")),
        navigation_timeout_ms=int(os.getenv("NAVIGATION_TIMEOUT_MS", "20000")),
        tracking_domain=os.getenv("TRACKING_DOMAIN", "rakuten.com").strip().lower(),
        login_url=os.getenv("LOGIN_URL", "https://www.rakuten.com"),
        login_wait_seconds=float(os.getenv("LOGIN_WAIT_SECONDS", "60")),
        headless=_env_bool("HEADLESS", "true"),
        max_report_retries=int(os.getenv("MAX_REPORT_RETRIES", "2")),
        retry_backoff_seconds=float(os.getenv("RETRY_BACKOFF_SECONDS", "1")),
        schedule_hour_utc=int(os.getenv("SCHEDULE_HOUR_UTC", "2")),
        schedule_minute_utc=int(os.getenv("SCHEDULE_MINUTE_UTC", "0")),
        api_host=os.getenv("API_HOST", "0.0.0.0"),
        api_port=int(os.getenv("API_PORT", "3001")),
    )
