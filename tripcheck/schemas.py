from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


class TestStatus(str, Enum):
    __test__ = False

    UNKNOWN = "UNKNOWN"
    PASS = "PASS"
    FAIL = "FAIL"
    PENDING = "PENDING"
    MANUAL_REVIEW = "MANUAL_REVIEW"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self is not TestStatus.UNKNOWN


def utc_today() -> str:
    return datetime.now(UTC).date().isoformat()


@dataclass(frozen=True)
class StoreSpec:
    store_id: str
    store_name: str
    xfas_url: str
    merchant_site_url: str
    network_id: str = "N/A"


@dataclass
class TestResult:
    __test__ = False

    store_id: str
    store_name: str
    xfas_url: str
    merchant_site_url: str
    network_id: str
    test_url: str
    status: TestStatus = TestStatus.UNKNOWN
    actual_landing_url: str = ""
    error_details: str = ""
    screenshot_path: str = ""
    tested_date: str = field(default_factory=utc_today)

    @classmethod
    def start(cls, store: StoreSpec, test_url: str) -> "TestResult":
        return cls(
            store_id=store.store_id,
            store_name=store.store_name,
            xfas_url=store.xfas_url,
            merchant_site_url=store.merchant_site_url,
            network_id=store.network_id,
            test_url=test_url,
        )

    def resolve(self, status: TestStatus, *, landing_url: str, details: str) -> None:
        if not status.is_terminal:
            raise ValueError("a result can only be resolved to a terminal status")
        if self.status.is_terminal:
            raise RuntimeError(f"result for store {self.store_id} already resolved as {self.status.value}")
        self.status = status
        self.actual_landing_url = landing_url
        self.error_details = details

    def as_dict(self) -> dict[str, str]:
        return {
            "store_id": self.store_id,
            "store_name": self.store_name,
            "xfas_url": self.xfas_url,
            "merchant_site_url": self.merchant_site_url,
            "network_id": self.network_id,
            "test_url": self.test_url,
            "status": self.status.value,
            "actual_landing_url": self.actual_landing_url,
            "error_details": self.error_details,
            "screenshot_path": self.screenshot_path,
            "tested_date": self.tested_date,
        }


@dataclass(frozen=True)
class InvalidRecord:
    line_number: int
    record: list[str]
    reason: str


@dataclass(frozen=True)
class RunSummary:
    total: int
    passed: int
    failed: int
    pending: int
    manual_review: int
    errors: int
    screenshots: int

    @classmethod
    def from_results(cls, results: list[TestResult]) -> "RunSummary":
        def count(status: TestStatus) -> int:
            return sum(1 for result in results if result.status is status)

        return cls(
            total=len(results),
            passed=count(TestStatus.PASS),
            failed=count(TestStatus.FAIL),
            pending=count(TestStatus.PENDING),
            manual_review=count(TestStatus.MANUAL_REVIEW),
            errors=count(TestStatus.ERROR),
            screenshots=sum(1 for result in results if result.screenshot_path),
        )


@dataclass(frozen=True)
class RunResult:
    run_id: int
    run_key: str
    trigger_source: str
    status: str
    summary: RunSummary
    results: list[TestResult]
    report_path: str | None
    error: str | None
    reused_existing_run: bool
