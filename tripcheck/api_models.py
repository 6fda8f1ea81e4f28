from pydantic import BaseModel, Field

from tripcheck.schemas import RunSummary, StoreSpec, TestResult


class StoreRequest(BaseModel):
    store_id: str = Field(min_length=1)
    store_name: str = Field(min_length=1)
    xfas_url: str = Field(min_length=1)
    merchant_site_url: str = Field(min_length=1)
    network_id: str | None = None

    def to_store(self) -> StoreSpec:
        return StoreSpec(
            store_id=self.store_id.strip(),
            store_name=self.store_name.strip(),
            xfas_url=self.xfas_url.strip(),
            merchant_site_url=self.merchant_site_url.strip(),
            network_id=(self.network_id or "").strip() or "N/A",
        )


class TestResultResponse(BaseModel):
    store_id: str
    store_name: str
    xfas_url: str
    merchant_site_url: str
    network_id: str
    test_url: str
    status: str
    actual_landing_url: str
    error_details: str
    screenshot_path: str
    tested_date: str

    @classmethod
    def from_result(cls, result: TestResult) -> "TestResultResponse":
        return cls(**result.as_dict())


class SummaryResponse(BaseModel):
    total: int
    passed: int
    failed: int
    pending: int
    manual_review: int
    errors: int
    screenshots: int

    @classmethod
    def from_summary(cls, summary: RunSummary) -> "SummaryResponse":
        return cls(
            total=summary.total,
            passed=summary.passed,
            failed=summary.failed,
            pending=summary.pending,
            manual_review=summary.manual_review,
            errors=summary.errors,
            screenshots=summary.screenshots,
        )


class RunResponse(BaseModel):
    success: bool
    run_key: str
    summary: SummaryResponse
    results: list[TestResultResponse]
    result_file: str | None
    error: str | None = None


class SingleResultResponse(BaseModel):
    success: bool
    run_key: str
    result: TestResultResponse | None
    result_file: str | None
    error: str | None = None


class LoginStatusResponse(BaseModel):
    logged_in: bool
    session_file: str


class MessageResponse(BaseModel):
    success: bool
    message: str
