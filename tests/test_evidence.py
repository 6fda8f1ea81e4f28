import asyncio
from pathlib import Path

from tripcheck.evidence import EvidenceCapture, best_effort, screenshot_name
from tripcheck.schemas import StoreSpec

from fakes import FakeNavigation


def test_screenshot_name_sanitizes_store_name(store: StoreSpec) -> None:
    assert screenshot_name("PASS", store) == "PASS_1001_Acme___Sons__Ltd_.png"


def test_best_effort_reports_failure_without_raising() -> None:
    async def boom() -> None:
        raise RuntimeError("nope")

    async def fine() -> None:
        return None

    assert asyncio.run(best_effort(boom(), "boom")) is False
    assert asyncio.run(best_effort(fine(), "fine")) is True


def test_capture_creates_missing_directory(tmp_path: Path, store: StoreSpec) -> None:
    nav = FakeNavigation(["https://www.acme.com/"])
    evidence = EvidenceCapture(tmp_path / "nested" / "shots")

    path = asyncio.run(evidence.capture(nav, "FAIL", store, "https://ads.example.net/"))

    assert path == str(tmp_path / "nested" / "shots" / "FAIL_1001_Acme___Sons__Ltd_.png")
    assert Path(path).exists()
    assert nav.evaluated[0][1] == "https://ads.example.net/"


def test_capture_returns_none_when_screenshot_fails(tmp_path: Path, store: StoreSpec) -> None:
    nav = FakeNavigation([], screenshot_error=RuntimeError("Target page, context or browser has been closed"))

    assert asyncio.run(EvidenceCapture(tmp_path).capture(nav, "ERROR", store, "")) is None
