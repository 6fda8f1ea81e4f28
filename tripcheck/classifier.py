import logging
from urllib.parse import urlencode

from tripcheck.config import Settings
from tripcheck.domains import is_blocked_host, normalize, same_site
from tripcheck.evidence import EvidenceCapture, best_effort
from tripcheck.navigation import NavigationHandle, NavigationTimeout
from tripcheck.schemas import StoreSpec, TestResult, TestStatus


logger = logging.getLogger(__name__)

TEST_QUERY_PARAMS = {"sourceName": "Web-Desktop", "ebstask": "shoppingTripAttrProps"}
UNBLOCK_CLICK_TIMEOUT_MS = 1000
UNBLOCK_SCRIPT = """
() => {
    const candidates = document.querySelectorAll('button, a, [onclick]');
    if (candidates.length > 0) {
        candidates[0].click();
    }
}
"""

# Screenshot file prefixes per terminal status.
EVIDENCE_TAGS = {
    TestStatus.PASS: "PASS",
    TestStatus.FAIL: "FAIL",
    TestStatus.PENDING: "PENDING",
    TestStatus.MANUAL_REVIEW: "MANUAL",
    TestStatus.ERROR: "ERROR",
}


def build_test_url(xfas_url: str) -> str:
    separator = "&" if "?" in xfas_url else "?"
    return f"{xfas_url}{separator}{urlencode(TEST_QUERY_PARAMS)}"


class RedirectClassifier:
    def __init__(self, settings: Settings, evidence: EvidenceCapture | None = None) -> None:
        self.settings = settings
        self.evidence = evidence or EvidenceCapture(settings.screenshot_dir)

    async def classify(self, nav: NavigationHandle, store: StoreSpec) -> TestResult:
        result = TestResult.start(store, build_test_url(store.xfas_url))
        logger.info("testing store", extra={"store_id": store.store_id, "test_url": result.test_url})

        try:
            await self._poll(nav, store, result)
        except Exception as exc:
            if result.status.is_terminal:
                logger.exception("evidence step failed after classification", extra={"store_id": store.store_id})
                return result
            logger.exception("store check failed", extra={"store_id": store.store_id})
            landing_url = self._current_url(nav)
            result.resolve(TestStatus.ERROR, landing_url=landing_url, details=str(exc) or type(exc).__name__)
            await self._record_evidence(nav, store, result)

        logger.info(
            "store check finished",
            extra={"store_id": store.store_id, "status": result.status.value, "landing_url": result.actual_landing_url},
        )
        return result

    def error_result(self, store: StoreSpec, exc: BaseException) -> TestResult:
        result = TestResult.start(store, build_test_url(store.xfas_url))
        result.resolve(TestStatus.ERROR, landing_url="", details=str(exc) or type(exc).__name__)
        return result

    async def _poll(self, nav: NavigationHandle, store: StoreSpec, result: TestResult) -> None:
        settings = self.settings
        try:
            await nav.goto(result.test_url, timeout_ms=settings.navigation_timeout_ms)
        except NavigationTimeout:
            # Polling below keeps waiting on the page regardless.
            logger.info("initial load timed out, polling anyway", extra={"store_id": store.store_id})

        expected_hostname = normalize(store.merchant_site_url)

        for attempt in range(settings.max_poll_attempts):
            await nav.wait(settings.poll_interval_seconds)
            current_url = nav.url
            current_hostname = normalize(current_url)
            logger.debug(
                "poll %d/%d: %s",
                attempt + 1,
                settings.max_poll_attempts,
                current_hostname,
                extra={"store_id": store.store_id},
            )

            if same_site(current_url, expected_hostname):
                result.resolve(TestStatus.PASS, landing_url=current_url, details="Successfully redirected")
                await self._record_evidence(nav, store, result)
                return

            if is_blocked_host(current_hostname):
                await self._try_unblock(nav, store)
                continue

            if current_hostname == settings.tracking_domain:
                continue

            # Intermediate redirect hops are tolerated until enough samples were taken.
            if attempt >= settings.wrong_domain_min_attempt:
                result.resolve(TestStatus.FAIL, landing_url=current_url, details=f"Wrong domain: {current_hostname}")
                await self._record_evidence(nav, store, result)
                return

        final_url = nav.url
        final_hostname = normalize(final_url)
        if final_hostname == settings.tracking_domain:
            result.resolve(TestStatus.PENDING, landing_url=final_url, details="Stuck on tracking page")
        elif is_blocked_host(final_hostname):
            result.resolve(
                TestStatus.MANUAL_REVIEW,
                landing_url=final_url,
                details="Automation appears blocked; human verification required",
            )
        else:
            result.resolve(TestStatus.FAIL, landing_url=final_url, details=f"Timeout - still on: {final_hostname}")
        await self._record_evidence(nav, store, result)

    async def _try_unblock(self, nav: NavigationHandle, store: StoreSpec) -> None:
        logger.info("navigation blocked, attempting to trigger redirect", extra={"store_id": store.store_id})
        await best_effort(nav.click("body", timeout_ms=UNBLOCK_CLICK_TIMEOUT_MS), "unblock click", store_id=store.store_id)
        await best_effort(nav.evaluate(UNBLOCK_SCRIPT), "unblock script", store_id=store.store_id)

    async def _record_evidence(self, nav: NavigationHandle, store: StoreSpec, result: TestResult) -> None:
        url = result.actual_landing_url or self._current_url(nav)
        path = await self.evidence.capture(nav, EVIDENCE_TAGS[result.status], store, url)
        if path:
            result.screenshot_path = path

    def _current_url(self, nav: NavigationHandle) -> str:
        try:
            return nav.url
        except Exception:
            return ""
