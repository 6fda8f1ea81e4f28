import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from tripcheck.navigation import NavigationTimeout
from tripcheck.schemas import StoreSpec


class FakeNavigation:
    """Replays a scripted sequence of URLs, one per poll wait."""

    def __init__(
        self,
        urls: list[str],
        *,
        goto_error: Exception | None = None,
        poll_error_at: int | None = None,
        screenshot_error: Exception | None = None,
        overlay_error: Exception | None = None,
        click_error: Exception | None = None,
    ) -> None:
        self.urls = urls
        self.goto_error = goto_error
        self.poll_error_at = poll_error_at
        self.screenshot_error = screenshot_error
        self.overlay_error = overlay_error
        self.click_error = click_error
        self.polls = 0
        self.visited: list[str] = []
        self.evaluated: list[tuple[str, Any]] = []
        self.clicks: list[str] = []
        self.screenshots: list[Path] = []

    @property
    def url(self) -> str:
        if self.polls == 0:
            return self.visited[-1] if self.visited else "about:blank"
        return self.urls[min(self.polls, len(self.urls)) - 1]

    async def goto(self, url: str, *, timeout_ms: int) -> None:
        self.visited.append(url)
        if self.goto_error is not None:
            raise self.goto_error

    async def wait(self, seconds: float) -> None:
        if self.poll_error_at is not None and self.polls == self.poll_error_at:
            raise RuntimeError("page crashed")
        self.polls += 1
        await asyncio.sleep(0)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.evaluated.append((script, arg))
        if arg is not None and self.overlay_error is not None:
            raise self.overlay_error
        return None

    async def click(self, selector: str, *, timeout_ms: int) -> None:
        self.clicks.append(selector)
        if self.click_error is not None:
            raise self.click_error

    async def screenshot(self, path: Path) -> None:
        if self.screenshot_error is not None:
            raise self.screenshot_error
        path.write_bytes(b"\x89PNG fake")
        self.screenshots.append(path)


def timeout_then(urls: list[str]) -> FakeNavigation:
    return FakeNavigation(urls, goto_error=NavigationTimeout("Timeout 20000ms exceeded"))


class FakeContext:
    def __init__(self, driver: "FakeDriver") -> None:
        self.driver = driver

    @asynccontextmanager
    async def open_page(self):
        driver = self.driver
        if driver.open_page_error is not None:
            raise driver.open_page_error
        driver.active_pages += 1
        driver.max_active_pages = max(driver.max_active_pages, driver.active_pages)
        driver.pages_opened += 1
        try:
            yield driver.next_navigation()
        finally:
            driver.active_pages -= 1


class FakeDriver:
    """In-memory browser driver; ``route`` maps a test URL to the URLs it redirects through."""

    def __init__(self, route=None, open_page_error: Exception | None = None) -> None:
        self.route = route or (lambda url: FakeNavigation(["https://www.rakuten.com/"]))
        self.open_page_error = open_page_error
        self.contexts_opened = 0
        self.storage_states: list[dict[str, Any] | None] = []
        self.active_pages = 0
        self.max_active_pages = 0
        self.pages_opened = 0
        self.navigations: list[FakeNavigation] = []

    def next_navigation(self) -> "RoutedNavigation":
        nav = RoutedNavigation(self.route)
        self.navigations.append(nav)
        return nav

    @asynccontextmanager
    async def open_context(self, storage_state):
        self.contexts_opened += 1
        self.storage_states.append(storage_state)
        yield FakeContext(self)
        assert self.active_pages == 0, "context closed while pages were still open"


class RoutedNavigation(FakeNavigation):
    """Picks its URL script from the driver route on the first navigation."""

    def __init__(self, route) -> None:
        super().__init__([])
        self.route = route

    async def goto(self, url: str, *, timeout_ms: int) -> None:
        scripted = self.route(url)
        self.urls = scripted.urls
        self.goto_error = scripted.goto_error
        self.screenshot_error = scripted.screenshot_error
        await super().goto(url, timeout_ms=timeout_ms)


def make_stores(count: int) -> list[StoreSpec]:
    return [
        StoreSpec(
            store_id=str(index),
            store_name=f"Store {index}",
            xfas_url=f"https://www.rakuten.com/xfas/store{index}",
            merchant_site_url=f"https://www.store{index}.com",
            network_id="1",
        )
        for index in range(count)
    ]
