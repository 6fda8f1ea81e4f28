import asyncio
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
import logging
from pathlib import Path
from typing import Any, Protocol

from playwright.async_api import BrowserContext, Page, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from tripcheck.config import Settings
from tripcheck.session_store import SessionStore


logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1920, "height": 1080}
LAUNCH_ARGS = ["--no-sandbox", "--disable-dev-shm-usage", "--window-size=1920,1080"]


class NavigationTimeout(Exception):
    pass


class NavigationHandle(Protocol):
    @property
    def url(self) -> str: ...

    async def goto(self, url: str, *, timeout_ms: int) -> None: ...

    async def wait(self, seconds: float) -> None: ...

    async def evaluate(self, script: str, arg: Any = None) -> Any: ...

    async def click(self, selector: str, *, timeout_ms: int) -> None: ...

    async def screenshot(self, path: Path) -> None: ...


class NavigationContext(Protocol):
    def open_page(self) -> AbstractAsyncContextManager[NavigationHandle]: ...


class BrowserDriver(Protocol):
    def open_context(
        self, storage_state: dict[str, Any] | None
    ) -> AbstractAsyncContextManager[NavigationContext]: ...


class PlaywrightNavigation:
    def __init__(self, page: Page) -> None:
        self.page = page

    @property
    def url(self) -> str:
        return self.page.url

    async def goto(self, url: str, *, timeout_ms: int) -> None:
        try:
            await self.page.goto(url, wait_until="load", timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise NavigationTimeout(str(exc)) from exc

    async def wait(self, seconds: float) -> None:
        await self.page.wait_for_timeout(seconds * 1000)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self.page.evaluate(script, arg)

    async def click(self, selector: str, *, timeout_ms: int) -> None:
        await self.page.click(selector, timeout=timeout_ms)

    async def screenshot(self, path: Path) -> None:
        await self.page.screenshot(path=str(path), full_page=True)


class PlaywrightContext:
    def __init__(self, context: BrowserContext) -> None:
        self.context = context

    @asynccontextmanager
    async def open_page(self) -> AsyncIterator[PlaywrightNavigation]:
        page = await self.context.new_page()
        try:
            yield PlaywrightNavigation(page)
        finally:
            await page.close()


class PlaywrightDriver:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @asynccontextmanager
    async def open_context(self, storage_state: dict[str, Any] | None) -> AsyncIterator[PlaywrightContext]:
        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(headless=self.settings.headless, args=LAUNCH_ARGS)
            logger.info("browser launched", extra={"authenticated": storage_state is not None})
            try:
                context = await browser.new_context(
                    viewport=VIEWPORT,
                    user_agent=USER_AGENT,
                    java_script_enabled=True,
                    ignore_https_errors=True,
                    storage_state=storage_state,
                )
                try:
                    yield PlaywrightContext(context)
                finally:
                    await context.close()
            finally:
                await browser.close()
                logger.info("browser closed")


async def capture_login_session(settings: Settings, session_store: SessionStore) -> Path:
    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=False, args=["--start-maximized"])
        try:
            context = await browser.new_context(no_viewport=True, user_agent=USER_AGENT)
            page = await context.new_page()
            await page.goto(settings.login_url)
            logger.info(
                "waiting for interactive login",
                extra={"login_url": settings.login_url, "wait_seconds": settings.login_wait_seconds},
            )
            await asyncio.sleep(settings.login_wait_seconds)
            snapshot = await context.storage_state()
        finally:
            await browser.close()

    session_store.save(snapshot)
    return session_store.path
