import asyncio
from collections.abc import AsyncIterator, Callable
import logging

from tripcheck.classifier import RedirectClassifier
from tripcheck.config import Settings
from tripcheck.navigation import BrowserDriver, NavigationContext
from tripcheck.schemas import StoreSpec, TestResult
from tripcheck.session_store import SessionStore


logger = logging.getLogger(__name__)


def partition(stores: list[StoreSpec], batch_size: int) -> list[list[StoreSpec]]:
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return [stores[start : start + batch_size] for start in range(0, len(stores), batch_size)]


class BatchScheduler:
    def __init__(
        self,
        settings: Settings,
        driver: BrowserDriver,
        session_store: SessionStore,
        classifier: RedirectClassifier | None = None,
    ) -> None:
        self.settings = settings
        self.driver = driver
        self.session_store = session_store
        self.classifier = classifier or RedirectClassifier(settings)

    async def stream(
        self, stores: list[StoreSpec], batch_size: int | None = None
    ) -> AsyncIterator[tuple[int, TestResult]]:
        batches = partition(stores, self.settings.batch_size if batch_size is None else batch_size)
        if not batches:
            return

        storage_state = self.session_store.load()
        async with self.driver.open_context(storage_state) as context:
            logger.info("testing stores", extra={"total": len(stores), "batches": len(batches)})
            offset = 0
            for batch_number, batch in enumerate(batches, start=1):
                logger.info(
                    "batch %d/%d started",
                    batch_number,
                    len(batches),
                    extra={"batch_size": len(batch)},
                )
                tasks = [
                    asyncio.create_task(self._check(context, offset + position, store))
                    for position, store in enumerate(batch)
                ]
                try:
                    for finished in asyncio.as_completed(tasks):
                        yield await finished
                finally:
                    # Pages must be closed before the shared context goes away.
                    await asyncio.gather(*tasks, return_exceptions=True)
                offset += len(batch)

    async def run(
        self,
        stores: list[StoreSpec],
        batch_size: int | None = None,
        on_result: Callable[[TestResult], None] | None = None,
    ) -> list[TestResult]:
        ordered: list[TestResult | None] = [None] * len(stores)
        async for index, result in self.stream(stores, batch_size):
            ordered[index] = result
            if on_result is not None:
                on_result(result)
        return [result for result in ordered if result is not None]

    async def _check(self, context: NavigationContext, index: int, store: StoreSpec) -> tuple[int, TestResult]:
        result: TestResult | None = None
        try:
            async with context.open_page() as nav:
                result = await self.classifier.classify(nav, store)
        except Exception as exc:
            if result is not None:
                logger.warning("page close failed: %s", exc, extra={"store_id": store.store_id})
                return index, result
            logger.exception("could not open page for store", extra={"store_id": store.store_id})
            return index, self.classifier.error_result(store, exc)
        return index, result
