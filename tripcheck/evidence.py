from collections.abc import Awaitable
import logging
from pathlib import Path
import re

from tripcheck.navigation import NavigationHandle
from tripcheck.schemas import StoreSpec


logger = logging.getLogger(__name__)

OVERLAY_SCRIPT = """
(url) => {
    const overlay = document.createElement('div');
    overlay.id = 'result-url-overlay';
    overlay.style.position = 'fixed';
    overlay.style.top = '0';
    overlay.style.left = '0';
    overlay.style.width = '100%';
    overlay.style.backgroundColor = 'rgba(0, 0, 0, 0.8)';
    overlay.style.color = 'white';
    overlay.style.padding = '10px 20px';
    overlay.style.fontFamily = 'monospace';
    overlay.style.fontSize = '14px';
    overlay.style.zIndex = '999999';
    overlay.style.wordBreak = 'break-all';
    overlay.textContent = 'URL: ' + url;
    document.body.appendChild(overlay);
}
"""


async def best_effort(action: Awaitable[object], description: str, **context: object) -> bool:
    try:
        await action
    except Exception as exc:
        logger.warning("%s failed: %s", description, exc, extra=context)
        return False
    return True


def screenshot_name(tag: str, store: StoreSpec) -> str:
    safe_name = re.sub(r"[^a-z0-9]", "_", store.store_name, flags=re.IGNORECASE)
    return f"{tag}_{store.store_id}_{safe_name}.png"


class EvidenceCapture:
    def __init__(self, screenshot_dir: str | Path) -> None:
        self.screenshot_dir = Path(screenshot_dir)

    async def capture(self, nav: NavigationHandle, tag: str, store: StoreSpec, url: str) -> str | None:
        path = self.screenshot_dir / screenshot_name(tag, store)
        await best_effort(nav.evaluate(OVERLAY_SCRIPT, url), "url overlay", store_id=store.store_id)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("screenshot directory unavailable: %s", exc, extra={"store_id": store.store_id})
            return None
        if not await best_effort(nav.screenshot(path), "screenshot", store_id=store.store_id):
            return None
        return str(path)
