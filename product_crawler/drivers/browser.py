# drivers/browser.py
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from ..config import CrawlConfig
from ..errors import BackendUnavailableError

logger = logging.getLogger(__name__)


def app_data_dir() -> Path:
    base = os.getenv("LOCALAPPDATA") or str(Path.home() / ".product-crawler")
    p = Path(base) / "product-crawler"
    p.mkdir(parents=True, exist_ok=True)
    return p


def _ms(seconds: float) -> float:
    return seconds * 1000


class PlaywrightPageDriver:
    """PageDriver over one Playwright page."""

    def __init__(self, page: Page) -> None:
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    async def navigate(self, url: str, timeout: float) -> None:
        await self._page.goto(url, wait_until="domcontentloaded", timeout=_ms(timeout))

    async def wait_ready(self, selector: str, timeout: float) -> None:
        await self._page.wait_for_selector(selector, state="visible", timeout=_ms(timeout))

    async def scroll(self, timeout: float) -> None:
        self._page.set_default_timeout(_ms(timeout))
        await self._page.evaluate("window.scrollBy(0, document.body.scrollHeight)")

    async def has_next_page(self, selector: str) -> bool:
        return await self._page.query_selector(selector) is not None

    async def click_next_page(self, selector: str, timeout: float) -> None:
        await self._page.click(selector, timeout=_ms(timeout))
        await self._page.wait_for_load_state("domcontentloaded", timeout=_ms(timeout))

    async def content(self) -> str:
        return await self._page.content()

    async def list_links(self, selector: str) -> List[str]:
        links = await self._page.eval_on_selector_all(selector, "els => els.map(a => a.href)")
        return [link for link in links if isinstance(link, str) and link]


class PlaywrightDriverFactory:
    """
    One Chromium process per run; each task gets its own browser context and
    page, closed when the task leaves the session block.
    """

    def __init__(self, config: CrawlConfig) -> None:
        self.config = config
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def start(self) -> None:
        os.environ.setdefault("PLAYWRIGHT_BROWSERS_PATH", str(app_data_dir() / "ms-playwright"))
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(headless=self.config.headless)
        except PlaywrightError as exc:
            await self._playwright.stop()
            self._playwright = None
            raise BackendUnavailableError(
                "Playwright Chromium is not available. Run: python -m playwright install chromium"
            ) from exc
        logger.info("Browser started (headless=%s)", self.config.headless)

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[PlaywrightPageDriver]:
        if self._browser is None:
            raise RuntimeError("PlaywrightDriverFactory.start() was not awaited")
        context = await self._browser.new_context(user_agent=self.config.user_agent)
        try:
            page = await context.new_page()
            yield PlaywrightPageDriver(page)
        finally:
            await context.close()
