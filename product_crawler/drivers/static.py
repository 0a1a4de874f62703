from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from aiohttp import ClientSession

from ..config import CrawlConfig
from ..errors import NavigationError
from ..utils.http import create_session, fetch_text
from ..utils.parsing import extract_links, first_href, has_element

logger = logging.getLogger(__name__)


class StaticPageDriver:
    """
    PageDriver for server-rendered sites: plain HTTP via aiohttp, markup
    queried with BeautifulSoup. Scrolling is a no-op and "clicking" the next
    page fetches the affordance's href.
    """

    def __init__(self, session: ClientSession, *, user_agent: Optional[str] = None, retries: int = 1) -> None:
        self._session = session
        self._user_agent = user_agent
        self._retries = retries
        self._url = ""
        self._html = ""

    @property
    def url(self) -> str:
        return self._url

    async def _load(self, url: str, timeout: float) -> None:
        self._url, self._html = await fetch_text(
            self._session,
            url,
            timeout=timeout,
            user_agent=self._user_agent,
            retries=self._retries,
        )

    async def navigate(self, url: str, timeout: float) -> None:
        await self._load(url, timeout)

    async def wait_ready(self, selector: str, timeout: float) -> None:
        if not has_element(self._html, selector):
            raise NavigationError(self._url, "wait_ready", f"{selector!r} not present on {self._url}")

    async def scroll(self, timeout: float) -> None:
        return None

    async def has_next_page(self, selector: str) -> bool:
        return first_href(self._html, self._url, selector) is not None

    async def click_next_page(self, selector: str, timeout: float) -> None:
        href = first_href(self._html, self._url, selector)
        if href is None:
            raise LookupError(f"no next-page link matching {selector!r} on {self._url}")
        await self._load(href, timeout)

    async def content(self) -> str:
        return self._html

    async def list_links(self, selector: str) -> List[str]:
        return extract_links(self._html, self._url, selector)


class StaticDriverFactory:
    """Hands out one aiohttp-backed driver per task."""

    def __init__(self, config: CrawlConfig) -> None:
        self.config = config

    async def start(self) -> None:
        return None

    async def close(self) -> None:
        return None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[StaticPageDriver]:
        session = create_session()
        try:
            yield StaticPageDriver(session, user_agent=self.config.user_agent)
        finally:
            await session.close()
