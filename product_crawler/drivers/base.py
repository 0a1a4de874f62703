from __future__ import annotations

from typing import AsyncContextManager, List, Protocol


class PageDriver(Protocol):
    """
    One live page session. Implementations wrap a browser (or HTTP client)
    and expose only the primitives the interaction protocol needs.
    Timeouts are in seconds.
    """

    @property
    def url(self) -> str:
        """URL of the currently loaded page."""
        ...

    async def navigate(self, url: str, timeout: float) -> None:
        ...

    async def wait_ready(self, selector: str, timeout: float) -> None:
        ...

    async def scroll(self, timeout: float) -> None:
        """Scroll to the bottom once to trigger lazy-loaded content."""
        ...

    async def has_next_page(self, selector: str) -> bool:
        ...

    async def click_next_page(self, selector: str, timeout: float) -> None:
        """Activate the next-page affordance and wait for the re-render."""
        ...

    async def content(self) -> str:
        ...

    async def list_links(self, selector: str) -> List[str]:
        """Absolute hrefs of elements matching selector."""
        ...


class DriverFactory(Protocol):
    """
    Owns the shared browser process (if any) and hands out one session per task.
    session() must release the session on every exit path, including cancellation.
    """

    async def start(self) -> None:
        ...

    async def close(self) -> None:
        ...

    def session(self) -> AsyncContextManager[PageDriver]:
        ...
