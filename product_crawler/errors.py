from __future__ import annotations

from typing import Optional


class CrawlerError(Exception):
    """Base class for every error raised by the crawler."""


class ConfigurationError(CrawlerError):
    """Startup-time misconfiguration. Fatal: the process does not start."""


class BackendUnavailableError(ConfigurationError):
    """A configured backend (visited-URL store, product store, browser) failed to start."""


class NavigationError(CrawlerError):
    """
    A page could not be loaded or never became ready.
    Scoped to one task; the task yields an empty result.
    """

    def __init__(self, url: str, step: str, message: Optional[str] = None) -> None:
        self.url = url
        self.step = step
        super().__init__(message or f"{step} failed for {url}")


class DedupUnavailableError(CrawlerError):
    """The visited-URL store could not be reached."""


class StoreWriteError(CrawlerError):
    """A product URL could not be persisted after retries (distinct from a duplicate)."""

    def __init__(self, url: str, message: Optional[str] = None) -> None:
        self.url = url
        super().__init__(message or f"failed to persist {url}")
