from __future__ import annotations

from typing import List, Protocol

from ..engines.base import CrawlResult


class Exporter(Protocol):
    """Result sink: receives the whole batch once the crawl has finished."""

    def export(self, results: List[CrawlResult], path: str) -> None:
        ...
