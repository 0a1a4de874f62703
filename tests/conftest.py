from __future__ import annotations

import pytest

from product_crawler.config import CrawlConfig
from product_crawler.storage.dedup import InMemoryDedupGateway
from product_crawler.storage.products import InMemoryProductStore


@pytest.fixture()
def cfg(tmp_path) -> CrawlConfig:
    """Fast config: no scroll delays, short timeouts, in-memory backends."""
    return CrawlConfig(
        start_urls=["https://shop.test/laptops"],
        max_depth=2,
        max_concurrency=3,
        task_timeout=5.0,
        step_timeout=1.0,
        scroll_attempts=2,
        scroll_delay_min=0.0,
        scroll_delay_max=0.0,
        dedup_url="memory://",
        database_url="memory://",
        driver="tests.fakes:ScriptedDriverFactory",
        output_path=str(tmp_path / "out" / "product_urls.json"),
    )


@pytest.fixture()
def dedup() -> InMemoryDedupGateway:
    return InMemoryDedupGateway()


@pytest.fixture()
def store() -> InMemoryProductStore:
    return InMemoryProductStore()
