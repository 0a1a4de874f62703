"""
Construction and teardown of the crawler's collaborators.

Nothing here is module-level state: every run builds its own driver factory,
visited-URL gateway and product store, starts them and closes them
afterwards. A malformed backend URL is a ConfigurationError, a backend that
does not come up is a BackendUnavailableError; either way the crawl never
begins.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from .config import CrawlConfig
from .drivers.base import DriverFactory
from .engines.orchestrator import Orchestrator
from .storage.dedup import DedupGateway, InMemoryDedupGateway, RedisDedupGateway
from .storage.products import InMemoryProductStore, ProductStore, SQLAlchemyProductStore
from .utils.loader import load_symbol

logger = logging.getLogger(__name__)

MEMORY_URL = "memory://"


@dataclass
class Runtime:
    config: CrawlConfig
    drivers: DriverFactory
    dedup: DedupGateway
    store: ProductStore

    def orchestrator(self) -> Orchestrator:
        return Orchestrator(self.config, self.drivers, self.dedup, self.store)


def build_dedup(cfg: CrawlConfig) -> DedupGateway:
    if cfg.dedup_url.startswith(MEMORY_URL):
        return InMemoryDedupGateway(ttl=cfg.visited_ttl)
    return RedisDedupGateway.from_url(
        cfg.dedup_url,
        ttl=cfg.visited_ttl,
        key_prefix=cfg.dedup_key_prefix,
        fail_open=cfg.dedup_fail_open,
        op_timeout=cfg.step_timeout,
    )


def build_store(cfg: CrawlConfig) -> ProductStore:
    if cfg.database_url.startswith(MEMORY_URL):
        return InMemoryProductStore()
    return SQLAlchemyProductStore.from_url(
        cfg.database_url,
        retries=cfg.store_retries,
        retry_backoff=cfg.store_retry_backoff,
    )


def build_drivers(cfg: CrawlConfig) -> DriverFactory:
    factory_cls = load_symbol(cfg.driver)
    return factory_cls(cfg)


@asynccontextmanager
async def open_runtime(cfg: CrawlConfig) -> AsyncIterator[Runtime]:
    runtime = Runtime(
        config=cfg,
        drivers=build_drivers(cfg),
        dedup=build_dedup(cfg),
        store=build_store(cfg),
    )
    async with AsyncExitStack() as stack:
        for name, component in (("dedup", runtime.dedup), ("store", runtime.store), ("drivers", runtime.drivers)):
            stack.push_async_callback(component.close)
            await component.start()
            logger.debug("Started %s: %s", name, type(component).__name__)
        yield runtime
