from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Set

from ..config import CrawlConfig
from ..drivers.base import DriverFactory
from ..drivers.protocol import PageHarvest, run_protocol
from ..errors import NavigationError, StoreWriteError
from ..storage.dedup import DedupGateway
from ..storage.products import ProductStore, ProductURLRecord, WriteOutcome
from ..utils.parsing import domain_of, extract_product_urls, normalize_url
from .base import CrawlTask, TaskOutcome, TaskStatus

logger = logging.getLogger(__name__)


class TaskRunner:
    """
    Runs a single CrawlTask: claim the URL, drive a page session, extract
    product URLs, persist them and pick the category links worth following.
    Never raises for task-level problems; they end up on the TaskOutcome.
    """

    def __init__(
        self,
        config: CrawlConfig,
        drivers: DriverFactory,
        dedup: DedupGateway,
        store: ProductStore,
        allowed_domains: Set[str],
    ) -> None:
        self.config = config
        self.drivers = drivers
        self.dedup = dedup
        self.store = store
        self.allowed_domains = allowed_domains

    async def run(self, task: CrawlTask) -> TaskOutcome:
        if not await self.dedup.claim(task.url):
            logger.info("Skipping already crawled URL: %s", task.url)
            return TaskOutcome(task=task, status=TaskStatus.SKIPPED)

        harvest = PageHarvest(url=task.url)
        try:
            await self._interact(task, harvest)
        except NavigationError as exc:
            logger.error("Task failed at step %s for %s (seed %s): %s", exc.step, task.url, task.seed, exc)
            return TaskOutcome(task=task, status=TaskStatus.FAILED, error=str(exc), failed_step=exc.step)

        product_urls = self._extract(harvest)
        write_failures = await self._persist(task, product_urls)
        return TaskOutcome(
            task=task,
            status=TaskStatus.COMPLETED,
            product_urls=product_urls,
            category_links=self._follow_links(task, harvest.category_links),
            pages_read=len(harvest.pages),
            write_failures=write_failures,
        )

    async def _interact(self, task: CrawlTask, harvest: PageHarvest) -> None:
        """
        Run the page protocol under the per-task deadline. The session is
        released on every exit path, including cancellation by the deadline.
        """
        async def _drive() -> None:
            async with self.drivers.session() as driver:
                await run_protocol(driver, self.config, harvest)

        try:
            await asyncio.wait_for(_drive(), timeout=self.config.task_timeout)
        except asyncio.TimeoutError:
            if not harvest.pages:
                raise NavigationError(
                    task.url,
                    harvest.step,
                    f"timed out after {self.config.task_timeout}s during {harvest.step} for {task.url}",
                ) from None
            logger.warning(
                "Task deadline hit during %s for %s; keeping %s page(s)",
                harvest.step, task.url, len(harvest.pages),
            )

    def _extract(self, harvest: PageHarvest) -> List[str]:
        seen: Dict[str, None] = {}
        for page_url, content in zip(harvest.page_urls, harvest.pages):
            for url in extract_product_urls(content, page_url or harvest.url):
                seen.setdefault(url, None)
        return list(seen)

    async def _persist(self, task: CrawlTask, product_urls: List[str]) -> List[str]:
        failures: List[str] = []
        inserted = 0
        for url in product_urls:
            try:
                outcome = await self.store.save(ProductURLRecord(domain=task.domain, url=url))
            except StoreWriteError as exc:
                logger.error("Could not persist product URL %s: %s", url, exc)
                failures.append(url)
                continue
            if outcome is WriteOutcome.INSERTED:
                inserted += 1
            else:
                logger.debug("Product URL already stored: %s", url)
        logger.info(
            "%s: %s product URL(s), %s new, %s write failure(s)",
            task.url, len(product_urls), inserted, len(failures),
        )
        return failures

    def _follow_links(self, task: CrawlTask, links: List[str]) -> List[str]:
        if not self.config.follow_categories or task.depth >= self.config.max_depth:
            return []
        out: Dict[str, None] = {}
        for link in links:
            absolute = normalize_url(link)
            if absolute == task.url or not self._allowed(absolute):
                continue
            out.setdefault(absolute, None)
        return list(out)

    def _allowed(self, url: str) -> bool:
        if not url.startswith(("http://", "https://")):
            return False
        return domain_of(url) in self.allowed_domains
