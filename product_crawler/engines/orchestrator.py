from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence, Set

from ..config import CrawlConfig
from ..drivers.base import DriverFactory
from ..storage.dedup import DedupGateway
from ..storage.products import ProductStore
from ..utils.parsing import domain_of, normalize_url
from .base import CrawlEngine, CrawlReport, CrawlTask, TaskOutcome, TaskStatus, aggregate
from .task import TaskRunner

logger = logging.getLogger(__name__)


class Orchestrator(CrawlEngine):
    """
    Concurrent crawl over a dynamically growing task queue.
    - A fixed pool of max_concurrency workers drains the queue, which also
      caps simultaneous page sessions regardless of recursion depth.
    - Every enqueue (seed or category link) increments the outstanding-work
      counter; every finished task decrements it. The run ends at zero.
    - Outcomes go to an unbounded results queue and are aggregated per seed
      only once all work is done.
    Collaborators are constructed and started by the caller.
    """
    def __init__(
        self,
        config: CrawlConfig,
        drivers: DriverFactory,
        dedup: DedupGateway,
        store: ProductStore,
    ) -> None:
        self.config = config
        self.drivers = drivers
        self.dedup = dedup
        self.store = store
        self._queue: Optional[asyncio.Queue[CrawlTask]] = None
        self._results: Optional[asyncio.Queue[TaskOutcome]] = None
        self._outstanding = 0
        self._idle: Optional[asyncio.Event] = None

    @property
    def outstanding(self) -> int:
        return self._outstanding

    def _allowed_domains(self, seeds: Sequence[str]) -> Set[str]:
        # Allowed domains: if not set, restrict each seed to its own domain.
        allowed: Set[str] = set(self.config.allowed_domains or [])
        if not allowed:
            allowed = {domain_of(s) for s in seeds}
        return allowed

    def _submit(self, task: CrawlTask) -> None:
        assert self._queue is not None
        self._outstanding += 1
        self._queue.put_nowait(task)

    def _finish(self, outcome: TaskOutcome) -> None:
        assert self._results is not None and self._idle is not None
        self._results.put_nowait(outcome)
        for link in outcome.category_links:
            self._submit(outcome.task.child(link))
        if outcome.category_links:
            logger.debug("Queued %s category link(s) from %s", len(outcome.category_links), outcome.task.url)
        # Children are counted before the parent is released, so zero means no work anywhere.
        self._outstanding -= 1
        if self._outstanding == 0:
            self._idle.set()

    async def _worker(self, runner: TaskRunner) -> None:
        assert self._queue is not None
        while True:
            task = await self._queue.get()
            try:
                outcome = await runner.run(task)
            except Exception as exc:
                # Bugs in a collaborator must not take down the pool or hang the counter.
                logger.exception("Unexpected error in task %s", task.url)
                outcome = TaskOutcome(task=task, status=TaskStatus.FAILED, error=repr(exc), failed_step="internal")
            finally:
                self._queue.task_done()
            self._finish(outcome)

    async def crawl(self, seeds: Sequence[str]) -> CrawlReport:
        cfg = self.config
        seeds = list(dict.fromkeys(normalize_url(s) for s in seeds))
        if not seeds:
            return CrawlReport()

        self._queue = asyncio.Queue()
        self._results = asyncio.Queue()
        self._idle = asyncio.Event()
        self._outstanding = 0

        runner = TaskRunner(cfg, self.drivers, self.dedup, self.store, self._allowed_domains(seeds))
        for seed in seeds:
            self._submit(CrawlTask(url=seed, seed=seed))

        logger.info(
            "Crawling %s seed(s) with %s worker(s), max_depth=%s, pagination=%s, categories=%s",
            len(seeds), cfg.max_concurrency, cfg.max_depth, cfg.enable_pagination, cfg.follow_categories,
        )
        workers = [asyncio.create_task(self._worker(runner)) for _ in range(cfg.max_concurrency)]
        try:
            await self._idle.wait()
        finally:
            for w in workers:
                w.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        outcomes: List[TaskOutcome] = []
        while not self._results.empty():
            outcomes.append(self._results.get_nowait())

        report = CrawlReport(results=aggregate(seeds, outcomes), outcomes=outcomes)
        logger.info(
            "Crawl finished: %s task(s) visited, %s skipped, %s failed, %s product URL(s)",
            report.visited_count, report.skipped_count, report.failed_count, report.product_count,
        )
        return report
