from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
from abc import ABC, abstractmethod

from ..utils.parsing import domain_of


@dataclass(frozen=True)
class CrawlTask:
    """
    One URL to visit. Seed tasks have depth 0; tasks created from category
    links carry the seed they descend from and a depth > 0.
    """
    url: str
    seed: str
    depth: int = 0

    @property
    def domain(self) -> str:
        return domain_of(self.seed)

    @property
    def is_seed(self) -> bool:
        return self.depth == 0

    def child(self, url: str) -> "CrawlTask":
        return CrawlTask(url=url, seed=self.seed, depth=self.depth + 1)


class TaskStatus(enum.Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class TaskOutcome:
    task: CrawlTask
    status: TaskStatus
    product_urls: List[str] = field(default_factory=list)
    category_links: List[str] = field(default_factory=list)
    pages_read: int = 0
    error: Optional[str] = None
    failed_step: Optional[str] = None
    write_failures: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class CrawlResult:
    """Product URLs found under one seed (the seed task and all its descendants)."""
    seed: str
    domain: str
    urls: Tuple[str, ...]

    def to_dict(self) -> Dict[str, object]:
        return {"domain": self.domain, "seed": self.seed, "urls": list(self.urls)}


@dataclass
class CrawlReport:
    results: List[CrawlResult] = field(default_factory=list)
    outcomes: List[TaskOutcome] = field(default_factory=list)

    def _count(self, status: TaskStatus) -> int:
        return sum(1 for o in self.outcomes if o.status is status)

    @property
    def visited_count(self) -> int:
        return self._count(TaskStatus.COMPLETED) + self._count(TaskStatus.FAILED)

    @property
    def skipped_count(self) -> int:
        return self._count(TaskStatus.SKIPPED)

    @property
    def failed_count(self) -> int:
        return self._count(TaskStatus.FAILED)

    @property
    def product_count(self) -> int:
        return sum(len(r.urls) for r in self.results)

    def to_dict(self) -> Dict[str, object]:
        return {
            "visited": self.visited_count,
            "skipped": self.skipped_count,
            "failed": self.failed_count,
            "results": [r.to_dict() for r in self.results],
        }


def aggregate(seeds: Sequence[str], outcomes: Sequence[TaskOutcome]) -> List[CrawlResult]:
    """
    Fold task outcomes into one result per seed, in seed order. Seeds whose
    tasks were skipped or failed still get an entry with no URLs.
    """
    by_seed: Dict[str, Dict[str, None]] = {seed: {} for seed in seeds}
    for outcome in outcomes:
        urls = by_seed.setdefault(outcome.task.seed, {})
        for url in outcome.product_urls:
            urls.setdefault(url, None)
    return [
        CrawlResult(seed=seed, domain=domain_of(seed), urls=tuple(sorted(urls)))
        for seed, urls in by_seed.items()
    ]


class CrawlEngine(ABC):
    """
    Abstract engine interface. Implementations own the crawl lifecycle.
    """
    @abstractmethod
    async def crawl(self, seeds: Sequence[str]) -> CrawlReport:  # pragma: no cover - interface
        ...
