"""
Page interaction protocol.

Drives one PageDriver through: navigate, wait for readiness, scroll to load
lazy content, read the page, collect category links, then follow the
next-page affordance until it disappears or ``max_pages`` is reached.

Only navigation and readiness failures fail the task. Scrolling, link
listing and pagination failures stop that step and keep what was read.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import List

from ..config import CrawlConfig
from ..errors import NavigationError
from .base import PageDriver

logger = logging.getLogger(__name__)


@dataclass
class PageHarvest:
    """What one task read from the site. Filled in step by step so a deadline keeps partial work."""
    url: str
    step: str = "pending"
    pages: List[str] = field(default_factory=list)
    page_urls: List[str] = field(default_factory=list)
    category_links: List[str] = field(default_factory=list)

    def add_page(self, page_url: str, content: str) -> None:
        self.page_urls.append(page_url)
        self.pages.append(content)


async def _pause(cfg: CrawlConfig) -> None:
    delay = random.uniform(cfg.scroll_delay_min, cfg.scroll_delay_max)
    if delay > 0:
        await asyncio.sleep(delay)


async def scroll_to_load(driver: PageDriver, cfg: CrawlConfig, url: str) -> int:
    """Run up to cfg.scroll_attempts scroll cycles. Returns the number that succeeded."""
    done = 0
    for attempt in range(cfg.scroll_attempts):
        try:
            await driver.scroll(timeout=cfg.step_timeout)
            await _pause(cfg)
        except Exception as exc:
            logger.warning("Scrolling stopped on %s at cycle %s: %r", url, attempt + 1, exc)
            break
        done += 1
    return done


async def paginate(driver: PageDriver, cfg: CrawlConfig, harvest: PageHarvest) -> None:
    while len(harvest.pages) < cfg.max_pages:
        try:
            if not await driver.has_next_page(cfg.next_page_selector):
                return
            await driver.click_next_page(cfg.next_page_selector, timeout=cfg.step_timeout)
            await _pause(cfg)
            content = await driver.content()
        except Exception as exc:
            logger.warning("Pagination stopped on %s after %s page(s): %r", harvest.url, len(harvest.pages), exc)
            return
        harvest.add_page(driver.url, content)
        logger.debug("Read page %s of %s", len(harvest.pages), harvest.url)
    logger.info("Pagination cap of %s pages reached for %s", cfg.max_pages, harvest.url)


async def run_protocol(driver: PageDriver, cfg: CrawlConfig, harvest: PageHarvest) -> PageHarvest:
    """
    Fill harvest by driving the page. Raises NavigationError if the page
    never loads or never becomes ready.
    """
    url = harvest.url
    try:
        harvest.step = "navigate"
        await driver.navigate(url, timeout=cfg.task_timeout)
        harvest.step = "wait_ready"
        await driver.wait_ready(cfg.ready_selector, timeout=cfg.task_timeout)
    except NavigationError:
        raise
    except Exception as exc:
        raise NavigationError(url, harvest.step, f"{harvest.step} failed for {url}: {exc!r}") from exc

    harvest.step = "scroll"
    await scroll_to_load(driver, cfg, url)

    harvest.step = "read_content"
    try:
        harvest.add_page(driver.url, await driver.content())
    except Exception as exc:
        raise NavigationError(url, harvest.step, f"reading content failed for {url}: {exc!r}") from exc

    if cfg.follow_categories:
        harvest.step = "list_categories"
        try:
            harvest.category_links = list(await driver.list_links(cfg.category_selector))
        except Exception as exc:
            logger.warning("Category link listing failed on %s: %r", url, exc)

    if cfg.enable_pagination:
        harvest.step = "paginate"
        await paginate(driver, cfg, harvest)

    harvest.step = "done"
    return harvest
