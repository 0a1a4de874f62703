"""
StaticPageDriver against a local aiohttp server: real HTTP, no browser.
"""

from __future__ import annotations

import asyncio

from aiohttp import web
from aiohttp import test_utils

from product_crawler.config import CrawlConfig
from product_crawler.drivers.protocol import PageHarvest, run_protocol
from product_crawler.drivers.static import StaticDriverFactory
from product_crawler.errors import NavigationError

PAGES = {
    "1": '<main><a href="/dp/S1">a</a><a class="category-link" href="/c/phones">Phones</a>'
         '<a class="next-page" href="/list?page=2">Next</a></main>',
    "2": '<main><a href="/dp/S2">b</a><a class="next-page" href="/list?page=3">Next</a></main>',
    "3": '<main><a href="/dp/S3">c</a></main>',
}


async def _list(request: web.Request) -> web.Response:
    page = request.query.get("page", "1")
    return web.Response(text=f"<html><body>{PAGES[page]}</body></html>", content_type="text/html")


async def _bare(request: web.Request) -> web.Response:
    return web.Response(text="<html><head></head></html>", content_type="text/html")


def _app() -> web.Application:
    app = web.Application()
    app.router.add_get("/list", _list)
    app.router.add_get("/bare", _bare)
    return app


def _run(cfg: CrawlConfig, path: str) -> PageHarvest:
    async def _go() -> PageHarvest:
        server = test_utils.TestServer(_app())
        await server.start_server()
        try:
            factory = StaticDriverFactory(cfg)
            await factory.start()
            try:
                async with factory.session() as driver:
                    return await run_protocol(driver, cfg, PageHarvest(url=str(server.make_url(path))))
            finally:
                await factory.close()
        finally:
            await server.close()

    return asyncio.run(_go())


def test_static_driver_follows_next_links_and_lists_categories(cfg: CrawlConfig) -> None:
    cfg.ready_selector = "main"
    harvest = _run(cfg, "/list")

    assert len(harvest.pages) == 3
    assert [p.split("?")[-1] for p in harvest.page_urls[1:]] == ["page=2", "page=3"]
    assert "/dp/S3" in harvest.pages[-1]
    assert len(harvest.category_links) == 1
    assert harvest.category_links[0].endswith("/c/phones")


def test_static_driver_missing_ready_selector_is_navigation_failure(cfg: CrawlConfig) -> None:
    cfg.ready_selector = "main"
    try:
        _run(cfg, "/bare")
    except NavigationError as exc:
        assert exc.step == "wait_ready"
    else:
        raise AssertionError("expected NavigationError")
