from __future__ import annotations

import argparse
import asyncio
import logging
from typing import List

from ..config import CrawlConfig
from ..engines.base import CrawlReport
from ..errors import ConfigurationError
from ..export.base import Exporter
from ..runtime import open_runtime
from ..utils.logging import setup_logging
from ..utils.loader import load_symbol

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 2


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Product URL crawler CLI")
    p.add_argument("urls", nargs="*", help="Seed URLs (space-separated)")
    p.add_argument("--config", type=str, help="Path to config JSON", default=None)
    p.add_argument("--max-depth", type=int, default=None, help="Max category recursion depth (default from config)")
    p.add_argument("--max-concurrency", type=int, default=None,
                   help="Worker pool size, i.e. max simultaneous page sessions (default from config)")
    p.add_argument("--max-pages", type=int, default=None, help="Max pages followed through pagination per task")
    p.add_argument("--task-timeout", type=float, default=None, help="Per-task timeout in seconds")
    p.add_argument("--scroll-attempts", type=int, default=None, help="Scroll cycles per page")
    p.add_argument("--allowed-domains", type=str, default=None,
                   help="Comma-separated list of allowed domains (default restricts to each seed's domain)")
    p.add_argument("--no-pagination", action="store_true", help="Do not follow next-page links")
    p.add_argument("--no-categories", action="store_true", help="Do not follow category links")
    p.add_argument("--dedup-url", type=str, default=None, help="Redis URL for visited claims, or memory://")
    p.add_argument("--database-url", type=str, default=None, help="SQLAlchemy URL for product URLs, or memory://")
    p.add_argument("--driver", type=str, default=None, help="Driver factory dotted path (module:ClassName)")
    p.add_argument("--exporter", type=str, default=None, help="Exporter dotted path (module:ClassName)")
    p.add_argument("--output", type=str, default=None, help="Output file path")
    p.add_argument("--log-level", type=str, default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
    p.add_argument("--serve", action="store_true", help="Run REST API server instead of CLI crawl")
    p.add_argument("--host", type=str, default="127.0.0.1", help="API host (when --serve)")
    p.add_argument("--port", type=int, default=8000, help="API port (when --serve)")
    return p


def _load_config(args: argparse.Namespace) -> CrawlConfig:
    if args.config:
        cfg = CrawlConfig.from_file(args.config)
    else:
        cfg = CrawlConfig.from_env()

    if args.urls:
        cfg.start_urls = list(args.urls)
    if args.max_depth is not None:
        cfg.max_depth = args.max_depth
    if args.max_concurrency is not None:
        cfg.max_concurrency = args.max_concurrency
    if args.max_pages is not None:
        cfg.max_pages = args.max_pages
    if args.task_timeout is not None:
        cfg.task_timeout = args.task_timeout
    if args.scroll_attempts is not None:
        cfg.scroll_attempts = args.scroll_attempts
    if args.allowed_domains:
        cfg.allowed_domains = [d.strip() for d in args.allowed_domains.split(",") if d.strip()]
    if args.no_pagination:
        cfg.enable_pagination = False
    if args.no_categories:
        cfg.follow_categories = False
    if args.dedup_url:
        cfg.dedup_url = args.dedup_url
    if args.database_url:
        cfg.database_url = args.database_url
    if args.driver:
        cfg.driver = args.driver
    if args.exporter:
        cfg.exporter = args.exporter
    if args.output:
        cfg.output_path = args.output

    cfg.validate()
    return cfg


def run_server(host: str, port: int) -> None:
    import uvicorn

    uvicorn.run("product_crawler.apis.app:app", host=host, port=port)


async def crawl(cfg: CrawlConfig) -> CrawlReport:
    async with open_runtime(cfg) as runtime:
        return await runtime.orchestrator().crawl(cfg.start_urls)


def run_cli(argv: List[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level)

    if args.serve:
        run_server(args.host, args.port)
        return 0

    try:
        cfg = _load_config(args)
        # Resolve the exporter before crawling so a bad path fails at startup.
        exporter_cls = load_symbol(cfg.exporter)
        report = asyncio.run(crawl(cfg))
    except ConfigurationError as exc:
        logger.critical("Startup failed: %s", exc)
        return EXIT_CONFIG_ERROR

    exporter: Exporter = exporter_cls()
    exporter.export(report.results, cfg.output_path)

    logger.info("Visited: %s | Skipped: %s | Failed: %s | Products: %s | Output: %s",
                report.visited_count,
                report.skipped_count,
                report.failed_count,
                report.product_count,
                cfg.output_path)
    return 0
