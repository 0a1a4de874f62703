from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from ..config import CrawlConfig
from ..errors import BackendUnavailableError, ConfigurationError
from ..runtime import open_runtime
from ..version import __version__

logger = logging.getLogger(__name__)

app = FastAPI(title="product_crawler API", version=__version__)


class CrawlRequest(BaseModel):
    start_urls: List[str]
    max_depth: Optional[int] = None
    max_concurrency: Optional[int] = None
    max_pages: Optional[int] = None
    allowed_domains: Optional[List[str]] = None
    follow_categories: Optional[bool] = None
    enable_pagination: Optional[bool] = None
    driver: Optional[str] = None


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok", "version": __version__}


def _config_for(req: CrawlRequest) -> CrawlConfig:
    cfg = CrawlConfig.from_env()
    cfg.start_urls = req.start_urls or cfg.start_urls
    if req.max_depth is not None:
        cfg.max_depth = req.max_depth
    if req.max_concurrency is not None:
        cfg.max_concurrency = req.max_concurrency
    if req.max_pages is not None:
        cfg.max_pages = req.max_pages
    if req.allowed_domains is not None:
        cfg.allowed_domains = req.allowed_domains
    if req.follow_categories is not None:
        cfg.follow_categories = req.follow_categories
    if req.enable_pagination is not None:
        cfg.enable_pagination = req.enable_pagination
    if req.driver:
        cfg.driver = req.driver
    cfg.validate()
    return cfg


@app.post("/crawl")
async def crawl(req: CrawlRequest) -> Dict[str, Any]:
    try:
        cfg = _config_for(req)
        async with open_runtime(cfg) as runtime:
            report = await runtime.orchestrator().crawl(cfg.start_urls)
    except BackendUnavailableError as exc:
        logger.error("Crawl backend unavailable: %s", exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ConfigurationError as exc:
        logger.error("Rejected crawl request: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return report.to_dict()
