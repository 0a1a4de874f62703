from __future__ import annotations

from dataclasses import dataclass, field, asdict, fields
from typing import List, Optional, Dict, Any
from pathlib import Path
import logging
import os
import json

from .errors import ConfigurationError
from .version import __version__, CONFIG_SCHEMA_VERSION

logger = logging.getLogger(__name__)

DEFAULT_DRIVER = "product_crawler.drivers.browser:PlaywrightDriverFactory"
DEFAULT_EXPORTER = "product_crawler.export.json_exporter:JSONExporter"


@dataclass
class CrawlConfig:
    """
    Canonical configuration object passed throughout the system.
    Keep it dataclass-only (no heavy deps) so every layer can import it.
    """
    schema_version: int = CONFIG_SCHEMA_VERSION
    start_urls: List[str] = field(default_factory=list)
    allowed_domains: Optional[List[str]] = None
    # Recursion and pool bounds. max_concurrency caps simultaneous browser sessions.
    max_depth: int = 2
    max_concurrency: int = 4
    follow_categories: bool = True
    enable_pagination: bool = True
    max_pages: int = 50
    # Page interaction
    task_timeout: float = 30.0
    step_timeout: float = 10.0
    scroll_attempts: int = 5
    scroll_delay_min: float = 2.0
    scroll_delay_max: float = 4.0
    ready_selector: str = "body"
    next_page_selector: str = "a.next-page"
    category_selector: str = "a.category-link"
    headless: bool = True
    user_agent: str = f"product_crawler/{__version__}"
    # Visited-URL store
    dedup_url: str = "redis://localhost:6379/0"
    dedup_key_prefix: str = "visited:"
    dedup_fail_open: bool = False
    visited_ttl: int = 24 * 60 * 60
    # Product URL store
    database_url: str = "postgresql+psycopg://postgres@localhost/crawler"
    store_retries: int = 2
    store_retry_backoff: float = 0.5
    # Dotted paths for driver/exporter to allow runtime swapping without code changes.
    driver: str = DEFAULT_DRIVER
    exporter: str = DEFAULT_EXPORTER
    output_path: str = "output/product_urls.json"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    # ---------- Loaders ----------

    @classmethod
    def from_env(cls) -> "CrawlConfig":
        """
        Build config from environment variables (all optional).
        """
        urls = os.getenv("CRAWLER_START_URLS", "")
        start_urls = [u.strip() for u in urls.split(",") if u.strip()]

        allowed = os.getenv("CRAWLER_ALLOWED_DOMAINS", "")
        allowed_domains = [d.strip() for d in allowed.split(",") if d.strip()] or None

        defaults = cls()

        def _get(name: str, default: Any) -> str:
            return os.getenv(name, str(default))

        def _flag(name: str, default: bool) -> bool:
            value = os.getenv(name)
            if value is None:
                return default
            return value.strip().lower() in {"1", "true", "yes", "on"}

        try:
            return cls(
                start_urls=start_urls,
                allowed_domains=allowed_domains,
                max_depth=int(_get("CRAWLER_MAX_DEPTH", defaults.max_depth)),
                max_concurrency=int(_get("CRAWLER_MAX_CONCURRENCY", defaults.max_concurrency)),
                follow_categories=_flag("CRAWLER_FOLLOW_CATEGORIES", defaults.follow_categories),
                enable_pagination=_flag("CRAWLER_ENABLE_PAGINATION", defaults.enable_pagination),
                max_pages=int(_get("CRAWLER_MAX_PAGES", defaults.max_pages)),
                task_timeout=float(_get("CRAWLER_TASK_TIMEOUT", defaults.task_timeout)),
                step_timeout=float(_get("CRAWLER_STEP_TIMEOUT", defaults.step_timeout)),
                scroll_attempts=int(_get("CRAWLER_SCROLL_ATTEMPTS", defaults.scroll_attempts)),
                scroll_delay_min=float(_get("CRAWLER_SCROLL_DELAY_MIN", defaults.scroll_delay_min)),
                scroll_delay_max=float(_get("CRAWLER_SCROLL_DELAY_MAX", defaults.scroll_delay_max)),
                ready_selector=_get("CRAWLER_READY_SELECTOR", defaults.ready_selector),
                next_page_selector=_get("CRAWLER_NEXT_PAGE_SELECTOR", defaults.next_page_selector),
                category_selector=_get("CRAWLER_CATEGORY_SELECTOR", defaults.category_selector),
                headless=_flag("CRAWLER_HEADLESS", defaults.headless),
                user_agent=_get("CRAWLER_USER_AGENT", defaults.user_agent),
                dedup_url=_get("CRAWLER_DEDUP_URL", defaults.dedup_url),
                dedup_key_prefix=_get("CRAWLER_DEDUP_KEY_PREFIX", defaults.dedup_key_prefix),
                dedup_fail_open=_flag("CRAWLER_DEDUP_FAIL_OPEN", defaults.dedup_fail_open),
                visited_ttl=int(_get("CRAWLER_VISITED_TTL", defaults.visited_ttl)),
                database_url=_get("CRAWLER_DATABASE_URL", defaults.database_url),
                store_retries=int(_get("CRAWLER_STORE_RETRIES", defaults.store_retries)),
                store_retry_backoff=float(_get("CRAWLER_STORE_RETRY_BACKOFF", defaults.store_retry_backoff)),
                driver=_get("CRAWLER_DRIVER", defaults.driver),
                exporter=_get("CRAWLER_EXPORTER", defaults.exporter),
                output_path=_get("CRAWLER_OUTPUT_PATH", defaults.output_path),
            )
        except ValueError as exc:
            raise ConfigurationError(f"invalid CRAWLER_* environment value: {exc}") from exc

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> "CrawlConfig":
        """
        Load configuration from a JSON file. Older schema versions are migrated first.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"cannot read config file {path}: {exc}") from exc
        data = migrate_config(data)
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"unknown config keys in {path}: {', '.join(unknown)}")
        return cls(**data)

    # ---------- Validation ----------

    def validate(self) -> None:
        if not self.start_urls:
            raise ConfigurationError("start_urls cannot be empty; provide at least one URL.")
        if self.max_depth < 0:
            raise ConfigurationError("max_depth must be >= 0")
        if self.max_concurrency <= 0:
            raise ConfigurationError("max_concurrency must be > 0")
        if self.max_pages <= 0:
            raise ConfigurationError("max_pages must be > 0")
        if self.task_timeout <= 0 or self.step_timeout <= 0:
            raise ConfigurationError("task_timeout and step_timeout must be > 0")
        if self.scroll_attempts < 0:
            raise ConfigurationError("scroll_attempts must be >= 0")
        if not 0 <= self.scroll_delay_min <= self.scroll_delay_max:
            raise ConfigurationError("scroll delay range must satisfy 0 <= min <= max")
        if self.visited_ttl <= 0:
            raise ConfigurationError("visited_ttl must be > 0")
        if self.store_retries < 0:
            raise ConfigurationError("store_retries must be >= 0")
        # Validate output path parent exists or is creatable
        parent = Path(self.output_path).parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ConfigurationError(f"cannot create output directory {parent}: {exc}") from exc


def migrate_config(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Migrate config dict to the latest schema version.
    Keep this pure and additive. Add migrations here as you bump schema.
    """
    data = dict(raw)
    schema = data.get("schema_version", 1)

    if schema < 2:
        # v1 files listed seeds under "domains".
        if "domains" in data:
            data.setdefault("start_urls", data.pop("domains"))
        logger.debug("Migrated config from schema %s to %s", schema, CONFIG_SCHEMA_VERSION)

    data["schema_version"] = CONFIG_SCHEMA_VERSION
    return data
