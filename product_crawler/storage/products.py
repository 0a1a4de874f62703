"""
Product URL persistence.

Writes are upsert-or-skip: a URL already in the store is reported as
``WriteOutcome.DUPLICATE``, never as an error. Transient database errors are
retried, then surfaced as ``StoreWriteError``.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Dict, List, Protocol

from sqlalchemy import create_engine, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..errors import BackendUnavailableError, ConfigurationError, StoreWriteError
from .models import Base, ProductURL

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductURLRecord:
    domain: str
    url: str


class WriteOutcome(enum.Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"


class ProductStore(Protocol):
    async def start(self) -> None:
        ...

    async def close(self) -> None:
        ...

    async def save(self, record: ProductURLRecord) -> WriteOutcome:
        ...


def normalize_database_url(url: str) -> str:
    """
    Normalize postgres URLs to SQLAlchemy's psycopg (v3) driver form.
    """
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


class SQLAlchemyProductStore:
    """
    ``product_urls`` table through a synchronous SQLAlchemy engine. Each write
    runs in a worker thread so the event loop keeps driving other tasks.
    """

    _INSERTS = {
        "postgresql": postgresql.insert,
        "sqlite": sqlite.insert,
    }

    def __init__(self, engine: Engine, *, retries: int = 2, retry_backoff: float = 0.5) -> None:
        self._engine = engine
        self._retries = max(0, retries)
        self._backoff = max(0.0, retry_backoff)
        try:
            self._insert = self._INSERTS[engine.dialect.name]
        except KeyError as exc:
            raise ConfigurationError(
                f"unsupported database dialect {engine.dialect.name!r}; use PostgreSQL or SQLite"
            ) from exc

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "SQLAlchemyProductStore":
        try:
            engine = create_engine(normalize_database_url(url), pool_pre_ping=True)
        except (SQLAlchemyError, ValueError) as exc:
            raise ConfigurationError(f"invalid database URL {url!r}: {exc}") from exc
        return cls(engine, **kwargs)

    async def start(self) -> None:
        try:
            await asyncio.to_thread(Base.metadata.create_all, self._engine)
        except SQLAlchemyError as exc:
            raise BackendUnavailableError(f"product store unreachable at startup: {exc}") from exc

    async def close(self) -> None:
        await asyncio.to_thread(self._engine.dispose)

    def _insert_or_skip(self, record: ProductURLRecord) -> WriteOutcome:
        stmt = (
            self._insert(ProductURL)
            .values(domain=record.domain, url=record.url)
            .on_conflict_do_nothing(index_elements=["url"])
        )
        with self._engine.begin() as conn:
            result = conn.execute(stmt)
        return WriteOutcome.INSERTED if result.rowcount else WriteOutcome.DUPLICATE

    async def save(self, record: ProductURLRecord) -> WriteOutcome:
        last_exc: SQLAlchemyError | None = None
        for attempt in range(self._retries + 1):
            try:
                return await asyncio.to_thread(self._insert_or_skip, record)
            except SQLAlchemyError as exc:
                last_exc = exc
                logger.debug("save attempt %s failed for %s: %r", attempt + 1, record.url, exc)
                if attempt < self._retries:
                    await asyncio.sleep(self._backoff * (2 ** attempt))
        raise StoreWriteError(record.url, f"failed to persist {record.url}: {last_exc}") from last_exc

    def count(self) -> int:
        with self._engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(ProductURL)).scalar_one()


class InMemoryProductStore:
    """Process-local store with the same upsert-or-skip contract."""

    def __init__(self) -> None:
        self._rows: Dict[str, ProductURLRecord] = {}

    async def start(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def save(self, record: ProductURLRecord) -> WriteOutcome:
        if record.url in self._rows:
            return WriteOutcome.DUPLICATE
        self._rows[record.url] = record
        return WriteOutcome.INSERTED

    @property
    def records(self) -> List[ProductURLRecord]:
        return list(self._rows.values())
