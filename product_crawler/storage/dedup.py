"""
Visited-URL claims.

A claim is the only admission control for crawl tasks: a task proceeds to the
browser only when ``claim(url)`` returns True. Claims expire after a TTL so a
later run may revisit the URL.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, Optional, Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ..errors import BackendUnavailableError, ConfigurationError, DedupUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_TTL = 24 * 60 * 60
DEFAULT_OP_TIMEOUT = 5.0


class DedupGateway(Protocol):
    """
    Interface for visited-URL stores.
    claim() must be atomic: of two concurrent claims on one URL exactly one is True.
    """

    async def start(self) -> None:
        ...

    async def close(self) -> None:
        ...

    async def claim(self, url: str) -> bool:
        ...


class RedisDedupGateway:
    """
    Claims backed by a single ``SET key 1 NX EX ttl`` round trip.

    When Redis cannot be reached mid-run, or does not answer within
    ``op_timeout`` seconds, the gateway falls back to its policy: fail closed
    (default) treats the URL as already claimed so no duplicate browser
    sessions start, fail open lets the task proceed.
    """

    def __init__(
        self,
        client: "aioredis.Redis",
        *,
        ttl: int = DEFAULT_TTL,
        key_prefix: str = "visited:",
        fail_open: bool = False,
        op_timeout: float = DEFAULT_OP_TIMEOUT,
    ) -> None:
        self._client = client
        self._ttl = ttl
        self._prefix = key_prefix
        self._fail_open = fail_open
        self._op_timeout = op_timeout

    @classmethod
    def from_url(cls, url: str, *, op_timeout: float = DEFAULT_OP_TIMEOUT, **kwargs) -> "RedisDedupGateway":
        try:
            client = aioredis.Redis.from_url(
                url,
                socket_timeout=op_timeout,
                socket_connect_timeout=op_timeout,
            )
        except ValueError as exc:
            raise ConfigurationError(f"invalid visited-URL store URL {url!r}: {exc}") from exc
        return cls(client, op_timeout=op_timeout, **kwargs)

    def key(self, url: str) -> str:
        return f"{self._prefix}{url}"

    async def start(self) -> None:
        try:
            await asyncio.wait_for(self._client.ping(), timeout=self._op_timeout)
        except (RedisError, asyncio.TimeoutError) as exc:
            raise BackendUnavailableError(f"visited-URL store unreachable at startup: {exc!r}") from exc

    async def close(self) -> None:
        await self._client.aclose()

    async def _set_if_absent(self, url: str) -> bool:
        try:
            # SET returns True when the key was written, None when NX refused it.
            written = await asyncio.wait_for(
                self._client.set(self.key(url), 1, nx=True, ex=self._ttl),
                timeout=self._op_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise DedupUnavailableError(f"no reply within {self._op_timeout}s") from exc
        except RedisError as exc:
            raise DedupUnavailableError(str(exc)) from exc
        return bool(written)

    async def claim(self, url: str) -> bool:
        try:
            return await self._set_if_absent(url)
        except DedupUnavailableError as exc:
            logger.warning(
                "Dedup store unavailable, degraded mode (fail-%s) for %s: %s",
                "open" if self._fail_open else "closed",
                url,
                exc,
            )
            return self._fail_open


class InMemoryDedupGateway:
    """
    Process-local claims with the same contract, for dry runs and tests.
    claim() never awaits between the check and the write, so it is atomic
    within one event loop.
    """

    def __init__(self, *, ttl: int = DEFAULT_TTL, clock: Optional[Callable[[], float]] = None) -> None:
        self._ttl = ttl
        self._clock = clock or time.monotonic
        self._claims: Dict[str, float] = {}

    async def start(self) -> None:
        return None

    async def close(self) -> None:
        self._claims.clear()

    def is_claimed(self, url: str) -> bool:
        expiry = self._claims.get(url)
        return expiry is not None and expiry > self._clock()

    async def claim(self, url: str) -> bool:
        if self.is_claimed(url):
            return False
        self._claims[url] = self._clock() + self._ttl
        return True
