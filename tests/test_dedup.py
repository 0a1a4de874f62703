from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from product_crawler.engines.orchestrator import Orchestrator
from product_crawler.errors import BackendUnavailableError, ConfigurationError
from product_crawler.storage.dedup import InMemoryDedupGateway, RedisDedupGateway

from .fakes import FakePage, ScriptedDriverFactory, listing


class RecordingRedis:
    """Minimal async client double honouring SET NX EX semantics."""

    def __init__(self, *, down: bool = False, hang: bool = False) -> None:
        self.down = down
        self.hang = hang
        self.data: Dict[str, object] = {}
        self.calls: List[dict] = []
        self.closed = False

    async def ping(self) -> bool:
        if self.hang:
            await asyncio.Event().wait()
        if self.down:
            raise RedisConnectionError("Connection refused")
        return True

    async def set(self, key: str, value: object, nx: bool = False, ex: Optional[int] = None) -> Optional[bool]:
        self.calls.append({"key": key, "value": value, "nx": nx, "ex": ex})
        await asyncio.sleep(0)
        if self.hang:
            await asyncio.Event().wait()
        if self.down:
            raise RedisConnectionError("Connection refused")
        if nx and key in self.data:
            return None
        self.data[key] = value
        return True

    async def aclose(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


# ---------------------------------------------------------------------------
# In-memory gateway
# ---------------------------------------------------------------------------


def test_concurrent_claims_yield_exactly_one_winner(dedup: InMemoryDedupGateway) -> None:
    async def _run() -> List[bool]:
        return await asyncio.gather(*(dedup.claim("https://shop.test/c/a") for _ in range(2)))

    assert sorted(asyncio.run(_run())) == [False, True]


def test_many_concurrent_claims_on_many_urls(dedup: InMemoryDedupGateway) -> None:
    urls = [f"https://shop.test/c/{i}" for i in range(5)]

    async def _run() -> List[bool]:
        return await asyncio.gather(*(dedup.claim(u) for u in urls * 4))

    results = asyncio.run(_run())
    assert results.count(True) == len(urls)


def test_claim_expires_after_ttl() -> None:
    clock = FakeClock()
    gateway = InMemoryDedupGateway(ttl=60, clock=clock)

    assert asyncio.run(gateway.claim("https://shop.test/a")) is True
    clock.now += 59
    assert asyncio.run(gateway.claim("https://shop.test/a")) is False
    assert gateway.is_claimed("https://shop.test/a")
    clock.now += 2
    assert not gateway.is_claimed("https://shop.test/a")
    assert asyncio.run(gateway.claim("https://shop.test/a")) is True


# ---------------------------------------------------------------------------
# Redis gateway
# ---------------------------------------------------------------------------


def test_redis_claim_uses_single_conditional_set_with_ttl() -> None:
    client = RecordingRedis()
    gateway = RedisDedupGateway(client, ttl=3600, key_prefix="visited:")

    assert asyncio.run(gateway.claim("https://shop.test/a")) is True
    assert client.calls == [{"key": "visited:https://shop.test/a", "value": 1, "nx": True, "ex": 3600}]


def test_redis_concurrent_claims_yield_exactly_one_winner() -> None:
    gateway = RedisDedupGateway(RecordingRedis())

    async def _run() -> List[bool]:
        return await asyncio.gather(gateway.claim("https://shop.test/a"), gateway.claim("https://shop.test/a"))

    assert sorted(asyncio.run(_run())) == [False, True]


def test_redis_outage_fails_closed_by_default(caplog: pytest.LogCaptureFixture) -> None:
    gateway = RedisDedupGateway(RecordingRedis(down=True))

    with caplog.at_level(logging.WARNING, logger="product_crawler.storage.dedup"):
        assert asyncio.run(gateway.claim("https://shop.test/a")) is False

    assert "degraded mode (fail-closed)" in caplog.text


def test_redis_outage_can_fail_open() -> None:
    gateway = RedisDedupGateway(RecordingRedis(down=True), fail_open=True)
    assert asyncio.run(gateway.claim("https://shop.test/a")) is True


def test_redis_unreachable_at_startup_is_fatal() -> None:
    gateway = RedisDedupGateway(RecordingRedis(down=True))
    with pytest.raises(BackendUnavailableError):
        asyncio.run(gateway.start())


def test_redis_close_releases_client() -> None:
    client = RecordingRedis()
    gateway = RedisDedupGateway(client)

    async def _run() -> None:
        await gateway.start()
        await gateway.close()

    asyncio.run(_run())
    assert client.closed


def test_redis_stall_fails_closed_within_timeout(caplog: pytest.LogCaptureFixture) -> None:
    client = RecordingRedis(hang=True)
    gateway = RedisDedupGateway(client, op_timeout=0.05)

    async def _run() -> bool:
        # The outer bound only guards the test; the gateway must answer first.
        return await asyncio.wait_for(gateway.claim("https://shop.test/a"), timeout=2)

    with caplog.at_level(logging.WARNING, logger="product_crawler.storage.dedup"):
        assert asyncio.run(_run()) is False

    assert len(client.calls) == 1
    assert "degraded mode (fail-closed)" in caplog.text


def test_redis_stall_can_fail_open() -> None:
    gateway = RedisDedupGateway(RecordingRedis(hang=True), op_timeout=0.05, fail_open=True)
    assert asyncio.run(gateway.claim("https://shop.test/a")) is True


def test_redis_stall_at_startup_is_fatal() -> None:
    gateway = RedisDedupGateway(RecordingRedis(hang=True), op_timeout=0.05)
    with pytest.raises(BackendUnavailableError):
        asyncio.run(gateway.start())


def test_stalled_redis_does_not_hang_the_crawl(cfg, store) -> None:
    cfg.max_concurrency = 2
    gateway = RedisDedupGateway(RecordingRedis(hang=True), op_timeout=0.05)
    factory = ScriptedDriverFactory(cfg, site={"https://shop.test/a": FakePage(html=listing("/dp/A1"))})
    orchestrator = Orchestrator(cfg, factory, gateway, store)

    report = asyncio.run(asyncio.wait_for(orchestrator.crawl(["https://shop.test/a"]), timeout=5))

    assert report.skipped_count == 1
    assert report.results[0].urls == ()
    assert factory.opened == 0


def test_from_url_bounds_socket_operations() -> None:
    gateway = RedisDedupGateway.from_url("redis://localhost:6379/0", op_timeout=3.0)
    kwargs = gateway._client.connection_pool.connection_kwargs
    assert kwargs["socket_timeout"] == 3.0
    assert kwargs["socket_connect_timeout"] == 3.0


def test_from_url_rejects_non_redis_scheme() -> None:
    with pytest.raises(ConfigurationError):
        RedisDedupGateway.from_url("http://localhost:6379")
