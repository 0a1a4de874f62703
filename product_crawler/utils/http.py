from __future__ import annotations

import asyncio
from typing import Optional, Tuple
from aiohttp import ClientSession, ClientTimeout
import aiohttp
import logging

logger = logging.getLogger(__name__)


async def fetch_text(
    session: ClientSession,
    url: str,
    *,
    timeout: float = 15.0,
    user_agent: Optional[str] = None,
    retries: int = 2,
) -> Tuple[str, str]:
    """
    Fetch a URL and return (final_url, body text).
    Raises the last client error once all retries are exhausted.
    """
    headers = {}
    if user_agent:
        headers["User-Agent"] = user_agent

    last_exc: Optional[Exception] = None
    for attempt in range(retries + 1):
        try:
            async with session.get(url, headers=headers, timeout=ClientTimeout(total=timeout)) as resp:
                resp.raise_for_status()
                return str(resp.url), await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            last_exc = exc
            logger.debug("fetch_text attempt %s failed for %s: %r", attempt + 1, url, exc)
            if attempt < retries:
                await asyncio.sleep(min(2 ** attempt, 5))
    logger.warning("fetch_text failed for %s after %s attempts: %r", url, retries + 1, last_exc)
    assert last_exc is not None
    raise last_exc


def create_session() -> ClientSession:
    """
    Create an aiohttp ClientSession for one driver session.
    """
    # Note: caller is responsible for closing the session (await session.close()).
    connector = aiohttp.TCPConnector(limit=0)  # unlimited; concurrency managed by the worker pool
    return aiohttp.ClientSession(connector=connector)
