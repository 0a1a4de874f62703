from __future__ import annotations

import logging
import os

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

# Libraries that are chatty at INFO/DEBUG and drown out per-task records.
_NOISY_LOGGERS = ("asyncio", "aiohttp.access", "sqlalchemy.engine")


def setup_logging(level: str | int | None = None) -> None:
    """
    Configure crawler logging once per process.
    Level comes from the argument, then CRAWLER_LOG_LEVEL, then INFO.
    """
    if level is None:
        level = os.getenv("CRAWLER_LOG_LEVEL", "INFO")

    if isinstance(level, str):
        level = _LEVELS.get(level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
