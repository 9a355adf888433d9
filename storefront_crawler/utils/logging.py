from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Third-party loggers that drown out per-page progress at INFO.
_NOISY = ("aiohttp.access", "aiohttp.client", "asyncio")


def resolve_level(level: str | int | None) -> int:
    """Map a level name (or CRAWLER_LOG_LEVEL when unset) to a logging constant."""
    if level is None:
        level = os.getenv("CRAWLER_LOG_LEVEL", "INFO")
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(level: str | int | None = None) -> None:
    """
    Configure root logging for a crawl run. Progress lines go through the
    ``storefront_crawler.*`` loggers; library chatter stays at WARNING unless
    running at DEBUG.
    """
    resolved = resolve_level(level)
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    quiet = resolved > logging.DEBUG
    for name in _NOISY:
        logging.getLogger(name).setLevel(logging.WARNING if quiet else logging.NOTSET)
