from __future__ import annotations

from typing import Optional


class CrawlerError(Exception):
    """Base class for every error raised by the crawler."""


class ConfigurationError(CrawlerError, ValueError):
    """The configuration cannot produce a runnable crawl (e.g. no seed URLs)."""


class StrategyMiss(CrawlerError):
    """An extraction strategy found nothing usable on a page.

    Always absorbed by the strategy chain, never surfaced to callers.
    """


class TransportFailure(CrawlerError):
    """A network fetch failed, timed out or returned an error status."""

    def __init__(self, url: str, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class TerminalPageFailure(CrawlerError):
    """A page exhausted its retry budget."""

    def __init__(self, url: str, message: str, retries: int) -> None:
        super().__init__(message)
        self.url = url
        self.retries = retries


class FatalError(CrawlerError):
    """Unrecoverable condition; the whole run is reported as failed."""
