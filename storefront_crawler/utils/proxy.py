from __future__ import annotations

import itertools
import logging
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


class ProxyConfiguration:
    """
    Resolves the opaque proxy descriptor from the crawl config into proxy URLs.

    Accepted descriptors: a single URL string, a list of URLs, or a mapping with
    ``proxy_urls`` / ``proxyUrls``. A session id gets the same proxy for its
    whole life; new sessions rotate round-robin through the list.
    """

    def __init__(self, proxy_urls: List[str]) -> None:
        if not proxy_urls:
            raise ValueError("ProxyConfiguration needs at least one proxy URL")
        self.proxy_urls = list(proxy_urls)
        self._cycle: Iterator[str] = itertools.cycle(self.proxy_urls)
        self._sticky: Dict[str, str] = {}

    @classmethod
    def from_descriptor(cls, descriptor: Any) -> Optional["ProxyConfiguration"]:
        if not descriptor:
            return None
        if isinstance(descriptor, str):
            urls = [descriptor]
        elif isinstance(descriptor, (list, tuple)):
            urls = [str(u) for u in descriptor if u]
        elif isinstance(descriptor, dict):
            if descriptor.get("useApifyProxy") and not descriptor.get("proxyUrls"):
                logger.warning("Hosted proxy groups are not available here; running without a proxy.")
                return None
            raw = descriptor.get("proxy_urls") or descriptor.get("proxyUrls") or []
            urls = [str(u) for u in raw if u]
        else:
            raise ValueError(f"Unsupported proxy configuration: {descriptor!r}")
        return cls(urls) if urls else None

    def new_url(self, session_id: Optional[str] = None) -> str:
        if session_id is None:
            return next(self._cycle)
        if session_id not in self._sticky:
            self._sticky[session_id] = next(self._cycle)
        return self._sticky[session_id]

    def forget(self, session_id: str) -> None:
        self._sticky.pop(session_id, None)
