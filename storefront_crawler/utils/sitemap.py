from __future__ import annotations

import logging
import re
from typing import List, Optional

from aiohttp import ClientSession
from bs4 import BeautifulSoup

from .http import fetch_text
from .parsing import is_product_url
from ..errors import TransportFailure

logger = logging.getLogger(__name__)

_SITEMAP_LINE = re.compile(r"^\s*Sitemap:\s*(\S+)\s*$", re.IGNORECASE | re.MULTILINE)


async def check_robots_txt(
    session: ClientSession,
    base_url: str,
    *,
    timeout: float = 20.0,
    proxy: Optional[str] = None,
) -> List[str]:
    """Sitemap URLs advertised by ``robots.txt``; empty if unavailable."""
    robots_url = f"{base_url.rstrip('/')}/robots.txt"
    try:
        body = await fetch_text(session, robots_url, timeout=timeout, proxy=proxy, retries=2)
    except TransportFailure as exc:
        logger.warning("Failed to fetch robots.txt for %s: %s", base_url, exc)
        return []

    if "shopify" not in body.lower():
        logger.warning("%s may not be a Shopify store", base_url)

    return [u for u in _SITEMAP_LINE.findall(body) if "sitemap" in u or "xml" in u]


async def parse_sitemap(
    session: ClientSession,
    sitemap_url: str,
    *,
    timeout: float = 30.0,
    proxy: Optional[str] = None,
) -> List[str]:
    """Every ``<loc>`` of a sitemap or sitemap index."""
    try:
        body = await fetch_text(session, sitemap_url, timeout=timeout, proxy=proxy, retries=2)
    except TransportFailure as exc:
        logger.warning("Failed to parse sitemap %s: %s", sitemap_url, exc)
        return []

    soup = BeautifulSoup(body, "html.parser")
    urls = [loc.get_text(strip=True) for loc in soup.find_all("loc")]
    urls = [u for u in urls if u]
    logger.info("Extracted %s URLs from sitemap: %s", len(urls), sitemap_url)
    return urls


async def discover_product_urls(
    session: ClientSession,
    base_url: str,
    *,
    limit: Optional[int] = None,
    timeout: float = 30.0,
    proxy: Optional[str] = None,
) -> List[str]:
    """
    Product page URLs reachable from the store's sitemaps. Product
    sub-sitemaps of a sitemap index are followed one level deep.
    """
    found: List[str] = []
    seen: set[str] = set()
    for sitemap_url in await check_robots_txt(session, base_url, timeout=timeout, proxy=proxy):
        for loc in await parse_sitemap(session, sitemap_url, timeout=timeout, proxy=proxy):
            if loc.endswith(".xml") or "sitemap" in loc.rsplit("/", 1)[-1]:
                if "product" not in loc:
                    continue
                children = await parse_sitemap(session, loc, timeout=timeout, proxy=proxy)
            else:
                children = [loc]
            for url in children:
                if is_product_url(url) and url not in seen:
                    seen.add(url)
                    found.append(url)
                    if limit and len(found) >= limit:
                        return found
    return found
