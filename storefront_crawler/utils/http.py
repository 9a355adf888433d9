from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional
from aiohttp import ClientSession, ClientTimeout
import aiohttp
import logging

from ..errors import TransportFailure

logger = logging.getLogger(__name__)

#: Statuses that mean the current network identity is being blocked.
BLOCKED_STATUSES = frozenset({401, 403, 429})


def _headers(user_agent: Optional[str], accept: Optional[str] = None) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    if user_agent:
        headers["User-Agent"] = user_agent
    if accept:
        headers["Accept"] = accept
    return headers


async def fetch_text(
    session: ClientSession,
    url: str,
    *,
    timeout: float = 30.0,
    user_agent: Optional[str] = None,
    proxy: Optional[str] = None,
    retries: int = 0,
) -> str:
    """
    Fetch a URL and return body text.
    Bodies that do not match their declared charset are decoded with
    replacement characters. Raises TransportFailure once every attempt has failed.
    """
    attempt = 0
    while True:
        try:
            async with session.get(
                url,
                headers=_headers(user_agent),
                proxy=proxy,
                timeout=ClientTimeout(total=timeout),
            ) as resp:
                if resp.status >= 400:
                    raise TransportFailure(url, f"HTTP {resp.status} for {url}", status=resp.status)
                return await resp.text(errors="replace")
        except TransportFailure as exc:
            failure = exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            failure = TransportFailure(url, f"{type(exc).__name__}: {exc}".rstrip(": "))
        logger.debug("fetch_text attempt %s failed for %s: %s", attempt + 1, url, failure)
        if attempt >= retries:
            raise failure
        await asyncio.sleep(min(2 ** attempt, 5))
        attempt += 1


async def fetch_json(
    session: ClientSession,
    url: str,
    *,
    timeout: float = 30.0,
    user_agent: Optional[str] = None,
    proxy: Optional[str] = None,
    retries: int = 2,
) -> Optional[Any]:
    """
    Fetch a URL and decode it as JSON. Returns None on non-200 responses,
    undecodable bodies, or failure after retries.
    """
    for attempt in range(retries + 1):
        try:
            async with session.get(
                url,
                headers=_headers(user_agent, "application/json"),
                proxy=proxy,
                timeout=ClientTimeout(total=timeout),
            ) as resp:
                if resp.status != 200:
                    logger.debug("fetch_json got HTTP %s for %s", resp.status, url)
                    # A definitive answer; only transport errors and 5xx are worth retrying.
                    if resp.status < 500:
                        return None
                else:
                    return await resp.json(content_type=None)
        except ValueError as exc:
            logger.debug("fetch_json could not decode %s: %r", url, exc)
            return None
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.debug("fetch_json attempt %s failed for %s: %r", attempt + 1, url, exc)
        if attempt < retries:
            await asyncio.sleep(min(2 ** attempt, 5))
    return None


def create_session(*, user_agent: Optional[str] = None) -> ClientSession:
    """
    Create an aiohttp ClientSession with its own cookie jar.
    """
    # Note: caller is responsible for closing the session (await session.close()).
    connector = aiohttp.TCPConnector(limit=0)  # unlimited; concurrency managed by the worker pool
    return aiohttp.ClientSession(
        connector=connector,
        cookie_jar=aiohttp.CookieJar(unsafe=True),
        headers=_headers(user_agent),
    )
