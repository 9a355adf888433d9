from __future__ import annotations

import itertools
import logging
import random
from dataclasses import dataclass, field
from typing import List, Optional

from aiohttp import ClientSession

from ..utils.http import create_session
from ..utils.proxy import ProxyConfiguration

logger = logging.getLogger(__name__)

_ids = itertools.count(1)


@dataclass
class CrawlSession:
    """A network identity: one proxy plus one cookie jar."""

    id: str
    client: ClientSession
    proxy_url: Optional[str] = None
    error_score: int = 0
    usage_count: int = 0
    in_flight: int = 0
    retired: bool = False

    def mark_good(self) -> None:
        # Successful requests slowly heal the error score.
        self.error_score = max(self.error_score - 1, 0)

    def mark_bad(self) -> None:
        self.error_score += 1

    def retire(self) -> None:
        self.retired = True


class SessionPool:
    """
    Bounded pool of sessions. A session is retired once its error score or
    usage count reaches the threshold, and its client is closed when the last
    request using it is released.
    """

    def __init__(
        self,
        *,
        max_pool_size: int = 20,
        max_error_score: int = 3,
        max_usage_count: int = 50,
        proxy: Optional[ProxyConfiguration] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        self.max_pool_size = max_pool_size
        self.max_error_score = max_error_score
        self.max_usage_count = max_usage_count
        self.proxy = proxy
        self.user_agent = user_agent
        self._sessions: List[CrawlSession] = []
        self.retired_count = 0

    @property
    def sessions(self) -> List[CrawlSession]:
        return list(self._sessions)

    def _new_session(self) -> CrawlSession:
        session_id = f"session_{next(_ids)}"
        session = CrawlSession(
            id=session_id,
            client=create_session(user_agent=self.user_agent),
            proxy_url=self.proxy.new_url(session_id) if self.proxy else None,
        )
        self._sessions.append(session)
        logger.debug("Opened %s (proxy=%s)", session.id, session.proxy_url)
        return session

    def _usable(self, session: CrawlSession) -> bool:
        return (
            not session.retired
            and session.error_score < self.max_error_score
            and session.usage_count < self.max_usage_count
        )

    def acquire(self) -> CrawlSession:
        usable = [s for s in self._sessions if self._usable(s)]
        if len(usable) < self.max_pool_size:
            session = self._new_session()
        else:
            session = random.choice(usable)
        session.usage_count += 1
        session.in_flight += 1
        return session

    async def release(self, session: CrawlSession) -> None:
        session.in_flight -= 1
        if session.retired or not self._usable(session):
            await self._retire(session)

    async def _retire(self, session: CrawlSession) -> None:
        if not session.retired:
            session.retire()
        if session.in_flight > 0 or session not in self._sessions:
            return
        self._sessions.remove(session)
        self.retired_count += 1
        if self.proxy:
            self.proxy.forget(session.id)
        logger.debug(
            "Retired %s (errors=%s, uses=%s)", session.id, session.error_score, session.usage_count
        )
        await session.client.close()

    async def close(self) -> None:
        for session in list(self._sessions):
            await session.client.close()
        self._sessions.clear()
