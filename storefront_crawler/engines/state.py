from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional, Set

from ..transformers.schema import CanonicalProduct, FailureRecord


@dataclass
class CrawlTask:
    url: str
    page_no: int = 1
    retry_count: int = 0


class CrawlState:
    """
    Cross-worker bookkeeping: accepted counter, dedup set and failure list.

    Workers only touch it through the coroutines below; each one is a single
    critical section under ``_lock`` so that two workers can never both accept
    the same URL or jointly exceed ``max_products``.
    """

    def __init__(self, max_products: Optional[int] = None) -> None:
        self.max_products = max_products
        self.accepted = 0
        self.seen_urls: Set[str] = set()
        self.failures: List[FailureRecord] = []
        self._lock = asyncio.Lock()

    @property
    def budget_exhausted(self) -> bool:
        return self.max_products is not None and self.accepted >= self.max_products

    @property
    def remaining(self) -> Optional[int]:
        if self.max_products is None:
            return None
        return max(self.max_products - self.accepted, 0)

    async def try_accept(self, url: Optional[str], rows: List[CanonicalProduct]) -> List[CanonicalProduct]:
        """
        Admit the rows of one product, truncated to the remaining budget.
        Returns the admitted rows; empty when the URL was already taken,
        the budget is spent, or there is nothing to admit.
        """
        if not url or not rows:
            return []
        async with self._lock:
            if self.budget_exhausted or url in self.seen_urls:
                return []
            remaining = self.remaining
            admitted = rows if remaining is None else rows[:remaining]
            self.accepted += len(admitted)
            self.seen_urls.add(url)
            return admitted

    async def record_failure(self, failure: FailureRecord) -> None:
        async with self._lock:
            self.failures.append(failure)
