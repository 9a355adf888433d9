from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List
from abc import ABC, abstractmethod

from ..transformers.schema import FailureRecord


@dataclass
class CrawlReport:
    total_products: int = 0
    unique_products: int = 0
    failures: List[FailureRecord] = field(default_factory=list)
    pages_visited: int = 0
    completed_at: str = ""

    @property
    def failed_requests(self) -> int:
        return len(self.failures)

    def summary(self) -> Dict[str, Any]:
        return {
            "total_products": self.total_products,
            "unique_products": self.unique_products,
            "failed_requests": self.failed_requests,
            "completed_at": self.completed_at,
        }


class CrawlEngine(ABC):
    """
    Abstract engine interface. Implementations own the crawl lifecycle.
    """
    @abstractmethod
    async def crawl(self) -> CrawlReport:  # pragma: no cover - interface
        ...
