from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional
from importlib import metadata

from .base import ExtractionStrategy, PageContext, RawProductRecord
from .api import ProductsJsonStrategy
from .structured_data import JsonLdStrategy
from .html_tiles import HtmlTileStrategy
from ..errors import StrategyMiss

logger = logging.getLogger(__name__)


class ExtractionStage(enum.Enum):
    API_ATTEMPT = "api"
    STRUCTURED_DATA_ATTEMPT = "structured_data"
    HTML_ATTEMPT = "html"
    EXHAUSTED = "exhausted"


_STAGE_BY_NAME = {stage.value: stage for stage in ExtractionStage}


@dataclass
class ChainResult:
    records: List[RawProductRecord] = field(default_factory=list)
    strategy: Optional[str] = None  # name of the strategy that produced the records

    @property
    def stage(self) -> ExtractionStage:
        if self.strategy is None:
            return ExtractionStage.EXHAUSTED
        # Plugin strategies have no dedicated stage; report them by their slot.
        return _STAGE_BY_NAME.get(self.strategy, ExtractionStage.HTML_ATTEMPT)


class StrategyChain:
    """
    Ordered extraction strategies for a page, tried until one yields records.
    Supports built-ins, runtime registration, and entry-point plugins.
    """
    def __init__(self, strategies: Optional[List[ExtractionStrategy]] = None, *, currency: str = "USD") -> None:
        if strategies is None:
            strategies = [ProductsJsonStrategy(), JsonLdStrategy(currency), HtmlTileStrategy()]
        self._strategies: List[ExtractionStrategy] = list(strategies)

    # ---- Introspection / Management ----

    def register(self, strategy: ExtractionStrategy, *, before: Optional[str] = None) -> None:
        """Append a strategy, or insert it ahead of the strategy named ``before``."""
        if before is not None:
            for idx, existing in enumerate(self._strategies):
                if existing.name == before:
                    self._strategies.insert(idx, strategy)
                    return
        self._strategies.append(strategy)

    @property
    def strategies(self) -> List[ExtractionStrategy]:
        return list(self._strategies)

    async def run(self, page: PageContext) -> ChainResult:
        for strategy in self._strategies:
            try:
                records = await strategy.extract(page)
            except StrategyMiss as exc:
                logger.debug("Strategy %s missed on %s: %s", strategy.name, page.url, exc)
                continue
            except Exception as exc:  # parse errors degrade to the next surface
                logger.debug("Strategy %s failed on %s: %r", strategy.name, page.url, exc)
                continue
            if records:
                logger.info("Extracted %s products via %s from %s", len(records), strategy.name, page.url)
                return ChainResult(records=list(records), strategy=strategy.name)
        logger.debug("No extractable products on %s", page.url)
        return ChainResult()

    # ---- Discovery ----

    def discover_entry_points(self, group: str = "storefront_crawler.strategies") -> int:
        """
        Discover third-party strategies installed as entry points.
        They run after the built-ins. Returns count of newly registered strategies.
        """
        added = 0
        for ep in metadata.entry_points().select(group=group):
            try:
                strategy_cls = ep.load()
                self.register(strategy_cls())
            except Exception as exc:
                # Be permissive: plugins are optional
                logger.warning("Failed to load strategy plugin %s: %r", ep.name, exc)
                continue
            added += 1
        return added
