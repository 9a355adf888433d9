from __future__ import annotations

import logging
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .base import PageContext, RawProductRecord, ScrapedProduct
from ..errors import StrategyMiss
from ..utils.parsing import handle_from_url, normalize_url, parse_price

logger = logging.getLogger(__name__)

# Theme-agnostic product tile selectors, most specific first.
TILE_SELECTORS = [
    ".product-item",
    ".product-card",
    "[data-product-id]",
    ".grid-product",
    ".product",
    "article[data-product]",
]

# Tried in order; the first with visible text wins (image-only links are skipped).
TITLE_SELECTORS = [".product-title", ".product-card__title", "h3", "h2", "a"]
PRICE_SELECTOR = ".price, [class*='price'], .product-price"
UNAVAILABLE_MARKERS = ("sold out", "unavailable")


class HtmlTileStrategy:
    """Last resort: scrape product tiles out of listing markup."""

    name = "html"

    def __init__(self, selectors: Optional[List[str]] = None) -> None:
        self.selectors = list(selectors or TILE_SELECTORS)

    async def extract(self, page: PageContext) -> List[RawProductRecord]:
        return list(self.parse_tiles(page.soup, page.url))

    def parse_tiles(self, soup: BeautifulSoup, base_url: str) -> List[ScrapedProduct]:
        tiles = []
        for selector in self.selectors:
            tiles = soup.select(selector)
            if tiles:
                logger.debug("Found %s tiles using selector %s", len(tiles), selector)
                break
        if not tiles:
            raise StrategyMiss(f"no product tiles on {base_url}")

        products: List[ScrapedProduct] = []
        for tile in tiles:
            try:
                product = self._parse_tile(tile, base_url)
            except Exception as exc:  # one odd tile must not sink the page
                logger.debug("Failed to parse product tile on %s: %r", base_url, exc)
                continue
            if product:
                products.append(product)
        return products

    # ---- Extraction helpers -------------------------------------------------

    def _parse_tile(self, tile, base_url: str) -> Optional[ScrapedProduct]:
        title = self._title(tile)

        anchor = tile.select_one("a[href*='/products/']") or tile.select_one("a[href]")
        href = anchor.get("href") if anchor else None
        url = normalize_url(urljoin(base_url, href)) if href else None

        if not title and not url:
            return None

        price_text = self._text_or_none(tile.select_one(PRICE_SELECTOR))
        text = tile.get_text(" ", strip=True).lower()

        return ScrapedProduct(
            title=title,
            handle=handle_from_url(url),
            url=url,
            price=parse_price(price_text) if price_text else None,
            available=not any(marker in text for marker in UNAVAILABLE_MARKERS),
            image=self._image_url(tile, base_url),
        )

    def _title(self, tile) -> Optional[str]:
        for selector in TITLE_SELECTORS:
            for node in tile.select(selector):
                text = self._text_or_none(node)
                if text:
                    return text
        return None

    def _image_url(self, tile, base_url: str) -> Optional[str]:
        img = tile.select_one("img")
        if not img:
            return None
        src = img.get("src") or img.get("data-src")
        if not src and img.get("data-srcset"):
            src = img["data-srcset"].strip().split(" ")[0]
        if not src:
            return None
        if src.startswith("//"):
            return f"https:{src}"
        return urljoin(base_url, src)

    # ---- Text helpers -------------------------------------------------------

    def _text_or_none(self, node) -> Optional[str]:
        if not node:
            return None
        text = node.get_text(" ", strip=True)
        return text or None
