from __future__ import annotations

import logging
from typing import Any, List

from .base import ApiProduct, PageContext, PageKind, RawProductRecord
from ..utils.parsing import remove_query_string

logger = logging.getLogger(__name__)

PAGE_SIZE = 250


def api_url_for(page: PageContext) -> str:
    """The JSON endpoint that mirrors a storefront page."""
    bare = remove_query_string(page.url).rstrip("/")
    if page.kind is PageKind.PRODUCT_DETAIL:
        return f"{bare}.json"
    if page.kind is PageKind.COLLECTION:
        return f"{bare}/products.json?limit={PAGE_SIZE}&page={page.page_no}"
    return f"{page.shop_root}/products.json?limit={PAGE_SIZE}&page={page.page_no}"


class ProductsJsonStrategy:
    """
    Reads the storefront's public JSON endpoints (``products.json`` and
    ``/products/<handle>.json``). Cheapest and most complete source when exposed.
    """

    name = "api"

    async def extract(self, page: PageContext) -> List[RawProductRecord]:
        url = api_url_for(page)
        logger.debug("Fetching JSON API: %s", url)
        body = await page.fetch_json(url)
        if not isinstance(body, dict):
            return []

        if page.kind is PageKind.PRODUCT_DETAIL:
            product = body.get("product")
            raw: List[Any] = [product] if isinstance(product, dict) else []
        else:
            products = body.get("products")
            raw = products if isinstance(products, list) else []

        records: List[RawProductRecord] = [ApiProduct.from_json(p) for p in raw if isinstance(p, dict)]
        if records:
            logger.info("JSON API returned %s products (page %s)", len(records), page.page_no)
        return records
