from __future__ import annotations

import json
import logging
from typing import Any, Iterable, List, Optional

from .base import PageContext, RawProductRecord, StructuredDataProduct
from ..utils.parsing import parse_price

logger = logging.getLogger(__name__)


class JsonLdStrategy:
    """Reads the first schema.org ``Product`` from embedded JSON-LD blocks."""

    name = "structured_data"

    def __init__(self, default_currency: str = "USD") -> None:
        self.default_currency = default_currency

    async def extract(self, page: PageContext) -> List[RawProductRecord]:
        product = extract_jsonld_product(page.soup, page.url, self.default_currency)
        return [product] if product else []


def extract_jsonld_product(soup, base_url: str, default_currency: str = "USD") -> Optional[StructuredDataProduct]:
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        payload = script.string or script.get_text() or ""
        if not payload.strip():
            continue
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            logger.debug("Skipping malformed JSON-LD block on %s: %s", base_url, exc)
            continue

        for item in _iter_jsonld_items(data):
            if _is_product(item):
                return _product_from_jsonld(item, base_url, default_currency)
    return None


def _iter_jsonld_items(data: Any) -> Iterable[Any]:
    if isinstance(data, list):
        for item in data:
            yield from _iter_jsonld_items(item)
    elif isinstance(data, dict):
        if "@graph" in data:
            yield from _iter_jsonld_items(data["@graph"])
        else:
            yield data


def _is_product(item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    type_field = item.get("@type")
    if isinstance(type_field, list):
        return any(isinstance(t, str) and t.lower() == "product" for t in type_field)
    return isinstance(type_field, str) and type_field.lower() == "product"


def _product_from_jsonld(item: dict, base_url: str, default_currency: str) -> StructuredDataProduct:
    offers = item.get("offers")
    if isinstance(offers, list):
        offers = offers[0] if offers else {}
    if not isinstance(offers, dict):
        offers = {}

    brand = item.get("brand")
    if isinstance(brand, dict):
        brand = brand.get("name")

    image = item.get("image")
    if isinstance(image, str):
        images = [image]
    elif isinstance(image, list):
        images = [i if isinstance(i, str) else i.get("url") for i in image if isinstance(i, (str, dict))]
    elif isinstance(image, dict):
        images = [image.get("url")]
    else:
        images = []

    availability = offers.get("availability")
    # Missing availability is read as purchasable.
    available = "InStock" in str(availability) if availability else True

    sku = offers.get("sku") or item.get("sku")
    url = item.get("url") if isinstance(item.get("url"), str) else None

    return StructuredDataProduct(
        title=item.get("name"),
        description=item.get("description"),
        vendor=brand if isinstance(brand, str) else None,
        product_type=item.get("category") if isinstance(item.get("category"), str) else None,
        price=parse_price(offers.get("price") or offers.get("lowPrice")),
        currency=offers.get("priceCurrency") or default_currency,
        available=available,
        images=[i for i in images if i],
        sku=str(sku) if sku is not None else None,
        url=url or base_url,
    )
