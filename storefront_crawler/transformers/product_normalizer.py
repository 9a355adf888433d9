"""
Maps every raw record shape onto :class:`CanonicalProduct`.

Each raw shape has its own mapping function, selected by type through
``functools.singledispatch``. API products expand into one row per variant;
structured-data and scraped records always produce exactly one row.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import singledispatch
from typing import Any, Dict, List, Optional, Tuple, Union

from ..adapters.base import ApiProduct, RawProductRecord, ScrapedProduct, StructuredDataProduct
from ..utils.parsing import (
    clean_text,
    handle_from_url,
    iso_timestamp,
    normalize_url,
    parse_price,
    remove_gid,
    remove_query_string,
    safe_iso_date,
    to_snake_case,
    unique_non_empty,
)
from .schema import CanonicalProduct

_PLACEHOLDER_OPTION = re.compile(r"(default|title)", re.IGNORECASE)

NormalizedOutput = Union[CanonicalProduct, List[CanonicalProduct]]


@dataclass
class NormalizeOptions:
    base_url: str
    include_variants: bool = True
    currency: str = "USD"
    scraped_at: Optional[str] = None

    def stamp(self) -> str:
        return self.scraped_at or iso_timestamp()


def normalize_record(
    record: RawProductRecord,
    base_url: str,
    *,
    include_variants: bool = True,
    currency: str = "USD",
) -> NormalizedOutput:
    """
    Normalize one raw record. Returns a single CanonicalProduct when exactly one
    row was produced, otherwise a list (possibly empty).
    """
    options = NormalizeOptions(
        base_url=base_url.rstrip("/"),
        include_variants=include_variants,
        currency=currency,
        scraped_at=iso_timestamp(),
    )
    rows = _normalize(record, options)
    return rows[0] if len(rows) == 1 else rows


def as_rows(output: NormalizedOutput) -> List[CanonicalProduct]:
    """Flatten either shape returned by :func:`normalize_record` into a list."""
    if isinstance(output, CanonicalProduct):
        return [output]
    return list(output)


def resolve_product_url(record: RawProductRecord, base_url: str) -> Optional[str]:
    """
    The canonical product URL, used as the dedup key and as the record's ``url``.

    Any record whose handle is known (directly, or from a ``/products/<handle>``
    link) maps to ``<shop root>/products/<handle>``, so variant links, collection
    scoped links and API records of one product share a key. Other URLs lose
    their query string and fragment.
    """
    url = getattr(record, "url", None)
    handle = getattr(record, "handle", None) or handle_from_url(url)
    if handle:
        return f"{base_url.rstrip('/')}/products/{handle}"
    if url:
        return remove_query_string(normalize_url(url))
    return None


# ---- Variant helpers --------------------------------------------------------


def _option_name(option: Any) -> str:
    if isinstance(option, dict):
        return str(option.get("name") or "")
    return str(option or "")


def variant_attributes(variant: Dict[str, Any], product_options: List[Any]) -> Tuple[str, Dict[str, Any]]:
    """
    Human-readable variant name and flattened option properties.

    >>> variant_attributes({"option1": "10", "option2": "Natural Grey"}, ["Size", "Color"])
    ('Size: 10 / Color: Natural Grey', {'size': '10', 'color': 'Natural Grey'})
    """
    if not product_options or (
        len(product_options) == 1 and _PLACEHOLDER_OPTION.search(_option_name(product_options[0]))
    ):
        return "Default", {}

    names: List[str] = []
    props: Dict[str, Any] = {}
    for idx, option in enumerate(product_options, start=1):
        key = f"option{idx}"
        value = variant.get(key)
        if value is None:
            continue
        option_name = _option_name(option)
        props[to_snake_case(option_name) or key] = value
        names.append(f"{option_name}: {value}")
    return " / ".join(names), props


def variant_images(product: ApiProduct) -> Tuple[Dict[Any, str], List[str]]:
    """Map variant id -> dedicated image, plus the images shared by all variants."""
    by_variant: Dict[Any, str] = {}
    general: List[str] = []
    for image in product.images:
        if isinstance(image, str):
            general.append(image)
            continue
        if not isinstance(image, dict) or not image.get("src"):
            continue
        variant_ids = image.get("variant_ids") or []
        if variant_ids:
            for variant_id in variant_ids:
                by_variant[remove_gid(variant_id)] = image["src"]
        else:
            general.append(image["src"])
    return by_variant, general


def _tags(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(t) for t in value if t]
    if isinstance(value, str):
        return [t for t in re.split(r",\s*", value) if t]
    return []


# ---- Mapping functions ------------------------------------------------------


@singledispatch
def _normalize(record: Any, options: NormalizeOptions) -> List[CanonicalProduct]:
    raise TypeError(f"Unsupported raw record type: {type(record).__name__}")


@_normalize.register
def _(record: ApiProduct, options: NormalizeOptions) -> List[CanonicalProduct]:
    variants = record.variants if options.include_variants else record.variants[:1]
    image_map, general_images = variant_images(record)
    primary_image = record.image.get("src") if record.image else None
    url = resolve_product_url(record, options.base_url)
    description = clean_text(record.body_html) or None
    tags = _tags(record.tags)
    scraped_at = options.stamp()

    rows: List[CanonicalProduct] = []
    for variant in variants:
        variant_name, props = variant_attributes(variant, record.options)
        variant_id = remove_gid(variant.get("id"))
        images = unique_non_empty(
            remove_query_string(src)
            for src in [image_map.get(variant_id), *general_images, primary_image]
            if src
        )
        rows.append(
            CanonicalProduct(
                id=remove_gid(record.id),
                variant_id=variant_id,
                handle=record.handle,
                url=url,
                title=record.title,
                description=description,
                vendor=record.vendor,
                product_type=record.product_type,
                tags=list(tags),
                variant_title=variant.get("title") or variant_name or None,
                variant_name=variant_name or None,
                sku=variant.get("sku") or None,
                barcode=variant.get("barcode") or None,
                properties=props,
                price=parse_price(variant.get("price")),
                compare_at_price=parse_price(variant.get("compare_at_price")),
                currency=options.currency,
                available=variant.get("available") is not False,
                inventory_quantity=variant.get("inventory_quantity") or 0,
                inventory_policy=variant.get("inventory_policy"),
                weight=variant.get("weight") or None,
                weight_unit=variant.get("weight_unit"),
                requires_shipping=bool(variant.get("requires_shipping")),
                images=images,
                featured_image=images[0] if images else None,
                created_at=safe_iso_date(record.created_at),
                updated_at=safe_iso_date(record.updated_at),
                published_at=safe_iso_date(record.published_at),
                scraped_at=scraped_at,
            )
        )
    return rows


@_normalize.register
def _(record: StructuredDataProduct, options: NormalizeOptions) -> List[CanonicalProduct]:
    images = unique_non_empty(remove_query_string(src) for src in record.images)
    return [
        CanonicalProduct(
            url=resolve_product_url(record, options.base_url),
            title=record.title,
            description=clean_text(record.description) or None,
            vendor=record.vendor,
            product_type=record.product_type,
            variant_name="Default",
            sku=record.sku,
            price=record.price,
            currency=record.currency or options.currency,
            available=record.available,
            images=images,
            featured_image=images[0] if images else None,
            scraped_at=options.stamp(),
        )
    ]


@_normalize.register
def _(record: ScrapedProduct, options: NormalizeOptions) -> List[CanonicalProduct]:
    images = [remove_query_string(record.image)] if record.image else []
    return [
        CanonicalProduct(
            handle=record.handle,
            url=resolve_product_url(record, options.base_url),
            title=record.title,
            variant_name="Default",
            price=record.price,
            currency=options.currency,
            available=record.available,
            images=images,
            featured_image=images[0] if images else None,
            scraped_at=options.stamp(),
        )
    ]
