from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional
from urllib.parse import urlparse, urlunparse

from bs4 import BeautifulSoup

from ..adapters.base import PageKind

_GID_PREFIX = re.compile(r"^gid://[^/]+/[^/]+/")
_PRODUCT_PATH = re.compile(r"/products/[^/?#]+")
_COLLECTION_PATH = re.compile(r"/collections/([^/?#]+)")
_NUMBER = re.compile(r"\d[\d,]*\.?\d*")


def normalize_url(url: str) -> str:
    """
    Normalize URL by removing fragments, resolving dot segments, etc.
    """
    parts = list(urlparse(url))
    parts[5] = ""  # strip fragment
    return urlunparse(parts)


def base_domain(url: str) -> Optional[str]:
    """Return ``scheme://host[:port]`` for an absolute URL, None otherwise."""
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}"


def normalize_shop_url(url: str) -> str:
    """Reduce a shop URL to its root; bare hostnames default to https."""
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    return base_domain(url) or url.rstrip("/")


def remove_query_string(url: str) -> str:
    return str(url).split("?", 1)[0]


def is_product_url(url: str) -> bool:
    return bool(_PRODUCT_PATH.search(urlparse(url).path))


def is_collection_url(url: str) -> bool:
    return bool(_COLLECTION_PATH.search(urlparse(url).path))


def extract_collection_handle(url: str) -> Optional[str]:
    match = _COLLECTION_PATH.search(urlparse(url).path)
    return match.group(1) if match else None


def handle_from_url(url: Optional[str]) -> Optional[str]:
    """Path segment following ``/products/``, without query or fragment."""
    if not url or "/products/" not in url:
        return None
    tail = url.split("/products/", 1)[1]
    handle = re.split(r"[/?#]", tail, maxsplit=1)[0]
    return handle or None


def classify_page(url: str) -> PageKind:
    """
    Decide which JSON endpoint describes a page.
    Product paths win over collections so ``/collections/x/products/y`` is a product.
    """
    if is_product_url(url):
        return PageKind.PRODUCT_DETAIL
    if is_collection_url(url):
        return PageKind.COLLECTION
    return PageKind.GENERIC


# ---- Value coercion ---------------------------------------------------------


def remove_gid(value: Any) -> Optional[int]:
    """``gid://shopify/Product/123`` -> ``123``; plain ids pass through; junk -> None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = _GID_PREFIX.sub("", str(value).strip())
    try:
        return int(text)
    except ValueError:
        return None


def to_snake_case(name: str) -> str:
    """``"Frame Color"`` / ``"FrameColor"`` -> ``"frame_color"``."""
    text = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", str(name).strip())
    text = re.sub(r"[^0-9a-zA-Z]+", "_", text)
    return text.strip("_").lower()


def parse_price(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool) or value == "":
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _NUMBER.search(str(value))
    if not match:
        return None
    try:
        return float(match.group(0).replace(",", ""))
    except ValueError:
        return None


def safe_iso_date(value: Any) -> Optional[str]:
    """Parse an ISO-8601 timestamp and re-emit it in UTC with millisecond precision."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return iso_timestamp(parsed)


def iso_timestamp(moment: Optional[datetime] = None) -> str:
    moment = (moment or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def clean_text(html: Optional[str]) -> str:
    """Strip markup, scripts and styles; collapse whitespace."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript", "iframe"]):
        tag.decompose()
    return re.sub(r"\s+", " ", soup.get_text(" ")).strip()


def unique_non_empty(values: Iterable[Optional[str]]) -> List[str]:
    seen: set[str] = set()
    out: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            out.append(value)
    return out
