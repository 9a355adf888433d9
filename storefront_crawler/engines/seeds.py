from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Optional
from urllib.parse import quote_plus

from ..errors import ConfigurationError
from ..utils.parsing import normalize_shop_url


@dataclass(frozen=True)
class SeedURL:
    url: str
    page_no: int = 1


def _explicit_url(entry: Any) -> Optional[str]:
    # Request lists may hold plain strings or {"url": ...} objects.
    if isinstance(entry, str):
        return entry.strip() or None
    if isinstance(entry, dict):
        url = entry.get("url")
        return url.strip() if isinstance(url, str) and url.strip() else None
    return None


def derived_shop_url(shop_url: str, collection: Optional[str] = None, search_query: Optional[str] = None) -> str:
    """The one listing URL derived from a shop root: collection > search > all products."""
    root = normalize_shop_url(shop_url)
    if collection:
        return f"{root}/collections/{collection.strip('/')}"
    if search_query:
        return f"{root}/search?q={quote_plus(search_query)}"
    return f"{root}/collections/all"


def resolve_seeds(
    start_urls: Optional[Iterable[Any]] = None,
    shop_url: Optional[str] = None,
    collection: Optional[str] = None,
    search_query: Optional[str] = None,
) -> List[SeedURL]:
    urls = [u for u in (_explicit_url(e) for e in (start_urls or [])) if u]
    if shop_url and shop_url.strip():
        urls.append(derived_shop_url(shop_url, collection, search_query))
    if not urls:
        raise ConfigurationError("Please provide either shop_url or start_urls")
    return [SeedURL(url=u) for u in urls]
