from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Union

from bs4 import BeautifulSoup


class PageKind(enum.Enum):
    PRODUCT_DETAIL = "product"
    COLLECTION = "collection"
    GENERIC = "generic"


# ---- Raw records: one shape per extraction strategy -------------------------


@dataclass
class ApiProduct:
    """A product as served by the storefront's ``products.json`` endpoints."""

    id: Any = None
    title: Optional[str] = None
    handle: Optional[str] = None
    body_html: Optional[str] = None
    vendor: Optional[str] = None
    product_type: Optional[str] = None
    tags: Any = None
    variants: List[Dict[str, Any]] = field(default_factory=list)
    images: List[Any] = field(default_factory=list)
    options: List[Any] = field(default_factory=list)
    image: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    published_at: Optional[str] = None
    url: Optional[str] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "ApiProduct":
        # Storefront (GraphQL-flavoured) payloads use camelCase for some keys.
        def pick(*keys: str) -> Any:
            for key in keys:
                value = data.get(key)
                if value is not None:
                    return value
            return None

        def as_list(value: Any) -> List[Any]:
            return list(value) if isinstance(value, list) else []

        image = data.get("image")
        return cls(
            id=data.get("id"),
            title=data.get("title"),
            handle=data.get("handle"),
            body_html=pick("body_html", "description"),
            vendor=data.get("vendor"),
            product_type=pick("product_type", "productType"),
            tags=data.get("tags"),
            variants=[v for v in as_list(data.get("variants")) if isinstance(v, dict)],
            images=as_list(data.get("images")),
            options=as_list(data.get("options")),
            image=image if isinstance(image, dict) else None,
            created_at=pick("created_at", "createdAt"),
            updated_at=pick("updated_at", "updatedAt"),
            published_at=pick("published_at", "publishedAt"),
            url=data.get("url") if isinstance(data.get("url"), str) else None,
        )


@dataclass
class StructuredDataProduct:
    """A single flattened offer read from embedded JSON-LD markup."""

    title: Optional[str] = None
    description: Optional[str] = None
    vendor: Optional[str] = None
    product_type: Optional[str] = None
    price: Optional[float] = None
    currency: Optional[str] = None
    available: bool = True
    images: List[str] = field(default_factory=list)
    sku: Optional[str] = None
    url: Optional[str] = None


@dataclass
class ScrapedProduct:
    """Best-effort fields scraped from a product tile in listing HTML."""

    title: Optional[str] = None
    handle: Optional[str] = None
    url: Optional[str] = None
    price: Optional[float] = None
    available: bool = True
    image: Optional[str] = None


RawProductRecord = Union[ApiProduct, StructuredDataProduct, ScrapedProduct]

JsonFetcher = Callable[[str], Awaitable[Optional[Any]]]


@dataclass
class PageContext:
    """Everything a strategy may look at for one fetched page."""

    url: str
    html: str
    page_no: int
    kind: PageKind
    shop_root: str
    fetch_json: JsonFetcher
    _soup: Optional[BeautifulSoup] = field(default=None, repr=False)

    @property
    def soup(self) -> BeautifulSoup:
        # Parsed lazily: pages served by the JSON API never need a DOM.
        if self._soup is None:
            self._soup = BeautifulSoup(self.html or "", "html.parser")
        return self._soup


class ExtractionStrategy(Protocol):
    """
    Interface for one data surface of a storefront page.
    Keep this small and stable so strategies rarely break across upgrades.
    """

    name: str

    async def extract(self, page: PageContext) -> List[RawProductRecord]:
        """
        Return the raw records this strategy can read from the page.
        Return an empty list (or raise StrategyMiss) when there are none.
        """
        ...
