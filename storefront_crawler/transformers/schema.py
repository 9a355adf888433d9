from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional


@dataclass
class CanonicalProduct:
    """One purchasable row: a product, or one variant of it."""

    # Identity
    id: Optional[int] = None
    variant_id: Optional[int] = None
    handle: Optional[str] = None
    url: Optional[str] = None
    # Descriptive
    title: Optional[str] = None
    description: Optional[str] = None
    vendor: Optional[str] = None
    product_type: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    # Variant
    variant_title: Optional[str] = None
    variant_name: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    properties: Dict[str, Any] = field(default_factory=dict)
    # Commerce
    price: Optional[float] = None
    compare_at_price: Optional[float] = None
    currency: Optional[str] = None
    available: bool = True
    inventory_quantity: int = 0
    inventory_policy: Optional[str] = None
    # Physical
    weight: Optional[float] = None
    weight_unit: Optional[str] = None
    requires_shipping: bool = False
    # Media
    images: List[str] = field(default_factory=list)
    featured_image: Optional[str] = None
    # Timestamps
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    published_at: Optional[str] = None
    scraped_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Flat output row; option properties sit beside the canonical fields."""
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "properties"}
        for key, value in self.properties.items():
            # Canonical fields win over option names that happen to collide.
            data.setdefault(key, value)
        return data


@dataclass
class FailureRecord:
    """A page that exhausted its retry budget."""

    url: str
    error: str
    retries: int
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "#failed": True,
            "url": self.url,
            "error": self.error,
            "retries": self.retries,
            "timestamp": self.timestamp,
        }
