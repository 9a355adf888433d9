from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import List, Optional, Dict, Any
from pathlib import Path
import os
import json

from .version import __version__, CONFIG_SCHEMA_VERSION

DEFAULT_MAX_PAGES = 999

# Input keys used by actor-style JSON inputs, mapped onto dataclass fields.
_CAMEL_KEYS = {
    "shopUrl": "shop_url",
    "startUrls": "start_urls",
    "searchQuery": "search_query",
    "maxProducts": "max_products",
    "maxPages": "max_pages",
    "includeVariants": "include_variants",
    "includeOutOfStock": "include_out_of_stock",
    "proxyConfiguration": "proxy_configuration",
}


@dataclass
class CrawlConfig:
    """
    Canonical configuration object passed throughout the system.
    Keep it dataclass-only (no heavy deps) to stay upgrade-friendly.
    """
    schema_version: int = CONFIG_SCHEMA_VERSION
    # What to crawl
    shop_url: Optional[str] = None
    start_urls: List[Any] = field(default_factory=list)
    collection: Optional[str] = None
    search_query: Optional[str] = None
    use_sitemap: bool = False
    # Budgets and filters
    max_products: Optional[int] = None  # None or 0 means unbounded
    max_pages: int = DEFAULT_MAX_PAGES
    include_variants: bool = True
    include_out_of_stock: bool = True
    currency: str = "USD"
    # Opaque proxy descriptor handed to utils.proxy.ProxyConfiguration
    proxy_configuration: Any = None
    # Internal knobs
    max_concurrency: int = 5
    max_request_retries: int = 3
    request_timeout: float = 30.0
    transport_retries: int = 2
    retry_backoff: float = 1.0
    session_pool_size: int = 20
    session_max_error_score: int = 3
    session_max_usage_count: int = 50
    user_agent: str = f"storefront_crawler/{__version__}"
    # Dotted path for the sink to allow runtime swapping without code changes.
    exporter: str = "storefront_crawler.export.jsonl_exporter:JSONLinesExporter"
    # Where to write results
    output_path: str = "output/products.jsonl"
    stats_path: Optional[str] = "output/stats.json"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @property
    def product_limit(self) -> Optional[int]:
        """Effective product budget, None when unbounded."""
        if self.max_products is None or self.max_products <= 0:
            return None
        return self.max_products

    @property
    def page_limit(self) -> int:
        return self.max_pages if self.max_pages and self.max_pages > 0 else DEFAULT_MAX_PAGES

    # ---------- Loaders ----------

    @classmethod
    def from_env(cls) -> "CrawlConfig":
        """
        Build config from environment variables (all optional).
        """
        urls = os.getenv("CRAWLER_START_URLS", "")
        start_urls = [u.strip() for u in urls.split(",") if u.strip()]

        def _get(name: str, default: str) -> str:
            return os.getenv(name, default)

        def _flag(name: str, default: bool) -> bool:
            raw = os.getenv(name)
            if raw is None:
                return default
            return raw.strip().lower() in ("1", "true", "yes", "on")

        proxies = [p.strip() for p in _get("CRAWLER_PROXY_URLS", "").split(",") if p.strip()]

        return cls(
            shop_url=os.getenv("CRAWLER_SHOP_URL") or None,
            start_urls=start_urls,
            collection=os.getenv("CRAWLER_COLLECTION") or None,
            search_query=os.getenv("CRAWLER_SEARCH_QUERY") or None,
            use_sitemap=_flag("CRAWLER_USE_SITEMAP", False),
            max_products=int(_get("CRAWLER_MAX_PRODUCTS", "0")),
            max_pages=int(_get("CRAWLER_MAX_PAGES", str(DEFAULT_MAX_PAGES))),
            include_variants=_flag("CRAWLER_INCLUDE_VARIANTS", True),
            include_out_of_stock=_flag("CRAWLER_INCLUDE_OUT_OF_STOCK", True),
            proxy_configuration={"proxy_urls": proxies} if proxies else None,
            max_concurrency=int(_get("CRAWLER_MAX_CONCURRENCY", "5")),
            request_timeout=float(_get("CRAWLER_REQUEST_TIMEOUT", "30.0")),
            user_agent=_get("CRAWLER_USER_AGENT", f"storefront_crawler/{__version__}"),
            exporter=_get("CRAWLER_EXPORTER", "storefront_crawler.export.jsonl_exporter:JSONLinesExporter"),
            output_path=_get("CRAWLER_OUTPUT_PATH", "output/products.jsonl"),
            stats_path=_get("CRAWLER_STATS_PATH", "output/stats.json") or None,
        )

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> "CrawlConfig":
        """
        Load configuration from a JSON file. Supports schema migration for older versions.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        data = migrate_config(data)
        return cls(**data)

    # ---------- Validation ----------

    def validate(self) -> None:
        if self.max_products is not None and self.max_products < 0:
            raise ValueError("max_products must be >= 0")
        if self.max_concurrency <= 0:
            raise ValueError("max_concurrency must be > 0")
        if self.max_request_retries < 0:
            raise ValueError("max_request_retries must be >= 0")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be > 0")
        if self.session_pool_size <= 0:
            raise ValueError("session_pool_size must be > 0")
        # Validate output path parents exist or are creatable
        for target in (self.output_path, self.stats_path):
            if target:
                Path(target).parent.mkdir(parents=True, exist_ok=True)


def migrate_config(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Migrate config dict to the latest schema version.
    Keep this pure and additive. Add migrations here as you bump schema.
    """
    raw = dict(raw)
    schema = raw.get("schema_version", 1)

    if schema < 2:
        # v1 was a depth-limited link crawler; those knobs have no meaning now.
        for obsolete in ("max_depth", "allowed_domains", "engine", "extra_adapters", "keywords", "retries"):
            raw.pop(obsolete, None)

    for camel, snake in _CAMEL_KEYS.items():
        if camel in raw:
            raw.setdefault(snake, raw.pop(camel))

    raw["schema_version"] = CONFIG_SCHEMA_VERSION
    return raw
