from __future__ import annotations

import copy
import json
import zlib
from collections import Counter
from typing import Any, Dict, Iterable, Optional, Tuple

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from storefront_crawler.config import CrawlConfig
from storefront_crawler.engines.base import CrawlReport
from storefront_crawler.engines.shop_engine import ShopCrawlEngine
from storefront_crawler.export.memory_exporter import MemoryExporter


TRAIL_RUNNER: Dict[str, Any] = {
    "id": "gid://shopify/Product/1234567890",
    "title": "Trail Runner",
    "handle": "trail-runner",
    "body_html": "<p>Light <strong>and</strong> fast.</p><script>track()</script>",
    "vendor": "Acme",
    "product_type": "Shoes",
    "tags": "running, trail",
    "created_at": "2023-05-01T10:00:00-04:00",
    "updated_at": "not a date",
    "published_at": None,
    "options": [
        {"name": "Size", "position": 1, "values": ["10", "11"]},
        {"name": "Color", "position": 2, "values": ["Natural Grey", "Black"]},
    ],
    "variants": [
        {
            "id": 111,
            "title": "10 / Natural Grey",
            "option1": "10",
            "option2": "Natural Grey",
            "option3": None,
            "sku": "TR-10-NG",
            "barcode": "0001",
            "price": "120.00",
            "compare_at_price": "150.00",
            "available": True,
            "inventory_quantity": 4,
            "inventory_policy": "deny",
            "requires_shipping": True,
            "weight": 0.8,
            "weight_unit": "kg",
        },
        {
            "id": 112,
            "title": "11 / Natural Grey",
            "option1": "11",
            "option2": "Natural Grey",
            "option3": None,
            "sku": "TR-11-NG",
            "price": "120.00",
            "compare_at_price": None,
            "available": False,
        },
        {
            "id": "gid://shopify/ProductVariant/113",
            "title": "10 / Black",
            "option1": "10",
            "option2": "Black",
            "option3": None,
            "sku": "TR-10-BK",
            "price": "125.00",
            "available": True,
        },
    ],
    "images": [
        {"id": 1, "src": "https://cdn.shop.example/files/grey.jpg?v=1", "variant_ids": [111, 112]},
        {"id": 2, "src": "https://cdn.shop.example/files/black.jpg?v=2", "variant_ids": [113]},
        {"id": 3, "src": "https://cdn.shop.example/files/side.jpg?v=3", "variant_ids": []},
    ],
    "image": {"src": "https://cdn.shop.example/files/grey.jpg?v=1"},
}


def simple_product(handle: str, *, available: bool = True, price: str = "10.00") -> Dict[str, Any]:
    return {
        "id": zlib.crc32(handle.encode()),
        "title": handle.replace("-", " ").title(),
        "handle": handle,
        "options": [{"name": "Title", "values": ["Default Title"]}],
        "variants": [
            {"id": zlib.crc32((handle + "-v").encode()), "title": "Default Title",
             "option1": "Default Title", "price": price, "available": available},
        ],
        "images": [],
    }


@pytest.fixture
def trail_runner() -> Dict[str, Any]:
    return copy.deepcopy(TRAIL_RUNNER)


class FakeShop:
    """A tiny storefront: exact ``path?query`` routes first, then bare paths."""

    def __init__(self) -> None:
        self.routes: Dict[str, Tuple[int, Any, str]] = {}
        self.hits: Counter = Counter()

    def add(self, path: str, body: Any, *, status: int = 200) -> "FakeShop":
        # Raw bytes are served as-is, labelled utf-8 whatever they contain.
        if isinstance(body, (str, bytes)):
            self.routes[path] = (status, body, "text/html")
        else:
            self.routes[path] = (status, json.dumps(body), "application/json")
        return self

    async def _handle(self, request: web.Request) -> web.Response:
        self.hits[request.path_qs] += 1
        route = self.routes.get(request.path_qs) or self.routes.get(request.path)
        if route is None:
            return web.Response(status=404, text="not found")
        status, body, content_type = route
        if isinstance(body, bytes):
            return web.Response(status=status, body=body, content_type=content_type, charset="utf-8")
        return web.Response(status=status, text=body, content_type=content_type)

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("GET", "/{tail:.*}", self._handle)
        return app


@pytest.fixture
def shop() -> FakeShop:
    return FakeShop()


async def crawl_shop(
    shop: FakeShop,
    *,
    start_paths: Iterable[str] = (),
    use_shop_url: bool = False,
    sink: Optional[Any] = None,
    **overrides: Any,
) -> Tuple[CrawlReport, Any, str]:
    async with TestServer(shop.app()) as server:
        base = str(server.make_url("/")).rstrip("/")
        settings: Dict[str, Any] = {
            "start_urls": [base + p for p in start_paths],
            "shop_url": base if use_shop_url else None,
            "max_concurrency": 3,
            "retry_backoff": 0.0,
            "request_timeout": 5.0,
            "transport_retries": 0,
            "stats_path": None,
        }
        settings.update(overrides)
        sink = sink if sink is not None else MemoryExporter()
        engine = ShopCrawlEngine(CrawlConfig(**settings), sink)
        report = await engine.crawl()
        return report, sink, base


@pytest.fixture
def crawl():
    return crawl_shop


@pytest.fixture
def make_product():
    return simple_product
