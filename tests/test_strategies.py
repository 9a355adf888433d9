import asyncio
import json

import pytest

from storefront_crawler.adapters.api import ProductsJsonStrategy, api_url_for
from storefront_crawler.adapters.base import (
    ApiProduct,
    PageContext,
    PageKind,
    ScrapedProduct,
    StructuredDataProduct,
)
from storefront_crawler.adapters.html_tiles import HtmlTileStrategy
from storefront_crawler.adapters.registry import ExtractionStage, StrategyChain
from storefront_crawler.adapters.structured_data import JsonLdStrategy
from storefront_crawler.errors import StrategyMiss
from storefront_crawler.utils.parsing import classify_page

SHOP = "https://shop.example"

TILES_HTML = """
<div class="collection">
  <div class="product-card">
    <a href="/products/blue-mug?variant=1"><img src="//cdn.shop.example/blue.jpg?v=3"></a>
    <h3 class="product-card__title">Blue Mug</h3>
    <span class="price">$1,024.50</span>
  </div>
  <div class="product-card">
    <a href="/collections/all">View all</a>
    <a href="/products/red-mug"><img data-src="/files/red.jpg"></a>
    <h3 class="product-card__title">Red Mug</h3>
    <span class="product-price">Sold out</span>
  </div>
  <div class="product-card"><span>Empty tile</span></div>
</div>
"""


def jsonld(payload) -> str:
    return f'<script type="application/ld+json">{json.dumps(payload)}</script>'


def make_page(url: str, html: str = "", *, page_no: int = 1, responses=None, calls=None) -> PageContext:
    async def fetch_json(target: str):
        if calls is not None:
            calls.append(target)
        return (responses or {}).get(target)

    return PageContext(
        url=url,
        html=html,
        page_no=page_no,
        kind=classify_page(url),
        shop_root=SHOP,
        fetch_json=fetch_json,
    )


# ---- API ---------------------------------------------------------------------


@pytest.mark.parametrize(
    "url, page_no, expected",
    [
        (f"{SHOP}/products/mug?variant=3", 1, f"{SHOP}/products/mug.json"),
        (f"{SHOP}/collections/mugs?page=2", 2, f"{SHOP}/collections/mugs/products.json?limit=250&page=2"),
        (f"{SHOP}/search?q=mug", 1, f"{SHOP}/products.json?limit=250&page=1"),
    ],
)
def test_api_url_follows_page_kind(url, page_no, expected):
    assert api_url_for(make_page(url, page_no=page_no)) == expected


def test_api_strategy_reads_product_listing(trail_runner):
    url = f"{SHOP}/collections/all/products.json?limit=250&page=1"
    page = make_page(f"{SHOP}/collections/all", responses={url: {"products": [trail_runner, "junk"]}})
    records = asyncio.run(ProductsJsonStrategy().extract(page))
    assert len(records) == 1
    assert isinstance(records[0], ApiProduct)
    assert records[0].handle == "trail-runner"
    assert len(records[0].variants) == 3


def test_api_strategy_reads_single_product(trail_runner):
    page = make_page(f"{SHOP}/products/trail-runner", responses={f"{SHOP}/products/trail-runner.json": {"product": trail_runner}})
    records = asyncio.run(ProductsJsonStrategy().extract(page))
    assert [r.handle for r in records] == ["trail-runner"]


@pytest.mark.parametrize("body", [None, {}, {"products": None}, {"product": "nope"}, ["not", "a", "dict"]])
def test_api_strategy_treats_missing_payload_as_empty(body):
    target = f"{SHOP}/products.json?limit=250&page=1"
    page = make_page(f"{SHOP}/", responses={target: body})
    assert asyncio.run(ProductsJsonStrategy().extract(page)) == []


# ---- JSON-LD -----------------------------------------------------------------


def test_jsonld_picks_first_product_in_graph():
    html = jsonld({
        "@context": "https://schema.org",
        "@graph": [
            {"@type": "BreadcrumbList", "name": "crumbs"},
            {
                "@type": ["Product", "Thing"],
                "name": "Desk Lamp",
                "description": "Warm light",
                "brand": {"@type": "Brand", "name": "Lumen"},
                "category": "Lighting",
                "image": ["https://cdn.shop.example/lamp.jpg"],
                "offers": [{"price": "45.00", "priceCurrency": "EUR",
                            "availability": "https://schema.org/OutOfStock", "sku": "L-1"}],
            },
        ],
    })
    page = make_page(f"{SHOP}/products/desk-lamp", html)
    records = asyncio.run(JsonLdStrategy().extract(page))
    assert records == [
        StructuredDataProduct(
            title="Desk Lamp",
            description="Warm light",
            vendor="Lumen",
            product_type="Lighting",
            price=45.0,
            currency="EUR",
            available=False,
            images=["https://cdn.shop.example/lamp.jpg"],
            sku="L-1",
            url=f"{SHOP}/products/desk-lamp",
        )
    ]


def test_jsonld_in_stock_and_default_currency():
    html = jsonld({"@type": "Product", "name": "Mug", "brand": "Acme",
                   "offers": {"lowPrice": 9, "availability": "http://schema.org/InStock"}})
    (record,) = asyncio.run(JsonLdStrategy().extract(make_page(f"{SHOP}/products/mug", html)))
    assert record.available is True
    assert record.currency == "USD"
    assert record.price == 9.0
    assert record.vendor == "Acme"


def test_jsonld_skips_malformed_blocks():
    html = '<script type="application/ld+json">{not json</script>' + jsonld({"@type": "Product", "name": "Mug"})
    records = asyncio.run(JsonLdStrategy().extract(make_page(f"{SHOP}/products/mug", html)))
    assert [r.title for r in records] == ["Mug"]


def test_jsonld_without_product_is_empty():
    html = jsonld({"@type": "Organization", "name": "Acme"})
    assert asyncio.run(JsonLdStrategy().extract(make_page(SHOP, html))) == []


# ---- HTML tiles --------------------------------------------------------------


def test_html_tiles_extract_best_effort_fields():
    records = HtmlTileStrategy().parse_tiles(make_page(f"{SHOP}/collections/all", TILES_HTML).soup, f"{SHOP}/collections/all")
    assert records == [
        ScrapedProduct(
            title="Blue Mug",
            handle="blue-mug",
            url=f"{SHOP}/products/blue-mug?variant=1",
            price=1024.5,
            available=True,
            image="https://cdn.shop.example/blue.jpg?v=3",
        ),
        ScrapedProduct(
            title="Red Mug",
            handle="red-mug",
            url=f"{SHOP}/products/red-mug",
            price=None,
            available=False,
            image=f"{SHOP}/files/red.jpg",
        ),
    ]


def test_html_tiles_use_first_matching_selector():
    html = '<div class="product">Generic</div><div class="grid-product"><a href="/products/x">X</a></div>'
    records = HtmlTileStrategy().parse_tiles(make_page(SHOP, html).soup, SHOP)
    assert [r.handle for r in records] == ["x"]


def test_html_tiles_without_any_tile_is_a_miss():
    with pytest.raises(StrategyMiss):
        HtmlTileStrategy().parse_tiles(make_page(SHOP, "<p>Nothing here</p>").soup, SHOP)


# ---- Chain -------------------------------------------------------------------


class _Fixed:
    def __init__(self, name, result):
        self.name = name
        self.result = result
        self.calls = 0

    async def extract(self, page):
        self.calls += 1
        if isinstance(self.result, Exception):
            raise self.result
        return list(self.result)


def test_chain_stops_at_first_non_empty_strategy():
    first = _Fixed("api", [])
    second = _Fixed("structured_data", [ScrapedProduct(title="a")])
    third = _Fixed("html", [ScrapedProduct(title="b")])
    result = asyncio.run(StrategyChain([first, second, third]).run(make_page(SHOP)))
    assert result.stage is ExtractionStage.STRUCTURED_DATA_ATTEMPT
    assert [r.title for r in result.records] == ["a"]
    assert third.calls == 0


def test_chain_absorbs_errors_and_can_exhaust():
    chain = StrategyChain([_Fixed("api", RuntimeError("boom")), _Fixed("structured_data", ValueError("bad")),
                           _Fixed("html", StrategyMiss("none"))])
    result = asyncio.run(chain.run(make_page(SHOP)))
    assert result.stage is ExtractionStage.EXHAUSTED
    assert result.records == []


def test_default_chain_falls_back_to_html_when_api_and_jsonld_are_empty():
    calls = []
    target = f"{SHOP}/collections/all/products.json?limit=250&page=1"
    page = make_page(f"{SHOP}/collections/all", TILES_HTML, responses={target: {"products": []}}, calls=calls)
    result = asyncio.run(StrategyChain().run(page))
    assert calls == [target]
    assert result.stage is ExtractionStage.HTML_ATTEMPT
    assert [r.handle for r in result.records] == ["blue-mug", "red-mug"]


def test_register_before_inserts_ahead_of_named_strategy():
    chain = StrategyChain()
    custom = _Fixed("custom", [])
    chain.register(custom, before="html")
    assert [s.name for s in chain.strategies] == ["api", "structured_data", "custom", "html"]
