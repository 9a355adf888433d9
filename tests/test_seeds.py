import pytest

from storefront_crawler.engines.seeds import SeedURL, resolve_seeds
from storefront_crawler.errors import ConfigurationError


def test_explicit_urls_are_kept_verbatim_and_in_order():
    seeds = resolve_seeds(["https://a.example/collections/x?sort=price", {"url": "https://b.example/products/y"}])
    assert seeds == [
        SeedURL("https://a.example/collections/x?sort=price"),
        SeedURL("https://b.example/products/y"),
    ]
    assert all(s.page_no == 1 for s in seeds)


def test_collection_beats_search_query():
    seeds = resolve_seeds(shop_url="https://shop.example/", collection="summer", search_query="hat")
    assert [s.url for s in seeds] == ["https://shop.example/collections/summer"]


def test_search_query_is_url_encoded():
    seeds = resolve_seeds(shop_url="shop.example", search_query="red hat & scarf")
    assert [s.url for s in seeds] == ["https://shop.example/search?q=red+hat+%26+scarf"]


def test_shop_root_defaults_to_all_products():
    seeds = resolve_seeds(["https://shop.example/products/mug"], shop_url="https://shop.example")
    assert [s.url for s in seeds] == [
        "https://shop.example/products/mug",
        "https://shop.example/collections/all",
    ]


@pytest.mark.parametrize("start_urls", [None, [], ["", {"url": ""}, {"href": "x"}]])
def test_no_usable_seed_is_a_configuration_error(start_urls):
    with pytest.raises(ConfigurationError):
        resolve_seeds(start_urls, shop_url=None)
