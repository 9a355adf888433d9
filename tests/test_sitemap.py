import asyncio
import logging

import aiohttp
from aiohttp.test_utils import TestServer

from storefront_crawler.utils.sitemap import check_robots_txt, discover_product_urls


def urlset(*locs: str) -> str:
    return "<urlset>" + "".join(f"<url><loc>{loc}</loc></url>" for loc in locs) + "</urlset>"


async def discover(shop, robots: str, **kwargs):
    async with TestServer(shop.app()) as server:
        base = str(server.make_url("/")).rstrip("/")
        shop.add("/robots.txt", robots.format(base=base))
        shop.add(
            "/sitemap.xml",
            "<sitemapindex>"
            f"<sitemap><loc>{base}/sitemap_products_1.xml?from=1</loc></sitemap>"
            f"<sitemap><loc>{base}/sitemap_pages_1.xml</loc></sitemap>"
            "</sitemapindex>",
        )
        shop.add("/sitemap_products_1.xml", urlset(
            f"{base}/products/a", f"{base}/products/b", f"{base}/products/a", f"{base}/collections/x",
        ))
        shop.add("/sitemap_pages_1.xml", urlset(f"{base}/pages/about"))
        async with aiohttp.ClientSession() as session:
            urls = await discover_product_urls(session, base, timeout=5, **kwargs)
        return urls, base


ROBOTS = "# we use Shopify as our ecommerce platform\nUser-agent: *\nSitemap: {base}/sitemap.xml\n"


def test_product_urls_come_from_product_sitemaps(shop):
    urls, base = asyncio.run(discover(shop, ROBOTS))
    assert urls == [f"{base}/products/a", f"{base}/products/b"]
    assert shop.hits["/sitemap_pages_1.xml"] == 0


def test_sitemap_discovery_respects_limit(shop):
    urls, base = asyncio.run(discover(shop, ROBOTS, limit=1))
    assert urls == [f"{base}/products/a"]


def test_non_shopify_robots_logs_a_warning(shop, caplog):
    async def scenario():
        async with TestServer(shop.app()) as server:
            base = str(server.make_url("/")).rstrip("/")
            shop.add("/robots.txt", f"User-agent: *\nSitemap: {base}/sitemap.xml\n")
            async with aiohttp.ClientSession() as session:
                return await check_robots_txt(session, base, timeout=5), base

    with caplog.at_level(logging.WARNING, logger="storefront_crawler.utils.sitemap"):
        sitemaps, base = asyncio.run(scenario())
    assert sitemaps == [f"{base}/sitemap.xml"]
    assert "may not be a Shopify store" in caplog.text
