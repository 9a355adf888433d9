from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List

from ..config import CrawlConfig
from ..engines.base import CrawlReport
from ..engines.shop_engine import ShopCrawlEngine
from ..errors import ConfigurationError, FatalError
from ..utils.logging import setup_logging
from ..utils.loader import load_symbol

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Storefront product catalog crawler")
    p.add_argument("urls", nargs="*", help="Start URLs (space-separated)")
    p.add_argument("--config", type=str, help="Path to config JSON", default=None)
    p.add_argument("--shop-url", type=str, default=None, help="Shop root, e.g. https://shop.example")
    p.add_argument("--collection", type=str, default=None, help="Collection handle to crawl")
    p.add_argument("--search", type=str, default=None, help="Search query to crawl")
    p.add_argument("--max-products", type=int, default=None, help="Stop after this many products (0 = unbounded)")
    p.add_argument("--max-pages", type=int, default=None, help="Max listing pages per seed")
    p.add_argument("--no-variants", action="store_true", help="Emit one row per product instead of per variant")
    p.add_argument("--exclude-out-of-stock", action="store_true", help="Skip unavailable products")
    p.add_argument("--proxy", action="append", default=None, help="Proxy URL (repeatable)")
    p.add_argument("--use-sitemap", action="store_true", help="Also seed product URLs from the shop's sitemaps")
    p.add_argument("--max-concurrency", type=int, default=None, help="Worker count (default from config)")
    p.add_argument("--exporter", type=str, default=None, help="Sink dotted path (module:ClassName) or alias")
    p.add_argument("--output", type=str, default=None, help="Output file path")
    p.add_argument("--stats", type=str, default=None, help="Run summary file path")
    p.add_argument("--log-level", type=str, default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
    p.add_argument("--serve", action="store_true", help="Run REST API server instead of CLI crawl")
    p.add_argument("--host", type=str, default="127.0.0.1", help="API host (when --serve)")
    p.add_argument("--port", type=int, default=8000, help="API port (when --serve)")
    return p


def _load_config(args: argparse.Namespace) -> CrawlConfig:
    if args.config:
        cfg = CrawlConfig.from_file(args.config)
    else:
        cfg = CrawlConfig.from_env()

    if args.urls:
        cfg.start_urls = list(args.urls)
    if args.shop_url:
        cfg.shop_url = args.shop_url
    if args.collection:
        cfg.collection = args.collection
    if args.search:
        cfg.search_query = args.search
    if args.max_products is not None:
        cfg.max_products = args.max_products
    if args.max_pages is not None:
        cfg.max_pages = args.max_pages
    if args.no_variants:
        cfg.include_variants = False
    if args.exclude_out_of_stock:
        cfg.include_out_of_stock = False
    if args.proxy:
        cfg.proxy_configuration = {"proxy_urls": args.proxy}
    if args.use_sitemap:
        cfg.use_sitemap = True
    if args.max_concurrency is not None:
        cfg.max_concurrency = args.max_concurrency
    if args.exporter:
        cfg.exporter = args.exporter
    if args.output:
        cfg.output_path = args.output
    if args.stats:
        cfg.stats_path = args.stats

    cfg.validate()
    return cfg


def run_server(host: str, port: int) -> None:
    try:
        import uvicorn  # type: ignore
    except Exception as exc:  # pragma: no cover - optional dep
        raise SystemExit("To run the API, install dependencies: pip install 'storefront-crawler[api]'") from exc
    uvicorn.run("storefront_crawler.apis.app:app", host=host, port=port)


def run_cli(argv: List[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level)

    if args.serve:
        run_server(args.host, args.port)
        return 0

    try:
        cfg = _load_config(args)
    except (OSError, TypeError, ValueError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    # Dynamic sink loading so upgrades don't require code edits.
    exporter_cls = load_symbol(cfg.exporter)
    sink = exporter_cls(cfg.output_path, stats_path=cfg.stats_path)

    async def _run() -> CrawlReport:
        engine = ShopCrawlEngine(cfg, sink)
        return await engine.crawl()

    try:
        report: CrawlReport = asyncio.run(_run())
    except ConfigurationError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2
    except FatalError as exc:
        logger.error("Fatal error: %s", exc)
        return 1
    finally:
        sink.close()

    logger.info("Products: %s | Failed: %s | Output: %s",
                report.total_products,
                report.failed_requests,
                cfg.output_path)
    return 0


def main() -> None:
    raise SystemExit(run_cli(sys.argv[1:]))
