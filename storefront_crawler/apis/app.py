from __future__ import annotations

from typing import Any, Dict, List, Optional, Union
import logging

try:
    from fastapi import FastAPI, HTTPException
    from pydantic import BaseModel
except Exception as exc:  # pragma: no cover - optional dependency
    raise RuntimeError(
        "FastAPI not installed. Install with `pip install 'storefront-crawler[api]'` "
        "or avoid using the API server."
    ) from exc

from ..config import CrawlConfig
from ..engines.base import CrawlReport
from ..engines.shop_engine import ShopCrawlEngine
from ..errors import ConfigurationError, FatalError
from ..export.memory_exporter import MemoryExporter
from ..version import __version__

logger = logging.getLogger(__name__)

app = FastAPI(title="storefront_crawler API", version=__version__)


class CrawlRequest(BaseModel):
    shop_url: Optional[str] = None
    start_urls: List[Union[str, Dict[str, Any]]] = []
    collection: Optional[str] = None
    search_query: Optional[str] = None
    max_products: Optional[int] = None
    max_pages: Optional[int] = None
    include_variants: Optional[bool] = None
    include_out_of_stock: Optional[bool] = None
    proxy_configuration: Optional[Any] = None
    max_concurrency: Optional[int] = None


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/crawl")
async def crawl(req: CrawlRequest) -> Dict[str, Any]:
    cfg = CrawlConfig.from_env()
    cfg.start_urls = list(req.start_urls) or cfg.start_urls
    for name in (
        "shop_url",
        "collection",
        "search_query",
        "max_products",
        "max_pages",
        "include_variants",
        "include_out_of_stock",
        "proxy_configuration",
        "max_concurrency",
    ):
        value = getattr(req, name)
        if value is not None:
            setattr(cfg, name, value)
    # Results are returned in the response; nothing is written to disk.
    cfg.stats_path = None

    try:
        cfg.validate()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    sink = MemoryExporter()
    engine = ShopCrawlEngine(cfg, sink)
    try:
        report: CrawlReport = await engine.crawl()
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except FatalError as exc:
        logger.error("Crawl failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    finally:
        sink.close()

    return {"summary": report.summary(), "products": sink.products, "failures": sink.failures}
