from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from .base import CrawlEngine, CrawlReport
from .seeds import SeedURL, resolve_seeds
from .sessions import CrawlSession, SessionPool
from .state import CrawlState, CrawlTask
from ..config import CrawlConfig
from ..errors import FatalError, TerminalPageFailure, TransportFailure
from ..adapters.base import PageContext, RawProductRecord
from ..adapters.registry import StrategyChain
from ..export.base import RecordSink
from ..transformers.product_normalizer import as_rows, normalize_record, resolve_product_url
from ..transformers.schema import FailureRecord
from ..utils.http import BLOCKED_STATUSES, fetch_json, fetch_text
from ..utils.pagination import find_next_page_url
from ..utils.parsing import base_domain, classify_page, iso_timestamp, normalize_shop_url
from ..utils.proxy import ProxyConfiguration
from ..utils.sitemap import discover_product_urls

logger = logging.getLogger(__name__)


class ShopCrawlEngine(CrawlEngine):
    """
    Storefront crawler.
    - Engine owns HTTP, sessions, the frontier and acceptance bookkeeping.
    - Strategies own page parsing; the normalizer owns the output schema.
    - Concurrency capped by a fixed number of workers sharing one queue.
    """
    def __init__(
        self,
        config: CrawlConfig,
        sink: RecordSink,
        chain: StrategyChain | None = None,
    ) -> None:
        self.config = config
        self.sink = sink
        if chain is None:
            chain = StrategyChain(currency=config.currency)
            # Try entry-point discovery; no plugins is the common case.
            chain.discover_entry_points()
        self.chain = chain
        self.state = CrawlState(config.product_limit)
        self.proxy = ProxyConfiguration.from_descriptor(config.proxy_configuration)
        self.pages_visited = 0

    async def crawl(self) -> CrawlReport:
        cfg = self.config
        # Raises ConfigurationError before any network activity.
        seeds = resolve_seeds(cfg.start_urls, cfg.shop_url, cfg.collection, cfg.search_query)

        if not self.proxy:
            logger.warning("No proxy configuration provided. This may lead to rate limiting.")

        pool = SessionPool(
            max_pool_size=cfg.session_pool_size,
            max_error_score=cfg.session_max_error_score,
            max_usage_count=cfg.session_max_usage_count,
            proxy=self.proxy,
            user_agent=cfg.user_agent,
        )
        q: asyncio.Queue[CrawlTask] = asyncio.Queue()
        try:
            if cfg.use_sitemap and cfg.shop_url:
                seeds.extend(await self._sitemap_seeds(pool))

            logger.info("Starting crawler with %s initial URLs", len(seeds))
            for seed in seeds:
                q.put_nowait(CrawlTask(url=seed.url, page_no=seed.page_no))

            workers = [asyncio.create_task(self._worker(q, pool)) for _ in range(cfg.max_concurrency)]
            drained = asyncio.create_task(q.join())
            await asyncio.wait([drained, *workers], return_when=asyncio.FIRST_COMPLETED)

            crashed = [w for w in workers if w.done() and not w.cancelled() and w.exception()]
            for t in (*workers, drained):
                t.cancel()
            await asyncio.gather(*workers, drained, return_exceptions=True)
            if crashed:
                exc = crashed[0].exception()
                if isinstance(exc, FatalError):
                    raise exc
                raise FatalError(f"Crawl aborted: {exc!r}") from exc
        finally:
            await pool.close()

        report = CrawlReport(
            total_products=self.state.accepted,
            unique_products=len(self.state.seen_urls),
            failures=list(self.state.failures),
            pages_visited=self.pages_visited,
            completed_at=iso_timestamp(),
        )
        try:
            self.sink.write_summary(report.summary())
        except OSError as exc:
            raise FatalError(f"Could not write run summary: {exc}") from exc

        logger.info("=" * 40)
        logger.info("Scraping completed")
        logger.info("Total products scraped: %s", report.total_products)
        logger.info("Unique products: %s", report.unique_products)
        logger.info("Failed requests: %s", report.failed_requests)
        logger.info("=" * 40)
        return report

    # ---- Workers ------------------------------------------------------------

    async def _worker(self, q: asyncio.Queue[CrawlTask], pool: SessionPool) -> None:
        while True:
            task = await q.get()
            try:
                await self._handle(task, q, pool)
            finally:
                q.task_done()

    async def _handle(self, task: CrawlTask, q: asyncio.Queue[CrawlTask], pool: SessionPool) -> None:
        cfg = self.config
        if self.state.budget_exhausted:
            logger.debug("Budget exhausted, dropping %s", task.url)
            return
        if task.page_no > cfg.page_limit:
            logger.info("Reached max pages limit (%s)", cfg.page_limit)
            return

        session = pool.acquire()
        try:
            html = await fetch_text(
                session.client,
                task.url,
                timeout=cfg.request_timeout,
                user_agent=cfg.user_agent,
                proxy=session.proxy_url,
            )
        except TransportFailure as exc:
            session.mark_bad()
            if exc.status in BLOCKED_STATUSES:
                session.retire()
            await pool.release(session)
            await self._retry_or_fail(task, exc, q)
            return

        session.mark_good()
        try:
            await self._process_page(task, html, session, q)
        finally:
            await pool.release(session)

    async def _retry_or_fail(self, task: CrawlTask, exc: TransportFailure, q: asyncio.Queue[CrawlTask]) -> None:
        cfg = self.config
        if task.retry_count < cfg.max_request_retries:
            task.retry_count += 1
            delay = cfg.retry_backoff * min(2 ** (task.retry_count - 1), 8)
            logger.warning(
                "Retrying %s (%s/%s) in %.1fs: %s",
                task.url, task.retry_count, cfg.max_request_retries, delay, exc,
            )
            if delay > 0:
                await asyncio.sleep(delay)
            q.put_nowait(task)
            return

        terminal = TerminalPageFailure(task.url, str(exc), task.retry_count)
        logger.error("Request failed after %s retries: %s (%s)", terminal.retries, terminal.url, terminal)
        failure = FailureRecord(
            url=terminal.url,
            error=str(terminal),
            retries=terminal.retries,
            timestamp=iso_timestamp(),
        )
        await self.state.record_failure(failure)
        self._write(failure.to_dict())

    async def _process_page(
        self,
        task: CrawlTask,
        html: str,
        session: CrawlSession,
        q: asyncio.Queue[CrawlTask],
    ) -> None:
        cfg = self.config
        self.pages_visited += 1
        shop_root = base_domain(task.url) or task.url
        limit = cfg.product_limit
        logger.info(
            "Processing page %s: %s (%s/%s products)",
            task.page_no, task.url, self.state.accepted, limit if limit is not None else "unbounded",
        )

        async def _fetch_json(url: str) -> Optional[Any]:
            return await fetch_json(
                session.client,
                url,
                timeout=cfg.request_timeout,
                user_agent=cfg.user_agent,
                proxy=session.proxy_url,
                retries=cfg.transport_retries,
            )

        page = PageContext(
            url=task.url,
            html=html,
            page_no=task.page_no,
            kind=classify_page(task.url),
            shop_root=shop_root,
            fetch_json=_fetch_json,
        )
        result = await self.chain.run(page)

        saved = 0
        for record in result.records:
            if self.state.budget_exhausted:
                logger.info("Reached maximum products limit (%s)", limit)
                break
            saved += await self._accept(record, shop_root)
        logger.info("Saved %s products (Total: %s)", saved, self.state.accepted)

        if not result.records or self.state.budget_exhausted or task.page_no >= cfg.page_limit:
            return
        next_url = find_next_page_url(page.soup, task.url)
        if next_url:
            logger.info("Found next page: %s", next_url)
            q.put_nowait(CrawlTask(url=next_url, page_no=task.page_no + 1))
        else:
            logger.info("No more pages found after %s", task.url)

    # ---- Acceptance ---------------------------------------------------------

    async def _accept(self, record: RawProductRecord, shop_root: str) -> int:
        cfg = self.config
        url = resolve_product_url(record, shop_root)
        if not url:
            logger.debug("Skipping record without URL or handle: %r", record)
            return 0
        if url in self.state.seen_urls:
            return 0

        try:
            rows = as_rows(
                normalize_record(
                    record,
                    shop_root,
                    include_variants=cfg.include_variants,
                    currency=cfg.currency,
                )
            )
        except (TypeError, ValueError, AttributeError) as exc:
            logger.warning("Could not normalize product %s: %r", url, exc)
            return 0

        if not cfg.include_out_of_stock:
            rows = [row for row in rows if row.available]

        admitted = await self.state.try_accept(url, rows)
        for row in admitted:
            self._write(row.to_dict())
        return len(admitted)

    def _write(self, record: Dict[str, Any]) -> None:
        try:
            self.sink.write(record)
        except OSError as exc:
            raise FatalError(f"Output sink unavailable: {exc}") from exc

    # ---- Seeding extensions -------------------------------------------------

    async def _sitemap_seeds(self, pool: SessionPool) -> List[SeedURL]:
        cfg = self.config
        session = pool.acquire()
        try:
            urls = await discover_product_urls(
                session.client,
                normalize_shop_url(cfg.shop_url or ""),
                limit=cfg.product_limit,
                timeout=cfg.request_timeout,
                proxy=session.proxy_url,
            )
        finally:
            await pool.release(session)
        logger.info("Sitemaps contributed %s product URLs", len(urls))
        return [SeedURL(url=u) for u in urls]
