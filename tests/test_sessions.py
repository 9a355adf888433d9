import asyncio

from storefront_crawler.engines.sessions import SessionPool
from storefront_crawler.utils.proxy import ProxyConfiguration


def test_session_is_rotated_after_usage_limit():
    async def scenario():
        pool = SessionPool(max_pool_size=1, max_usage_count=2)
        first = pool.acquire()
        await pool.release(first)
        reused = pool.acquire()
        await pool.release(reused)
        fresh = pool.acquire()
        await pool.release(fresh)
        closed = first.client.closed
        await pool.close()
        return pool, first, reused, fresh, closed

    pool, first, reused, fresh, closed = asyncio.run(scenario())
    assert reused is first
    assert fresh is not first
    assert first.retired and closed
    assert pool.retired_count == 1


def test_session_is_rotated_after_error_score():
    async def scenario():
        pool = SessionPool(max_pool_size=1, max_error_score=3)
        session = pool.acquire()
        for _ in range(3):
            session.mark_bad()
        await pool.release(session)
        replacement = pool.acquire()
        await pool.release(replacement)
        await pool.close()
        return session, replacement

    session, replacement = asyncio.run(scenario())
    assert session.retired
    assert replacement is not session


def test_busy_session_is_closed_only_after_last_release():
    async def scenario():
        pool = SessionPool(max_pool_size=1, max_usage_count=10)
        a = pool.acquire()
        b = pool.acquire()
        assert a is b
        a.retire()
        await pool.release(a)
        still_open = not a.client.closed
        await pool.release(b)
        closed_after = a.client.closed
        await pool.close()
        return still_open, closed_after

    still_open, closed_after = asyncio.run(scenario())
    assert still_open and closed_after


def test_sessions_get_sticky_round_robin_proxies():
    async def scenario():
        proxy = ProxyConfiguration.from_descriptor({"proxy_urls": ["http://p1:8000", "http://p2:8000"]})
        pool = SessionPool(max_pool_size=3, proxy=proxy)
        sessions = [pool.acquire() for _ in range(3)]
        proxies = [s.proxy_url for s in sessions]
        await pool.close()
        return proxies

    assert asyncio.run(scenario()) == ["http://p1:8000", "http://p2:8000", "http://p1:8000"]


def test_proxy_descriptor_shapes():
    assert ProxyConfiguration.from_descriptor(None) is None
    assert ProxyConfiguration.from_descriptor({"proxyUrls": []}) is None
    assert ProxyConfiguration.from_descriptor("http://p:1").new_url() == "http://p:1"
    single = ProxyConfiguration.from_descriptor(["http://a:1", "http://b:1"])
    assert single.new_url("s1") == single.new_url("s1")
