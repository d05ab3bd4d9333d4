import asyncio

import pytest

from tzglobe.singleflight import SingleflightCache


class CountingFetcher:
    def __init__(self, value="value", delay=0.02, error=None):
        self.value = value
        self.delay = delay
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.value


def test_concurrent_requests_share_one_fetch():
    cache = SingleflightCache()
    fetch = CountingFetcher()

    async def scenario():
        return await asyncio.gather(*[cache.get_or_fetch("k", fetch) for _ in range(5)])

    assert asyncio.run(scenario()) == ["value"] * 5
    assert fetch.calls == 1

    stats = cache.get_stats()
    assert stats["misses"] == 1
    assert stats["saves"] == 4
    assert stats["total_requests"] == 5
    assert stats["save_rate_pct"] == 80.0


def test_different_keys_fetch_independently():
    cache = SingleflightCache()
    fetch_a = CountingFetcher("a")
    fetch_b = CountingFetcher("b")

    async def scenario():
        return await asyncio.gather(cache.get_or_fetch("a", fetch_a), cache.get_or_fetch("b", fetch_b))

    assert asyncio.run(scenario()) == ["a", "b"]
    assert fetch_a.calls == 1
    assert fetch_b.calls == 1


def test_completed_fetch_is_not_reused():
    cache = SingleflightCache()
    fetch = CountingFetcher()

    async def scenario():
        await cache.get_or_fetch("k", fetch)
        assert not cache.is_in_flight("k")
        await cache.get_or_fetch("k", fetch)

    asyncio.run(scenario())
    assert fetch.calls == 2


def test_errors_reach_every_waiter():
    cache = SingleflightCache()
    fetch = CountingFetcher(error=RuntimeError("boom"))

    async def scenario():
        return await asyncio.gather(
            *[cache.get_or_fetch("k", fetch) for _ in range(3)],
            return_exceptions=True
        )

    results = asyncio.run(scenario())
    assert all(isinstance(r, RuntimeError) for r in results)
    assert fetch.calls == 1
    assert not cache.is_in_flight("k")


def test_waiter_timeout_does_not_cancel_load():
    cache = SingleflightCache()
    fetch = CountingFetcher(delay=0.1)

    async def scenario():
        patient = asyncio.ensure_future(cache.get_or_fetch("k", fetch))
        await asyncio.sleep(0)
        with pytest.raises(asyncio.TimeoutError):
            await cache.get_or_fetch("k", fetch, timeout=0.01)
        return await patient

    assert asyncio.run(scenario()) == "value"
    assert fetch.calls == 1
