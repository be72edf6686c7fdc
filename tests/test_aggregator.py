"""Settle-all fan-out, cache-aside behaviour and cache stores."""

import asyncio

import pytest

from mediagate.cache.aggregator import (
    CacheAsideAggregator,
    Fulfilled,
    Rejected,
    gather_sections,
    settle_all,
)
from mediagate.cache.store import MemoryCacheStore, NullCacheStore, RedisCacheStore, create_cache_store
from mediagate.errors import CacheStoreUnavailable


class _DownStore:
    backend = "redis"

    def __init__(self):
        self.reads = 0
        self.writes = 0

    async def get(self, key):
        self.reads += 1
        raise CacheStoreUnavailable("down")

    async def set(self, key, value, ttl_seconds):
        self.writes += 1
        raise CacheStoreUnavailable("down")


class _Counter:
    def __init__(self, value=None, delay=0.0):
        self.calls = 0
        self.value = value if value is not None else {"items": [1, 2, 3]}
        self.delay = delay

    async def __call__(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.value


def _section(i, fail=False):
    async def call():
        await asyncio.sleep(0.001 * (12 - i))
        if fail:
            raise RuntimeError(f"section {i} failed")
        return [{"id": i}]

    return call


@pytest.mark.anyio
async def test_settle_all_keeps_order_and_tags():
    outcomes = await settle_all([_section(0), _section(1, fail=True), _section(2)])
    assert isinstance(outcomes[0], Fulfilled) and outcomes[0].value == [{"id": 0}]
    assert isinstance(outcomes[1], Rejected) and "section 1" in str(outcomes[1].reason)
    assert isinstance(outcomes[2], Fulfilled) and outcomes[2].value == [{"id": 2}]


@pytest.mark.anyio
async def test_partial_failure_degrades_only_failed_sections():
    failing = {2, 5, 9}
    calls = {f"s{i}": _section(i, fail=i in failing) for i in range(12)}

    result = await gather_sections(calls)

    assert len(result.sections) == 12
    assert len(result.populated()) == 9
    for i in range(12):
        expected = [] if i in failing else [{"id": i}]
        assert result.sections[f"s{i}"] == expected
    assert result.built_at > 0


@pytest.mark.anyio
async def test_failure_does_not_cancel_siblings():
    finished = []

    async def slow():
        await asyncio.sleep(0.02)
        finished.append("slow")
        return ["ok"]

    async def fast_fail():
        raise ValueError("nope")

    result = await gather_sections({"slow": slow, "bad": fast_fail})
    assert finished == ["slow"]
    assert result.sections == {"slow": ["ok"], "bad": []}


@pytest.mark.anyio
async def test_cache_hit_skips_compute():
    aggregator = CacheAsideAggregator(MemoryCacheStore())
    compute = _Counter()

    first = await aggregator.fetch_or_compute("k", 60, compute)
    second = await aggregator.fetch_or_compute("k", 60, compute)

    assert compute.calls == 1
    assert first == second == {"items": [1, 2, 3]}


@pytest.mark.anyio
async def test_expired_entry_recomputes():
    now = [100.0]
    store = MemoryCacheStore(clock=lambda: now[0])
    aggregator = CacheAsideAggregator(store)
    compute = _Counter()

    await aggregator.fetch_or_compute("k", 10, compute)
    now[0] += 9.9
    await aggregator.fetch_or_compute("k", 10, compute)
    assert compute.calls == 1

    now[0] += 0.2
    await aggregator.fetch_or_compute("k", 10, compute)
    assert compute.calls == 2


@pytest.mark.anyio
async def test_unavailable_store_always_computes():
    store = _DownStore()
    aggregator = CacheAsideAggregator(store)
    compute = _Counter()

    assert await aggregator.fetch_or_compute("k", 60, compute) == {"items": [1, 2, 3]}
    assert await aggregator.fetch_or_compute("k", 60, compute) == {"items": [1, 2, 3]}

    assert compute.calls == 2
    assert store.reads == 2 and store.writes == 2


@pytest.mark.anyio
async def test_null_store_always_computes():
    aggregator = CacheAsideAggregator(NullCacheStore())
    compute = _Counter()
    await aggregator.fetch_or_compute("k", 60, compute)
    await aggregator.fetch_or_compute("k", 60, compute)
    assert compute.calls == 2


@pytest.mark.anyio
async def test_failed_compute_is_not_cached():
    store = MemoryCacheStore()
    aggregator = CacheAsideAggregator(store)

    async def broken():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await aggregator.fetch_or_compute("k", 60, broken)
    assert await store.get("k") is None


@pytest.mark.anyio
async def test_single_flight_coalesces_concurrent_misses():
    aggregator = CacheAsideAggregator(MemoryCacheStore(), single_flight=True)
    compute = _Counter(delay=0.02)

    results = await asyncio.gather(*(aggregator.fetch_or_compute("k", 60, compute) for _ in range(5)))

    assert compute.calls == 1
    assert all(r == {"items": [1, 2, 3]} for r in results)


@pytest.mark.anyio
async def test_without_single_flight_misses_recompute():
    aggregator = CacheAsideAggregator(MemoryCacheStore(), single_flight=False)
    compute = _Counter(delay=0.02)

    await asyncio.gather(*(aggregator.fetch_or_compute("k", 60, compute) for _ in range(3)))

    assert compute.calls == 3


@pytest.mark.anyio
async def test_redis_store_round_trip_with_ttl():
    store = create_cache_store("fakeredis://")
    assert isinstance(store, RedisCacheStore)
    aggregator = CacheAsideAggregator(store)
    compute = _Counter()

    await aggregator.fetch_or_compute("bundle", 120, compute)
    again = await aggregator.fetch_or_compute("bundle", 120, compute)

    assert compute.calls == 1
    assert again == {"items": [1, 2, 3]}
    assert 0 < await store._client.ttl("bundle") <= 120
    assert await store.ping() is True
    await store.close()


def test_store_factory_backends():
    assert create_cache_store("").backend == "disabled"
    assert create_cache_store("memory://").backend == "memory"
