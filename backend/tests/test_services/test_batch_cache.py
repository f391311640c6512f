"""Tests for BatchCache."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from hotelhub.exceptions.custom import FetchTimeoutError, SupplierError, SupplierUnavailableError
from hotelhub.services.batch_cache import BatchCache, FetchedBatch
from hotelhub.services.search_types import BatchKey, EnrichedSummary, HotelSummary, SearchSignature

DUBAI = SearchSignature.create("Dubai", date(2026, 12, 1), date(2026, 12, 4))
PARIS = SearchSignature.create("Paris", date(2026, 12, 1), date(2026, 12, 4))


def _items(count: int, start: int = 0) -> tuple[EnrichedSummary, ...]:
    return tuple(
        EnrichedSummary(
            summary=HotelSummary(supplier_hotel_id=str(i), raw_net_price=Decimal("100"), currency="USD"),
            canonical_name=f"Hotel {i}",
        )
        for i in range(start, start + count)
    )


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


async def _ok(key: BatchKey) -> FetchedBatch:
    return FetchedBatch(items=_items(3), total_available=3)


async def _supplier_down(key: BatchKey) -> FetchedBatch:
    raise SupplierError("upstream 502", status_code=502)


# --- single flight ---


async def test_concurrent_misses_share_one_fetch():
    cache = BatchCache(wait_timeout=5)
    calls = 0

    async def fetch(key):
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.05)
        return FetchedBatch(items=_items(20), total_available=20)

    results = await asyncio.gather(*(cache.get_or_fetch(BatchKey(DUBAI, 1), fetch) for _ in range(50)))

    assert calls == 1
    assert all(r.entry is results[0].entry for r in results)
    assert not any(r.from_cache for r in results)
    assert cache.stats()["in_flight"] == 0


async def test_live_entry_served_from_cache():
    cache = BatchCache()
    first = await cache.get_or_fetch(BatchKey(DUBAI, 1), _ok)
    second = await cache.get_or_fetch(BatchKey(DUBAI, 1), _supplier_down)

    assert first.from_cache is False
    assert second.from_cache is True
    assert second.entry is first.entry
    assert cache.stats()["hits"] == 1


async def test_expired_entry_is_refetched():
    clock = Clock()
    cache = BatchCache(ttl=10, clock=clock)
    calls = 0

    async def fetch(key):
        nonlocal calls
        calls += 1
        return FetchedBatch(items=_items(2), total_available=2)

    await cache.get_or_fetch(BatchKey(DUBAI, 1), fetch)
    clock.now = 11
    result = await cache.get_or_fetch(BatchKey(DUBAI, 1), fetch)

    assert calls == 2
    assert result.from_cache is False


async def test_different_batches_fetch_independently():
    cache = BatchCache()
    seen = []

    async def fetch(key):
        seen.append(key.batch_number)
        return FetchedBatch(items=_items(1), total_available=200)

    await cache.get_or_fetch(BatchKey(DUBAI, 1), fetch)
    await cache.get_or_fetch(BatchKey(DUBAI, 2), fetch)

    assert seen == [1, 2]


# --- failures ---


async def test_failure_without_stale_raises_retryable_error():
    cache = BatchCache()
    with pytest.raises(SupplierUnavailableError) as exc_info:
        await cache.get_or_fetch(BatchKey(DUBAI, 1), _supplier_down)
    assert exc_info.value.retryable is True
    assert exc_info.value.code == "supplier_unavailable"


async def test_failure_is_not_cached():
    cache = BatchCache()
    with pytest.raises(SupplierUnavailableError):
        await cache.get_or_fetch(BatchKey(DUBAI, 1), _supplier_down)

    result = await cache.get_or_fetch(BatchKey(DUBAI, 1), _ok)
    assert result.from_cache is False
    assert len(result.entry.items) == 3


async def test_failure_serves_stale_entry():
    clock = Clock()
    cache = BatchCache(ttl=10, stale_ttl=100, clock=clock)
    fresh = await cache.get_or_fetch(BatchKey(DUBAI, 1), _ok)

    clock.now = 50
    result = await cache.get_or_fetch(BatchKey(DUBAI, 1), _supplier_down)

    assert result.stale is True
    assert result.from_cache is True
    assert result.entry is fresh.entry
    assert cache.stats()["stale_hits"] == 1


async def test_stale_window_is_bounded():
    clock = Clock()
    cache = BatchCache(ttl=10, stale_ttl=100, clock=clock)
    await cache.get_or_fetch(BatchKey(DUBAI, 1), _ok)

    clock.now = 500
    with pytest.raises(SupplierUnavailableError):
        await cache.get_or_fetch(BatchKey(DUBAI, 1), _supplier_down)
    assert cache.stats()["entries"] == 0


async def test_unexpected_error_propagates_unchanged():
    cache = BatchCache()

    async def broken(key):
        raise RuntimeError("bug")

    with pytest.raises(RuntimeError, match="bug"):
        await cache.get_or_fetch(BatchKey(DUBAI, 1), broken)


async def test_timeout_without_stale_raises_fetch_timeout():
    cache = BatchCache(wait_timeout=0.05)
    release = asyncio.Event()

    async def slow(key):
        await release.wait()
        return FetchedBatch(items=_items(4), total_available=4)

    with pytest.raises(FetchTimeoutError):
        await cache.get_or_fetch(BatchKey(DUBAI, 1), slow)

    # The fetch keeps running; a later caller joins it.
    assert cache.stats()["in_flight"] == 1
    release.set()
    result = await cache.get_or_fetch(BatchKey(DUBAI, 1), slow)
    assert len(result.entry.items) == 4
    assert cache.stats()["fetches"] == 1


async def test_timeout_serves_stale_entry():
    clock = Clock()
    cache = BatchCache(ttl=10, stale_ttl=100, wait_timeout=0.05, clock=clock)
    fresh = await cache.get_or_fetch(BatchKey(DUBAI, 1), _ok)
    release = asyncio.Event()

    async def slow(key):
        await release.wait()
        return FetchedBatch(items=_items(5), total_available=5)

    clock.now = 20
    result = await cache.get_or_fetch(BatchKey(DUBAI, 1), slow)
    assert result.stale is True
    assert result.entry is fresh.entry

    release.set()
    refreshed = await cache.get_or_fetch(BatchKey(DUBAI, 1), slow)
    assert len(refreshed.entry.items) == 5


# --- eviction and invalidation ---


async def test_lru_eviction_keeps_recently_used():
    cache = BatchCache(max_entries=2)
    await cache.get_or_fetch(BatchKey(DUBAI, 1), _ok)
    await cache.get_or_fetch(BatchKey(DUBAI, 2), _ok)
    await cache.get_or_fetch(BatchKey(DUBAI, 1), _ok)  # touch
    await cache.get_or_fetch(BatchKey(DUBAI, 3), _ok)

    assert cache.peek(BatchKey(DUBAI, 1)) is not None
    assert cache.peek(BatchKey(DUBAI, 2)) is None
    assert cache.peek(BatchKey(DUBAI, 3)) is not None


async def test_invalidate_one_signature():
    cache = BatchCache()
    await cache.get_or_fetch(BatchKey(DUBAI, 1), _ok)
    await cache.get_or_fetch(BatchKey(DUBAI, 2), _ok)
    await cache.get_or_fetch(BatchKey(PARIS, 1), _ok)

    assert cache.invalidate(DUBAI) == 2
    assert cache.peek(BatchKey(DUBAI, 1)) is None
    assert cache.peek(BatchKey(PARIS, 1)) is not None


async def test_invalidate_everything():
    cache = BatchCache()
    await cache.get_or_fetch(BatchKey(DUBAI, 1), _ok)
    await cache.get_or_fetch(BatchKey(PARIS, 1), _ok)

    assert cache.invalidate() == 2
    assert cache.stats()["entries"] == 0


async def test_purge_expired_drops_entries_past_stale_window():
    clock = Clock()
    cache = BatchCache(ttl=10, stale_ttl=20, clock=clock)
    await cache.get_or_fetch(BatchKey(DUBAI, 1), _ok)
    clock.now = 25
    await cache.get_or_fetch(BatchKey(PARIS, 1), _ok)

    clock.now = 40
    assert cache.purge_expired() == 1
    assert cache.stats()["entries"] == 1
