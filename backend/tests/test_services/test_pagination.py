"""Tests for PaginationCoordinator, driven through HotelSearchService."""

import asyncio
from datetime import date

import pytest

from hotelhub.exceptions.custom import RetryableSearchError, SupplierError, SupplierUnavailableError
from hotelhub.services.batch_cache import BatchCache, FetchedBatch
from hotelhub.services.pagination import PaginationCoordinator
from hotelhub.services.search_types import SearchSignature

DUBAI = SearchSignature.create("Dubai", date(2026, 12, 1), date(2026, 12, 4))


def _batches(supplier) -> list[int]:
    return [page for _, page in supplier.search_calls]


# --- batch arithmetic ---


def test_batch_size_must_be_multiple_of_page_size():
    async def loader(key):
        return FetchedBatch(items=(), total_available=0)

    with pytest.raises(ValueError, match="multiple"):
        PaginationCoordinator(BatchCache(), loader, batch_size=100, page_size=30)


def test_batch_number_for_pages():
    async def loader(key):
        return FetchedBatch(items=(), total_available=0)

    coordinator = PaginationCoordinator(BatchCache(), loader, batch_size=100, page_size=20)
    assert [coordinator.batch_number_for(p) for p in (1, 5, 6, 10, 11, 15)] == [1, 1, 2, 2, 3, 3]
    with pytest.raises(ValueError):
        coordinator.batch_number_for(0)


def test_batch_number_is_monotonic():
    async def loader(key):
        return FetchedBatch(items=(), total_available=0)

    coordinator = PaginationCoordinator(BatchCache(), loader, batch_size=100, page_size=20)
    numbers = [coordinator.batch_number_for(p) for p in range(1, 60)]
    assert numbers == sorted(numbers)


# --- scenarios ---


async def test_first_five_pages_share_one_fetch(search_service, supplier):
    for page in range(1, 6):
        result = await search_service.search_page(DUBAI, page)
        assert result.batch_number == 1
        assert len(result.hotels) == 20
    assert _batches(supplier) == [1]

    result = await search_service.search_page(DUBAI, 6)
    assert result.batch_number == 2
    assert _batches(supplier) == [1, 2]


async def test_pages_slice_the_batch_in_order(search_service):
    page1 = await search_service.search_page(DUBAI, 1)
    page2 = await search_service.search_page(DUBAI, 2)

    assert page1.hotels[0].hotel_id == "1000"
    assert page1.hotels[-1].hotel_id == "1019"
    assert page2.hotels[0].hotel_id == "1020"
    assert page2.from_cache is True


async def test_deep_page_fetches_only_its_batch(search_service, supplier):
    supplier.total = 400
    result = await search_service.search_page(DUBAI, 15)

    assert _batches(supplier) == [3]
    assert result.batch_number == 3
    assert result.hotels[0].hotel_id == "1280"
    assert result.has_more is True


async def test_small_destination_stops_after_last_page(search_service, supplier):
    supplier.total = 37

    page1 = await search_service.search_page(DUBAI, 1)
    page2 = await search_service.search_page(DUBAI, 2)

    assert page1.has_more is True
    assert len(page2.hotels) == 17
    assert page2.hotels[-1].hotel_id == "1036"
    assert page2.has_more is False
    assert page2.total_pages == 2
    assert _batches(supplier) == [1]


async def test_page_past_the_end_skips_fetch(search_service, supplier):
    supplier.total = 37
    await search_service.search_page(DUBAI, 1)

    beyond = await search_service.search_page(DUBAI, 6)

    assert beyond.hotels == ()
    assert beyond.has_more is False
    assert _batches(supplier) == [1]


async def test_short_batch_overrides_reported_total(search_service, supplier):
    # Supplier claims more than it delivers
    supplier.total = 30
    supplier.reported_total = 500
    page2 = await search_service.search_page(DUBAI, 2)

    assert len(page2.hotels) == 10
    assert page2.has_more is False
    assert page2.total_available == 30


async def test_concurrent_first_page_requests_make_one_supplier_call(search_service, supplier):
    supplier.delay = 0.05

    results = await asyncio.gather(*(search_service.search_page(DUBAI, 1) for _ in range(50)))

    assert len(supplier.search_calls) == 1
    assert all(len(r.hotels) == 20 for r in results)


async def test_equivalent_signatures_share_cache(search_service, supplier):
    await search_service.search_page(SearchSignature.create("  dubai ", "2026-12-01", "2026-12-04"), 1)
    await search_service.search_page(SearchSignature.create("DUBAI", date(2026, 12, 1), date(2026, 12, 4)), 2)

    assert len(supplier.search_calls) == 1


async def test_cold_page_past_the_end_reports_supplier_total(search_service, supplier):
    supplier.total = 37

    beyond = await search_service.search_page(DUBAI, 15)

    assert beyond.hotels == ()
    assert beyond.total_available == 37
    assert beyond.total_pages == 2
    assert beyond.has_more is False
    assert _batches(supplier) == [3]


async def test_short_batch_keeps_smaller_reported_total(search_service, supplier):
    supplier.total = 30
    supplier.reported_total = 25

    page1 = await search_service.search_page(DUBAI, 1)

    assert page1.total_available == 25
    assert page1.total_pages == 2


# --- failures ---


async def test_expired_batch_served_stale_when_supplier_fails(search_service, supplier, clock):
    await search_service.search_page(DUBAI, 1)
    clock.now = 601
    supplier.error = SupplierError("upstream 502", status_code=502)

    page = await search_service.search_page(DUBAI, 2)

    assert page.stale is True
    assert page.from_cache is True
    assert len(page.hotels) == 20
    assert page.hotels[0].hotel_id == "1020"
    assert _batches(supplier) == [1, 1]


async def test_retryable_supplier_failure_without_cache(search_service, supplier):
    supplier.error = SupplierError("upstream 502", status_code=502)

    with pytest.raises(SupplierUnavailableError):
        await search_service.search_page(DUBAI, 1)


async def test_non_retryable_supplier_failure_is_not_retryable(search_service, supplier):
    supplier.error = SupplierError("No supplier region matches 'atlantis'", status_code=400, retryable=False)

    with pytest.raises(SupplierError) as exc_info:
        await search_service.search_page(DUBAI, 1)

    assert not isinstance(exc_info.value, RetryableSearchError)
    assert exc_info.value.retryable is False
