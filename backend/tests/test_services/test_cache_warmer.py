"""Tests for CacheWarmer and the scheduled warm-up job."""

from datetime import date

from hotelhub.exceptions.custom import SupplierError
from hotelhub.services.cache_warmer import CacheWarmer
from hotelhub.services.search_types import SearchSignature

TODAY = date(2026, 10, 18)


def _warmer(search_service, destinations, **kwargs):
    return CacheWarmer(search_service, destinations=destinations, delay=0, today=lambda: TODAY, **kwargs)


def test_default_stay_is_a_month_out():
    warmer = CacheWarmer(None, destinations=[], days_ahead=30, nights=3, today=lambda: TODAY)
    assert warmer.default_stay() == (date(2026, 11, 17), date(2026, 11, 20))


async def test_warm_all_primes_first_batch(search_service, supplier):
    warmer = _warmer(search_service, ["Dubai", "Paris"])

    stats = await warmer.warm_all()

    assert stats.warmed == ["Dubai", "Paris"]
    assert supplier.search_calls == [("dubai", 1), ("paris", 1)]

    # A client search for the same stay is now a cache hit.
    page = await search_service.search_page(SearchSignature.create("Dubai", "2026-11-17", "2026-11-20"), 1)
    assert page.from_cache is True
    assert len(supplier.search_calls) == 2


async def test_failed_destination_does_not_stop_the_pass(search_service, supplier):
    supplier.error = SupplierError("No supplier region matches 'atlantis'", retryable=False)
    warmer = _warmer(search_service, ["Atlantis", "Dubai"])

    stats = await warmer.warm_all()

    assert stats.failed == ["Atlantis", "Dubai"]
    assert len(supplier.search_calls) == 2
    assert stats.as_dict() == {"warmed": [], "failed": ["Atlantis", "Dubai"]}


async def test_warm_specific_dates(search_service, supplier):
    warmer = _warmer(search_service, ["Mecca"])

    stats = await warmer.warm_all(checkin=date(2027, 3, 20), checkout=date(2027, 3, 27))

    assert stats.warmed == ["Mecca"]
    page = await search_service.search_page(SearchSignature.create("Mecca", "2027-03-20", "2027-03-27"), 1)
    assert page.from_cache is True


async def test_scheduled_job_uses_configured_destinations(client, supplier):
    from hotelhub.main import app, build_scheduler, warm_popular_destinations

    app.state.cache_warmer = _warmer(app.state.search_service, ["London"])

    assert await warm_popular_destinations(app) == {"warmed": ["London"], "failed": []}
    assert supplier.search_calls == [("london", 1)]
    assert build_scheduler(app).get_job("cache_warm") is not None
