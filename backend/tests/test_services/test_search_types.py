from datetime import date
from decimal import Decimal

import pytest

from hotelhub.services.search_types import (
    BatchKey,
    CacheEntry,
    EnrichedSummary,
    HotelSummary,
    SearchSignature,
    Stay,
    normalize_city,
    normalize_destination,
)


def test_equivalent_requests_produce_equal_signatures():
    a = SearchSignature.create(" Dubai  Marina ", "2026-12-01", "2026-12-04", adults=2, children=[8, 3], currency="usd")
    b = SearchSignature.create("dubai marina", date(2026, 12, 1), date(2026, 12, 4), adults=2, children=(3, 8))
    assert a == b
    assert hash(a) == hash(b)
    assert a.destination_key == "dubai marina"
    assert a.children == (3, 8)
    assert a.currency == "USD"


def test_signatures_differ_on_occupancy():
    a = SearchSignature.create("Dubai", "2026-12-01", "2026-12-04", adults=2)
    b = SearchSignature.create("Dubai", "2026-12-01", "2026-12-04", adults=3)
    assert a != b
    assert BatchKey(a, 1) != BatchKey(b, 1)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"destination": "  "},
        {"checkout": "2026-12-01"},
        {"adults": 0},
        {"children": [18]},
    ],
)
def test_invalid_signatures_are_rejected(kwargs):
    args = {"destination": "Dubai", "checkin": "2026-12-01", "checkout": "2026-12-04"}
    args.update(kwargs)
    with pytest.raises(ValueError):
        SearchSignature.create(**args)


def test_stay_validates_without_destination():
    stay = Stay.create("2026-12-01", "2026-12-04", adults=1, children=[9, 4], currency="eur")

    assert stay.occupancy == (1, (4, 9))
    assert stay.currency == "EUR"
    with pytest.raises(ValueError, match="checkout"):
        Stay.create("2026-12-04", "2026-12-01")


def test_nights():
    assert SearchSignature.create("Rome", "2026-12-01", "2026-12-04").nights == 3


def test_normalizers():
    assert normalize_destination("  New   York ") == "new york"
    assert normalize_city("  São  Paulo") == "são paulo"
    assert normalize_city("") is None


def test_cache_entry_liveness():
    sig = SearchSignature.create("Rome", "2026-12-01", "2026-12-04")
    entry = CacheEntry(key=BatchKey(sig, 1), items=(), fetched_at=100.0, ttl=60, total_available=0)
    assert entry.expires_at() == 160.0
    assert entry.is_live(160.0)
    assert not entry.is_live(160.5)


def test_display_name_prefers_translation():
    hotel = EnrichedSummary(
        summary=HotelSummary(supplier_hotel_id="1", raw_net_price=Decimal("10"), currency="EUR"),
        canonical_name="Grand Hotel",
        translated_names={"de": "Großes Hotel"},
    )
    assert hotel.display_name("de") == "Großes Hotel"
    assert hotel.display_name("fr") == "Grand Hotel"
    assert hotel.display_name() == "Grand Hotel"
