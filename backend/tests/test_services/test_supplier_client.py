"""Tests for RateHawkClient."""

import json
from datetime import date
from decimal import Decimal

import httpx
import pytest
import respx
from httpx import Response

from hotelhub.exceptions.custom import HotelNotFoundError, SupplierError
from hotelhub.services.supplier_client import RateHawkClient

BASE = "https://api.test/api/b2b/v3"
MULTICOMPLETE_URL = f"{BASE}/search/multicomplete/"
SERP_URL = f"{BASE}/search/serp/region/"
HP_URL = f"{BASE}/search/hp/"
POI_DUMP_URL = f"{BASE}/hotel/poi/dump/"

CHECKIN = date(2026, 12, 1)
CHECKOUT = date(2026, 12, 4)
OCCUPANCY = (2, (7,))


def _rate(amount, currency="USD", included_tax=None, room="Double Room"):
    taxes = [{"amount": included_tax, "included_by_supplier": True}] if included_tax else []
    return {
        "room_name": room,
        "meal": "breakfast",
        "match_hash": f"m-{room}-{amount}",
        "payment_options": {
            "payment_types": [{
                "show_amount": amount,
                "show_currency_code": currency,
                "tax_data": {"taxes": taxes},
                "cancellation_penalties": {"free_cancellation_before": "2026-11-28T12:00:00"},
            }]
        },
    }


SERP_BODY = {
    "status": "ok",
    "data": {
        "total_hotels": 312,
        "hotels": [
            {"id": "jumeirah_beach_hotel", "hid": 7001, "rates": [_rate("900.00"), _rate("750.00", included_tax="50.00")]},
            {"id": "no_rates_inn", "hid": 7002, "rates": []},
            {"id": "burj_view", "hid": 7003, "rates": [_rate("410.50")]},
        ],
    },
}


@pytest.fixture
async def client():
    c = RateHawkClient(key_id="1234", api_key="secret", base_url=BASE, max_retries=3, backoff_seconds=0)
    yield c
    await c.close()


# --- search ---


@respx.mock
async def test_search_resolves_region_and_parses_hits(client):
    respx.post(MULTICOMPLETE_URL).mock(return_value=Response(200, json={"data": {"regions": [{"id": 6053839}]}}))
    serp = respx.post(SERP_URL).mock(return_value=Response(200, json=SERP_BODY))

    result = await client.search("dubai", CHECKIN, CHECKOUT, OCCUPANCY, "USD", result_limit=100, page=2)

    assert result.total_available == 312
    assert [h.supplier_hotel_id for h in result.hits] == ["7001", "7003"]
    assert result.hits[0].raw_net_price == Decimal("700.00")
    assert result.hits[0].name == "Jumeirah Beach Hotel"
    assert result.hits[1].hid == 7003

    payload = json.loads(serp.calls.last.request.content)
    assert payload["region_id"] == 6053839
    assert payload["page"] == 2
    assert payload["guests"] == [{"adults": 2, "children": [7]}]
    assert serp.calls.last.request.headers["authorization"].startswith("Basic ")


@respx.mock
async def test_region_lookup_is_memoized(client):
    lookup = respx.post(MULTICOMPLETE_URL).mock(return_value=Response(200, json={"data": {"regions": [{"id": 42}]}}))
    respx.post(SERP_URL).mock(return_value=Response(200, json=SERP_BODY))

    await client.search("dubai", CHECKIN, CHECKOUT, OCCUPANCY, "USD", result_limit=100)
    await client.search("dubai", CHECKIN, CHECKOUT, OCCUPANCY, "USD", result_limit=100, page=2)

    assert lookup.call_count == 1


@respx.mock
async def test_numeric_destination_is_a_region_id(client):
    lookup = respx.post(MULTICOMPLETE_URL)
    respx.post(SERP_URL).mock(return_value=Response(200, json=SERP_BODY))

    await client.search("6053839", CHECKIN, CHECKOUT, OCCUPANCY, "USD", result_limit=100)

    assert lookup.call_count == 0


@respx.mock
async def test_unknown_destination_is_not_retryable(client):
    respx.post(MULTICOMPLETE_URL).mock(return_value=Response(200, json={"data": {"regions": []}}))

    with pytest.raises(SupplierError) as exc_info:
        await client.search("atlantis", CHECKIN, CHECKOUT, OCCUPANCY, "USD", result_limit=100)
    assert exc_info.value.retryable is False


# --- retries ---


@respx.mock
async def test_retries_after_rate_limit(client):
    route = respx.post(SERP_URL).mock(side_effect=[Response(429), Response(200, json=SERP_BODY)])

    result = await client.search("6053839", CHECKIN, CHECKOUT, OCCUPANCY, "USD", result_limit=100)

    assert route.call_count == 2
    assert len(result.hits) == 2


@respx.mock
async def test_server_errors_exhaust_retries(client):
    route = respx.post(SERP_URL).mock(return_value=Response(503))

    with pytest.raises(SupplierError) as exc_info:
        await client.search("6053839", CHECKIN, CHECKOUT, OCCUPANCY, "USD", result_limit=100)

    assert route.call_count == 3
    assert exc_info.value.retryable is True
    assert exc_info.value.status_code == 503


@respx.mock
async def test_transport_errors_are_retried(client):
    route = respx.post(SERP_URL).mock(side_effect=[httpx.ConnectError("refused"), Response(200, json=SERP_BODY)])

    result = await client.search("6053839", CHECKIN, CHECKOUT, OCCUPANCY, "USD", result_limit=100)

    assert route.call_count == 2
    assert result.total_available == 312


@respx.mock
async def test_client_errors_are_not_retried(client):
    route = respx.post(SERP_URL).mock(return_value=Response(401, text="bad credentials"))

    with pytest.raises(SupplierError) as exc_info:
        await client.search("6053839", CHECKIN, CHECKOUT, OCCUPANCY, "USD", result_limit=100)

    assert route.call_count == 1
    assert exc_info.value.retryable is False
    assert exc_info.value.status_code == 401


# --- details ---


@respx.mock
async def test_details_returns_rates_cheapest_first(client):
    hp = respx.post(HP_URL).mock(return_value=Response(200, json={
        "data": {"hotels": [{"id": "burj_view", "rates": [_rate("500.00", room="Suite"), _rate("220.00")]}]}
    }))

    rates = await client.details("7003", CHECKIN, CHECKOUT, OCCUPANCY, "USD")

    assert [r.net_price for r in rates] == [Decimal("220.00"), Decimal("500.00")]
    assert rates[0].free_cancellation_before == "2026-11-28T12:00:00"
    assert json.loads(hp.calls.last.request.content)["hid"] == 7003


@respx.mock
async def test_details_unknown_hotel(client):
    respx.post(HP_URL).mock(return_value=Response(200, json={"data": {"hotels": []}}))

    with pytest.raises(HotelNotFoundError):
        await client.details("7003", CHECKIN, CHECKOUT, OCCUPANCY, "USD")


# --- dumps ---


@respx.mock
async def test_bulk_dump_returns_download_url(client):
    respx.post(POI_DUMP_URL).mock(return_value=Response(200, json={
        "data": {"url": "https://dumps.test/poi_en.jsonl.zst", "last_update": "2026-10-12T03:00:00Z"}
    }))

    info = await client.bulk_dump("poi", "en")

    assert info.url == "https://dumps.test/poi_en.jsonl.zst"
    assert info.last_update.year == 2026


@respx.mock
async def test_bulk_dump_not_ready_is_retryable(client):
    route = respx.post(POI_DUMP_URL).mock(return_value=Response(200, json={"error": "dump_not_ready"}))

    with pytest.raises(SupplierError) as exc_info:
        await client.bulk_dump("poi", "en")

    assert exc_info.value.retryable is True
    assert route.call_count == 1


async def test_bulk_dump_unknown_kind(client):
    with pytest.raises(ValueError):
        await client.bulk_dump("rooms")


# --- mock mode ---


async def test_mock_mode_without_credentials():
    mock = RateHawkClient(key_id="", api_key="")
    assert mock.is_mock is True

    first = await mock.search("dubai", CHECKIN, CHECKOUT, OCCUPANCY, "EUR", result_limit=100)
    again = await mock.search("dubai", CHECKIN, CHECKOUT, OCCUPANCY, "EUR", result_limit=100)

    assert first == again
    assert 40 <= first.total_available <= 400
    assert all(h.currency == "EUR" for h in first.hits)
    assert len(first.hits) == min(100, first.total_available)

    with pytest.raises(SupplierError) as exc_info:
        await mock.bulk_dump("poi")
    assert exc_info.value.retryable is False
