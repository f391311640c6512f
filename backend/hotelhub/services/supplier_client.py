"""Supplier client — adapter for the RateHawk (ETG) B2B v3 API with retries and a mock mode."""

import asyncio
import hashlib
import logging
import random
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Protocol

import httpx

from hotelhub.config import settings
from hotelhub.exceptions.custom import HotelNotFoundError, SupplierError
from hotelhub.services.search_types import HotelSummary

logger = logging.getLogger(__name__)

DUMP_ENDPOINTS = {
    "hotel_info": "/hotel/info/dump/",
    "poi": "/hotel/poi/dump/",
    "reviews": "/hotel/reviews/dump/",
}

# Supplier body errors worth retrying later
RETRYABLE_BODY_ERRORS = {"dump_not_ready", "timeout", "unknown"}

Occupancy = tuple[int, tuple[int, ...]]


@dataclass(frozen=True)
class SupplierSearchResult:
    hits: list[HotelSummary]
    total_available: int


@dataclass(frozen=True)
class SupplierRate:
    room_name: str
    net_price: Decimal
    currency: str
    meal: str | None = None
    match_hash: str | None = None
    free_cancellation_before: str | None = None


@dataclass(frozen=True)
class DumpInfo:
    kind: str
    language: str
    url: str
    last_update: datetime | None = None


class SupplierClient(Protocol):
    async def search(
        self,
        destination_key: str,
        checkin: date,
        checkout: date,
        occupancy: Occupancy,
        currency: str,
        result_limit: int,
        page: int = 1,
    ) -> SupplierSearchResult: ...

    async def details(
        self,
        hotel_id: str,
        checkin: date,
        checkout: date,
        occupancy: Occupancy,
        currency: str,
    ) -> list[SupplierRate]: ...

    async def bulk_dump(self, kind: str, language: str = "en") -> DumpInfo: ...


def _guests(occupancy: Occupancy) -> list[dict]:
    adults, children = occupancy
    return [{"adults": adults, "children": list(children)}]


def _format_slug(hotel_id: str) -> str:
    return hotel_id.replace("_", " ").title()


def _payment_amount(rate: dict) -> tuple[Decimal | None, str | None]:
    """Show amount minus taxes the supplier already includes."""
    payment_types = (rate.get("payment_options") or {}).get("payment_types") or []
    if not payment_types:
        return None, None
    pt = payment_types[0]
    raw = pt.get("show_amount") or pt.get("amount")
    if raw is None:
        return None, None
    amount = Decimal(str(raw))
    for tax in (pt.get("tax_data") or {}).get("taxes") or []:
        if tax.get("included_by_supplier"):
            amount -= Decimal(str(tax.get("amount") or 0))
    return amount, pt.get("show_currency_code") or pt.get("currency_code")


class RateHawkClient:
    """Adapter for the RateHawk B2B API (Basic auth, JSON POST endpoints)."""

    def __init__(
        self,
        key_id: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        max_retries: int | None = None,
        backoff_seconds: float = 1.0,
        residency: str | None = None,
        language: str | None = None,
    ):
        self._key_id = key_id if key_id is not None else settings.supplier_key_id
        self._api_key = api_key if api_key is not None else settings.supplier_api_key
        self._base_url = (base_url or settings.supplier_base_url).rstrip("/")
        self._client = client
        self._owns_client = client is None
        self._max_retries = max(1, max_retries or settings.supplier_max_retries)
        self._backoff_seconds = backoff_seconds
        self._residency = residency or settings.supplier_residency
        self._language = language or settings.supplier_language
        self._semaphore = asyncio.Semaphore(settings.supplier_max_concurrency)
        self._regions: dict[str, int] = {}
        self._use_mock = not (self._key_id and self._api_key)
        if self._use_mock:
            logger.warning("Supplier credentials missing, serving mock hotel inventory")

    @property
    def is_mock(self) -> bool:
        return self._use_mock

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=settings.supplier_timeout_seconds)
        return self._client

    async def _post(self, endpoint: str, payload: dict) -> dict:
        """POST with retries on 429, 5xx and transport errors."""
        client = await self._get_client()
        last_error: SupplierError | None = None

        async with self._semaphore:
            for attempt in range(self._max_retries):
                try:
                    resp = await client.post(
                        f"{self._base_url}{endpoint}",
                        json=payload,
                        auth=(self._key_id, self._api_key),
                    )
                except httpx.RequestError as e:
                    logger.error(f"Supplier request error on {endpoint}: {e}")
                    last_error = SupplierError(f"Request to {endpoint} failed: {e}", retryable=True)
                else:
                    if resp.status_code == 429 or resp.status_code >= 500:
                        logger.warning(f"Supplier returned {resp.status_code} on {endpoint} (attempt {attempt + 1})")
                        last_error = SupplierError(
                            f"{endpoint} returned {resp.status_code}",
                            status_code=resp.status_code,
                            retryable=True,
                        )
                    elif resp.status_code >= 400:
                        raise SupplierError(
                            f"{endpoint} returned {resp.status_code}: {resp.text[:200]}",
                            status_code=resp.status_code,
                            retryable=False,
                        )
                    else:
                        body = resp.json()
                        error = body.get("error")
                        if error:
                            raise SupplierError(
                                str(error),
                                status_code=resp.status_code,
                                retryable=error in RETRYABLE_BODY_ERRORS,
                            )
                        return body

                if attempt < self._max_retries - 1:
                    await asyncio.sleep(self._backoff_seconds * 2 ** attempt)

        raise last_error or SupplierError(f"{endpoint} failed")

    async def resolve_region(self, destination_key: str) -> int:
        """Map a destination to a supplier region id via multicomplete (memoized)."""
        if destination_key.isdigit():
            return int(destination_key)
        if destination_key in self._regions:
            return self._regions[destination_key]

        body = await self._post("/search/multicomplete/", {"query": destination_key, "language": self._language})
        regions = (body.get("data") or {}).get("regions") or []
        if not regions:
            raise SupplierError(f"No supplier region matches '{destination_key}'", retryable=False)
        region_id = int(regions[0]["id"])
        self._regions[destination_key] = region_id
        logger.info(f"Resolved destination '{destination_key}' to region {region_id}")
        return region_id

    async def search(
        self,
        destination_key: str,
        checkin: date,
        checkout: date,
        occupancy: Occupancy,
        currency: str,
        result_limit: int,
        page: int = 1,
    ) -> SupplierSearchResult:
        if self._use_mock:
            return self._generate_mock_search(destination_key, checkin, checkout, occupancy, currency, result_limit, page)

        region_id = await self.resolve_region(destination_key)
        body = await self._post(
            "/search/serp/region/",
            {
                "region_id": region_id,
                "checkin": checkin.isoformat(),
                "checkout": checkout.isoformat(),
                "residency": self._residency,
                "language": self._language,
                "guests": _guests(occupancy),
                "currency": currency,
                "page": page,
                "limit": result_limit,
            },
        )
        data = body.get("data") or {}
        hits = [h for h in (self._parse_hotel(raw, currency) for raw in data.get("hotels") or []) if h]
        total = data.get("total_hotels")
        if total is None:
            # Without a total, a full page means there may be more.
            total = (page - 1) * result_limit + len(hits) + (1 if len(hits) >= result_limit else 0)
        logger.info(f"Supplier search {destination_key} page {page}: {len(hits)} hits of {total}")
        return SupplierSearchResult(hits=hits[:result_limit], total_available=int(total))

    async def details(
        self,
        hotel_id: str,
        checkin: date,
        checkout: date,
        occupancy: Occupancy,
        currency: str,
    ) -> list[SupplierRate]:
        if self._use_mock:
            return self._generate_mock_rates(hotel_id, checkin, checkout, occupancy, currency)

        payload = {
            "checkin": checkin.isoformat(),
            "checkout": checkout.isoformat(),
            "residency": self._residency,
            "language": self._language,
            "guests": _guests(occupancy),
            "currency": currency,
        }
        if hotel_id.isdigit():
            payload["hid"] = int(hotel_id)
        else:
            payload["id"] = hotel_id

        body = await self._post("/search/hp/", payload)
        hotels = (body.get("data") or {}).get("hotels") or []
        if not hotels:
            raise HotelNotFoundError(hotel_id)

        rates = []
        for rate in hotels[0].get("rates") or []:
            amount, rate_currency = _payment_amount(rate)
            if amount is None:
                continue
            penalties = ((rate.get("payment_options") or {}).get("payment_types") or [{}])[0].get(
                "cancellation_penalties"
            ) or {}
            rates.append(SupplierRate(
                room_name=rate.get("room_name") or "Room",
                net_price=amount,
                currency=(rate_currency or currency).upper(),
                meal=rate.get("meal"),
                match_hash=rate.get("match_hash"),
                free_cancellation_before=penalties.get("free_cancellation_before"),
            ))
        rates.sort(key=lambda r: r.net_price)
        return rates

    async def bulk_dump(self, kind: str, language: str = "en") -> DumpInfo:
        if kind not in DUMP_ENDPOINTS:
            raise ValueError(f"Unknown dump kind '{kind}'")
        if self._use_mock:
            raise SupplierError("Supplier credentials not configured, dumps unavailable", retryable=False)

        body = await self._post(DUMP_ENDPOINTS[kind], {"language": language})
        data = body.get("data") or {}
        url = data.get("url")
        if not url:
            raise SupplierError(f"{kind} dump response had no url", retryable=True)
        last_update = None
        if data.get("last_update"):
            last_update = datetime.fromisoformat(str(data["last_update"]).replace("Z", "+00:00"))
        logger.info(f"{kind} dump ({language}) available, last update {last_update}")
        return DumpInfo(kind=kind, language=language, url=url, last_update=last_update)

    def _parse_hotel(self, hotel: dict, currency: str) -> HotelSummary | None:
        """Reduce a SERP hotel to its cheapest rate."""
        best_amount: Decimal | None = None
        best_currency: str | None = None
        for rate in hotel.get("rates") or []:
            amount, rate_currency = _payment_amount(rate)
            if amount is not None and (best_amount is None or amount < best_amount):
                best_amount, best_currency = amount, rate_currency
        if best_amount is None:
            return None

        slug = hotel.get("id") or ""
        hid = hotel.get("hid")
        return HotelSummary(
            supplier_hotel_id=str(hid) if hid is not None else slug,
            raw_net_price=best_amount,
            currency=(best_currency or currency).upper(),
            name=_format_slug(slug) if slug else None,
            hid=int(hid) if hid is not None else None,
        )

    async def close(self):
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    # --- Mock data generation for demo mode ---

    def _generate_mock_search(
        self,
        destination_key: str,
        checkin: date,
        checkout: date,
        occupancy: Occupancy,
        currency: str,
        result_limit: int,
        page: int,
    ) -> SupplierSearchResult:
        """Deterministic inventory per destination, priced per stay."""
        dest_seed = int(hashlib.md5(destination_key.encode()).hexdigest()[:8], 16)
        total = random.Random(dest_seed).randint(40, 400)
        nights = max(1, (checkout - checkin).days)

        start = (page - 1) * result_limit
        hits = []
        for index in range(start, min(total, start + result_limit)):
            seed_str = f"{destination_key}{index}{checkin.isoformat()}{checkout.isoformat()}{occupancy}"
            rng = random.Random(int(hashlib.md5(seed_str.encode()).hexdigest()[:8], 16))
            nightly = Decimal(str(round(rng.uniform(45, 650), 2)))
            hits.append(HotelSummary(
                supplier_hotel_id=str(dest_seed % 100000 * 1000 + index),
                raw_net_price=nightly * nights,
                currency=currency.upper(),
                supplier_rating=round(rng.uniform(6.0, 9.8), 1),
                name=f"{destination_key.title()} Hotel {index + 1}",
                hid=dest_seed % 100000 * 1000 + index,
            ))
        return SupplierSearchResult(hits=hits, total_available=total)

    def _generate_mock_rates(
        self,
        hotel_id: str,
        checkin: date,
        checkout: date,
        occupancy: Occupancy,
        currency: str,
    ) -> list[SupplierRate]:
        seed_str = f"{hotel_id}{checkin.isoformat()}{checkout.isoformat()}{occupancy}"
        rng = random.Random(int(hashlib.md5(seed_str.encode()).hexdigest()[:8], 16))
        nights = max(1, (checkout - checkin).days)
        base = rng.uniform(45, 650)
        rooms = [("Standard Room", "nomeal", 1.0), ("Deluxe Room", "breakfast", 1.35), ("Suite", "breakfast", 2.1)]
        return [
            SupplierRate(
                room_name=name,
                net_price=Decimal(str(round(base * factor, 2))) * nights,
                currency=currency.upper(),
                meal=meal,
            )
            for name, meal, factor in rooms
        ]
