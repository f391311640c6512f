"""Search value types — normalized signatures, batch keys and cached entries."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal

_WHITESPACE = re.compile(r"\s+")


def normalize_destination(destination: str) -> str:
    """Collapse whitespace and casefold so equivalent spellings share a key."""
    return _WHITESPACE.sub(" ", destination.strip()).casefold()


def normalize_city(city: str | None) -> str | None:
    if not city:
        return None
    return _WHITESPACE.sub(" ", city.strip()).lower()


def _as_date(value: date | str) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


@dataclass(frozen=True)
class Stay:
    """Dates, occupancy and currency of a request, without a destination."""

    checkin: date
    checkout: date
    occupancy: tuple[int, tuple[int, ...]]
    currency: str

    @classmethod
    def create(
        cls,
        checkin: date | str,
        checkout: date | str,
        adults: int = 2,
        children: list[int] | tuple[int, ...] | None = None,
        currency: str = "USD",
    ) -> Stay:
        checkin_date = _as_date(checkin)
        checkout_date = _as_date(checkout)
        if checkout_date <= checkin_date:
            raise ValueError("checkout must be after checkin")
        if adults < 1:
            raise ValueError("at least one adult is required")
        ages = tuple(sorted(int(a) for a in (children or ())))
        if any(a < 0 or a > 17 for a in ages):
            raise ValueError("children ages must be between 0 and 17")
        return cls(
            checkin=checkin_date,
            checkout=checkout_date,
            occupancy=(adults, ages),
            currency=currency.strip().upper(),
        )


@dataclass(frozen=True)
class SearchSignature:
    """Normalized identity of a search request, excluding pagination."""

    destination_key: str
    checkin: date
    checkout: date
    occupancy: tuple[int, tuple[int, ...]]
    currency: str

    @classmethod
    def create(
        cls,
        destination: str,
        checkin: date | str,
        checkout: date | str,
        adults: int = 2,
        children: list[int] | tuple[int, ...] | None = None,
        currency: str = "USD",
    ) -> SearchSignature:
        destination_key = normalize_destination(destination)
        if not destination_key:
            raise ValueError("destination is required")
        stay = Stay.create(checkin, checkout, adults=adults, children=children, currency=currency)
        return cls(
            destination_key=destination_key,
            checkin=stay.checkin,
            checkout=stay.checkout,
            occupancy=stay.occupancy,
            currency=stay.currency,
        )

    @property
    def adults(self) -> int:
        return self.occupancy[0]

    @property
    def children(self) -> tuple[int, ...]:
        return self.occupancy[1]

    @property
    def nights(self) -> int:
        return (self.checkout - self.checkin).days


@dataclass(frozen=True)
class BatchKey:
    signature: SearchSignature
    batch_number: int


@dataclass(frozen=True)
class HotelSummary:
    supplier_hotel_id: str
    raw_net_price: Decimal
    currency: str
    supplier_rating: float | None = None
    thumbnail_url: str | None = None
    name: str | None = None
    hid: int | None = None


@dataclass(frozen=True)
class EnrichedSummary:
    summary: HotelSummary
    canonical_name: str
    has_content: bool = False
    translated_names: dict[str, str] = field(default_factory=dict)
    images: tuple[str, ...] = ()
    amenities: tuple[str, ...] = ()
    star_rating: int = 0
    address: str | None = None
    city: str | None = None
    city_normalized: str | None = None
    country_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    review_score: float | None = None
    review_count: int = 0
    poi_count: int = 0
    displayed_price: Decimal | None = None
    applied_rule_id: int | None = None

    @property
    def hotel_id(self) -> str:
        return self.summary.supplier_hotel_id

    def with_price(self, displayed_price: Decimal, applied_rule_id: int | None) -> EnrichedSummary:
        return replace(self, displayed_price=displayed_price, applied_rule_id=applied_rule_id)

    def display_name(self, language: str | None = None) -> str:
        if language and language in self.translated_names:
            return self.translated_names[language]
        return self.canonical_name


@dataclass(frozen=True)
class CacheEntry:
    key: BatchKey
    items: tuple[EnrichedSummary, ...]
    fetched_at: float
    ttl: float
    total_available: int

    def expires_at(self) -> float:
        return self.fetched_at + self.ttl

    def is_live(self, now: float) -> bool:
        return now <= self.expires_at()
