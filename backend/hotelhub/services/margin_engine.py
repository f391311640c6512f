"""Margin engine — resolves the applicable margin rule and computes displayed prices."""

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hotelhub.exceptions.custom import CurrencyMismatchError
from hotelhub.models.margin import MarginRule
from hotelhub.services.search_types import normalize_city

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

# Lower value wins
SCOPE_PRECEDENCE = {"hotel": 0, "city": 1, "country": 2, "global": 3}

# Unrated hotels are treated as mid-range for star conditions
DEFAULT_STAR_RATING = 3


def round_price(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class MarginRuleSpec:
    id: int
    scope: str  # hotel | city | country | global
    kind: str  # percentage | fixed
    value: Decimal
    scope_key: str | None = None
    currency: str | None = None
    priority: int = 0
    created_at: datetime | None = None
    name: str = ""
    min_stars: int | None = None
    max_stars: int | None = None
    checkin_from: date | None = None
    checkin_to: date | None = None

    @classmethod
    def from_model(cls, rule: MarginRule) -> "MarginRuleSpec":
        return cls(
            id=rule.id,
            scope=rule.scope,
            kind=rule.kind,
            value=Decimal(str(rule.value)),
            scope_key=rule.scope_key,
            currency=rule.currency.upper() if rule.currency else None,
            priority=rule.priority or 0,
            created_at=rule.created_at,
            name=rule.name,
            min_stars=rule.min_stars,
            max_stars=rule.max_stars,
            checkin_from=rule.checkin_from,
            checkin_to=rule.checkin_to,
        )

    def matches(
        self,
        hotel_id: str | None,
        city_normalized: str | None,
        country_code: str | None,
        star_rating: int | None = None,
        checkin: date | None = None,
    ) -> bool:
        return self._scope_matches(hotel_id, city_normalized, country_code) and self._conditions_hold(
            star_rating, checkin
        )

    def _conditions_hold(self, star_rating: int | None, checkin: date | None) -> bool:
        stars = star_rating or DEFAULT_STAR_RATING
        if self.min_stars is not None and stars < self.min_stars:
            return False
        if self.max_stars is not None and stars > self.max_stars:
            return False
        # A date window only restricts requests that carry a check-in date.
        if checkin is not None:
            if self.checkin_from is not None and checkin < self.checkin_from:
                return False
            if self.checkin_to is not None and checkin > self.checkin_to:
                return False
        return True

    def _scope_matches(self, hotel_id: str | None, city_normalized: str | None, country_code: str | None) -> bool:
        if self.scope == "global":
            return True
        if not self.scope_key:
            return False
        if self.scope == "hotel":
            return hotel_id is not None and self.scope_key == str(hotel_id)
        if self.scope == "city":
            return city_normalized is not None and normalize_city(self.scope_key) == city_normalized
        if self.scope == "country":
            return country_code is not None and self.scope_key.upper() == country_code.upper()
        return False

    def currency_compatible(self, currency: str) -> bool:
        # Fixed rules without a currency are read in the rate's currency.
        return self.kind != "fixed" or self.currency is None or self.currency == currency.upper()

    def apply(self, net_price: Decimal) -> Decimal:
        if self.kind == "fixed":
            return net_price + self.value
        return net_price * (1 + self.value / HUNDRED)


def _precedence(rule: MarginRuleSpec) -> tuple:
    created = rule.created_at.timestamp() if rule.created_at else float("-inf")
    return (SCOPE_PRECEDENCE.get(rule.scope, len(SCOPE_PRECEDENCE)), -rule.priority, -created, -rule.id)


@dataclass(frozen=True)
class PricedRate:
    net_price: Decimal
    displayed_price: Decimal
    currency: str
    applied_rule: MarginRuleSpec | None = None

    @property
    def applied_rule_id(self) -> int | None:
        return self.applied_rule.id if self.applied_rule else None

    @property
    def margin_amount(self) -> Decimal:
        return self.displayed_price - round_price(self.net_price)


class MarginEngine:
    """Pure pricing over an immutable snapshot of active rules.

    Precedence is hotel > city > country > global; within a scope the higher
    priority wins, then the most recently created rule, then the higher id.
    """

    def __init__(self, rules: Iterable[MarginRuleSpec] = ()):
        self._rules = tuple(sorted(rules, key=_precedence))

    @property
    def rules(self) -> tuple[MarginRuleSpec, ...]:
        return self._rules

    def candidates(
        self,
        hotel_id: str | None,
        city_normalized: str | None,
        country_code: str | None,
        star_rating: int | None = None,
        checkin: date | None = None,
    ) -> list[MarginRuleSpec]:
        return [r for r in self._rules if r.matches(hotel_id, city_normalized, country_code, star_rating, checkin)]

    def price(
        self,
        hotel_id: str | None,
        city_normalized: str | None,
        country_code: str | None,
        net_price: Decimal,
        currency: str,
        star_rating: int | None = None,
        checkin: date | None = None,
    ) -> PricedRate:
        """Price with the winning rule. Raises CurrencyMismatchError for a fixed rule in another currency."""
        matching = self.candidates(hotel_id, city_normalized, country_code, star_rating, checkin)
        rule = matching[0] if matching else None
        if rule is not None and not rule.currency_compatible(currency):
            raise CurrencyMismatchError(rule.id, rule.currency, currency.upper())
        return self._priced(net_price, currency, rule)

    def price_lenient(
        self,
        hotel_id: str | None,
        city_normalized: str | None,
        country_code: str | None,
        net_price: Decimal,
        currency: str,
        star_rating: int | None = None,
        checkin: date | None = None,
    ) -> PricedRate:
        """Price skipping fixed rules whose currency differs from the rate."""
        rule = None
        for candidate in self.candidates(hotel_id, city_normalized, country_code, star_rating, checkin):
            if candidate.currency_compatible(currency):
                rule = candidate
                break
            logger.warning(
                f"Skipping margin rule {candidate.id}: fixed in {candidate.currency}, rate is {currency.upper()}"
            )
        return self._priced(net_price, currency, rule)

    @staticmethod
    def _priced(net_price: Decimal, currency: str, rule: MarginRuleSpec | None) -> PricedRate:
        net = Decimal(str(net_price))
        displayed = round_price(rule.apply(net) if rule else net)
        return PricedRate(net_price=net, displayed_price=displayed, currency=currency.upper(), applied_rule=rule)


class MarginRuleRepository:
    """Loads active margin rules and caches the engine snapshot for a short TTL."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ttl: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._session_factory = session_factory
        self._ttl = ttl
        self._clock = clock
        self._engine: MarginEngine | None = None
        self._loaded_at = 0.0
        self._lock = asyncio.Lock()

    async def get_engine(self) -> MarginEngine:
        if self._engine is not None and self._clock() - self._loaded_at < self._ttl:
            return self._engine
        async with self._lock:
            if self._engine is not None and self._clock() - self._loaded_at < self._ttl:
                return self._engine
            async with self._session_factory() as db:
                result = await db.execute(select(MarginRule).where(MarginRule.is_active == True))
                rules = [MarginRuleSpec.from_model(r) for r in result.scalars().all()]
            self._engine = MarginEngine(rules)
            self._loaded_at = self._clock()
            logger.info(f"Loaded {len(rules)} active margin rules")
            return self._engine

    def invalidate(self) -> None:
        self._engine = None
