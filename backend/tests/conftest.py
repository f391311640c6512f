import asyncio
import fnmatch
from datetime import date, timedelta
from decimal import Decimal

import httpx
import pytest
from httpx import ASGITransport
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import hotelhub.models  # noqa: F401 registers tables on Base.metadata
from hotelhub.config import settings
from hotelhub.database import Base
from hotelhub.exceptions.custom import SupplierError
from hotelhub.services.batch_cache import BatchCache
from hotelhub.services.cache_service import CacheService
from hotelhub.services.content_enricher import ContentEnricher
from hotelhub.services.margin_engine import MarginRuleRepository
from hotelhub.services.search_service import HotelSearchService
from hotelhub.services.search_types import HotelSummary
from hotelhub.services.supplier_client import SupplierRate, SupplierSearchResult


class FakeSupplier:
    """In-memory supplier: `total` hotels with hid 1000+i, priced base_price + i."""

    def __init__(self, total: int = 250, base_price: Decimal = Decimal("100.00"), delay: float = 0.0):
        self.total = total
        self.base_price = base_price
        self.delay = delay
        self.reported_total: int | None = None
        self.error: Exception | None = None
        self.prices: dict[int, Decimal] = {}
        self.search_calls: list[tuple[str, int]] = []
        self.closed = False

    def price_for(self, index: int) -> Decimal:
        return self.prices.get(index, self.base_price + index)

    async def search(self, destination_key, checkin, checkout, occupancy, currency, result_limit, page=1):
        self.search_calls.append((destination_key, page))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        start = (page - 1) * result_limit
        hits = [
            HotelSummary(
                supplier_hotel_id=str(1000 + i),
                raw_net_price=self.price_for(i),
                currency=currency,
                name=f"Hotel {i + 1}",
                hid=1000 + i,
            )
            for i in range(start, min(self.total, start + result_limit))
        ]
        total = self.reported_total if self.reported_total is not None else self.total
        return SupplierSearchResult(hits=hits, total_available=total)

    async def details(self, hotel_id, checkin, checkout, occupancy, currency):
        if self.error is not None:
            raise self.error
        return [
            SupplierRate(room_name="Standard Room", net_price=Decimal("100.00"), currency=currency, meal="nomeal"),
            SupplierRate(room_name="Suite", net_price=Decimal("250.00"), currency=currency, meal="breakfast"),
        ]

    async def bulk_dump(self, kind, language="en"):
        raise SupplierError("Supplier credentials not configured, dumps unavailable", retryable=False)

    async def close(self):
        self.closed = True


class MemoryCache(CacheService):
    """CacheService backed by a dict instead of Redis."""

    def __init__(self):
        super().__init__(url="redis://unused")
        self.store: dict = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ttl=0):
        self.store[key] = value
        return True

    async def delete(self, key):
        self.store.pop(key, None)
        return True

    async def delete_matching(self, pattern):
        keys = [k for k in self.store if fnmatch.fnmatch(k, pattern)]
        for k in keys:
            del self.store[k]
        return len(keys)

    async def close(self):
        pass


@pytest.fixture
def mock_env(monkeypatch):
    monkeypatch.setenv("SCHEDULER_ENABLED", "false")
    monkeypatch.setattr(settings, "scheduler_enabled", False)
    monkeypatch.setattr(settings, "supplier_key_id", "")
    monkeypatch.setattr(settings, "supplier_api_key", "")


@pytest.fixture
def travel_dates():
    checkin = date.today() + timedelta(days=30)
    return checkin, checkin + timedelta(days=3)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def supplier():
    return FakeSupplier()


class Clock:
    """Manually advanced monotonic clock for cache expiry."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def batch_cache(clock):
    return BatchCache(ttl=600, stale_ttl=3600, max_entries=100, wait_timeout=5, clock=clock)


@pytest.fixture
def search_service(session_factory, supplier, batch_cache):
    return HotelSearchService(
        supplier=supplier,
        enricher=ContentEnricher(session_factory),
        margin_rules=MarginRuleRepository(session_factory),
        cache=batch_cache,
        batch_size=100,
        page_size=20,
    )


@pytest.fixture
async def client(mock_env, session_factory, supplier, batch_cache):
    from hotelhub.database import get_db
    from hotelhub.main import app, init_services

    init_services(app, session_factory=session_factory, supplier=supplier, batch_cache=batch_cache)
    app.state.cache_service = MemoryCache()

    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    async with httpx.AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c
    app.dependency_overrides.clear()
