"""Hotel search service — wires supplier search, enrichment, margins and the batch cache."""

import logging
from datetime import date
from decimal import Decimal

from hotelhub.services.batch_cache import BatchCache, FetchedBatch
from hotelhub.services.content_enricher import ContentEnricher
from hotelhub.services.margin_engine import MarginEngine, MarginRuleRepository
from hotelhub.services.pagination import PageResult, PaginationCoordinator
from hotelhub.services.search_types import BatchKey, EnrichedSummary, SearchSignature, Stay
from hotelhub.services.supplier_client import SupplierClient

logger = logging.getLogger(__name__)


class HotelSearchService:
    """Serves search pages from cached, enriched and margin-priced supplier batches."""

    def __init__(
        self,
        supplier: SupplierClient,
        enricher: ContentEnricher,
        margin_rules: MarginRuleRepository,
        cache: BatchCache,
        batch_size: int = 100,
        page_size: int = 20,
    ):
        self._supplier = supplier
        self._enricher = enricher
        self._margin_rules = margin_rules
        self.cache = cache
        self.coordinator = PaginationCoordinator(cache, self._load_batch, batch_size=batch_size, page_size=page_size)

    @property
    def batch_size(self) -> int:
        return self.coordinator.batch_size

    async def _load_batch(self, key: BatchKey) -> FetchedBatch:
        sig = key.signature
        result = await self._supplier.search(
            sig.destination_key,
            sig.checkin,
            sig.checkout,
            sig.occupancy,
            sig.currency,
            result_limit=self.batch_size,
            page=key.batch_number,
        )
        enriched = await self._enricher.enrich(result.hits[:self.batch_size])
        engine = await self._margin_rules.get_engine()
        priced = tuple(self._apply_margin(engine, e, sig.checkin) for e in enriched)
        logger.info(
            f"Loaded batch {key.batch_number} for {sig.destination_key} "
            f"({len(priced)} hotels, {result.total_available} available)"
        )
        return FetchedBatch(items=priced, total_available=result.total_available)

    @staticmethod
    def _apply_margin(engine: MarginEngine, hotel: EnrichedSummary, checkin: date) -> EnrichedSummary:
        priced = engine.price_lenient(
            hotel_id=hotel.hotel_id,
            city_normalized=hotel.city_normalized,
            country_code=hotel.country_code,
            net_price=hotel.summary.raw_net_price,
            currency=hotel.summary.currency,
            star_rating=hotel.star_rating,
            checkin=checkin,
        )
        return hotel.with_price(priced.displayed_price, priced.applied_rule_id)

    async def search_page(self, signature: SearchSignature, page: int) -> PageResult:
        return await self.coordinator.get_page(signature, page)

    async def hotel_rates(self, hotel_id: str, stay: Stay) -> dict:
        """Room rates for one hotel, each priced with the hotel's winning margin rule."""
        rates = await self._supplier.details(hotel_id, stay.checkin, stay.checkout, stay.occupancy, stay.currency)
        content = await self._enricher.content_for(int(hotel_id)) if hotel_id.isdigit() else None
        engine = await self._margin_rules.get_engine()

        priced_rates = []
        for rate in rates:
            priced = engine.price(
                hotel_id=hotel_id,
                city_normalized=content.city_normalized if content else None,
                country_code=content.country_code if content else None,
                net_price=rate.net_price,
                currency=rate.currency,
                star_rating=content.star_rating if content else None,
                checkin=stay.checkin,
            )
            priced_rates.append({
                "room_name": rate.room_name,
                "meal": rate.meal,
                "price": float(priced.displayed_price),
                "currency": priced.currency,
                "applied_rule_id": priced.applied_rule_id,
                "free_cancellation_before": rate.free_cancellation_before,
                "match_hash": rate.match_hash,
            })

        return {
            "hotel_id": hotel_id,
            "name": content.name if content else None,
            "checkin": stay.checkin.isoformat(),
            "checkout": stay.checkout.isoformat(),
            "rates": priced_rates,
            "lowest_price": priced_rates[0]["price"] if priced_rates else None,
        }

    async def current_price(
        self, signature: SearchSignature, hotel_id: str | None = None, max_pages: int | None = None
    ) -> tuple[Decimal, EnrichedSummary] | None:
        """Displayed price a client would see now: the watched hotel, or the cheapest on page 1."""
        if hotel_id is None:
            page = await self.search_page(signature, 1)
            priced = [h for h in page.hotels if h.displayed_price is not None]
            if not priced:
                return None
            cheapest = min(priced, key=lambda h: h.displayed_price)
            return cheapest.displayed_price, cheapest

        # Pages of the first batch cost a single fetch.
        last_page = min(max_pages or self.coordinator.pages_per_batch, self.coordinator.pages_per_batch)
        for number in range(1, last_page + 1):
            page = await self.search_page(signature, number)
            for hotel in page.hotels:
                if hotel.hotel_id == hotel_id and hotel.displayed_price is not None:
                    return hotel.displayed_price, hotel
            if not page.has_more:
                break
        return None

    def invalidate(self, signature: SearchSignature | None = None) -> int:
        return self.cache.invalidate(signature)

    def page_to_dict(self, page: PageResult, language: str | None = None) -> dict:
        return {
            "hotels": [self._hotel_to_dict(h, language) for h in page.hotels],
            "page": page.page,
            "page_size": page.page_size,
            "total_pages": page.total_pages,
            "has_more": page.has_more,
            "batch_number": page.batch_number,
            "total_available": page.total_available,
            "from_cache": page.from_cache,
            "stale": page.stale,
            "error": None,
        }

    @staticmethod
    def _hotel_to_dict(hotel: EnrichedSummary, language: str | None = None) -> dict:
        return {
            "id": hotel.hotel_id,
            "hid": hotel.summary.hid,
            "name": hotel.display_name(language),
            "price": float(hotel.displayed_price) if hotel.displayed_price is not None else None,
            "net_price": float(hotel.summary.raw_net_price),
            "currency": hotel.summary.currency,
            "applied_rule_id": hotel.applied_rule_id,
            "star_rating": hotel.star_rating,
            "supplier_rating": hotel.summary.supplier_rating,
            "review_score": hotel.review_score,
            "review_count": hotel.review_count,
            "images": list(hotel.images),
            "main_image": hotel.images[0] if hotel.images else None,
            "amenities": list(hotel.amenities),
            "address": hotel.address,
            "city": hotel.city,
            "country_code": hotel.country_code,
            "latitude": hotel.latitude,
            "longitude": hotel.longitude,
            "poi_count": hotel.poi_count,
            "has_content": hotel.has_content,
        }
