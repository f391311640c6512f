"""Content enricher — left-joins supplier hits with locally stored hotel content."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hotelhub.services.content_store import ContentRecord, ContentStore, content_store
from hotelhub.services.search_types import EnrichedSummary, HotelSummary, normalize_city

logger = logging.getLogger(__name__)


class ContentEnricher:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], store: ContentStore = content_store):
        self._session_factory = session_factory
        self._store = store

    async def enrich(self, summaries: list[HotelSummary]) -> list[EnrichedSummary]:
        """Every hit is kept, in supplier order, with or without content."""
        if not summaries:
            return []

        hids = [s.hid for s in summaries if s.hid is not None]
        try:
            async with self._session_factory() as db:
                records = await self._store.get_content_by_hids(db, hids)
        except Exception as e:
            logger.error(f"Content lookup failed for {len(hids)} hotels, using supplier data only: {e}")
            records = {}

        enriched = [self._merge(s, records.get(s.hid) if s.hid is not None else None) for s in summaries]
        matched = sum(1 for e in enriched if e.has_content)
        logger.debug(f"Enriched {matched}/{len(enriched)} hotels from local content")
        return enriched

    async def content_for(self, hid: int) -> ContentRecord | None:
        async with self._session_factory() as db:
            records = await self._store.get_content_by_hids(db, [hid])
        return records.get(hid)

    @staticmethod
    def _merge(summary: HotelSummary, record: ContentRecord | None) -> EnrichedSummary:
        if record is None:
            return EnrichedSummary(
                summary=summary,
                canonical_name=summary.name or f"Hotel {summary.supplier_hotel_id}",
                images=(summary.thumbnail_url,) if summary.thumbnail_url else (),
            )

        images = record.images
        if not images and summary.thumbnail_url:
            images = (summary.thumbnail_url,)
        return EnrichedSummary(
            summary=summary,
            canonical_name=record.name or summary.name or f"Hotel {summary.supplier_hotel_id}",
            has_content=True,
            translated_names=record.translated_names,
            images=images,
            amenities=record.amenities,
            star_rating=record.star_rating,
            address=record.address,
            city=record.city,
            city_normalized=record.city_normalized or normalize_city(record.city),
            country_code=record.country_code,
            latitude=record.latitude,
            longitude=record.longitude,
            review_score=record.review_score,
            review_count=record.review_count,
            poi_count=record.poi_count,
        )
