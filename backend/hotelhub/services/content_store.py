"""Content store — idempotent upserts and batch lookups of hotel content, POIs and reviews."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import case, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from hotelhub.database import Base
from hotelhub.models.content import CityStats, HotelContent, HotelPOI, HotelReview, HotelTranslation
from hotelhub.services.search_types import normalize_city

logger = logging.getLogger(__name__)

_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


@dataclass(frozen=True)
class ContentRecord:
    hid: int
    name: str
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


class ContentStore:
    """Writes come only from dump ingestion; reads serve the search enrichment join."""

    async def upsert(
        self,
        db: AsyncSession,
        model: type[Base],
        rows: list[dict],
        conflict_columns: tuple[str, ...],
    ) -> int:
        """INSERT ... ON CONFLICT DO UPDATE keyed by conflict_columns. Returns rows written."""
        if not rows:
            return 0
        # A key may only appear once per statement; the last occurrence wins.
        unique: dict[tuple, dict] = {}
        for row in rows:
            unique[tuple(row[c] for c in conflict_columns)] = row
        values = list(unique.values())

        dialect = db.get_bind().dialect.name
        insert = _INSERTS.get(dialect)
        if insert is None:
            raise RuntimeError(f"Upsert not supported on dialect '{dialect}'")

        stmt = insert(model).values(values)
        updates = {c: stmt.excluded[c] for c in values[0] if c not in conflict_columns}
        if updates:
            stmt = stmt.on_conflict_do_update(index_elements=list(conflict_columns), set_=updates)
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=list(conflict_columns))
        await db.execute(stmt)
        await db.commit()
        return len(values)

    async def upsert_hotels(self, db: AsyncSession, rows: list[dict]) -> int:
        """Upsert hotel content rows; a row may carry a 'translations' map of language -> name."""
        translations = []
        content_rows = []
        for row in rows:
            row = dict(row)
            for language, name in (row.pop("translations", None) or {}).items():
                if name:
                    translations.append({"hid": row["hid"], "language": language, "name": name})
            content_rows.append(row)
        written = await self.upsert(db, HotelContent, content_rows, ("hid",))
        if translations:
            await self.upsert(db, HotelTranslation, translations, ("hid", "language"))
        return written

    async def upsert_pois(self, db: AsyncSession, rows: list[dict]) -> int:
        return await self.upsert(db, HotelPOI, rows, ("hid", "language"))

    async def upsert_reviews(self, db: AsyncSession, rows: list[dict]) -> int:
        return await self.upsert(db, HotelReview, rows, ("hid", "language"))

    async def get_content_by_hids(self, db: AsyncSession, hids: list[int]) -> dict[int, ContentRecord]:
        """Batch lookup of content plus translations, review aggregates and POI counts."""
        hids = sorted({h for h in hids if h is not None})
        if not hids:
            return {}

        content = (await db.execute(select(HotelContent).where(HotelContent.hid.in_(hids)))).scalars().all()
        if not content:
            return {}
        found = [c.hid for c in content]

        names: dict[int, dict[str, str]] = defaultdict(dict)
        for t in (await db.execute(select(HotelTranslation).where(HotelTranslation.hid.in_(found)))).scalars():
            names[t.hid][t.language] = t.name

        reviews: dict[int, HotelReview] = {}
        for r in (await db.execute(select(HotelReview).where(HotelReview.hid.in_(found)))).scalars():
            # Keep the language with the most reviews
            if r.hid not in reviews or (r.review_count or 0) > (reviews[r.hid].review_count or 0):
                reviews[r.hid] = r

        poi_counts: dict[int, int] = {}
        for p in (await db.execute(select(HotelPOI).where(HotelPOI.hid.in_(found)))).scalars():
            poi_counts[p.hid] = max(poi_counts.get(p.hid, 0), len(p.poi or []))

        records = {}
        for c in content:
            review = reviews.get(c.hid)
            records[c.hid] = ContentRecord(
                hid=c.hid,
                name=c.name,
                translated_names=dict(names.get(c.hid, {})),
                images=tuple(c.images or ()),
                amenities=tuple(c.amenities or ()),
                star_rating=c.star_rating or 0,
                address=c.address,
                city=c.city,
                city_normalized=c.city_normalized,
                country_code=c.country_code,
                latitude=float(c.latitude) if c.latitude is not None else None,
                longitude=float(c.longitude) if c.longitude is not None else None,
                review_score=float(review.average_rating) if review and review.average_rating is not None else None,
                review_count=review.review_count if review else 0,
                poi_count=poi_counts.get(c.hid, 0),
            )
        return records

    async def get_pois(self, db: AsyncSession, hid: int, language: str = "en") -> list[dict]:
        result = await db.execute(
            select(HotelPOI).where(HotelPOI.hid == hid).order_by(
                case((HotelPOI.language == language, 0), else_=1)
            ).limit(1)
        )
        row = result.scalar_one_or_none()
        return list(row.poi or []) if row else []

    async def count(self, db: AsyncSession, model: type[Base]) -> int:
        return (await db.execute(select(func.count()).select_from(model))).scalar_one()

    async def refresh_city_stats(self, db: AsyncSession) -> int:
        """Recompute per-city hotel counts and star histograms from hotel content."""
        star_columns = [
            func.sum(case((HotelContent.star_rating == star, 1), else_=0)).label(f"stars_{star}")
            for star in range(1, 6)
        ]
        result = await db.execute(
            select(
                HotelContent.city_normalized,
                func.min(HotelContent.city).label("city"),
                func.min(HotelContent.country).label("country"),
                func.min(HotelContent.country_code).label("country_code"),
                func.count().label("total"),
                func.sum(case((HotelContent.star_rating > 0, 1), else_=0)).label("rated"),
                *star_columns,
            )
            .where(HotelContent.city_normalized.is_not(None), HotelContent.city_normalized != "")
            .group_by(HotelContent.city_normalized)
        )

        now = datetime.now(timezone.utc)
        rows = []
        for r in result.mappings():
            rows.append({
                "city_normalized": r["city_normalized"],
                "city_display": r["city"] or r["city_normalized"],
                "country": r["country"],
                "country_code": r["country_code"],
                "total_hotels": int(r["total"] or 0),
                "rated_hotels": int(r["rated"] or 0),
                "star_counts": {str(star): int(r[f"stars_{star}"] or 0) for star in range(1, 6)},
                "updated_at": now,
            })

        written = 0
        for start in range(0, len(rows), 500):
            written += await self.upsert(db, CityStats, rows[start:start + 500], ("city_normalized",))
        logger.info(f"City stats refreshed for {written} cities")
        return written

    async def get_city_stats(self, db: AsyncSession, city: str) -> dict | None:
        key = normalize_city(city)
        if not key:
            return None
        stats = (
            await db.execute(select(CityStats).where(CityStats.city_normalized == key))
        ).scalar_one_or_none()
        return self._stats_to_dict(stats) if stats else None

    @staticmethod
    def _stats_to_dict(stats: CityStats) -> dict:
        return {
            "city": stats.city_display,
            "city_normalized": stats.city_normalized,
            "country": stats.country,
            "country_code": stats.country_code,
            "total_hotels": stats.total_hotels,
            "rated_hotels": stats.rated_hotels,
            "star_counts": stats.star_counts or {},
            "updated_at": stats.updated_at.isoformat() if stats.updated_at else None,
        }


content_store = ContentStore()
