"""Dump record transforms — turn supplier dump records into content rows."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from hotelhub.services.content_store import content_store
from hotelhub.services.search_types import normalize_city

IMAGE_SIZE = "1024x768"


@dataclass(frozen=True)
class RecordTransform:
    kind: str
    parse: Callable[[dict, str], dict | None]  # None means skip
    upsert: Callable[[AsyncSession, list[dict]], Awaitable[int]]


def _hid(record: dict, *fields: str) -> int | None:
    for name in fields:
        value = record.get(name)
        if value is not None and value != "":
            return int(value)
    return None


def _decimal(value) -> Decimal | None:
    if value is None or value == "":
        return None
    return Decimal(str(value))


def _images(record: dict) -> list[str]:
    urls = []
    for img in record.get("images_ext") or []:
        if isinstance(img, dict) and img.get("url"):
            urls.append(img["url"].replace("{size}", IMAGE_SIZE))
    if not urls:
        for img in record.get("images") or []:
            if isinstance(img, str):
                urls.append(img.replace("{size}", IMAGE_SIZE))
    return urls


def _amenities(record: dict) -> tuple[list[str], list[dict]]:
    flat: list[str] = []
    groups: list[dict] = []
    for group in record.get("amenity_groups") or []:
        names = []
        for amenity in group.get("amenities") or []:
            name = amenity if isinstance(amenity, str) else (amenity or {}).get("name")
            if name:
                names.append(name)
        flat.extend(names)
        groups.append({"group_name": group.get("group_name") or "General", "amenities": names})
    return flat, groups


def hotel_content_row(record: dict, language: str) -> dict | None:
    hid = _hid(record, "hid")
    if hid is None:
        return None
    region = record.get("region") or {}
    city = region.get("name")
    name = record.get("name") or record.get("id") or f"Hotel {hid}"
    images = _images(record)
    amenities, amenity_groups = _amenities(record)
    country_code = region.get("country_code")
    return {
        "hid": hid,
        "hotel_id": record.get("id"),
        "name": name,
        "address": record.get("address"),
        "city": city,
        "city_normalized": normalize_city(city),
        "country": region.get("country_name"),
        "country_code": country_code.upper() if country_code else None,
        "latitude": _decimal(record.get("latitude")),
        "longitude": _decimal(record.get("longitude")),
        "star_rating": int(record.get("star_rating") or 0),
        "images": images,
        "main_image": images[0] if images else None,
        "amenities": amenities,
        "amenity_groups": amenity_groups,
        "policy_struct": record.get("metapolicy_struct"),
        "check_in_time": record.get("check_in_time"),
        "check_out_time": record.get("check_out_time"),
        "dump_date": datetime.now(timezone.utc),
        "updated_at": datetime.now(timezone.utc),
        "translations": {language: name},
    }


def poi_row(record: dict, language: str) -> dict | None:
    hid = _hid(record, "hid", "id")
    if hid is None:
        return None
    pois = [
        {
            "type": p.get("type"),
            "sub_type": p.get("sub_type"),
            "name": p.get("name"),
            "distance": p.get("distance"),
        }
        for p in record.get("poi") or []
        if isinstance(p, dict)
    ]
    return {
        "hid": hid,
        "language": language,
        "poi": pois,
        "updated_at": datetime.now(timezone.utc),
    }


def review_row(record: dict, language: str) -> dict | None:
    hid = _hid(record, "hid", "id")
    if hid is None:
        return None
    reviews = [r for r in record.get("reviews") or [] if isinstance(r, dict)]
    ratings = [float(r["rating"]) for r in reviews if isinstance(r.get("rating"), (int, float))]

    average = _decimal(record.get("average_rating") or record.get("rating"))
    if average is None and ratings:
        average = Decimal(str(sum(ratings) / len(ratings)))

    # Mean of each detailed sub-score across reviews
    detail_sums: dict[str, float] = {}
    detail_counts: dict[str, int] = {}
    for r in reviews:
        for key, value in (r.get("detailed_review") or {}).items():
            if isinstance(value, (int, float)):
                detail_sums[key] = detail_sums.get(key, 0.0) + value
                detail_counts[key] = detail_counts.get(key, 0) + 1
    detailed = {k: round(detail_sums[k] / detail_counts[k], 2) for k in detail_sums} or record.get("detailed_ratings")

    return {
        "hid": hid,
        "language": language,
        "review_count": int(record.get("review_count") or len(reviews)),
        "average_rating": average.quantize(Decimal("0.01")) if average is not None else None,
        "detailed_ratings": detailed,
        "updated_at": datetime.now(timezone.utc),
    }


TRANSFORMS = {
    "hotel_info": RecordTransform("hotel_info", hotel_content_row, content_store.upsert_hotels),
    "poi": RecordTransform("poi", poi_row, content_store.upsert_pois),
    "reviews": RecordTransform("reviews", review_row, content_store.upsert_reviews),
}


def transform_for(kind: str) -> RecordTransform:
    try:
        return TRANSFORMS[kind]
    except KeyError:
        raise ValueError(f"Unknown dump kind '{kind}', expected one of {sorted(TRANSFORMS)}") from None
