"""Hotel search router — paged search, room rates, destination overviews and cache control."""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from hotelhub.database import get_db
from hotelhub.dependencies import BatchCacheDep, CacheServiceDep, SearchServiceDep
from hotelhub.schemas.search import SearchParams, StayParams
from hotelhub.services.content_store import content_store
from hotelhub.services.search_types import SearchSignature, Stay, normalize_city

logger = logging.getLogger(__name__)

router = APIRouter()


def _signature(
    destination: str, checkin: date, checkout: date, adults: int, children: str | None, currency: str
) -> SearchSignature:
    try:
        params = SearchParams(
            destination=destination,
            checkin=checkin,
            checkout=checkout,
            adults=adults,
            children=children or [],
            currency=currency,
        )
        return params.to_signature()
    except (ValidationError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))


def _stay(checkin: date, checkout: date, adults: int, children: str | None, currency: str) -> Stay:
    try:
        params = StayParams(checkin=checkin, checkout=checkout, adults=adults, children=children or [], currency=currency)
        return params.to_stay()
    except (ValidationError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/search")
async def search_hotels(
    search: SearchServiceDep,
    destination: str = Query(..., min_length=1),
    checkin: date = Query(...),
    checkout: date = Query(...),
    adults: int = Query(2),
    children: str | None = Query(None, description="Comma-separated child ages"),
    currency: str = Query("USD"),
    page: int = Query(1),
    language: str | None = Query(None),
):
    """One page of enriched, margin-priced hotels."""
    if page < 1:
        raise HTTPException(status_code=400, detail="page must be >= 1")
    signature = _signature(destination, checkin, checkout, adults, children, currency)
    result = await search.search_page(signature, page)
    return search.page_to_dict(result, language)


@router.get("/destinations/{city}/overview")
async def destination_overview(
    city: str,
    cache: CacheServiceDep,
    db: AsyncSession = Depends(get_db),
):
    """Hotel counts and star histogram for a city."""
    key = normalize_city(city)
    if not key:
        raise HTTPException(status_code=400, detail="city is required")

    cached = await cache.get_destination_overview(key)
    if cached:
        return {**cached, "cached": True}

    stats = await content_store.get_city_stats(db, city)
    if not stats:
        raise HTTPException(status_code=404, detail=f"No hotels known for '{city}'")

    await cache.set_destination_overview(key, stats)
    return {**stats, "cached": False}


@router.get("/cache/stats")
async def cache_stats(batch_cache: BatchCacheDep):
    return batch_cache.stats()


@router.delete("/cache")
async def clear_cache(
    search: SearchServiceDep,
    destination: str | None = Query(None),
    checkin: date | None = Query(None),
    checkout: date | None = Query(None),
    adults: int = Query(2),
    children: str | None = Query(None),
    currency: str = Query("USD"),
):
    """Drop cached batches for one search, or all of them when no search is given."""
    if destination is None:
        return {"invalidated": search.invalidate()}
    if checkin is None or checkout is None:
        raise HTTPException(status_code=400, detail="checkin and checkout are required with destination")
    signature = _signature(destination, checkin, checkout, adults, children, currency)
    return {"invalidated": search.invalidate(signature)}


@router.get("/{hotel_id}/rates")
async def hotel_rates(
    hotel_id: str,
    search: SearchServiceDep,
    checkin: date = Query(...),
    checkout: date = Query(...),
    adults: int = Query(2),
    children: str | None = Query(None),
    currency: str = Query("USD"),
):
    """Margin-priced room rates for a single hotel."""
    return await search.hotel_rates(hotel_id, _stay(checkin, checkout, adults, children, currency))


@router.get("/{hid}/pois")
async def hotel_pois(
    hid: int,
    cache: CacheServiceDep,
    language: str = Query("en"),
    db: AsyncSession = Depends(get_db),
):
    """Points of interest near a hotel, from the POI dump."""
    cached = await cache.get_pois(hid, language)
    if cached is not None:
        return {"hid": hid, "poi": cached}

    pois = await content_store.get_pois(db, hid, language)
    await cache.set_pois(hid, language, pois)
    return {"hid": hid, "poi": pois}
