from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request

from hotelhub.services.batch_cache import BatchCache
from hotelhub.services.cache_service import CacheService
from hotelhub.services.search_service import HotelSearchService


def get_search_service(request: Request) -> HotelSearchService:
    return request.app.state.search_service


def get_batch_cache(request: Request) -> BatchCache:
    return request.app.state.batch_cache


def get_cache_service(request: Request) -> CacheService:
    return request.app.state.cache_service


def get_owner_id(x_user_id: Annotated[str | None, Header()] = None) -> str:
    """Owner identity is established upstream; we only read the forwarded id."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="X-User-Id header required")
    return x_user_id.strip()


SearchServiceDep = Annotated[HotelSearchService, Depends(get_search_service)]
BatchCacheDep = Annotated[BatchCache, Depends(get_batch_cache)]
CacheServiceDep = Annotated[CacheService, Depends(get_cache_service)]
OwnerDep = Annotated[str, Depends(get_owner_id)]
