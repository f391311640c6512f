"""Redis cache service for destination overviews and hotel POI lists."""

import json
import logging
import time
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError

from hotelhub.config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "hotelhub"

# TTLs in seconds
TTL_DESTINATION_OVERVIEW = settings.city_stats_cache_ttl
TTL_HOTEL_POIS = 24 * 60 * 60  # refreshed with the weekly dump

# Seconds to wait before trying an unreachable Redis again
RECONNECT_DELAY = 30.0


class CacheService:
    """Shared cache for read-mostly lookups. A Redis outage reads as a miss."""

    def __init__(self, url: str | None = None):
        self._url = url or settings.redis_url
        self._redis: redis.Redis | None = None
        self._retry_at = 0.0

    async def _client(self) -> redis.Redis | None:
        if self._redis is not None:
            return self._redis
        if time.monotonic() < self._retry_at:
            return None
        client = redis.from_url(self._url, encoding="utf-8", decode_responses=True)
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.warning(f"Redis unavailable at {self._url}, caching disabled for {RECONNECT_DELAY:.0f}s: {e}")
            self._retry_at = time.monotonic() + RECONNECT_DELAY
            await client.aclose()
            return None
        self._redis = client
        return client

    def _drop_connection(self, error: Exception) -> None:
        logger.warning(f"Redis command failed, reconnecting later: {error}")
        self._redis = None
        self._retry_at = time.monotonic() + RECONNECT_DELAY

    async def get(self, key: str) -> Any | None:
        r = await self._client()
        if r is None:
            return None
        try:
            raw = await r.get(key)
        except (RedisError, OSError) as e:
            self._drop_connection(e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding undecodable cache value at {key}")
            await self.delete(key)
            return None

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        r = await self._client()
        if r is None:
            return False
        try:
            await r.set(key, json.dumps(value, default=str), ex=ttl)
        except (RedisError, OSError) as e:
            self._drop_connection(e)
            return False
        return True

    async def delete(self, key: str) -> bool:
        r = await self._client()
        if r is None:
            return False
        try:
            await r.delete(key)
        except (RedisError, OSError) as e:
            self._drop_connection(e)
            return False
        return True

    async def delete_matching(self, pattern: str) -> int:
        """Delete every key matching a glob pattern. Returns keys removed."""
        r = await self._client()
        if r is None:
            return 0
        removed = 0
        try:
            async for key in r.scan_iter(match=pattern, count=500):
                removed += await r.delete(key)
        except (RedisError, OSError) as e:
            self._drop_connection(e)
        return removed

    # Typed keys

    def destination_key(self, city_normalized: str) -> str:
        return f"{KEY_PREFIX}:destination:{city_normalized}"

    def pois_key(self, hid: int, language: str) -> str:
        return f"{KEY_PREFIX}:pois:{hid}:{language}"

    async def get_destination_overview(self, city_normalized: str) -> dict | None:
        return await self.get(self.destination_key(city_normalized))

    async def set_destination_overview(self, city_normalized: str, data: dict) -> bool:
        return await self.set(self.destination_key(city_normalized), data, TTL_DESTINATION_OVERVIEW)

    async def clear_destination_overviews(self) -> int:
        return await self.delete_matching(self.destination_key("*"))

    async def get_pois(self, hid: int, language: str) -> list[dict] | None:
        return await self.get(self.pois_key(hid, language))

    async def set_pois(self, hid: int, language: str, data: list[dict]) -> bool:
        return await self.set(self.pois_key(hid, language), data, TTL_HOTEL_POIS)

    async def close(self):
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


cache_service = CacheService()
