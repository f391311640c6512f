"""Batch cache — TTL cache of supplier result batches with single-flight fetches."""

import asyncio
import logging
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import partial

from hotelhub.exceptions.custom import FetchTimeoutError, SupplierError, SupplierUnavailableError
from hotelhub.services.search_types import BatchKey, CacheEntry, EnrichedSummary, SearchSignature

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchedBatch:
    items: tuple[EnrichedSummary, ...]
    total_available: int


@dataclass(frozen=True)
class CacheResult:
    entry: CacheEntry
    from_cache: bool
    stale: bool = False


FetchFn = Callable[[BatchKey], Awaitable[FetchedBatch]]


class BatchCache:
    """In-process cache keyed by (signature, batch number).

    At most one fetch per key is in flight at any time: the first caller on a miss
    starts a task and every concurrent caller awaits that same task. Expired entries
    are kept for ``stale_ttl`` seconds and served when a refresh fails.
    """

    def __init__(
        self,
        ttl: float = 600,
        stale_ttl: float = 3600,
        max_entries: int = 5000,
        wait_timeout: float = 45.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl
        self._stale_ttl = stale_ttl
        self._max_entries = max_entries
        self._wait_timeout = wait_timeout
        self._clock = clock
        self._entries: OrderedDict[BatchKey, CacheEntry] = OrderedDict()
        self._inflight: dict[BatchKey, asyncio.Task] = {}
        self._hits = 0
        self._misses = 0
        self._stale_hits = 0
        self._fetches = 0

    async def get_or_fetch(self, key: BatchKey, fetch_fn: FetchFn) -> CacheResult:
        # Lookup and task registration run without yielding to the loop.
        entry = self._entries.get(key)
        if entry is not None and entry.is_live(self._clock()):
            self._entries.move_to_end(key)
            self._hits += 1
            return CacheResult(entry=entry, from_cache=True)

        task = self._inflight.get(key)
        if task is None:
            self._misses += 1
            task = asyncio.create_task(self._fetch(key, fetch_fn))
            self._inflight[key] = task
            task.add_done_callback(partial(self._on_fetch_done, key))
        else:
            logger.debug(f"Joining in-flight fetch for batch {key.batch_number} of {key.signature.destination_key}")

        try:
            fresh = await asyncio.wait_for(asyncio.shield(task), timeout=self._wait_timeout)
        except asyncio.TimeoutError:
            stale = self._stale_entry(key)
            if stale is not None:
                self._stale_hits += 1
                logger.warning(f"Fetch timed out, serving stale batch {key.batch_number} for {key.signature.destination_key}")
                return CacheResult(entry=stale, from_cache=True, stale=True)
            raise FetchTimeoutError(f"Supplier did not respond within {self._wait_timeout:.0f}s")
        except Exception as e:
            stale = self._stale_entry(key)
            if stale is not None:
                self._stale_hits += 1
                logger.warning(f"Fetch failed ({e}), serving stale batch {key.batch_number} for {key.signature.destination_key}")
                return CacheResult(entry=stale, from_cache=True, stale=True)
            if isinstance(e, SupplierError) and e.retryable:
                raise SupplierUnavailableError(f"Hotel supplier unavailable: {e.message}") from e
            raise

        return CacheResult(entry=fresh, from_cache=False)

    async def _fetch(self, key: BatchKey, fetch_fn: FetchFn) -> CacheEntry:
        self._fetches += 1
        batch = await fetch_fn(key)
        entry = CacheEntry(
            key=key,
            items=tuple(batch.items),
            fetched_at=self._clock(),
            ttl=self._ttl,
            total_available=batch.total_available,
        )
        self._store(entry)
        return entry

    def _on_fetch_done(self, key: BatchKey, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark the exception retrieved; waiters re-raise it through their shields.
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Batch fetch failed for {key.signature.destination_key} batch {key.batch_number}: {task.exception()}")

    def _store(self, entry: CacheEntry) -> None:
        self._entries[entry.key] = entry
        self._entries.move_to_end(entry.key)
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted batch {evicted.batch_number} of {evicted.signature.destination_key}")

    def _stale_entry(self, key: BatchKey) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() > entry.expires_at() + self._stale_ttl:
            del self._entries[key]
            return None
        return entry

    def peek(self, key: BatchKey) -> CacheEntry | None:
        """Return the live entry for key without fetching."""
        entry = self._entries.get(key)
        if entry is not None and entry.is_live(self._clock()):
            return entry
        return None

    def invalidate(self, signature: SearchSignature | None = None) -> int:
        """Drop cached batches for one signature, or everything. In-flight fetches are left alone."""
        if signature is None:
            count = len(self._entries)
            self._entries.clear()
        else:
            keys = [k for k in self._entries if k.signature == signature]
            for k in keys:
                del self._entries[k]
            count = len(keys)
        logger.info(f"Invalidated {count} cached batches")
        return count

    def purge_expired(self) -> int:
        """Remove entries past their stale window."""
        cutoff = self._clock() - self._stale_ttl
        keys = [k for k, e in self._entries.items() if e.expires_at() < cutoff]
        for k in keys:
            del self._entries[k]
        if keys:
            logger.info(f"Purged {len(keys)} expired batches")
        return len(keys)

    def stats(self) -> dict:
        return {
            "entries": len(self._entries),
            "in_flight": len(self._inflight),
            "hits": self._hits,
            "misses": self._misses,
            "stale_hits": self._stale_hits,
            "fetches": self._fetches,
            "ttl_seconds": self._ttl,
            "stale_ttl_seconds": self._stale_ttl,
            "max_entries": self._max_entries,
        }
