"""Pagination coordinator — maps client pages onto cached supplier batches."""

import logging
import math
from dataclasses import dataclass

from hotelhub.services.batch_cache import BatchCache, CacheResult, FetchFn
from hotelhub.services.search_types import BatchKey, CacheEntry, EnrichedSummary, SearchSignature

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageResult:
    hotels: tuple[EnrichedSummary, ...]
    page: int
    page_size: int
    total_pages: int
    has_more: bool
    batch_number: int
    total_available: int
    from_cache: bool
    stale: bool = False


class PaginationCoordinator:
    def __init__(self, cache: BatchCache, batch_loader: FetchFn, batch_size: int = 100, page_size: int = 20):
        if page_size < 1 or batch_size < 1:
            raise ValueError("batch_size and page_size must be positive")
        if batch_size % page_size != 0:
            raise ValueError(f"batch_size {batch_size} must be a multiple of page_size {page_size}")
        self._cache = cache
        self._batch_loader = batch_loader
        self.batch_size = batch_size
        self.page_size = page_size
        self.pages_per_batch = batch_size // page_size

    def batch_number_for(self, page: int) -> int:
        if page < 1:
            raise ValueError("page must be >= 1")
        return (page - 1) // self.pages_per_batch + 1

    def _effective_total(self, entry: CacheEntry) -> int:
        before = (entry.key.batch_number - 1) * self.batch_size
        delivered = before + len(entry.items)
        if not entry.items:
            # Past the end: the result set stops at or before this batch.
            return min(entry.total_available, before)
        if len(entry.items) < self.batch_size:
            # A short batch is the last one; a reported total below it is ignored.
            if entry.total_available > before:
                return min(entry.total_available, delivered)
            return delivered
        return max(entry.total_available, delivered)

    def known_total(self, signature: SearchSignature, below_batch: int) -> int | None:
        """Total reported by the nearest live lower batch, if any."""
        for number in range(below_batch - 1, 0, -1):
            entry = self._cache.peek(BatchKey(signature, number))
            if entry is not None:
                return self._effective_total(entry)
        return None

    def _page_from(self, result: CacheResult, page: int) -> PageResult:
        entry = result.entry
        offset = ((page - 1) % self.pages_per_batch) * self.page_size
        total = self._effective_total(entry)
        return PageResult(
            hotels=entry.items[offset:offset + self.page_size],
            page=page,
            page_size=self.page_size,
            total_pages=math.ceil(total / self.page_size),
            has_more=page * self.page_size < total,
            batch_number=entry.key.batch_number,
            total_available=total,
            from_cache=result.from_cache,
            stale=result.stale,
        )

    async def get_page(self, signature: SearchSignature, page: int) -> PageResult:
        batch_number = self.batch_number_for(page)

        if batch_number > 1:
            total = self.known_total(signature, batch_number)
            if total is not None and total <= (batch_number - 1) * self.batch_size:
                logger.info(
                    f"Page {page} of {signature.destination_key} is past the last result ({total}), skipping fetch"
                )
                return PageResult(
                    hotels=(),
                    page=page,
                    page_size=self.page_size,
                    total_pages=math.ceil(total / self.page_size),
                    has_more=False,
                    batch_number=batch_number,
                    total_available=total,
                    from_cache=True,
                )

        result = await self._cache.get_or_fetch(BatchKey(signature, batch_number), self._batch_loader)
        return self._page_from(result, page)
