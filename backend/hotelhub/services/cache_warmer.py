"""Cache warmer — pre-fetches the first batch of popular destinations into the batch cache."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, timedelta

from hotelhub.config import settings
from hotelhub.exceptions.custom import RetryableSearchError, SupplierError
from hotelhub.services.search_service import HotelSearchService
from hotelhub.services.search_types import SearchSignature

logger = logging.getLogger(__name__)


@dataclass
class WarmStats:
    warmed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {"warmed": self.warmed, "failed": self.failed}


class CacheWarmer:
    def __init__(
        self,
        search: HotelSearchService,
        destinations: list[str] | None = None,
        days_ahead: int | None = None,
        nights: int | None = None,
        adults: int | None = None,
        delay: float | None = None,
        today: Callable[[], date] = date.today,
    ):
        self._search = search
        self.destinations = destinations if destinations is not None else settings.warm_destination_list
        self._days_ahead = days_ahead if days_ahead is not None else settings.warm_days_ahead
        self._nights = nights if nights is not None else settings.warm_nights
        self._adults = adults if adults is not None else settings.warm_adults
        self._delay = delay if delay is not None else settings.warm_delay_seconds
        self._today = today

    def default_stay(self) -> tuple[date, date]:
        checkin = self._today() + timedelta(days=self._days_ahead)
        return checkin, checkin + timedelta(days=self._nights)

    async def warm_destination(
        self, destination: str, checkin: date | None = None, checkout: date | None = None
    ) -> bool:
        """Load page 1 of one destination; True when the batch is cached."""
        if checkin is None or checkout is None:
            checkin, checkout = self.default_stay()
        try:
            signature = SearchSignature.create(destination, checkin, checkout, adults=self._adults)
            page = await self._search.search_page(signature, 1)
        except (SupplierError, RetryableSearchError, ValueError) as e:
            logger.error(f"Cache warm failed for {destination}: {e}")
            return False
        logger.info(f"Cache warmed for {destination}: {page.total_available} hotels available")
        return True

    async def warm_all(
        self,
        destinations: list[str] | None = None,
        checkin: date | None = None,
        checkout: date | None = None,
    ) -> WarmStats:
        stats = WarmStats()
        targets = destinations if destinations is not None else self.destinations
        logger.info(f"Warming search cache for {len(targets)} destinations")
        for i, destination in enumerate(targets):
            if i and self._delay:
                # Spread supplier calls to stay under its rate limit
                await asyncio.sleep(self._delay)
            if await self.warm_destination(destination, checkin, checkout):
                stats.warmed.append(destination)
            else:
                stats.failed.append(destination)
        logger.info(f"Cache warm done: {len(stats.warmed)} warmed, {len(stats.failed)} failed")
        return stats
