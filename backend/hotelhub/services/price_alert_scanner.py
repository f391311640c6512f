"""Price alert scanner — periodic sweep that re-prices watched searches and notifies on drops."""

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hotelhub.config import settings
from hotelhub.models.price_alert import PriceAlert, PriceAlertHistory
from hotelhub.services.notification_service import NotificationService, notification_service
from hotelhub.services.search_service import HotelSearchService
from hotelhub.services.search_types import SearchSignature

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def _utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def should_notify(
    last_known_price: Decimal,
    current_price: Decimal,
    threshold_percent: Decimal,
    last_notified_at: datetime | None,
    cooldown: timedelta,
    now: datetime,
) -> bool:
    """A drop of more than threshold_percent below the last notified price, outside the cooldown."""
    limit = last_known_price * (1 - Decimal(str(threshold_percent)) / HUNDRED)
    if not current_price < limit:
        return False
    return last_notified_at is None or now - _utc(last_notified_at) > cooldown


@dataclass
class CheckOutcome:
    status: str  # checked | notified | deactivated | unpriced | skipped
    event: dict | None = None


@dataclass
class SweepStats:
    total: int = 0
    checked: int = 0
    notified: int = 0
    deactivated: int = 0
    errors: int = 0
    alerts: list[dict] = field(default_factory=list)


class PriceAlertScanner:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        search: HotelSearchService,
        concurrency: int | None = None,
        notifications: NotificationService = notification_service,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._session_factory = session_factory
        self._search = search
        self._concurrency = concurrency or settings.price_alert_concurrency
        self._notifications = notifications
        self._clock = clock

    async def sweep(self) -> SweepStats:
        """Check every active alert; one alert failing never stops the sweep."""
        async with self._session_factory() as db:
            result = await db.execute(select(PriceAlert.id).where(PriceAlert.is_active == True))
            alert_ids = list(result.scalars().all())

        stats = SweepStats(total=len(alert_ids))
        semaphore = asyncio.Semaphore(self._concurrency)

        async def _run(alert_id: uuid.UUID) -> CheckOutcome | None:
            async with semaphore:
                try:
                    return await self.check_alert(alert_id)
                except Exception as e:
                    logger.error(f"Error checking price alert {alert_id}: {e}")
                    return None

        for outcome in await asyncio.gather(*(_run(i) for i in alert_ids)):
            if outcome is None:
                stats.errors += 1
            elif outcome.status == "deactivated":
                stats.deactivated += 1
            elif outcome.status in ("checked", "notified", "unpriced"):
                stats.checked += 1
                if outcome.event:
                    stats.notified += 1
                    stats.alerts.append(outcome.event)

        logger.info(
            f"Price alert sweep: {stats.total} active, {stats.checked} checked, {stats.notified} notified, "
            f"{stats.deactivated} deactivated, {stats.errors} errors"
        )
        return stats

    async def check_alert(self, alert_id: uuid.UUID) -> CheckOutcome:
        async with self._session_factory() as db:
            alert = await db.get(PriceAlert, alert_id)
            if alert is None or not alert.is_active:
                return CheckOutcome("skipped")

            now = self._clock()
            if alert.checkin < now.date():
                alert.is_active = False
                await self._notifications.send_alert_expired(db, alert.owner_id, alert.id, alert.destination)
                await db.commit()
                logger.info(f"Price alert {alert.id} deactivated, check-in {alert.checkin} has passed")
                return CheckOutcome("deactivated")

            signature = SearchSignature.create(
                alert.destination, alert.checkin, alert.checkout,
                adults=alert.adults, children=alert.children or [], currency=alert.currency,
            )
            found = await self._search.current_price(
                signature, alert.hotel_id, max_pages=settings.price_alert_scan_pages
            )
            alert.last_checked_at = now
            if found is None:
                await db.commit()
                return CheckOutcome("unpriced")

            current, hotel = found
            db.add(PriceAlertHistory(price_alert_id=alert.id, price=current))
            alert.current_price = current
            if alert.lowest_price is None or current < alert.lowest_price:
                alert.lowest_price = current

            event = None
            if alert.last_known_price is None:
                alert.last_known_price = current
            elif should_notify(
                alert.last_known_price,
                current,
                alert.threshold_percent,
                alert.last_notified_at,
                timedelta(hours=alert.cooldown_hours),
                now,
            ):
                previous = alert.last_known_price
                drop_percent = ((previous - current) / previous * HUNDRED).quantize(Decimal("0.1"))
                label = (alert.hotel_name or hotel.canonical_name) if alert.hotel_id else f"Hotels in {alert.destination}"
                await self._notifications.send_price_drop(
                    db, alert.owner_id, alert.id, label, previous, current, alert.currency, drop_percent
                )
                event = {
                    "type": "price_drop",
                    "alert_id": str(alert.id),
                    "owner_id": alert.owner_id,
                    "hotel_id": hotel.hotel_id,
                    "previous_price": float(previous),
                    "current_price": float(current),
                    "drop_percent": float(drop_percent),
                    "currency": alert.currency,
                }
                alert.last_known_price = current
                alert.last_notified_at = now
                alert.notification_count = (alert.notification_count or 0) + 1

            await db.commit()
            return CheckOutcome("notified" if event else "checked", event)
