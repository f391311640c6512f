"""Price alert service — manages watched searches and their price history."""

import logging
import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hotelhub.config import settings
from hotelhub.exceptions.custom import RetryableSearchError
from hotelhub.models.price_alert import PriceAlert, PriceAlertHistory
from hotelhub.services.search_service import HotelSearchService
from hotelhub.services.search_types import SearchSignature

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 30


class PriceAlertService:
    """Creates, lists and deactivates price alerts for an owner."""

    async def create_alert(
        self,
        db: AsyncSession,
        owner_id: str,
        destination: str,
        signature: SearchSignature,
        hotel_id: str | None = None,
        hotel_name: str | None = None,
        current_price: float | None = None,
        threshold_percent: float | None = None,
        cooldown_hours: int | None = None,
        search: HotelSearchService | None = None,
    ) -> dict:
        """Create an alert. Without a given price, the current one is looked up through search."""
        price = Decimal(str(current_price)) if current_price is not None else None
        if price is None and search is not None:
            try:
                found = await search.current_price(signature, hotel_id, max_pages=settings.price_alert_scan_pages)
            except RetryableSearchError as e:
                logger.warning(f"Initial price lookup failed, alert starts without a baseline: {e}")
                found = None
            if found is not None:
                price, hotel = found
                hotel_name = hotel_name or hotel.canonical_name

        alert = PriceAlert(
            owner_id=owner_id,
            destination=destination.strip(),
            checkin=signature.checkin,
            checkout=signature.checkout,
            adults=signature.adults,
            children=list(signature.children),
            currency=signature.currency,
            hotel_id=hotel_id,
            hotel_name=hotel_name,
            last_known_price=price,
            current_price=price,
            lowest_price=price,
            threshold_percent=Decimal(str(
                threshold_percent if threshold_percent is not None else settings.price_alert_default_threshold_percent
            )),
            cooldown_hours=cooldown_hours if cooldown_hours is not None else settings.price_alert_default_cooldown_hours,
            is_active=True,
            notification_count=0,
        )
        db.add(alert)
        await db.flush()

        if price is not None:
            db.add(PriceAlertHistory(price_alert_id=alert.id, price=price))

        await db.commit()
        await db.refresh(alert)
        logger.info(f"Price alert {alert.id} created for {owner_id} ({alert.destination})")
        return self._alert_to_dict(alert)

    async def get_owner_alerts(self, db: AsyncSession, owner_id: str) -> list[dict]:
        """Active alerts for an owner with recent price history."""
        result = await db.execute(
            select(PriceAlert).where(
                PriceAlert.owner_id == owner_id,
                PriceAlert.is_active == True,
            ).order_by(PriceAlert.created_at.desc())
        )
        alerts = result.scalars().all()

        output = []
        for a in alerts:
            d = self._alert_to_dict(a)
            hist_result = await db.execute(
                select(PriceAlertHistory).where(
                    PriceAlertHistory.price_alert_id == a.id
                ).order_by(PriceAlertHistory.checked_at.desc()).limit(HISTORY_LIMIT)
            )
            history = hist_result.scalars().all()
            d["price_history"] = [
                {"price": float(h.price), "checked_at": h.checked_at.isoformat() if h.checked_at else None}
                for h in reversed(history)
            ]

            if len(history) >= 2:
                latest = history[0].price
                previous = history[1].price
                if latest < previous:
                    d["trend"] = "down"
                elif latest > previous:
                    d["trend"] = "up"
                else:
                    d["trend"] = "flat"
            else:
                d["trend"] = "flat"

            output.append(d)

        return output

    async def deactivate_alert(self, db: AsyncSession, alert_id: uuid.UUID, owner_id: str) -> bool:
        result = await db.execute(
            select(PriceAlert).where(
                PriceAlert.id == alert_id,
                PriceAlert.owner_id == owner_id,
            )
        )
        alert = result.scalar_one_or_none()
        if not alert:
            return False

        alert.is_active = False
        await db.commit()
        return True

    @staticmethod
    def _alert_to_dict(alert: PriceAlert) -> dict:
        return {
            "id": str(alert.id),
            "destination": alert.destination,
            "checkin": alert.checkin.isoformat(),
            "checkout": alert.checkout.isoformat(),
            "adults": alert.adults,
            "children": alert.children or [],
            "currency": alert.currency,
            "hotel_id": alert.hotel_id,
            "hotel_name": alert.hotel_name,
            "last_known_price": float(alert.last_known_price) if alert.last_known_price is not None else None,
            "current_price": float(alert.current_price) if alert.current_price is not None else None,
            "lowest_price": float(alert.lowest_price) if alert.lowest_price is not None else None,
            "threshold_percent": float(alert.threshold_percent),
            "cooldown_hours": alert.cooldown_hours,
            "is_active": alert.is_active,
            "last_checked_at": alert.last_checked_at.isoformat() if alert.last_checked_at else None,
            "last_notified_at": alert.last_notified_at.isoformat() if alert.last_notified_at else None,
            "notification_count": alert.notification_count,
            "created_at": alert.created_at.isoformat() if alert.created_at else None,
        }


price_alert_service = PriceAlertService()
