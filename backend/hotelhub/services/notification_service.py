"""Notification service — creates in-app notifications."""

import logging
import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hotelhub.models.price_alert import Notification

logger = logging.getLogger(__name__)

ALERT_TYPES = ["price_drop", "alert_expired"]


class NotificationService:
    """Creates in-app notifications for price alert events. Delivery channels live elsewhere."""

    async def send_price_drop(
        self, db: AsyncSession, owner_id: str, alert_id: uuid.UUID, hotel_label: str,
        previous_price: Decimal, current_price: Decimal, currency: str, drop_percent: Decimal,
    ) -> Notification:
        return await self._create(
            db,
            owner_id=owner_id,
            type="price_drop",
            title="Price Drop Alert",
            body=(
                f"{hotel_label} dropped {drop_percent:.1f}% to {currency} {current_price:.2f} "
                f"(was {currency} {previous_price:.2f})."
            ),
            reference_type="price_alert",
            reference_id=alert_id,
        )

    async def send_alert_expired(
        self, db: AsyncSession, owner_id: str, alert_id: uuid.UUID, destination: str
    ) -> Notification:
        return await self._create(
            db,
            owner_id=owner_id,
            type="alert_expired",
            title="Price Alert Ended",
            body=f"Your price alert for {destination} ended because the check-in date has passed.",
            reference_type="price_alert",
            reference_id=alert_id,
        )

    async def list_alerts(self, db: AsyncSession, owner_id: str, limit: int = 50) -> list[Notification]:
        result = await db.execute(
            select(Notification).where(
                Notification.owner_id == owner_id,
                Notification.type.in_(ALERT_TYPES),
            ).order_by(Notification.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def _create(
        self, db: AsyncSession, owner_id: str, type: str,
        title: str, body: str, reference_type: str | None = None,
        reference_id: uuid.UUID | None = None,
    ) -> Notification:
        notification = Notification(
            owner_id=owner_id,
            type=type,
            title=title,
            body=body,
            reference_type=reference_type,
            reference_id=reference_id,
        )
        db.add(notification)
        logger.debug(f"Queued {type} notification for {owner_id}")
        return notification


notification_service = NotificationService()
