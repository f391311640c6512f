"""Price alerts router."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from hotelhub.database import get_db
from hotelhub.dependencies import OwnerDep, SearchServiceDep
from hotelhub.schemas.price_alert import CreatePriceAlertRequest
from hotelhub.services.notification_service import notification_service
from hotelhub.services.price_alert_service import price_alert_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/price-alerts")
async def create_price_alert(
    req: CreatePriceAlertRequest,
    owner_id: OwnerDep,
    search: SearchServiceDep,
    db: AsyncSession = Depends(get_db),
):
    """Watch a search (or one hotel in it) for price drops."""
    try:
        signature = req.to_signature()
    except (ValidationError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    return await price_alert_service.create_alert(
        db=db,
        owner_id=owner_id,
        destination=req.destination,
        signature=signature,
        hotel_id=req.hotel_id,
        hotel_name=req.hotel_name,
        current_price=req.current_price,
        threshold_percent=req.threshold_percent,
        cooldown_hours=req.cooldown_hours,
        search=search,
    )


@router.get("/price-alerts")
async def list_price_alerts(
    owner_id: OwnerDep,
    db: AsyncSession = Depends(get_db),
):
    """List the owner's active price alerts."""
    alerts = await price_alert_service.get_owner_alerts(db, owner_id)
    return {"alerts": alerts, "count": len(alerts)}


@router.delete("/price-alerts/{alert_id}")
async def delete_price_alert(
    alert_id: uuid.UUID,
    owner_id: OwnerDep,
    db: AsyncSession = Depends(get_db),
):
    """Deactivate a price alert."""
    deleted = await price_alert_service.deactivate_alert(db, alert_id, owner_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Price alert not found")
    return {"deleted": True}


@router.get("/alerts")
async def get_alerts(
    owner_id: OwnerDep,
    db: AsyncSession = Depends(get_db),
):
    """Recent price alert notifications."""
    alerts = await notification_service.list_alerts(db, owner_id)

    return {
        "alerts": [
            {
                "id": str(a.id),
                "type": a.type,
                "title": a.title,
                "body": a.body,
                "is_read": a.is_read,
                "reference_type": a.reference_type,
                "reference_id": str(a.reference_id) if a.reference_id else None,
                "created_at": a.created_at.isoformat() if a.created_at else None,
            }
            for a in alerts
        ],
        "unread_count": sum(1 for a in alerts if not a.is_read),
    }
