"""Alerts API router."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.database import get_db
from api.schemas import AlertRead, AlertSummaryRead
from api.store import get_alert, list_alerts, update_alert
from tracking.alerts import ALERT_FILTERS, alert_summary, filter_alerts, sort_by_priority

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=list[AlertRead])
async def list_all_alerts(
    limit: int = Query(100, ge=1, le=500),
    view: str = Query("all", description=" | ".join(ALERT_FILTERS)),
    by_priority: bool = Query(False, description="Critical first instead of newest first"),
    db: AsyncSession = Depends(get_db),
):
    """List alerts, newest first."""
    alerts = filter_alerts(await list_alerts(db, limit=limit), view)
    if by_priority:
        alerts = sort_by_priority(alerts)
    return [AlertRead.from_alert(a) for a in alerts]


@router.get("/summary", response_model=AlertSummaryRead)
async def get_alert_summary(
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """Total, critical and unread counts."""
    return AlertSummaryRead.from_summary(alert_summary(await list_alerts(db, limit=limit)))


@router.get("/{alert_id}", response_model=AlertRead)
async def get_one_alert(alert_id: str, db: AsyncSession = Depends(get_db)):
    """Get alert by ID."""
    alert = await get_alert(db, alert_id)
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")
    return AlertRead.from_alert(alert)


@router.post("/{alert_id}/read", response_model=AlertRead)
async def mark_alert_read(alert_id: str, db: AsyncSession = Depends(get_db)):
    """Acknowledge an alert. Idempotent; an alert never becomes unread again."""
    alert = await update_alert(db, alert_id, is_read=True)
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")
    logger.info("Alert %s marked read", alert_id)
    return AlertRead.from_alert(alert)
