"""Persistence queries used by routers, the live hub and the ingest path.

Lookups that miss return None or an empty list; HTTP status mapping is left
to the routers.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.models import Alert, IoTReading, PurchaseOrder, TimelineEntry
from ingestion.schemas import IoTEvent
from live.reducer import GLOBAL_SUBJECT
from tracking.risk import risk_level
from tracking.stages import is_forward_transition, transition_entries

logger = logging.getLogger(__name__)

PO_SORT_FIELDS = {
    "created_at": PurchaseOrder.created_at,
    "risk_score": PurchaseOrder.risk_score,
    "po_number": PurchaseOrder.po_number,
    "estimated_delay_days": PurchaseOrder.estimated_delay_days,
}
PO_MUTABLE_FIELDS = {
    "status",
    "risk_score",
    "delay_probability",
    "estimated_delay_days",
    "qa_score",
    "organic_cotton",
    "esg_certified",
    "shipment_vessel",
    "ai_insight",
}


class InvalidTransitionError(ValueError):
    """A status update named an unknown stage or an earlier one."""


def _order_by(sort: str, columns: dict[str, Any], default: Any):
    """``"-field"`` sorts descending; unknown fields fall back to ``default``."""
    descending = sort.startswith("-")
    column = columns.get(sort.lstrip("-"))
    if column is None:
        return default
    return column.desc() if descending else column.asc()


async def list_purchase_orders(
    db: AsyncSession,
    sort: str = "-created_at",
    limit: int = 100,
    offset: int = 0,
    status: Optional[str] = None,
    min_risk_score: Optional[float] = None,
) -> list[PurchaseOrder]:
    q = (
        select(PurchaseOrder)
        .order_by(_order_by(sort, PO_SORT_FIELDS, PurchaseOrder.created_at.desc()))
        .limit(limit)
        .offset(offset)
    )
    if status:
        q = q.where(PurchaseOrder.status == status)
    if min_risk_score is not None:
        q = q.where(PurchaseOrder.risk_score >= min_risk_score)
    result = await db.execute(q)
    return list(result.scalars().all())


async def get_purchase_order(db: AsyncSession, po_id: str) -> Optional[PurchaseOrder]:
    result = await db.execute(select(PurchaseOrder).where(PurchaseOrder.id == po_id))
    return result.scalar_one_or_none()


async def get_purchase_order_by_number(db: AsyncSession, po_number: str) -> Optional[PurchaseOrder]:
    """Case-insensitive lookup by PO number; None on a miss."""
    q = select(PurchaseOrder).where(func.lower(PurchaseOrder.po_number) == po_number.strip().lower())
    result = await db.execute(q)
    return result.scalar_one_or_none()


async def update_purchase_order(
    db: AsyncSession,
    po_id: str,
    fields: dict[str, Any],
) -> Optional[PurchaseOrder]:
    """Apply a partial update.

    A status change must move forward; it appends the timeline entries for the
    transition. ``risk_level`` is always re-derived from ``risk_score``.
    """
    po = await get_purchase_order(db, po_id)
    if po is None:
        return None
    fields = {k: v for k, v in fields.items() if k in PO_MUTABLE_FIELDS}

    target = fields.pop("status", None)
    if target is not None and target != po.status:
        if not is_forward_transition(po.status, target):
            raise InvalidTransitionError(f"Cannot move {po.po_number} from {po.status} to {target}")
        now = datetime.now(timezone.utc)
        for stage, entry_status in transition_entries(po.status, target):
            po.timeline.append(TimelineEntry(stage=stage.value, status=entry_status.value, date=now))
        logger.info("PO %s advanced %s -> %s", po.po_number, po.status, target)
        po.status = target

    for name, value in fields.items():
        setattr(po, name, value)
    po.risk_level = risk_level(po.risk_score).value
    await db.flush()
    await db.refresh(po)
    return po


async def list_iot_events(
    db: AsyncSession,
    po_id: Optional[str] = None,
    sort: str = "-timestamp",
    limit: int = 10,
) -> list[IoTEvent]:
    """Newest-first readings, optionally for one PO (or ``"global"`` for ambient ones)."""
    column = IoTReading.timestamp.asc() if sort == "timestamp" else IoTReading.timestamp.desc()
    q = select(IoTReading).order_by(column).limit(limit)
    if po_id == GLOBAL_SUBJECT:
        q = q.where(IoTReading.po_id.is_(None))
    elif po_id:
        q = q.where(IoTReading.po_id == po_id)
    result = await db.execute(q)
    return [IoTEvent.model_validate(row, from_attributes=True) for row in result.scalars().all()]


async def save_iot_event(db: AsyncSession, event: IoTEvent) -> None:
    """Insert or replace the reading with this id."""
    data = event.model_dump(mode="python")
    data["status"] = event.status.value
    await db.merge(IoTReading(**data))
    await db.flush()


async def list_alerts(db: AsyncSession, limit: int = 100) -> list[Alert]:
    result = await db.execute(select(Alert).order_by(Alert.created_date.desc()).limit(limit))
    return list(result.scalars().all())


async def get_alert(db: AsyncSession, alert_id: str) -> Optional[Alert]:
    result = await db.execute(select(Alert).where(Alert.id == alert_id))
    return result.scalar_one_or_none()


async def update_alert(db: AsyncSession, alert_id: str, is_read: bool) -> Optional[Alert]:
    """Read acknowledgement only ever goes false -> true."""
    alert = await get_alert(db, alert_id)
    if alert is None:
        return None
    if is_read and not alert.is_read:
        alert.is_read = True
        await db.flush()
    return alert
