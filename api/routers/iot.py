"""IoT events API router: ingest, history, live metrics and activity feed."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.database import get_db
from api.deps import get_hub
from api.schemas import IoTEventIn, LiveMetricsRead
from api.store import list_iot_events, save_iot_event
from ingestion.schemas import EventKind, IoTEvent, parse_event
from live.hub import LiveHub
from live.reducer import summarize

logger = logging.getLogger(__name__)

router = APIRouter()


async def record_event(
    db: AsyncSession,
    hub: LiveHub,
    payload: Any,
    kind: EventKind = EventKind.CREATE,
) -> Optional[IoTEvent]:
    """Persist a reading and publish it to the hub. Malformed payloads are dropped."""
    event = parse_event(payload)
    if event is None:
        return None
    await save_iot_event(db, event)
    hub.publish(event, kind)
    return event


@router.get("/events", response_model=list[IoTEvent])
async def list_events(
    po_id: Optional[str] = Query(None, description="PO id, or 'global' for ambient readings"),
    limit: int = Query(10, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """Recent readings, newest first."""
    return await list_iot_events(db, po_id=po_id, limit=limit)


@router.post("/events", status_code=202)
async def push_event(
    body: IoTEventIn,
    db: AsyncSession = Depends(get_db),
    hub: LiveHub = Depends(get_hub),
):
    """Accept a create/update reading. Malformed readings are ignored, not rejected."""
    event = await record_event(db, hub, body.data, body.kind)
    if event is None:
        return {"status": "ignored"}
    return {"status": "accepted", "id": event.id, "kind": body.kind.value}


@router.get("/live/{subject}", response_model=LiveMetricsRead)
async def live_metrics(
    subject: str,
    db: AsyncSession = Depends(get_db),
    hub: LiveHub = Depends(get_hub),
):
    """Latest reading per metric type plus production stats for a PO (or 'global').

    Served from the hub when the subject is subscribed, otherwise folded from
    stored history.
    """
    snapshot = hub.snapshot(subject)
    if snapshot is not None:
        return LiveMetricsRead.from_snapshot(snapshot)
    reducer = hub.reducer
    history = await list_iot_events(db, po_id=subject, limit=reducer.capacity)
    metrics = summarize(
        subject,
        history,
        capacity=reducer.capacity,
        stats_metric=reducer.stats_metric,
        nominal_rate=reducer.nominal_rate,
    )
    return LiveMetricsRead.from_metrics(metrics)


@router.get("/activity", response_model=list[IoTEvent])
async def recent_activity(
    limit: int = Query(5, ge=1, le=100),
    hub: LiveHub = Depends(get_hub),
):
    """Most recent readings across every PO, newest first."""
    return hub.recent_activity(limit)
