"""Purchase orders API router."""

import json
import logging
import os
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.database import get_db
from api.schemas import (
    Certification,
    OrderTraceRead,
    PurchaseOrderRead,
    PurchaseOrderUpdate,
    StageTimelineRead,
    StageViewRead,
    TrustSummaryRead,
)
from api.store import (
    InvalidTransitionError,
    get_purchase_order,
    get_purchase_order_by_number,
    list_purchase_orders,
    update_purchase_order,
)
from reasoning.engine import generate_po_insight, stream_po_insight
from tracking.risk import AT_RISK_SCORE, has_delay_risk, risk_level, trust_label, trust_score
from tracking.stages import progress, stage_timeline

logger = logging.getLogger(__name__)

router = APIRouter()

# (id, label, PO flag); None means the check always holds.
CERTIFICATIONS = (
    ("organic", "Organic Cotton Certified", "organic_cotton"),
    ("dyeing", "Low-Impact Dyeing", None),
    ("ethical", "Ethical Manufacturing", "esg_certified"),
    ("shipping", "Optimal Route", None),
)


async def _get_or_404(db: AsyncSession, po_id: str):
    po = await get_purchase_order(db, po_id)
    if not po:
        raise HTTPException(status_code=404, detail="Purchase order not found")
    return po


def _insight_context(po) -> dict:
    read = PurchaseOrderRead.from_po(po)
    return read.model_dump(mode="json")


def _timeline_read(po) -> StageTimelineRead:
    return StageTimelineRead(
        po_id=po.id,
        status=po.status,
        progress=progress(po.status),
        stages=[StageViewRead.from_view(v) for v in stage_timeline(po.status, po.timeline)],
    )


def _trust_read(po) -> TrustSummaryRead:
    trust = trust_score(po)
    return TrustSummaryRead(
        po_id=po.id,
        trust_score=trust,
        trust_label=trust_label(trust),
        risk_level=risk_level(po.risk_score).value,
        has_delay_risk=has_delay_risk(po),
        certifications=[
            Certification(id=cid, label=label, active=bool(getattr(po, flag))) if flag
            else Certification(id=cid, label=label, active=True)
            for cid, label, flag in CERTIFICATIONS
        ],
    )


@router.get("", response_model=list[PurchaseOrderRead])
async def list_orders(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    sort: str = Query("-created_at", description="created_at | risk_score | po_number, '-' for descending"),
    status: Optional[str] = Query(None, description="Stage name, or 'at_risk' for high/critical POs"),
    db: AsyncSession = Depends(get_db),
):
    """List purchase orders with derived risk and trust."""
    if status == "at_risk":
        # Filtered in the query so limit/offset page over at-risk POs only
        pos = await list_purchase_orders(db, sort=sort, limit=limit, offset=offset, min_risk_score=AT_RISK_SCORE)
    else:
        pos = await list_purchase_orders(db, sort=sort, limit=limit, offset=offset, status=status)
    return [PurchaseOrderRead.from_po(po) for po in pos]


@router.get("/trace/{po_number}", response_model=OrderTraceRead)
async def trace_order(po_number: str, db: AsyncSession = Depends(get_db)):
    """Customer trace: find a PO by its number (any case) with timeline and trust."""
    po = await get_purchase_order_by_number(db, po_number)
    if not po:
        raise HTTPException(status_code=404, detail=f"No purchase order numbered {po_number}")
    return OrderTraceRead(order=PurchaseOrderRead.from_po(po), timeline=_timeline_read(po), trust=_trust_read(po))


@router.get("/{po_id}", response_model=PurchaseOrderRead)
async def get_order(po_id: str, db: AsyncSession = Depends(get_db)):
    """Get purchase order by ID."""
    return PurchaseOrderRead.from_po(await _get_or_404(db, po_id))


@router.get("/{po_id}/timeline", response_model=StageTimelineRead)
async def get_timeline(po_id: str, db: AsyncSession = Depends(get_db)):
    """Per-stage completed/current/pending view with the authoritative entry per stage."""
    return _timeline_read(await _get_or_404(db, po_id))


@router.get("/{po_id}/trust", response_model=TrustSummaryRead)
async def get_trust(po_id: str, db: AsyncSession = Depends(get_db)):
    """Trust score with the certification checklist."""
    return _trust_read(await _get_or_404(db, po_id))


@router.patch("/{po_id}", response_model=PurchaseOrderRead)
async def update_order(
    po_id: str,
    body: PurchaseOrderUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Partial update. Stage moves must go forward; risk level is re-derived."""
    try:
        po = await update_purchase_order(db, po_id, body.model_dump(exclude_unset=True))
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not po:
        raise HTTPException(status_code=404, detail="Purchase order not found")
    return PurchaseOrderRead.from_po(po)


@router.post("/{po_id}/insight", response_model=PurchaseOrderRead)
async def generate_insight(po_id: str, db: AsyncSession = Depends(get_db)):
    """Generate an AI insight for the PO and store it."""
    if not os.getenv("ANTHROPIC_API_KEY"):
        raise HTTPException(
            status_code=503,
            detail="AI insight unavailable: ANTHROPIC_API_KEY not set",
        )
    po = await _get_or_404(db, po_id)
    insight = await run_in_threadpool(generate_po_insight, _insight_context(po))
    po = await update_purchase_order(db, po_id, {"ai_insight": insight})
    return PurchaseOrderRead.from_po(po)


@router.post("/{po_id}/insight/stream")
async def stream_insight(po_id: str, db: AsyncSession = Depends(get_db)):
    """Stream the AI insight token-by-token (not stored)."""
    if not os.getenv("ANTHROPIC_API_KEY"):
        raise HTTPException(
            status_code=503,
            detail="AI insight unavailable: ANTHROPIC_API_KEY not set",
        )
    context = _insight_context(await _get_or_404(db, po_id))

    def generate():
        for token in stream_po_insight(context):
            yield f"data: {json.dumps({'token': token})}\n\n"

    return StreamingResponse(
        generate(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
