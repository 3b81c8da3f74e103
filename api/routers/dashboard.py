"""Dashboard API router: fleet aggregates and data quality."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.database import get_db
from api.schemas import FleetStatsRead, RiskLevelRead, ValidationResultRead
from api.store import list_iot_events, list_purchase_orders
from quality.validations import IOT_COLUMNS, PO_COLUMNS, frame_from_records, run_validation_suite
from tracking.risk import clamp_score, fleet_stats, risk_level, trust_from_risk

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/stats", response_model=FleetStatsRead)
async def get_fleet_stats(
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
):
    """Active/delayed counts, delay rate and average trust over the latest POs."""
    pos = await list_purchase_orders(db, limit=limit)
    return FleetStatsRead.from_stats(fleet_stats(pos))


@router.get("/data-quality", response_model=dict[str, list[ValidationResultRead]])
async def get_data_quality(
    limit: int = Query(500, ge=1, le=5000),
    db: AsyncSession = Depends(get_db),
):
    """Run the validation suites, including stored-vs-derived risk level."""
    pos = await list_purchase_orders(db, limit=limit)
    events = await list_iot_events(db, limit=limit)
    suites = {
        "purchase_orders": run_validation_suite(frame_from_records(pos, PO_COLUMNS), "purchase_orders"),
        "iot_events": run_validation_suite(frame_from_records(events, IOT_COLUMNS), "iot_events"),
    }
    return {
        name: [ValidationResultRead.model_validate(r, from_attributes=True) for r in results]
        for name, results in suites.items()
    }


@router.get("/risk-level", response_model=RiskLevelRead)
async def get_risk_level(score: float = Query(..., description="Risk score, clamped to 0-100")):
    """Bucket a raw risk score."""
    return RiskLevelRead(
        score=clamp_score(score),
        risk_level=risk_level(score).value,
        trust_score=trust_from_risk(score),
    )
