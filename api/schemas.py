"""Pydantic schemas for API requests and responses."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from ingestion.schemas import EventKind, IoTEvent
from live.hub import LiveSnapshot
from live.reducer import LiveMetrics, MetricStats
from tracking.alerts import AlertSummary, classify_severity, classify_type
from tracking.risk import FleetStats, risk_level, risk_level_mismatch, trust_label, trust_score
from tracking.stages import StageView, progress, stage_label


class TimelineEntryRead(BaseModel):
    stage: str
    status: str
    date: Optional[datetime] = None
    location: Optional[str] = None
    supplier: Optional[str] = None
    insight: Optional[str] = None

    model_config = {"from_attributes": True}


class PurchaseOrderRead(BaseModel):
    """PO read model. ``risk_level`` is derived; the stored value is reported separately."""

    id: str
    po_number: str
    product_name: str = ""
    quantity: int = 0
    status: str
    status_label: str
    progress: float
    risk_score: float
    risk_level: str
    stored_risk_level: Optional[str] = None
    risk_level_mismatch: bool = False
    trust_score: float
    trust_label: str
    delay_probability: float = 0.0
    estimated_delay_days: float = 0.0
    qa_score: Optional[float] = None
    organic_cotton: bool = False
    esg_certified: bool = False
    yarn_supplier: Optional[str] = None
    factory: Optional[str] = None
    shipment_vessel: Optional[str] = None
    ai_insight: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_po(cls, po: Any) -> "PurchaseOrderRead":
        trust = trust_score(po)
        return cls(
            id=po.id,
            po_number=po.po_number,
            product_name=po.product_name or "",
            quantity=po.quantity or 0,
            status=po.status,
            status_label=stage_label(po.status),
            progress=progress(po.status),
            risk_score=po.risk_score or 0.0,
            risk_level=risk_level(po.risk_score).value,
            stored_risk_level=po.risk_level,
            risk_level_mismatch=risk_level_mismatch(po),
            trust_score=trust,
            trust_label=trust_label(trust),
            delay_probability=po.delay_probability or 0.0,
            estimated_delay_days=po.estimated_delay_days or 0.0,
            qa_score=po.qa_score,
            organic_cotton=bool(po.organic_cotton),
            esg_certified=bool(po.esg_certified),
            yarn_supplier=po.yarn_supplier,
            factory=po.factory,
            shipment_vessel=po.shipment_vessel,
            ai_insight=po.ai_insight,
            created_at=po.created_at,
        )


class PurchaseOrderUpdate(BaseModel):
    status: Optional[str] = None
    risk_score: Optional[float] = Field(None, ge=0, le=100)
    delay_probability: Optional[float] = Field(None, ge=0, le=100)
    estimated_delay_days: Optional[float] = Field(None, ge=0)
    qa_score: Optional[float] = Field(None, ge=0, le=100)
    organic_cotton: Optional[bool] = None
    esg_certified: Optional[bool] = None
    shipment_vessel: Optional[str] = None

    @field_validator("risk_score", "delay_probability", "estimated_delay_days", "organic_cotton", "esg_certified")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        # Omit a field to leave it unchanged; these columns cannot hold null
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class StageViewRead(BaseModel):
    stage: str
    label: str
    display_status: str
    entry: Optional[TimelineEntryRead] = None

    @classmethod
    def from_view(cls, view: StageView) -> "StageViewRead":
        entry = None
        if view.entry is not None:
            entry = TimelineEntryRead.model_validate(view.entry)
        return cls(
            stage=view.stage.value,
            label=view.label,
            display_status=view.display_status.value,
            entry=entry,
        )


class StageTimelineRead(BaseModel):
    po_id: str
    status: str
    progress: float
    stages: list[StageViewRead]


class Certification(BaseModel):
    id: str
    label: str
    active: bool


class TrustSummaryRead(BaseModel):
    po_id: str
    trust_score: float
    trust_label: str
    risk_level: str
    has_delay_risk: bool
    certifications: list[Certification]


class OrderTraceRead(BaseModel):
    order: PurchaseOrderRead
    timeline: StageTimelineRead
    trust: TrustSummaryRead


class RiskLevelRead(BaseModel):
    score: float
    risk_level: str
    trust_score: float


class FleetStatsRead(BaseModel):
    total: int
    active: int
    delayed: int
    at_risk: int
    delay_rate: float
    delay_rate_pct: int
    avg_trust: float
    avg_trust_label: str

    @classmethod
    def from_stats(cls, stats: FleetStats) -> "FleetStatsRead":
        return cls(
            total=stats.total,
            active=stats.active,
            delayed=stats.delayed,
            at_risk=stats.at_risk,
            delay_rate=stats.delay_rate,
            delay_rate_pct=stats.delay_rate_pct,
            avg_trust=round(stats.avg_trust, 1),
            avg_trust_label=trust_label(stats.avg_trust),
        )


class AlertRead(BaseModel):
    id: str
    type: str
    category: str
    severity: str
    title: str
    description: str = ""
    suggested_action: Optional[str] = None
    affected_pos: list[str] = Field(default_factory=list)
    is_read: bool = False
    created_date: Optional[datetime] = None

    @classmethod
    def from_alert(cls, alert: Any) -> "AlertRead":
        return cls(
            id=alert.id,
            type=alert.type,
            category=classify_type(alert.type).value,
            severity=classify_severity(alert.severity).value,
            title=alert.title,
            description=alert.description or "",
            suggested_action=alert.suggested_action,
            affected_pos=sorted(set(alert.affected_pos or [])),
            is_read=bool(alert.is_read),
            created_date=alert.created_date,
        )


class AlertSummaryRead(BaseModel):
    total: int
    critical: int
    unread: int

    @classmethod
    def from_summary(cls, summary: AlertSummary) -> "AlertSummaryRead":
        return cls(total=summary.total, critical=summary.critical, unread=summary.unread)


class IoTEventIn(BaseModel):
    kind: EventKind = EventKind.CREATE
    data: dict[str, Any]


class MetricStatsRead(BaseModel):
    metric_type: str
    current: float
    average: float
    trend: str
    unit: str = ""
    sample_count: int = 0
    efficiency: Optional[float] = None

    @classmethod
    def from_stats(cls, stats: MetricStats) -> "MetricStatsRead":
        return cls(
            metric_type=stats.metric_type,
            current=stats.current,
            average=round(stats.average, 2),
            trend=stats.trend.value,
            unit=stats.unit,
            sample_count=stats.sample_count,
            efficiency=stats.efficiency,
        )


class LiveMetricsRead(BaseModel):
    """``has_data=False`` means no readings yet, not zero-valued readings."""

    subject: str
    live: bool
    loaded: bool
    error: Optional[str] = None
    has_data: bool
    latest_per_type: dict[str, IoTEvent] = Field(default_factory=dict)
    stats: Optional[MetricStatsRead] = None
    events: list[IoTEvent] = Field(default_factory=list)

    @classmethod
    def from_metrics(
        cls,
        metrics: LiveMetrics,
        live: bool = False,
        loaded: bool = True,
        error: Optional[str] = None,
    ) -> "LiveMetricsRead":
        return cls(
            subject=metrics.subject,
            live=live,
            loaded=loaded,
            error=error,
            has_data=metrics.has_data,
            latest_per_type=metrics.latest_per_type,
            stats=MetricStatsRead.from_stats(metrics.stats) if metrics.stats else None,
            events=metrics.events,
        )

    @classmethod
    def from_snapshot(cls, snapshot: LiveSnapshot) -> "LiveMetricsRead":
        return cls.from_metrics(snapshot.metrics, live=True, loaded=snapshot.loaded, error=snapshot.error)


class ValidationResultRead(BaseModel):
    rule: str
    passed: bool
    failed_count: int = 0
    total_count: int = 0
    message: str = ""
    details: dict[str, Any] = Field(default_factory=dict)
