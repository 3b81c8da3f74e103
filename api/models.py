"""SQLAlchemy models for the operational database."""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""

    type_annotation_map = {
        dict[str, Any]: JSONB,
        list[str]: JSONB,
    }


class PurchaseOrder(Base):
    """A textile purchase order moving through the production stages."""

    __tablename__ = "purchase_orders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    po_number: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    product_name: Mapped[str] = mapped_column(String(256), default="")
    quantity: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(32), index=True, default="yarn_sourcing")
    risk_score: Mapped[float] = mapped_column(Float, default=0.0)
    risk_level: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)  # stored; derived value wins
    delay_probability: Mapped[float] = mapped_column(Float, default=0.0)
    estimated_delay_days: Mapped[float] = mapped_column(Float, default=0.0)
    qa_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    organic_cotton: Mapped[bool] = mapped_column(Boolean, default=False)
    esg_certified: Mapped[bool] = mapped_column(Boolean, default=False)
    yarn_supplier: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    factory: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    shipment_vessel: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    ai_insight: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    timeline = relationship(
        "TimelineEntry",
        back_populates="purchase_order",
        order_by="TimelineEntry.id",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class TimelineEntry(Base):
    """Stage record for a PO. Append-only: a later entry for a stage supersedes earlier ones."""

    __tablename__ = "timeline_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    po_id: Mapped[str] = mapped_column(String(64), ForeignKey("purchase_orders.id"), index=True)
    stage: Mapped[str] = mapped_column(String(32))
    status: Mapped[str] = mapped_column(String(16), default="in_progress")  # in_progress | completed | delayed
    date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    supplier: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    insight: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    purchase_order = relationship("PurchaseOrder", back_populates="timeline")


class IoTReading(Base):
    """Persisted IoT sensor event. Re-sent ids overwrite the row."""

    __tablename__ = "iot_events"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    po_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    metric_type: Mapped[str] = mapped_column(String(64), index=True)
    metric_value: Mapped[float] = mapped_column(Float)
    metric_unit: Mapped[str] = mapped_column(String(32), default="")
    location: Mapped[str] = mapped_column(String(256), default="")
    source: Mapped[str] = mapped_column(String(64), default="factory_machine")
    status: Mapped[str] = mapped_column(String(16), default="normal")  # normal | warning | critical
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)


class Alert(Base):
    """Exception or risk alert raised against one or more POs."""

    __tablename__ = "alerts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    type: Mapped[str] = mapped_column(String(32))  # delay_risk | quality_issue | port_congestion | ...
    severity: Mapped[str] = mapped_column(String(16))  # info | warning | critical
    title: Mapped[str] = mapped_column(String(256))
    description: Mapped[str] = mapped_column(Text, default="")
    suggested_action: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    affected_pos: Mapped[list[str]] = mapped_column(JSONB, default=list)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)
