"""Pydantic schemas for IoT sensor events."""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"


class EventStatus(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


class IoTEvent(BaseModel):
    """A single sensor reading. Re-sending an ``id`` replaces the earlier reading."""

    id: str = Field(..., min_length=1, description="Unique event identifier")
    po_id: Optional[str] = Field(None, description="Purchase order; absent for ambient readings")
    metric_type: str = Field(..., min_length=1, description="production_rate | temperature | humidity | ...")
    metric_value: float = Field(..., allow_inf_nan=False, description="Reading value; NaN and inf are rejected")
    metric_unit: str = Field("", description="Unit of the reading")
    location: str = Field("", description="Where the reading was taken")
    source: str = Field(
        "factory_machine",
        description="factory_machine | warehouse_sensor | qa_scanner | logistics_tracker",
    )
    status: EventStatus = Field(EventStatus.NORMAL, description="normal | warning | critical")
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="Ordering key; assigned on receipt when the emitter sends none",
    )

    model_config = {"extra": "ignore", "from_attributes": True}

    @field_validator("timestamp", mode="before")
    @classmethod
    def _assign_missing(cls, value: Any) -> Any:
        return _utcnow() if value is None else value

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Naive and aware timestamps must stay comparable inside one buffer.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class IoTEventMessage(BaseModel):
    """Envelope on the event topic: ``{"kind": ..., "data": {...}}``."""

    kind: EventKind = EventKind.CREATE
    data: IoTEvent


def parse_event(payload: Any) -> Optional[IoTEvent]:
    """Validate a raw reading; None when it is malformed."""
    if isinstance(payload, IoTEvent):
        return payload
    if payload is None:
        return None
    try:
        if isinstance(payload, dict):
            return IoTEvent.model_validate(payload)
        return IoTEvent.model_validate(payload, from_attributes=True)
    except ValidationError as e:
        logger.warning("Invalid IoT event, skipping: %s", e)
        return None


def parse_message(payload: Any) -> Optional[IoTEventMessage]:
    """Accept either an envelope or a bare event dict (treated as create)."""
    if not isinstance(payload, dict):
        logger.warning("Unexpected IoT message payload type: %s", type(payload).__name__)
        return None
    if "data" in payload:
        try:
            return IoTEventMessage.model_validate(payload)
        except ValidationError as e:
            logger.warning("Invalid IoT message, skipping: %s", e)
            return None
    event = parse_event(payload)
    if event is None:
        return None
    return IoTEventMessage(kind=EventKind.CREATE, data=event)
