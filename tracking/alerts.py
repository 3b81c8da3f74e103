"""Alert severity and category classification."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from tracking.records import read_field


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertCategory(str, Enum):
    DELAY_RISK = "delay_risk"
    QUALITY_ISSUE = "quality_issue"
    PORT_CONGESTION = "port_congestion"
    WEATHER_RISK = "weather_risk"
    SUPPLIER_ISSUE = "supplier_issue"
    INVENTORY = "inventory"
    GENERAL = "general"


DEFAULT_SEVERITY = Severity.INFO
DEFAULT_CATEGORY = AlertCategory.GENERAL

SEVERITY_PRIORITY: dict[Severity, int] = {
    Severity.CRITICAL: 0,
    Severity.WARNING: 1,
    Severity.INFO: 2,
}

ALERT_FILTERS = ("all", "unread", *(s.value for s in Severity))


def classify_severity(value: Any) -> Severity:
    if isinstance(value, Severity):
        return value
    try:
        return Severity(str(value).lower())
    except ValueError:
        return DEFAULT_SEVERITY


def classify_type(value: Any) -> AlertCategory:
    if isinstance(value, AlertCategory):
        return value
    try:
        return AlertCategory(str(value).lower())
    except ValueError:
        return DEFAULT_CATEGORY


def severity_priority(alert: Any) -> int:
    return SEVERITY_PRIORITY[classify_severity(read_field(alert, "severity"))]


def sort_by_priority(alerts: Iterable[Any]) -> list[Any]:
    """Critical first; original order kept within a severity."""
    return sorted(alerts, key=severity_priority)


def needs_attention(alert: Any) -> bool:
    return classify_severity(read_field(alert, "severity")) in (Severity.CRITICAL, Severity.WARNING)


def filter_alerts(alerts: Iterable[Any], view: str = "all") -> list[Any]:
    """Apply a view filter: ``all``, ``unread`` or a severity name.

    Unknown filters behave like ``all``.
    """
    alerts = list(alerts)
    if view == "unread":
        return [a for a in alerts if not read_field(a, "is_read", False)]
    if view in (s.value for s in Severity):
        wanted = Severity(view)
        return [a for a in alerts if classify_severity(read_field(a, "severity")) is wanted]
    return alerts


@dataclass(frozen=True)
class AlertSummary:
    total: int
    critical: int
    unread: int


def alert_summary(alerts: Iterable[Any]) -> AlertSummary:
    alerts = list(alerts)
    return AlertSummary(
        total=len(alerts),
        critical=sum(1 for a in alerts if classify_severity(read_field(a, "severity")) is Severity.CRITICAL),
        unread=sum(1 for a in alerts if not read_field(a, "is_read", False)),
    )
