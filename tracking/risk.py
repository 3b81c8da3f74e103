"""
Risk bucketing, trust scoring and fleet aggregates for purchase orders.

``risk_level(score)`` is the only place a risk badge is derived. Stored
``risk_level`` values are never trusted over it; a disagreement is reported
as a data-quality signal by ``risk_level_mismatch``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from tracking.records import as_number, read_field
from tracking.stages import Stage, parse_stage


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Inclusive lower bounds, checked highest first.
RISK_THRESHOLDS: tuple[tuple[float, RiskLevel], ...] = (
    (80, RiskLevel.CRITICAL),
    (55, RiskLevel.HIGH),
    (30, RiskLevel.MEDIUM),
)
# Lowest score that buckets as high or critical.
AT_RISK_SCORE = next(bound for bound, level in RISK_THRESHOLDS if level is RiskLevel.HIGH)

TRUST_LABELS: tuple[tuple[float, str], ...] = (
    (80, "Excellent"),
    (60, "Good"),
    (40, "Medium"),
    (20, "At Risk"),
)
LOWEST_TRUST_LABEL = "Critical"

# Trust shown for an empty fleet. A fixed convention, not a computed mean.
EMPTY_FLEET_TRUST = 95.0


def clamp_score(value: Any) -> float:
    """Clamp a 0-100 score; missing or non-numeric input counts as 0."""
    number = as_number(value)
    if number is None:
        return 0.0
    return min(max(number, 0.0), 100.0)


def risk_level(score: Any) -> RiskLevel:
    """Bucket a 0-100 risk score: low <30 <= medium <55 <= high <80 <= critical."""
    value = clamp_score(score)
    for bound, level in RISK_THRESHOLDS:
        if value >= bound:
            return level
    return RiskLevel.LOW


def trust_from_risk(score: Any) -> float:
    return 100.0 - clamp_score(score)


def trust_score(po: Any) -> float:
    """``100 - clamp(po.risk_score, 0, 100)``."""
    return trust_from_risk(read_field(po, "risk_score"))


def trust_label(trust: Any) -> str:
    value = clamp_score(trust)
    for bound, label in TRUST_LABELS:
        if value >= bound:
            return label
    return LOWEST_TRUST_LABEL


def has_delay_risk(po: Any) -> bool:
    days = as_number(read_field(po, "estimated_delay_days"))
    return days is not None and days > 0


def is_at_risk(po: Any) -> bool:
    return risk_level(read_field(po, "risk_score")) in (RiskLevel.HIGH, RiskLevel.CRITICAL)


def risk_level_mismatch(po: Any) -> bool:
    """True when the stored level disagrees with the derived one.

    A PO without a stored level is not a mismatch.
    """
    stored = read_field(po, "risk_level")
    if stored is None:
        return False
    stored = stored.value if isinstance(stored, Enum) else str(stored).lower()
    return stored != risk_level(read_field(po, "risk_score")).value


@dataclass(frozen=True)
class FleetStats:
    total: int
    active: int
    delayed: int
    at_risk: int
    delay_rate: float
    avg_trust: float

    @property
    def delay_rate_pct(self) -> int:
        return round(self.delay_rate * 100)


def fleet_stats(pos: Iterable[Any]) -> FleetStats:
    """Reduce the current PO set to dashboard aggregates."""
    pos = list(pos)
    total = len(pos)
    delayed = sum(1 for po in pos if has_delay_risk(po))
    active = sum(1 for po in pos if parse_stage(read_field(po, "status")) is not Stage.DELIVERED)
    at_risk = sum(1 for po in pos if is_at_risk(po))
    if total == 0:
        return FleetStats(0, 0, 0, 0, delay_rate=0.0, avg_trust=EMPTY_FLEET_TRUST)
    return FleetStats(
        total=total,
        active=active,
        delayed=delayed,
        at_risk=at_risk,
        delay_rate=delayed / total,
        avg_trust=sum(trust_score(po) for po in pos) / total,
    )
