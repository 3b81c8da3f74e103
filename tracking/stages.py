"""
Purchase order lifecycle stages and timeline derivation.

The seven production stages are totally ordered. A PO's ``status`` names the
stage it is currently in; everything before it is completed and everything
after it is pending. Timeline entries only decorate a stage with data
(date, location, supplier, insight) and never change its display status.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from tracking.records import read_field

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    YARN_SOURCING = "yarn_sourcing"
    KNITTING = "knitting"
    DYEING = "dyeing"
    QA_CHECK = "qa_check"
    PACKING = "packing"
    SHIPPING = "shipping"
    DELIVERED = "delivered"


class DisplayStatus(str, Enum):
    COMPLETED = "completed"
    CURRENT = "current"
    PENDING = "pending"


class EntryStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DELAYED = "delayed"


STAGES: tuple[Stage, ...] = tuple(Stage)

STAGE_LABELS: dict[Stage, str] = {
    Stage.YARN_SOURCING: "Yarn Sourcing",
    Stage.KNITTING: "Knitting",
    Stage.DYEING: "Dyeing",
    Stage.QA_CHECK: "QA Check",
    Stage.PACKING: "Packing",
    Stage.SHIPPING: "Shipping",
    Stage.DELIVERED: "Delivered",
}
UNKNOWN_STAGE_LABEL = "Unknown"


@dataclass(frozen=True)
class StageView:
    """One row of the derived stage timeline."""

    stage: Stage
    display_status: DisplayStatus
    entry: Optional[Any] = None

    @property
    def label(self) -> str:
        return STAGE_LABELS[self.stage]


def parse_stage(value: Any) -> Optional[Stage]:
    """Map a raw stage value to Stage, or None when unrecognized."""
    if isinstance(value, Stage):
        return value
    try:
        return Stage(value)
    except ValueError:
        return None


def stage_index(status: Any) -> int:
    """Position of ``status`` in the canonical order; -1 when unknown."""
    stage = parse_stage(status)
    if stage is None:
        return -1
    return STAGES.index(stage)


def stage_label(status: Any) -> str:
    stage = parse_stage(status)
    if stage is None:
        return UNKNOWN_STAGE_LABEL
    return STAGE_LABELS[stage]


def progress(current_status: Any) -> float:
    """Fraction of the lifecycle reached, clamped to [0, 1]."""
    fraction = stage_index(current_status) / (len(STAGES) - 1)
    return min(max(fraction, 0.0), 1.0)


def latest_entries(timeline: Optional[Iterable[Any]]) -> dict[Stage, Any]:
    """Authoritative entry per stage: the most recently appended one wins."""
    entries: dict[Stage, Any] = {}
    for entry in timeline or ():
        stage = parse_stage(read_field(entry, "stage"))
        if stage is None:
            logger.debug("Ignoring timeline entry without a known stage: %r", entry)
            continue
        entries[stage] = entry
    return entries


def stage_timeline(current_status: Any, timeline: Optional[Iterable[Any]] = None) -> list[StageView]:
    """Derive ``{stage, display_status, entry}`` for every stage in order.

    An unknown ``current_status`` yields an all-pending timeline.
    """
    current = stage_index(current_status)
    entries = latest_entries(timeline)
    views = []
    for index, stage in enumerate(STAGES):
        if index < current:
            status = DisplayStatus.COMPLETED
        elif index == current:
            status = DisplayStatus.CURRENT
        else:
            status = DisplayStatus.PENDING
        views.append(StageView(stage=stage, display_status=status, entry=entries.get(stage)))
    return views


def next_stage(status: Any) -> Optional[Stage]:
    """The stage after ``status``; None at the end or for unknown input."""
    index = stage_index(status)
    if index < 0 or index + 1 >= len(STAGES):
        return None
    return STAGES[index + 1]


def is_forward_transition(current: Any, target: Any) -> bool:
    """True when ``target`` is a known stage strictly after ``current``.

    Jumps over several stages are allowed. An unknown current status can move
    to any known stage.
    """
    target_index = stage_index(target)
    if target_index < 0:
        return False
    return target_index > stage_index(current)


def transition_entries(previous: Any, target: Any) -> list[tuple[Stage, EntryStatus]]:
    """Timeline entries to append when a PO moves from ``previous`` to ``target``."""
    if not is_forward_transition(previous, target):
        return []
    entries = []
    prev_stage = parse_stage(previous)
    if prev_stage is not None:
        entries.append((prev_stage, EntryStatus.COMPLETED))
    target_stage = parse_stage(target)
    if target_stage is Stage.DELIVERED:
        entries.append((target_stage, EntryStatus.COMPLETED))
    else:
        entries.append((target_stage, EntryStatus.IN_PROGRESS))
    return entries
