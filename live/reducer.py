"""
Live IoT state per subject.

Reduces an unordered, possibly duplicated stream of IoT events into, for each
subject (a PO id, or ``"global"`` for readings without one):

- a bounded newest-first buffer of distinct events (dedup by event id),
- the latest reading per metric type (greatest timestamp wins),
- rolling statistics and a trend for one designated metric type.

Arrival order decides what is kept in the window; timestamps decide what is
"latest". Malformed readings are dropped without touching state.
"""

import logging
import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator, Optional

from ingestion.schemas import IoTEvent, parse_event

logger = logging.getLogger(__name__)

LIVE_BUFFER_SIZE = int(os.getenv("LIVE_BUFFER_SIZE", "10"))
LIVE_STATS_METRIC = os.getenv("LIVE_STATS_METRIC", "production_rate")
NOMINAL_PRODUCTION_RATE = float(os.getenv("NOMINAL_PRODUCTION_RATE", "100"))

GLOBAL_SUBJECT = "global"


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


@dataclass(frozen=True)
class MetricStats:
    """Rolling statistics for one metric type over a subject's window."""

    metric_type: str
    current: float
    average: float
    trend: Trend
    unit: str = ""
    sample_count: int = 0
    efficiency: Optional[float] = None


@dataclass(frozen=True)
class LiveMetrics:
    subject: str
    latest_per_type: dict[str, IoTEvent] = field(default_factory=dict)
    stats: Optional[MetricStats] = None
    events: list[IoTEvent] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        return bool(self.events)


def subject_of(event: IoTEvent) -> str:
    return event.po_id or GLOBAL_SUBJECT


class EventWindow:
    """Newest-first buffer holding at most ``capacity`` distinct events."""

    def __init__(self, capacity: int = LIVE_BUFFER_SIZE):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._events: list[IoTEvent] = []

    def __len__(self) -> int:
        return len(self._events)

    def add(self, event: IoTEvent) -> None:
        """Replace any reading with the same id, prepend, then truncate."""
        kept = [e for e in self._events if e.id != event.id]
        self._events = [event, *kept][: self.capacity]

    def events(self) -> list[IoTEvent]:
        return list(self._events)

    def latest_per_type(self) -> dict[str, IoTEvent]:
        latest: dict[str, IoTEvent] = {}
        # Newest insertion first, so a timestamp tie keeps the later arrival.
        for event in self._events:
            current = latest.get(event.metric_type)
            if current is None or event.timestamp > current.timestamp:
                latest[event.metric_type] = event
        return latest

    def stats(self, metric_type: str, nominal_rate: Optional[float] = None) -> Optional[MetricStats]:
        """Stats over the buffered readings of ``metric_type``; None without data.

        The trend compares the latest reading with the last buffered reading of
        that type, i.e. the oldest one still inside the window.
        """
        readings = [e for e in self._events if e.metric_type == metric_type]
        if not readings:
            return None
        latest = self.latest_per_type()[metric_type]
        oldest = readings[-1]
        current = latest.metric_value
        if current > oldest.metric_value:
            trend = Trend.UP
        elif current < oldest.metric_value:
            trend = Trend.DOWN
        else:
            trend = Trend.STABLE
        efficiency = None
        if nominal_rate:
            efficiency = round(current / nominal_rate * 100, 1)
        return MetricStats(
            metric_type=metric_type,
            current=current,
            average=sum(e.metric_value for e in readings) / len(readings),
            trend=trend,
            unit=latest.metric_unit,
            sample_count=len(readings),
            efficiency=efficiency,
        )


class EventReducer:
    """Per-subject live state with per-subject mutual exclusion.

    Updates to one subject are serialized by that subject's lock; different
    subjects never contend.
    """

    def __init__(
        self,
        capacity: int = LIVE_BUFFER_SIZE,
        stats_metric: str = LIVE_STATS_METRIC,
        nominal_rate: Optional[float] = NOMINAL_PRODUCTION_RATE,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.stats_metric = stats_metric
        self.nominal_rate = nominal_rate
        self._windows: dict[str, EventWindow] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    @contextmanager
    def _locked(self, subject: str, create: bool = True) -> Iterator[Optional[threading.Lock]]:
        """Hold ``subject``'s lock; yields None when it has none and ``create`` is off.

        A lock popped by ``release`` while we waited on it is stale, so retry
        with the current one.
        """
        while True:
            with self._registry_lock:
                lock = self._locks.get(subject)
                if lock is None:
                    if not create:
                        break
                    lock = self._locks[subject] = threading.Lock()
            with lock:
                with self._registry_lock:
                    current = self._locks.get(subject) is lock
                if current:
                    yield lock
                    return
        yield None

    def apply(self, payload: Any) -> Optional[str]:
        """Fold one reading into its subject. Returns the subject, or None if dropped."""
        event = parse_event(payload)
        if event is None:
            return None
        subject = subject_of(event)
        with self._locked(subject):
            window = self._windows.get(subject)
            if window is None:
                window = self._windows[subject] = EventWindow(self.capacity)
            window.add(event)
        return subject

    def apply_history(self, events: Iterable[Any]) -> None:
        """Fold a newest-first historical listing, oldest reading first."""
        for event in reversed(list(events)):
            self.apply(event)

    def live_metrics(self, subject: str) -> LiveMetrics:
        """Current view of ``subject``; an unknown subject has no data and leaves no state."""
        with self._locked(subject, create=False) as lock:
            window = self._windows.get(subject) if lock is not None else None
            if window is None or not len(window):
                return LiveMetrics(subject=subject)
            return LiveMetrics(
                subject=subject,
                latest_per_type=window.latest_per_type(),
                stats=window.stats(self.stats_metric, self.nominal_rate),
                events=window.events(),
            )

    def release(self, subject: str) -> bool:
        """Drop a subject's buffer and lock. Returns False if nothing was held."""
        with self._locked(subject, create=False) as lock:
            if lock is None:
                return False
            released = self._windows.pop(subject, None) is not None
            with self._registry_lock:
                self._locks.pop(subject, None)
        if released:
            logger.debug("Released live buffer for %s", subject)
        return released

    def subjects(self) -> list[str]:
        with self._registry_lock:
            return list(self._windows)


def summarize(subject: str, history: Iterable[Any], **kwargs: Any) -> LiveMetrics:
    """Live view built from a newest-first historical listing alone."""
    reducer = EventReducer(**kwargs)
    reducer.apply_history(history)
    return reducer.live_metrics(subject)
