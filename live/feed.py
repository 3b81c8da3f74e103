"""Global activity feed: the most recent IoT events across every subject."""

import logging
import os
import threading
from typing import Any, Optional

from ingestion.schemas import IoTEvent, parse_event
from live.reducer import EventWindow

logger = logging.getLogger(__name__)

LIVE_FEED_SIZE = int(os.getenv("LIVE_FEED_SIZE", "5"))


class LiveFeed:
    """Newest-first by insertion, deduplicated by event id, bounded."""

    def __init__(self, capacity: int = LIVE_FEED_SIZE):
        self._window = EventWindow(capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._window.capacity

    def __len__(self) -> int:
        return len(self._window)

    def push(self, payload: Any) -> Optional[IoTEvent]:
        """Record an event; returns it, or None when the payload was malformed."""
        event = parse_event(payload)
        if event is None:
            return None
        with self._lock:
            self._window.add(event)
        return event

    def load(self, events: list[Any]) -> None:
        """Seed from a newest-first listing."""
        for event in reversed(events):
            self.push(event)

    def recent(self, limit: Optional[int] = None) -> list[IoTEvent]:
        with self._lock:
            events = self._window.events()
        if limit is None:
            return events
        return events[: max(limit, 0)]
