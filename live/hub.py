"""
Process-wide live store for IoT state.

The hub owns one EventReducer and one LiveFeed and wires them to subscribers:

- Each subscribed subject gets a channel: an inbox queue drained by a single
  consumer task, so updates to one subject are applied strictly in order while
  different subjects proceed independently.
- The channel's first job is the initial historical load. Live events that
  arrive meanwhile wait in the inbox and are replayed once the load finishes.
- When the last subscriber of a subject leaves, its task is cancelled and its
  buffer released. A closed subscription never yields again.

All hub methods run on the event loop thread. Other threads (the Kafka
consumer) must hop onto the loop before publishing.
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from ingestion.schemas import EventKind, IoTEvent
from live.feed import LiveFeed
from live.reducer import EventReducer, LiveMetrics, subject_of

logger = logging.getLogger(__name__)

# subject -> newest-first history for that subject
HistoryLoader = Callable[[str], Awaitable[list[Any]]]
# limit -> newest-first history across all subjects
ActivityLoader = Callable[[int], Awaitable[list[Any]]]

SUBSCRIBER_QUEUE_SIZE = 16
_CLOSED = object()


@dataclass(frozen=True)
class LiveSnapshot:
    subject: str
    loaded: bool
    metrics: LiveMetrics
    error: Optional[str] = None


class Subscription:
    """Async iterator over updates for one subject (or the activity feed).

    Items are full snapshots, so when a slow consumer falls behind the oldest
    pending item is dropped rather than the newest.
    """

    def __init__(self, hub: "LiveHub", subject: Optional[str]):
        self._hub = hub
        self.subject = subject
        self.closed = False
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)

    def _deliver(self, item: Any) -> None:
        if self.closed:
            return
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(item)

    def _close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if not self._queue.full():
            self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Any:
        if self.closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED or self.closed:
            raise StopAsyncIteration
        return item

    async def close(self) -> None:
        await self._hub.unsubscribe(self)


@dataclass
class _SubjectChannel:
    subject: str
    inbox: asyncio.Queue = field(default_factory=asyncio.Queue)
    subscribers: set = field(default_factory=set)
    task: Optional[asyncio.Task] = None
    loaded: bool = False
    error: Optional[str] = None


class LiveHub:
    def __init__(
        self,
        loader: Optional[HistoryLoader] = None,
        activity_loader: Optional[ActivityLoader] = None,
        reducer: Optional[EventReducer] = None,
        feed: Optional[LiveFeed] = None,
    ):
        self.reducer = reducer or EventReducer()
        self.feed = feed or LiveFeed()
        self._loader = loader
        self._activity_loader = activity_loader
        self._channels: dict[str, _SubjectChannel] = {}
        self._activity_subscribers: set[Subscription] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def started(self) -> bool:
        return self._loop is not None

    async def start(self) -> None:
        """Bind to the running loop and seed the activity feed."""
        if self.started:
            return
        self._loop = asyncio.get_running_loop()
        if self._activity_loader is not None:
            try:
                self.feed.load(await self._activity_loader(self.feed.capacity))
            except Exception as e:
                logger.exception("Activity feed seed failed: %s", e)
        logger.info("Live hub started")

    async def close(self) -> None:
        """Tear down every channel and end every subscription."""
        for channel in list(self._channels.values()):
            await self._teardown(channel)
        for sub in list(self._activity_subscribers):
            sub._close()
        self._activity_subscribers.clear()
        self._loop = None
        logger.info("Live hub closed")

    # ── Ingest ──────────────────────────────────────────────────────────────

    def publish(self, payload: Any, kind: EventKind = EventKind.CREATE) -> Optional[IoTEvent]:
        """Route one create/update event. Returns the parsed event, None if malformed.

        Creates and updates take the same path: an update carries an id already
        seen, and dedup-by-id replaces the earlier reading.
        """
        event = self.feed.push(payload)
        if event is None:
            return None
        logger.debug("IoT %s %s for %s", kind.value, event.id, subject_of(event))
        if self._activity_subscribers:
            recent = self.feed.recent()
            for sub in list(self._activity_subscribers):
                sub._deliver(recent)
        channel = self._channels.get(subject_of(event))
        if channel is not None:
            channel.inbox.put_nowait(event)
        return event

    # ── Subscriptions ───────────────────────────────────────────────────────

    async def subscribe(self, subject: str) -> Subscription:
        """Attach to ``subject``; the first subscriber starts its channel."""
        channel = self._channels.get(subject)
        if channel is None:
            channel = _SubjectChannel(subject=subject)
            self._channels[subject] = channel
            channel.task = asyncio.create_task(self._run_channel(channel), name=f"live-{subject}")
            logger.info("Live channel opened for %s", subject)
        sub = Subscription(self, subject)
        channel.subscribers.add(sub)
        if channel.loaded or channel.error:
            sub._deliver(self._snapshot(channel))
        return sub

    async def subscribe_activity(self) -> Subscription:
        sub = Subscription(self, None)
        self._activity_subscribers.add(sub)
        sub._deliver(self.feed.recent())
        return sub

    @asynccontextmanager
    async def subscription(self, subject: Optional[str]) -> AsyncIterator[Subscription]:
        """``subject=None`` subscribes to the activity feed."""
        if subject is None:
            sub = await self.subscribe_activity()
        else:
            sub = await self.subscribe(subject)
        try:
            yield sub
        finally:
            await self.unsubscribe(sub)

    async def unsubscribe(self, sub: Subscription) -> None:
        sub._close()
        if sub.subject is None:
            self._activity_subscribers.discard(sub)
            return
        channel = self._channels.get(sub.subject)
        if channel is None:
            return
        channel.subscribers.discard(sub)
        if not channel.subscribers:
            await self._teardown(channel)

    async def _teardown(self, channel: _SubjectChannel) -> None:
        if self._channels.get(channel.subject) is channel:
            del self._channels[channel.subject]
        for sub in list(channel.subscribers):
            sub._close()
        channel.subscribers.clear()
        task = channel.task
        if task is not None:
            task.cancel()
        # Release before awaiting: a new channel for the same subject may start
        # while the old task unwinds.
        self.reducer.release(channel.subject)
        if task is not None:
            with suppress(asyncio.CancelledError):
                await task
        logger.info("Live channel closed for %s", channel.subject)

    async def _run_channel(self, channel: _SubjectChannel) -> None:
        if self._loader is None:
            channel.loaded = True
        else:
            try:
                history = await self._loader(channel.subject)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("Initial IoT load failed for %s: %s", channel.subject, e)
                channel.error = str(e) or type(e).__name__
            else:
                self.reducer.apply_history(history)
                channel.loaded = True
        # Replay whatever arrived during the load before the first snapshot.
        while not channel.inbox.empty():
            self.reducer.apply(channel.inbox.get_nowait())
        self._broadcast(channel)
        while True:
            event = await channel.inbox.get()
            self.reducer.apply(event)
            self._broadcast(channel)

    def _broadcast(self, channel: _SubjectChannel) -> None:
        snapshot = self._snapshot(channel)
        for sub in list(channel.subscribers):
            sub._deliver(snapshot)

    # ── Read models ─────────────────────────────────────────────────────────

    def _snapshot(self, channel: _SubjectChannel) -> LiveSnapshot:
        return LiveSnapshot(
            subject=channel.subject,
            loaded=channel.loaded,
            metrics=self.reducer.live_metrics(channel.subject),
            error=channel.error,
        )

    def snapshot(self, subject: str) -> Optional[LiveSnapshot]:
        """Live view for a subscribed subject; None when nobody tracks it."""
        channel = self._channels.get(subject)
        if channel is None:
            return None
        return self._snapshot(channel)

    def is_tracking(self, subject: str) -> bool:
        return subject in self._channels

    def recent_activity(self, limit: Optional[int] = None) -> list[IoTEvent]:
        return self.feed.recent(limit)
