"""
Bridge from the Kafka consumer thread into the live hub.

The consumer blocks, so it runs in a worker thread. Each validated message is
handed to the event loop through one ordered queue; a single worker task
persists it and then publishes it, so create/update pairs for the same id are
applied in the order they were consumed.
"""

import asyncio
import logging
import os
import threading
from typing import Optional

from api.database import get_db_context
from api.store import save_iot_event
from ingestion.consumer import consume_iot_events
from ingestion.schemas import EventKind, IoTEvent
from live.hub import LiveHub

logger = logging.getLogger(__name__)

KAFKA_CONSUMER_ENABLED = os.getenv("KAFKA_CONSUMER_ENABLED", "false").lower() == "true"

_STOP = object()


async def ingest_from_stream(hub: LiveHub, event: IoTEvent, kind: EventKind) -> None:
    """Own session per event. A failed write is logged and the event still published."""
    try:
        async with get_db_context() as db:
            await save_iot_event(db, event)
    except Exception as e:
        logger.exception("Failed to persist IoT event %s: %s", event.id, e)
    hub.publish(event, kind)


class StreamBridge:
    def __init__(self, hub: LiveHub):
        self.hub = hub
        self._queue: asyncio.Queue = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._worker: Optional[asyncio.Task] = None

    def _on_event(self, event: IoTEvent, kind: EventKind) -> None:
        # Runs on the consumer thread
        self._loop.call_soon_threadsafe(self._queue.put_nowait, (event, kind))

    def _consume(self) -> None:
        try:
            consume_iot_events(self._on_event, stop=self._stop)
        except Exception as e:
            logger.exception("IoT stream consumer exited: %s", e)

    async def _drain(self) -> None:
        while True:
            item = await self._queue.get()
            if item is _STOP:
                return
            event, kind = item
            await ingest_from_stream(self.hub, event, kind)

    async def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._worker = asyncio.create_task(self._drain(), name="iot-stream-worker")
        self._thread = threading.Thread(target=self._consume, name="iot-stream-consumer", daemon=True)
        self._thread.start()
        logger.info("IoT stream bridge started")

    async def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            await asyncio.to_thread(self._thread.join, 5)
        if self._worker is not None:
            self._queue.put_nowait(_STOP)
            await self._worker
        logger.info("IoT stream bridge stopped")
