"""
Traceloom: textile PO tracking FastAPI backend.

REST API + WebSocket for live IoT metrics and the activity feed.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager, suppress
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware

from api.database import get_db_context, init_db
from api.routers import alerts, dashboard, iot, orders
from api.schemas import LiveMetricsRead
from api.store import list_iot_events
from api.stream_bridge import KAFKA_CONSUMER_ENABLED, StreamBridge
from live.hub import LiveHub, Subscription
from live.reducer import EventReducer

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

_reducer = EventReducer()


async def load_history(subject: str):
    """Newest-first readings for one subject, enough to fill its buffer."""
    async with get_db_context() as db:
        return await list_iot_events(db, po_id=subject, limit=_reducer.capacity)


async def load_activity(limit: int):
    async with get_db_context() as db:
        return await list_iot_events(db, limit=limit)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("Starting Traceloom API...")
    await init_db()
    hub = LiveHub(loader=load_history, activity_loader=load_activity, reducer=_reducer)
    await hub.start()
    app.state.hub = hub
    bridge: Optional[StreamBridge] = None
    if KAFKA_CONSUMER_ENABLED:
        bridge = StreamBridge(hub)
        await bridge.start()
    yield
    logger.info("Shutting down Traceloom API...")
    if bridge is not None:
        await bridge.stop()
    await hub.close()
    app.state.hub = None


app = FastAPI(
    title="Traceloom",
    description="Textile purchase order tracking and live factory telemetry API",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(orders.router, prefix="/orders", tags=["orders"])
app.include_router(alerts.router, prefix="/alerts", tags=["alerts"])
app.include_router(iot.router, prefix="/iot", tags=["iot"])
app.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])


async def _pump(websocket: WebSocket, sub: Subscription, message_type: str) -> None:
    async for item in sub:
        if message_type == "live_metrics":
            data = LiveMetricsRead.from_snapshot(item).model_dump(mode="json")
        else:
            data = jsonable_encoder(item)
        await websocket.send_text(json.dumps({"type": message_type, "data": data}))


async def _serve(websocket: WebSocket, subject: Optional[str], message_type: str) -> None:
    """Stream hub updates to one client until it disconnects; answers pings."""
    hub: Optional[LiveHub] = getattr(websocket.app.state, "hub", None)
    await websocket.accept()
    if hub is None:
        await websocket.close(code=1013)
        return
    async with hub.subscription(subject) as sub:
        pump = asyncio.create_task(_pump(websocket, sub, message_type))
        try:
            while True:
                data = await websocket.receive_text()
                try:
                    msg = json.loads(data)
                except json.JSONDecodeError:
                    continue
                if isinstance(msg, dict) and msg.get("type") == "ping":
                    await websocket.send_text(json.dumps({"type": "pong"}))
        except WebSocketDisconnect:
            logger.info("WebSocket client disconnected from %s", subject or "activity")
        finally:
            pump.cancel()
            with suppress(asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
                await pump


@app.websocket("/ws/live/{subject}")
async def live_websocket(websocket: WebSocket, subject: str):
    """Live metrics for one PO (or 'global'); a snapshot per applied event."""
    await _serve(websocket, subject, "live_metrics")


@app.websocket("/ws/activity")
async def activity_websocket(websocket: WebSocket):
    """Most recent readings across all POs, pushed on every new event."""
    await _serve(websocket, None, "activity")


@app.get("/health")
async def health():
    """Health check."""
    return {"status": "ok", "service": "traceloom-api"}


@app.get("/")
async def root():
    """Root: API info and links."""
    return {
        "message": "Traceloom API",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "orders": "/orders",
            "alerts": "/alerts",
            "iot": "/iot/events",
            "live": "/iot/live/{subject}",
            "activity": "/iot/activity",
            "dashboard": "/dashboard/stats",
            "data_quality": "/dashboard/data-quality",
            "ws_live": "/ws/live/{subject}",
            "ws_activity": "/ws/activity",
        },
    }
