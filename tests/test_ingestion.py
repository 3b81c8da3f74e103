"""Tests for IoT event validation and Kafka message dispatch (no broker required)."""

import json
import threading
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

from ingestion.consumer import _decode, consume_iot_events, dispatch
from ingestion.producer import generate_message
from ingestion.schemas import EventKind, EventStatus, parse_event, parse_message

READING = {
    "id": "iot-1",
    "po_id": "po-1",
    "metric_type": "temperature",
    "metric_value": 27.5,
    "metric_unit": "°C",
    "status": "warning",
    "timestamp": "2026-03-01T08:00:00",
}


def test_parse_event_assumes_utc_for_naive_timestamps():
    event = parse_event(READING)
    assert event.timestamp == datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)
    assert event.status is EventStatus.WARNING


def test_parse_event_assigns_timestamp_when_missing():
    event = parse_event({**READING, "timestamp": None})
    assert event.timestamp.tzinfo is not None


def test_parse_event_rejects_malformed():
    assert parse_event({**READING, "status": "on_fire"}) is None
    assert parse_event({"metric_type": "temperature"}) is None
    assert parse_event(None) is None
    assert parse_event({**READING, "metric_value": float("nan")}) is None
    assert parse_event({**READING, "metric_value": float("inf")}) is None
    assert parse_message(json.loads('{"id": "iot-2", "metric_type": "humidity", "metric_value": NaN}')) is None


def test_parse_message_envelope_and_bare_event():
    update = parse_message({"kind": "update", "data": READING})
    assert update.kind is EventKind.UPDATE
    bare = parse_message(READING)
    assert bare.kind is EventKind.CREATE
    assert bare.data.id == "iot-1"
    assert parse_message(["not", "a", "dict"]) is None
    assert parse_message({"kind": "update", "data": {"id": "x"}}) is None


def test_decode_skips_garbage():
    assert _decode(json.dumps(READING).encode("utf-8"))["id"] == "iot-1"
    assert _decode(b"\xff\xfe") is None
    assert _decode(b"{not json") is None
    assert _decode(None) is None


def test_dispatch_calls_handler_only_for_valid_messages():
    handler = MagicMock()
    assert dispatch({"kind": "create", "data": READING}, handler)
    assert not dispatch({"kind": "create", "data": {}}, handler)
    handler.assert_called_once()
    event, kind = handler.call_args.args
    assert event.id == "iot-1"
    assert kind is EventKind.CREATE


def test_consume_stops_and_closes_consumer():
    stop = threading.Event()
    received = []

    def handler(event, kind):
        received.append((event.id, kind))
        stop.set()

    consumer = MagicMock()
    consumer.__iter__.return_value = iter([
        SimpleNamespace(value=None),
        SimpleNamespace(value={"kind": "update", "data": READING}),
        SimpleNamespace(value=READING),
    ])
    assert consume_iot_events(handler, stop=stop, consumer=consumer) == 1
    assert received == [("iot-1", EventKind.UPDATE)]
    consumer.close.assert_called_once()


def test_generated_messages_are_valid_envelopes():
    for _ in range(25):
        message = generate_message()
        payload = message.model_dump(mode="json")
        parsed = parse_message(payload)
        assert parsed is not None
        assert parsed.data.id == message.data.id
