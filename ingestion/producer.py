#!/usr/bin/env python3
"""
Kafka producer simulating factory IoT sensors.

Emits production_rate, temperature, humidity, machine_status and
defect_detection readings for a set of active POs, plus ambient readings with
no PO. A share of readings carries injected anomalies (warning/critical), and
a share re-sends an earlier event id with a corrected value to exercise the
update path.

Usage:
    python -m ingestion.producer
    # Or with env overrides:
    KAFKA_BOOTSTRAP_SERVERS=localhost:9093 PO_IDS=po-1,po-2 python -m ingestion.producer
"""

import json
import logging
import os
import random
import signal
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import NoReturn, Optional

from faker import Faker
from kafka import KafkaProducer
from kafka.errors import KafkaError
from pydantic import ValidationError

from ingestion.schemas import EventKind, EventStatus, IoTEvent, IoTEventMessage

logger = logging.getLogger("traceloom-producer")

KAFKA_BOOTSTRAP_SERVERS = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9093")
KAFKA_IOT_TOPIC = os.getenv("KAFKA_IOT_TOPIC", "iot-events")
EVENTS_PER_MINUTE = int(os.getenv("EVENTS_PER_MINUTE", "60"))
ANOMALY_RATE = float(os.getenv("ANOMALY_RATE", "0.1"))
UPDATE_RATE = float(os.getenv("UPDATE_RATE", "0.05"))
AMBIENT_RATE = float(os.getenv("AMBIENT_RATE", "0.1"))
PO_IDS = [p for p in os.getenv("PO_IDS", "po-0001,po-0002,po-0003").split(",") if p]

# metric -> (unit, normal range, anomaly range, source)
METRICS: dict[str, tuple[str, tuple[float, float], tuple[float, float], str]] = {
    "production_rate": ("pcs/hr", (80.0, 110.0), (20.0, 55.0), "factory_machine"),
    "temperature": ("°C", (22.0, 30.0), (38.0, 48.0), "warehouse_sensor"),
    "humidity": ("%", (45.0, 60.0), (75.0, 92.0), "warehouse_sensor"),
    "machine_status": ("", (1.0, 1.0), (0.0, 0.0), "factory_machine"),
    "defect_detection": ("%", (0.0, 1.5), (4.0, 9.0), "qa_scanner"),
}
AMBIENT_METRICS = ("temperature", "humidity")

fake = Faker()
_locations: dict[str, str] = {}
_recent: list[IoTEvent] = []  # candidates for corrected re-sends
_RECENT_KEEP = 50


def _location_for(po_id: Optional[str]) -> str:
    key = po_id or "ambient"
    if key not in _locations:
        _locations[key] = f"{fake.city()} Mill, Line {random.randint(1, 6)}"
    return _locations[key]


def _reading(metric: str, anomalous: bool) -> tuple[float, EventStatus]:
    unit, normal, anomaly, _ = METRICS[metric]
    low, high = anomaly if anomalous else normal
    value = round(random.uniform(low, high), 1)
    if not anomalous:
        return value, EventStatus.NORMAL
    status = EventStatus.CRITICAL if random.random() < 0.35 else EventStatus.WARNING
    return value, status


def _corrected(previous: IoTEvent) -> IoTEvent:
    """Same id, nudged value: a sensor correcting an earlier reading."""
    value = round(previous.metric_value * random.uniform(0.95, 1.05), 1)
    return previous.model_copy(update={"metric_value": value})


def generate_message() -> IoTEventMessage:
    """Generate one validated create or update message."""
    if _recent and random.random() < UPDATE_RATE:
        event = _corrected(random.choice(_recent))
        return IoTEventMessage(kind=EventKind.UPDATE, data=event)

    if random.random() < AMBIENT_RATE:
        po_id = None
        metric = random.choice(AMBIENT_METRICS)
    else:
        po_id = random.choice(PO_IDS)
        metric = random.choice(list(METRICS))
    value, status = _reading(metric, anomalous=random.random() < ANOMALY_RATE)
    unit, _, _, source = METRICS[metric]
    event = IoTEvent.model_validate({
        "id": f"iot-{uuid.uuid4().hex[:12]}",
        "po_id": po_id,
        "metric_type": metric,
        "metric_value": value,
        "metric_unit": unit,
        "location": _location_for(po_id),
        "source": source,
        "status": status,
        "timestamp": datetime.now(timezone.utc),
    })
    _recent.append(event)
    del _recent[:-_RECENT_KEEP]
    return IoTEventMessage(kind=EventKind.CREATE, data=event)


def create_producer() -> KafkaProducer:
    """Create and return a Kafka producer with JSON serialization."""
    return KafkaProducer(
        bootstrap_servers=KAFKA_BOOTSTRAP_SERVERS.split(","),
        value_serializer=lambda v: json.dumps(v).encode("utf-8"),
        key_serializer=lambda k: k.encode("utf-8") if k else None,
        acks="all",
        retries=3,
        max_in_flight_requests_per_connection=1,
    )


def run_producer() -> NoReturn:
    """Run the producer loop, sending events at target rate."""
    producer = create_producer()
    interval_seconds = 60.0 / EVENTS_PER_MINUTE
    logger.info(
        "Starting IoT producer: %s events/min, anomaly rate %.1f%%, POs=%s, topic=%s",
        EVENTS_PER_MINUTE,
        ANOMALY_RATE * 100,
        ",".join(PO_IDS),
        KAFKA_IOT_TOPIC,
    )

    def shutdown(signum: int, frame: object) -> None:
        logger.info("Shutting down producer...")
        producer.flush()
        producer.close()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    sent = 0
    while True:
        try:
            message = generate_message()
            # Key by subject so one PO's readings stay on one partition
            key = message.data.po_id or "global"
            producer.send(KAFKA_IOT_TOPIC, value=message.model_dump(mode="json"), key=key)
            sent += 1
            if sent % 50 == 0:
                logger.info("Sent %d events", sent)
        except (ValidationError, KafkaError) as e:
            logger.exception("Failed to send event: %s", e)
            raise

        time.sleep(interval_seconds)


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    run_producer()
