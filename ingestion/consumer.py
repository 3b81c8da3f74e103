"""
Kafka consumer for IoT sensor events.

Consumes from the iot-events topic, validates each message and hands
``(event, kind)`` to a handler. The API process runs this in a worker thread
with a handler that forwards to the live hub; run standalone it just logs.
Delivery order is best-effort; consumers re-derive order from timestamps.
"""

import json
import logging
import os
import threading
from typing import Callable, Optional

from kafka import KafkaConsumer
from kafka.errors import KafkaError

from ingestion.schemas import EventKind, IoTEvent, parse_message

logger = logging.getLogger("traceloom-consumer")

KAFKA_BOOTSTRAP_SERVERS = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9093").split(",")
KAFKA_IOT_TOPIC = os.getenv("KAFKA_IOT_TOPIC", "iot-events")
KAFKA_GROUP_ID = os.getenv("KAFKA_GROUP_ID", "traceloom-live")

EventHandler = Callable[[IoTEvent, EventKind], None]


def _decode(raw: Optional[bytes]):
    if raw is None:
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("Undecodable message, skipping: %s", e)
        return None


def create_consumer() -> KafkaConsumer:
    return KafkaConsumer(
        KAFKA_IOT_TOPIC,
        bootstrap_servers=KAFKA_BOOTSTRAP_SERVERS,
        auto_offset_reset="latest",
        enable_auto_commit=True,
        group_id=KAFKA_GROUP_ID,
        value_deserializer=_decode,
        consumer_timeout_ms=1000,
    )


def dispatch(payload, handler: EventHandler) -> bool:
    """Validate one decoded message and pass it on. False when it was dropped."""
    message = parse_message(payload)
    if message is None:
        return False
    handler(message.data, message.kind)
    return True


def consume_iot_events(
    handler: EventHandler,
    stop: Optional[threading.Event] = None,
    consumer: Optional[KafkaConsumer] = None,
) -> int:
    """Consume until ``stop`` is set (or forever). Returns the number dispatched."""
    consumer = consumer or create_consumer()
    stop = stop or threading.Event()
    dispatched = 0
    logger.info("Consuming IoT events from %s", KAFKA_IOT_TOPIC)
    try:
        while not stop.is_set():
            # consumer_timeout_ms ends the iterator periodically so stop is honoured
            for msg in consumer:
                if dispatch(msg.value, handler):
                    dispatched += 1
                if stop.is_set():
                    break
    except KafkaError as e:
        logger.exception("Kafka error: %s", e)
        raise
    finally:
        consumer.close()
        logger.info("IoT consumer stopped after %d events", dispatched)
    return dispatched


def _log_event(event: IoTEvent, kind: EventKind) -> None:
    logger.info(
        "%s %s po=%s %s=%s%s [%s]",
        kind.value,
        event.id,
        event.po_id or "-",
        event.metric_type,
        event.metric_value,
        event.metric_unit,
        event.status.value,
    )


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    consume_iot_events(_log_event)
