#!/usr/bin/env python3
"""Seed database with sample purchase orders, stage timelines, IoT readings and alerts."""

import os
import random
import sys
from datetime import datetime, timedelta, timezone
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from faker import Faker

from api.database import engine, get_db_sync
from api.models import Alert, Base, IoTReading, PurchaseOrder, TimelineEntry
from ingestion.producer import METRICS
from tracking.risk import risk_level
from tracking.stages import STAGES, EntryStatus, transition_entries

PO_COUNT = int(os.getenv("SEED_PO_COUNT", "12"))
READINGS_PER_PO = int(os.getenv("SEED_READINGS_PER_PO", "8"))

PRODUCTS = (
    "Organic Cotton Crew Tee",
    "Merino Rib Beanie",
    "Jersey Knit Hoodie",
    "Pique Polo Shirt",
    "French Terry Joggers",
    "Linen Blend Overshirt",
)
VESSELS = ("MSC Aurora", "Maersk Kendal", "CMA CGM Tage", "Evergreen Ever Lucid")

ALERTS = [
    ("delay_risk", "critical", "Dyeing backlog at {factory}", "Reschedule dye lots or split the order across lines."),
    ("quality_issue", "warning", "Defect rate above 3% on {po}", "Hold packing until a re-inspection is complete."),
    ("port_congestion", "warning", "Congestion at port of loading", "Book an alternate sailing or reroute via a secondary port."),
    ("weather_risk", "info", "Monsoon warning near {factory}", None),
    ("supplier_issue", "critical", "Yarn supplier {supplier} missed dispatch", "Source yarn from the backup supplier."),
    ("production_anomaly", "warning", "Production rate drop on {po}", "Check machine status on the knitting line."),
]

fake = Faker()
Faker.seed(42)
random.seed(42)


def _purchase_order(i: int, base: datetime) -> PurchaseOrder:
    stage = STAGES[i % len(STAGES)]
    score = round(random.uniform(5, 95), 1)
    level = risk_level(score).value
    # A few rows carry a stale stored level so the data-quality check has something to flag
    if i % 7 == 6:
        level = "low"
    return PurchaseOrder(
        id=f"po-{i + 1:04d}",
        po_number=f"PO-{base.year}-{i + 1:05d}",
        product_name=PRODUCTS[i % len(PRODUCTS)],
        quantity=random.choice((500, 1200, 2500, 4000, 8000)),
        status=stage.value,
        risk_score=score,
        risk_level=level,
        delay_probability=round(min(score * random.uniform(0.6, 1.1), 100), 1),
        estimated_delay_days=round(score / 12, 1) if score >= 30 else 0.0,
        qa_score=round(random.uniform(78, 99), 1) if STAGES.index(stage) > 3 else None,
        organic_cotton=i % 3 != 1,
        esg_certified=i % 4 != 2,
        yarn_supplier=f"{fake.last_name()} Spinning Mills",
        factory=f"{fake.city()} Knitwear",
        shipment_vessel=random.choice(VESSELS) if STAGES.index(stage) >= 5 else None,
        created_at=base - timedelta(days=30 - i),
    )


def _timeline(po: PurchaseOrder, base: datetime) -> list[TimelineEntry]:
    entries = []
    stage_no = STAGES.index(po.status)
    for n, stage in enumerate(STAGES[: stage_no + 1]):
        status = EntryStatus.COMPLETED if n < stage_no else EntryStatus.IN_PROGRESS
        if stage == po.status and po.risk_score >= 80:
            status = EntryStatus.DELAYED
        entries.append(
            TimelineEntry(
                po_id=po.id,
                stage=stage.value,
                status=status.value,
                date=base - timedelta(days=(stage_no - n) * 4),
                location=po.factory if n else po.yarn_supplier,
                supplier=po.yarn_supplier if n == 0 else None,
            )
        )
    # Replay the final move the way the API records it, leaving a superseded entry behind
    if stage_no > 0:
        for stage, status in transition_entries(STAGES[stage_no - 1], STAGES[stage_no]):
            if stage != po.status:
                continue
            entries.append(TimelineEntry(po_id=po.id, stage=stage.value, status=status.value, date=base))
    return entries


def _readings(po: PurchaseOrder, base: datetime) -> list[IoTReading]:
    readings = []
    for n in range(READINGS_PER_PO):
        metric = "production_rate" if n % 2 == 0 else random.choice(list(METRICS))
        unit, normal, anomaly, source = METRICS[metric]
        anomalous = po.risk_score >= 80 and n % 3 == 0
        low, high = anomaly if anomalous else normal
        readings.append(
            IoTReading(
                id=f"iot-seed-{po.id}-{n:02d}",
                po_id=po.id,
                metric_type=metric,
                metric_value=round(random.uniform(low, high), 1),
                metric_unit=unit,
                location=po.factory or "",
                source=source,
                status="warning" if anomalous else "normal",
                timestamp=base - timedelta(minutes=5 * (READINGS_PER_PO - n)),
            )
        )
    return readings


def seed() -> None:
    Base.metadata.create_all(engine)
    base = datetime.now(timezone.utc)
    with get_db_sync() as db:
        pos_added = 0
        pos = []
        for i in range(PO_COUNT):
            po = _purchase_order(i, base)
            pos.append(po)
            if db.get(PurchaseOrder, po.id):
                continue
            db.add(po)
            db.add_all(_timeline(po, base))
            pos_added += 1

        # Use merge (upsert) so re-runs are idempotent
        for po in pos:
            for reading in _readings(po, base):
                db.merge(reading)
        for n in range(6):
            db.merge(
                IoTReading(
                    id=f"iot-seed-ambient-{n:02d}",
                    po_id=None,
                    metric_type="temperature" if n % 2 == 0 else "humidity",
                    metric_value=round(random.uniform(24, 29) if n % 2 == 0 else random.uniform(48, 58), 1),
                    metric_unit="°C" if n % 2 == 0 else "%",
                    location="Central Warehouse",
                    source="warehouse_sensor",
                    status="normal",
                    timestamp=base - timedelta(minutes=10 * n),
                )
            )

        for n, (kind, severity, title, action) in enumerate(ALERTS):
            po = pos[(n * 5) % len(pos)]
            db.merge(
                Alert(
                    id=f"alert-{n + 1:04d}",
                    type=kind,
                    severity=severity,
                    title=title.format(po=po.po_number, factory=po.factory, supplier=po.yarn_supplier),
                    description=fake.sentence(nb_words=14),
                    suggested_action=action,
                    affected_pos=[po.id] if kind != "port_congestion" else [p.id for p in pos[:3]],
                    is_read=n >= 4,
                    created_date=base - timedelta(hours=n * 3),
                )
            )

        if pos_added == 0:
            print("Purchase orders already seeded. Readings and alerts merged.")
        else:
            print(f"Seeded: {pos_added} purchase orders, readings and alerts (merged).")


if __name__ == "__main__":
    seed()
