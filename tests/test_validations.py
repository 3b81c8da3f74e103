"""Unit tests for data quality checks (no DB required)."""

from datetime import datetime, timezone

import pandas as pd

from ingestion.schemas import parse_event
from quality.validations import (
    IOT_COLUMNS,
    PO_COLUMNS,
    frame_from_records,
    run_validation_suite,
    validate_risk_level_consistency,
)


def _po(po_number, score, level, status="knitting"):
    return {
        "id": po_number.lower(),
        "po_number": po_number,
        "status": status,
        "risk_score": score,
        "risk_level": level,
        "delay_probability": 10.0,
        "estimated_delay_days": 0.0,
        "qa_score": None,
    }


def _results(results):
    return {r.rule: r for r in results}


def test_risk_level_consistency_flags_disagreement():
    df = pd.DataFrame([_po("PO-1", 85, "critical"), _po("PO-2", 85, "low"), _po("PO-3", 20, None)])
    result = validate_risk_level_consistency(df)
    assert not result.passed
    assert result.failed_count == 1
    assert result.details["mismatch_sample"] == ["PO-2"]


def test_purchase_order_suite_passes_on_clean_data():
    df = frame_from_records([_po("PO-1", 10, "low"), _po("PO-2", 60, "high", status="delivered")], PO_COLUMNS)
    results = run_validation_suite(df, "purchase_orders")
    assert results
    assert all(r.passed for r in results), [r for r in results if not r.passed]


def test_purchase_order_suite_catches_bad_rows():
    df = frame_from_records(
        [_po("PO-1", 10, "low", status="teleported"), _po("PO-1", 140, "critical")],
        PO_COLUMNS,
    )
    results = _results(run_validation_suite(df, "purchase_orders"))
    assert not results["expect_po_number_unique"].passed
    assert not results["expect_status_in_set"].passed
    assert results["expect_status_in_set"].details["invalid_sample"] == ["teleported"]
    assert not results["expect_risk_score_between"].passed


def test_iot_suite_over_pydantic_events():
    events = [
        parse_event({"id": "e1", "metric_type": "humidity", "metric_value": 50, "timestamp": datetime.now(timezone.utc)}),
        parse_event({"id": "e2", "metric_type": "humidity", "metric_value": 90, "status": "critical"}),
    ]
    results = run_validation_suite(frame_from_records(events, IOT_COLUMNS), "iot_events")
    assert all(r.passed for r in results)


def test_unknown_suite_runs_nothing():
    assert run_validation_suite(pd.DataFrame(), "shipments") == []
