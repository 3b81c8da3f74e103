"""Unit tests for alert severity and category classification."""

from tracking.alerts import (
    AlertCategory,
    Severity,
    alert_summary,
    classify_severity,
    classify_type,
    filter_alerts,
    needs_attention,
    sort_by_priority,
)

ALERTS = [
    {"id": "a1", "severity": "info", "type": "weather_risk", "is_read": False},
    {"id": "a2", "severity": "critical", "type": "delay_risk", "is_read": True},
    {"id": "a3", "severity": "warning", "type": "quality_issue", "is_read": False},
    {"id": "a4", "severity": "critical", "type": "port_congestion", "is_read": False},
]


def test_known_types_map_to_their_category():
    for category in AlertCategory:
        assert classify_type(category.value) is category
    assert classify_type("SUPPLIER_ISSUE") is AlertCategory.SUPPLIER_ISSUE


def test_unknown_type_falls_back_to_default():
    assert classify_type("alien_invasion") is AlertCategory.GENERAL
    assert classify_type(None) is AlertCategory.GENERAL


def test_unknown_severity_falls_back_to_info():
    assert classify_severity("catastrophic") is Severity.INFO
    assert classify_severity(Severity.WARNING) is Severity.WARNING


def test_sort_puts_critical_first_and_is_stable():
    ordered = [a["id"] for a in sort_by_priority(ALERTS)]
    assert ordered == ["a2", "a4", "a3", "a1"]


def test_needs_attention():
    assert [needs_attention(a) for a in ALERTS] == [False, True, True, True]


def test_filters():
    assert [a["id"] for a in filter_alerts(ALERTS, "unread")] == ["a1", "a3", "a4"]
    assert [a["id"] for a in filter_alerts(ALERTS, "critical")] == ["a2", "a4"]
    assert len(filter_alerts(ALERTS, "all")) == 4
    assert len(filter_alerts(ALERTS, "whatever")) == 4


def test_summary():
    summary = alert_summary(ALERTS)
    assert (summary.total, summary.critical, summary.unread) == (4, 2, 3)
