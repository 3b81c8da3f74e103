"""Unit tests for the per-subject IoT event reducer."""

from datetime import datetime, timedelta, timezone

import pytest

from live.reducer import GLOBAL_SUBJECT, EventReducer, EventWindow, Trend, summarize

T0 = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


def _event(event_id, value=100.0, minutes=0, metric="production_rate", po_id="po-1", **extra):
    event = {
        "id": event_id,
        "po_id": po_id,
        "metric_type": metric,
        "metric_value": value,
        "metric_unit": "pcs/hr",
        "timestamp": T0 + timedelta(minutes=minutes),
    }
    event.update(extra)
    return event


def test_duplicate_id_keeps_one_record_with_newest_value():
    reducer = EventReducer(capacity=10)
    reducer.apply(_event("e1", value=10))
    reducer.apply(_event("e1", value=12))
    metrics = reducer.live_metrics("po-1")
    assert [e.id for e in metrics.events] == ["e1"]
    assert metrics.events[0].metric_value == 12
    assert metrics.latest_per_type["production_rate"].metric_value == 12


def test_update_moves_event_to_front():
    reducer = EventReducer(capacity=10)
    for n, event_id in enumerate(["e1", "e2", "e3"]):
        reducer.apply(_event(event_id, minutes=n))
    reducer.apply(_event("e1", value=50))
    assert [e.id for e in reducer.live_metrics("po-1").events] == ["e1", "e3", "e2"]


@pytest.mark.parametrize(
    "values,trend",
    [
        ([20, 25, 30], Trend.UP),
        ([30, 25, 20], Trend.DOWN),
        ([25, 40, 25], Trend.STABLE),
        ([20, 20, 20], Trend.STABLE),
    ],
)
def test_trend_compares_latest_with_oldest_buffered(values, trend):
    reducer = EventReducer(capacity=10)
    for n, value in enumerate(values):
        reducer.apply(_event(f"e{n}", value=value, minutes=n))
    stats = reducer.live_metrics("po-1").stats
    assert stats.trend is trend
    assert stats.current == values[-1]
    assert stats.average == pytest.approx(sum(values) / len(values))
    assert stats.sample_count == 3


def test_buffer_never_exceeds_capacity():
    reducer = EventReducer(capacity=3)
    for n in range(4):
        reducer.apply(_event(f"e{n}", minutes=n))
    events = reducer.live_metrics("po-1").events
    assert [e.id for e in events] == ["e3", "e2", "e1"]


def test_latest_is_greatest_timestamp_not_arrival():
    reducer = EventReducer(capacity=10)
    reducer.apply(_event("a", value=5, minutes=5))
    reducer.apply(_event("b", value=3, minutes=3))
    reducer.apply(_event("c", value=10, minutes=10))
    reducer.apply(_event("d", value=7, minutes=7))
    latest = reducer.live_metrics("po-1").latest_per_type["production_rate"]
    assert latest.id == "c"
    assert reducer.live_metrics("po-1").stats.current == 10


def test_timestamp_tie_keeps_later_arrival():
    window = EventWindow(capacity=5)
    window.add(_event_model("x", 1.0))
    window.add(_event_model("y", 2.0))
    assert window.latest_per_type()["production_rate"].id == "y"


def _event_model(event_id, value):
    from ingestion.schemas import parse_event

    return parse_event(_event(event_id, value=value))


def test_malformed_events_are_dropped():
    reducer = EventReducer(capacity=10)
    reducer.apply(_event("ok"))
    assert reducer.apply({"po_id": "po-1", "metric_value": 3}) is None
    assert reducer.apply(_event("bad", value="lots")) is None
    assert reducer.apply(None) is None
    assert reducer.apply(_event("nan", value=float("nan"))) is None
    assert reducer.apply(_event("inf", value=float("inf"))) is None
    assert reducer.apply(_event("ninf", value="-inf")) is None
    metrics = reducer.live_metrics("po-1")
    assert [e.id for e in metrics.events] == ["ok"]
    assert metrics.stats.average == 100.0
    assert metrics.stats.current == 100.0


def test_unknown_subject_has_no_data():
    metrics = EventReducer().live_metrics("po-404")
    assert not metrics.has_data
    assert metrics.latest_per_type == {}
    assert metrics.stats is None


def test_events_without_po_go_to_global():
    reducer = EventReducer(capacity=10)
    assert reducer.apply(_event("amb", po_id=None, metric="temperature")) == GLOBAL_SUBJECT
    assert reducer.live_metrics(GLOBAL_SUBJECT).has_data
    assert not reducer.live_metrics("po-1").has_data


def test_subjects_are_independent():
    reducer = EventReducer(capacity=2)
    reducer.apply(_event("p1", po_id="po-1"))
    reducer.apply(_event("p2", po_id="po-2"))
    reducer.apply(_event("p3", po_id="po-2", minutes=1))
    reducer.apply(_event("p4", po_id="po-2", minutes=2))
    assert [e.id for e in reducer.live_metrics("po-1").events] == ["p1"]
    assert [e.id for e in reducer.live_metrics("po-2").events] == ["p4", "p3"]
    assert sorted(reducer.subjects()) == ["po-1", "po-2"]


def test_stats_only_for_designated_metric():
    reducer = EventReducer(capacity=10, stats_metric="production_rate")
    reducer.apply(_event("t", metric="temperature", value=26))
    metrics = reducer.live_metrics("po-1")
    assert metrics.has_data
    assert metrics.stats is None


def test_efficiency_against_nominal_rate():
    reducer = EventReducer(capacity=10, nominal_rate=100)
    reducer.apply(_event("e", value=87.5))
    assert reducer.live_metrics("po-1").stats.efficiency == 87.5


def test_release_drops_buffer():
    reducer = EventReducer(capacity=10)
    reducer.apply(_event("e"))
    assert reducer.release("po-1")
    assert not reducer.release("po-1")
    assert not reducer.live_metrics("po-1").has_data


def test_release_leaves_no_state_behind():
    reducer = EventReducer(capacity=10)
    for n in range(50):
        subject = f"po-{n}"
        reducer.live_metrics(subject)
        reducer.apply(_event(f"e{n}", po_id=subject))
        reducer.release(subject)
    reducer.live_metrics("never-seen")
    assert reducer.subjects() == []
    assert reducer._locks == {}


def test_apply_after_release_starts_fresh():
    reducer = EventReducer(capacity=10)
    reducer.apply(_event("old"))
    reducer.release("po-1")
    reducer.apply(_event("new"))
    assert [e.id for e in reducer.live_metrics("po-1").events] == ["new"]


def test_summarize_folds_newest_first_history():
    history = [_event("e3", value=30, minutes=3), _event("e2", value=25, minutes=2), _event("e1", value=20, minutes=1)]
    metrics = summarize("po-1", history, capacity=10)
    assert [e.id for e in metrics.events] == ["e3", "e2", "e1"]
    assert metrics.stats.trend is Trend.UP


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        EventReducer(capacity=0)
