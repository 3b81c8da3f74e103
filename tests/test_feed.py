"""Unit tests for the global activity feed."""

from datetime import datetime, timedelta, timezone

from live.feed import LiveFeed

T0 = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


def _event(event_id, po_id="po-1", minutes=0, value=1.0):
    return {
        "id": event_id,
        "po_id": po_id,
        "metric_type": "humidity",
        "metric_value": value,
        "timestamp": T0 + timedelta(minutes=minutes),
    }


def test_feed_is_newest_first_across_subjects():
    feed = LiveFeed(capacity=5)
    feed.push(_event("a", po_id="po-1"))
    feed.push(_event("b", po_id="po-2"))
    feed.push(_event("c", po_id=None))
    assert [e.id for e in feed.recent()] == ["c", "b", "a"]


def test_feed_is_bounded():
    feed = LiveFeed(capacity=5)
    for n in range(8):
        feed.push(_event(f"e{n}", minutes=n))
    assert len(feed) == 5
    assert [e.id for e in feed.recent()] == ["e7", "e6", "e5", "e4", "e3"]


def test_feed_dedups_by_id():
    feed = LiveFeed(capacity=5)
    feed.push(_event("a", value=1))
    feed.push(_event("b"))
    feed.push(_event("a", value=2))
    recent = feed.recent()
    assert [e.id for e in recent] == ["a", "b"]
    assert recent[0].metric_value == 2


def test_recent_limit():
    feed = LiveFeed(capacity=5)
    for n in range(4):
        feed.push(_event(f"e{n}"))
    assert [e.id for e in feed.recent(2)] == ["e3", "e2"]
    assert feed.recent(0) == []


def test_malformed_push_is_ignored():
    feed = LiveFeed(capacity=5)
    assert feed.push({"id": "x"}) is None
    assert len(feed) == 0


def test_load_seeds_from_newest_first_listing():
    feed = LiveFeed(capacity=5)
    feed.load([_event("e2", minutes=2), _event("e1", minutes=1)])
    assert [e.id for e in feed.recent()] == ["e2", "e1"]
