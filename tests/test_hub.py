"""Tests for the live hub: initial load, ordering, unsubscription and release.

Async tests drive their own loop with ``asyncio.run`` so no plugin is needed.
"""

import asyncio
from datetime import datetime, timedelta, timezone

from live.feed import LiveFeed
from live.hub import LiveHub
from live.reducer import EventReducer

T0 = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


def _event(event_id, value=100.0, minutes=0, po_id="po-1"):
    return {
        "id": event_id,
        "po_id": po_id,
        "metric_type": "production_rate",
        "metric_value": value,
        "timestamp": T0 + timedelta(minutes=minutes),
    }


async def _next(sub, timeout=1.0):
    return await asyncio.wait_for(sub.__anext__(), timeout)


def test_events_during_initial_load_are_not_lost():
    async def scenario():
        gate = asyncio.Event()

        async def loader(subject):
            await gate.wait()
            return [_event("h2", minutes=2), _event("h1", minutes=1)]

        hub = LiveHub(loader=loader, reducer=EventReducer(capacity=10))
        await hub.start()
        sub = await hub.subscribe("po-1")
        await asyncio.sleep(0)
        hub.publish(_event("live", minutes=3))
        gate.set()
        snapshot = await _next(sub)
        await hub.close()
        return snapshot

    snapshot = asyncio.run(scenario())
    assert snapshot.loaded
    assert [e.id for e in snapshot.metrics.events] == ["live", "h2", "h1"]


def test_updates_arrive_in_publish_order():
    async def scenario():
        async def loader(subject):
            return []

        hub = LiveHub(loader=loader, reducer=EventReducer(capacity=10))
        await hub.start()
        async with hub.subscription("po-1") as sub:
            await _next(sub)
            hub.publish(_event("e1", value=10))
            hub.publish(_event("e1", value=12))
            first = await _next(sub)
            second = await _next(sub)
        await hub.close()
        return first, second

    first, second = asyncio.run(scenario())
    assert first.metrics.events[0].metric_value == 10
    assert [e.metric_value for e in second.metrics.events] == [12]


def test_no_update_after_unsubscribe():
    async def scenario():
        hub = LiveHub(reducer=EventReducer(capacity=10))
        await hub.start()
        sub = await hub.subscribe("po-1")
        await _next(sub)
        await sub.close()
        hub.publish(_event("late"))
        await asyncio.sleep(0.01)
        items = [item async for item in sub]
        await hub.close()
        return items

    assert asyncio.run(scenario()) == []


def test_last_unsubscribe_releases_buffer():
    async def scenario():
        reducer = EventReducer(capacity=10)
        hub = LiveHub(reducer=reducer)
        await hub.start()
        first = await hub.subscribe("po-1")
        second = await hub.subscribe("po-1")
        await _next(first)
        hub.publish(_event("e1"))
        await _next(first)
        await first.close()
        still_tracked = hub.is_tracking("po-1") and "po-1" in reducer.subjects()
        await second.close()
        released = not hub.is_tracking("po-1") and "po-1" not in reducer.subjects()
        await hub.close()
        return still_tracked, released

    still_tracked, released = asyncio.run(scenario())
    assert still_tracked
    assert released


def test_load_failure_reports_not_loaded():
    async def scenario():
        async def loader(subject):
            raise ConnectionError("database unavailable")

        hub = LiveHub(loader=loader)
        await hub.start()
        async with hub.subscription("po-1") as sub:
            snapshot = await _next(sub)
        await hub.close()
        return snapshot

    snapshot = asyncio.run(scenario())
    assert not snapshot.loaded
    assert snapshot.error == "database unavailable"
    assert not snapshot.metrics.has_data


def test_events_for_other_subjects_do_not_notify():
    async def scenario():
        hub = LiveHub(reducer=EventReducer(capacity=10))
        await hub.start()
        async with hub.subscription("po-1") as sub:
            await _next(sub)
            hub.publish(_event("other", po_id="po-2"))
            hub.publish(_event("mine"))
            snapshot = await _next(sub)
        await hub.close()
        return snapshot

    snapshot = asyncio.run(scenario())
    assert [e.id for e in snapshot.metrics.events] == ["mine"]


def test_malformed_publish_changes_nothing():
    async def scenario():
        hub = LiveHub()
        await hub.start()
        result = hub.publish({"id": "broken"})
        activity = hub.recent_activity()
        await hub.close()
        return result, activity

    result, activity = asyncio.run(scenario())
    assert result is None
    assert activity == []


def test_activity_subscription_gets_feed_on_every_event():
    async def scenario():
        async def activity_loader(limit):
            return [_event("seed", po_id="po-9")]

        hub = LiveHub(activity_loader=activity_loader, feed=LiveFeed(capacity=5))
        await hub.start()
        async with hub.subscription(None) as sub:
            initial = await _next(sub)
            hub.publish(_event("new", po_id=None))
            updated = await _next(sub)
        await hub.close()
        return initial, updated

    initial, updated = asyncio.run(scenario())
    assert [e.id for e in initial] == ["seed"]
    assert [e.id for e in updated] == ["new", "seed"]


def test_snapshot_only_for_tracked_subjects():
    async def scenario():
        hub = LiveHub()
        await hub.start()
        untracked = hub.snapshot("po-1")
        async with hub.subscription("po-1") as sub:
            await _next(sub)
            tracked = hub.snapshot("po-1")
        await hub.close()
        return untracked, tracked

    untracked, tracked = asyncio.run(scenario())
    assert untracked is None
    assert tracked.loaded
