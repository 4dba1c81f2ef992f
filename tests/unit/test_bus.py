"""Tests for the observer bus."""

from __future__ import annotations

import threading

from tunnelctl.session.bus import ObserverBus
from tunnelctl.session.models import SessionSnapshot, SessionState


def _snap(
    elapsed: int = 0, state: SessionState = SessionState.CONNECTED
) -> SessionSnapshot:
    return SessionSnapshot(
        state=state,
        endpoint=None,
        elapsed_seconds=elapsed,
        assigned_address=None,
        recent_samples=(),
        assessment=None,
        generation=1,
    )


def test_publish_reaches_all_observers_in_order():
    bus = ObserverBus()
    seen_a: list[int] = []
    seen_b: list[int] = []
    bus.subscribe(lambda s: seen_a.append(s.elapsed_seconds))
    bus.subscribe(lambda s: seen_b.append(s.elapsed_seconds))

    for i in range(5):
        bus.publish(_snap(i))

    assert seen_a == [0, 1, 2, 3, 4]
    assert seen_b == [0, 1, 2, 3, 4]


def test_unsubscribe_stops_delivery():
    bus = ObserverBus()
    seen: list[int] = []
    handle = bus.subscribe(lambda s: seen.append(s.elapsed_seconds))
    bus.publish(_snap(1))
    bus.unsubscribe(handle)
    bus.publish(_snap(2))

    assert seen == [1]
    assert bus.observer_count == 0


def test_unsubscribe_unknown_handle_is_ignored():
    bus = ObserverBus()
    handle = bus.subscribe(lambda s: None)
    bus.unsubscribe(handle)
    bus.unsubscribe(handle)
    assert bus.observer_count == 0


def test_unsubscribe_during_notification_keeps_current_delivery():
    bus = ObserverBus()
    seen_second: list[int] = []
    handles: dict[str, object] = {}

    def first(snapshot):
        # Removes the second observer while this notification is in flight
        bus.unsubscribe(handles["second"])

    handles["first"] = bus.subscribe(first)
    handles["second"] = bus.subscribe(lambda s: seen_second.append(s.elapsed_seconds))

    bus.publish(_snap(1))
    bus.publish(_snap(2))

    assert seen_second == [1]


def test_reentrant_publish_is_delivered_after_current():
    bus = ObserverBus()
    order: list[tuple[str, int]] = []

    def first(snapshot):
        order.append(("first", snapshot.elapsed_seconds))
        if snapshot.elapsed_seconds == 1:
            bus.publish(_snap(2))

    def second(snapshot):
        order.append(("second", snapshot.elapsed_seconds))

    bus.subscribe(first)
    bus.subscribe(second)
    bus.publish(_snap(1))

    assert order == [("first", 1), ("second", 1), ("first", 2), ("second", 2)]


def test_failing_observer_does_not_block_others():
    bus = ObserverBus()
    seen: list[int] = []

    def broken(snapshot):
        raise RuntimeError("boom")

    bus.subscribe(broken)
    bus.subscribe(lambda s: seen.append(s.elapsed_seconds))
    bus.publish(_snap(7))
    bus.publish(_snap(8))

    assert seen == [7, 8]


def test_concurrent_publishers_are_serialized():
    bus = ObserverBus()
    active = 0
    overlaps: list[int] = []
    lock = threading.Lock()

    def observer(snapshot):
        nonlocal active
        with lock:
            active += 1
            if active > 1:
                overlaps.append(active)
        with lock:
            active -= 1

    bus.subscribe(observer)

    def worker():
        for i in range(200):
            bus.publish(_snap(i))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not overlaps
