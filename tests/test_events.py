"""Tests for the event bus."""

import logging

from flamechart.events import EventBus, EventKind, Selection
from flamechart.regions import HitRegion, RegionKind, TogglePayload


def test_listeners_run_in_subscription_order():
    """Listeners are called in the order they subscribed."""
    bus = EventBus()
    calls = []
    bus.subscribe(EventKind.CLICK, lambda payload: calls.append(("first", payload)))
    bus.subscribe(EventKind.CLICK, lambda payload: calls.append(("second", payload)))
    bus.emit(EventKind.CLICK, 1)
    assert calls == [("first", 1), ("second", 1)]


def test_failing_listener_is_logged_and_others_still_run(caplog):
    """One broken listener does not starve the rest."""
    bus = EventBus("chart")
    calls = []

    def broken(_payload):
        raise RuntimeError("boom")

    bus.subscribe(EventKind.SELECT, broken)
    bus.subscribe(EventKind.SELECT, calls.append)

    with caplog.at_level(logging.WARNING, logger="flamechart.events"):
        bus.emit(EventKind.SELECT, "payload")

    assert calls == ["payload"]
    assert "chart listener for select failed: boom" in caplog.text


def test_unsubscribe_stops_delivery():
    """The returned callable removes the listener and is safe to call twice."""
    bus = EventBus()
    calls = []
    unsubscribe = bus.subscribe(EventKind.HOVER, calls.append)
    bus.emit(EventKind.HOVER, "before")

    unsubscribe()
    unsubscribe()
    bus.emit(EventKind.HOVER, "after")

    assert calls == ["before"]


def test_clear_drops_every_listener():
    """Clearing removes listeners of all kinds."""
    bus = EventBus()
    calls = []
    bus.subscribe(EventKind.UP, calls.append)
    bus.subscribe(EventKind.DOWN, calls.append)
    bus.clear()
    bus.emit(EventKind.UP, 1)
    bus.emit(EventKind.DOWN, 2)
    assert calls == []


def test_selection_payload():
    """Selections expose the payload of their region."""
    region = HitRegion(RegionKind.TOGGLE, TogglePayload(3), 0, 0, 10, 10)
    assert Selection(region).payload == TogglePayload(3)
    assert Selection(None).payload is None
