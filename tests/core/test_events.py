"""Tests for event bus."""

from rigforge.core.events import EventBus, EventType


def test_subscribe_publish():
    bus = EventBus()
    received = []
    bus.subscribe(EventType.JOINTS_CREATED, lambda **kw: received.append(kw))
    bus.publish(EventType.JOINTS_CREATED, container=None, count=3)
    assert len(received) == 1
    assert received[0] == {"container": None, "count": 3}


def test_unsubscribe():
    bus = EventBus()
    received = []
    handler = lambda **kw: received.append(kw)
    bus.subscribe(EventType.MESH_BOUND, handler)
    bus.unsubscribe(EventType.MESH_BOUND, handler)
    bus.publish(EventType.MESH_BOUND, result=None)
    assert len(received) == 0


def test_multiple_subscribers():
    bus = EventBus()
    a, b = [], []
    bus.subscribe(EventType.MESH_SKIPPED, lambda **kw: a.append(1))
    bus.subscribe(EventType.MESH_SKIPPED, lambda **kw: b.append(1))
    bus.publish(EventType.MESH_SKIPPED, result=None)
    assert len(a) == 1
    assert len(b) == 1


def test_different_events_independent():
    bus = EventBus()
    received = []
    bus.subscribe(EventType.MESH_BOUND, lambda **kw: received.append("bound"))
    bus.publish(EventType.MESH_FAILED, result=None)
    assert len(received) == 0


def test_handler_may_unsubscribe_itself():
    bus = EventBus()
    calls = []

    def once(**kw):
        calls.append(1)
        bus.unsubscribe(EventType.IMPORT_COMPLETE, once)

    bus.subscribe(EventType.IMPORT_COMPLETE, once)
    bus.publish(EventType.IMPORT_COMPLETE, result=None)
    bus.publish(EventType.IMPORT_COMPLETE, result=None)
    assert calls == [1]


def test_clear():
    bus = EventBus()
    bus.subscribe(EventType.MESH_BOUND, lambda **kw: None)
    bus.clear()
    # Should not raise
    bus.publish(EventType.MESH_BOUND)
