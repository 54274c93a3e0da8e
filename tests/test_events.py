"""EventBus sequence cursors and blocking reads."""

import threading

from assistant.models import Notification
from assistant.services.events import EventBus


class TestEventBus:
    def test_events_since_cursor(self):
        bus = EventBus()
        bus.publish("meeting_started", "m1")
        bus.publish("message_added", "m1", {"id": "msg1"})

        events, cursor = bus.get_events_since(0)
        assert [e["type"] for e in events] == ["meeting_started", "message_added"]
        assert events[1]["data"] == {"id": "msg1"}
        assert cursor == 2

        bus.publish("task_added", "m1")
        events, cursor = bus.get_events_since(cursor)
        assert [e["type"] for e in events] == ["task_added"]
        assert cursor == 3

    def test_trimming_keeps_cursor_valid(self):
        bus = EventBus(max_events=5, keep_events=2)
        for index in range(4):
            bus.publish("tick", None, {"n": index})
        _, cursor = bus.get_events_since(0)

        for index in range(4, 8):
            bus.publish("tick", None, {"n": index})

        events, _ = bus.get_events_since(cursor)
        # Trimmed events are gone, but nothing after the cursor is repeated
        assert all(e["data"]["n"] >= 4 for e in events)
        assert events[-1]["data"]["n"] == 7

    def test_notify_publishes_notification(self):
        bus = EventBus()
        bus.notify(Notification(title="Error", description="x", variant="destructive"), "m1")

        events, _ = bus.get_events_since(0)
        assert events[0]["type"] == "notification"
        assert events[0]["meeting_id"] == "m1"
        assert events[0]["data"] == {"title": "Error", "description": "x", "variant": "destructive"}

    def test_wait_returns_immediately_when_behind(self):
        bus = EventBus()
        bus.publish("tick", None)

        events, cursor = bus.wait_for_events(0, timeout=5.0)
        assert len(events) == 1 and cursor == 1

    def test_wait_times_out_without_events(self):
        bus = EventBus()
        events, cursor = bus.wait_for_events(0, timeout=0.05)
        assert events == [] and cursor == 0

    def test_wait_wakes_on_publish(self):
        bus = EventBus()
        timer = threading.Timer(0.05, bus.publish, args=("tick", None))
        timer.start()
        try:
            events, _ = bus.wait_for_events(0, timeout=5.0)
        finally:
            timer.cancel()
        assert [e["type"] for e in events] == ["tick"]
