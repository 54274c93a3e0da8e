"""In-process event feed for Server-Sent Events clients."""
from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Optional

from assistant.models import Notification


class EventBus:
    """Bounded, sequence-numbered event buffer with blocking reads.

    Cursors are sequence numbers rather than list offsets, so trimming old
    events never makes a reader skip or repeat one.
    """

    def __init__(self, max_events: int = 200, keep_events: int = 100) -> None:
        self._condition = threading.Condition(threading.Lock())
        self._events: list[dict] = []
        self._next_seq = 1
        self._max_events = max_events
        self._keep_events = keep_events

    def publish(self, event_type: str, meeting_id: Optional[str], data: Optional[dict] = None) -> dict:
        with self._condition:
            payload = {
                "seq": self._next_seq,
                "type": event_type,
                "meeting_id": meeting_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
            if data:
                payload["data"] = data
            self._next_seq += 1
            self._events.append(payload)
            if len(self._events) > self._max_events:
                self._events = self._events[-self._keep_events:]
            # Wake up any waiting SSE connections immediately
            self._condition.notify_all()
            return payload

    def notify(self, notification: Notification, meeting_id: Optional[str] = None) -> dict:
        return self.publish("notification", meeting_id, notification.model_dump())

    def _since(self, cursor: int) -> tuple[list[dict], int]:
        events = [event for event in self._events if event["seq"] > cursor]
        return events, self._next_seq - 1

    def get_events_since(self, cursor: int) -> tuple[list[dict], int]:
        with self._condition:
            return self._since(cursor)

    def wait_for_events(self, cursor: int, timeout: float = 5.0) -> tuple[list[dict], int]:
        """Block until events newer than ``cursor`` exist or ``timeout`` expires.

        Returns:
            Tuple of (new events since cursor, new cursor)
        """
        with self._condition:
            if cursor < self._next_seq - 1:
                return self._since(cursor)
            self._condition.wait(timeout=timeout)
            return self._since(cursor)
