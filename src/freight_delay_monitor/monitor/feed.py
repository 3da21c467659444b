"""Notification feed shown to the operator.

Purely a view-model: events are appended by the observer and removed by the
consumer, individually or in bulk.
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class NotificationEvent(BaseModel):
    id: str
    run_id: str
    message: str
    route: str
    delay_minutes: int
    timestamp: datetime
    type: Literal["delay"] = "delay"


class NotificationFeed:
    """Lock-guarded list of notification events, most recent first."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        # Most recent first.
        self._events: list[NotificationEvent] = []

    def publish(
        self,
        *,
        run_id: str,
        message: str,
        route: str,
        delay_minutes: int,
        timestamp: datetime,
    ) -> NotificationEvent:
        event = NotificationEvent(
            id=uuid.uuid4().hex,
            run_id=run_id,
            message=message,
            route=route,
            delay_minutes=delay_minutes,
            timestamp=timestamp,
        )
        with self._lock:
            self._events.insert(0, event)
        return event

    def list(self) -> list[NotificationEvent]:
        with self._lock:
            return list(self._events)

    def dismiss(self, event_id: str) -> bool:
        with self._lock:
            for idx, event in enumerate(self._events):
                if event.id == event_id:
                    del self._events[idx]
                    return True
            return False

    def clear(self) -> int:
        with self._lock:
            count = len(self._events)
            self._events.clear()
            return count
