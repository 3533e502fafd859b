"""Observer interface for finalized events."""

from __future__ import annotations

import logging
import threading
from typing import Callable, List

from scene.types import AutonomousEvent

LOGGER = logging.getLogger(__name__)

EventCallback = Callable[[AutonomousEvent], None]


class EventPublisher:
    """Fan finalized events out to subscribers.

    Callbacks run synchronously on the publishing thread.  A callback that
    raises is logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._subscribers: List[EventCallback] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        """Register ``callback``; return a function that unregisters it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: AutonomousEvent) -> int:
        """Deliver ``event``; return how many callbacks succeeded."""
        with self._lock:
            subscribers = list(self._subscribers)
        delivered = 0
        for callback in subscribers:
            try:
                callback(event)
                delivered += 1
            except Exception as exc:
                LOGGER.error("Event subscriber failed for %s: %s", event.id, exc)
        return delivered

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)
