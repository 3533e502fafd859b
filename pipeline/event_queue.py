"""Priority queue for events awaiting analysis.

The detection thread pushes generated events here and the analysis
scheduler drains them one at a time.  Ordering is by priority class
(CRITICAL before HIGH before MEDIUM before LOW) and first-in first-out
within a class.  Each entry carries the frame evidence the deep-analysis
call needs, the number of attempts made so far and the last error seen.

The queue is bounded.  When it is full the oldest entry of the lowest
class that is no more important than the incoming event is evicted; an
incoming event less important than everything queued is rejected.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Deque, Dict, List, Optional

from scene.types import AutonomousEvent

LOGGER = logging.getLogger(__name__)


class Priority(IntEnum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3

    @classmethod
    def from_urgency(cls, urgency: str) -> "Priority":
        return URGENCY_PRIORITY.get(urgency, cls.LOW)


URGENCY_PRIORITY: Dict[str, Priority] = {
    "low": Priority.LOW,
    "medium": Priority.MEDIUM,
    "high": Priority.HIGH,
    "critical": Priority.CRITICAL,
}


@dataclass
class QueuedEvent:
    """An event waiting for analysis.

    Attributes
    ----------
    event : AutonomousEvent
        The generated event.
    frame : Any
        Opaque frame payload passed to the deep-analysis collaborator.
    priority : Priority
        Priority class; unchanged across retries.
    enqueued_at : float
        Time of the first enqueue in seconds since epoch.
    attempts : int
        Number of analysis attempts made so far.
    last_error : str, optional
        Message of the most recent failure.
    """

    event: AutonomousEvent
    frame: Any
    priority: Priority
    enqueued_at: float
    attempts: int = 0
    last_error: Optional[str] = None

    @property
    def event_id(self) -> str:
        return self.event.id


class PriorityEventQueue:
    """Thread-safe bounded queue of :class:`QueuedEvent` objects.

    Parameters
    ----------
    max_size : int
        Maximum number of queued entries.
    """

    def __init__(self, max_size: int = 64) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self._lanes: Dict[Priority, Deque[QueuedEvent]] = {p: deque() for p in Priority}
        self._lock = threading.Lock()
        self.dropped = 0

    def put(self, item: QueuedEvent) -> bool:
        """Enqueue ``item``; return False if it was rejected."""
        with self._lock:
            if self._size() >= self.max_size:
                victim_lane = None
                for priority in sorted(Priority):
                    if priority > item.priority:
                        break
                    if self._lanes[priority]:
                        victim_lane = self._lanes[priority]
                        break
                if victim_lane is None:
                    self.dropped += 1
                    LOGGER.warning("Queue full; rejected event %s (%s)", item.event_id, item.priority.name)
                    return False
                evicted = victim_lane.popleft()
                self.dropped += 1
                LOGGER.warning("Queue full; evicted event %s to make room for %s", evicted.event_id, item.event_id)
            self._lanes[item.priority].append(item)
            return True

    def get(self) -> Optional[QueuedEvent]:
        """Pop the most important, oldest entry or None if empty."""
        with self._lock:
            for priority in sorted(Priority, reverse=True):
                lane = self._lanes[priority]
                if lane:
                    return lane.popleft()
            return None

    def _size(self) -> int:
        return sum(len(lane) for lane in self._lanes.values())

    def qsize(self) -> int:
        with self._lock:
            return self._size()

    def __len__(self) -> int:
        return self.qsize()

    def empty(self) -> bool:
        return self.qsize() == 0

    def snapshot(self) -> List[QueuedEvent]:
        """Entries in dequeue order, without removing them."""
        with self._lock:
            items: List[QueuedEvent] = []
            for priority in sorted(Priority, reverse=True):
                items.extend(self._lanes[priority])
            return items

    def clear(self) -> None:
        with self._lock:
            for lane in self._lanes.values():
                lane.clear()
