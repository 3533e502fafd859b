"""Rolling buffer of recent frames.

:class:`FrameBuffer` keeps the last ``capacity`` frames together with
their timestamps.  When a new frame arrives and the buffer is full the
oldest frame is discarded.  The monitoring pipeline uses it to attach
frame evidence to generated events and to report buffer statistics.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Any, Deque, Dict, Optional, Tuple


class FrameBuffer:
    """A bounded buffer of ``(timestamp, frame)`` pairs.

    Parameters
    ----------
    capacity : int
        Maximum number of frames to keep in the buffer.
    """

    def __init__(self, capacity: int = 30) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._data: Deque[Tuple[float, Any]] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def push(self, timestamp: float, frame: Any) -> None:
        with self._lock:
            self._data.append((timestamp, frame))

    def latest(self) -> Optional[Any]:
        """Return the most recent frame, or None when empty."""
        with self._lock:
            return self._data[-1][1] if self._data else None

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            if not self._data:
                return {"size": 0, "capacity": self.capacity, "span_seconds": 0.0}
            return {
                "size": len(self._data),
                "capacity": self.capacity,
                "span_seconds": self._data[-1][0] - self._data[0][0],
            }
