"""Cancellable periodic tasks.

Each :class:`PeriodicTask` runs one function on a daemon thread at a
fixed interval.  Waiting is done on a :class:`threading.Event`, so
:meth:`PeriodicTask.stop` wakes the thread immediately instead of
sleeping out the interval.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)


class PeriodicTask:
    """Call ``func`` every ``interval`` seconds until stopped.

    Parameters
    ----------
    name : str
        Thread name, also used in log messages.
    interval : float
        Seconds between the start of consecutive ticks.
    func : Callable[[], None]
        Tick function.  Exceptions are logged and the cadence continues.
    """

    def __init__(self, name: str, interval: float, func: Callable[[], None]) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.func = func
        self.ticks = 0
        self.errors = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        LOGGER.debug("Periodic task %s started (every %.3fs)", self.name, self.interval)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        self._thread = None

    def run_once(self) -> None:
        try:
            self.func()
        except Exception:
            self.errors += 1
            LOGGER.exception("Periodic task %s tick failed", self.name)
        finally:
            self.ticks += 1

    def _run(self) -> None:
        while not self._stop_event.is_set():
            self.run_once()
            if self._stop_event.wait(self.interval):
                break
        LOGGER.debug("Periodic task %s stopped", self.name)
