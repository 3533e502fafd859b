"""Analysis scheduler for generated events.

The scheduler decouples the fast detection tick from the slow,
network-bound deep analysis.  Events are pushed into a
:class:`~pipeline.event_queue.PriorityEventQueue`; :meth:`EventScheduler.tick`
(driven once per second by the monitoring pipeline) pops at most one
event and finalizes it.

Notes:
- At most one analysis is in flight.  A tick that finds the previous
  analysis still running returns immediately.
- During the warm-up window (first 10 minutes of observation by default)
  the deep-analysis collaborator is skipped and a template description
  is built from the event's own metrics.
- A failing analysis is re-enqueued at its original priority until
  ``max_attempts`` attempts have been made; the event then moves to the
  bounded ``failed`` list with its last error.
- :meth:`EventScheduler.cancel` bumps a generation counter.  A result
  that completes after a cancel is discarded instead of published.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import replace
from typing import Any, Callable, Deque, Dict, List, Optional

from scene.types import (
    AnalysisPayload,
    AutonomousEvent,
    InventoryStatus,
    QueueMetrics,
    RawAnalysis,
    SafetyAssessment,
    SceneMetrics,
    StructuredData,
)

from .analyzers import DeepAnalysisResult, DeepAnalyzer
from .event_queue import Priority, PriorityEventQueue, QueuedEvent
from .metrics import (
    analysis_failures_counter,
    event_history_size_gauge,
    event_queue_size_gauge,
    events_dropped_counter,
    events_finalized_counter,
)
from .prompts import build_prompt, prompt_kind
from .publisher import EventPublisher

LOGGER = logging.getLogger(__name__)


def quick_analysis(event: AutonomousEvent) -> AutonomousEvent:
    """Finalize ``event`` from its own metrics without calling a model."""
    structured = event.ai_analysis.structured_data
    people = getattr(structured, "people_count", 0) or 0
    if isinstance(structured, SceneMetrics):
        structured = replace(structured, quick_analysis=True)
    payload = replace(
        event.ai_analysis,
        description=f"Detected {event.detected_context} with {people} people. System is learning patterns.",
        structured_data=structured,
    )
    return replace(event, ai_analysis=payload)


def merge_structured(event: AutonomousEvent, result: DeepAnalysisResult) -> StructuredData:
    if result.is_raw:
        return RawAnalysis(text=result.raw_text or "")
    kind = prompt_kind(event.detected_context)
    if kind == "queue":
        return QueueMetrics.from_metrics(result.metrics)
    if kind == "inventory":
        return InventoryStatus.from_metrics(result.metrics)
    if kind == "safety":
        return SafetyAssessment.from_metrics(result.metrics)
    structured = event.ai_analysis.structured_data
    if isinstance(structured, SceneMetrics):
        return replace(structured, deep_metrics=dict(result.metrics))
    return structured


def merge_analysis(event: AutonomousEvent, result: DeepAnalysisResult) -> AutonomousEvent:
    """Return a copy of ``event`` enhanced with a deep-analysis result.

    The deep description wins when present; otherwise the existing cheap
    description is kept.
    """
    current = event.ai_analysis
    payload = AnalysisPayload(
        description=result.description or current.description,
        structured_data=merge_structured(event, result),
        recommendations=result.recommendations or list(current.recommendations),
        urgency=current.urgency,
        patterns_observed=result.patterns_observed or list(current.patterns_observed),
    )
    metadata = event.learning_metadata
    if result.patterns_observed:
        metadata = replace(metadata, new_pattern_detected=True)
    return replace(event, ai_analysis=payload, learning_metadata=metadata)


class EventScheduler:
    """Drain queued events into the deep-analysis collaborator.

    Parameters
    ----------
    analyzer : DeepAnalyzer, optional
        Deep-analysis collaborator.  When None every event gets the quick
        template analysis.
    observation_seconds : Callable[[], float]
        Returns the elapsed observation time; selects the warm-up tier.
    config : Dict, optional
        Configuration dictionary; the ``analysis`` and ``events`` sections
        are read.
    publisher : EventPublisher, optional
        Receives every finalized event.
    queue : PriorityEventQueue, optional
        Queue to drain; created from ``analysis.queue_max_size`` if omitted.
    clock : Callable[[], float]
        Source of enqueue timestamps.
    """

    def __init__(
        self,
        analyzer: Optional[DeepAnalyzer],
        observation_seconds: Callable[[], float],
        config: Optional[Dict[str, Any]] = None,
        publisher: Optional[EventPublisher] = None,
        queue: Optional[PriorityEventQueue] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or {}
        analysis_cfg = self.config.get("analysis", {})
        events_cfg = self.config.get("events", {})

        self.analyzer = analyzer
        self.observation_seconds = observation_seconds
        self.publisher = publisher if publisher is not None else EventPublisher()
        if queue is None:
            queue = PriorityEventQueue(max_size=analysis_cfg.get("queue_max_size", 64))
        self.queue = queue
        self.clock = clock

        self.poll_interval = float(analysis_cfg.get("poll_interval_sec", 1.0))
        self.warmup_seconds = float(analysis_cfg.get("warmup_seconds", 600))
        self.max_attempts = int(analysis_cfg.get("max_attempts", 3))
        self.timeout = float(analysis_cfg.get("timeout_sec", 30.0))

        self.history: Deque[AutonomousEvent] = deque(maxlen=events_cfg.get("history_size", 500))
        self.failed: Deque[QueuedEvent] = deque(maxlen=analysis_cfg.get("failed_size", 100))

        self._lock = threading.Lock()
        self.processing = False
        self.generation = 0
        self.stats = {
            "submitted": 0,
            "rejected": 0,
            "processed": 0,
            "quick": 0,
            "deep": 0,
            "retried": 0,
            "failed": 0,
            "discarded": 0,
            "avg_processing_time_ms": 0.0,
        }
        self.processing_times: Deque[float] = deque(maxlen=100)

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------
    def submit(self, event: AutonomousEvent, frame: Any = None) -> bool:
        """Queue ``event`` for analysis (non-blocking)."""
        item = QueuedEvent(
            event=event,
            frame=frame,
            priority=Priority.from_urgency(event.ai_analysis.urgency),
            enqueued_at=self.clock(),
        )
        accepted = self.queue.put(item)
        with self._lock:
            if accepted:
                self.stats["submitted"] += 1
            else:
                self.stats["rejected"] += 1
        if not accepted:
            events_dropped_counter.inc()
        event_queue_size_gauge.set(self.queue.qsize())
        return accepted

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------
    def in_warmup(self) -> bool:
        return self.observation_seconds() < self.warmup_seconds

    def tick(self) -> Optional[AutonomousEvent]:
        """Process at most one queued event; return it once published."""
        with self._lock:
            if self.processing:
                return None
            item = self.queue.get()
            if item is None:
                return None
            self.processing = True
            generation = self.generation

        start = time.perf_counter()
        try:
            finalized = self._analyze(item)
        except Exception as exc:
            self._handle_failure(item, exc, generation)
            return None
        finally:
            with self._lock:
                self.processing = False
            event_queue_size_gauge.set(self.queue.qsize())

        # The generation check and the history append share one critical
        # section so a cancel() cannot land between them.
        with self._lock:
            if generation != self.generation:
                self.stats["discarded"] += 1
                stale = True
            else:
                stale = False
                elapsed_ms = (time.perf_counter() - start) * 1000
                self.processing_times.append(elapsed_ms)
                self.stats["avg_processing_time_ms"] = sum(self.processing_times) / len(self.processing_times)
                self.history.append(finalized)
                self.stats["processed"] += 1
                history_size = len(self.history)
        if stale:
            events_dropped_counter.inc()
            LOGGER.warning("Discarding result for %s: monitoring was stopped during analysis", item.event_id)
            return None

        self._publish(finalized, history_size)
        return finalized

    def _analyze(self, item: QueuedEvent) -> AutonomousEvent:
        item.attempts += 1
        event = item.event
        if self.analyzer is None or self.in_warmup():
            with self._lock:
                self.stats["quick"] += 1
            return quick_analysis(event)

        prompt = build_prompt(event)
        LOGGER.debug("Analyzing %s (attempt %d/%d)", event.id, item.attempts, self.max_attempts)
        result = self.analyzer.analyze(item.frame, prompt, timeout=self.timeout)
        if result.is_raw:
            LOGGER.warning("Analysis for %s was not JSON; keeping existing description", event.id)
        with self._lock:
            self.stats["deep"] += 1
        return merge_analysis(event, result)

    def _handle_failure(self, item: QueuedEvent, exc: Exception, generation: int) -> None:
        item.last_error = str(exc) or type(exc).__name__
        analysis_failures_counter.inc()
        with self._lock:
            cancelled = generation != self.generation
        if cancelled:
            with self._lock:
                self.stats["discarded"] += 1
            events_dropped_counter.inc()
            LOGGER.warning("Dropping failed analysis for %s: monitoring was stopped", item.event_id)
            return

        if item.attempts < self.max_attempts:
            with self._lock:
                self.stats["retried"] += 1
            LOGGER.warning(
                "Analysis of %s failed (attempt %d/%d): %s; retrying",
                item.event_id,
                item.attempts,
                self.max_attempts,
                item.last_error,
            )
            if not self.queue.put(item):
                self._record_failed(item)
            return

        LOGGER.error(
            "Analysis of %s failed after %d attempts: %s", item.event_id, item.attempts, item.last_error
        )
        self._record_failed(item)

    def _record_failed(self, item: QueuedEvent) -> None:
        with self._lock:
            self.failed.append(item)
            self.stats["failed"] += 1
        events_dropped_counter.inc()

    def _publish(self, event: AutonomousEvent, history_size: int) -> None:
        events_finalized_counter.inc()
        event_history_size_gauge.set(history_size)
        LOGGER.info("Analysis complete for %s: %s", event.id, event.ai_analysis.description)
        self.publisher.publish(event)

    # ------------------------------------------------------------------
    # Control and accessors
    # ------------------------------------------------------------------
    def cancel(self) -> None:
        """Invalidate any in-flight analysis and empty the queue."""
        with self._lock:
            self.generation += 1
        self.queue.clear()
        event_queue_size_gauge.set(0)

    def recent_events(self, limit: int = 50) -> List[AutonomousEvent]:
        """Most recent finalized events, newest first."""
        with self._lock:
            events = list(self.history)
        events.reverse()
        return events[: max(0, limit)]

    def failed_events(self) -> List[QueuedEvent]:
        with self._lock:
            return list(self.failed)

    def clear_history(self) -> None:
        with self._lock:
            self.history.clear()
        event_history_size_gauge.set(0)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            stats = dict(self.stats)
            stats["history_size"] = len(self.history)
            stats["failed_size"] = len(self.failed)
            stats["is_processing"] = self.processing
        stats["queue_size"] = self.queue.qsize()
        stats["queue_dropped"] = self.queue.dropped
        stats["warmup"] = self.in_warmup()
        return stats
