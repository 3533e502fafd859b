"""Monitoring pipeline orchestrating detection, scene understanding and analysis.

The :class:`MonitoringPipeline` ties together a frame source, a
detection backend, the :class:`~scene.engine.ContextEngine`, the
analysis :class:`~pipeline.scheduler.EventScheduler` and the event
publisher.  Three cancellable periodic tasks drive it:

* the detection tick (10 per second by default) reads a frame, runs the
  detection backend, updates the learning state and queues any event,
* the analysis tick (once per second) lets the scheduler finalize at most
  one queued event,
* the maintenance tick (once per minute) recomputes the intelligence
  snapshot and the rolling accuracy estimate.

The detection tick never waits on analysis; the priority queue sits
between the two.  Each tick is also a public method so tests can drive
the pipeline deterministically without threads.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from scene.business import BusinessTypeDetection
from scene.camera_context import CameraContext
from scene.engine import ContextEngine
from scene.intelligence import SystemIntelligence
from scene.types import AutonomousEvent, DetectionData, SceneContext

from .analyzers import DeepAnalyzer
from .frame_buffer import FrameBuffer
from .metrics import (
    contexts_processed_counter,
    detection_latency_histogram,
    event_queue_size_gauge,
    events_generated_counter,
    pipeline_running_gauge,
)
from .periodic import PeriodicTask
from .publisher import EventCallback, EventPublisher
from .scheduler import EventScheduler
from .sources import DetectionBackend, FrameSource

LOGGER = logging.getLogger(__name__)


@dataclass
class MonitoringState:
    is_active: bool = False
    started_at: Optional[float] = None
    active_contexts: List[str] = field(default_factory=list)
    active_patterns: List[str] = field(default_factory=list)
    analysis_queue: List[Dict[str, Any]] = field(default_factory=list)
    fps: float = 0.0
    latency_ms: float = 0.0
    accuracy: float = 0.0
    observation_hours: float = 0.0
    learning_phase: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MonitoringPipeline:
    """Coordinate frame capture, scene understanding and event analysis.

    Parameters
    ----------
    config : Dict, optional
        Configuration dictionary loaded from ``config.yaml``.
    analyzer : DeepAnalyzer, optional
        Deep-analysis collaborator.  Without one, events only receive the
        quick template analysis.
    engine : ContextEngine, optional
        Scene engine; built from ``config`` when omitted.
    clock : Callable[[], float]
        Source of the current time in seconds since epoch.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        analyzer: Optional[DeepAnalyzer] = None,
        engine: Optional[ContextEngine] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or {}
        self.clock = clock
        camera_cfg = self.config.get("camera", {})
        maintenance_cfg = self.config.get("maintenance", {})

        self.engine = engine if engine is not None else ContextEngine(self.config, clock=clock)
        self.publisher = EventPublisher()
        self.scheduler = EventScheduler(
            analyzer,
            observation_seconds=self.engine.observation_seconds,
            config=self.config,
            publisher=self.publisher,
            clock=clock,
        )
        self.frame_buffer = FrameBuffer(capacity=camera_cfg.get("frame_buffer_size", 30))
        self.detection_fps = float(camera_cfg.get("fps", 10))
        self.maintenance_interval = float(maintenance_cfg.get("interval_sec", 60))

        self.frame_source: Optional[FrameSource] = None
        self.detector: Optional[DetectionBackend] = None
        self.cameras: Dict[str, CameraContext] = {}
        self.active_camera_id: Optional[str] = None
        self.last_intelligence: Optional[SystemIntelligence] = None

        self.state = MonitoringState()
        self._state_lock = threading.Lock()
        self._last_tick_at: Optional[float] = None
        self.tasks: List[PeriodicTask] = []

    @property
    def running(self) -> bool:
        with self._state_lock:
            return self.state.is_active

    # ------------------------------------------------------------------
    # Cameras
    # ------------------------------------------------------------------
    def add_camera(self, camera_id: str, stream_url: str = "", make_active: bool = False) -> CameraContext:
        with self._state_lock:
            camera = self.cameras.get(camera_id)
            if camera is None:
                camera = CameraContext(camera_id=camera_id, stream_url=stream_url)
                self.cameras[camera_id] = camera
                LOGGER.info("Registered camera %s", camera_id)
            if make_active or self.active_camera_id is None:
                self.active_camera_id = camera_id
            return camera

    def get_camera_contexts(self) -> List[Dict[str, Any]]:
        with self._state_lock:
            return [camera.to_dict() for camera in self.cameras.values()]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(
        self,
        frame_source: FrameSource,
        detector: Optional[DetectionBackend] = None,
        background: bool = True,
    ) -> None:
        """Begin monitoring ``frame_source`` with ``detector``.

        When ``detector`` is omitted the frame source itself must be a
        :class:`DetectionBackend` (as :class:`~pipeline.sources.ReplaySource` is).
        With ``background=False`` no periodic tasks are started and the
        caller drives the ticks itself.
        """
        if detector is None:
            if not isinstance(frame_source, DetectionBackend):
                raise ValueError("A detection backend is required for this frame source")
            detector = frame_source

        with self._state_lock:
            if self.state.is_active:
                LOGGER.warning("Monitoring already active; ignoring start()")
                return
            self.frame_source = frame_source
            self.detector = detector
            self.state.is_active = True
            self.state.started_at = self.clock()
            self._last_tick_at = None
        self.add_camera(frame_source.camera_id, make_active=True)
        self.engine.begin_observation()

        if background:
            self.tasks = [
                PeriodicTask("detection", 1.0 / self.detection_fps, self.detection_tick),
                PeriodicTask("analysis", self.scheduler.poll_interval, self.scheduler.tick),
                PeriodicTask("maintenance", self.maintenance_interval, self.maintenance_tick),
            ]
            for task in self.tasks:
                task.start()
        pipeline_running_gauge.set(1)
        LOGGER.info("Monitoring started on camera %s at %.1f fps", frame_source.camera_id, self.detection_fps)

    def stop(self) -> None:
        """Stop monitoring.  Safe to call more than once."""
        with self._state_lock:
            if not self.state.is_active:
                return
            self.state.is_active = False
            self.state.analysis_queue = []
            tasks, self.tasks = self.tasks, []
        for task in tasks:
            task.stop()
        # Any analysis still in flight is discarded when it completes.
        self.scheduler.cancel()
        pipeline_running_gauge.set(0)

        if self.frame_source is not None:
            try:
                self.frame_source.release()
            except Exception as exc:
                LOGGER.error("Error releasing frame source: %s", exc)
        if self.detector is not None and self.detector is not self.frame_source:
            try:
                self.detector.cleanup()
            except Exception as exc:
                LOGGER.error("Error cleaning up detection backend: %s", exc)
        LOGGER.info("Monitoring stopped")

    def reset(self) -> None:
        """Forget learned state and history; the pattern catalog is kept."""
        self.engine.reset()
        self.scheduler.cancel()
        self.scheduler.clear_history()
        self.frame_buffer.clear()
        with self._state_lock:
            self.cameras = {
                camera_id: CameraContext(camera_id=camera_id, stream_url=camera.stream_url)
                for camera_id, camera in self.cameras.items()
            }
            self.state.active_contexts = []
            self.state.active_patterns = []
            self.state.analysis_queue = []
            self.state.accuracy = 0.0
        self.last_intelligence = None
        LOGGER.info("Monitoring pipeline reset")

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------
    def detection_tick(self) -> Optional[Tuple[SceneContext, Optional[AutonomousEvent]]]:
        """Read one frame and run it through detection and scene understanding."""
        if not self.running or self.frame_source is None or self.detector is None:
            return None
        video_frame = self.frame_source.read()
        if video_frame is None:
            return None

        start = time.perf_counter()
        camera_id = self.active_camera_id or self.frame_source.camera_id
        self.frame_buffer.push(video_frame.timestamp, video_frame.image)
        try:
            detection = self.detector.detect(video_frame)
        except Exception as exc:
            LOGGER.error("Detection backend failed on %s: %s", camera_id, exc)
            detection = DetectionData.empty()
        if not self.running:
            return None

        context, event = self.engine.process(detection, camera_id)
        contexts_processed_counter.inc()
        # Submitting under the state lock keeps stop() from emptying the
        # queue between the activity check and the enqueue.
        with self._state_lock:
            if not self.state.is_active:
                LOGGER.debug("Monitoring stopped mid-tick; dropping context %s", context.primary_activity)
                return context, None
            camera = self.cameras.get(camera_id)
            if camera is not None:
                camera.update(context, self.clock())
            if event is not None:
                events_generated_counter.inc()
                self.scheduler.submit(event, self.frame_buffer.latest())

        latency = time.perf_counter() - start
        detection_latency_histogram.observe(latency)
        self._update_state(context, latency)
        return context, event

    def maintenance_tick(self) -> SystemIntelligence:
        """Recompute the intelligence snapshot and rolling accuracy."""
        intelligence = self.engine.get_system_intelligence()
        self.last_intelligence = intelligence
        confidence = next(
            (m.value for m in intelligence.efficiency_metrics if m.metric == "Context Confidence"),
            0.0,
        )
        with self._state_lock:
            self.state.accuracy = confidence / 100.0
            self.state.observation_hours = intelligence.observation_hours
            self.state.learning_phase = self.engine.is_learning_phase()
        LOGGER.info(
            "Learning cycle: %.2fh observed, %d patterns, business=%s (%.2f)",
            intelligence.observation_hours,
            intelligence.patterns_learned,
            intelligence.business_type,
            intelligence.confidence_level,
        )
        return intelligence

    def _update_state(self, context: SceneContext, latency: float) -> None:
        now = self.clock()
        queue_view = [
            {
                "event_id": item.event_id,
                "context": item.event.detected_context,
                "priority": item.priority.name.lower(),
                "attempts": item.attempts,
            }
            for item in self.scheduler.queue.snapshot()
        ]
        event_queue_size_gauge.set(len(queue_view))
        with self._state_lock:
            if self._last_tick_at is not None and now > self._last_tick_at:
                instant = 1.0 / (now - self._last_tick_at)
                self.state.fps = instant if self.state.fps == 0 else 0.9 * self.state.fps + 0.1 * instant
            self._last_tick_at = now
            self.state.latency_ms = latency * 1000
            self.state.active_contexts = [context.primary_activity]
            self.state.active_patterns = [context.matches_pattern] if context.matches_pattern else []
            self.state.analysis_queue = queue_view
            self.state.observation_hours = self.engine.observation_hours()
            self.state.learning_phase = self.engine.is_learning_phase()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        return self.publisher.subscribe(callback)

    def get_recent_events(self, limit: int = 50) -> List[AutonomousEvent]:
        return self.scheduler.recent_events(limit)

    def clear_history(self) -> None:
        self.scheduler.clear_history()

    def get_monitoring_state(self) -> Dict[str, Any]:
        with self._state_lock:
            return self.state.to_dict()

    def get_system_intelligence(self) -> SystemIntelligence:
        return self.engine.get_system_intelligence()

    def get_business_type(self) -> BusinessTypeDetection:
        return self.engine.get_business_type()

    def get_statistics(self) -> Dict[str, Any]:
        scheduler_stats = self.scheduler.get_stats()
        intelligence = self.engine.get_system_intelligence()
        buffer_stats = self.frame_buffer.stats()
        return {
            "queue_size": scheduler_stats["queue_size"],
            "events_processed": scheduler_stats["processed"],
            "is_monitoring": self.running,
            "buffer_size": buffer_stats["size"],
            "frame_buffer": buffer_stats,
            "failed_count": scheduler_stats["failed_size"],
            "scheduler": scheduler_stats,
            "learning_progress": {
                "observation_hours": intelligence.observation_hours,
                "observation_count": intelligence.observation_count,
                "patterns_learned": intelligence.patterns_learned,
                "learning_phase": self.engine.is_learning_phase(),
                "business_type": intelligence.business_type,
                "business_confidence": intelligence.confidence_level,
            },
        }
