"""Cheap per-frame scene-understanding stage.

:class:`ContextEngine` wires together the scene matcher, learning store,
anomaly estimator, business classifier, event generator and intelligence
reporter.  One call to :meth:`ContextEngine.process` performs the whole
read-modify-write for a detection record under a single re-entrant lock,
so the detection thread, the maintenance tick and the web UI can share
one engine.

Order of operations for a detection:

1. count the observation,
2. build the scene context (learning-phase adjusted),
3. match against the catalog and reinforce the winning pattern,
4. assess typicality and anomaly against the history *before* the new
   context is appended,
5. update business evidence,
6. append the context to the rolling history,
7. optionally generate an :class:`~scene.types.AutonomousEvent`.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from .anomaly import AnomalyEstimator
from .business import BusinessTypeClassifier, BusinessTypeDetection
from .event_generator import EventGenerator
from .intelligence import IntelligenceReporter, SystemIntelligence
from .learning_store import LearningStore
from .patterns import PatternCatalog
from .scene_matcher import SceneMatcher
from .types import AutonomousEvent, DetectionData, SceneContext

LOGGER = logging.getLogger(__name__)


class ContextEngine:
    """Owned scene-understanding state plus the operations over it.

    Parameters
    ----------
    config : Dict, optional
        Configuration dictionary (sections ``learning``, ``business`` and
        ``events`` are read).  Every key has a default.
    catalog : PatternCatalog, optional
        Pattern catalog; the default seed catalog when omitted.  Reset
        never touches the catalog.
    clock : Callable[[], float]
        Source of the current time in seconds since epoch.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        catalog: Optional[PatternCatalog] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or {}
        self.clock = clock
        learning_cfg = self.config.get("learning", {})
        business_cfg = self.config.get("business", {})
        events_cfg = self.config.get("events", {})

        self.learning_phase_seconds = float(learning_cfg.get("learning_phase_seconds", 3600))
        self.catalog = catalog if catalog is not None else PatternCatalog()
        self.matcher = SceneMatcher(
            self.catalog,
            match_threshold=learning_cfg.get("match_threshold", 0.5),
            default_confidence=learning_cfg.get("neutral_confidence", 0.5),
        )
        self.store = LearningStore(
            history_size=learning_cfg.get("history_size", 100),
            confidence_step=learning_cfg.get("confidence_step", 0.01),
        )
        self.anomaly = AnomalyEstimator(min_history=learning_cfg.get("min_history", 10))
        self.classifier = BusinessTypeClassifier(
            min_observations=business_cfg.get("min_observations", 10),
            min_score=business_cfg.get("min_score", 2),
        )
        self.generator = EventGenerator(
            confidence_threshold=events_cfg.get("confidence_threshold", 0.5),
            anomaly_threshold=events_cfg.get("anomaly_threshold", 0.5),
            learning_anomaly_threshold=events_cfg.get("learning_anomaly_threshold", 0.3),
        )
        self.reporter = IntelligenceReporter()

        self.lock = threading.RLock()
        self.started_at = self.clock()

    # ------------------------------------------------------------------
    # Observation time
    # ------------------------------------------------------------------
    def observation_seconds(self) -> float:
        return max(0.0, self.clock() - self.started_at)

    def observation_hours(self) -> float:
        return self.observation_seconds() / 3600.0

    def is_learning_phase(self) -> bool:
        return self.observation_seconds() < self.learning_phase_seconds

    def begin_observation(self) -> None:
        """Restart the observation clock if nothing has been observed yet."""
        with self.lock:
            if self.store.observation_count == 0:
                self.started_at = self.clock()

    # ------------------------------------------------------------------
    # Per-detection processing
    # ------------------------------------------------------------------
    def infer_context(self, detection: DetectionData) -> SceneContext:
        """Build, match and score a context, updating the learning state."""
        with self.lock:
            now = self.clock()
            count = self.store.record_observation()
            learning = self.is_learning_phase()

            context = self.matcher.build_context(detection, learning_phase=learning, timestamp=now)
            pattern = self.matcher.best_match(context, detection)
            if pattern is not None:
                self.store.reinforce(pattern, now)
                context.matches_pattern = pattern.id
                context.confidence = pattern.confidence

            assessment = self.anomaly.assess(context, self.store.history)
            context.is_typical = assessment.is_typical
            context.anomaly_score = assessment.anomaly_score
            if assessment.significant:
                LOGGER.debug("Significant deviation on %s: %s", context.primary_activity, assessment.significant)

            self.classifier.update(self.store.business, detection, context, count)
            self.store.append_context(context)

            if count % 100 == 0:
                LOGGER.info(
                    "Learning progress: %d observations, %d patterns learned",
                    count,
                    len(self.store.learned_patterns),
                )
            return context

    def generate_event(self, context: SceneContext, camera_id: str) -> Optional[AutonomousEvent]:
        with self.lock:
            return self.generator.generate(
                context,
                camera_id,
                learning_phase=self.is_learning_phase(),
                business_type=self.store.business.business_type,
                observation_hours=self.observation_hours(),
                patterns_observed=len(self.store.learned_patterns),
                timestamp=self.clock(),
            )

    def process(self, detection: DetectionData, camera_id: str) -> Tuple[SceneContext, Optional[AutonomousEvent]]:
        with self.lock:
            context = self.infer_context(detection)
            return context, self.generate_event(context, camera_id)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def get_business_type(self) -> BusinessTypeDetection:
        with self.lock:
            return self.classifier.describe(
                self.store.business,
                self.store.contexts(),
                list(self.store.learned_patterns),
            )

    def get_system_intelligence(self) -> SystemIntelligence:
        with self.lock:
            return self.reporter.report(self.store, self.observation_hours())

    def current_business_type(self) -> str:
        with self.lock:
            return self.store.business.business_type

    def reset(self) -> None:
        """Forget everything learned and restart the observation clock."""
        with self.lock:
            self.store.reset()
            self.started_at = self.clock()
        LOGGER.info("Context engine reset")
