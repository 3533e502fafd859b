"""Scene matcher and context builder.

:class:`SceneMatcher` turns one :class:`~scene.types.DetectionData` into a
:class:`~scene.types.SceneContext` and scores that context against every
pattern in a :class:`~scene.patterns.PatternCatalog`.

The primary activity is chosen by a prioritised rule cascade rather than
a single score: queue formation is checked first (with a lower people
threshold while the system is still in its learning phase), then single
person states, then crowd, browsing, service, rapid movement and empty
area, with ``general_activity`` as the fallback.

Pattern scoring averages the match rate over the conditions a pattern
actually defines.  A pattern with fewer conditions can therefore win
with fewer checks; this permissive behaviour is intentional and covered
by the tests.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .patterns import Pattern, PatternCatalog
from .types import DetectedObject, DetectionData, InteractionPoint, SceneContext

LOGGER = logging.getLogger(__name__)


def motion_matches(intensity: float, level: str) -> bool:
    """Return True if ``intensity`` falls in the named motion bucket."""
    if level == "static":
        return intensity < 0.1
    if level == "slow":
        return 0.1 <= intensity < 0.4
    if level == "normal":
        return 0.4 <= intensity < 0.7
    if level == "fast":
        return intensity >= 0.7
    return False


def infer_arrangement(count: int) -> str:
    if count == 1:
        return "single"
    if count <= 3:
        return "few"
    return "many"


def infer_people_arrangement(count: int, density: float) -> str:
    if count <= 1:
        return "single"
    if density < 0.2:
        return "scattered"
    if density < 0.5:
        return "grouped"
    if density < 0.7:
        return "crowded"
    return "dense"


class SceneMatcher:
    """Build scene contexts and match them against the pattern catalog.

    Parameters
    ----------
    catalog : PatternCatalog
        Patterns to score against.
    match_threshold : float
        A pattern must score strictly above this value to be accepted.
    default_confidence : float
        Context confidence used when no pattern matches.
    """

    def __init__(
        self,
        catalog: PatternCatalog,
        match_threshold: float = 0.5,
        default_confidence: float = 0.5,
    ) -> None:
        self.catalog = catalog
        self.match_threshold = match_threshold
        self.default_confidence = default_confidence

    def build_context(self, detection: DetectionData, learning_phase: bool = False, timestamp: float = 0.0) -> SceneContext:
        """Derive a scene context from a detection record (no pattern matching)."""
        return SceneContext(
            primary_activity=self.infer_primary_activity(detection, learning_phase),
            confidence=self.default_confidence,
            detected_objects=self.extract_objects(detection),
            crowd_density=detection.crowd_density,
            motion_intensity=detection.motion_intensity,
            interaction_points=self.identify_interaction_points(detection),
            timestamp=timestamp,
        )

    def infer_primary_activity(self, detection: DetectionData, learning_phase: bool = False) -> str:
        people = detection.person_count
        density = detection.crowd_density
        motion = detection.motion_intensity

        # Surface queues sooner while the baseline is still being built.
        queue_threshold = 2 if learning_phase else 3
        if people >= queue_threshold and density > 0.3 and motion < 0.3:
            return "queue_formation"

        if people == 1:
            if motion > 0.3:
                return "person_active"
            if motion < 0.1:
                return "person_stationary"
            return "person_present"
        if people >= 5 and density > 0.5:
            return "crowd_gathering"
        if people == 2 and motion < 0.1:
            return "service_interaction"
        if motion > 0.8:
            return "rapid_movement"
        if people == 0:
            return "empty_area"
        return "general_activity"

    def extract_objects(self, detection: DetectionData) -> List[DetectedObject]:
        objects = [
            DetectedObject(type=label, count=count, arrangement=infer_arrangement(count))
            for label, count in detection.object_counts.items()
        ]
        if detection.person_count > 0:
            objects.append(
                DetectedObject(
                    type="person",
                    count=detection.person_count,
                    arrangement=infer_people_arrangement(detection.person_count, detection.crowd_density),
                )
            )
        return objects

    def identify_interaction_points(self, detection: DetectionData) -> List[InteractionPoint]:
        counts = detection.object_counts
        points: List[InteractionPoint] = []
        if counts.get("cash_register") or counts.get("register") or counts.get("counter"):
            points.append(InteractionPoint(location="checkout_area", type="transaction"))
        if counts.get("desk") and detection.person_count >= 2:
            points.append(InteractionPoint(location="service_desk", type="consultation"))
        if detection.person_count >= 3 and detection.crowd_density > 0.3:
            points.append(InteractionPoint(location="queue_area", type="queue"))
        return points

    def score(self, pattern: Pattern, context: SceneContext, detection: DetectionData) -> float:
        """Average per-condition match rate over the conditions ``pattern`` defines."""
        conditions = pattern.conditions
        score = 0.0
        factors = 0

        if conditions.min_people is not None or conditions.max_people is not None:
            within = True
            if conditions.min_people is not None and detection.person_count < conditions.min_people:
                within = False
            if conditions.max_people is not None and detection.person_count > conditions.max_people:
                within = False
            if within:
                score += 1.0
            factors += 1

        if conditions.motion_level:
            if motion_matches(detection.motion_intensity, conditions.motion_level):
                score += 1.0
            factors += 1

        if conditions.object_types:
            # Substring match so e.g. "cash_register" satisfies "register".
            if any(
                required in obj.type
                for required in conditions.object_types
                for obj in context.detected_objects
            ):
                score += 1.0
            factors += 1

        if conditions.spatial_arrangement:
            if any(obj.arrangement == conditions.spatial_arrangement for obj in context.detected_objects):
                score += 0.5
            factors += 1

        return score / factors if factors else 0.0

    def best_match(self, context: SceneContext, detection: DetectionData) -> Optional[Pattern]:
        best: Optional[Pattern] = None
        highest = 0.0
        for pattern in self.catalog:
            score = self.score(pattern, context, detection)
            # Strict comparison keeps the earliest pattern on ties.
            if score > highest and score > self.match_threshold:
                highest = score
                best = pattern
        if best is not None:
            LOGGER.debug("Context %s matched pattern %s (%.2f)", context.primary_activity, best.id, highest)
        return best
