"""Autonomous event generation.

The generator is gated by a two-state machine driven by observation time:

* **learning phase** (first hour by default): every context yields an
  event so operators can see the system at work.  Urgency is forced to
  ``low``, the anomaly flag uses a lowered 0.3 threshold and descriptions
  use learning-phase wording.
* **steady state**: an event is produced only when the context
  confidence or its anomaly score reaches 0.5.  Urgency and
  recommendations follow simple rules over anomaly, motion and density.

The phase itself is decided by :class:`~scene.engine.ContextEngine`; the
generator just receives the flag.
"""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from .business import service_point_term
from .types import (
    AnalysisPayload,
    AutonomousEvent,
    LearningMetadata,
    SceneContext,
    SceneMetrics,
)

LOGGER = logging.getLogger(__name__)

LEARNING_RECOMMENDATIONS = [
    "System is learning your environment",
    "More activity helps learning",
]


def is_queue_context(context: SceneContext) -> bool:
    return context.primary_activity == "queue_formation" or context.matches_pattern == "queue_formation"


def determine_urgency(context: SceneContext) -> str:
    if context.anomaly_score > 0.8 or context.motion_intensity > 0.9:
        return "critical"
    if is_queue_context(context) and context.crowd_density > 0.7:
        return "high"
    if context.anomaly_score > 0.5:
        return "medium"
    return "low"


def generate_recommendations(context: SceneContext, business_type: str = "unknown") -> List[str]:
    recommendations: List[str] = []
    if is_queue_context(context) and context.crowd_density > 0.5:
        recommendations.append(f"Consider opening additional {service_point_term(business_type)}")
    if context.anomaly_score > 0.7:
        recommendations.append("Investigate unusual activity")
    if context.motion_intensity > 0.8:
        recommendations.append("Check for safety concerns")
    return recommendations


def infer_location(context: SceneContext) -> str:
    if context.interaction_points:
        return context.interaction_points[0].location
    return "main_area"


def learning_description(context: SceneContext) -> str:
    parts = ["Learning:"]
    people = context.people_count
    others = [obj for obj in context.detected_objects if obj.type != "person"]
    if people > 0:
        parts.append(f"{people} person{'s' if people > 1 else ''} detected.")
    if others:
        parts.append(f"{len(others)} object type{'s' if len(others) > 1 else ''}.")
    parts.append(
        f"Density: {context.crowd_density * 100:.0f}%, Motion: {context.motion_intensity * 100:.0f}%."
    )
    parts.append("Building baseline patterns...")
    return " ".join(parts)


def steady_description(context: SceneContext, business_type: str = "unknown") -> str:
    description = f"Detected {context.primary_activity}"
    if context.people_count:
        description += f" with {context.people_count} people"
    if business_type != "unknown":
        description += f" at this {business_type.replace('_', ' ')}"
    if context.is_typical:
        description += " (typical for this time)"
    elif context.anomaly_score > 0.5:
        description += " (unusual activity)"
    return description


class EventGenerator:
    """Decide whether a context is worth an :class:`AutonomousEvent`.

    Parameters
    ----------
    confidence_threshold : float
        Steady-state minimum context confidence.
    anomaly_threshold : float
        Steady-state minimum anomaly score (either threshold suffices) and
        the steady-state anomaly flag threshold.
    learning_anomaly_threshold : float
        Anomaly flag threshold during the learning phase.
    """

    def __init__(
        self,
        confidence_threshold: float = 0.5,
        anomaly_threshold: float = 0.5,
        learning_anomaly_threshold: float = 0.3,
    ) -> None:
        self.confidence_threshold = confidence_threshold
        self.anomaly_threshold = anomaly_threshold
        self.learning_anomaly_threshold = learning_anomaly_threshold

    def should_emit(self, context: SceneContext, learning_phase: bool) -> bool:
        if learning_phase:
            return True
        return context.confidence >= self.confidence_threshold or context.anomaly_score >= self.anomaly_threshold

    def generate(
        self,
        context: SceneContext,
        camera_id: str,
        learning_phase: bool,
        business_type: str = "unknown",
        observation_hours: float = 0.0,
        patterns_observed: int = 0,
        timestamp: Optional[float] = None,
    ) -> Optional[AutonomousEvent]:
        if not self.should_emit(context, learning_phase):
            return None

        metrics = SceneMetrics(
            activity=context.primary_activity,
            confidence=context.confidence,
            crowd_density=context.crowd_density,
            motion_intensity=context.motion_intensity,
            is_typical=context.is_typical,
            anomaly_score=context.anomaly_score,
            people_count=context.people_count,
            objects_detected=list(context.detected_objects),
            learning_phase=learning_phase,
            patterns_observed=patterns_observed,
            observation_hours=observation_hours,
        )
        if learning_phase:
            payload = AnalysisPayload(
                description=learning_description(context),
                structured_data=metrics,
                recommendations=list(LEARNING_RECOMMENDATIONS),
                urgency="low",
            )
            anomaly_threshold = self.learning_anomaly_threshold
            trigger = context.matches_pattern or "learning"
        else:
            payload = AnalysisPayload(
                description=steady_description(context, business_type),
                structured_data=metrics,
                recommendations=generate_recommendations(context, business_type),
                urgency=determine_urgency(context),
            )
            anomaly_threshold = self.anomaly_threshold
            trigger = context.matches_pattern or "unknown"

        event = AutonomousEvent(
            id=str(uuid.uuid4()),
            timestamp=context.timestamp if timestamp is None else timestamp,
            detected_context=context.primary_activity or "learning_observation",
            inferred_location=infer_location(context),
            business_context=business_type,
            trigger_pattern=trigger,
            confidence=context.confidence,
            is_anomaly=context.anomaly_score > anomaly_threshold,
            ai_analysis=payload,
            learning_metadata=LearningMetadata(
                pattern_reinforced=context.matches_pattern is not None,
                pattern_id=context.matches_pattern or "",
                feedback_value=context.confidence,
            ),
            camera_id=camera_id,
        )
        LOGGER.debug("Generated event %s for %s (%s)", event.id, event.detected_context, payload.urgency)
        return event
