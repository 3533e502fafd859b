"""Shared data structures for the scene-understanding stage.

Everything that flows between the scene matcher, the learning store, the
event generator and the analysis scheduler is defined here as a plain
dataclass.  The records are deliberately dumb containers; the logic that
fills them lives in the sibling modules.

The ``structured_data`` carried by an :class:`AnalysisPayload` is a tagged
union: one of :class:`SceneMetrics`, :class:`QueueMetrics`,
:class:`InventoryStatus`, :class:`SafetyAssessment` or
:class:`RawAnalysis`.  Each variant exposes a ``kind`` tag and a
``to_dict`` helper so the UI can serialise it without type checks.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass
class DetectionData:
    """One frame's worth of detection output.

    Attributes
    ----------
    person_count : int
        Number of people detected in the frame.
    object_counts : Dict[str, int]
        Map of object label to count (people excluded).
    crowd_density : float
        Fraction of the frame covered by people, 0-1.
    motion_intensity : float
        Scale of movement, 0-1.
    zone_occupancy : float
        Fraction of the monitored area that is occupied, 0-1.
    """

    person_count: int = 0
    object_counts: Dict[str, int] = field(default_factory=dict)
    crowd_density: float = 0.0
    motion_intensity: float = 0.0
    zone_occupancy: float = 0.0

    @classmethod
    def empty(cls) -> "DetectionData":
        return cls()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetectionData":
        return cls(
            person_count=int(data.get("person_count", 0)),
            object_counts={str(k): int(v) for k, v in (data.get("object_counts") or {}).items()},
            crowd_density=float(data.get("crowd_density", 0.0)),
            motion_intensity=float(data.get("motion_intensity", 0.0)),
            zone_occupancy=float(data.get("zone_occupancy", 0.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DetectedObject:
    type: str
    count: int
    arrangement: str


@dataclass
class InteractionPoint:
    location: str
    type: str  # "transaction", "consultation" or "queue"


@dataclass
class SceneContext:
    """Semantic summary of a single detection record.

    Created fresh for every detection, appended to the rolling history and
    treated as read-only afterwards.
    """

    primary_activity: str
    confidence: float
    detected_objects: List[DetectedObject] = field(default_factory=list)
    crowd_density: float = 0.0
    motion_intensity: float = 0.0
    interaction_points: List[InteractionPoint] = field(default_factory=list)
    matches_pattern: Optional[str] = None
    is_typical: bool = False
    anomaly_score: float = 0.0
    timestamp: float = 0.0

    @property
    def people_count(self) -> int:
        for obj in self.detected_objects:
            if obj.type == "person":
                return obj.count
        return 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Structured analysis data (tagged union)
# ---------------------------------------------------------------------------


@dataclass
class SceneMetrics:
    """Context-derived metrics attached by the event generator."""

    activity: str
    confidence: float
    crowd_density: float
    motion_intensity: float
    is_typical: bool
    anomaly_score: float
    people_count: int = 0
    objects_detected: List[DetectedObject] = field(default_factory=list)
    learning_phase: bool = False
    patterns_observed: int = 0
    observation_hours: float = 0.0
    quick_analysis: bool = False
    deep_metrics: Dict[str, Any] = field(default_factory=dict)

    kind = "scene"

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, **asdict(self)}


@dataclass
class QueueMetrics:
    people_count: int = 0
    estimated_wait_minutes: float = 0.0
    customer_mood: str = "neutral"
    staff_needed: bool = False
    queue_length_meters: Optional[float] = None

    kind = "queue"

    @classmethod
    def from_metrics(cls, metrics: Dict[str, Any]) -> "QueueMetrics":
        length = metrics.get("queue_length_meters")
        return cls(
            people_count=int(metrics.get("people_count", metrics.get("queue_length", 0)) or 0),
            estimated_wait_minutes=float(metrics.get("estimated_wait_minutes", metrics.get("wait_time", 0.0)) or 0.0),
            customer_mood=str(metrics.get("customer_mood", "neutral")),
            staff_needed=bool(metrics.get("staff_needed", False)),
            queue_length_meters=float(length) if length is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, **asdict(self)}


@dataclass
class InventoryStatus:
    products_visible: int = 0
    shelf_capacity_used: float = 0.0
    restocking_needed: bool = False
    product_categories: List[str] = field(default_factory=list)
    empty_spots: int = 0

    kind = "inventory"

    @classmethod
    def from_metrics(cls, metrics: Dict[str, Any]) -> "InventoryStatus":
        return cls(
            products_visible=int(metrics.get("products_visible", 0) or 0),
            shelf_capacity_used=float(metrics.get("shelf_capacity_used", metrics.get("stock_percentage", 0.0)) or 0.0),
            restocking_needed=bool(metrics.get("restocking_needed", False)),
            product_categories=[str(c) for c in metrics.get("product_categories", []) or []],
            empty_spots=int(metrics.get("empty_spots", 0) or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, **asdict(self)}


@dataclass
class SafetyAssessment:
    hazard_type: str = "unknown"
    immediate_action: bool = False
    affected_area: str = ""
    severity: str = "low"
    estimated_risk: float = 0.0

    kind = "safety"

    @classmethod
    def from_metrics(cls, metrics: Dict[str, Any]) -> "SafetyAssessment":
        return cls(
            hazard_type=str(metrics.get("hazard_type", "unknown")),
            immediate_action=bool(metrics.get("immediate_action", False)),
            affected_area=str(metrics.get("affected_area", "")),
            severity=str(metrics.get("severity", metrics.get("risk_level", "low"))),
            estimated_risk=float(metrics.get("estimated_risk", 0.0) or 0.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, **asdict(self)}


@dataclass
class RawAnalysis:
    """Deep-analysis text that could not be parsed into structured fields."""

    text: str

    kind = "raw"

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "text": self.text}


StructuredData = Union[SceneMetrics, QueueMetrics, InventoryStatus, SafetyAssessment, RawAnalysis]


@dataclass
class AnalysisPayload:
    description: str
    structured_data: StructuredData
    recommendations: List[str] = field(default_factory=list)
    urgency: str = "low"
    patterns_observed: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "structured_data": self.structured_data.to_dict(),
            "recommendations": list(self.recommendations),
            "urgency": self.urgency,
            "patterns_observed": list(self.patterns_observed),
        }


@dataclass
class LearningMetadata:
    pattern_reinforced: bool
    pattern_id: str
    feedback_value: float
    new_pattern_detected: bool = False


@dataclass
class AutonomousEvent:
    """An event worth surfacing, optionally enhanced by deep analysis.

    Events are treated as immutable; the scheduler replaces an in-flight
    event with an enhanced copy (see :func:`dataclasses.replace`) rather
    than mutating it.
    """

    id: str
    timestamp: float
    detected_context: str
    inferred_location: str
    business_context: str
    trigger_pattern: str
    confidence: float
    is_anomaly: bool
    ai_analysis: AnalysisPayload
    learning_metadata: LearningMetadata
    camera_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "detected_context": self.detected_context,
            "inferred_location": self.inferred_location,
            "business_context": self.business_context,
            "trigger_pattern": self.trigger_pattern,
            "confidence": self.confidence,
            "is_anomaly": self.is_anomaly,
            "ai_analysis": self.ai_analysis.to_dict(),
            "learning_metadata": asdict(self.learning_metadata),
            "camera_id": self.camera_id,
        }
