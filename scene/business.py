"""Business-type inference from indicator objects.

Every detection contributes evidence: for each business category the
classifier counts how many of its indicator labels are present, either
directly in the detection's ``object_counts`` or as a substring of an
extracted object type.  Scores accumulate over the session.  Once more
than ``min_observations`` detections have been seen and the leading score
reaches ``min_score`` the leader becomes the current estimate with
``confidence = min(1, score / 5)``.  The estimate may move between types
as evidence accumulates but never falls back to ``unknown`` short of a
reset of the learning store.

The current estimate also selects a small static monitoring profile
(primary focus, alert priorities, key metrics) and the vocabulary used in
generated recommendations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .learning_store import BusinessEvidence
from .types import DetectionData, SceneContext

LOGGER = logging.getLogger(__name__)

BUSINESS_INDICATORS: Dict[str, List[str]] = {
    "retail_store": ["checkout", "shelf", "cart", "product", "cash_register"],
    "restaurant": ["table", "chair", "menu", "kitchen", "waiter"],
    "grocery": ["produce", "cart", "checkout", "freezer", "shelf"],
    "warehouse": ["forklift", "pallet", "box", "loading_dock", "safety_vest"],
    "healthcare": ["waiting_room", "reception", "wheelchair", "medical_equipment"],
    "office": ["desk", "computer", "meeting_room", "printer"],
    "gym": ["equipment", "weights", "mat", "mirror", "locker"],
    "salon": ["chair", "mirror", "sink", "styling_tools"],
    "auto_service": ["car", "lift", "tool", "tire", "service_bay"],
}

RETAIL_BUSINESSES = {"retail_store", "grocery"}
SERVICE_BUSINESSES = {"restaurant", "healthcare", "salon", "auto_service"}
QUEUE_MONITORED_BUSINESSES = {"retail_store", "grocery", "restaurant", "healthcare"}
SAFETY_MONITORED_BUSINESSES = {"warehouse", "gym", "auto_service"}

SERVICE_POINT_TERMS: Dict[str, str] = {
    "retail_store": "checkout lanes",
    "grocery": "checkout lanes",
    "restaurant": "host stations",
    "healthcare": "reception desks",
    "salon": "service chairs",
    "auto_service": "service bays",
}


def is_retail_business(business_type: str) -> bool:
    return business_type in RETAIL_BUSINESSES


def is_service_business(business_type: str) -> bool:
    return business_type in SERVICE_BUSINESSES


def requires_queue_monitoring(business_type: str) -> bool:
    return business_type in QUEUE_MONITORED_BUSINESSES


def requires_safety_monitoring(business_type: str) -> bool:
    return business_type in SAFETY_MONITORED_BUSINESSES


def service_point_term(business_type: str) -> str:
    return SERVICE_POINT_TERMS.get(business_type, "service points")


def primary_focus(business_type: str) -> List[str]:
    if is_retail_business(business_type):
        return ["queue_management", "inventory_monitoring", "customer_service"]
    if business_type == "restaurant":
        return ["table_turnover", "wait_times", "service_flow"]
    if business_type == "warehouse":
        return ["safety_compliance", "efficiency", "inventory_movement"]
    if business_type == "healthcare":
        return ["patient_flow", "wait_times", "privacy"]
    return ["general_monitoring"]


def alert_priorities(business_type: str) -> List[str]:
    if requires_safety_monitoring(business_type):
        return ["safety", "efficiency", "compliance"]
    if is_retail_business(business_type):
        return ["long_queues", "low_inventory", "customer_needs"]
    if business_type == "healthcare":
        return ["urgent_patients", "long_waits", "privacy"]
    return ["anomalies", "crowding", "safety"]


def key_metrics(business_type: str) -> List[str]:
    if is_retail_business(business_type):
        return ["queue_length", "wait_time", "inventory_levels"]
    if business_type == "restaurant":
        return ["table_occupancy", "service_time", "queue_length"]
    if business_type == "warehouse":
        return ["safety_incidents", "throughput", "space_utilization"]
    return ["occupancy", "activity_level", "anomalies"]


@dataclass
class BusinessTypeDetection:
    detected_type: str
    confidence: float
    objects_seen: List[str] = field(default_factory=list)
    patterns_observed: List[str] = field(default_factory=list)
    interaction_types: List[str] = field(default_factory=list)
    characteristics: Dict[str, bool] = field(default_factory=dict)
    primary_focus: List[str] = field(default_factory=list)
    alert_priorities: List[str] = field(default_factory=list)
    key_metrics: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "detected_type": self.detected_type,
            "confidence": self.confidence,
            "evidence": {
                "objects_seen": list(self.objects_seen),
                "patterns_observed": list(self.patterns_observed),
                "interaction_types": list(self.interaction_types),
            },
            "characteristics": dict(self.characteristics),
            "recommended_monitoring": {
                "primary_focus": list(self.primary_focus),
                "alert_priorities": list(self.alert_priorities),
                "key_metrics": list(self.key_metrics),
            },
        }


class BusinessTypeClassifier:
    """Accumulate indicator evidence into a business-type estimate.

    Parameters
    ----------
    indicators : Dict[str, List[str]], optional
        Business type to indicator labels.  Table order breaks ties.
    min_observations : int
        Observation count that must be exceeded before an estimate is set.
    min_score : int
        Minimum cumulative score of the leading type.
    """

    def __init__(
        self,
        indicators: Optional[Dict[str, List[str]]] = None,
        min_observations: int = 10,
        min_score: int = 2,
    ) -> None:
        self.indicators = indicators or BUSINESS_INDICATORS
        self.min_observations = min_observations
        self.min_score = min_score

    def count_indicators(self, detection: DetectionData, context: SceneContext) -> Dict[str, int]:
        """Indicator matches in a single detection, per business type."""
        object_types = [obj.type for obj in context.detected_objects]
        matches: Dict[str, int] = {}
        for business, indicators in self.indicators.items():
            matches[business] = sum(
                1
                for indicator in indicators
                if detection.object_counts.get(indicator) or any(indicator in t for t in object_types)
            )
        return matches

    def update(
        self,
        evidence: BusinessEvidence,
        detection: DetectionData,
        context: SceneContext,
        observation_count: int,
    ) -> BusinessEvidence:
        for business, hits in self.count_indicators(detection, context).items():
            evidence.scores[business] = evidence.scores.get(business, 0) + hits

        leader = "unknown"
        top = 0
        for business in self.indicators:
            score = evidence.scores.get(business, 0)
            if score > top:
                leader, top = business, score

        if observation_count > self.min_observations and top >= self.min_score:
            if leader != evidence.business_type:
                LOGGER.info("Business type estimate changed: %s -> %s", evidence.business_type, leader)
            evidence.business_type = leader
            evidence.confidence = min(1.0, top / 5.0)
        return evidence

    def describe(
        self,
        evidence: BusinessEvidence,
        history: Sequence[SceneContext],
        pattern_ids: Sequence[str],
    ) -> BusinessTypeDetection:
        """Build a full :class:`BusinessTypeDetection` report."""
        objects_seen: List[str] = []
        interaction_types: List[str] = []
        for context in history:
            for obj in context.detected_objects:
                if obj.type not in objects_seen:
                    objects_seen.append(obj.type)
            for point in context.interaction_points:
                if point.type not in interaction_types:
                    interaction_types.append(point.type)

        business_type = evidence.business_type
        characteristics = {
            "has_queues": any(c.primary_activity == "queue_formation" for c in history),
            "has_inventory": any(o in ("shelf", "product", "inventory") for o in objects_seen),
            "has_seating": any(o in ("chair", "table", "booth") for o in objects_seen),
            "has_transactions": "transaction" in interaction_types,
            "has_appointments": business_type in ("healthcare", "salon"),
            "is_service_business": is_service_business(business_type),
            "needs_queue_monitoring": requires_queue_monitoring(business_type),
            "needs_safety_monitoring": requires_safety_monitoring(business_type),
        }
        return BusinessTypeDetection(
            detected_type=business_type,
            confidence=evidence.confidence,
            objects_seen=objects_seen,
            patterns_observed=list(pattern_ids),
            interaction_types=interaction_types,
            characteristics=characteristics,
            primary_focus=primary_focus(business_type),
            alert_priorities=alert_priorities(business_type),
            key_metrics=key_metrics(business_type),
        )
