"""Seed catalog of behavioural patterns.

Patterns are condition templates that work in any environment: a queue
forming, a crowd gathering, someone browsing a display, a service
interaction at a counter, or a potential hazard.  The conditions are
deliberately coarse because the only evidence available is a detection
record (counts, densities and labels).

A :class:`Pattern` combines the immutable template with a couple of
learned counters (confidence, occurrence count, first/last seen).  The
counters are only touched through :meth:`Pattern.reinforce`, which keeps
confidence monotonically non-decreasing and capped at 1.0.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

MOTION_LEVELS = ("static", "slow", "normal", "fast")
SPATIAL_ARRANGEMENTS = ("line", "cluster", "scattered", "grid")


@dataclass(frozen=True)
class PatternConditions:
    """Matchable conditions.  ``None`` means the condition is not defined."""

    min_people: Optional[int] = None
    max_people: Optional[int] = None
    object_types: Optional[List[str]] = None
    motion_level: Optional[str] = None
    duration_seconds: Optional[int] = None
    spatial_arrangement: Optional[str] = None

    def __post_init__(self) -> None:
        if self.motion_level is not None and self.motion_level not in MOTION_LEVELS:
            raise ValueError(f"Unknown motion level: {self.motion_level}")
        if self.spatial_arrangement is not None and self.spatial_arrangement not in SPATIAL_ARRANGEMENTS:
            raise ValueError(f"Unknown spatial arrangement: {self.spatial_arrangement}")
        if (
            self.min_people is not None
            and self.max_people is not None
            and self.min_people > self.max_people
        ):
            raise ValueError("min_people must not exceed max_people")


@dataclass
class Pattern:
    id: str
    name: str
    description: str
    conditions: PatternConditions
    confidence: float = 1.0
    occurrence_count: int = 0
    first_seen: Optional[float] = None
    last_seen: Optional[float] = None
    typical_contexts: List[str] = field(default_factory=list)
    business_types: List[str] = field(default_factory=list)

    def reinforce(self, now: float, step: float = 0.01) -> None:
        """Record one more occurrence of this pattern."""
        self.occurrence_count += 1
        if self.first_seen is None:
            self.first_seen = now
        self.last_seen = now
        self.confidence = min(1.0, self.confidence + max(0.0, step))


DEFAULT_PATTERNS: List[Pattern] = [
    Pattern(
        id="queue_formation",
        name="Queue Formation",
        description="Multiple people standing in line",
        conditions=PatternConditions(
            min_people=3,
            spatial_arrangement="line",
            motion_level="static",
            duration_seconds=30,
        ),
        typical_contexts=["checkout", "service_desk", "entrance"],
        business_types=["retail_store", "restaurant", "healthcare"],
    ),
    Pattern(
        id="crowd_gathering",
        name="Crowd Gathering",
        description="Dense group of people",
        conditions=PatternConditions(
            min_people=5,
            spatial_arrangement="cluster",
            motion_level="slow",
        ),
        typical_contexts=["entrance", "event_area", "sale_zone"],
        business_types=["retail_store", "restaurant", "gym"],
    ),
    Pattern(
        id="customer_browsing",
        name="Customer Browsing",
        description="Person examining products/displays",
        conditions=PatternConditions(
            min_people=1,
            motion_level="slow",
            duration_seconds=60,
            object_types=["shelf", "display", "product"],
        ),
        typical_contexts=["retail_floor", "showroom"],
        business_types=["retail_store", "grocery"],
    ),
    Pattern(
        id="service_interaction",
        name="Service Interaction",
        description="Customer-staff interaction at fixed point",
        conditions=PatternConditions(
            min_people=2,
            motion_level="static",
            duration_seconds=120,
            object_types=["counter", "desk", "register"],
        ),
        typical_contexts=["checkout", "service_desk", "consultation"],
        business_types=["retail_store", "healthcare", "salon"],
    ),
    Pattern(
        id="potential_hazard",
        name="Potential Hazard",
        description="Unsafe condition detected",
        conditions=PatternConditions(
            object_types=["spill", "obstacle", "fallen_item"],
            motion_level="fast",
        ),
        typical_contexts=["floor", "aisle", "entrance"],
        business_types=["all"],
    ),
]


class PatternCatalog:
    """Ordered collection of patterns.

    Iteration order is definition order, which the matcher relies on to
    break score ties (first defined, first kept).

    Parameters
    ----------
    patterns : List[Pattern], optional
        Patterns to load.  Defaults to a deep copy of
        :data:`DEFAULT_PATTERNS` so separate catalogs never share learned
        counters.
    """

    def __init__(self, patterns: Optional[List[Pattern]] = None) -> None:
        source = DEFAULT_PATTERNS if patterns is None else patterns
        self._patterns: Dict[str, Pattern] = {}
        for pattern in copy.deepcopy(source):
            if pattern.id in self._patterns:
                raise ValueError(f"Duplicate pattern id: {pattern.id}")
            self._patterns[pattern.id] = pattern

    def __iter__(self) -> Iterator[Pattern]:
        return iter(self._patterns.values())

    def __len__(self) -> int:
        return len(self._patterns)

    def __contains__(self, pattern_id: object) -> bool:
        return pattern_id in self._patterns

    def get(self, pattern_id: str) -> Optional[Pattern]:
        return self._patterns.get(pattern_id)

    def ids(self) -> List[str]:
        return list(self._patterns.keys())
