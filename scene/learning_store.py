"""Mutable learning state shared by the scene-understanding stage.

:class:`LearningStore` owns everything that evolves as the system
observes a scene:

* a rolling history of recent :class:`~scene.types.SceneContext`
  objects (``collections.deque`` with ``maxlen`` so the oldest entry is
  evicted first),
* one :class:`LearnedPattern` per reinforced catalog pattern, including
  hour-of-day and day-of-week histograms kept as numpy arrays,
* the business-type evidence accumulated by
  :class:`~scene.business.BusinessTypeClassifier`,
* the observation counter.

The store performs no locking of its own.  :class:`~scene.engine.ContextEngine`
serialises every read-modify-write behind a single lock.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Dict, List, Optional

import numpy as np

from .patterns import Pattern
from .types import SceneContext

LOGGER = logging.getLogger(__name__)


@dataclass
class LearnedPattern:
    """Statistical record built from repeated matches of one pattern.

    ``day_of_week`` is Monday-indexed (``datetime.weekday``).
    """

    pattern_id: str
    description: str
    category: str
    first_observed: float
    last_observed: float
    count: int = 0
    confidence: float = 0.0
    hour_of_day: np.ndarray = field(default_factory=lambda: np.zeros(24, dtype=np.int64))
    day_of_week: np.ndarray = field(default_factory=lambda: np.zeros(7, dtype=np.int64))
    preceded_by: List[str] = field(default_factory=list)
    followed_by: List[str] = field(default_factory=list)
    business_relevance: float = 0.5
    pattern_type: str = "behavior"

    def peak_hour(self) -> int:
        return int(np.argmax(self.hour_of_day))

    def to_dict(self) -> Dict[str, object]:
        return {
            "pattern_id": self.pattern_id,
            "pattern_type": self.pattern_type,
            "description": self.description,
            "category": self.category,
            "first_observed": self.first_observed,
            "last_observed": self.last_observed,
            "count": self.count,
            "confidence": self.confidence,
            "hour_of_day": self.hour_of_day.tolist(),
            "day_of_week": self.day_of_week.tolist(),
            "preceded_by": list(self.preceded_by),
            "followed_by": list(self.followed_by),
            "business_relevance": self.business_relevance,
        }


@dataclass
class BusinessEvidence:
    """Per business type indicator-match counters and the current estimate."""

    scores: Dict[str, int] = field(default_factory=dict)
    business_type: str = "unknown"
    confidence: float = 0.0


class LearningStore:
    """Owned learning state.

    Parameters
    ----------
    history_size : int
        Capacity of the rolling context history.
    confidence_step : float
        Amount a pattern's confidence grows on every reinforcement.
    """

    def __init__(self, history_size: int = 100, confidence_step: float = 0.01) -> None:
        if history_size <= 0:
            raise ValueError("history_size must be positive")
        self.history_size = history_size
        self.confidence_step = confidence_step
        self.history: Deque[SceneContext] = deque(maxlen=history_size)
        self.learned_patterns: Dict[str, LearnedPattern] = {}
        self.business = BusinessEvidence()
        self.observation_count = 0
        self._last_pattern_id: Optional[str] = None

    def record_observation(self) -> int:
        self.observation_count += 1
        return self.observation_count

    def append_context(self, context: SceneContext) -> None:
        self.history.append(context)

    def reinforce(self, pattern: Pattern, now: float) -> LearnedPattern:
        """Reinforce ``pattern`` and update (or create) its learned record."""
        pattern.reinforce(now, self.confidence_step)

        learned = self.learned_patterns.get(pattern.id)
        if learned is None:
            learned = LearnedPattern(
                pattern_id=pattern.id,
                description=pattern.description,
                category=pattern.name,
                first_observed=now,
                last_observed=now,
            )
            self.learned_patterns[pattern.id] = learned
            LOGGER.info("Learned new pattern %s", pattern.id)
        learned.count += 1
        learned.last_observed = now
        learned.confidence = pattern.confidence

        moment = datetime.fromtimestamp(now)
        learned.hour_of_day[moment.hour] += 1
        learned.day_of_week[moment.weekday()] += 1

        self._link_adjacent(pattern.id)
        return learned

    def _link_adjacent(self, pattern_id: str) -> None:
        previous = self._last_pattern_id
        self._last_pattern_id = pattern_id
        if previous is None or previous == pattern_id:
            return
        before = self.learned_patterns.get(previous)
        after = self.learned_patterns[pattern_id]
        if previous not in after.preceded_by:
            after.preceded_by.append(previous)
        if before is not None and pattern_id not in before.followed_by:
            before.followed_by.append(pattern_id)

    def contexts(self) -> List[SceneContext]:
        return list(self.history)

    def reset(self) -> None:
        self.history.clear()
        self.learned_patterns.clear()
        self.business = BusinessEvidence()
        self.observation_count = 0
        self._last_pattern_id = None
        LOGGER.info("Learning store reset")
