"""Read-only "system intelligence" view over the learning state.

:class:`IntelligenceReporter` never mutates anything: it derives a fresh
:class:`SystemIntelligence` snapshot from the learning store, the
business evidence and the observation time.  It is safe to call before
any detection has happened, in which case it returns defaults.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Dict, List, Sequence

import numpy as np

from .learning_store import LearningStore
from .types import SceneContext


@dataclass
class PeakPeriod:
    time: str
    activity: str
    frequency: str = "daily"


@dataclass
class EfficiencyMetric:
    metric: str
    value: float
    trend: str
    benchmark: float


@dataclass
class Insight:
    type: str  # "optimization", "warning" or "opportunity"
    description: str
    impact: str
    confidence: float


@dataclass
class SystemIntelligence:
    observation_hours: float = 0.0
    observation_count: int = 0
    patterns_learned: int = 0
    accuracy_trend: str = "improving"
    business_type: str = "unknown"
    confidence_level: float = 0.0
    contexts_identified: List[str] = field(default_factory=list)
    peak_periods: List[PeakPeriod] = field(default_factory=list)
    efficiency_metrics: List[EfficiencyMetric] = field(default_factory=list)
    insights: List[Insight] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


def mean_confidence(contexts: Sequence[SceneContext]) -> float:
    if not contexts:
        return 0.0
    return float(np.mean([c.confidence for c in contexts]))


class IntelligenceReporter:
    """Aggregate learning state into a :class:`SystemIntelligence` snapshot.

    Parameters
    ----------
    trend_window : int
        Size of the two confidence windows compared for the accuracy trend.
    trend_min_observations : int
        Below this many observations the trend is reported as improving.
    trend_dead_band : float
        Change in mean confidence considered stable.
    """

    def __init__(
        self,
        trend_window: int = 10,
        trend_min_observations: int = 100,
        trend_dead_band: float = 0.1,
        queue_insight_min: int = 10,
        anomaly_insight_min: int = 5,
        business_insight_confidence: float = 0.8,
    ) -> None:
        self.trend_window = trend_window
        self.trend_min_observations = trend_min_observations
        self.trend_dead_band = trend_dead_band
        self.queue_insight_min = queue_insight_min
        self.anomaly_insight_min = anomaly_insight_min
        self.business_insight_confidence = business_insight_confidence

    def report(self, store: LearningStore, observation_hours: float) -> SystemIntelligence:
        history = store.contexts()
        business = store.business
        return SystemIntelligence(
            observation_hours=observation_hours,
            observation_count=store.observation_count,
            patterns_learned=len(store.learned_patterns),
            accuracy_trend=self.accuracy_trend(history, store.observation_count),
            business_type=business.business_type,
            confidence_level=business.confidence,
            contexts_identified=self.contexts_identified(history),
            peak_periods=self.peak_periods(store),
            efficiency_metrics=self.efficiency_metrics(store, history),
            insights=self.insights(history, business.business_type, business.confidence),
        )

    def accuracy_trend(self, history: Sequence[SceneContext], observation_count: int) -> str:
        window = self.trend_window
        if observation_count < self.trend_min_observations or len(history) < 2 * window:
            return "improving"
        recent = mean_confidence(history[-window:])
        older = mean_confidence(history[-2 * window:-window])
        if recent > older + self.trend_dead_band:
            return "improving"
        if recent < older - self.trend_dead_band:
            return "declining"
        return "stable"

    @staticmethod
    def contexts_identified(history: Sequence[SceneContext]) -> List[str]:
        seen: List[str] = []
        for context in history:
            if context.primary_activity not in seen:
                seen.append(context.primary_activity)
        return seen

    @staticmethod
    def peak_periods(store: LearningStore) -> List[PeakPeriod]:
        return [
            PeakPeriod(time=f"{learned.peak_hour()}:00", activity=learned.category)
            for learned in store.learned_patterns.values()
        ]

    @staticmethod
    def efficiency_metrics(store: LearningStore, history: Sequence[SceneContext]) -> List[EfficiencyMetric]:
        recognition = len(store.learned_patterns) / max(1, store.observation_count) * 100
        return [
            EfficiencyMetric("Pattern Recognition Rate", recognition, "increasing", 80),
            EfficiencyMetric("Anomaly Detection Accuracy", store.business.confidence * 100, "stable", 90),
            EfficiencyMetric("Context Confidence", mean_confidence(history) * 100, "improving", 75),
        ]

    def insights(self, history: Sequence[SceneContext], business_type: str, business_confidence: float) -> List[Insight]:
        insights: List[Insight] = []
        queue_contexts = sum(1 for c in history if c.primary_activity == "queue_formation")
        if queue_contexts >= self.queue_insight_min:
            insights.append(
                Insight(
                    type="optimization",
                    description="Regular queue formation detected. Consider optimizing service flow.",
                    impact="Could reduce wait times by 20-30%",
                    confidence=0.8,
                )
            )
        anomalous = sum(1 for c in history if c.anomaly_score > 0.5)
        if anomalous > self.anomaly_insight_min:
            insights.append(
                Insight(
                    type="warning",
                    description="Multiple anomalies detected. Review operations for irregularities.",
                    impact="May indicate operational issues",
                    confidence=0.7,
                )
            )
        if business_confidence > self.business_insight_confidence:
            insights.append(
                Insight(
                    type="opportunity",
                    description=f"System has learned your {business_type} operations. Ready for advanced analytics.",
                    impact="Enable predictive insights and automation",
                    confidence=0.9,
                )
            )
        return insights
