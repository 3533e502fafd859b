"""Typicality and anomaly estimation against the rolling history."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Sequence

import numpy as np

from .types import SceneContext


@dataclass
class AnomalyAssessment:
    is_typical: bool
    anomaly_score: float
    # Deviations above the significance level, keyed by signal name.
    significant: Dict[str, float] = field(default_factory=dict)


class AnomalyEstimator:
    """Compare a context with recent history.

    With fewer than ``min_history`` entries there is not enough evidence,
    so every context is typical with a zero anomaly score.  Otherwise a
    context is typical when more than ``typical_fraction`` of the history
    shares its primary activity, and the anomaly score is the mean of the
    significant deviation signals (density, motion, unseen activity).
    Each signal is clamped to 1.0 before averaging.

    Parameters
    ----------
    min_history : int
        History entries required before estimating.
    typical_fraction : float
        Share of history an activity must exceed to count as typical.
    significance : float
        A deviation signal only counts if it exceeds this value.
    new_activity_penalty : float
        Signal value for an activity never seen in the history.
    """

    def __init__(
        self,
        min_history: int = 10,
        typical_fraction: float = 0.1,
        significance: float = 0.5,
        new_activity_penalty: float = 0.5,
    ) -> None:
        self.min_history = min_history
        self.typical_fraction = typical_fraction
        self.significance = significance
        self.new_activity_penalty = new_activity_penalty

    def is_typical(self, context: SceneContext, history: Sequence[SceneContext]) -> bool:
        if len(history) < self.min_history:
            return True
        similar = sum(1 for past in history if past.primary_activity == context.primary_activity)
        return similar > len(history) * self.typical_fraction

    def deviation_signals(self, context: SceneContext, history: Sequence[SceneContext]) -> Dict[str, float]:
        """Return the deviation signals, clamped to [0, 1], that exceed the significance level."""
        densities = np.array([past.crowd_density for past in history], dtype=float)
        motions = np.array([past.motion_intensity for past in history], dtype=float)

        signals: Dict[str, float] = {}
        mean_density = float(densities.mean())
        density_dev = min(1.0, abs(context.crowd_density - mean_density) / (mean_density or 1.0))
        if density_dev > self.significance:
            signals["crowd_density"] = density_dev

        mean_motion = float(motions.mean())
        motion_dev = min(1.0, abs(context.motion_intensity - mean_motion) / (mean_motion or 1.0))
        if motion_dev > self.significance:
            signals["motion_intensity"] = motion_dev

        if not any(past.primary_activity == context.primary_activity for past in history):
            signals["new_activity"] = self.new_activity_penalty
        return signals

    def assess(self, context: SceneContext, history: Sequence[SceneContext]) -> AnomalyAssessment:
        if len(history) < self.min_history:
            return AnomalyAssessment(is_typical=True, anomaly_score=0.0)
        signals = self.deviation_signals(context, history)
        score = float(np.mean(list(signals.values()))) if signals else 0.0
        return AnomalyAssessment(
            is_typical=self.is_typical(context, history),
            anomaly_score=score,
            significant=signals,
        )
