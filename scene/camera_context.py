"""Per-camera context learned from observed scenes.

Cameras are never configured with a purpose.  Instead each camera's
:class:`CameraContext` accumulates the activities and patterns it sees,
an exponential moving average of occupancy, the hour slots that look
busy or quiet, and a guess at what the camera is pointed at.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Dict, List

from .types import SceneContext


@dataclass
class CameraContext:
    camera_id: str
    stream_url: str = ""
    primary_view: str = "unknown"
    coverage_area: str = "full_frame"
    typical_activity: List[str] = field(default_factory=list)
    common_patterns: List[str] = field(default_factory=list)
    peak_times: List[str] = field(default_factory=list)
    quiet_times: List[str] = field(default_factory=list)
    typical_occupancy: float = 0.0
    importance_score: float = 1.0

    def update(self, context: SceneContext, now: float) -> None:
        if context.primary_activity and context.primary_activity not in self.typical_activity:
            self.typical_activity.append(context.primary_activity)
        if context.matches_pattern and context.matches_pattern not in self.common_patterns:
            self.common_patterns.append(context.matches_pattern)

        # Density scaled to an approximate head count.
        self.typical_occupancy = self.typical_occupancy * 0.95 + context.crowd_density * 10 * 0.05

        slot = f"{datetime.fromtimestamp(now).hour}:00"
        if context.crowd_density > 0.5:
            if slot not in self.peak_times:
                self.peak_times.append(slot)
        elif context.crowd_density < 0.2 and slot not in self.quiet_times:
            self.quiet_times.append(slot)

        if self.primary_view == "unknown":
            if "queue_formation" in self.common_patterns:
                self.primary_view = "checkout_area"
            elif "customer_browsing" in self.common_patterns:
                self.primary_view = "shopping_floor"

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)
