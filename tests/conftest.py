"""Shared fixtures for the autoscene test suite."""

import os
import sys
from typing import Any, Dict, Optional

import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from scene.engine import ContextEngine  # noqa: E402
from scene.types import DetectionData  # noqa: E402

# Tuesday 14 November 2023, around 22:13 UTC
START_TIME = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock used instead of ``time.time``."""

    def __init__(self, start: float = START_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


def detection(
    person_count: int = 0,
    crowd_density: float = 0.0,
    motion_intensity: float = 0.0,
    object_counts: Optional[Dict[str, int]] = None,
    zone_occupancy: float = 0.0,
) -> DetectionData:
    return DetectionData(
        person_count=person_count,
        object_counts=dict(object_counts or {}),
        crowd_density=crowd_density,
        motion_intensity=motion_intensity,
        zone_occupancy=zone_occupancy,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_engine(clock: FakeClock):
    """Factory for engines sharing the test's fake clock."""

    def _make(config: Optional[Dict[str, Any]] = None, **kwargs: Any) -> ContextEngine:
        return ContextEngine(config=config, clock=clock, **kwargs)

    return _make


@pytest.fixture
def steady_engine(make_engine, clock: FakeClock) -> ContextEngine:
    """Engine already past the one-hour learning phase."""
    engine = make_engine()
    clock.advance(3600)
    return engine
