"""Scene-understanding stage.

Turns per-frame detection records into scene contexts, learns which
scenes are typical, infers the business domain and decides which
contexts become :class:`AutonomousEvent` objects.
"""

from .engine import ContextEngine  # noqa: F401
from .patterns import DEFAULT_PATTERNS, Pattern, PatternCatalog, PatternConditions  # noqa: F401
from .types import (  # noqa: F401
    AnalysisPayload,
    AutonomousEvent,
    DetectionData,
    InventoryStatus,
    QueueMetrics,
    RawAnalysis,
    SafetyAssessment,
    SceneContext,
    SceneMetrics,
)
