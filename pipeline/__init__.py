"""Pipeline package for the autoscene project.

The pipeline ties together frame sources, detection backends, the
scene engine, the priority event queue and the analysis scheduler.  It
provides the :class:`MonitoringPipeline` entry point used by ``app.py``
and the web UI.
"""

from .analyzers import AnalysisError, DeepAnalyzer, OllamaAnalyzer  # noqa: F401
from .event_queue import Priority, PriorityEventQueue, QueuedEvent  # noqa: F401
from .monitor import MonitoringPipeline, MonitoringState  # noqa: F401
from .scheduler import EventScheduler  # noqa: F401
from .sources import DetectionBackend, FrameSource, ReplaySource, VideoFrame  # noqa: F401
