"""Frame-source and detection-backend interfaces.

Camera capture and the object-detection model live outside this
project.  The monitoring pipeline talks to them only through
:class:`FrameSource` and :class:`DetectionBackend`.  A backend must be
callable at the detection cadence and must not queue work internally.

:class:`ReplaySource` implements both interfaces on top of a JSON-lines
file of detection records, which lets the application run end to end
without a camera or a detection model.  Each line is an object with the
detection fields (``person_count``, ``object_counts``, ``crowd_density``,
``motion_intensity``, ``zone_occupancy``) and, optionally, ``frame``: a
base64-encoded image forwarded to deep analysis.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from scene.types import DetectionData

LOGGER = logging.getLogger(__name__)


@dataclass
class VideoFrame:
    timestamp: float
    image: Any  # opaque payload, e.g. base64 JPEG or encoded bytes
    metadata: Dict[str, Any] = field(default_factory=dict)


class FrameSource(ABC):
    """Something that yields frames for one camera."""

    camera_id: str = "camera_0"

    @abstractmethod
    def read(self) -> Optional[VideoFrame]:
        """Return the next frame, or None if none is available right now."""

    def release(self) -> None:
        """Release any underlying resources."""


class DetectionBackend(ABC):
    """Turns one frame into a :class:`DetectionData` record."""

    @abstractmethod
    def detect(self, frame: VideoFrame) -> DetectionData:
        """Run detection on ``frame``."""

    def cleanup(self) -> None:
        """Release model resources."""


class ReplaySource(FrameSource, DetectionBackend):
    """Replay recorded detection records as frames.

    Parameters
    ----------
    records : List[Dict] or str or Path
        Detection records, or the path of a JSON-lines file holding them.
    camera_id : str
        Identifier reported for the replayed camera.
    loop : bool
        Start again from the first record after the last one.
    clock : Callable[[], float]
        Timestamp source for produced frames.
    """

    def __init__(
        self,
        records: Union[List[Dict[str, Any]], str, Path],
        camera_id: str = "replay",
        loop: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if isinstance(records, (str, Path)):
            records = self.load(records)
        self.records: List[Dict[str, Any]] = list(records)
        self.camera_id = camera_id
        self.loop = loop
        self.clock = clock
        self._index = 0
        self._lock = threading.Lock()

    @staticmethod
    def load(path: Union[str, Path]) -> List[Dict[str, Any]]:
        records: List[Dict[str, Any]] = []
        with open(path, "r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(json.loads(line))
                except json.JSONDecodeError as exc:
                    raise ValueError(f"{path}:{line_no}: invalid JSON record: {exc}") from exc
        LOGGER.info("Loaded %d replay records from %s", len(records), path)
        return records

    @property
    def exhausted(self) -> bool:
        with self._lock:
            return not self.loop and self._index >= len(self.records)

    def read(self) -> Optional[VideoFrame]:
        with self._lock:
            if not self.records:
                return None
            if self._index >= len(self.records):
                if not self.loop:
                    return None
                self._index = 0
            record = self.records[self._index]
            self._index += 1
        return VideoFrame(timestamp=self.clock(), image=record.get("frame"), metadata={"record": record})

    def detect(self, frame: VideoFrame) -> DetectionData:
        record = frame.metadata.get("record")
        if record is None:
            return DetectionData.empty()
        return DetectionData.from_dict(record)
