"""Deep-analysis collaborators.

A :class:`DeepAnalyzer` receives one frame and a prompt and returns a
:class:`DeepAnalysisResult`.  Every failure (transport error, timeout,
HTTP status, undecodable response body) is raised as
:class:`AnalysisError` so the scheduler can apply its retry policy.

A model answer that is plain text rather than JSON is *not* an error:
it comes back as a result with ``raw_text`` set and no structured
fields, and the scheduler keeps the event's existing description.
"""

from __future__ import annotations

import base64
import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

LOGGER = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL = "http://127.0.0.1:11434"
DEFAULT_MODEL = "llava:7b"
DEFAULT_OPTIONS: Dict[str, Any] = {
    "temperature": 0.3,
    "num_predict": 200,
    "num_ctx": 2048,
    "num_thread": 4,
}

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class AnalysisError(Exception):
    """Raised when the deep-analysis collaborator cannot produce an answer."""


@dataclass
class DeepAnalysisResult:
    description: Optional[str] = None
    metrics: Dict[str, Any] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)
    patterns_observed: List[str] = field(default_factory=list)
    # Set when the model answered with text that is not a JSON object.
    raw_text: Optional[str] = None

    @property
    def is_raw(self) -> bool:
        return self.raw_text is not None


def _string_list(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(v) for v in value]
    if isinstance(value, str) and value:
        return [value]
    return []


def parse_analysis_response(text: str) -> DeepAnalysisResult:
    """Parse model output into a :class:`DeepAnalysisResult`.

    Models often wrap JSON in prose or code fences, so the outermost
    ``{...}`` span is tried when the whole text is not valid JSON.
    """
    text = (text or "").strip()
    data: Any = None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        match = _JSON_OBJECT.search(text)
        if match:
            try:
                data = json.loads(match.group(0))
            except json.JSONDecodeError:
                data = None

    if not isinstance(data, dict):
        return DeepAnalysisResult(raw_text=text)

    description = data.get("description")
    metrics = data.get("metrics")
    return DeepAnalysisResult(
        description=str(description) if description else None,
        metrics=metrics if isinstance(metrics, dict) else {},
        recommendations=_string_list(data.get("recommendations")),
        patterns_observed=_string_list(data.get("patterns_observed")),
    )


def encode_frame(frame: Any) -> Optional[str]:
    """Return ``frame`` as a base64 string (None when there is no frame)."""
    if frame is None:
        return None
    if isinstance(frame, (bytes, bytearray)):
        return base64.b64encode(bytes(frame)).decode("ascii")
    if isinstance(frame, str):
        return frame
    raise TypeError(f"Unsupported frame payload type: {type(frame).__name__}")


class DeepAnalyzer(ABC):
    """Interface of the expensive image+prompt analysis call."""

    @abstractmethod
    def analyze(self, frame: Any, prompt: str, timeout: Optional[float] = None) -> DeepAnalysisResult:
        """Analyze ``frame`` with ``prompt``; raise :class:`AnalysisError` on failure."""


class OllamaAnalyzer(DeepAnalyzer):
    """Vision-language analysis through an Ollama server's ``/api/generate``.

    Parameters
    ----------
    base_url : str
        Root URL of the Ollama server.
    model : str
        Model tag to run.
    timeout : float
        Per-call timeout in seconds, used when :meth:`analyze` gets none.
    keep_alive : str
        How long Ollama keeps the model loaded between calls.
    options : Dict, optional
        Sampling options; low-temperature short answers by default.
    session : requests.Session, optional
        Session used for HTTP calls.  A new one is created when omitted.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_OLLAMA_URL,
        model: str = DEFAULT_MODEL,
        timeout: float = 30.0,
        keep_alive: str = "5m",
        options: Optional[Dict[str, Any]] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.keep_alive = keep_alive
        self.options = dict(DEFAULT_OPTIONS if options is None else options)
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "OllamaAnalyzer":
        analysis_cfg = config.get("analysis", {})
        return cls(
            base_url=analysis_cfg.get("ollama_url", DEFAULT_OLLAMA_URL),
            model=analysis_cfg.get("model", DEFAULT_MODEL),
            timeout=float(analysis_cfg.get("timeout_sec", 30.0)),
            keep_alive=analysis_cfg.get("keep_alive", "5m"),
            options=analysis_cfg.get("options"),
        )

    def build_payload(self, frame: Any, prompt: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "keep_alive": self.keep_alive,
            "options": dict(self.options),
        }
        image = encode_frame(frame)
        if image is not None:
            payload["images"] = [image]
        return payload

    def analyze(self, frame: Any, prompt: str, timeout: Optional[float] = None) -> DeepAnalysisResult:
        url = f"{self.base_url}/api/generate"
        try:
            response = self.session.post(
                url,
                json=self.build_payload(frame, prompt),
                timeout=self.timeout if timeout is None else timeout,
            )
        except requests.Timeout as exc:
            raise AnalysisError(f"Analysis timed out after {timeout or self.timeout}s") from exc
        except requests.RequestException as exc:
            raise AnalysisError(f"Analysis request failed: {exc}") from exc

        if response.status_code != 200:
            raise AnalysisError(f"Analysis failed: HTTP {response.status_code}")
        try:
            body = response.json()
        except ValueError as exc:
            raise AnalysisError(f"Failed to parse response: {exc}") from exc

        text = body.get("response") if isinstance(body, dict) else None
        if not isinstance(text, str):
            raise AnalysisError("Analysis response has no 'response' text")
        LOGGER.debug("Ollama answered %d characters", len(text))
        return parse_analysis_response(text)

    def is_available(self) -> bool:
        """Return True if the Ollama server answers its tags endpoint."""
        try:
            response = self.session.get(f"{self.base_url}/api/tags", timeout=2)
        except requests.RequestException:
            return False
        return response.status_code == 200
