"""Flask JSON API for autoscene.

This module exposes :func:`create_app`, which builds a small Flask
application over a running :class:`~pipeline.monitor.MonitoringPipeline`.
It serves pull-based views of the system (recent events, the
intelligence snapshot, the monitoring state, business-type detection
and statistics), lifecycle helpers, health checks and the Prometheus
``/metrics`` endpoint.  Rendering is left to whatever client consumes
the JSON.
"""

from __future__ import annotations

from typing import Any, Dict, Tuple

from flask import Flask, Response, jsonify, request
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from pipeline.monitor import MonitoringPipeline

NO_CACHE = {"Cache-Control": "no-cache"}


def create_app(pipeline: MonitoringPipeline) -> Flask:
    """Create and configure the Flask application.

    Parameters
    ----------
    pipeline : MonitoringPipeline
        Pipeline instance whose state the API exposes.

    Returns
    -------
    Flask
        Configured Flask app ready to run.
    """
    app = Flask(__name__)

    @app.route("/api/events")
    def api_events() -> Tuple[Any, int, Dict[str, str]]:
        """Return recent finalized events, newest first.

        The optional ``limit`` query parameter caps the number returned
        (default 50).
        """
        limit = request.args.get("limit", default=50, type=int)
        events = [event.to_dict() for event in pipeline.get_recent_events(limit)]
        return jsonify(events), 200, NO_CACHE

    @app.route("/api/events", methods=["DELETE"])
    def api_clear_events() -> Tuple[Any, int]:
        pipeline.clear_history()
        return jsonify({"status": "cleared"}), 200

    @app.route("/api/intelligence")
    def api_intelligence() -> Tuple[Any, int, Dict[str, str]]:
        return jsonify(pipeline.get_system_intelligence().to_dict()), 200, NO_CACHE

    @app.route("/api/state")
    def api_state() -> Tuple[Any, int, Dict[str, str]]:
        return jsonify(pipeline.get_monitoring_state()), 200, NO_CACHE

    @app.route("/api/business")
    def api_business() -> Tuple[Any, int, Dict[str, str]]:
        return jsonify(pipeline.get_business_type().to_dict()), 200, NO_CACHE

    @app.route("/api/statistics")
    def api_statistics() -> Tuple[Any, int, Dict[str, str]]:
        return jsonify(pipeline.get_statistics()), 200, NO_CACHE

    @app.route("/api/cameras")
    def api_cameras() -> Tuple[Any, int, Dict[str, str]]:
        return jsonify(pipeline.get_camera_contexts()), 200, NO_CACHE

    @app.route("/api/reset", methods=["POST"])
    def api_reset() -> Tuple[Any, int]:
        pipeline.reset()
        return jsonify({"status": "reset"}), 200

    @app.route("/livez")
    def livez() -> Tuple[Any, int]:
        return jsonify({"status": "ok"}), 200

    @app.route("/readyz")
    def readyz() -> Tuple[Any, int]:
        if pipeline.running:
            return jsonify({"status": "ready"}), 200
        return jsonify({"status": "not monitoring"}), 503

    @app.route("/metrics")
    def metrics() -> Response:
        return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)

    return app
