"""Entry point for autoscene.

This script reads the configuration file, builds the monitoring
pipeline and the JSON API, and starts all required threads.  Detection
records are replayed from a JSON-lines file (``camera.replay_file``)
so the system runs without a camera or detection model.  Press Ctrl-C
to stop the application.
"""

import argparse
import logging
import signal
import threading
import time
from typing import Any, Dict

import yaml  # type: ignore

# Use absolute imports so the application can be started with `python app.py`.
from pipeline.analyzers import OllamaAnalyzer
from pipeline.monitor import MonitoringPipeline
from pipeline.sources import ReplaySource
from ui.server import create_app


def load_config(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def main() -> None:
    parser = argparse.ArgumentParser(description="autoscene entry point")
    parser.add_argument("--config", default="config.yaml", help="Path to configuration YAML file")
    parser.add_argument("--replay", help="JSON-lines file of detection records (overrides camera.replay_file)")
    args = parser.parse_args()
    config = load_config(args.config)

    log_level = config.get("logging", {}).get("level", "INFO")
    logging.basicConfig(level=log_level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    logger = logging.getLogger(__name__)

    camera_cfg = config.get("camera", {})
    replay_file = args.replay or camera_cfg.get("replay_file")
    if not replay_file:
        parser.error("no detection source: set camera.replay_file or pass --replay")

    analyzer = None
    if config.get("analysis", {}).get("enabled", True):
        analyzer = OllamaAnalyzer.from_config(config)
        if not analyzer.is_available():
            logger.warning("Ollama not reachable at %s; events will use quick analysis only", analyzer.base_url)
            analyzer = None

    pipeline = MonitoringPipeline(config=config, analyzer=analyzer)
    source = ReplaySource(
        replay_file,
        camera_id=camera_cfg.get("id", "camera_0"),
        loop=camera_cfg.get("loop", True),
    )
    pipeline.start(source)

    # Create Flask app for the API
    flask_app = create_app(pipeline)
    host = config.get("server", {}).get("host", "127.0.0.1")
    port = config.get("server", {}).get("port", 5000)

    # Run Flask in a separate thread so that Ctrl-C stops both
    def _run_flask() -> None:
        flask_app.run(host=host, port=port, threaded=True, use_reloader=False)

    flask_thread = threading.Thread(target=_run_flask, daemon=True)
    flask_thread.start()
    logger.info("API available at http://%s:%s", host, port)

    stop_event = threading.Event()

    def _signal_handler(signum: int, frame: Any) -> None:
        logger.info("Received signal %s; shutting down...", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        while not stop_event.is_set():
            time.sleep(0.5)
    finally:
        pipeline.stop()
        logger.info("autoscene stopped")


if __name__ == "__main__":
    main()
