"""Tests for the Flask JSON API."""

import pytest

from pipeline.monitor import MonitoringPipeline
from pipeline.sources import ReplaySource
from ui.server import create_app

QUEUE_RECORD = {"person_count": 4, "crowd_density": 0.5, "motion_intensity": 0.05, "object_counts": {"register": 1}}


@pytest.fixture
def pipeline(clock):
    pipeline = MonitoringPipeline(clock=clock)
    yield pipeline
    pipeline.stop()


@pytest.fixture
def client(pipeline):
    app = create_app(pipeline)
    app.config["TESTING"] = True
    return app.test_client()


def run_ticks(pipeline, clock, count=3):
    pipeline.start(ReplaySource([QUEUE_RECORD] * count, camera_id="till", clock=clock), background=False)
    for _ in range(count):
        pipeline.detection_tick()
        pipeline.scheduler.tick()
        clock.advance(1)


class TestHealth:
    def test_livez(self, client):
        assert client.get("/livez").status_code == 200

    def test_readyz_follows_monitoring_state(self, client, pipeline, clock):
        resp = client.get("/readyz")
        assert resp.status_code == 503
        assert resp.get_json()["status"] == "not monitoring"

        pipeline.start(ReplaySource([QUEUE_RECORD], clock=clock), background=False)
        resp = client.get("/readyz")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ready"

    def test_metrics_exposition(self, client, pipeline, clock):
        run_ticks(pipeline, clock, 1)
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert b"autoscene_contexts_processed" in resp.data


class TestApi:
    def test_events_newest_first_with_limit(self, client, pipeline, clock):
        run_ticks(pipeline, clock, 3)
        resp = client.get("/api/events")
        assert resp.status_code == 200
        assert resp.headers["Cache-Control"] == "no-cache"
        events = resp.get_json()
        assert len(events) == 3
        assert events[0]["timestamp"] > events[-1]["timestamp"]
        assert events[0]["camera_id"] == "till"
        assert events[0]["ai_analysis"]["structured_data"]["quick_analysis"] is True

        assert len(client.get("/api/events?limit=1").get_json()) == 1

    def test_clear_events(self, client, pipeline, clock):
        run_ticks(pipeline, clock, 2)
        assert client.delete("/api/events").status_code == 200
        assert client.get("/api/events").get_json() == []

    def test_intelligence_and_state(self, client, pipeline, clock):
        run_ticks(pipeline, clock, 3)
        intelligence = client.get("/api/intelligence").get_json()
        assert intelligence["observation_count"] == 3
        assert intelligence["patterns_learned"] == 1

        state = client.get("/api/state").get_json()
        assert state["is_active"] is True
        assert state["active_contexts"] == ["queue_formation"]

    def test_business_shape(self, client):
        business = client.get("/api/business").get_json()
        assert business["detected_type"] == "unknown"
        assert set(business) == {"detected_type", "confidence", "evidence", "characteristics", "recommended_monitoring"}

    def test_statistics_and_cameras(self, client, pipeline, clock):
        run_ticks(pipeline, clock, 2)
        stats = client.get("/api/statistics").get_json()
        assert stats["events_processed"] == 2
        assert stats["is_monitoring"] is True
        cameras = client.get("/api/cameras").get_json()
        assert [c["camera_id"] for c in cameras] == ["till"]

    def test_reset(self, client, pipeline, clock):
        run_ticks(pipeline, clock, 3)
        assert client.post("/api/reset").status_code == 200
        assert client.get("/api/intelligence").get_json()["observation_count"] == 0
        assert client.get("/api/events").get_json() == []
