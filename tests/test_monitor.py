"""Tests for the monitoring pipeline lifecycle and ticks."""

import threading
from unittest.mock import Mock

import pytest

from pipeline.analyzers import DeepAnalysisResult, DeepAnalyzer
from pipeline.monitor import MonitoringPipeline
from pipeline.sources import DetectionBackend, FrameSource, ReplaySource, VideoFrame

QUEUE_RECORD = {"person_count": 4, "crowd_density": 0.5, "motion_intensity": 0.05, "object_counts": {"shelf": 1}}
EMPTY_RECORD = {"person_count": 0, "crowd_density": 0.0, "motion_intensity": 0.0}


class TestDetectionTick:
    def setup_method(self):
        self.published = []

    def make_pipeline(self, clock, analyzer=None, config=None):
        pipeline = MonitoringPipeline(config=config, analyzer=analyzer, clock=clock)
        pipeline.subscribe(self.published.append)
        return pipeline

    def test_tick_before_start_does_nothing(self, clock):
        assert self.make_pipeline(clock).detection_tick() is None

    def test_full_flow_during_warmup(self, clock):
        pipeline = self.make_pipeline(clock)
        pipeline.start(ReplaySource([QUEUE_RECORD] * 3, camera_id="front", clock=clock), background=False)

        context, event = pipeline.detection_tick()
        assert context.primary_activity == "queue_formation"
        assert event is not None and event.camera_id == "front"
        assert pipeline.scheduler.queue.qsize() == 1

        finalized = pipeline.scheduler.tick()
        assert finalized.ai_analysis.structured_data.quick_analysis is True
        assert self.published == [finalized]
        assert pipeline.get_recent_events() == [finalized]

        state = pipeline.get_monitoring_state()
        assert state["is_active"] is True
        assert state["active_contexts"] == ["queue_formation"]
        assert state["active_patterns"] == ["queue_formation"]
        assert state["learning_phase"] is True
        pipeline.stop()

    def test_deep_analysis_after_warmup(self, clock):
        analyzer = Mock(spec=DeepAnalyzer)
        analyzer.analyze.return_value = DeepAnalysisResult(description="Four people queueing")
        pipeline = self.make_pipeline(clock, analyzer=analyzer)
        pipeline.start(ReplaySource([dict(QUEUE_RECORD, frame="aW1n")], clock=clock), background=False)
        clock.advance(601)

        pipeline.detection_tick()
        finalized = pipeline.scheduler.tick()

        assert analyzer.analyze.call_args.args[0] == "aW1n"
        assert finalized.ai_analysis.description == "Four people queueing"
        pipeline.stop()

    def test_detection_backend_failure_uses_empty_record(self, clock):
        class BrokenBackend(DetectionBackend):
            def detect(self, frame):
                raise RuntimeError("model crashed")

        pipeline = self.make_pipeline(clock)
        pipeline.start(ReplaySource([QUEUE_RECORD], clock=clock), detector=BrokenBackend(), background=False)
        context, _ = pipeline.detection_tick()
        assert context.primary_activity == "empty_area"
        pipeline.stop()

    def test_camera_context_learning(self, clock):
        pipeline = self.make_pipeline(clock)
        pipeline.start(ReplaySource([QUEUE_RECORD] * 5, camera_id="till", clock=clock), background=False)
        for _ in range(5):
            pipeline.detection_tick()
        cameras = pipeline.get_camera_contexts()
        assert len(cameras) == 1
        camera = cameras[0]
        assert camera["camera_id"] == "till"
        assert camera["typical_activity"] == ["queue_formation"]
        assert camera["primary_view"] == "checkout_area"
        assert 0 < camera["typical_occupancy"] < 5
        pipeline.stop()

    def test_frame_source_must_detect_when_no_backend(self, clock):
        class Camera(FrameSource):
            def read(self):
                return VideoFrame(timestamp=clock(), image=b"")

        with pytest.raises(ValueError):
            self.make_pipeline(clock).start(Camera())


class TestLifecycle:
    def test_stop_is_idempotent_and_releases_source(self, clock):
        pipeline = MonitoringPipeline(clock=clock)
        source = ReplaySource([EMPTY_RECORD], clock=clock)
        source.release = Mock()
        pipeline.start(source, background=False)
        pipeline.stop()
        pipeline.stop()
        assert source.release.call_count == 1
        assert not pipeline.running
        assert pipeline.detection_tick() is None

    def test_stop_during_detection_queues_nothing(self, clock):
        published = []
        pipeline = MonitoringPipeline(clock=clock)
        pipeline.subscribe(published.append)

        class StoppingBackend(DetectionBackend):
            def detect(self, frame):
                pipeline.stop()
                return ReplaySource.detect(source, frame)

        source = ReplaySource([QUEUE_RECORD] * 2, clock=clock)
        pipeline.start(source, detector=StoppingBackend(), background=False)

        assert pipeline.detection_tick() is None
        assert not pipeline.running
        assert pipeline.scheduler.queue.empty()
        assert pipeline.scheduler.tick() is None
        assert pipeline.get_statistics()["events_processed"] == 0
        assert published == []

    def test_subscribers_receive_pipeline_events(self, clock):
        published = []
        pipeline = MonitoringPipeline(clock=clock)
        pipeline.subscribe(published.append)
        assert pipeline.scheduler.publisher is pipeline.publisher
        pipeline.start(ReplaySource([{"person_count": 1}], clock=clock), background=False)
        pipeline.detection_tick()
        finalized = pipeline.scheduler.tick()
        assert published == [finalized]
        pipeline.stop()

    def test_start_twice_is_ignored(self, clock):
        pipeline = MonitoringPipeline(clock=clock)
        first = ReplaySource([EMPTY_RECORD], camera_id="a", clock=clock)
        pipeline.start(first, background=False)
        pipeline.start(ReplaySource([EMPTY_RECORD], camera_id="b", clock=clock), background=False)
        assert pipeline.frame_source is first
        pipeline.stop()

    def test_stop_clears_queue(self, clock):
        pipeline = MonitoringPipeline(clock=clock)
        pipeline.start(ReplaySource([QUEUE_RECORD] * 3, clock=clock), background=False)
        for _ in range(3):
            pipeline.detection_tick()
        assert pipeline.get_statistics()["queue_size"] == 3
        pipeline.stop()
        assert pipeline.get_statistics()["queue_size"] == 0

    def test_reset_forgets_learning_but_keeps_catalog(self, clock):
        pipeline = MonitoringPipeline(clock=clock)
        pipeline.start(ReplaySource([QUEUE_RECORD] * 3, camera_id="till", clock=clock), background=False)
        for _ in range(3):
            pipeline.detection_tick()
            pipeline.scheduler.tick()
        pipeline.reset()

        stats = pipeline.get_statistics()
        assert stats["learning_progress"]["observation_count"] == 0
        assert stats["learning_progress"]["patterns_learned"] == 0
        assert stats["events_processed"] == 3
        assert pipeline.get_recent_events() == []
        assert stats["buffer_size"] == 0
        assert pipeline.get_camera_contexts()[0]["typical_activity"] == []
        assert pipeline.engine.catalog.get("queue_formation").occurrence_count == 3
        pipeline.stop()

    def test_background_threads_drive_pipeline(self):
        delivered = threading.Event()
        pipeline = MonitoringPipeline(config={"camera": {"fps": 50}, "analysis": {"poll_interval_sec": 0.02}})
        pipeline.subscribe(lambda event: delivered.set())
        pipeline.start(ReplaySource([QUEUE_RECORD], loop=True))
        try:
            assert delivered.wait(5)
        finally:
            pipeline.stop()
        assert not pipeline.running
        assert pipeline.tasks == []


class TestMaintenance:
    def test_maintenance_updates_accuracy(self, clock):
        pipeline = MonitoringPipeline(clock=clock)
        pipeline.start(ReplaySource([QUEUE_RECORD] * 4, clock=clock), background=False)
        for _ in range(4):
            pipeline.detection_tick()
        intelligence = pipeline.maintenance_tick()
        assert intelligence.patterns_learned == 1
        assert pipeline.last_intelligence is intelligence
        assert pipeline.get_monitoring_state()["accuracy"] == pytest.approx(1.0)
        pipeline.stop()

    def test_statistics_shape(self, clock):
        stats = MonitoringPipeline(clock=clock).get_statistics()
        assert set(stats) >= {
            "queue_size",
            "events_processed",
            "is_monitoring",
            "buffer_size",
            "failed_count",
            "learning_progress",
        }
        assert stats["is_monitoring"] is False
        assert stats["frame_buffer"] == {"size": 0, "capacity": 30, "span_seconds": 0.0}
