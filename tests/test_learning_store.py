"""Tests for the learning store and pattern reinforcement."""

from datetime import datetime

import pytest

from scene.learning_store import LearningStore
from scene.patterns import Pattern, PatternCatalog, PatternConditions
from scene.types import SceneContext
from tests.conftest import START_TIME


def make_pattern(pattern_id: str = "p", confidence: float = 0.9) -> Pattern:
    return Pattern(
        id=pattern_id,
        name=pattern_id.title(),
        description=f"{pattern_id} pattern",
        conditions=PatternConditions(min_people=1),
        confidence=confidence,
    )


class TestPatternReinforcement:
    def test_confidence_is_monotonic_and_capped(self):
        pattern = make_pattern(confidence=0.95)
        previous = pattern.confidence
        for i in range(20):
            pattern.reinforce(START_TIME + i)
            assert pattern.confidence >= previous
            assert pattern.confidence <= 1.0
            previous = pattern.confidence
        assert pattern.confidence == 1.0
        assert pattern.occurrence_count == 20
        assert pattern.first_seen == START_TIME
        assert pattern.last_seen == START_TIME + 19

    def test_negative_step_never_lowers_confidence(self):
        pattern = make_pattern(confidence=0.5)
        pattern.reinforce(START_TIME, step=-0.2)
        assert pattern.confidence == 0.5


class TestLearningStore:
    def setup_method(self):
        self.store = LearningStore(history_size=5)

    def test_history_is_bounded_and_fifo(self):
        for i in range(12):
            self.store.append_context(SceneContext(primary_activity=f"a{i}", confidence=0.5))
        history = self.store.contexts()
        assert len(history) == 5
        assert [c.primary_activity for c in history] == ["a7", "a8", "a9", "a10", "a11"]

    def test_invalid_history_size(self):
        with pytest.raises(ValueError):
            LearningStore(history_size=0)

    def test_reinforce_creates_learned_pattern_with_histograms(self):
        pattern = make_pattern()
        learned = self.store.reinforce(pattern, START_TIME)
        moment = datetime.fromtimestamp(START_TIME)

        assert learned.count == 1
        assert learned.first_observed == START_TIME
        assert learned.hour_of_day[moment.hour] == 1
        assert learned.hour_of_day.sum() == 1
        assert learned.day_of_week[moment.weekday()] == 1
        assert learned.peak_hour() == moment.hour
        assert learned.confidence == pytest.approx(0.91)

        self.store.reinforce(pattern, START_TIME + 60)
        assert self.store.learned_patterns["p"].count == 2
        assert self.store.learned_patterns["p"].last_observed == START_TIME + 60

    def test_causal_adjacency(self):
        first, second = make_pattern("first"), make_pattern("second")
        self.store.reinforce(first, START_TIME)
        self.store.reinforce(first, START_TIME + 1)
        self.store.reinforce(second, START_TIME + 2)

        assert self.store.learned_patterns["second"].preceded_by == ["first"]
        assert self.store.learned_patterns["first"].followed_by == ["second"]
        assert self.store.learned_patterns["first"].preceded_by == []

    def test_reset_clears_state_but_not_catalog(self):
        catalog = PatternCatalog()
        queue = catalog.get("queue_formation")
        self.store.reinforce(queue, START_TIME)
        self.store.append_context(SceneContext(primary_activity="x", confidence=0.5))
        self.store.record_observation()
        self.store.business.scores["retail_store"] = 4

        self.store.reset()

        assert self.store.contexts() == []
        assert self.store.learned_patterns == {}
        assert self.store.observation_count == 0
        assert self.store.business.scores == {}
        assert self.store.business.business_type == "unknown"
        assert queue.occurrence_count == 1

    def test_learned_pattern_serialises_histograms_as_lists(self):
        learned = self.store.reinforce(make_pattern(), START_TIME)
        data = learned.to_dict()
        assert isinstance(data["hour_of_day"], list) and len(data["hour_of_day"]) == 24
        assert isinstance(data["day_of_week"], list) and len(data["day_of_week"]) == 7
