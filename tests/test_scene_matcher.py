"""Tests for context building and pattern matching."""

import pytest

from scene.patterns import Pattern, PatternCatalog, PatternConditions
from scene.scene_matcher import SceneMatcher, infer_arrangement, infer_people_arrangement, motion_matches
from tests.conftest import detection


class TestActivityInference:
    def setup_method(self):
        self.matcher = SceneMatcher(PatternCatalog())

    def test_queue_formation_uses_lower_threshold_while_learning(self):
        det = detection(person_count=2, crowd_density=0.4, motion_intensity=0.1)
        assert self.matcher.infer_primary_activity(det, learning_phase=True) == "queue_formation"
        assert self.matcher.infer_primary_activity(det, learning_phase=False) != "queue_formation"

    @pytest.mark.parametrize(
        "people, density, motion, expected",
        [
            (1, 0.1, 0.5, "person_active"),
            (1, 0.1, 0.05, "person_stationary"),
            (1, 0.1, 0.2, "person_present"),
            (6, 0.6, 0.5, "crowd_gathering"),
            (2, 0.1, 0.05, "service_interaction"),
            (3, 0.2, 0.9, "rapid_movement"),
            (0, 0.0, 0.0, "empty_area"),
            (3, 0.2, 0.5, "general_activity"),
        ],
    )
    def test_rule_cascade(self, people, density, motion, expected):
        det = detection(person_count=people, crowd_density=density, motion_intensity=motion)
        assert self.matcher.infer_primary_activity(det) == expected

    def test_arrangement_helpers(self):
        assert infer_arrangement(1) == "single"
        assert infer_arrangement(3) == "few"
        assert infer_arrangement(4) == "many"
        assert infer_people_arrangement(4, 0.1) == "scattered"
        assert infer_people_arrangement(4, 0.3) == "grouped"
        assert infer_people_arrangement(4, 0.6) == "crowded"
        assert infer_people_arrangement(4, 0.8) == "dense"

    def test_motion_buckets(self):
        assert motion_matches(0.05, "static")
        assert motion_matches(0.1, "slow")
        assert motion_matches(0.4, "normal")
        assert motion_matches(0.7, "fast")
        assert not motion_matches(0.5, "slow")


class TestInteractionPoints:
    def setup_method(self):
        self.matcher = SceneMatcher(PatternCatalog())

    def test_register_implies_transaction(self):
        points = self.matcher.identify_interaction_points(detection(object_counts={"cash_register": 1}))
        assert [(p.location, p.type) for p in points] == [("checkout_area", "transaction")]

    def test_desk_with_two_people_is_consultation(self):
        points = self.matcher.identify_interaction_points(detection(person_count=2, object_counts={"desk": 1}))
        assert [p.type for p in points] == ["consultation"]

    def test_dense_group_is_queue_point(self):
        points = self.matcher.identify_interaction_points(detection(person_count=3, crowd_density=0.4))
        assert [p.type for p in points] == ["queue"]


class TestPatternMatching:
    def setup_method(self):
        self.matcher = SceneMatcher(PatternCatalog())

    def test_scenario_queue_detection_matches_queue_pattern(self):
        det = detection(person_count=4, crowd_density=0.5, motion_intensity=0.05)
        context = self.matcher.build_context(det)
        assert context.primary_activity == "queue_formation"

        queue = self.matcher.catalog.get("queue_formation")
        assert self.matcher.score(queue, context, det) == pytest.approx(2 / 3)
        best = self.matcher.best_match(context, det)
        # service_interaction ties at 2/3; catalog order keeps queue_formation.
        assert best is not None and best.id == "queue_formation"

    def test_scenario_empty_scene_matches_nothing(self):
        det = detection(person_count=0, crowd_density=0.0, motion_intensity=0.0)
        context = self.matcher.build_context(det)
        assert context.primary_activity == "empty_area"
        assert context.interaction_points == []
        assert self.matcher.best_match(context, det) is None
        assert context.matches_pattern is None
        assert context.confidence == 0.5

    def test_object_condition_uses_substring_match(self):
        det = detection(person_count=2, motion_intensity=0.05, object_counts={"cash_register": 1})
        context = self.matcher.build_context(det)
        service = self.matcher.catalog.get("service_interaction")
        assert self.matcher.score(service, context, det) == pytest.approx(1.0)

    def test_max_people_is_checked_with_min_people(self):
        pattern = Pattern(
            id="small_group",
            name="Small group",
            description="",
            conditions=PatternConditions(min_people=1, max_people=2),
        )
        matcher = SceneMatcher(PatternCatalog([pattern]))
        det = detection(person_count=3)
        assert matcher.score(pattern, matcher.build_context(det), det) == 0.0

    def test_underspecified_pattern_outscores_detailed_one(self):
        """Averaging over defined conditions only favours sparse patterns."""
        detailed = Pattern(
            id="detailed",
            name="Detailed",
            description="",
            conditions=PatternConditions(min_people=3, motion_level="static", spatial_arrangement="line"),
        )
        sparse = Pattern(
            id="sparse",
            name="Sparse",
            description="",
            conditions=PatternConditions(motion_level="static"),
        )
        matcher = SceneMatcher(PatternCatalog([detailed, sparse]))
        det = detection(person_count=4, crowd_density=0.5, motion_intensity=0.05)
        context = matcher.build_context(det)
        assert matcher.score(detailed, context, det) == pytest.approx(2 / 3)
        assert matcher.score(sparse, context, det) == pytest.approx(1.0)
        assert matcher.best_match(context, det).id == "sparse"

    def test_threshold_is_strict(self):
        pattern = Pattern(
            id="half",
            name="Half",
            description="",
            conditions=PatternConditions(min_people=1, motion_level="fast"),
        )
        matcher = SceneMatcher(PatternCatalog([pattern]))
        det = detection(person_count=1, motion_intensity=0.0)
        assert matcher.score(pattern, matcher.build_context(det), det) == pytest.approx(0.5)
        assert matcher.best_match(matcher.build_context(det), det) is None


class TestPatternCatalog:
    def test_default_catalog_order(self):
        assert PatternCatalog().ids() == [
            "queue_formation",
            "crowd_gathering",
            "customer_browsing",
            "service_interaction",
            "potential_hazard",
        ]

    def test_catalogs_do_not_share_counters(self):
        first, second = PatternCatalog(), PatternCatalog()
        first.get("queue_formation").reinforce(1.0)
        assert second.get("queue_formation").occurrence_count == 0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"motion_level": "sprinting"},
            {"spatial_arrangement": "circle"},
            {"min_people": 4, "max_people": 2},
        ],
    )
    def test_invalid_conditions_rejected(self, kwargs):
        with pytest.raises(ValueError):
            PatternConditions(**kwargs)

    def test_duplicate_ids_rejected(self):
        pattern = Pattern(id="dup", name="Dup", description="", conditions=PatternConditions())
        with pytest.raises(ValueError):
            PatternCatalog([pattern, pattern])
