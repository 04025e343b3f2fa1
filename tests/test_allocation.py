"""Tests for study time estimation and distribution."""

import pytest

from mastery_engine.config import Settings
from mastery_engine.errors import ValidationError
from mastery_engine.models.plan import TopicInput
from mastery_engine.planning.allocation import TimeAllocationPlanner, format_duration


@pytest.fixture
def planner():
    return TimeAllocationPlanner()


class TestEstimateTopicStudyTime:
    @pytest.mark.parametrize(
        "mastery,expected",
        [
            (40, 5.0),  # 40 * 0.1 * 1.2 = 4.8
            (60, 2.0),  # 20 * 0.1 * 1.0
            (70, 1.0),  # 10 * 0.1 * 0.8 = 0.8
            (79, 0.5),  # 0.08, floored
            (80, 0.5),  # no gap
            (95, 0.5),  # above target
        ],
    )
    def test_default_target_and_difficulty(self, planner, mastery, expected):
        assert planner.estimate_topic_study_time(mastery) == expected

    def test_difficulty_scales_time(self, planner):
        assert planner.estimate_topic_study_time(40, difficulty=5) == 8.0
        assert planner.estimate_topic_study_time(40, difficulty=1.5) == 2.5

    def test_custom_target(self, planner):
        assert planner.estimate_topic_study_time(0, target_mastery=100) == 12.0

    def test_result_is_half_hour_multiple(self, planner):
        for mastery in range(0, 101, 7):
            hours = planner.estimate_topic_study_time(mastery)
            assert hours >= 0.5
            assert (hours * 2) == int(hours * 2)

    @pytest.mark.parametrize("mastery", [-1, 101])
    def test_mastery_out_of_range(self, planner, mastery):
        with pytest.raises(ValidationError):
            planner.estimate_topic_study_time(mastery)

    def test_invalid_difficulty(self, planner):
        with pytest.raises(ValidationError):
            planner.estimate_topic_study_time(40, difficulty=0)

    def test_configured_constants(self):
        planner = TimeAllocationPlanner(
            base_hours_per_mastery_point=0.2,
            mastery_multiplier_tiers=[(30, 2.0)],
            mastery_multiplier_floor=1.0,
        )
        assert planner.estimate_topic_study_time(40) == 8.0
        assert planner.estimate_topic_study_time(20) == 24.0


class TestDistributeStudyTime:
    def test_empty_topics(self, planner):
        assert planner.distribute_study_time([], 10) == []

    def test_budget_covers_estimates(self, planner):
        topics = [
            TopicInput(name="X", current_mastery=40, priority=5, difficulty=3),
            TopicInput(name="Y", current_mastery=70, priority=1, difficulty=3),
            TopicInput(name="Z", current_mastery=90, priority=2),
        ]
        allocations = planner.distribute_study_time(topics, 10)

        assert [a.topic_name for a in allocations] == ["X", "Y", "Z"]
        assert [a.hours_allocated for a in allocations] == [5.0, 1.0, 0.5]
        assert [a.priority for a in allocations] == [5, 1, 2]
        assert [a.estimated_improvement for a in allocations] == [20, 20, 10]

    def test_exact_budget_uses_estimates(self, planner):
        topics = [
            TopicInput(name="X", current_mastery=40, priority=5),
            TopicInput(name="Y", current_mastery=70, priority=1),
        ]
        allocations = planner.distribute_study_time(topics, 6)
        assert [a.hours_allocated for a in allocations] == [5.0, 1.0]

    def test_over_budget_is_proportional(self, planner):
        topics = [
            TopicInput(name="X", current_mastery=40, priority=5, difficulty=3),
            TopicInput(name="Y", current_mastery=70, priority=1, difficulty=3),
        ]
        allocations = planner.distribute_study_time(topics, 2)
        x, y = allocations

        assert x.hours_allocated == 1.5
        assert y.hours_allocated == 0.5
        assert x.hours_allocated > y.hours_allocated
        assert sum(a.hours_allocated for a in allocations) == pytest.approx(2.0)
        # (80 - 40) * 1.5 / 5.0 and (80 - 70) * 0.5 / 1.0
        assert x.estimated_improvement == 12
        assert y.estimated_improvement == 5

    def test_floor_overshoot_is_trimmed(self, planner):
        topics = [TopicInput(name="A", current_mastery=0, priority=5)] + [
            TopicInput(name=f"B{i}", current_mastery=60, priority=1) for i in range(3)
        ]
        allocations = planner.distribute_study_time(topics, 3)
        hours = [a.hours_allocated for a in allocations]

        assert hours == [1.5, 0.5, 0.5, 0.5]
        assert sum(hours) <= 3
        assert all(h >= 0.5 for h in hours)

    def test_rounding_overshoot_is_trimmed(self, planner):
        # Equal shares of 1.25h round up to 1.5h each
        topics = [TopicInput(name=n, current_mastery=40, priority=3) for n in ("X", "Y")]
        allocations = planner.distribute_study_time(topics, 2.5)
        assert [a.hours_allocated for a in allocations] == [1.0, 1.5]

    def test_trimming_many_topics(self, planner):
        topics = [TopicInput(name=f"T{i}", current_mastery=40, priority=3) for i in range(200)]
        hours = [a.hours_allocated for a in planner.distribute_study_time(topics, 250)]
        assert hours == [1.0] * 100 + [1.5] * 100
        assert sum(hours) == 250

    def test_floor_wins_when_budget_too_small(self, planner):
        topics = [TopicInput(name=f"T{i}", current_mastery=40, priority=3) for i in range(5)]
        allocations = planner.distribute_study_time(topics, 1)
        assert [a.hours_allocated for a in allocations] == [0.5] * 5

    def test_improvement_never_negative(self, planner):
        topics = [
            TopicInput(name="X", current_mastery=40, priority=5),
            TopicInput(name="Z", current_mastery=90, priority=1),
        ]
        allocations = planner.distribute_study_time(topics, 2)
        for topic, allocation in zip(topics, allocations):
            assert 0 <= allocation.estimated_improvement <= 100 - topic.current_mastery

    def test_accepts_plain_dicts(self, planner):
        allocations = planner.distribute_study_time(
            [{"name": "X", "current_mastery": 40, "priority": 5}], 10
        )
        assert allocations[0].hours_allocated == 5.0

    def test_invalid_topic_rejected(self, planner):
        with pytest.raises(ValidationError):
            planner.distribute_study_time(
                [{"name": "X", "current_mastery": 40, "priority": 9}], 10
            )

    def test_negative_budget_rejected(self, planner):
        with pytest.raises(ValidationError):
            planner.distribute_study_time([TopicInput(name="X", current_mastery=40)], -1)

    def test_zero_budget(self, planner):
        allocations = planner.distribute_study_time(
            [TopicInput(name="X", current_mastery=40, priority=5)], 0
        )
        assert allocations[0].hours_allocated == 0.5

    def test_from_settings(self):
        planner = TimeAllocationPlanner.from_settings(Settings(target_mastery=90))
        assert planner.target_mastery == 90
        assert planner.estimate_topic_study_time(70) == 1.5


class TestFormatDuration:
    @pytest.mark.parametrize(
        "hours,expected",
        [
            (0.5, "30 min"),
            (0.75, "45 min"),
            (1, "1 hr"),
            (2.0, "2 hrs"),
            (1.5, "1h 30m"),
            (2.25, "2h 15m"),
        ],
    )
    def test_formats(self, hours, expected):
        assert format_duration(hours) == expected
