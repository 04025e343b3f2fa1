"""Time allocation: distribute a bounded study budget across topics."""

import heapq
from collections.abc import Mapping, Sequence
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from mastery_engine.config import Settings
from mastery_engine.errors import ValidationError
from mastery_engine.models.plan import TimeAllocation, TopicInput
from mastery_engine.models.skill import round_half_up

logger = structlog.get_logger()

ALLOCATION_STEP_HOURS = 0.5


def _round_to_step(hours: float) -> float:
    """Round to the nearest 0.5 hours."""
    return round_half_up(hours / ALLOCATION_STEP_HOURS) * ALLOCATION_STEP_HOURS


def _as_topic(topic: TopicInput | Mapping[str, Any]) -> TopicInput:
    if isinstance(topic, TopicInput):
        return topic
    try:
        return TopicInput.model_validate(topic)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first["loc"]) or None
        raise ValidationError(f"Invalid topic: {first['msg']}", field=field) from e


class TimeAllocationPlanner:
    """Estimates study time per topic and splits a budget by priority.

    Args:
        base_hours_per_mastery_point: Hours per mastery point at difficulty 3.
        target_mastery: Mastery level a plan aims for.
        default_difficulty: Difficulty (1-5) for topics that give none.
        mastery_multiplier_tiers: ``(upper_bound, multiplier)`` pairs checked in
            order against current mastery.
        mastery_multiplier_floor: Multiplier when no tier matches.
        min_allocation_hours: Smallest allocation a topic receives.
        unconstrained_improvement_cap: Improvement credited per topic when the
            budget covers every estimate.
    """

    def __init__(
        self,
        base_hours_per_mastery_point: float = 0.1,
        target_mastery: float = 80,
        default_difficulty: float = 3,
        mastery_multiplier_tiers: Sequence[tuple[float, float]] = ((50, 1.2), (70, 1.0)),
        mastery_multiplier_floor: float = 0.8,
        min_allocation_hours: float = 0.5,
        unconstrained_improvement_cap: float = 20,
    ):
        self.base_hours_per_mastery_point = base_hours_per_mastery_point
        self.target_mastery = target_mastery
        self.default_difficulty = default_difficulty
        self.mastery_multiplier_tiers = tuple(mastery_multiplier_tiers)
        self.mastery_multiplier_floor = mastery_multiplier_floor
        self.min_allocation_hours = min_allocation_hours
        self.unconstrained_improvement_cap = unconstrained_improvement_cap

    @classmethod
    def from_settings(cls, settings: Settings) -> "TimeAllocationPlanner":
        return cls(
            base_hours_per_mastery_point=settings.base_hours_per_mastery_point,
            target_mastery=settings.target_mastery,
            default_difficulty=settings.default_difficulty,
            mastery_multiplier_tiers=settings.mastery_multiplier_tiers,
            mastery_multiplier_floor=settings.mastery_multiplier_floor,
            min_allocation_hours=settings.min_allocation_hours,
            unconstrained_improvement_cap=settings.unconstrained_improvement_cap,
        )

    def mastery_multiplier(self, current_mastery: float) -> float:
        """Lower mastery needs proportionally more time per point."""
        for upper_bound, multiplier in self.mastery_multiplier_tiers:
            if current_mastery < upper_bound:
                return multiplier
        return self.mastery_multiplier_floor

    def estimate_topic_study_time(
        self,
        current_mastery: float,
        target_mastery: float | None = None,
        difficulty: float | None = None,
    ) -> float:
        """Estimate hours to bring a topic from current to target mastery.

        hours = gap * base_hours_per_point * (difficulty / 3) * mastery_multiplier,
        rounded to the nearest 0.5 and never below the minimum allocation.

        Args:
            current_mastery: Current mastery level (0-100).
            target_mastery: Desired mastery level (defaults to the planner target).
            difficulty: Topic difficulty 1-5 (defaults to the planner default).

        Returns:
            Estimated study hours.
        """
        target_mastery = self.target_mastery if target_mastery is None else target_mastery
        difficulty = self.default_difficulty if difficulty is None else difficulty
        if not 0 <= current_mastery <= 100:
            raise ValidationError(
                f"current_mastery must be in [0, 100], got {current_mastery}",
                field="current_mastery",
            )
        if difficulty <= 0:
            raise ValidationError(
                f"difficulty must be > 0, got {difficulty}", field="difficulty"
            )

        mastery_gap = max(0.0, target_mastery - current_mastery)
        estimated_hours = (
            mastery_gap
            * self.base_hours_per_mastery_point
            * (difficulty / 3)
            * self.mastery_multiplier(current_mastery)
        )
        return max(self.min_allocation_hours, _round_to_step(estimated_hours))

    def distribute_study_time(
        self,
        topics: Sequence[TopicInput | Mapping[str, Any]],
        total_hours_available: float,
    ) -> list[TimeAllocation]:
        """Split the available hours across topics.

        If every estimate fits, each topic gets its estimate. Otherwise hours
        are shared in proportion to ``priority * estimated_hours``, rounded to
        0.5 and floored at the minimum allocation. Any overshoot the floor or
        the rounding causes is trimmed from the largest allocations, 0.5 hours
        at a time.

        Args:
            topics: Topics with current mastery, priority and difficulty.
            total_hours_available: Study budget in hours.

        Returns:
            One allocation per topic, in input order.

        Raises:
            ValidationError: If the budget is negative or a topic is invalid.
        """
        if total_hours_available < 0:
            raise ValidationError(
                f"total_hours_available must be >= 0, got {total_hours_available}",
                field="total_hours_available",
            )
        parsed = [_as_topic(t) for t in topics]
        if not parsed:
            return []

        estimates = [
            self.estimate_topic_study_time(t.current_mastery, difficulty=t.difficulty)
            for t in parsed
        ]
        total_estimated_hours = sum(estimates)

        if total_estimated_hours <= total_hours_available:
            return [
                TimeAllocation(
                    topic_name=topic.name,
                    hours_allocated=estimated,
                    priority=topic.priority,
                    estimated_improvement=min(
                        100 - topic.current_mastery, self.unconstrained_improvement_cap
                    ),
                )
                for topic, estimated in zip(parsed, estimates)
            ]

        weights = [t.priority * est for t, est in zip(parsed, estimates)]
        total_weight = sum(weights)
        hours = [
            max(
                self.min_allocation_hours,
                _round_to_step(weight / total_weight * total_hours_available),
            )
            for weight in weights
        ]
        hours = self._trim_overshoot(hours, weights, total_hours_available)

        allocations = []
        for topic, estimated, allocated in zip(parsed, estimates, hours):
            improvement = round_half_up(
                (self.target_mastery - topic.current_mastery) * allocated / estimated
            )
            allocations.append(
                TimeAllocation(
                    topic_name=topic.name,
                    hours_allocated=allocated,
                    priority=topic.priority,
                    estimated_improvement=max(0, min(100 - topic.current_mastery, improvement)),
                )
            )

        logger.info(
            "study_time_distributed",
            topics=len(allocations),
            hours_needed=total_estimated_hours,
            hours_available=total_hours_available,
            hours_allocated=sum(hours),
        )
        return allocations

    def _trim_overshoot(
        self, hours: list[float], weights: list[float], budget: float
    ) -> list[float]:
        """Take 0.5h steps from the largest allocations until the total fits.

        Overshoot comes from the minimum-allocation floor and from rounding
        shares up to the nearest 0.5h.
        """
        hours = list(hours)
        total = sum(hours)
        # Largest allocation first; among equals, the lowest weight gives way
        heap = [
            (-h, weights[i], i) for i, h in enumerate(hours) if h > self.min_allocation_hours
        ]
        heapq.heapify(heap)
        while total > budget and heap:
            _, _, i = heapq.heappop(heap)
            trimmed = max(self.min_allocation_hours, hours[i] - ALLOCATION_STEP_HOURS)
            total -= hours[i] - trimmed
            hours[i] = trimmed
            if trimmed > self.min_allocation_hours:
                heapq.heappush(heap, (-trimmed, weights[i], i))

        if total > budget:
            logger.warning(
                "allocation_floor_exceeds_budget",
                topics=len(hours),
                min_allocation_hours=self.min_allocation_hours,
                budget=budget,
                allocated=total,
            )
        return hours


def format_duration(hours: float) -> str:
    """Format hours as "45 min", "2 hrs" or "1h 30m"."""
    if hours < 1:
        return f"{round_half_up(hours * 60)} min"

    if hours % 1 == 0:
        whole = int(hours)
        return f"{whole} hr{'s' if whole != 1 else ''}"

    whole_hours = int(hours)
    minutes = round_half_up((hours - whole_hours) * 60)
    if minutes == 0:
        return f"{whole_hours} hr{'s' if whole_hours != 1 else ''}"
    return f"{whole_hours}h {minutes}m"
