"""Mastery aggregation: weak areas and pass probability over a subject's skills."""

from collections.abc import Iterable, Sequence
from datetime import datetime

import structlog

from mastery_engine.config import Settings
from mastery_engine.errors import ValidationError
from mastery_engine.models.skill import (
    PassProbability,
    SkillState,
    WeakArea,
    WeakAreaPriority,
    round_half_up,
)
from mastery_engine.tracking import bkt

logger = structlog.get_logger()


def calculate_average_mastery(probabilities: Sequence[float]) -> int:
    """Average of p_known values as a rounded percentage (0 for no values)."""
    if not probabilities:
        return 0
    return round_half_up(sum(probabilities) / len(probabilities) * 100)


class MasteryAggregator:
    """Projects a subject's skill states into weak areas and pass probability.

    Stateless apart from its configuration; safe to share.

    Args:
        weak_area_threshold: Mastery level below which a topic is weak.
        weak_area_limit: Maximum weak areas returned.
        passing_threshold: Mastery level considered passing.
        high_priority_below: Mastery below this is high priority.
        medium_priority_below: Mastery below this (and not high) is medium priority.
        high_priority_minutes: Recommended minutes for high priority topics.
        medium_priority_minutes: Recommended minutes for medium priority topics.
        low_priority_minutes: Recommended minutes for low priority topics.
    """

    def __init__(
        self,
        weak_area_threshold: int = 60,
        weak_area_limit: int = 5,
        passing_threshold: float = 70,
        high_priority_below: int = 30,
        medium_priority_below: int = 50,
        high_priority_minutes: int = 60,
        medium_priority_minutes: int = 45,
        low_priority_minutes: int = 30,
    ):
        self.weak_area_threshold = weak_area_threshold
        self.weak_area_limit = weak_area_limit
        self.passing_threshold = passing_threshold
        self.high_priority_below = high_priority_below
        self.medium_priority_below = medium_priority_below
        self._minutes = {
            WeakAreaPriority.HIGH: high_priority_minutes,
            WeakAreaPriority.MEDIUM: medium_priority_minutes,
            WeakAreaPriority.LOW: low_priority_minutes,
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "MasteryAggregator":
        return cls(
            weak_area_threshold=settings.weak_area_threshold,
            weak_area_limit=settings.weak_area_limit,
            passing_threshold=settings.passing_threshold,
            high_priority_below=settings.high_priority_below,
            medium_priority_below=settings.medium_priority_below,
            high_priority_minutes=settings.high_priority_minutes,
            medium_priority_minutes=settings.medium_priority_minutes,
            low_priority_minutes=settings.low_priority_minutes,
        )

    def process_attempt(
        self, state: SkillState, correct: bool, at: datetime | None = None
    ) -> SkillState:
        """Apply one quiz answer to a skill state."""
        return bkt.update(state, correct, at=at)

    def batch_process(
        self, state: SkillState, answers: Iterable[bool], at: datetime | None = None
    ) -> SkillState:
        """Apply a completed quiz's answers, in order, to a skill state."""
        return bkt.batch_update(state, answers, at=at)

    def priority_for(self, mastery_level: int) -> WeakAreaPriority:
        if mastery_level < self.high_priority_below:
            return WeakAreaPriority.HIGH
        elif mastery_level < self.medium_priority_below:
            return WeakAreaPriority.MEDIUM
        else:
            return WeakAreaPriority.LOW

    def compute_weak_areas(
        self,
        states: Iterable[SkillState],
        threshold: int | None = None,
        limit: int | None = None,
    ) -> list[WeakArea]:
        """Rank topics below the mastery threshold, weakest first.

        Ties on mastery level are broken by topic name.

        Args:
            states: Skill states of one subject.
            threshold: Mastery level below which a topic is weak.
            limit: Maximum number of weak areas returned.

        Returns:
            Weak areas sorted ascending by mastery level.

        Raises:
            ValidationError: If threshold or limit is negative.
        """
        threshold = self.weak_area_threshold if threshold is None else threshold
        limit = self.weak_area_limit if limit is None else limit
        if threshold < 0:
            raise ValidationError(f"threshold must be >= 0, got {threshold}", field="threshold")
        if limit < 0:
            raise ValidationError(f"limit must be >= 0, got {limit}", field="limit")

        weak = sorted(
            (s for s in states if s.mastery_level < threshold),
            key=lambda s: (s.mastery_level, s.topic_name),
        )[:limit]

        weak_areas = []
        for state in weak:
            priority = self.priority_for(state.mastery_level)
            weak_areas.append(
                WeakArea(
                    topic_name=state.topic_name,
                    mastery_level=state.mastery_level,
                    correct_count=state.correct_count,
                    incorrect_count=state.incorrect_count,
                    total_attempts=state.total_attempts,
                    last_practiced_at=state.last_practiced_at,
                    priority=priority,
                    recommended_study_time_minutes=self._minutes[priority],
                )
            )

        logger.debug("weak_areas_computed", threshold=threshold, count=len(weak_areas))
        return weak_areas

    def compute_pass_probability(
        self,
        states: Iterable[SkillState],
        passing_threshold: float | None = None,
    ) -> PassProbability:
        """Estimate readiness from the mean knowledge probability.

        probability = min(100, round(average_mastery / passing_threshold * 100))

        No states yields all zeros.
        """
        passing_threshold = (
            self.passing_threshold if passing_threshold is None else passing_threshold
        )
        if passing_threshold <= 0:
            raise ValidationError(
                f"passing_threshold must be > 0, got {passing_threshold}",
                field="passing_threshold",
            )

        p_known_values = [s.p_known for s in states]
        if not p_known_values:
            return PassProbability()

        average_mastery = calculate_average_mastery(p_known_values)
        probability = min(100, round_half_up(average_mastery / passing_threshold * 100))

        return PassProbability(
            probability=probability,
            average_mastery=average_mastery,
            topic_count=len(p_known_values),
        )
