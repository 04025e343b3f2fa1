"""Skill state and mastery projection models."""

import math
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from -inf (1.5 -> 2, 2.5 -> 3)."""
    return math.floor(value + 0.5)


def clamp_probability(p: float) -> float:
    """Clamp a probability to [0, 1]."""
    return max(0.0, min(1.0, p))


class SkillState(BaseModel):
    """BKT state for one user x subject x topic.

    Frozen: every observation produces a new state.
    """

    model_config = ConfigDict(frozen=True)

    topic_name: str = Field(min_length=1)
    p_init: float = Field(default=0.3, gt=0, lt=1)
    p_transit: float = Field(default=0.1, gt=0, lt=1)
    p_guess: float = Field(default=0.25, gt=0, lt=1)
    p_slip: float = Field(default=0.1, gt=0, lt=1)
    p_known: float = Field(default=0.3, ge=0, le=1)
    correct_count: int = Field(default=0, ge=0)
    incorrect_count: int = Field(default=0, ge=0)
    total_attempts: int = Field(default=0, ge=0)
    last_practiced_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _cold_start_at_prior(cls, data: Any) -> Any:
        # p_known starts at the prior until an observation moves it
        if isinstance(data, dict) and data.get("p_known") is None and "p_init" in data:
            return {**data, "p_known": data["p_init"]}
        return data

    @model_validator(mode="after")
    def _check_attempt_counts(self) -> "SkillState":
        if self.total_attempts != self.correct_count + self.incorrect_count:
            raise ValueError(
                f"total_attempts ({self.total_attempts}) must equal correct_count "
                f"+ incorrect_count ({self.correct_count + self.incorrect_count})"
            )
        return self

    @computed_field
    @property
    def mastery_level(self) -> int:
        """p_known as a rounded percentage (0-100)."""
        return round_half_up(self.p_known * 100)

    @computed_field
    @property
    def p_learned(self) -> float:
        """Probability of having crossed the learning transition."""
        return clamp_probability(self.p_known + (1 - self.p_known) * self.p_transit)


class WeakAreaPriority(StrEnum):
    """Remediation priority for a weak topic."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class WeakArea(BaseModel):
    """A topic below the weak-area threshold, ranked for remediation."""

    model_config = ConfigDict(frozen=True)

    topic_name: str
    mastery_level: int
    correct_count: int
    incorrect_count: int
    total_attempts: int
    last_practiced_at: datetime | None = None
    priority: WeakAreaPriority
    recommended_study_time_minutes: int


class PassProbability(BaseModel):
    """Overall readiness relative to a passing threshold."""

    probability: int = 0  # 0-100
    average_mastery: int = 0  # 0-100
    topic_count: int = 0
