"""Study plan models: topic inputs, allocations and feasibility."""

from pydantic import BaseModel, Field


class TopicInput(BaseModel):
    """A topic to schedule."""

    name: str = Field(min_length=1)
    current_mastery: float = Field(ge=0, le=100)
    priority: int = Field(default=3, ge=1, le=5)  # 1-5, higher = more important
    difficulty: float | None = Field(default=None, ge=1, le=5)  # 1-5, None = planner default


class TimeAllocation(BaseModel):
    """Hours assigned to one topic."""

    topic_name: str
    hours_allocated: float
    priority: int
    estimated_improvement: float  # expected mastery gain in points


class ScheduleFeasibility(BaseModel):
    """Whether a workload fits before the exam."""

    is_realistic: bool
    total_hours_needed: float
    total_hours_available: float
    hours_per_day: float
    days_needed: int
    days_available: int
    recommendations: list[str] = Field(default_factory=list)


class TimeUntilExam(BaseModel):
    days: int
    weeks: int
    months: int
    formatted: str
