"""REST API routes for mastery tracking and study planning."""

from datetime import datetime

import structlog
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from mastery_engine.config import get_settings
from mastery_engine.errors import ValidationError
from mastery_engine.models.plan import ScheduleFeasibility, TimeAllocation, TopicInput
from mastery_engine.models.skill import PassProbability, SkillState, WeakArea
from mastery_engine.planning.allocation import TimeAllocationPlanner
from mastery_engine.planning.feasibility import check_if_realistic
from mastery_engine.storage.skill_store import load_skill_states, record_attempts
from mastery_engine.tracking.aggregator import MasteryAggregator

logger = structlog.get_logger()
router = APIRouter(prefix="/api")


class AttemptRequest(BaseModel):
    subject_id: str
    topic: str = Field(min_length=1)
    correct: bool


class BatchAttemptRequest(BaseModel):
    subject_id: str
    topic: str = Field(min_length=1)
    answers: list[bool]


class MasteryResponse(BaseModel):
    p_known: float
    mastery_level: int


class FeasibilityRequest(BaseModel):
    total_hours_needed: float
    exam_date: datetime
    hours_per_day: float
    skip_weekends: bool = False


class AllocateRequest(BaseModel):
    topics: list[TopicInput]
    total_hours_available: float


def _mastery_response(state: SkillState) -> MasteryResponse:
    return MasteryResponse(p_known=state.p_known, mastery_level=state.mastery_level)


def _bad_request(e: ValidationError) -> HTTPException:
    logger.warning("invalid_input", error=str(e), field=e.field)
    return HTTPException(status_code=400, detail=str(e))


@router.post("/mastery/update")
async def update_mastery(request: AttemptRequest) -> MasteryResponse:
    """Record one answer for a topic."""
    settings = get_settings()
    try:
        state = record_attempts(
            settings.mastery_dir,
            request.subject_id,
            request.topic,
            [request.correct],
            settings=settings,
        )
    except ValidationError as e:
        raise _bad_request(e)
    return _mastery_response(state)


@router.post("/mastery/batch")
async def batch_update_mastery(request: BatchAttemptRequest) -> MasteryResponse:
    """Record a completed quiz's answers for a topic, in order."""
    settings = get_settings()
    try:
        state = record_attempts(
            settings.mastery_dir,
            request.subject_id,
            request.topic,
            request.answers,
            settings=settings,
        )
    except ValidationError as e:
        raise _bad_request(e)
    return _mastery_response(state)


@router.get("/mastery/weak-areas")
async def get_weak_areas(
    subject_id: str, threshold: int | None = None, limit: int | None = None
) -> list[WeakArea]:
    """Weakest topics of a subject, ranked for remediation."""
    settings = get_settings()
    aggregator = MasteryAggregator.from_settings(settings)
    try:
        states = load_skill_states(settings.mastery_dir, subject_id)
        return aggregator.compute_weak_areas(states, threshold=threshold, limit=limit)
    except ValidationError as e:
        raise _bad_request(e)


@router.get("/mastery/pass-probability")
async def get_pass_probability(
    subject_id: str, passing_threshold: float | None = None
) -> PassProbability:
    """Predicted pass probability for a subject."""
    settings = get_settings()
    aggregator = MasteryAggregator.from_settings(settings)
    try:
        states = load_skill_states(settings.mastery_dir, subject_id)
        return aggregator.compute_pass_probability(
            states, passing_threshold=passing_threshold
        )
    except ValidationError as e:
        raise _bad_request(e)


@router.post("/plan/feasibility")
async def plan_feasibility(request: FeasibilityRequest) -> ScheduleFeasibility:
    """Check whether a workload fits before the exam."""
    try:
        return check_if_realistic(
            request.total_hours_needed,
            request.exam_date,
            request.hours_per_day,
            request.skip_weekends,
        )
    except ValidationError as e:
        raise _bad_request(e)


@router.post("/plan/allocate")
async def plan_allocate(request: AllocateRequest) -> list[TimeAllocation]:
    """Distribute a study budget across topics."""
    planner = TimeAllocationPlanner.from_settings(get_settings())
    try:
        return planner.distribute_study_time(request.topics, request.total_hours_available)
    except ValidationError as e:
        raise _bad_request(e)


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}
