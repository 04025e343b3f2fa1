"""
Bayesian Knowledge Tracing - pure functions over SkillState values.

Standard 4-parameter model:
- p_init: prior probability the skill is known
- p_transit: probability of learning per opportunity
- p_guess: probability of answering correctly without knowing
- p_slip: probability of answering wrong despite knowing

Every function returns a new SkillState; inputs are never mutated.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from mastery_engine.config import Settings, get_settings
from mastery_engine.errors import ValidationError
from mastery_engine.models.skill import SkillState, clamp_probability

logger = structlog.get_logger()

_PARAM_NAMES = ("p_init", "p_transit", "p_guess", "p_slip")


def _build_state(**fields: Any) -> SkillState:
    """Construct a SkillState, translating pydantic errors to ValidationError."""
    try:
        return SkillState(**fields)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first["loc"]) or None
        raise ValidationError(f"Invalid skill state: {first['msg']}", field=field) from e


def _check_state(state: SkillState) -> None:
    if not isinstance(state, SkillState):
        raise ValidationError(f"Expected SkillState, got {type(state).__name__}")
    # model_construct() skips validation; re-check the fields the formulas divide by
    for name in ("p_guess", "p_slip"):
        value = getattr(state, name)
        if not 0 < value < 1:
            raise ValidationError(f"{name} must be in (0, 1), got {value}", field=name)
    if not 0 <= state.p_known <= 1:
        raise ValidationError(
            f"p_known must be in [0, 1], got {state.p_known}", field="p_known"
        )


def new_skill_state(
    topic_name: str,
    p_init: float | None = None,
    p_transit: float | None = None,
    p_guess: float | None = None,
    p_slip: float | None = None,
    p_known: float | None = None,
    settings: Settings | None = None,
) -> SkillState:
    """Create a cold-start state; omitted parameters use the configured defaults.

    Args:
        topic_name: Topic the state tracks.
        p_init: Prior knowledge probability.
        p_transit: Learning rate.
        p_guess: Guess probability.
        p_slip: Slip probability.
        p_known: Current knowledge probability (defaults to p_init).
        settings: Source of the defaults (the process-wide settings if omitted).

    Returns:
        A validated SkillState with zero attempts.

    Raises:
        ValidationError: If any parameter is outside its domain.
    """
    settings = settings or get_settings()
    p_init = settings.bkt_p_init if p_init is None else p_init
    return _build_state(
        topic_name=topic_name,
        p_init=p_init,
        p_transit=settings.bkt_p_transit if p_transit is None else p_transit,
        p_guess=settings.bkt_p_guess if p_guess is None else p_guess,
        p_slip=settings.bkt_p_slip if p_slip is None else p_slip,
        p_known=p_init if p_known is None else p_known,
    )


def update(
    state: SkillState, answer_correct: bool, at: datetime | None = None
) -> SkillState:
    """Bayesian posterior update for one observation.

    Formulas:
        correct:   P(L) = (1-S)*L / ((1-S)*L + G*(1-L))
        incorrect: P(L) = S*L / (S*L + (1-G)*(1-L))

    Args:
        state: Current skill state.
        answer_correct: Whether the answer was correct.
        at: Observation time (defaults to now).

    Returns:
        New state with updated p_known, counters and last_practiced_at.
    """
    _check_state(state)
    p_known = state.p_known

    if answer_correct:
        numerator = (1 - state.p_slip) * p_known
        denominator = numerator + state.p_guess * (1 - p_known)
    else:
        numerator = state.p_slip * p_known
        denominator = numerator + (1 - state.p_guess) * (1 - p_known)

    # p_guess, p_slip in (0, 1) keep the denominator positive
    new_p_known = clamp_probability(numerator / denominator)

    return state.model_copy(
        update={
            "p_known": new_p_known,
            "correct_count": state.correct_count + (1 if answer_correct else 0),
            "incorrect_count": state.incorrect_count + (0 if answer_correct else 1),
            "total_attempts": state.total_attempts + 1,
            "last_practiced_at": at or datetime.now(),
        }
    )


def batch_update(
    state: SkillState, answers: Iterable[bool], at: datetime | None = None
) -> SkillState:
    """Apply answers in order. An empty sequence returns ``state`` unchanged."""
    at = at or datetime.now()
    for answer in answers:
        state = update(state, answer, at=at)
    return state


def get_learned_probability(state: SkillState) -> float:
    """P(Learned) = P(L) + (1 - P(L)) * P(T), clamped to [0, 1]."""
    _check_state(state)
    return state.p_learned


def predict_next_correct(state: SkillState) -> float:
    """P(Correct) = P(L) * (1 - P(S)) + (1 - P(L)) * P(G)."""
    _check_state(state)
    p_correct = state.p_known * (1 - state.p_slip) + (1 - state.p_known) * state.p_guess
    return clamp_probability(p_correct)


def reset(state: SkillState, **params: float) -> SkillState:
    """Return ``state`` with p_known back at p_init, optionally with new parameters.

    Attempt counters are kept; they record history, not belief.
    """
    unknown = set(params) - set(_PARAM_NAMES)
    if unknown:
        raise ValidationError(f"Unknown BKT parameters: {sorted(unknown)}")
    fields = state.model_dump(exclude={"mastery_level", "p_learned"})
    fields.update(params)
    fields["p_known"] = fields["p_init"]
    return _build_state(**fields)


def replay_history(
    state: SkillState, answers: Iterable[bool], at: datetime | None = None
) -> SkillState:
    """Recompute a state from scratch by replaying an ordered attempt history.

    Uses the parameters of ``state`` and ignores its p_known and counters.
    Deterministic: the same history always yields the same state.
    """
    fresh = _build_state(
        topic_name=state.topic_name,
        **{name: getattr(state, name) for name in _PARAM_NAMES},
        p_known=state.p_init,
    )
    replayed = batch_update(fresh, answers, at=at or state.last_practiced_at)
    logger.debug(
        "skill_state_replayed",
        topic=state.topic_name,
        attempts=replayed.total_attempts,
        p_known=round(replayed.p_known, 4),
    )
    return replayed


def is_topic_mastered(p_known: float, threshold: float | None = None) -> bool:
    """True when p_known reaches the mastery threshold (default 0.8)."""
    if threshold is None:
        threshold = get_settings().bkt_mastered_threshold
    return p_known >= threshold
