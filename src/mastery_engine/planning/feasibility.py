"""Deadline feasibility: available study time and whether a workload fits."""

import math
from datetime import datetime, timedelta

import structlog

from mastery_engine.errors import ValidationError
from mastery_engine.models.plan import ScheduleFeasibility, TimeUntilExam
from mastery_engine.models.skill import round_half_up

logger = structlog.get_logger()

# days_needed below this share of days_available counts as a comfortable plan
COMFORTABLE_BUFFER_RATIO = 0.7
MAX_RECOMMENDED_HOURS_PER_DAY = 12.0


def _now_for(exam_date: datetime, now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(exam_date.tzinfo)


def _whole_days_until(exam_date: datetime, now: datetime) -> int:
    return math.floor((exam_date - now) / timedelta(days=1))


def calculate_days_available(
    exam_date: datetime,
    skip_weekends: bool = False,
    now: datetime | None = None,
) -> int:
    """Count whole study days between now and the exam.

    Args:
        exam_date: Exam date and time.
        skip_weekends: Count Monday-Friday only.
        now: Reference time (defaults to the current time).

    Returns:
        Number of days; 0 when the exam is today or in the past.
    """
    now = _now_for(exam_date, now)
    total_days = _whole_days_until(exam_date, now)
    if total_days <= 0:
        return 0
    if not skip_weekends:
        return total_days

    # Every full week holds five weekdays; walk only the leftover days
    full_weeks, remainder = divmod(total_days, 7)
    start = now.weekday()
    return full_weeks * 5 + sum(1 for offset in range(remainder) if (start + offset) % 7 < 5)


def calculate_available_time(
    exam_date: datetime,
    hours_per_day: float,
    skip_weekends: bool = False,
    now: datetime | None = None,
) -> float:
    """Total study hours available before the exam."""
    if hours_per_day < 0:
        raise ValidationError(
            f"hours_per_day must be >= 0, got {hours_per_day}", field="hours_per_day"
        )
    return calculate_days_available(exam_date, skip_weekends, now=now) * hours_per_day


def check_if_realistic(
    total_hours_needed: float,
    exam_date: datetime,
    hours_per_day: float,
    skip_weekends: bool = False,
    now: datetime | None = None,
) -> ScheduleFeasibility:
    """Check whether a study workload fits before the exam.

    Args:
        total_hours_needed: Hours the plan requires.
        exam_date: Exam date and time.
        hours_per_day: Daily study budget.
        skip_weekends: Study on weekdays only.
        now: Reference time (defaults to the current time).

    Returns:
        ScheduleFeasibility with templated recommendations.

    Raises:
        ValidationError: If hours are negative or hours_per_day is not positive.
    """
    if total_hours_needed < 0:
        raise ValidationError(
            f"total_hours_needed must be >= 0, got {total_hours_needed}",
            field="total_hours_needed",
        )
    if hours_per_day <= 0:
        raise ValidationError(
            f"hours_per_day must be > 0, got {hours_per_day}", field="hours_per_day"
        )

    now = _now_for(exam_date, now)
    days_available = calculate_days_available(exam_date, skip_weekends, now=now)
    total_hours_available = days_available * hours_per_day
    days_needed = math.ceil(total_hours_needed / hours_per_day)
    is_realistic = total_hours_needed <= total_hours_available

    recommendations: list[str] = []
    if not is_realistic:
        recommendations.append(
            f"You need {total_hours_needed:.1f} hours but only have "
            f"{total_hours_available:.1f} hours available."
        )
        if days_available > 0:
            deficit = total_hours_needed - total_hours_available
            additional_hours_per_day = math.ceil(deficit / days_available * 10) / 10
            recommendations.append(
                f"Consider increasing study time by {additional_hours_per_day:.1f} "
                f"hours per day."
            )
        else:
            recommendations.append(
                "No study days remain before the exam date. Consider moving the exam date."
            )
        recommendations.append(
            "Alternatively, focus on the highest-priority topics and adjust your goals."
        )
    elif days_needed < days_available * COMFORTABLE_BUFFER_RATIO:
        recommendations.append(
            f"This plan is very achievable! You have {days_available - days_needed} "
            f"extra days as buffer."
        )
    else:
        recommendations.append("This plan is tight but achievable with consistent effort.")

    logger.info(
        "feasibility_checked",
        is_realistic=is_realistic,
        hours_needed=total_hours_needed,
        hours_available=total_hours_available,
        days_available=days_available,
    )

    return ScheduleFeasibility(
        is_realistic=is_realistic,
        total_hours_needed=total_hours_needed,
        total_hours_available=total_hours_available,
        hours_per_day=hours_per_day,
        days_needed=days_needed,
        days_available=days_available,
        recommendations=recommendations,
    )


def calculate_recommended_hours_per_day(
    total_hours_needed: float,
    exam_date: datetime,
    skip_weekends: bool = False,
    now: datetime | None = None,
) -> float:
    """Daily hours needed to finish by the exam, rounded to 0.5 and capped at 12."""
    if total_hours_needed < 0:
        raise ValidationError(
            f"total_hours_needed must be >= 0, got {total_hours_needed}",
            field="total_hours_needed",
        )
    days_available = calculate_days_available(exam_date, skip_weekends, now=now)
    if days_available <= 0:
        return 0.0
    hours_per_day = total_hours_needed / days_available
    return min(MAX_RECOMMENDED_HOURS_PER_DAY, round_half_up(hours_per_day * 2) / 2)


def get_time_until_exam(exam_date: datetime, now: datetime | None = None) -> TimeUntilExam:
    """Time left before the exam, with a coarse human-readable label."""
    days = _whole_days_until(exam_date, _now_for(exam_date, now))
    weeks = days // 7
    months = days // 30

    if months > 0:
        formatted = f"{months} month{'s' if months != 1 else ''}"
    elif weeks > 0:
        formatted = f"{weeks} week{'s' if weeks != 1 else ''}"
    else:
        formatted = f"{days} day{'s' if days != 1 else ''}"

    return TimeUntilExam(days=days, weeks=weeks, months=months, formatted=formatted)
