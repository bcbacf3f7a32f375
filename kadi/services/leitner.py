"""
Leitner scheduling: interval table and grading policy.

Levels are boxes 0..MAX_LEVEL. A correct answer promotes one box (capped at
the top), a wrong answer resets to box 0. The next due date is the UTC
calendar day of the grade plus the interval of the new level.
"""
import logging
import math
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from kadi.schemas.trainer import GradeResult

logger = logging.getLogger(__name__)


# Leitner review intervals in days, indexed by level
# Level 0 = 1 day, Level 1 = 2 days, Level 2 = 6 days, Level 3 = 14 days, Level 4 = 30 days, Level 5 = 60 days
LEITNER_INTERVAL_DAYS = (1, 2, 6, 14, 30, 60)
MIN_LEVEL = 0
MAX_LEVEL = len(LEITNER_INTERVAL_DAYS) - 1


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_today(now: Optional[datetime] = None) -> date:
    """UTC calendar day of `now` (defaults to the current instant)."""
    if now is None:
        now = utc_now()
    if now.tzinfo is None:
        # Naive datetimes are stored as UTC
        return now.date()
    return now.astimezone(timezone.utc).date()


def clamp_level(level) -> int:
    """
    Clamp any level value into [MIN_LEVEL, MAX_LEVEL].

    Fractions are floored. Missing, non-numeric and non-finite values map to
    MIN_LEVEL. Never raises.
    """
    if isinstance(level, int):
        # float() overflows on huge ints
        return max(MIN_LEVEL, min(MAX_LEVEL, int(level)))
    try:
        value = float(level)
    except (TypeError, ValueError, OverflowError):
        return MIN_LEVEL
    if not math.isfinite(value):
        return MIN_LEVEL
    return max(MIN_LEVEL, min(MAX_LEVEL, math.floor(value)))


def get_interval_days(level) -> int:
    """
    Review interval in days for a level.

    Args:
        level: Leitner level; out-of-range values are clamped

    Returns:
        Interval in days, always >= 1
    """
    return LEITNER_INTERVAL_DAYS[clamp_level(level)]


def next_level_on_correct(current_level) -> int:
    """Promote one box, capped at MAX_LEVEL."""
    return min(clamp_level(current_level) + 1, MAX_LEVEL)


def next_level_on_wrong(current_level) -> int:
    """Any wrong answer resets the card to the first box."""
    return MIN_LEVEL


def next_level(current_level, correct: bool) -> int:
    if correct:
        return next_level_on_correct(current_level)
    return next_level_on_wrong(current_level)


def calculate_due_date(level, now: Optional[datetime] = None) -> date:
    """
    Calculate the next due date for a card that has just reached `level`.

    Args:
        level: New Leitner level
        now: Grading instant (defaults to now)

    Returns:
        UTC calendar day on which the card becomes due again
    """
    interval_days = get_interval_days(level)
    if not isinstance(interval_days, int) or interval_days < 1:
        # A card must always come back, never immediately and never not at all
        interval_days = 1
    return utc_today(now) + timedelta(days=interval_days)


def grade_card(
    card_id: str,
    current_level,
    correct: bool,
    now: Optional[datetime] = None
) -> GradeResult:
    """
    Apply the grading policy to one card.

    Args:
        card_id: Card being graded
        current_level: Level the card had when it was shown
        correct: Whether the learner knew the answer
        now: Grading instant (defaults to now)

    Returns:
        GradeResult with the new level and due date
    """
    if now is None:
        now = utc_now()
    previous_level = clamp_level(current_level)
    new_level = next_level(previous_level, correct)
    due_date = calculate_due_date(new_level, now)
    logger.debug(
        f"Graded card {card_id}: correct={correct}, level {previous_level} -> {new_level}, due {due_date}"
    )
    return GradeResult(
        card_id=card_id,
        correct=correct,
        previous_level=previous_level,
        new_level=new_level,
        due_date=due_date,
        graded_at=now,
    )


def format_days(days) -> str:
    """Human label for a day offset."""
    try:
        value = float(days)
    except (TypeError, ValueError, OverflowError):
        value = 0.0
    safe_days = round(value) if math.isfinite(value) else 0
    if safe_days <= 0:
        return "today"
    if safe_days == 1:
        return "tomorrow"
    return f"in {safe_days} days"


def level_label(level) -> str:
    """Label a level by the interval it schedules."""
    return format_days(get_interval_days(level))
