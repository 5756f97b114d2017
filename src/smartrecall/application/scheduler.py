"""
Scheduling engine: a customized SM-2 variant.

Pure computation module with no I/O. Every call receives its settings and
clock explicitly; nothing is read from global state.
"""

import logging
import math
import time

from smartrecall.domain.constants import (
    EASY_EASE_BONUS,
    EASY_INTERVAL_BONUS,
    HARD_EASE_PENALTY,
    HARD_INTERVAL_FACTOR,
    MIN_EASE,
    MIN_INTERVAL_DAYS,
    MINUTES_PER_DAY,
    MS_PER_DAY,
)
from smartrecall.domain.errors import InvalidRating
from smartrecall.domain.models import CardSchedulingState, Rating, ReviewSettings

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def round_half_up(value: float, digits: int = 0) -> float:
    # Half-up; round() would be half-to-even.
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale


def _round2(value: float) -> float:
    return round_half_up(value, 2)


def _days_from_minutes(minutes: float) -> float:
    return minutes / MINUTES_PER_DAY


def parse_rating(quality: object) -> Rating:
    """
    Validate a raw quality value.

    Raises:
        InvalidRating: If the value is not one of 0, 3, 4, 5.
    """
    if isinstance(quality, bool):
        raise InvalidRating(quality)
    try:
        return Rating(quality)
    except ValueError:
        raise InvalidRating(quality) from None


def new_card_state(
    settings: ReviewSettings | None = None, now: int | None = None
) -> CardSchedulingState:
    """Scheduling state for a freshly authored card: due immediately, never reviewed."""
    settings = settings or ReviewSettings()
    return CardSchedulingState(
        ease_factor=settings.initial_ease,
        repetition=0,
        interval=0.0,
        next_review_date=now_ms() if now is None else now,
        last_reviewed=None,
    )


def calculate_next_review(
    card: CardSchedulingState,
    quality: int | Rating,
    settings: ReviewSettings | None = None,
    now: int | None = None,
) -> CardSchedulingState:
    """
    Compute the scheduling state that results from rating a card.

    Args:
        card: Current scheduling state.
        quality: One of 0 (Again), 3 (Hard), 4 (Good), 5 (Easy).
        settings: Resolved review settings; defaults apply when None.
        now: Review instant in epoch ms; current time when None.

    Returns:
        The updated state. The input is not modified.

    Raises:
        InvalidRating: For any other quality value.
    """
    rating = parse_rating(quality)
    settings = settings or ReviewSettings()
    if now is None:
        now = now_ms()

    mod = settings.interval_modifier / 100
    steps = settings.steps
    ease = card.ease_factor
    repetition = card.repetition
    interval = card.interval

    if rating is Rating.AGAIN:
        repetition = 0
        interval = _days_from_minutes(steps.again)
    elif rating is Rating.HARD:
        hard_step = _days_from_minutes(steps.hard)
        if repetition == 0:
            interval = hard_step
        else:
            interval = max(hard_step, interval * HARD_INTERVAL_FACTOR * mod)
        ease -= HARD_EASE_PENALTY
        repetition += 1
    elif rating is Rating.GOOD:
        if repetition == 0:
            interval = _days_from_minutes(steps.good)
        else:
            interval = _round2(interval * ease * mod)
        repetition += 1
    else:
        if repetition == 0:
            interval = _days_from_minutes(steps.easy)
        else:
            interval = _round2(interval * ease * mod * EASY_INTERVAL_BONUS)
            ease += EASY_EASE_BONUS
        repetition += 1

    interval = min(interval, settings.max_interval)
    interval = max(interval, MIN_INTERVAL_DAYS)
    ease = max(ease, MIN_EASE)

    result = CardSchedulingState(
        ease_factor=ease,
        repetition=repetition,
        interval=interval,
        next_review_date=now + round(interval * MS_PER_DAY),
        last_reviewed=now,
    )
    logger.debug(f"Rated {rating.name}: {card} -> {result}")
    return result


def forecast_intervals(
    card: CardSchedulingState, settings: ReviewSettings | None = None
) -> dict[Rating, float]:
    """
    Interval in days each rating would currently produce.

    Runs the engine itself so a forecast always matches what a rating commits.
    """
    reference = card.last_reviewed if card.last_reviewed is not None else 0
    return {
        rating: calculate_next_review(card, rating, settings, now=reference).interval
        for rating in Rating
    }


def format_interval(minutes: float) -> str:
    """Compact label for an interval given in minutes, e.g. ``10m``, ``3h``, ``4d``."""
    if minutes < 60:
        return f"{int(round_half_up(minutes))}m"
    if minutes < MINUTES_PER_DAY:
        return f"{int(round_half_up(minutes / 60))}h"
    return f"{int(round_half_up(minutes / MINUTES_PER_DAY))}d"


def forecast_labels(
    card: CardSchedulingState, settings: ReviewSettings | None = None
) -> dict[Rating, str]:
    """Button labels for each rating, e.g. ``{Rating.GOOD: "15d"}``."""
    return {
        rating: format_interval(days * MINUTES_PER_DAY)
        for rating, days in forecast_intervals(card, settings).items()
    }
