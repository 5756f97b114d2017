"""
Domain models for spaced-repetition scheduling.

These are pure data structures with no I/O or external dependencies.
All timestamps are epoch milliseconds (UTC).
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

from .constants import (
    DEFAULT_INITIAL_EASE,
    DEFAULT_INTERVAL_MODIFIER,
    DEFAULT_MAX_INTERVAL,
    DEFAULT_STEPS,
)


class Rating(IntEnum):
    """User judgment of recall quality. 1 and 2 are never produced."""

    AGAIN = 0
    HARD = 3
    GOOD = 4
    EASY = 5


class SessionMode(str, Enum):
    NORMAL = "normal"
    RESCUE = "rescue"


@dataclass(frozen=True)
class CardSchedulingState:
    """
    Scheduling state owned by a single flashcard.

    Attributes:
        ease_factor: Interval growth multiplier, never below 1.3.
        repetition: Consecutive successful reviews since the last reset.
        interval: Current gap in days (fractions are sub-day gaps).
        next_review_date: Epoch ms at or after which the card is due.
        last_reviewed: Epoch ms of the most recent rating, None before the first.
    """

    ease_factor: float
    repetition: int
    interval: float
    next_review_date: int
    last_reviewed: int | None = None


@dataclass(frozen=True)
class Card:
    """A stored flashcard: opaque id, optional deck, and its scheduling state."""

    card_id: str
    state: CardSchedulingState
    deck_id: str | None = None
    front: str | None = None  # display only


@dataclass(frozen=True)
class ReviewSteps:
    """Fixed intervals, in minutes, for first-time or just-failed transitions."""

    again: float = DEFAULT_STEPS["again"]
    hard: float = DEFAULT_STEPS["hard"]
    good: float = DEFAULT_STEPS["good"]
    easy: float = DEFAULT_STEPS["easy"]


@dataclass(frozen=True)
class ReviewSettings:
    initial_ease: float = DEFAULT_INITIAL_EASE
    interval_modifier: int = DEFAULT_INTERVAL_MODIFIER  # percent
    max_interval: float = DEFAULT_MAX_INTERVAL  # days
    steps: ReviewSteps = field(default_factory=ReviewSteps)


@dataclass(frozen=True)
class HistoryEntry:
    card_id: str
    timestamp: int
    quality: int


@dataclass
class UserProfile:
    total_reviews: int = 0
    last_review_date: int | None = None
    # Raw stored form; resolved through the settings resolver.
    srs_settings: dict[str, Any] | None = None


@dataclass(frozen=True)
class SessionSummary:
    reviewed: int = 0
    correct: int = 0

    @property
    def accuracy(self) -> int:
        """Percentage of correct ratings, 0 when nothing was reviewed."""
        if self.reviewed == 0:
            return 0
        return round(self.correct / self.reviewed * 100)
