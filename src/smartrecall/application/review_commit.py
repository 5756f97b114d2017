"""
Normal-mode commit of one rating.

A rating is committed in three steps, always in this order:

    card     write the rescheduled state
    history  append {card_id, timestamp, quality}
    profile  total_reviews + 1, last_review_date = now

PendingReview records which steps already succeeded, so a retry after a
PersistenceFailure resumes where the previous attempt stopped and never
repeats a step.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from smartrecall.application.scheduler import calculate_next_review
from smartrecall.domain.errors import PersistenceFailure, StoreError
from smartrecall.domain.models import (
    Card,
    CardSchedulingState,
    HistoryEntry,
    Rating,
    ReviewSettings,
)
from smartrecall.domain.ports import CardStore, HistoryStore, ProfileStore

logger = logging.getLogger(__name__)

COMMIT_STEPS = ("card", "history", "profile")


@dataclass
class PendingReview:
    card: Card
    rating: Rating
    now: int
    new_state: CardSchedulingState
    done: set[str] = field(default_factory=set)

    @classmethod
    def prepare(
        cls, card: Card, rating: Rating, settings: ReviewSettings, now: int
    ) -> "PendingReview":
        new_state = calculate_next_review(card.state, rating, settings, now=now)
        return cls(card=card, rating=rating, now=now, new_state=new_state)

    @property
    def card_id(self) -> str:
        return self.card.card_id

    @property
    def complete(self) -> bool:
        return self.done.issuperset(COMMIT_STEPS)

    def matches(self, card: Card, rating: Rating) -> bool:
        return self.card_id == card.card_id and self.rating is rating


def _run_step(card_id: str, target: str, op: Callable[[], Any]) -> None:
    try:
        ok = op()
    except (StoreError, OSError) as e:
        logger.error(f"{target} write failed for {card_id}: {e}")
        raise PersistenceFailure(card_id, f"{target} write failed: {e}") from e
    if ok is False:
        logger.error(f"{target} write rejected for {card_id}")
        raise PersistenceFailure(card_id, f"{target} write rejected")


def commit_review(
    pending: PendingReview,
    card_store: CardStore,
    history_store: HistoryStore,
    profile_store: ProfileStore,
) -> CardSchedulingState:
    """
    Run the steps of ``pending`` that have not succeeded yet.

    Raises:
        PersistenceFailure: On the first failing step; earlier steps stay marked done.
    """
    card_id = pending.card_id

    def bump_profile() -> bool:
        profile = profile_store.read()
        return profile_store.write(
            {"total_reviews": profile.total_reviews + 1, "last_review_date": pending.now}
        )

    ops: dict[str, Callable[[], Any]] = {
        "card": lambda: card_store.write(card_id, pending.new_state),
        "history": lambda: history_store.append(
            HistoryEntry(card_id=card_id, timestamp=pending.now, quality=int(pending.rating))
        ),
        "profile": bump_profile,
    }
    for step in COMMIT_STEPS:
        if step in pending.done:
            logger.debug(f"Skipping {step} for {card_id}: already committed")
            continue
        _run_step(card_id, step, ops[step])
        pending.done.add(step)
    return pending.new_state


def revert_card(pending: PendingReview, card_store: CardStore) -> bool:
    """
    Restore the pre-rating card state after an incomplete commit.

    Used where no retry will follow. Returns False if the restore itself failed.
    """
    if "card" not in pending.done:
        return True
    try:
        card_store.write(pending.card_id, pending.card.state)
    except (StoreError, OSError) as e:
        logger.error(f"Could not restore {pending.card_id} after failed commit: {e}")
        return False
    pending.done.discard("card")
    logger.warning(f"Restored {pending.card_id} after failed commit")
    return True
