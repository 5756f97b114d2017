"""
Review session controller.

Sequences cards into a queue, dispatches ratings to the scheduling engine and
keeps session counters. A session runs in one of two modes, fixed at
construction:

    NORMAL  due cards only; each rating is scheduled and persisted.
    RESCUE  every card in scope, shuffled; ratings only move the counters.

Lifecycle: LOADING -> ACTIVE -> FINISHED. FINISHED is read-only.
"""

import logging
import random
from collections import deque
from collections.abc import Callable
from enum import Enum
from typing import Any

from smartrecall.application.due import get_cards_due
from smartrecall.application.review_commit import PendingReview, commit_review
from smartrecall.application.scheduler import forecast_labels, now_ms, parse_rating
from smartrecall.application.settings_resolver import resolve_review_settings
from smartrecall.domain.errors import SessionError
from smartrecall.domain.models import (
    Card,
    Rating,
    ReviewSettings,
    SessionMode,
    SessionSummary,
)
from smartrecall.domain.ports import CardStore, HistoryStore, ProfileStore

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    LOADING = "loading"
    ACTIVE = "active"
    FINISHED = "finished"


class ReviewSession:
    """
    One review pass over a deck (or all decks).

    Follows Dependency Inversion: depends on the store ports, not on a
    concrete persistence backend.
    """

    def __init__(
        self,
        card_store: CardStore,
        history_store: HistoryStore,
        profile_store: ProfileStore,
        mode: SessionMode = SessionMode.NORMAL,
        deck_id: str | None = None,
        settings: ReviewSettings | None = None,
        clock: Callable[[], int] = now_ms,
        rng: random.Random | None = None,
    ):
        """
        Args:
            card_store: Source of cards and sink for updated scheduling state.
            history_store: Append-only review log.
            profile_store: User profile (review totals and stored settings).
            mode: NORMAL or RESCUE, fixed for the session's lifetime.
            deck_id: Deck to review; None means all decks.
            settings: Resolved settings; read from the profile when None.
            clock: Returns the current instant in epoch ms.
            rng: Random source used to shuffle RESCUE queues.
        """
        self._cards = card_store
        self._history = history_store
        self._profile = profile_store
        self.mode = SessionMode(mode)
        self.deck_id = deck_id
        self._settings = settings
        self._clock = clock
        self._rng = rng or random.Random()

        self.status = SessionStatus.LOADING
        self.answer_shown = False
        self._queue: deque[Card] = deque()
        self._reviewed = 0
        self._correct = 0
        self._pending: PendingReview | None = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def settings(self) -> ReviewSettings:
        if self._settings is None:
            self._settings = resolve_review_settings(self._profile.read().srs_settings)
        return self._settings

    @property
    def current_card(self) -> Card | None:
        if self.status is not SessionStatus.ACTIVE or not self._queue:
            return None
        return self._queue[0]

    @property
    def remaining(self) -> int:
        return len(self._queue)

    @property
    def is_finished(self) -> bool:
        return self.status is SessionStatus.FINISHED

    def summary(self) -> SessionSummary:
        return SessionSummary(reviewed=self._reviewed, correct=self._correct)

    def forecast(self) -> dict[Rating, str]:
        """Interval label each rating would give the current card."""
        card = self._require_card()
        return forecast_labels(card.state, self.settings)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self) -> "ReviewSession":
        """Build the queue and move to ACTIVE, or straight to FINISHED if nothing is in it."""
        if self.status is not SessionStatus.LOADING:
            raise SessionError(f"Session already started ({self.status.value})")

        cards = self._cards.read(self.deck_id)
        if self.mode is SessionMode.NORMAL:
            queue = get_cards_due(cards, self._clock())
        else:
            queue = list(cards)
            self._rng.shuffle(queue)

        self._queue = deque(queue)
        self.status = SessionStatus.ACTIVE if self._queue else SessionStatus.FINISHED
        logger.info(
            f"Started {self.mode.value} session (deck={self.deck_id or 'all'}): "
            f"{len(self._queue)} card(s) queued"
        )
        return self

    def show_answer(self) -> None:
        """Reveal correctness of the selected option. Never touches scheduling state."""
        self._require_card()
        self.answer_shown = True

    def submit_rating(self, quality: int | Rating) -> SessionSummary:
        """
        Rate the current card and advance the queue.

        Raises:
            InvalidRating: For a quality outside 0, 3, 4, 5.
            SessionError: If no card is presented or its answer is not shown yet.
            PersistenceFailure: If a NORMAL-mode write fails; the session is unchanged
                and retrying the same rating resumes the commit without repeating steps.
        """
        card = self._require_card()
        if not self.answer_shown:
            raise SessionError("Answer must be shown before rating")
        rating = parse_rating(quality)

        if self.mode is SessionMode.NORMAL:
            self._commit(card, rating)

        self._advance(rating)
        return self.summary()

    def acknowledge(self, correct: bool) -> SessionSummary:
        """RESCUE-only binary rating: a right answer counts as Hard, a wrong one as Again."""
        if self.mode is not SessionMode.RESCUE:
            raise SessionError("Binary acknowledgement is only available in rescue mode")
        return self.submit_rating(Rating.HARD if correct else Rating.AGAIN)

    def abandon(self) -> SessionSummary:
        """Stop early. Safe at any point: nothing is left partially committed."""
        if self.status is not SessionStatus.FINISHED:
            logger.info(f"Session abandoned with {len(self._queue)} card(s) left")
        self._queue.clear()
        self._pending = None
        self.answer_shown = False
        self.status = SessionStatus.FINISHED
        return self.summary()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_card(self) -> Card:
        if self.status is SessionStatus.LOADING:
            raise SessionError("Session not started")
        card = self.current_card
        if card is None:
            raise SessionError("Session finished")
        return card

    def _commit(self, card: Card, rating: Rating) -> None:
        pending = self._pending
        if pending is None or not pending.matches(card, rating):
            if pending is not None and pending.done:
                logger.warning(
                    f"Discarding partial commit of {pending.card_id} "
                    f"({sorted(pending.done)}) for a different rating"
                )
            pending = PendingReview.prepare(card, rating, self.settings, self._clock())
            self._pending = pending
        commit_review(pending, self._cards, self._history, self._profile)

    def _advance(self, rating: Rating) -> None:
        self._reviewed += 1
        if rating >= Rating.HARD:
            self._correct += 1
        self._queue.popleft()
        self._pending = None
        self.answer_shown = False
        if not self._queue:
            self.status = SessionStatus.FINISHED
            logger.info(f"Session finished: {self._reviewed} reviewed, {self._correct} correct")


def run_session(
    card_store: CardStore,
    history_store: HistoryStore,
    profile_store: ProfileStore,
    rate: Callable[[ReviewSession, Card], int | Rating | None],
    mode: SessionMode = SessionMode.NORMAL,
    deck_id: str | None = None,
    **kwargs: Any,
) -> SessionSummary:
    """
    Drive a whole session, asking ``rate`` for each presented card.

    ``rate`` returning None abandons the session. Returns the final counters.
    """
    session = ReviewSession(
        card_store, history_store, profile_store, mode=mode, deck_id=deck_id, **kwargs
    ).start()
    while not session.is_finished:
        card = session.current_card
        assert card is not None
        session.show_answer()
        quality = rate(session, card)
        if quality is None:
            return session.abandon()
        session.submit_rating(quality)
    return session.summary()
