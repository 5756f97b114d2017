"""
Deck statistics derived from scheduling state.

This is a pure computation module with no I/O.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from smartrecall.application.due import count_due
from smartrecall.application.scheduler import round_half_up
from smartrecall.domain.constants import MASTERY_EASE_SPAN, MIN_EASE
from smartrecall.domain.models import Card


@dataclass
class DeckStats:
    deck_id: str | None
    total: int
    due: int
    mastery: int  # 0-100, from the mean ease factor


class DeckStatsCalculator:
    """
    Computes per-deck summaries from Card records.

    Stateless and side-effect free.
    """

    def summarize(self, deck_id: str | None, cards: Sequence[Card], now: int) -> DeckStats:
        return DeckStats(
            deck_id=deck_id,
            total=len(cards),
            due=count_due(cards, now),
            mastery=self._compute_mastery(cards),
        )

    def summarize_all(self, cards: Sequence[Card], now: int) -> list[DeckStats]:
        """One DeckStats per deck, in order of first appearance."""
        by_deck: dict[str | None, list[Card]] = {}
        for card in cards:
            by_deck.setdefault(card.deck_id, []).append(card)
        return [self.summarize(deck_id, group, now) for deck_id, group in by_deck.items()]

    def _compute_mastery(self, cards: Sequence[Card]) -> int:
        """
        Map mean ease onto 0-100.

        1.3 (the ease floor) and below is 0%, 3.0 and above is 100%.
        """
        if not cards:
            return 0
        avg_ease = sum(c.state.ease_factor for c in cards) / len(cards)
        if avg_ease <= 0:
            return 0
        mastery = int(round_half_up((avg_ease - MIN_EASE) / MASTERY_EASE_SPAN * 100))
        return max(0, min(100, mastery))
