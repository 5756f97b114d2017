"""Due-set selection: which cards are eligible for review right now."""

from collections.abc import Iterable
from typing import TypeVar

from smartrecall.application.scheduler import now_ms
from smartrecall.domain.models import Card, CardSchedulingState

T = TypeVar("T", Card, CardSchedulingState)


def _next_review_date(item: Card | CardSchedulingState) -> int:
    if isinstance(item, Card):
        return item.state.next_review_date
    return item.next_review_date


def is_due(item: Card | CardSchedulingState, now: int) -> bool:
    return _next_review_date(item) <= now


def get_cards_due(cards: Iterable[T], now: int | None = None) -> list[T]:
    """
    Filter cards whose next review instant has passed.

    Order of the input is preserved; nothing is re-sorted.
    """
    if now is None:
        now = now_ms()
    return [card for card in cards if is_due(card, now)]


def count_due(cards: Iterable[Card | CardSchedulingState], now: int | None = None) -> int:
    return len(get_cards_due(cards, now))
