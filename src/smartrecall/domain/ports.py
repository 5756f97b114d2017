"""
Ports (interfaces) for persistence.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.

Write operations return True on success and False on failure; implementations
may also raise StoreError. Callers treat both as a failed write.
"""

from abc import ABC, abstractmethod
from typing import Any

from .models import Card, CardSchedulingState, HistoryEntry, UserProfile


class CardStore(ABC):
    """
    Port for reading and writing card scheduling records.

    Implementations:
        - SqliteStore: Single-file SQLite database.
    """

    @abstractmethod
    def read(self, deck_id: str | None = None) -> list[Card]:
        """
        Fetch cards in scope.

        Args:
            deck_id: Restrict to one deck; None means all decks.

        Returns:
            Cards in insertion order.
        """
        pass

    @abstractmethod
    def get(self, card_id: str) -> Card:
        """Fetch one card. Raises CardNotFound if absent."""
        pass

    @abstractmethod
    def write(self, card_id: str, state: CardSchedulingState) -> bool:
        """Replace the scheduling state of an existing card."""
        pass

    @abstractmethod
    def add(self, card: Card) -> bool:
        """Insert a newly authored card."""
        pass


class HistoryStore(ABC):
    """Append-only review log. The scheduling core never reads it back."""

    @abstractmethod
    def append(self, entry: HistoryEntry) -> bool:
        pass

    @abstractmethod
    def for_card(self, card_id: str) -> list[HistoryEntry]:
        """Review log of one card, oldest first (for reporting surfaces)."""
        pass


class ProfileStore(ABC):
    """Single user profile holding review totals and stored settings."""

    @abstractmethod
    def read(self) -> UserProfile:
        pass

    @abstractmethod
    def write(self, patch: dict[str, Any]) -> bool:
        """
        Merge the given fields into the profile.

        Recognized keys: total_reviews, last_review_date, srs_settings.
        """
        pass
