# Application Stats Package
from .deck_stats import DeckStats, DeckStatsCalculator

__all__ = ["DeckStats", "DeckStatsCalculator"]
