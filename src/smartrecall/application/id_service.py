"""Stable card ids."""

from ulid import ULID

from smartrecall.domain.constants import CARD_ID_PREFIX


def generate_card_id() -> str:
    """Generate a stable card id using ULID."""
    return f"{CARD_ID_PREFIX}{ULID()}"
