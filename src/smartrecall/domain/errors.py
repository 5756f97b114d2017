"""Error hierarchy shared by every layer."""


class SmartRecallError(Exception):
    """Base class for all SmartRecall errors."""


class InvalidRating(SmartRecallError, ValueError):
    """A quality rating outside of {0, 3, 4, 5} was submitted."""

    def __init__(self, quality: object):
        self.quality = quality
        super().__init__(f"Invalid rating {quality!r}; expected one of 0, 3, 4, 5")


class StoreError(SmartRecallError):
    """Raised by store implementations when a read or write cannot be completed."""


class CardNotFound(StoreError):
    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__(f"Card {card_id} not found")


class PersistenceFailure(SmartRecallError):
    """A rating could not be committed; the session was left unchanged."""

    def __init__(self, card_id: str, reason: str):
        self.card_id = card_id
        self.reason = reason
        super().__init__(f"Failed to persist review of {card_id}: {reason}")


class SessionError(SmartRecallError):
    """An operation was attempted in a session state that does not allow it."""
