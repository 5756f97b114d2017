"""
Settings resolver.

Turns the raw settings record stored on the user profile into a complete
ReviewSettings value. Missing or unusable fields fall back to defaults one by
one, and numeric fields are clamped to safe bounds:

    interval_modifier  1 .. 1000 percent (0 or missing means 100)
    max_interval       1 .. 36500 days   (0 or missing means 36500)
    steps.*            1 .. 52_560_000 minutes
    initial_ease       1.3 .. 5.0
"""

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
)

from smartrecall.domain.constants import (
    DEFAULT_INITIAL_EASE,
    DEFAULT_INTERVAL_MODIFIER,
    DEFAULT_MAX_INTERVAL,
    DEFAULT_STEPS,
    MAX_INITIAL_EASE,
    MAX_INTERVAL_MODIFIER,
    MAX_STEP_MINUTES,
    MIN_EASE,
    MIN_INTERVAL_MODIFIER,
    MIN_MAX_INTERVAL,
    MIN_STEP_MINUTES,
)
from smartrecall.domain.models import ReviewSettings, ReviewSteps

logger = logging.getLogger(__name__)


def _to_number(value: Any, name: str) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric setting {name}={value!r}")
        return None
    if number != number:  # NaN
        logger.warning(f"Ignoring NaN setting {name}")
        return None
    return number


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


class StoredSteps(BaseModel):
    model_config = ConfigDict(extra="ignore")

    again: float | None = None
    hard: float | None = None
    good: float | None = None
    easy: float | None = None

    @field_validator("again", "hard", "good", "easy", mode="before")
    @classmethod
    def coerce_number(cls, v: Any, info: ValidationInfo) -> float | None:
        return _to_number(v, f"steps.{info.field_name}")


class StoredReviewSettings(BaseModel):
    """
    Raw settings record as persisted on the user profile.

    Accepts both snake_case and the camelCase keys written by older clients.
    Unknown fields are kept so that upgrading a record never loses data.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    initial_ease: float | None = Field(
        default=None, validation_alias=AliasChoices("initial_ease", "initialEase")
    )
    interval_modifier: float | None = Field(
        default=None, validation_alias=AliasChoices("interval_modifier", "intervalModifier")
    )
    max_interval: float | None = Field(
        default=None, validation_alias=AliasChoices("max_interval", "maxInterval")
    )
    steps: StoredSteps | None = None

    @field_validator("initial_ease", "interval_modifier", "max_interval", mode="before")
    @classmethod
    def coerce_number(cls, v: Any, info: ValidationInfo) -> float | None:
        return _to_number(v, info.field_name)

    @field_validator("steps", mode="before")
    @classmethod
    def coerce_steps(cls, v: Any) -> Any:
        if v is None or isinstance(v, Mapping):
            return v
        logger.warning(f"Ignoring malformed steps setting {v!r}")
        return None


def _resolve_steps(stored: StoredSteps | None) -> ReviewSteps:
    values: dict[str, float] = {}
    for name, default in DEFAULT_STEPS.items():
        value = getattr(stored, name) if stored is not None else None
        if value is None:
            value = default
        values[name] = _clamp(value, MIN_STEP_MINUTES, MAX_STEP_MINUTES)
    return ReviewSteps(**values)


def resolve_review_settings(raw: Mapping[str, Any] | None) -> ReviewSettings:
    """
    Resolve the user's stored settings into a complete ReviewSettings.

    Args:
        raw: Stored settings mapping, or None when the user never customized them.
            Anything other than a mapping is ignored with a warning.

    Returns:
        ReviewSettings with every field populated and clamped.
    """
    if raw is None:
        return ReviewSettings()
    if not isinstance(raw, Mapping):
        logger.warning(f"Ignoring stored settings of type {type(raw).__name__}, using defaults")
        return ReviewSettings()

    stored = StoredReviewSettings.model_validate(dict(raw))

    initial_ease = stored.initial_ease
    if initial_ease is None:
        initial_ease = DEFAULT_INITIAL_EASE

    # 0 is treated like "unset" for these two, matching how they were stored historically.
    interval_modifier = stored.interval_modifier or DEFAULT_INTERVAL_MODIFIER
    max_interval = stored.max_interval or DEFAULT_MAX_INTERVAL

    settings = ReviewSettings(
        initial_ease=_clamp(initial_ease, MIN_EASE, MAX_INITIAL_EASE),
        interval_modifier=int(
            round(_clamp(interval_modifier, MIN_INTERVAL_MODIFIER, MAX_INTERVAL_MODIFIER))
        ),
        max_interval=_clamp(max_interval, MIN_MAX_INTERVAL, DEFAULT_MAX_INTERVAL),
        steps=_resolve_steps(stored.steps),
    )
    logger.debug(f"Resolved review settings: {settings}")
    return settings


def upgrade_stored_settings(raw: Mapping[str, Any]) -> dict[str, Any]:
    """
    One-time upgrade for records written before step customization existed.

    Synthesizes ``steps`` from defaults (filling any missing step) and keeps
    every other stored field untouched.
    """
    upgraded = dict(raw)
    existing = raw.get("steps")
    steps = dict(DEFAULT_STEPS)
    if isinstance(existing, Mapping):
        steps.update({k: v for k, v in existing.items() if v is not None})
    upgraded["steps"] = steps
    return upgraded


def settings_to_stored(settings: ReviewSettings) -> dict[str, Any]:
    """Stored (snake_case) form of resolved settings."""
    return {
        "initial_ease": settings.initial_ease,
        "interval_modifier": settings.interval_modifier,
        "max_interval": settings.max_interval,
        "steps": {
            "again": settings.steps.again,
            "hard": settings.steps.hard,
            "good": settings.steps.good,
            "easy": settings.steps.easy,
        },
    }
