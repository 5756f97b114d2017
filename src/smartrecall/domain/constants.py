"""Centralized constants for SmartRecall.

All scheduling magic numbers and settings defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Time ----------
MINUTES_PER_DAY = 1440
MS_PER_DAY = 86_400_000

# ---------- Ease ----------
MIN_EASE = 1.3
MAX_INITIAL_EASE = 5.0
DEFAULT_INITIAL_EASE = 2.5
HARD_EASE_PENALTY = 0.15
EASY_EASE_BONUS = 0.15

# ---------- Interval growth ----------
HARD_INTERVAL_FACTOR = 1.2
EASY_INTERVAL_BONUS = 1.3
MIN_INTERVAL_DAYS = 1 / MINUTES_PER_DAY  # one minute

# ---------- Settings defaults ----------
DEFAULT_INTERVAL_MODIFIER = 100  # percent
MIN_INTERVAL_MODIFIER = 1
MAX_INTERVAL_MODIFIER = 1000
DEFAULT_MAX_INTERVAL = 36500.0  # days
MIN_MAX_INTERVAL = 1.0

# Steps are stored in minutes.
DEFAULT_STEPS = {"again": 1, "hard": 10, "good": 1440, "easy": 5760}
MIN_STEP_MINUTES = 1
MAX_STEP_MINUTES = int(DEFAULT_MAX_INTERVAL * MINUTES_PER_DAY)

# ---------- Deck stats ----------
MASTERY_EASE_SPAN = 1.7

# ---------- Ids ----------
CARD_ID_PREFIX = "card_"
