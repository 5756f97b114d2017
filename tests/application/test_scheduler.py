import pytest

from smartrecall.application.scheduler import (
    calculate_next_review,
    forecast_intervals,
    forecast_labels,
    format_interval,
    new_card_state,
    parse_rating,
)
from smartrecall.domain.constants import MIN_EASE, MS_PER_DAY
from smartrecall.domain.errors import InvalidRating
from smartrecall.domain.models import (
    CardSchedulingState,
    Rating,
    ReviewSettings,
    ReviewSteps,
)

NOW = 1_700_000_000_000
ONE_MINUTE = 1 / 1440


def make_state(ease=2.5, repetition=0, interval=0.0, last_reviewed=None):
    return CardSchedulingState(
        ease_factor=ease,
        repetition=repetition,
        interval=interval,
        next_review_date=NOW,
        last_reviewed=last_reviewed,
    )


# --- Reference scenarios ---


def test_new_card_good_uses_good_step():
    result = calculate_next_review(make_state(), 4, now=NOW)
    assert result.interval == 1.0
    assert result.repetition == 1
    assert result.ease_factor == 2.5


def test_mature_card_good_multiplies_by_ease():
    result = calculate_next_review(make_state(repetition=3, interval=6), Rating.GOOD, now=NOW)
    assert result.interval == 15.0
    assert result.repetition == 4


def test_again_resets_to_again_step():
    result = calculate_next_review(make_state(repetition=3, interval=6), Rating.AGAIN, now=NOW)
    assert result.interval == pytest.approx(ONE_MINUTE)
    assert result.repetition == 0
    assert result.ease_factor == 2.5


def test_hard_clamps_ease_to_floor():
    result = calculate_next_review(make_state(ease=1.35, repetition=2, interval=3), 3, now=NOW)
    assert result.ease_factor == MIN_EASE


def test_interval_modifier_scales_good():
    settings = ReviewSettings(interval_modifier=50)
    result = calculate_next_review(
        make_state(ease=2.0, repetition=4, interval=10), 4, settings, now=NOW
    )
    assert result.interval == 10.0


# --- Per-rating branches ---


def test_hard_on_new_card_counts_as_success():
    result = calculate_next_review(make_state(), Rating.HARD, now=NOW)
    assert result.interval == pytest.approx(10 / 1440)
    assert result.repetition == 1
    assert result.ease_factor == pytest.approx(2.35)


def test_hard_on_mature_card_grows_by_1_2():
    result = calculate_next_review(make_state(repetition=2, interval=10), Rating.HARD, now=NOW)
    assert result.interval == pytest.approx(12.0)
    assert result.repetition == 3


def test_hard_never_drops_below_hard_step():
    # 0.001 * 1.2 is far below the 10 minute hard step
    result = calculate_next_review(
        make_state(repetition=1, interval=0.001), Rating.HARD, now=NOW
    )
    assert result.interval == pytest.approx(10 / 1440)


def test_easy_on_new_card_uses_easy_step_without_bonus():
    result = calculate_next_review(make_state(), Rating.EASY, now=NOW)
    assert result.interval == 4.0
    assert result.ease_factor == 2.5
    assert result.repetition == 1


def test_easy_on_mature_card_applies_bonus_and_raises_ease():
    result = calculate_next_review(make_state(repetition=2, interval=10), Rating.EASY, now=NOW)
    # 10 * 2.5 * 1.0 * 1.3 = 32.5
    assert result.interval == 32.5
    assert result.ease_factor == pytest.approx(2.65)


def test_good_rounds_to_two_decimals_half_up():
    # 0.0625 * 2.0 = 0.125 -> 0.13 (half-to-even would give 0.12)
    result = calculate_next_review(
        make_state(ease=2.0, repetition=1, interval=0.0625), 4, now=NOW
    )
    assert result.interval == 0.13


def test_custom_steps():
    settings = ReviewSettings(steps=ReviewSteps(again=5, hard=30, good=2880, easy=10080))
    assert calculate_next_review(make_state(), 0, settings, NOW).interval == pytest.approx(
        5 / 1440
    )
    assert calculate_next_review(make_state(), 4, settings, NOW).interval == 2.0
    assert calculate_next_review(make_state(), 5, settings, NOW).interval == 7.0


# --- Clamps and timestamps ---


def test_interval_capped_at_max_interval():
    settings = ReviewSettings(max_interval=30)
    result = calculate_next_review(
        make_state(repetition=5, interval=20), Rating.EASY, settings, now=NOW
    )
    assert result.interval == 30


def test_interval_floor_is_one_minute():
    settings = ReviewSettings(steps=ReviewSteps(again=0))
    result = calculate_next_review(make_state(repetition=2, interval=5), 0, settings, now=NOW)
    assert result.interval == pytest.approx(ONE_MINUTE)


def test_timestamps_follow_interval():
    result = calculate_next_review(make_state(repetition=3, interval=6), 4, now=NOW)
    assert result.last_reviewed == NOW
    assert result.next_review_date == NOW + 15 * MS_PER_DAY


def test_input_state_is_not_modified():
    state = make_state(repetition=3, interval=6)
    calculate_next_review(state, 5, now=NOW)
    assert state == make_state(repetition=3, interval=6)


def test_same_inputs_give_same_result():
    state = make_state(repetition=2, interval=4)
    assert calculate_next_review(state, 3, now=NOW) == calculate_next_review(state, 3, now=NOW)


# --- Properties ---


@pytest.mark.parametrize("quality", [0, 3, 4, 5])
@pytest.mark.parametrize(
    "state",
    [
        make_state(),
        make_state(ease=1.3, repetition=1, interval=0.01),
        make_state(ease=1.31, repetition=7, interval=900),
        make_state(ease=3.2, repetition=12, interval=30000),
    ],
)
def test_invariants_hold_after_any_rating(state, quality):
    settings = ReviewSettings(max_interval=36500)
    result = calculate_next_review(state, quality, settings, now=NOW)
    assert result.ease_factor >= MIN_EASE
    assert 0 <= result.interval <= settings.max_interval
    if quality == 0:
        assert result.repetition == 0


@pytest.mark.parametrize("interval", [0.5, 1, 6, 42.42, 365])
@pytest.mark.parametrize("ease", [1.3, 2.0, 2.5, 3.1])
def test_easy_never_shorter_than_good(interval, ease):
    state = make_state(ease=ease, repetition=2, interval=interval)
    good = calculate_next_review(state, Rating.GOOD, now=NOW)
    easy = calculate_next_review(state, Rating.EASY, now=NOW)
    assert easy.interval >= good.interval


# --- Contract violations ---


@pytest.mark.parametrize("quality", [1, 2, 6, -1, 4.5, "4", None, True])
def test_invalid_quality_is_rejected(quality):
    with pytest.raises(InvalidRating) as exc:
        calculate_next_review(make_state(), quality, now=NOW)
    assert exc.value.quality == quality


def test_parse_rating_accepts_valid_values():
    assert parse_rating(0) is Rating.AGAIN
    assert parse_rating(5) is Rating.EASY


# --- Lifecycle and forecast ---


def test_new_card_state_uses_initial_ease():
    state = new_card_state(ReviewSettings(initial_ease=2.8), now=NOW)
    assert state == CardSchedulingState(
        ease_factor=2.8, repetition=0, interval=0.0, next_review_date=NOW, last_reviewed=None
    )


def test_forecast_matches_engine():
    state = make_state(repetition=3, interval=6, last_reviewed=NOW)
    forecast = forecast_intervals(state)
    for rating, days in forecast.items():
        assert days == calculate_next_review(state, rating, now=NOW + 1).interval


def test_forecast_labels_for_new_card():
    labels = forecast_labels(make_state())
    assert labels == {
        Rating.AGAIN: "1m",
        Rating.HARD: "10m",
        Rating.GOOD: "1d",
        Rating.EASY: "4d",
    }


@pytest.mark.parametrize(
    "minutes,label",
    [(1, "1m"), (59.4, "59m"), (60, "1h"), (90, "2h"), (1439, "24h"), (1440, "1d"), (5760, "4d")],
)
def test_format_interval(minutes, label):
    assert format_interval(minutes) == label
