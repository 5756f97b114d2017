import logging

import pytest

from smartrecall.application.settings_resolver import (
    resolve_review_settings,
    settings_to_stored,
    upgrade_stored_settings,
)
from smartrecall.domain.models import ReviewSettings, ReviewSteps


def test_none_gives_defaults():
    settings = resolve_review_settings(None)
    assert settings == ReviewSettings()
    assert settings.interval_modifier == 100
    assert settings.max_interval == 36500
    assert settings.steps == ReviewSteps(again=1, hard=10, good=1440, easy=5760)


def test_stored_values_are_used():
    settings = resolve_review_settings(
        {
            "initial_ease": 2.3,
            "interval_modifier": 80,
            "max_interval": 365,
            "steps": {"again": 2, "hard": 15, "good": 2880, "easy": 7200},
        }
    )
    assert settings.initial_ease == 2.3
    assert settings.interval_modifier == 80
    assert settings.max_interval == 365
    assert settings.steps == ReviewSteps(again=2, hard=15, good=2880, easy=7200)


def test_camel_case_keys_are_accepted():
    settings = resolve_review_settings(
        {"initialEase": 2.5, "intervalModifier": 120, "maxInterval": 180}
    )
    assert settings.interval_modifier == 120
    assert settings.max_interval == 180


def test_missing_fields_fall_back_one_by_one():
    settings = resolve_review_settings({"interval_modifier": 90, "steps": {"hard": 20}})
    assert settings.interval_modifier == 90
    assert settings.initial_ease == 2.5
    assert settings.max_interval == 36500
    assert settings.steps == ReviewSteps(again=1, hard=20, good=1440, easy=5760)


def test_record_without_steps_gets_default_steps():
    settings = resolve_review_settings({"initial_ease": 2.5, "interval_modifier": 100})
    assert settings.steps == ReviewSteps()


@pytest.mark.parametrize(
    "raw,expected",
    [(-50, 1), (0, 100), (5000, 1000), (99.6, 100)],
)
def test_interval_modifier_is_clamped(raw, expected):
    assert resolve_review_settings({"interval_modifier": raw}).interval_modifier == expected


def test_max_interval_is_clamped():
    assert resolve_review_settings({"max_interval": -3}).max_interval == 1
    assert resolve_review_settings({"max_interval": 10**9}).max_interval == 36500


def test_initial_ease_and_steps_are_clamped():
    settings = resolve_review_settings({"initial_ease": 0.5, "steps": {"again": -10}})
    assert settings.initial_ease == 1.3
    assert settings.steps.again == 1


def test_non_numeric_values_fall_back_with_warning(caplog):
    with caplog.at_level(logging.WARNING):
        settings = resolve_review_settings(
            {"interval_modifier": "fast", "steps": {"good": "soon"}}
        )
    assert settings.interval_modifier == 100
    assert settings.steps.good == 1440
    assert "interval_modifier" in caplog.text


def test_malformed_steps_are_ignored():
    assert resolve_review_settings({"steps": [1, 2, 3]}).steps == ReviewSteps()


def test_non_mapping_record_gives_defaults(caplog):
    with caplog.at_level(logging.WARNING):
        assert resolve_review_settings([1, 2]) == ReviewSettings()
    assert "list" in caplog.text


def test_upgrade_synthesizes_steps_and_keeps_other_fields():
    stored = {"initialEase": 2.1, "intervalModifier": 70, "maxInterval": 200, "theme": "dark"}
    upgraded = upgrade_stored_settings(stored)
    assert upgraded == {
        **stored,
        "steps": {"again": 1, "hard": 10, "good": 1440, "easy": 5760},
    }
    assert "steps" not in stored


def test_upgrade_fills_partial_steps():
    upgraded = upgrade_stored_settings({"steps": {"hard": 30}})
    assert upgraded["steps"] == {"again": 1, "hard": 30, "good": 1440, "easy": 5760}


def test_stored_form_round_trips():
    settings = ReviewSettings(initial_ease=2.2, interval_modifier=85, max_interval=400)
    assert resolve_review_settings(settings_to_stored(settings)) == settings
