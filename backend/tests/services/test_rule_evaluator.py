from datetime import datetime, timedelta, timezone

import pytest

from app.modules.content_automation.services.rule_evaluator import (
    EvaluatorConfig,
    evaluate_rule,
    in_scheduled_window,
    parse_anchor,
    resolve_target_channels,
    duplicate_guard_minutes,
)

UTC = timezone.utc
CONFIG = EvaluatorConfig(window_minutes=60)


def _at(hour, minute=0, day=21):
    """2026-10-21 is a Wednesday, 2026-10-24 a Saturday."""
    return datetime(2026, 10, day, hour, minute, tzinfo=UTC)


def _scheduled_rule(times, **extra):
    return {
        "id": 1,
        "name": "Morning news",
        "content_type": "news",
        "automation_type": "scheduled",
        "enabled": True,
        "schedule": {"times": times},
        "conditions": {},
        **extra,
    }


# --- SCHEDULED WINDOW ---

def test_parse_anchor():
    assert parse_anchor("09:30") == 570
    with pytest.raises(ValueError):
        parse_anchor("25:00")


@pytest.mark.parametrize("hour,minute,fires", [
    (8, 29, False),
    (8, 30, True),
    (9, 0, True),
    (9, 29, True),
    (9, 30, False),
])
def test_window_is_symmetric_and_half_open(hour, minute, fires):
    decision = evaluate_rule(_scheduled_rule(["09:00"]), _at(hour, minute), CONFIG)
    assert decision.fire is fires


def test_window_crosses_midnight():
    assert in_scheduled_window(_at(23, 50), ["00:10"], 60) == "00:10"
    assert in_scheduled_window(_at(0, 5), ["23:50"], 60) == "23:50"
    assert in_scheduled_window(_at(23, 30), ["00:10"], 60) is None


@pytest.mark.parametrize("trigger_minute", [0, 5, 30, 59])
def test_hourly_trigger_fires_exactly_once_per_anchor(trigger_minute):
    rule = _scheduled_rule(["09:00"])
    fired = [
        hour for hour in range(24)
        if evaluate_rule(rule, _at(hour, trigger_minute), CONFIG).fire
    ]
    assert len(fired) == 1


def test_malformed_anchor_is_ignored():
    decision = evaluate_rule(_scheduled_rule(["nonsense", "09:00"]), _at(9, 10), CONFIG)
    assert decision.fire is True
    assert decision.reason == "scheduled_time_match:09:00"


# --- CONDITIONS ---

def test_disabled_rule_never_fires():
    decision = evaluate_rule(_scheduled_rule(["09:00"], enabled=False), _at(9), CONFIG)
    assert decision.fire is False
    assert decision.reason == "disabled"


def test_day_filter():
    rule = _scheduled_rule(["09:00"])
    rule["schedule"]["days"] = ["sat", "sun"]

    assert evaluate_rule(rule, _at(9), CONFIG).reason == "not_scheduled_today"
    assert evaluate_rule(rule, _at(9, day=24), CONFIG).fire is True


def test_weekend_only_condition():
    rule = _scheduled_rule(["09:00"], conditions={"weekend_only": True})
    assert evaluate_rule(rule, _at(9), CONFIG).reason == "weekend_only"


def test_match_day_only_condition():
    rule = _scheduled_rule(["09:00"], conditions={"match_day_only": True})

    assert evaluate_rule(rule, _at(9), CONFIG, kickoffs=[]).reason == "no_matches_today"
    assert evaluate_rule(rule, _at(9), CONFIG, kickoffs=[_at(20)]).fire is True


def test_match_window_condition():
    rule = {
        "id": 2,
        "name": "Pre-match betting",
        "content_type": "betting",
        "automation_type": "event_driven",
        "conditions": {"minutes_before_match": 90},
    }
    kickoff = _at(20)

    assert evaluate_rule(rule, kickoff - timedelta(minutes=60), CONFIG, [kickoff]).fire is True
    assert evaluate_rule(rule, kickoff - timedelta(hours=3), CONFIG, [kickoff]).reason == "outside_match_window"


# --- OTHER AUTOMATION TYPES ---

def test_event_driven_uses_active_hours():
    rule = {"id": 3, "name": "Live", "automation_type": "event_driven"}

    assert evaluate_rule(rule, _at(5), CONFIG).reason == "outside_active_hours"
    assert evaluate_rule(rule, _at(10), CONFIG).fire is True
    assert evaluate_rule(rule, _at(23), CONFIG).fire is False


def test_context_aware_window():
    rule = {"id": 4, "name": "Coupons", "automation_type": "context_aware"}

    assert evaluate_rule(rule, _at(10, 35), CONFIG).fire is True
    assert evaluate_rule(rule, _at(11, 35), CONFIG).fire is False
    assert evaluate_rule(rule, _at(10, 45), CONFIG).fire is False
    assert evaluate_rule(rule, _at(22, 35), CONFIG).fire is False


def test_unknown_type_does_not_fire():
    decision = evaluate_rule({"id": 5, "name": "?", "automation_type": "lunar"}, _at(10), CONFIG)
    assert decision.fire is False
    assert decision.reason.startswith("unknown_automation_type")


def test_duplicate_guard_follows_rule_type():
    config = EvaluatorConfig(window_minutes=60, duplicate_guard_minutes=20)
    assert duplicate_guard_minutes(_scheduled_rule(["09:00"]), config) == 60
    assert duplicate_guard_minutes({"automation_type": "event_driven"}, config) == 20


# --- CHANNEL RESOLUTION ---

def test_resolve_target_channels_by_language(sample_channels):
    channels = sample_channels + [
        {"id": 5, "name": "Old AM", "telegram_chat_id": "@old", "language": "am", "is_active": False}
    ]

    amharic = resolve_target_channels({"languages": ["am"]}, channels)
    everyone = resolve_target_channels({"languages": ["all"]}, channels)

    assert [c["id"] for c in amharic] == [3, 4]
    assert [c["id"] for c in everyone] == [1, 2, 3, 4]
    assert resolve_target_channels({"languages": ["fr"]}, channels) == []
