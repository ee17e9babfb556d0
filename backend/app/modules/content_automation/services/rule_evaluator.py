"""
Automation Rule Evaluator
Decides whether a rule should fire at a given instant.

evaluate_rule() is a pure function of (rule, now, config, kickoffs): the
environment is read once when EvaluatorConfig is built, never here.

Scheduled window semantics:
    A scheduled rule fires when `now` lies in the half-open interval
    [anchor - window/2, anchor + window/2) measured on a 24h circular clock.
    The window is symmetric around the anchor, crosses hour and midnight
    boundaries, and with an hourly trigger and a 60 minute window exactly one
    trigger falls inside it.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Any, List, Optional, Sequence

from app.shared.core.config import settings
from app.modules.content_automation.constants import (
    AutomationType,
    ALL_LANGUAGES,
    DEFAULT_LANGUAGE,
    WEEKDAY_NAMES,
)

logger = logging.getLogger("rule_evaluator")

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class EvaluatorConfig:
    """Timing knobs for rule evaluation."""
    window_minutes: int = 30
    active_hours_start: int = 6      # inclusive
    active_hours_end: int = 23       # exclusive
    context_hours_start: int = 8     # inclusive
    context_hours_end: int = 20      # inclusive
    context_hour_interval: int = 2   # every Nth hour
    context_minute_start: int = 30   # inclusive
    context_minute_end: int = 40     # inclusive
    duplicate_guard_minutes: int = 30  # non-scheduled rules: min gap between firings

    @classmethod
    def from_settings(cls) -> "EvaluatorConfig":
        """Production deployments get the wider window to tolerate trigger jitter."""
        window = (
            settings.SCHEDULED_WINDOW_MINUTES_PRODUCTION
            if settings.is_production
            else settings.SCHEDULED_WINDOW_MINUTES_DEFAULT
        )
        return cls(
            window_minutes=window,
            active_hours_start=settings.ACTIVE_HOURS_START,
            active_hours_end=settings.ACTIVE_HOURS_END,
        )


@dataclass(frozen=True)
class RuleDecision:
    fire: bool
    reason: str


def parse_anchor(value: str) -> int:
    """'HH:MM' -> minute of day. Raises ValueError on malformed input."""
    hour_str, minute_str = value.strip().split(":")
    hour, minute = int(hour_str), int(minute_str)
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid anchor time: {value}")
    return hour * 60 + minute


def signed_minute_distance(current: int, anchor: int) -> int:
    """Shortest signed distance current - anchor on a circular day, in [-720, 720)."""
    return (current - anchor + MINUTES_PER_DAY // 2) % MINUTES_PER_DAY - MINUTES_PER_DAY // 2


def in_scheduled_window(now: datetime, anchors: Sequence[str], window_minutes: int) -> Optional[str]:
    """Return the anchor whose window contains `now`, or None."""
    current = now.hour * 60 + now.minute
    half = window_minutes / 2
    for anchor in anchors:
        try:
            anchor_minute = parse_anchor(anchor)
        except ValueError:
            logger.warning(f"Ignoring malformed anchor time '{anchor}'")
            continue
        delta = signed_minute_distance(current, anchor_minute)
        if -half <= delta < half:
            return anchor
    return None


def _check_conditions(
    conditions: Dict[str, Any],
    now: datetime,
    kickoffs: Sequence[datetime]
) -> Optional[str]:
    """Return a skip reason when a condition is not met, None otherwise."""
    if not conditions:
        return None

    if conditions.get("weekend_only") and now.weekday() < 5:
        return "weekend_only"

    todays_kickoffs = [k for k in kickoffs if k.date() == now.date()]
    if conditions.get("match_day_only") and not todays_kickoffs:
        return "no_matches_today"

    before = conditions.get("minutes_before_match")
    after = conditions.get("minutes_after_match")
    if before or after:
        in_range = any(
            k - timedelta(minutes=before or 0) <= now <= k + timedelta(minutes=after or 0)
            for k in kickoffs
        )
        if not in_range:
            return "outside_match_window"

    return None


def evaluate_rule(
    rule: Dict[str, Any],
    now: datetime,
    config: EvaluatorConfig,
    kickoffs: Sequence[datetime] = ()
) -> RuleDecision:
    """
    Decide whether `rule` fires at `now` (already in the deployment's local time).

    kickoffs are today's/nearby match kickoffs in the same timezone, used only
    by match conditions.
    """
    if not rule.get("enabled", True):
        return RuleDecision(False, "disabled")

    automation_type = rule.get("automation_type")
    schedule = rule.get("schedule") or {}

    days = [d.lower()[:3] for d in schedule.get("days") or []]
    if days and WEEKDAY_NAMES[now.weekday()] not in days:
        return RuleDecision(False, "not_scheduled_today")

    condition_failure = _check_conditions(rule.get("conditions") or {}, now, kickoffs)
    if condition_failure:
        return RuleDecision(False, condition_failure)

    if automation_type == AutomationType.SCHEDULED:
        anchor = in_scheduled_window(now, schedule.get("times") or [], config.window_minutes)
        if anchor:
            return RuleDecision(True, f"scheduled_time_match:{anchor}")
        return RuleDecision(False, "outside_scheduled_window")

    if automation_type == AutomationType.EVENT_DRIVEN:
        if config.active_hours_start <= now.hour < config.active_hours_end:
            return RuleDecision(True, "within_active_hours")
        return RuleDecision(False, "outside_active_hours")

    if automation_type == AutomationType.CONTEXT_AWARE:
        in_band = config.context_hours_start <= now.hour <= config.context_hours_end
        on_interval = now.hour % config.context_hour_interval == 0
        in_minutes = config.context_minute_start <= now.minute <= config.context_minute_end
        if in_band and on_interval and in_minutes:
            return RuleDecision(True, "context_window")
        return RuleDecision(False, "outside_context_window")

    return RuleDecision(False, f"unknown_automation_type:{automation_type}")


def duplicate_guard_minutes(rule: Dict[str, Any], config: EvaluatorConfig) -> int:
    """How far back a previous firing of the rule suppresses this one."""
    if rule.get("automation_type") == AutomationType.SCHEDULED:
        return config.window_minutes
    return config.duplicate_guard_minutes


def resolve_target_channels(rule: Dict[str, Any], channels: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Active channels whose language is in the rule's set, or all channels for "all"."""
    languages = rule.get("languages") or [ALL_LANGUAGES]
    if isinstance(languages, str):
        languages = [languages]

    active = [c for c in channels if c.get("is_active", True)]
    if ALL_LANGUAGES in languages:
        return active
    return [c for c in active if (c.get("language") or DEFAULT_LANGUAGE) in languages]
