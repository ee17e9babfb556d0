"""
Content Automation Module

Match-driven content automation for Telegram channels.
Key features:
- Daily match discovery with importance scoring
- Per-match content schedules anchored to kickoff
- Rule evaluation (scheduled / event-driven / context-aware)
- Randomized daily coupon push slots
- Content fallback routing and a daily spam guard
- Per-language fan-out to Telegram channels
"""

from .models import (
    DailyMatch,
    ScheduledContentItem,
    TimingTemplate,
    AutomationRule,
    AutomationRun,
    TelegramChannel,
    PushSettings,
    PushQueueItem,
    SpamCounter,
)

__all__ = [
    "DailyMatch",
    "ScheduledContentItem",
    "TimingTemplate",
    "AutomationRule",
    "AutomationRun",
    "TelegramChannel",
    "PushSettings",
    "PushQueueItem",
    "SpamCounter",
]
