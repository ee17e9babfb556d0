"""
Content Automation ORM Models
"""
from .match import DailyMatch, ScheduledContentItem, TimingTemplate
from .automation_rule import AutomationRule, AutomationRun
from .channel import TelegramChannel, PushSettings
from .push_queue import PushQueueItem
from .spam_counter import SpamCounter

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
