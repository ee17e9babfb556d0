"""
Content Automation Repositories

Data access layer. Repositories flush, services commit.
"""

from .match_repository import MatchRepository
from .schedule_repository import ScheduleRepository
from .rule_repository import RuleRepository
from .channel_repository import ChannelRepository
from .push_queue_repository import PushQueueRepository
from .spam_counter_repository import SpamCounterRepository

__all__ = [
    "MatchRepository",
    "ScheduleRepository",
    "RuleRepository",
    "ChannelRepository",
    "PushQueueRepository",
    "SpamCounterRepository",
]
