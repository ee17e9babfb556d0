"""
Content Automation Services

Pure decision logic (scorer, rule evaluator, slot and schedule planning),
collaborator clients (content service, Telegram, fixtures) and the
orchestrator that ties them into trigger runs.
"""

from .match_scorer import MatchImportanceScorer, ScoringContext, match_scorer
from .rule_evaluator import EvaluatorConfig, RuleDecision, evaluate_rule, resolve_target_channels
from .content_client import ContentServiceClient, content_client
from .telegram_gateway import TelegramGateway, telegram_gateway
from .fixtures_client import FixturesClient, fixtures_client
from .content_router import ContentRouter, content_router
from .spam_guard import SpamGuard, SpamLimits, Reservation
from .smart_scheduler import SmartContentScheduler, plan_schedule, select_timing_template
from .random_push_scheduler import RandomPushScheduler, generate_random_slots, get_active_hours
from .distributor import ContentDistributor
from .orchestrator import AutomationOrchestrator, RunBudget

__all__ = [
    "MatchImportanceScorer",
    "ScoringContext",
    "match_scorer",
    "EvaluatorConfig",
    "RuleDecision",
    "evaluate_rule",
    "resolve_target_channels",
    "ContentServiceClient",
    "content_client",
    "TelegramGateway",
    "telegram_gateway",
    "FixturesClient",
    "fixtures_client",
    "ContentRouter",
    "content_router",
    "SpamGuard",
    "SpamLimits",
    "Reservation",
    "SmartContentScheduler",
    "plan_schedule",
    "select_timing_template",
    "RandomPushScheduler",
    "generate_random_slots",
    "get_active_hours",
    "ContentDistributor",
    "AutomationOrchestrator",
    "RunBudget",
]
