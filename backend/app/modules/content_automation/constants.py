"""
Content Automation Constants
Centralized enums and tuning tables for the automation engine.

Enums inherit from str so they can be stored in Text columns and returned in
JSON responses without .value conversion. Enum members hash by name, so
the lookup tables below are keyed by plain .value strings.
"""
from enum import Enum
from typing import Dict, List


class ContentType(str, Enum):
    """
    Content types understood by the content generation service.
    """
    LIVE = "live"
    BETTING = "betting"
    NEWS = "news"
    POLLS = "polls"
    ANALYSIS = "analysis"
    COUPONS = "coupons"
    MEMES = "memes"
    DAILY_SUMMARY = "daily_summary"
    WEEKLY_SUMMARY = "weekly_summary"


class OpportunityType(str, Enum):
    """
    Content opportunities a scored match can justify.

    These are the keys of Match.content_opportunities and the content_type of
    scheduled items.
    """
    POLL = "poll"
    BETTING = "betting"
    ANALYSIS = "analysis"
    LIVE_UPDATES = "live_updates"
    SUMMARY = "summary"
    # Premium bundle (importance >= 25)
    PREMIUM_ANALYSIS = "premium_analysis"
    MULTIPLE_POLLS = "multiple_polls"
    LIVE_COMMENTARY = "live_commentary"

    @classmethod
    def premium(cls) -> List["OpportunityType"]:
        return [cls.PREMIUM_ANALYSIS, cls.MULTIPLE_POLLS, cls.LIVE_COMMENTARY]

    @classmethod
    def to_content_type(cls, opportunity: str) -> "ContentType":
        """Map a schedule item type onto the generator content type."""
        return OPPORTUNITY_CONTENT_TYPES[cls(opportunity).value]


OPPORTUNITY_CONTENT_TYPES: Dict[str, ContentType] = {
    OpportunityType.POLL.value: ContentType.POLLS,
    OpportunityType.MULTIPLE_POLLS.value: ContentType.POLLS,
    OpportunityType.BETTING.value: ContentType.BETTING,
    OpportunityType.ANALYSIS.value: ContentType.ANALYSIS,
    OpportunityType.PREMIUM_ANALYSIS.value: ContentType.ANALYSIS,
    OpportunityType.LIVE_UPDATES.value: ContentType.LIVE,
    OpportunityType.LIVE_COMMENTARY.value: ContentType.LIVE,
    OpportunityType.SUMMARY.value: ContentType.DAILY_SUMMARY,
}


class AutomationType(str, Enum):
    """How an automation rule decides to fire."""
    SCHEDULED = "scheduled"          # Anchor times (HH:MM) with a tolerance window
    EVENT_DRIVEN = "event_driven"    # Any time inside the active-hours band
    CONTEXT_AWARE = "context_aware"  # Narrow recurring window (coupons etc.)


class ScheduleStatus(str, Enum):
    """
    Status of a scheduled content item.

    Flow: PENDING → EXECUTING → SENT
                             ↘ FAILED
          PENDING → CANCELLED (terminal, never applied to SENT)
    """
    PENDING = "pending"
    EXECUTING = "executing"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PushStatus(str, Enum):
    """Status of a push queue item."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class LimitStatus(str, Enum):
    """Outcome of a spam guard reservation."""
    NORMAL = "NORMAL"                            # Reserved, room remains
    DAILY_LIMIT_REACHED = "DAILY_LIMIT_REACHED"  # Per-type cap hit
    EMERGENCY_STOP = "EMERGENCY_STOP"            # Aggregate cap hit, all types halt
    QUIET_HOURS = "QUIET_HOURS"                  # Sleeping hours, nothing counted
    HOURLY_LIMIT_REACHED = "HOURLY_LIMIT_REACHED"  # Channel hit its per-hour cap
    MIN_GAP_NOT_MET = "MIN_GAP_NOT_MET"          # Channel sent too recently

    @classmethod
    def halts_all_types(cls, status: str) -> bool:
        return status in [cls.EMERGENCY_STOP, cls.QUIET_HOURS]

    @classmethod
    def defers_channel(cls, status: str) -> bool:
        """Only this channel waits; retrying later can succeed."""
        return status in [cls.HOURLY_LIMIT_REACHED, cls.MIN_GAP_NOT_MET]


class RunType(str, Enum):
    """Orchestration entry points recorded in automation_runs."""
    DAILY_DISCOVERY = "daily_discovery"
    HOURLY = "hourly"
    URGENT = "urgent"
    COUPONS_ONLY = "coupons_only"
    PUSH_DELIVERY = "push_delivery"
    RANDOM_PUSH_SCHEDULE = "random_push_schedule"
    RULE_EXECUTION = "rule_execution"
    MAINTENANCE = "maintenance"


class RunStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"      # Finished with some per-item failures or deadline hit
    FAILED = "failed"        # Fatal error


class ActionStatus(str, Enum):
    """Outcome of one rule / match / channel inside a run."""
    TRIGGERED = "triggered"
    SKIPPED = "skipped"
    FAILED = "failed"
    ERROR = "error"


# Marker used in the spam_counters table for the aggregate (emergency brake) row
AGGREGATE_COUNTER_KEY = "*"

ALL_LANGUAGES = "all"
DEFAULT_LANGUAGE = "en"

WEEKDAY_NAMES = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]


# ============================================
# SCORING TABLES
# ============================================
MIN_IMPORTANCE_SCORE = 15
DEFAULT_MAX_FUTURE_DAYS = 14

COMPETITION_SCORES: Dict[str, int] = {
    "World Cup": 10,
    "FIFA Club World Cup": 10,
    "UEFA Champions League": 9,
    "Champions League": 9,
    "Premier League": 9,
    "UEFA European Championship": 9,
    "Euro": 9,
    "La Liga": 8,
    "Serie A": 7,
    "Bundesliga": 7,
    "Ligue 1": 6,
    "Brasileirão": 6,
    "UEFA Europa League": 6,
    "Europa League": 6,
    "Eredivisie": 5,
    "Primeira Liga": 5,
    "MLS": 4,
    "Championship": 4,
    "Süper Lig": 4,
}
UNKNOWN_COMPETITION_SCORE = 2

TEAM_SCORES: Dict[str, int] = {
    "Real Madrid": 10,
    "Barcelona": 10,
    "Manchester United": 9,
    "Manchester City": 9,
    "Paris Saint-Germain": 9,
    "PSG": 9,
    "Liverpool": 8,
    "Chelsea": 8,
    "Arsenal": 8,
    "Bayern Munich": 8,
    "Juventus": 7,
    "AC Milan": 7,
    "Inter Milan": 7,
    "Inter": 7,
    "Tottenham": 7,
    "Atletico Madrid": 7,
    "Borussia Dortmund": 7,
    "AS Roma": 6,
    "Napoli": 6,
    "Valencia": 6,
    "Sevilla": 6,
    "Leicester City": 6,
    "West Ham": 6,
    "Newcastle United": 5,
    "Aston Villa": 5,
    "Brighton": 5,
    "Crystal Palace": 5,
    "Everton": 4,
    "Southampton": 4,
    "Leeds United": 4,
}
UNKNOWN_TEAM_SCORE = 3
FAVORITE_TEAM_BOOST = 2

# Pairs are matched in either home/away order
RIVALRIES: List[Dict] = [
    {"name": "El Clásico", "teams": ("Real Madrid", "Barcelona"), "bonus": 3},
    {"name": "Manchester Derby", "teams": ("Manchester United", "Manchester City"), "bonus": 2},
    {"name": "North West Derby", "teams": ("Liverpool", "Manchester United"), "bonus": 2},
    {"name": "North London Derby", "teams": ("Arsenal", "Tottenham"), "bonus": 2},
    {"name": "Derby della Madonnina", "teams": ("AC Milan", "Inter Milan"), "bonus": 2},
    {"name": "Derby d'Italia", "teams": ("Juventus", "Inter Milan"), "bonus": 2},
    {"name": "Der Klassiker", "teams": ("Bayern Munich", "Borussia Dortmund"), "bonus": 2},
]

STAGE_SCORE = 1

# Opportunity thresholds (inclusive)
OPPORTUNITY_THRESHOLDS: Dict[str, int] = {
    OpportunityType.POLL.value: 18,
    OpportunityType.BETTING.value: 15,
    OpportunityType.LIVE_UPDATES.value: 15,
    OpportunityType.SUMMARY.value: 15,
    OpportunityType.ANALYSIS.value: 20,
    OpportunityType.PREMIUM_ANALYSIS.value: 25,
    OpportunityType.MULTIPLE_POLLS.value: 25,
    OpportunityType.LIVE_COMMENTARY.value: 25,
}

# Past matches older than this many hours are dropped for the content type
MAX_HOURS_BACK: Dict[str, int] = {
    ContentType.BETTING.value: 0,
    ContentType.LIVE.value: 12,
    ContentType.NEWS.value: 168,
    ContentType.ANALYSIS.value: 120,
    ContentType.WEEKLY_SUMMARY.value: 168,
    ContentType.DAILY_SUMMARY.value: 48,
    ContentType.POLLS.value: 48,
}
DEFAULT_MAX_HOURS_BACK = 72

MIN_TIMING_SCORE: Dict[str, int] = {
    ContentType.BETTING.value: 2,
    ContentType.DAILY_SUMMARY.value: 2,
}
DEFAULT_MIN_TIMING_SCORE = 1


# ============================================
# SMART SCHEDULER TABLES
# ============================================
BASE_ENGAGEMENT: Dict[str, int] = {
    OpportunityType.POLL.value: 70,
    OpportunityType.BETTING.value: 85,
    OpportunityType.ANALYSIS.value: 65,
    OpportunityType.LIVE_UPDATES.value: 90,
    OpportunityType.SUMMARY.value: 55,
}
DEFAULT_BASE_ENGAGEMENT = 60
MAX_ENGAGEMENT_BONUS = 30
ENGAGEMENT_BONUS_PER_POINT = 2

SCHEDULE_JITTER_MINUTES = 15

# Offset from kickoff in minutes for opportunities a template does not cover
DEFAULT_OFFSETS_MINUTES: Dict[str, int] = {
    OpportunityType.POLL.value: -240,
    OpportunityType.BETTING.value: -45,
    OpportunityType.ANALYSIS.value: -120,
    OpportunityType.LIVE_UPDATES.value: 0,
    OpportunityType.SUMMARY.value: 120,
    OpportunityType.PREMIUM_ANALYSIS.value: -180,
    OpportunityType.MULTIPLE_POLLS.value: -30,
    OpportunityType.LIVE_COMMENTARY.value: 45,
}

WEEKEND_TEMPLATE_NAME = "Weekend Special"
WEEKEND_TEMPLATE_MIN_SCORE = 18

DEFAULT_TIMING_TEMPLATES: List[Dict] = [
    {
        "name": "High Importance Match",
        "description": "Premium content schedule for top-tier matches",
        "min_importance_score": 25,
        "max_importance_score": 100,
        "content_schedule": [
            {"content_type": "poll", "hours_before_kickoff": 6, "priority": 7, "subtype": "prediction"},
            {"content_type": "betting", "hours_before_kickoff": 4, "priority": 9, "subtype": "comprehensive"},
            {"content_type": "analysis", "hours_before_kickoff": 2, "priority": 8, "subtype": "detailed"},
            {"content_type": "poll", "hours_before_kickoff": 1, "priority": 6, "subtype": "last_minute"},
            {"content_type": "live_updates", "at_kickoff": True, "priority": 10, "subtype": "full_coverage"},
            {"content_type": "summary", "hours_after_kickoff": 2, "priority": 7, "subtype": "comprehensive"},
        ],
    },
    {
        "name": "Medium Importance Match",
        "description": "Standard content schedule for important matches",
        "min_importance_score": 15,
        "max_importance_score": 24,
        "content_schedule": [
            {"content_type": "betting", "hours_before_kickoff": 3, "priority": 8, "subtype": "standard"},
            {"content_type": "analysis", "hours_before_kickoff": 2, "priority": 7, "subtype": "focused"},
            {"content_type": "live_updates", "at_kickoff": True, "priority": 9, "subtype": "key_events"},
            {"content_type": "summary", "hours_after_kickoff": 3, "priority": 6, "subtype": "brief"},
        ],
    },
    {
        "name": WEEKEND_TEMPLATE_NAME,
        "description": "Enhanced weekend content with extra polls and engagement",
        "min_importance_score": 18,
        "max_importance_score": 100,
        "content_schedule": [
            {"content_type": "poll", "hours_before_kickoff": 8, "priority": 6, "subtype": "weekend_warmup"},
            {"content_type": "poll", "hours_before_kickoff": 4, "priority": 7, "subtype": "prediction"},
            {"content_type": "betting", "hours_before_kickoff": 3, "priority": 9, "subtype": "weekend_special"},
            {"content_type": "analysis", "hours_before_kickoff": 1, "priority": 8, "subtype": "tactical"},
            {"content_type": "live_updates", "at_kickoff": True, "priority": 10, "subtype": "premium"},
        ],
    },
]


# ============================================
# SPAM GUARD LIMITS (per calendar day)
# ============================================
DEFAULT_TYPE_DAILY_LIMITS: Dict[str, int] = {
    ContentType.NEWS.value: 3,
    ContentType.BETTING.value: 2,
    ContentType.ANALYSIS.value: 2,
    ContentType.LIVE.value: 4,
    ContentType.POLLS.value: 1,
    ContentType.COUPONS.value: 3,
    ContentType.DAILY_SUMMARY.value: 1,
    ContentType.WEEKLY_SUMMARY.value: 1,
    ContentType.MEMES.value: 1,
}
DEFAULT_UNLISTED_TYPE_LIMIT = 1
DEFAULT_EMERGENCY_BRAKE = 15
QUIET_HOURS_START = 0  # inclusive
QUIET_HOURS_END = 6    # exclusive

# Per-channel pacing; coupons follow the post that triggered them within minutes
DEFAULT_MAX_SENDS_PER_HOUR = 2
DEFAULT_MIN_SEND_GAP_MINUTES = 30
PACING_EXEMPT_CONTENT_TYPES = frozenset({ContentType.COUPONS.value})


# ============================================
# RANDOM PUSH SCHEDULER
# ============================================
DEFAULT_MAX_COUPONS_PER_DAY = 3
DEFAULT_MIN_GAP_HOURS = 2
DEFAULT_ALLOWED_HOURS = list(range(6, 24))  # 06:00-23:59
SLOT_MAX_ATTEMPTS = 50
RANDOM_PUSH_CONTENT_TYPE = "random_scheduled"
COUPON_TRIGGER_CONTENT_TYPE = "coupon_trigger"
DEFAULT_TRIGGER_MIN_DELAY_MINUTES = 2
DEFAULT_TRIGGER_MAX_DELAY_MINUTES = 5


# ============================================
# CONTENT ROUTER
# ============================================
BETTING_MAX_ATTEMPTS = 3
BETTING_RETRY_DELAY_SECONDS = 1.0

# Primary type -> ordered substitutes tried when it yields nothing
FALLBACK_CHAIN: Dict[str, List[str]] = {
    ContentType.BETTING.value: [ContentType.NEWS],
    ContentType.LIVE.value: [ContentType.NEWS],
    ContentType.MEMES.value: [ContentType.NEWS],
}


# ============================================
# ORCHESTRATION
# ============================================
URGENT_CONTENT_TYPES = [ContentType.LIVE, ContentType.BETTING, ContentType.ANALYSIS]
DISCOVERY_MAX_FUTURE_DAYS = 1
