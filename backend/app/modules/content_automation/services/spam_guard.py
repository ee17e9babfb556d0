"""
Spam Guard
Daily per-type caps plus an aggregate emergency brake for every automated send,
and per-channel pacing (per-hour cap and minimum gap) for most content types.

try_reserve() must be called immediately before each outbound send. A
reservation that is followed by a failed send is not refunded: counters only
ever go up.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.core.config import settings
from app.shared.utils.json_utils import safe_json_parse
from app.modules.content_automation.repositories.spam_counter_repository import SpamCounterRepository
from app.modules.content_automation.constants import (
    LimitStatus,
    AGGREGATE_COUNTER_KEY,
    DEFAULT_TYPE_DAILY_LIMITS,
    DEFAULT_UNLISTED_TYPE_LIMIT,
    DEFAULT_EMERGENCY_BRAKE,
    QUIET_HOURS_START,
    QUIET_HOURS_END,
    DEFAULT_MAX_SENDS_PER_HOUR,
    DEFAULT_MIN_SEND_GAP_MINUTES,
    PACING_EXEMPT_CONTENT_TYPES,
)

logger = logging.getLogger("spam_guard")


@dataclass(frozen=True)
class SpamLimits:
    type_limits: Dict[str, int]
    emergency_brake: int = DEFAULT_EMERGENCY_BRAKE
    unlisted_type_limit: int = DEFAULT_UNLISTED_TYPE_LIMIT
    quiet_hours_start: int = QUIET_HOURS_START
    quiet_hours_end: int = QUIET_HOURS_END
    max_per_hour: int = DEFAULT_MAX_SENDS_PER_HOUR
    min_gap_minutes: int = DEFAULT_MIN_SEND_GAP_MINUTES

    @classmethod
    def from_settings(cls) -> "SpamLimits":
        """Defaults from constants, overridden by the SPAM_* settings."""
        type_limits = dict(DEFAULT_TYPE_DAILY_LIMITS)
        overrides = safe_json_parse(settings.SPAM_TYPE_LIMITS, default={})
        if isinstance(overrides, dict):
            try:
                type_limits.update({k: int(v) for k, v in overrides.items()})
            except (ValueError, TypeError) as e:
                logger.error(f"Ignoring invalid SPAM_TYPE_LIMITS: {e}")
        else:
            logger.error("Ignoring SPAM_TYPE_LIMITS: expected a JSON object")
        return cls(
            type_limits=type_limits,
            emergency_brake=settings.SPAM_EMERGENCY_BRAKE,
            max_per_hour=settings.SPAM_MAX_PER_HOUR,
            min_gap_minutes=settings.SPAM_MIN_GAP_MINUTES,
        )

    def limit_for(self, content_type: str) -> int:
        return self.type_limits.get(content_type, self.unlisted_type_limit)

    def paces(self, content_type: str) -> bool:
        return content_type not in PACING_EXEMPT_CONTENT_TYPES and (self.max_per_hour > 0 or self.min_gap_minutes > 0)


@dataclass(frozen=True)
class Reservation:
    status: LimitStatus
    content_type: str

    @property
    def allowed(self) -> bool:
        return self.status == LimitStatus.NORMAL


class SpamGuard:
    """
    Gate for outbound sends.

    Usage:
        guard = SpamGuard(db)
        reservation = await guard.try_reserve("news", now, channel_id=1)
        if reservation.allowed:
            ... send ...
    """

    def __init__(
        self,
        db: AsyncSession,
        limits: Optional[SpamLimits] = None,
        repo: Optional[SpamCounterRepository] = None
    ):
        self.db = db
        self.repo = repo or SpamCounterRepository(db)
        self.limits = limits or SpamLimits.from_settings()

    def is_quiet_hours(self, now: datetime) -> bool:
        return self.limits.quiet_hours_start <= now.hour < self.limits.quiet_hours_end

    async def try_reserve(self, content_type: str, now: datetime, channel_id: Optional[int] = None) -> Reservation:
        """
        Reserve one send for `content_type` on `now`'s calendar day.

        Returns NORMAL (reserved), DAILY_LIMIT_REACHED (this type is done for
        the day), EMERGENCY_STOP (every type is done for the day),
        QUIET_HOURS (nothing reserved, try again after the quiet window), or
        for a paced channel HOURLY_LIMIT_REACHED / MIN_GAP_NOT_MET (only that
        channel waits).
        """
        content_type = getattr(content_type, "value", content_type)
        if self.is_quiet_hours(now):
            return Reservation(LimitStatus.QUIET_HOURS, content_type)

        day = now.date()
        await self.repo.ensure_counters(day, {
            AGGREGATE_COUNTER_KEY: self.limits.emergency_brake,
            content_type: self.limits.limit_for(content_type),
        })
        pacing = {}
        if channel_id is not None and self.limits.paces(content_type):
            pacing = {
                "channel_id": channel_id,
                "now": now,
                "max_per_hour": self.limits.max_per_hour,
                "min_gap_minutes": self.limits.min_gap_minutes,
            }
        status = await self.repo.try_increment(day, content_type, **pacing)
        await self.db.commit()

        if status == LimitStatus.EMERGENCY_STOP:
            logger.warning(f"🚨 Emergency brake engaged for {day}: {self.limits.emergency_brake} sends reached")
        elif status == LimitStatus.DAILY_LIMIT_REACHED:
            logger.info(f"⛔ Daily limit reached for {content_type} on {day}")
        elif LimitStatus.defers_channel(status):
            logger.info(f"⏳ Channel {channel_id} paced ({status.value}) for {content_type}")

        return Reservation(status, content_type)

    async def get_usage(self, day: date) -> Dict:
        """Today's counts per type against their limits."""
        counters = await self.repo.get_counters(day)
        by_type = {c["content_type"]: c for c in counters if c["content_type"] != AGGREGATE_COUNTER_KEY}
        aggregate = next((c for c in counters if c["content_type"] == AGGREGATE_COUNTER_KEY), None)
        total = aggregate["count"] if aggregate else 0

        if total >= self.limits.emergency_brake:
            status = LimitStatus.EMERGENCY_STOP
        elif any(c["count"] >= c["max_count"] for c in by_type.values()):
            status = LimitStatus.DAILY_LIMIT_REACHED
        else:
            status = LimitStatus.NORMAL

        return {
            "date": day.isoformat(),
            "total_sent": total,
            "emergency_brake": self.limits.emergency_brake,
            "by_type": {t: c["count"] for t, c in by_type.items()},
            "limits": dict(self.limits.type_limits),
            "status": status.value,
        }
