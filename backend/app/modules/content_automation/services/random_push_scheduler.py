"""
Random Push Scheduler
Spreads a channel's daily coupon pushes over random minutes of its active hours.

Slot generation is rejection sampling: for each wanted slot, draw a random
(hour, minute) from the allowed hours up to SLOT_MAX_ATTEMPTS times and keep
the first draw that is at least min_gap_hours away from every accepted slot.
A slot that finds no room is dropped, so a day can end up with fewer slots
than requested. Past slots are discarded after sampling.
"""
import logging
import random
import uuid
from datetime import datetime, timedelta
from typing import Dict, Any, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.content_automation.repositories.channel_repository import ChannelRepository
from app.modules.content_automation.repositories.push_queue_repository import PushQueueRepository
from app.modules.content_automation.constants import (
    PushStatus,
    DEFAULT_MAX_COUPONS_PER_DAY,
    DEFAULT_MIN_GAP_HOURS,
    DEFAULT_ALLOWED_HOURS,
    SLOT_MAX_ATTEMPTS,
    RANDOM_PUSH_CONTENT_TYPE,
    DEFAULT_LANGUAGE,
)

logger = logging.getLogger("random_push_scheduler")


def _hour_of(value: Optional[str], default: int) -> int:
    if not value:
        return default
    return int(str(value).split(":")[0])


def get_active_hours(blackout: Optional[Dict[str, str]]) -> List[int]:
    """
    Hours of the day open for pushes.

    blackout is {"start": "HH:MM", "end": "HH:MM"}; both boundary hours are
    blocked, and a start later than the end wraps past midnight
    (23:00-06:00 leaves 07..22). No blackout means DEFAULT_ALLOWED_HOURS.
    """
    if not blackout:
        return list(DEFAULT_ALLOWED_HOURS)

    start = _hour_of(blackout.get("start"), 23)
    end = _hour_of(blackout.get("end"), 6)

    if start <= end:
        return [h for h in range(24) if h < start or h > end]
    return [h for h in range(24) if end < h < start]


def generate_random_slots(
    day_start: datetime,
    now: datetime,
    max_slots: int,
    min_gap_hours: float,
    allowed_hours: Sequence[int],
    rng: Optional[random.Random] = None,
    max_attempts: int = SLOT_MAX_ATTEMPTS
) -> List[datetime]:
    """
    Random send times for the day starting at `day_start`.

    Guarantees: every slot's hour is in allowed_hours, slots are pairwise at
    least min_gap_hours apart, all are after `now`, and the list is strictly
    increasing.
    """
    rng = rng or random.Random()
    if not allowed_hours or max_slots <= 0:
        return []

    min_gap = min_gap_hours * 60
    accepted: List[int] = []  # minute of day

    for _ in range(max_slots):
        for _attempt in range(max_attempts):
            candidate = rng.choice(list(allowed_hours)) * 60 + rng.randrange(60)
            if all(abs(candidate - existing) >= min_gap and candidate != existing for existing in accepted):
                accepted.append(candidate)
                break

    slots = [
        day_start.replace(hour=minute // 60, minute=minute % 60, second=0, microsecond=0)
        for minute in sorted(accepted)
    ]
    return [slot for slot in slots if slot > now]


def _random_content_id() -> str:
    return f"random_{uuid.uuid4().hex[:12]}"


class RandomPushScheduler:
    """Persists each push-enabled channel's random slots into smart_push_queue."""

    def __init__(self, db: AsyncSession, rng: Optional[random.Random] = None):
        self.db = db
        self.channel_repo = ChannelRepository(db)
        self.queue_repo = PushQueueRepository(db)
        self.rng = rng or random.Random()

    async def generate_daily_schedule(self, now: datetime) -> Dict[str, Any]:
        """
        Create today's random slots for every enabled channel.

        Channels that already have random slots queued for today are skipped,
        so repeating the trigger does not stack schedules.
        """
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        day_end = day_start + timedelta(days=1)

        channels = await self.channel_repo.get_push_enabled_channels()
        if not channels:
            return {"success": False, "error": "No channels configured for smart push", "scheduled_count": 0}

        items = []
        per_channel = []
        for channel in channels:
            existing = await self.queue_repo.count_random_items_for_channel(channel["id"], day_start, day_end)
            if existing:
                per_channel.append({"channel_id": channel["id"], "status": "skipped", "reason": "already_scheduled"})
                continue

            push = channel["push_settings"]
            max_coupons = push.get("max_coupons_per_day")
            if max_coupons is None:
                max_coupons = DEFAULT_MAX_COUPONS_PER_DAY
            min_gap_hours = push.get("min_gap_hours")
            if min_gap_hours is None:
                min_gap_hours = DEFAULT_MIN_GAP_HOURS
            slots = generate_random_slots(
                day_start=day_start,
                now=now,
                max_slots=max_coupons,
                min_gap_hours=min_gap_hours,
                allowed_hours=get_active_hours(push.get("blackout_hours")),
                rng=self.rng,
            )

            for slot in slots:
                items.append({
                    "primary_content_id": _random_content_id(),
                    "primary_content_type": RANDOM_PUSH_CONTENT_TYPE,
                    "channel_ids": [channel["id"]],
                    "language": channel.get("language") or DEFAULT_LANGUAGE,
                    "scheduled_at": slot,
                    "delay_minutes": 0,
                    "context_data": {
                        "scheduled_type": "random_daily",
                        "channel_name": channel["name"],
                        "max_coupons_today": max_coupons,
                    },
                })
            per_channel.append({"channel_id": channel["id"], "status": "scheduled", "slots": len(slots)})

        try:
            created = await self.queue_repo.bulk_create(items)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"🎲 Created {created} random push slot(s) across {len(channels)} channel(s)")
        return {
            "success": True,
            "scheduled_count": created,
            "channels_affected": sum(1 for c in per_channel if c["status"] == "scheduled"),
            "channels": per_channel,
            "next_delivery": min((i["scheduled_at"] for i in items), default=None),
        }

    async def get_today_schedule(self, now: datetime) -> Dict[str, Any]:
        """Today's queued pushes grouped by status."""
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        items = await self.queue_repo.get_items_between(day_start, day_start + timedelta(days=1))

        by_status: Dict[str, int] = {}
        for item in items:
            by_status[item["status"]] = by_status.get(item["status"], 0) + 1

        upcoming = [i for i in items if i["scheduled_at"] > now and i["status"] == PushStatus.PENDING]
        return {
            "date": day_start.date().isoformat(),
            "total": len(items),
            "by_status": by_status,
            "next_delivery": upcoming[0]["scheduled_at"] if upcoming else None,
            "items": items,
        }
