"""
Smart Content Scheduler
Expands one important match into a timed content schedule per language.

Planning (pure):
    1. Pick a timing template: "Weekend Special" for Saturday/Sunday kickoffs
       scoring >= 18, otherwise the active template whose importance bracket
       contains the score.
    2. Every template rule whose opportunity flag is set on the match becomes
       an item at kickoff + offset. Flags the template does not mention get a
       default offset, so the premium bundle is scheduled even though no
       template lists it.
    3. Each item is jittered by up to +/-15 minutes and dropped if it would
       land in the past.
    4. Items are multiplied by language; each carries that language's
       channel ids.

The service wraps planning with the persistence rules: a match with pending
items is not scheduled twice unless force_reschedule is set, in which case
the pending items are cancelled ("Rescheduled") before the new set is
inserted in one statement.

Duplicate prevention is a read-then-write check and can race when two
triggers schedule the same match at the same instant.
"""
import logging
import math
import random
from datetime import datetime, timedelta
from typing import Dict, Any, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.utils.exceptions import EntityNotFoundError, ScheduleConflictError
from app.modules.content_automation.repositories.match_repository import MatchRepository
from app.modules.content_automation.repositories.schedule_repository import ScheduleRepository
from app.modules.content_automation.repositories.channel_repository import ChannelRepository
from app.modules.content_automation.constants import (
    OpportunityType,
    ScheduleStatus,
    LimitStatus,
    BASE_ENGAGEMENT,
    DEFAULT_BASE_ENGAGEMENT,
    MAX_ENGAGEMENT_BONUS,
    ENGAGEMENT_BONUS_PER_POINT,
    MIN_IMPORTANCE_SCORE,
    SCHEDULE_JITTER_MINUTES,
    DEFAULT_OFFSETS_MINUTES,
    WEEKEND_TEMPLATE_NAME,
    WEEKEND_TEMPLATE_MIN_SCORE,
    DEFAULT_TIMING_TEMPLATES,
)

logger = logging.getLogger("smart_scheduler")

RESCHEDULED_REASON = "Rescheduled"


# ============================================
# PURE PLANNING
# ============================================

def select_timing_template(
    importance_score: int,
    kickoff: datetime,
    templates: Optional[List[Dict[str, Any]]] = None
) -> Optional[Dict[str, Any]]:
    """
    Template for a match, or None when no bracket contains the score.

    An empty/None template list falls back to DEFAULT_TIMING_TEMPLATES.
    """
    templates = [t for t in (templates or DEFAULT_TIMING_TEMPLATES) if t.get("is_active", True)]

    if kickoff.weekday() >= 5 and importance_score >= WEEKEND_TEMPLATE_MIN_SCORE:
        weekend = next((t for t in templates if t["name"] == WEEKEND_TEMPLATE_NAME), None)
        if weekend:
            return weekend

    candidates = [
        t for t in templates
        if t["name"] != WEEKEND_TEMPLATE_NAME
        and t["min_importance_score"] <= importance_score
        and (t.get("max_importance_score") is None or importance_score <= t["max_importance_score"])
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda t: t["min_importance_score"])


def calculate_expected_engagement(content_type: str, importance_score: int) -> int:
    """Base engagement of the type plus a bonus for every point above the threshold, capped at 100."""
    base = BASE_ENGAGEMENT.get(getattr(content_type, "value", content_type), DEFAULT_BASE_ENGAGEMENT)
    bonus = min(MAX_ENGAGEMENT_BONUS, max(0, (importance_score - MIN_IMPORTANCE_SCORE) * ENGAGEMENT_BONUS_PER_POINT))
    return min(100, base + bonus)


def priority_from_engagement(engagement: int) -> int:
    return max(1, min(10, math.ceil(engagement / 10)))


def rule_offset_minutes(rule: Dict[str, Any]) -> int:
    """Signed offset from kickoff for a template rule (negative = before)."""
    if rule.get("hours_before_kickoff") is not None:
        return -int(rule["hours_before_kickoff"] * 60)
    if rule.get("hours_after_kickoff") is not None:
        return int(rule["hours_after_kickoff"] * 60)
    if rule.get("minutes_before_kickoff") is not None:
        return -int(rule["minutes_before_kickoff"])
    return 0


def _describe_offset(offset: int) -> str:
    if offset == 0:
        return "at kickoff"
    hours, minutes = divmod(abs(offset), 60)
    if hours and minutes:
        amount = f"{hours}h{minutes:02d}m"
    elif hours:
        amount = f"{hours}h"
    else:
        amount = f"{minutes}m"
    return f"{amount} {'before' if offset < 0 else 'after'} kickoff"


def plan_schedule(
    match: Dict[str, Any],
    language_channels: Dict[str, List[int]],
    template: Optional[Dict[str, Any]],
    now: datetime,
    rng: Optional[random.Random] = None
) -> List[Dict[str, Any]]:
    """
    Build schedule rows for a match without touching the database.

    language_channels maps language -> channel ids; languages with no
    channels produce nothing.
    """
    rng = rng or random.Random()
    kickoff = match["kickoff_time"]
    score = match["importance_score"]
    opportunities = match.get("content_opportunities") or {}

    entries = []
    covered = set()
    template_name = template["name"] if template else "defaults"

    for rule in (template or {}).get("content_schedule", []):
        opportunity = rule["content_type"]
        if not opportunities.get(opportunity):
            continue
        covered.add(opportunity)
        entries.append({
            "content_type": opportunity,
            "content_subtype": rule.get("subtype") or "standard",
            "offset": rule_offset_minutes(rule),
            "source": template_name,
        })

    for opportunity in OpportunityType:
        if opportunities.get(opportunity.value) and opportunity.value not in covered:
            entries.append({
                "content_type": opportunity.value,
                "content_subtype": "standard",
                "offset": DEFAULT_OFFSETS_MINUTES[opportunity.value],
                "source": "default offset",
            })

    items = []
    for language, channel_ids in language_channels.items():
        if not channel_ids:
            continue
        for entry in entries:
            jitter = rng.randint(-SCHEDULE_JITTER_MINUTES, SCHEDULE_JITTER_MINUTES)
            scheduled_for = kickoff + timedelta(minutes=entry["offset"] + jitter)
            if scheduled_for <= now:
                continue

            engagement = calculate_expected_engagement(entry["content_type"], score)
            items.append({
                "match_id": match["id"],
                "content_type": entry["content_type"],
                "content_subtype": entry["content_subtype"],
                "language": language,
                "target_channels": list(channel_ids),
                "scheduled_for": scheduled_for,
                "priority": priority_from_engagement(engagement),
                "engagement_score": engagement,
                "timing_reason": f"{_describe_offset(entry['offset'])} ({entry['source']})",
            })

    items.sort(key=lambda i: (i["scheduled_for"], i["language"]))
    return items


def group_channels_by_language(channels: List[Dict[str, Any]]) -> Dict[str, List[int]]:
    grouped: Dict[str, List[int]] = {}
    for channel in channels:
        grouped.setdefault(channel.get("language") or "en", []).append(channel["id"])
    return grouped


# ============================================
# SERVICE
# ============================================

class SmartContentScheduler:
    """Persists match schedules and executes due items."""

    def __init__(self, db: AsyncSession, rng: Optional[random.Random] = None):
        self.db = db
        self.match_repo = MatchRepository(db)
        self.schedule_repo = ScheduleRepository(db)
        self.channel_repo = ChannelRepository(db)
        self.rng = rng or random.Random()

    async def _get_match(self, match_id: int) -> Dict[str, Any]:
        match = await self.match_repo.get_by_id(match_id)
        if not match:
            raise EntityNotFoundError("Match", match_id)
        return match

    async def schedule_content_for_match(
        self,
        match_id: int,
        now: datetime,
        language_channels: Optional[Dict[str, List[int]]] = None,
        force_reschedule: bool = False,
        kickoff_override: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Create the content schedule for one match.

        Raises:
            EntityNotFoundError: unknown match
            ScheduleConflictError: pending items exist and force_reschedule is False
        """
        match = await self._get_match(match_id)
        if kickoff_override:
            match["kickoff_time"] = kickoff_override

        pending = await self.schedule_repo.count_pending_for_match(match_id)
        if pending and not force_reschedule:
            raise ScheduleConflictError(match_id, pending)

        if language_channels is None:
            language_channels = group_channels_by_language(await self.channel_repo.get_active_channels())

        templates = await self.match_repo.get_active_templates()
        template = select_timing_template(match["importance_score"], match["kickoff_time"], templates)
        items = plan_schedule(match, language_channels, template, now, self.rng)

        try:
            if kickoff_override:
                await self.match_repo.update_kickoff(match_id, kickoff_override)
            cancelled = 0
            if pending:
                cancelled = await self.schedule_repo.cancel_pending_for_match(match_id, RESCHEDULED_REASON)
            created = await self.schedule_repo.bulk_create_items(items)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"📅 Scheduled {created} item(s) for {match['home_team']} vs {match['away_team']} "
            f"(template={template['name'] if template else 'defaults'}, cancelled={cancelled})"
        )
        return {
            "success": True,
            "match_id": match_id,
            "template": template["name"] if template else None,
            "scheduled_count": created,
            "cancelled_count": cancelled,
            "languages": sorted(lang for lang, ids in language_channels.items() if ids),
            "items": items,
        }

    async def update_schedule_for_match(
        self,
        match_id: int,
        now: datetime,
        new_kickoff: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Re-plan a match, e.g. after a kickoff change. Always forces."""
        return await self.schedule_content_for_match(
            match_id, now, force_reschedule=True, kickoff_override=new_kickoff
        )

    async def cancel_schedule_for_match(self, match_id: int, reason: str = "Cancelled") -> Dict[str, Any]:
        """Cancel all pending items; sent items are left alone and repeating is a no-op."""
        await self._get_match(match_id)
        try:
            cancelled = await self.schedule_repo.cancel_pending_for_match(match_id, reason)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        logger.info(f"🛑 Cancelled {cancelled} pending item(s) for match {match_id}: {reason}")
        return {"success": True, "match_id": match_id, "cancelled_count": cancelled}

    async def get_schedule_analytics(self, now: datetime, days: int = 7) -> Dict[str, Any]:
        rows = await self.schedule_repo.get_status_counts_since(now - timedelta(days=days))

        by_type: Dict[str, Dict[str, int]] = {}
        by_status: Dict[str, int] = {}
        for row in rows:
            by_type.setdefault(row["content_type"], {})[row["status"]] = row["count"]
            by_status[row["status"]] = by_status.get(row["status"], 0) + row["count"]

        sent = by_status.get(ScheduleStatus.SENT.value, 0)
        failed = by_status.get(ScheduleStatus.FAILED.value, 0)
        finished = sent + failed
        return {
            "period_days": days,
            "total_items": sum(by_status.values()),
            "by_status": by_status,
            "by_content_type": by_type,
            "success_rate": round(sent / finished * 100, 1) if finished else None,
        }

    # ============================================
    # EXECUTION
    # ============================================

    async def claim_due_items(self, now: datetime, limit: int) -> List[Dict[str, Any]]:
        items = await self.schedule_repo.claim_due_items(now, limit)
        await self.db.commit()
        return items

    async def execute_item(self, item: Dict[str, Any], distributor, now: datetime) -> Dict[str, Any]:
        """
        Distribute one claimed item to its channels and record the outcome.

        Quiet hours put the item back to pending so the next trigger after the
        quiet window picks it up. So does per-channel pacing when it is the
        only reason nothing went out.
        """
        channels = [
            c for c in await self.channel_repo.get_channels_by_ids(item["target_channels"])
            if c["is_active"]
        ]
        if not channels:
            await self.schedule_repo.mark_item_result(
                item["id"], ScheduleStatus.FAILED.value, error_message="no_active_channels"
            )
            await self.db.commit()
            return {"item_id": item["id"], "status": ScheduleStatus.FAILED.value, "error": "no_active_channels"}

        match = await self.match_repo.get_by_id(item["match_id"]) or {}
        context = {
            "match_id": item["match_id"],
            "opportunity": item["content_type"],
            "content_subtype": item["content_subtype"],
            "home_team": match.get("home_team"),
            "away_team": match.get("away_team"),
            "competition": match.get("competition"),
            "kickoff_time": match["kickoff_time"].isoformat() if match.get("kickoff_time") else None,
        }

        result = await distributor.distribute(
            OpportunityType.to_content_type(item["content_type"]).value,
            channels,
            context=context,
            now=now
        )

        if result["sent"]:
            status = ScheduleStatus.SENT.value
        elif result.get("halted") == LimitStatus.QUIET_HOURS:
            status = ScheduleStatus.PENDING.value
        elif result.get("deferred") and not result["failed"] and not result.get("halted"):
            status = ScheduleStatus.PENDING.value
        else:
            status = ScheduleStatus.FAILED.value

        await self.schedule_repo.mark_item_result(
            item["id"],
            status,
            execution_result={
                "content_type": result["content_type"],
                "sent": result["sent"],
                "failed": result["failed"],
                "skipped": result["skipped"],
                "deferred": result.get("deferred", 0),
                "halted": result.get("halted"),
            },
            error_message=None if result["sent"] else result.get("error"),
        )
        await self.db.commit()
        return {"item_id": item["id"], "status": status, "sent": result["sent"]}
