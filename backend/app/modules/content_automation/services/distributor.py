"""
Distribution Fan-out
Sends one content type to a set of channels.

Content is generated once per language group, then every channel of the
group gets its own spam guard reservation and gateway call. A failing
channel never affects the others. Limit signals do:
    DAILY_LIMIT_REACHED  -> no more sends of that type in this call
    EMERGENCY_STOP       -> no more sends at all
    QUIET_HOURS          -> no more sends at all (nothing was counted)
    HOURLY_LIMIT_REACHED -> this channel is skipped (counted as deferred)
    MIN_GAP_NOT_MET      -> this channel is skipped (counted as deferred)

A successful send of any type except coupons queues a follow-up coupon push
for channels with smart push enabled. The follow-up carries origin=<type>;
sends whose origin is coupons never queue another one.
"""
import logging
import random
import uuid
from datetime import datetime, timedelta
from typing import Dict, Any, List, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.utils.time_utils import local_now
from app.modules.content_automation.repositories.channel_repository import ChannelRepository
from app.modules.content_automation.repositories.push_queue_repository import PushQueueRepository
from app.modules.content_automation.services.spam_guard import SpamGuard
from app.modules.content_automation.services.content_router import content_router as default_router
from app.modules.content_automation.services.telegram_gateway import telegram_gateway as default_gateway
from app.modules.content_automation.constants import (
    ContentType,
    LimitStatus,
    ActionStatus,
    COUPON_TRIGGER_CONTENT_TYPE,
    DEFAULT_TRIGGER_MIN_DELAY_MINUTES,
    DEFAULT_TRIGGER_MAX_DELAY_MINUTES,
    DEFAULT_LANGUAGE,
)

logger = logging.getLogger("distributor")


def group_by_language(channels: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    groups: Dict[str, List[Dict[str, Any]]] = {}
    for channel in channels:
        groups.setdefault(channel.get("language") or DEFAULT_LANGUAGE, []).append(channel)
    return groups


def should_trigger_coupon(content_type: str, origin: Optional[str]) -> bool:
    return content_type != ContentType.COUPONS and origin != ContentType.COUPONS


class ContentDistributor:
    """
    Per-channel fan-out behind the spam guard.

    Usage:
        distributor = ContentDistributor(db)
        result = await distributor.distribute("news", channels)
    """

    def __init__(
        self,
        db: AsyncSession,
        router=None,
        gateway=None,
        spam_guard: Optional[SpamGuard] = None,
        rng: Optional[random.Random] = None
    ):
        self.db = db
        self.router = router or default_router
        self.gateway = gateway or default_gateway
        self.spam_guard = spam_guard or SpamGuard(db)
        self.channel_repo = ChannelRepository(db)
        self.queue_repo = PushQueueRepository(db)
        self.rng = rng or random.Random()
        self._push_settings: Optional[Dict[int, Dict[str, Any]]] = None

    async def _push_settings_by_channel(self) -> Dict[int, Dict[str, Any]]:
        if self._push_settings is None:
            enabled = await self.channel_repo.get_push_enabled_channels()
            self._push_settings = {c["id"]: c["push_settings"] for c in enabled}
        return self._push_settings

    async def _queue_coupon_trigger(
        self,
        channel: Dict[str, Any],
        content_type: str,
        message_id: Optional[int],
        now: datetime
    ) -> bool:
        push = (await self._push_settings_by_channel()).get(channel["id"])
        if push is None:
            return False

        # 0 is a valid setting (immediate follow-up), only a missing value falls back
        min_delay = push.get("min_delay_minutes")
        if min_delay is None:
            min_delay = DEFAULT_TRIGGER_MIN_DELAY_MINUTES
        max_delay = push.get("max_delay_minutes")
        if max_delay is None:
            max_delay = DEFAULT_TRIGGER_MAX_DELAY_MINUTES
        max_delay = max(min_delay, max_delay)
        delay = self.rng.randint(min_delay, max_delay)

        await self.queue_repo.bulk_create([{
            "primary_content_id": str(message_id) if message_id else f"{content_type}_{uuid.uuid4().hex[:12]}",
            "primary_content_type": COUPON_TRIGGER_CONTENT_TYPE,
            "channel_ids": [channel["id"]],
            "language": channel.get("language") or DEFAULT_LANGUAGE,
            "scheduled_at": now + timedelta(minutes=delay),
            "delay_minutes": delay,
            "context_data": {"origin": content_type, "channel_name": channel.get("name")},
        }])
        await self.db.commit()
        logger.info(f"🎟️ Coupon follow-up queued for channel {channel['id']} in {delay}m (origin={content_type})")
        return True

    async def distribute(
        self,
        content_type: str,
        channels: List[Dict[str, Any]],
        origin: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Generate and send `content_type` to `channels`.

        Returns:
            {
                "success": bool,            # at least one channel received content
                "content_type": str,        # requested type
                "sent", "failed", "skipped": int,
                "deferred": int,            # skipped by per-channel pacing
                "halted": LimitStatus value or None,
                "coupon_triggers": int,
                "languages": {lang: {"available", "content_type", "fallback_used", ...}},
                "results": [{"channel_id", "channel", "language", "status", "content_type",
                             "success", "error", "message_id"}]
            }
        """
        content_type = getattr(content_type, "value", content_type)
        origin = getattr(origin, "value", origin)
        now = now or local_now()

        results: List[Dict[str, Any]] = []
        languages: Dict[str, Dict[str, Any]] = {}
        exhausted_types: Set[str] = set()
        halted: Optional[str] = None
        coupon_triggers = 0

        def record(channel, language, status, actual_type, error=None, message_id=None):
            results.append({
                "channel_id": channel["id"],
                "channel": channel.get("name"),
                "language": language,
                "status": status,
                "content_type": actual_type,
                "success": status == ActionStatus.TRIGGERED.value,
                "error": error,
                "message_id": message_id,
            })

        for language, group in group_by_language(channels).items():
            if halted:
                for channel in group:
                    record(channel, language, ActionStatus.SKIPPED.value, content_type, error=halted)
                continue

            routed = await self.router.route(
                content_type, language, [c["id"] for c in group], max_items=1, context=context
            )
            actual_type = routed["content_type"]
            languages[language] = {
                "available": routed["available"],
                "content_type": actual_type,
                **routed["processing_info"],
            }

            if not routed["available"]:
                for channel in group:
                    record(channel, language, ActionStatus.SKIPPED.value, actual_type, error="no_content_available")
                continue

            for channel in group:
                if halted or actual_type in exhausted_types:
                    reason = halted or LimitStatus.DAILY_LIMIT_REACHED.value
                    record(channel, language, ActionStatus.SKIPPED.value, actual_type, error=reason)
                    continue

                for item in routed["items"]:
                    reservation = await self.spam_guard.try_reserve(actual_type, now, channel_id=channel["id"])
                    if reservation.status == LimitStatus.DAILY_LIMIT_REACHED:
                        exhausted_types.add(actual_type)
                        record(channel, language, ActionStatus.SKIPPED.value, actual_type, error=reservation.status.value)
                        break
                    if LimitStatus.halts_all_types(reservation.status):
                        halted = reservation.status.value
                        record(channel, language, ActionStatus.SKIPPED.value, actual_type, error=halted)
                        break
                    if LimitStatus.defers_channel(reservation.status):
                        record(channel, language, ActionStatus.SKIPPED.value, actual_type, error=reservation.status.value)
                        break

                    try:
                        send = await self.gateway.send(channel["telegram_chat_id"], item, now=now)
                    except Exception as e:
                        logger.error(f"Gateway crashed sending to channel {channel['id']}: {e}")
                        send = {"success": False, "error": str(e)}

                    if not send.get("success"):
                        logger.warning(f"❌ {actual_type} to channel {channel['id']} failed: {send.get('error')}")
                        record(channel, language, ActionStatus.FAILED.value, actual_type, error=send.get("error"))
                        continue

                    record(channel, language, ActionStatus.TRIGGERED.value, actual_type, message_id=send.get("message_id"))
                    if should_trigger_coupon(actual_type, origin):
                        try:
                            if await self._queue_coupon_trigger(channel, actual_type, send.get("message_id"), now):
                                coupon_triggers += 1
                        except Exception as e:
                            await self.db.rollback()
                            logger.error(f"Failed to queue coupon follow-up for channel {channel['id']}: {e}")

        sent = sum(1 for r in results if r["status"] == ActionStatus.TRIGGERED.value)
        failed = sum(1 for r in results if r["status"] == ActionStatus.FAILED.value)
        skipped = sum(1 for r in results if r["status"] == ActionStatus.SKIPPED.value)
        deferred = sum(1 for r in results if r["error"] and LimitStatus.defers_channel(r["error"]))
        errors = sorted({r["error"] for r in results if r["error"]})

        logger.info(
            f"📤 {content_type}: sent={sent} failed={failed} skipped={skipped}"
            + (f" halted={halted}" if halted else "")
        )
        return {
            "success": sent > 0,
            "content_type": content_type,
            "sent": sent,
            "failed": failed,
            "skipped": skipped,
            "deferred": deferred,
            "halted": halted,
            "coupon_triggers": coupon_triggers,
            "languages": languages,
            "results": results,
            "error": "; ".join(errors) or None,
        }
