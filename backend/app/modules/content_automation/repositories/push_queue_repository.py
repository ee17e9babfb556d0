"""
Push Queue Repository
Database operations for smart_push_queue.
"""
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any

from sqlalchemy import select, update, func, and_, or_, insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.core.constants import CLAIM_STALE_MINUTES
from app.modules.content_automation.models.push_queue import PushQueueItem
from app.modules.content_automation.constants import PushStatus, RANDOM_PUSH_CONTENT_TYPE


class PushQueueRepository:
    """Repository for push queue items."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def bulk_create(self, items: List[Dict[str, Any]]) -> int:
        """Insert queue items in one statement. Returns inserted count."""
        if not items:
            return 0
        rows = [{**item, "status": PushStatus.PENDING.value} for item in items]
        await self.db.execute(insert(PushQueueItem), rows)
        await self.db.flush()
        return len(rows)

    async def count_random_items_for_channel(self, channel_id: int, start: datetime, end: datetime) -> int:
        """Random daily slots already queued for a channel inside [start, end)."""
        query = select(func.count()).select_from(PushQueueItem).where(
            and_(
                PushQueueItem.primary_content_type == RANDOM_PUSH_CONTENT_TYPE,
                PushQueueItem.channel_ids.contains([channel_id]),
                PushQueueItem.scheduled_at >= start,
                PushQueueItem.scheduled_at < end
            )
        )
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def get_items_between(self, start: datetime, end: datetime) -> List[Dict]:
        query = (
            select(PushQueueItem)
            .where(and_(PushQueueItem.scheduled_at >= start, PushQueueItem.scheduled_at < end))
            .order_by(PushQueueItem.scheduled_at)
        )
        result = await self.db.execute(query)
        return [self._item_to_dict(item) for item in result.scalars().all()]

    async def claim_due(self, now: datetime, limit: int) -> List[Dict]:
        """
        Move due pending items to processing and return them (SKIP LOCKED).
        Items stuck in processing since before the stale cutoff are taken again.
        """
        stale_before = now - timedelta(minutes=CLAIM_STALE_MINUTES)
        due_ids = (
            select(PushQueueItem.id)
            .where(
                and_(
                    PushQueueItem.scheduled_at <= now,
                    or_(
                        PushQueueItem.status == PushStatus.PENDING,
                        and_(
                            PushQueueItem.status == PushStatus.PROCESSING,
                            PushQueueItem.claimed_at < stale_before
                        )
                    )
                )
            )
            .order_by(PushQueueItem.scheduled_at)
            .limit(limit)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(PushQueueItem)
            .where(PushQueueItem.id.in_(due_ids))
            .values(status=PushStatus.PROCESSING.value, claimed_at=func.now())
            .returning(PushQueueItem)
        )
        result = await self.db.execute(stmt)
        items = [self._item_to_dict(item) for item in result.scalars().all()]
        await self.db.flush()
        items.sort(key=lambda i: i["scheduled_at"])
        return items

    async def release_claimed(self, item_ids: List[int]) -> int:
        """Put claimed items that were never delivered back to pending."""
        if not item_ids:
            return 0
        stmt = (
            update(PushQueueItem)
            .where(and_(PushQueueItem.id.in_(item_ids), PushQueueItem.status == PushStatus.PROCESSING))
            .values(status=PushStatus.PENDING.value, claimed_at=None)
        )
        result = await self.db.execute(stmt)
        await self.db.flush()
        return result.rowcount or 0

    async def mark_result(
        self,
        item_id: int,
        status: str,
        success_count: int,
        failure_count: int,
        error_message: Optional[str] = None
    ) -> None:
        await self.db.execute(
            update(PushQueueItem)
            .where(PushQueueItem.id == item_id)
            .values(
                status=status,
                success_count=success_count,
                failure_count=failure_count,
                error_message=error_message,
                processed_at=func.now()
            )
        )

    def _item_to_dict(self, item: PushQueueItem) -> Dict:
        return {
            "id": item.id,
            "primary_content_id": item.primary_content_id,
            "primary_content_type": item.primary_content_type,
            "channel_ids": item.channel_ids or [],
            "language": item.language,
            "scheduled_at": item.scheduled_at,
            "delay_minutes": item.delay_minutes,
            "status": item.status,
            "success_count": item.success_count,
            "failure_count": item.failure_count,
            "error_message": item.error_message,
            "context_data": item.context_data or {},
        }
