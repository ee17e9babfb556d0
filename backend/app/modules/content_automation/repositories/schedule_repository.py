"""
Schedule Repository
Database operations for dynamic_content_schedule (per-match content items).
"""
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any

from sqlalchemy import select, update, func, and_, or_, insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.core.constants import CLAIM_STALE_MINUTES
from app.modules.content_automation.models.match import ScheduledContentItem
from app.modules.content_automation.constants import ScheduleStatus


class ScheduleRepository:
    """Repository for scheduled content items."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    # ============================================
    # CREATE / QUERY
    # ============================================

    async def count_pending_for_match(self, match_id: int) -> int:
        query = select(func.count()).select_from(ScheduledContentItem).where(
            and_(
                ScheduledContentItem.match_id == match_id,
                ScheduledContentItem.status == ScheduleStatus.PENDING
            )
        )
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def get_items_for_match(self, match_id: int, status: Optional[str] = None) -> List[Dict]:
        query = select(ScheduledContentItem).where(ScheduledContentItem.match_id == match_id)
        if status:
            query = query.where(ScheduledContentItem.status == status)
        query = query.order_by(ScheduledContentItem.scheduled_for, ScheduledContentItem.id)

        result = await self.db.execute(query)
        return [self._item_to_dict(item) for item in result.scalars().all()]

    async def bulk_create_items(self, items: List[Dict[str, Any]]) -> int:
        """
        Insert planned items in a single statement.
        Returns number of inserted rows.
        """
        if not items:
            return 0
        rows = [{**item, "status": ScheduleStatus.PENDING.value} for item in items]
        await self.db.execute(insert(ScheduledContentItem), rows)
        await self.db.flush()
        return len(rows)

    # ============================================
    # STATUS TRANSITIONS
    # ============================================

    async def cancel_pending_for_match(self, match_id: int, reason: str) -> int:
        """
        Move every pending item of a match to cancelled.
        Items already sent/failed/cancelled are untouched, so repeating the
        call is a no-op. Returns count of cancelled rows.
        """
        stmt = (
            update(ScheduledContentItem)
            .where(
                and_(
                    ScheduledContentItem.match_id == match_id,
                    ScheduledContentItem.status == ScheduleStatus.PENDING
                )
            )
            .values(
                status=ScheduleStatus.CANCELLED.value,
                execution_result={"cancelled": True, "reason": reason},
                updated_at=func.now()
            )
        )
        result = await self.db.execute(stmt)
        await self.db.flush()
        return result.rowcount or 0

    async def claim_due_items(self, now: datetime, limit: int) -> List[Dict]:
        """
        Atomically move due pending items to executing and return them.
        SKIP LOCKED lets overlapping triggers split the work instead of
        executing the same item twice. Items left in executing for longer
        than CLAIM_STALE_MINUTES were claimed by a run that died and are
        claimed again.
        """
        stale_before = now - timedelta(minutes=CLAIM_STALE_MINUTES)
        due_ids = (
            select(ScheduledContentItem.id)
            .where(
                and_(
                    ScheduledContentItem.scheduled_for <= now,
                    or_(
                        ScheduledContentItem.status == ScheduleStatus.PENDING,
                        and_(
                            ScheduledContentItem.status == ScheduleStatus.EXECUTING,
                            ScheduledContentItem.updated_at < stale_before
                        )
                    )
                )
            )
            .order_by(ScheduledContentItem.priority.desc(), ScheduledContentItem.scheduled_for)
            .limit(limit)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(ScheduledContentItem)
            .where(ScheduledContentItem.id.in_(due_ids))
            .values(status=ScheduleStatus.EXECUTING.value, updated_at=func.now())
            .returning(ScheduledContentItem)
        )
        result = await self.db.execute(stmt)
        items = [self._item_to_dict(item) for item in result.scalars().all()]
        await self.db.flush()
        items.sort(key=lambda i: (-i["priority"], i["scheduled_for"]))
        return items

    async def release_claimed_items(self, item_ids: List[int]) -> int:
        """Put claimed items that were never executed back to pending."""
        if not item_ids:
            return 0
        stmt = (
            update(ScheduledContentItem)
            .where(
                and_(
                    ScheduledContentItem.id.in_(item_ids),
                    ScheduledContentItem.status == ScheduleStatus.EXECUTING
                )
            )
            .values(status=ScheduleStatus.PENDING.value, updated_at=func.now())
        )
        result = await self.db.execute(stmt)
        await self.db.flush()
        return result.rowcount or 0

    async def mark_item_result(
        self,
        item_id: int,
        status: str,
        execution_result: Optional[Dict[str, Any]] = None,
        error_message: Optional[str] = None
    ) -> None:
        update_values = {
            "status": status,
            "executed_at": func.now(),
            "updated_at": func.now()
        }
        if execution_result is not None:
            update_values["execution_result"] = execution_result
        if error_message:
            update_values["error_message"] = error_message

        await self.db.execute(
            update(ScheduledContentItem)
            .where(ScheduledContentItem.id == item_id)
            .values(**update_values)
        )

    # ============================================
    # ANALYTICS
    # ============================================

    async def get_status_counts_since(self, since: datetime) -> List[Dict]:
        """(content_type, status, count) rows for items scheduled since `since`."""
        query = (
            select(
                ScheduledContentItem.content_type,
                ScheduledContentItem.status,
                func.count().label("count")
            )
            .where(ScheduledContentItem.scheduled_for >= since)
            .group_by(ScheduledContentItem.content_type, ScheduledContentItem.status)
        )
        result = await self.db.execute(query)
        return [
            {"content_type": row.content_type, "status": row.status, "count": row.count}
            for row in result.all()
        ]

    # ============================================
    # HELPER METHODS
    # ============================================

    def _item_to_dict(self, item: ScheduledContentItem) -> Dict:
        return {
            "id": item.id,
            "match_id": item.match_id,
            "content_type": item.content_type,
            "content_subtype": item.content_subtype,
            "language": item.language,
            "target_channels": item.target_channels or [],
            "scheduled_for": item.scheduled_for,
            "priority": item.priority,
            "engagement_score": item.engagement_score,
            "timing_reason": item.timing_reason,
            "status": item.status,
            "executed_at": item.executed_at,
            "execution_result": item.execution_result,
            "error_message": item.error_message,
        }
