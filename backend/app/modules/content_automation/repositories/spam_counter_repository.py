"""
Spam Counter Repository
Atomic daily counters behind the spam guard.

The reservation is a pair of conditional increments:

    UPDATE spam_counters SET count = count + 1
    WHERE counter_date = :d AND content_type = :t AND count < max_count
    RETURNING count

run aggregate row first, then the per-type row, inside one savepoint. The
aggregate UPDATE takes the row lock that serializes concurrent reservations
for the day; if the per-type UPDATE matches nothing the savepoint is rolled
back, which undoes the aggregate increment before the lock is released.

When a channel is given, its pacing row in telegram_channels is claimed
first in the same savepoint (minimum gap since last_sent_at, sends within
the current clock hour), so a rejection at any step leaves every counter as
it was.
"""
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import select, update, func, and_, or_, case
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.content_automation.models.channel import TelegramChannel
from app.modules.content_automation.models.spam_counter import SpamCounter
from app.modules.content_automation.constants import LimitStatus, AGGREGATE_COUNTER_KEY


class SpamCounterRepository:
    """Repository for spam_counters."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def ensure_counters(self, counter_date: date, limits: Dict[str, int]) -> None:
        """
        Create missing counter rows for the day. Existing rows keep their
        count and max (ON CONFLICT DO NOTHING).
        """
        rows = [
            {"counter_date": counter_date, "content_type": content_type, "count": 0, "max_count": max_count}
            for content_type, max_count in limits.items()
        ]
        if not rows:
            return
        stmt = pg_insert(SpamCounter).values(rows).on_conflict_do_nothing(
            constraint="uq_spam_counters_date_type"
        )
        await self.db.execute(stmt)
        await self.db.flush()

    async def _conditional_increment(self, counter_date: date, content_type: str) -> Optional[int]:
        stmt = (
            update(SpamCounter)
            .where(
                and_(
                    SpamCounter.counter_date == counter_date,
                    SpamCounter.content_type == content_type,
                    SpamCounter.count < SpamCounter.max_count
                )
            )
            .values(count=SpamCounter.count + 1, updated_at=func.now())
            .returning(SpamCounter.count)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _claim_channel_slot(
        self,
        channel_id: int,
        now: datetime,
        max_per_hour: int,
        min_gap_minutes: int
    ) -> Optional[LimitStatus]:
        """
        Record a send for the channel if its pacing allows one.
        Returns None when claimed (or the channel row is unknown), otherwise
        the pacing status that blocked it. A limit of 0 is not enforced.
        """
        hour_start = now.replace(minute=0, second=0, microsecond=0)
        gap_start = now - timedelta(minutes=min_gap_minutes)

        conditions = [TelegramChannel.id == channel_id]
        if min_gap_minutes > 0:
            conditions.append(or_(
                TelegramChannel.last_sent_at.is_(None),
                TelegramChannel.last_sent_at <= gap_start
            ))
        if max_per_hour > 0:
            conditions.append(or_(
                TelegramChannel.send_window_start.is_(None),
                TelegramChannel.send_window_start != hour_start,
                TelegramChannel.sends_in_window < max_per_hour
            ))

        stmt = (
            update(TelegramChannel)
            .where(and_(*conditions))
            .values(
                last_sent_at=now,
                send_window_start=hour_start,
                sends_in_window=case(
                    (TelegramChannel.send_window_start == hour_start, TelegramChannel.sends_in_window + 1),
                    else_=1
                ),
                updated_at=func.now(),
            )
            .returning(TelegramChannel.id)
        )
        result = await self.db.execute(stmt)
        if result.scalar_one_or_none() is not None:
            return None

        row = (await self.db.execute(
            select(TelegramChannel.last_sent_at).where(TelegramChannel.id == channel_id)
        )).first()
        if row is None:
            return None
        if min_gap_minutes > 0 and row.last_sent_at is not None and row.last_sent_at > gap_start:
            return LimitStatus.MIN_GAP_NOT_MET
        return LimitStatus.HOURLY_LIMIT_REACHED

    async def try_increment(
        self,
        counter_date: date,
        content_type: str,
        channel_id: Optional[int] = None,
        now: Optional[datetime] = None,
        max_per_hour: int = 0,
        min_gap_minutes: int = 0
    ) -> LimitStatus:
        """
        Reserve one send of `content_type` on `counter_date`, paced per
        channel when `channel_id` and `now` are given.

        Returns:
            NORMAL when every counter was incremented,
            MIN_GAP_NOT_MET / HOURLY_LIMIT_REACHED when the channel must wait,
            EMERGENCY_STOP when the aggregate row is at its cap,
            DAILY_LIMIT_REACHED when only the per-type row is at its cap.
        """
        savepoint = await self.db.begin_nested()
        try:
            if channel_id is not None and now is not None:
                blocked = await self._claim_channel_slot(channel_id, now, max_per_hour, min_gap_minutes)
                if blocked is not None:
                    await savepoint.rollback()
                    return blocked

            total = await self._conditional_increment(counter_date, AGGREGATE_COUNTER_KEY)
            if total is None:
                await savepoint.rollback()
                return LimitStatus.EMERGENCY_STOP

            type_count = await self._conditional_increment(counter_date, content_type)
            if type_count is None:
                await savepoint.rollback()
                return LimitStatus.DAILY_LIMIT_REACHED

            await savepoint.commit()
            return LimitStatus.NORMAL
        except Exception:
            await savepoint.rollback()
            raise

    async def get_counters(self, counter_date: date) -> List[Dict]:
        query = (
            select(SpamCounter)
            .where(SpamCounter.counter_date == counter_date)
            .order_by(SpamCounter.content_type)
        )
        result = await self.db.execute(query)
        return [
            {
                "content_type": c.content_type,
                "count": c.count,
                "max_count": c.max_count,
            }
            for c in result.scalars().all()
        ]
