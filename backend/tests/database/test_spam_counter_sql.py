# backend/tests/database/test_spam_counter_sql.py
"""
Spam Counter SQL Tests

Runs SpamCounterRepository against a real PostgreSQL so the conditional
UPDATE ... RETURNING statements and the savepoint rollback are exercised.
Skipped unless DATABASE_URL points at a migrated database. Every test works
on its own far-future counter date and removes its rows afterwards.
"""

import pytest
import asyncio
import os
import random
import uuid
from datetime import date, datetime, timedelta, timezone
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from dotenv import load_dotenv

from app.modules.content_automation.constants import LimitStatus, AGGREGATE_COUNTER_KEY
from app.modules.content_automation.repositories.spam_counter_repository import SpamCounterRepository

# Load env
load_dotenv()

NOON = datetime(2099, 6, 1, 12, 0, tzinfo=timezone.utc)


def get_database_url():
    """Get database URL from environment."""
    url = os.environ.get("DATABASE_URL")
    if not url:
        pytest.skip("DATABASE_URL not set")
    return url


def _counter_date() -> date:
    return date(2099, 1, 1) + timedelta(days=random.randint(0, 3000))


# --- SIMPLE ASYNC HELPER ---
async def run_with_repo(counter_date: date, test_body):
    """Run test_body(repo, session) on a fresh session, then drop the day's counters."""
    engine = create_async_engine(
        get_database_url(),
        echo=False,
        connect_args={"statement_cache_size": 0, "prepared_statement_cache_size": 0}
    )
    async_session = sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False
    )

    try:
        async with async_session() as session:
            try:
                return await test_body(SpamCounterRepository(session), session)
            finally:
                await session.rollback()
                await session.execute(
                    text("DELETE FROM spam_counters WHERE counter_date = :d"), {"d": counter_date}
                )
                await session.commit()
    finally:
        await engine.dispose()


async def counts(repo: SpamCounterRepository, counter_date: date):
    return {c["content_type"]: c["count"] for c in await repo.get_counters(counter_date)}


# --- TESTS ---
def test_type_cap_plus_one_is_rejected():
    counter_date = _counter_date()

    async def body(repo, session):
        await repo.ensure_counters(counter_date, {AGGREGATE_COUNTER_KEY: 15, "polls": 2})
        statuses = [await repo.try_increment(counter_date, "polls") for _ in range(3)]
        await session.commit()

        assert statuses == [LimitStatus.NORMAL, LimitStatus.NORMAL, LimitStatus.DAILY_LIMIT_REACHED]
        assert await counts(repo, counter_date) == {AGGREGATE_COUNTER_KEY: 2, "polls": 2}

    asyncio.run(run_with_repo(counter_date, body))


def test_aggregate_cap_stops_every_type():
    counter_date = _counter_date()

    async def body(repo, session):
        await repo.ensure_counters(counter_date, {AGGREGATE_COUNTER_KEY: 2, "news": 5, "betting": 5})
        assert await repo.try_increment(counter_date, "news") == LimitStatus.NORMAL
        assert await repo.try_increment(counter_date, "betting") == LimitStatus.NORMAL

        for content_type in ("news", "betting"):
            assert await repo.try_increment(counter_date, content_type) == LimitStatus.EMERGENCY_STOP
        await session.commit()

        assert await counts(repo, counter_date) == {AGGREGATE_COUNTER_KEY: 2, "news": 1, "betting": 1}

    asyncio.run(run_with_repo(counter_date, body))


def test_rejected_type_reservation_leaves_aggregate_unchanged():
    counter_date = _counter_date()

    async def body(repo, session):
        await repo.ensure_counters(counter_date, {AGGREGATE_COUNTER_KEY: 10, "polls": 1})
        assert await repo.try_increment(counter_date, "polls") == LimitStatus.NORMAL
        for _ in range(4):
            assert await repo.try_increment(counter_date, "polls") == LimitStatus.DAILY_LIMIT_REACHED
        await session.commit()

        assert (await counts(repo, counter_date))[AGGREGATE_COUNTER_KEY] == 1

    asyncio.run(run_with_repo(counter_date, body))


def test_ensure_counters_keeps_existing_counts():
    counter_date = _counter_date()

    async def body(repo, session):
        await repo.ensure_counters(counter_date, {AGGREGATE_COUNTER_KEY: 10, "news": 3})
        await repo.try_increment(counter_date, "news")
        await repo.ensure_counters(counter_date, {AGGREGATE_COUNTER_KEY: 99, "news": 99})
        await session.commit()

        rows = {c["content_type"]: c for c in await repo.get_counters(counter_date)}
        assert rows["news"] == {"content_type": "news", "count": 1, "max_count": 3}
        assert rows[AGGREGATE_COUNTER_KEY]["max_count"] == 10

    asyncio.run(run_with_repo(counter_date, body))


def test_channel_pacing_rejection_rolls_back_daily_counters():
    counter_date = _counter_date()

    async def body(repo, session):
        channel_id = (await session.execute(
            text("INSERT INTO telegram_channels (name, telegram_chat_id, language, is_active) "
                 "VALUES ('Pacing test', :chat, 'en', true) RETURNING id"),
            {"chat": f"@pacing_{uuid.uuid4().hex[:10]}"}
        )).scalar_one()
        await session.commit()
        try:
            await repo.ensure_counters(counter_date, {AGGREGATE_COUNTER_KEY: 10, "news": 10})
            pacing = {"channel_id": channel_id, "max_per_hour": 2, "min_gap_minutes": 30}

            assert await repo.try_increment(counter_date, "news", now=NOON, **pacing) == LimitStatus.NORMAL
            too_soon = await repo.try_increment(counter_date, "news", now=NOON + timedelta(minutes=10), **pacing)
            assert too_soon == LimitStatus.MIN_GAP_NOT_MET
            assert await repo.try_increment(
                counter_date, "news", now=NOON + timedelta(minutes=40), **pacing
            ) == LimitStatus.NORMAL
            # Gap met, but 12:00-12:59 already holds two sends
            over_cap = await repo.try_increment(counter_date, "news", now=NOON + timedelta(minutes=59), **{
                **pacing, "min_gap_minutes": 0
            })
            assert over_cap == LimitStatus.HOURLY_LIMIT_REACHED
            await session.commit()

            assert await counts(repo, counter_date) == {AGGREGATE_COUNTER_KEY: 2, "news": 2}
        finally:
            await session.rollback()
            await session.execute(text("DELETE FROM telegram_channels WHERE id = :id"), {"id": channel_id})
            await session.commit()

    asyncio.run(run_with_repo(counter_date, body))
