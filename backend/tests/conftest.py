# backend/tests/conftest.py
"""
Shared fixtures for all test modules.
Simplified version - avoids async fixtures to prevent event loop issues.
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from unittest.mock import MagicMock, AsyncMock
from fastapi.testclient import TestClient

# Import app
from app.main import app
from app.modules.content_automation.constants import LimitStatus, AGGREGATE_COUNTER_KEY


# --- TEST CLIENT FIXTURE ---
@pytest.fixture(scope="module")
def test_client():
    """Create a FastAPI test client."""
    return TestClient(app)


# --- DATABASE SESSION ---
@pytest.fixture
def mock_db():
    """AsyncSession stand-in: services only commit/rollback through it."""
    db = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    return db


# --- IN-MEMORY SPAM COUNTERS ---
class InMemorySpamCounterRepository:
    """Same contract as SpamCounterRepository, kept in a dict."""

    def __init__(self):
        self.rows = {}
        self.channels = {}  # channel_id -> {"last_sent_at", "window", "sends"}

    async def ensure_counters(self, counter_date: date, limits):
        for content_type, max_count in limits.items():
            self.rows.setdefault((counter_date, content_type), {"count": 0, "max_count": max_count})

    def _channel_block(self, channel_id, now, max_per_hour, min_gap_minutes):
        pacing = self.channels.get(channel_id)
        if pacing is None:
            return None
        if min_gap_minutes > 0 and now - pacing["last_sent_at"] < timedelta(minutes=min_gap_minutes):
            return LimitStatus.MIN_GAP_NOT_MET
        window = now.replace(minute=0, second=0, microsecond=0)
        if max_per_hour > 0 and pacing["window"] == window and pacing["sends"] >= max_per_hour:
            return LimitStatus.HOURLY_LIMIT_REACHED
        return None

    async def try_increment(self, counter_date: date, content_type: str, channel_id=None, now=None,
                            max_per_hour=0, min_gap_minutes=0) -> LimitStatus:
        paced = channel_id is not None and now is not None
        if paced:
            blocked = self._channel_block(channel_id, now, max_per_hour, min_gap_minutes)
            if blocked:
                return blocked
        total = self.rows[(counter_date, AGGREGATE_COUNTER_KEY)]
        if total["count"] >= total["max_count"]:
            return LimitStatus.EMERGENCY_STOP
        row = self.rows[(counter_date, content_type)]
        if row["count"] >= row["max_count"]:
            return LimitStatus.DAILY_LIMIT_REACHED
        total["count"] += 1
        row["count"] += 1
        if paced:
            window = now.replace(minute=0, second=0, microsecond=0)
            previous = self.channels.get(channel_id)
            sends = previous["sends"] + 1 if previous and previous["window"] == window else 1
            self.channels[channel_id] = {"last_sent_at": now, "window": window, "sends": sends}
        return LimitStatus.NORMAL

    async def get_counters(self, counter_date: date):
        return [
            {"content_type": t, "count": r["count"], "max_count": r["max_count"]}
            for (d, t), r in sorted(self.rows.items()) if d == counter_date
        ]


@pytest.fixture
def spam_repo():
    return InMemorySpamCounterRepository()


# --- SAMPLE DATA FIXTURES ---
@pytest.fixture
def weekday_morning():
    """Wednesday 08:00 UTC."""
    return datetime(2026, 10, 21, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_channels():
    """Two English and two Amharic channels."""
    return [
        {"id": 1, "name": "Football EN", "telegram_chat_id": "@football_en", "language": "en", "is_active": True},
        {"id": 2, "name": "Goals EN", "telegram_chat_id": "@goals_en", "language": "en", "is_active": True},
        {"id": 3, "name": "Football AM", "telegram_chat_id": "@football_am", "language": "am", "is_active": True},
        {"id": 4, "name": "Goals AM", "telegram_chat_id": "@goals_am", "language": "am", "is_active": True},
    ]


@pytest.fixture
def sample_item():
    return {"text": "<b>Arsenal vs Chelsea</b> preview", "parse_mode": "HTML"}
