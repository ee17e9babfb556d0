import asyncio
import random
from datetime import datetime, timezone
from unittest.mock import MagicMock, AsyncMock

import pytest

from app.modules.content_automation.constants import RANDOM_PUSH_CONTENT_TYPE
from app.modules.content_automation.services.random_push_scheduler import (
    RandomPushScheduler,
    generate_random_slots,
    get_active_hours,
)

DAY_START = datetime(2026, 10, 21, 0, 0, tzinfo=timezone.utc)


# --- ACTIVE HOURS ---

def test_default_active_hours():
    assert get_active_hours(None) == list(range(6, 24))


def test_blackout_wrapping_midnight_blocks_both_boundaries():
    assert get_active_hours({"start": "23:00", "end": "06:00"}) == list(range(7, 23))


def test_blackout_inside_one_day():
    hours = get_active_hours({"start": "01:00", "end": "05:00"})
    assert hours == [0] + list(range(6, 24))


# --- SLOT GENERATION ---

@pytest.mark.parametrize("seed", range(25))
def test_slots_respect_gap_hours_and_order(seed):
    allowed = get_active_hours({"start": "23:00", "end": "06:00"})
    now = DAY_START.replace(hour=1)

    slots = generate_random_slots(DAY_START, now, 4, 2, allowed, rng=random.Random(seed))

    assert slots, "a 16 hour window always has room for at least one slot"
    for slot in slots:
        assert slot.hour in allowed
        assert slot > now
    for earlier, later in zip(slots, slots[1:]):
        assert earlier < later
        assert (later - earlier).total_seconds() >= 2 * 3600


def test_past_slots_are_dropped():
    now = DAY_START.replace(hour=22, minute=30)
    slots = generate_random_slots(DAY_START, now, 3, 1, list(range(6, 22)), rng=random.Random(7))
    assert slots == []


def test_no_room_yields_fewer_slots():
    # One allowed hour cannot hold two slots two hours apart
    slots = generate_random_slots(DAY_START, DAY_START, 3, 2, [12], rng=random.Random(1))
    assert len(slots) == 1


def test_zero_slots_or_no_hours():
    assert generate_random_slots(DAY_START, DAY_START, 0, 2, [10]) == []
    assert generate_random_slots(DAY_START, DAY_START, 3, 2, []) == []


# --- SERVICE ---

def _push_channel(channel_id, **push):
    return {
        "id": channel_id,
        "name": f"Channel {channel_id}",
        "language": "en",
        "push_settings": {
            "max_coupons_per_day": 3,
            "min_gap_hours": 2,
            "blackout_hours": {"start": "23:00", "end": "06:00"},
            **push,
        },
    }


def test_generate_daily_schedule_skips_channels_already_scheduled(mock_db):
    async def test_logic():
        scheduler = RandomPushScheduler(mock_db, rng=random.Random(3))
        scheduler.channel_repo = MagicMock()
        scheduler.channel_repo.get_push_enabled_channels = AsyncMock(return_value=[
            _push_channel(1), _push_channel(2)
        ])
        scheduler.queue_repo = MagicMock()
        scheduler.queue_repo.count_random_items_for_channel = AsyncMock(side_effect=[0, 2])
        scheduler.queue_repo.bulk_create = AsyncMock(side_effect=lambda items: len(items))

        result = await scheduler.generate_daily_schedule(DAY_START.replace(hour=5))

        assert result["success"] is True
        assert result["channels_affected"] == 1
        assert result["channels"][1] == {"channel_id": 2, "status": "skipped", "reason": "already_scheduled"}

        items = scheduler.queue_repo.bulk_create.call_args[0][0]
        assert len(items) == result["scheduled_count"]
        for item in items:
            assert item["channel_ids"] == [1]
            assert item["primary_content_type"] == RANDOM_PUSH_CONTENT_TYPE
            assert item["primary_content_id"].startswith("random_")
            assert item["delay_minutes"] == 0
            assert item["context_data"]["scheduled_type"] == "random_daily"
            assert item["context_data"]["max_coupons_today"] == 3
        mock_db.commit.assert_awaited_once()

    asyncio.run(test_logic())


def test_generate_daily_schedule_without_channels(mock_db):
    async def test_logic():
        scheduler = RandomPushScheduler(mock_db)
        scheduler.channel_repo = MagicMock()
        scheduler.channel_repo.get_push_enabled_channels = AsyncMock(return_value=[])

        result = await scheduler.generate_daily_schedule(DAY_START)

        assert result["success"] is False
        assert result["scheduled_count"] == 0
        mock_db.commit.assert_not_called()

    asyncio.run(test_logic())


def test_generate_daily_schedule_rolls_back_on_insert_failure(mock_db):
    async def test_logic():
        scheduler = RandomPushScheduler(mock_db, rng=random.Random(5))
        scheduler.channel_repo = MagicMock()
        scheduler.channel_repo.get_push_enabled_channels = AsyncMock(return_value=[_push_channel(1)])
        scheduler.queue_repo = MagicMock()
        scheduler.queue_repo.count_random_items_for_channel = AsyncMock(return_value=0)
        scheduler.queue_repo.bulk_create = AsyncMock(side_effect=RuntimeError("db down"))

        with pytest.raises(RuntimeError):
            await scheduler.generate_daily_schedule(DAY_START)
        mock_db.rollback.assert_awaited_once()

    asyncio.run(test_logic())


def _single_channel_scheduler(mock_db, channel):
    scheduler = RandomPushScheduler(mock_db, rng=random.Random(8))
    scheduler.channel_repo = MagicMock()
    scheduler.channel_repo.get_push_enabled_channels = AsyncMock(return_value=[channel])
    scheduler.queue_repo = MagicMock()
    scheduler.queue_repo.count_random_items_for_channel = AsyncMock(return_value=0)
    scheduler.queue_repo.bulk_create = AsyncMock(side_effect=lambda items: len(items))
    return scheduler


def test_zero_coupons_per_day_schedules_nothing(mock_db):
    async def test_logic():
        scheduler = _single_channel_scheduler(mock_db, _push_channel(1, max_coupons_per_day=0))

        result = await scheduler.generate_daily_schedule(DAY_START.replace(hour=5))

        assert result["scheduled_count"] == 0
        assert result["channels"][0] == {"channel_id": 1, "status": "scheduled", "slots": 0}

    asyncio.run(test_logic())


def test_zero_gap_hours_packs_slots_into_one_hour(mock_db):
    async def test_logic():
        # Only 11:00-11:59 is open
        channel = _push_channel(1, min_gap_hours=0, blackout_hours={"start": "12:00", "end": "10:00"})
        scheduler = _single_channel_scheduler(mock_db, channel)

        result = await scheduler.generate_daily_schedule(DAY_START.replace(hour=5))

        items = scheduler.queue_repo.bulk_create.call_args[0][0]
        assert result["scheduled_count"] == 3
        assert all(item["scheduled_at"].hour == 11 for item in items)

    asyncio.run(test_logic())
