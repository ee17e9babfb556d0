import asyncio
from datetime import datetime, timezone
from unittest.mock import MagicMock, AsyncMock

import pytest

from app.shared.utils.exceptions import RunDeadlineExceeded
from app.modules.content_automation.services.orchestrator import AutomationOrchestrator, RunBudget
from app.modules.content_automation.services.rule_evaluator import EvaluatorConfig
from app.modules.content_automation.constants import LimitStatus, RunType

NOW = datetime(2026, 10, 21, 9, 0, tzinfo=timezone.utc)


def _rule(**extra):
    rule = {
        "id": 7,
        "name": "Morning news",
        "content_type": "news",
        "automation_type": "scheduled",
        "enabled": True,
        "schedule": {"times": ["09:00"]},
        "conditions": {},
        "languages": ["en"],
    }
    rule.update(extra)
    return rule


def _distribution(sent=0, failed=0, skipped=0, halted=None, results=None):
    return {
        "success": sent > 0,
        "content_type": "news",
        "sent": sent,
        "failed": failed,
        "skipped": skipped,
        "halted": halted,
        "coupon_triggers": 0,
        "languages": {"en": {"available": True}},
        "results": results or [],
    }


def _orchestrator(mock_db, distributor=None, **kwargs):
    distributor = distributor or MagicMock()
    orchestrator = AutomationOrchestrator(
        mock_db,
        evaluator_config=EvaluatorConfig(window_minutes=60),
        distributor=distributor,
        fixtures=MagicMock(),
        **kwargs
    )
    orchestrator.rule_repo = MagicMock()
    orchestrator.rule_repo.record_run = AsyncMock()
    orchestrator.rule_repo.has_recent_rule_run = AsyncMock(return_value=False)
    orchestrator.channel_repo = MagicMock()
    orchestrator.match_repo = MagicMock()
    orchestrator.match_repo.get_kickoffs_between = AsyncMock(return_value=[])
    return orchestrator


# --- RUN BUDGET ---

def test_budget_without_time_left_refuses_work():
    budget = RunBudget("hourly", deadline_seconds=0, item_timeout_seconds=5)
    with pytest.raises(RunDeadlineExceeded):
        budget.check()


def test_budget_times_out_slow_item():
    async def slow():
        await asyncio.sleep(1)

    async def test_logic():
        budget = RunBudget("hourly", deadline_seconds=30, item_timeout_seconds=0.01)
        with pytest.raises(asyncio.TimeoutError):
            await budget.run_item(slow)

    asyncio.run(test_logic())


# --- RULE PROCESSING ---

def test_disabled_rule_is_skipped(mock_db, sample_channels):
    async def test_logic():
        orchestrator = _orchestrator(mock_db)
        outcome = await orchestrator._process_rule(_rule(enabled=False), NOW, sample_channels, [])
        assert outcome["status"] == "skipped"
        assert outcome["reason"] == "disabled"

    asyncio.run(test_logic())


def test_recent_execution_blocks_rule(mock_db, sample_channels):
    async def test_logic():
        orchestrator = _orchestrator(mock_db)
        orchestrator.rule_repo.has_recent_rule_run = AsyncMock(return_value=True)

        outcome = await orchestrator._process_rule(_rule(), NOW, sample_channels, [])

        assert outcome["reason"] == "recently_executed"
        since = orchestrator.rule_repo.has_recent_rule_run.call_args[0][1]
        assert (NOW - since).total_seconds() == 3600

    asyncio.run(test_logic())


def test_rule_without_matching_channels(mock_db, sample_channels):
    async def test_logic():
        orchestrator = _orchestrator(mock_db)
        outcome = await orchestrator._process_rule(_rule(languages=["fr"]), NOW, sample_channels, [])
        assert outcome["reason"] == "no_matching_channels"

    asyncio.run(test_logic())


def test_triggered_rule_distributes_and_records(mock_db, sample_channels):
    async def test_logic():
        distributor = MagicMock()
        distributor.distribute = AsyncMock(return_value=_distribution(sent=2))
        orchestrator = _orchestrator(mock_db, distributor)

        outcome = await orchestrator._process_rule(_rule(), NOW, sample_channels, [])

        assert outcome["status"] == "triggered"
        assert outcome["sent"] == 2
        targets = distributor.distribute.call_args[0][1]
        assert [c["id"] for c in targets] == [1, 2]

        recorded = orchestrator.rule_repo.record_run.call_args[1]
        assert recorded["run_type"] == "rule_execution"
        assert recorded["status"] == "completed"
        assert recorded["rule_id"] == 7
        mock_db.commit.assert_awaited()

    asyncio.run(test_logic())


def test_emergency_stop_ends_rule_loop(mock_db, sample_channels):
    async def test_logic():
        distributor = MagicMock()
        distributor.distribute = AsyncMock(
            return_value=_distribution(sent=1, skipped=3, halted=LimitStatus.EMERGENCY_STOP.value)
        )
        orchestrator = _orchestrator(mock_db, distributor)
        orchestrator.rule_repo.get_enabled_rules = AsyncMock(return_value=[_rule(id=1), _rule(id=2)])
        orchestrator.channel_repo.get_active_channels = AsyncMock(return_value=sample_channels)

        summary = {"errors": []}
        await orchestrator._run_rules(summary, RunBudget("hourly", 60, 10), NOW)

        assert distributor.distribute.await_count == 1
        assert summary["rules_evaluated"] == 1
        assert summary["messages_sent"] == 1

    asyncio.run(test_logic())


# --- RUN WRAPPER ---

def test_failing_run_returns_failed_summary(mock_db):
    async def body(summary, budget, now):
        raise RuntimeError("database unreachable")

    async def test_logic():
        orchestrator = _orchestrator(mock_db)
        result = await orchestrator._run(RunType.HOURLY, body, NOW)

        assert result["success"] is False
        assert result["status"] == "failed"
        assert result["error"] == "database unreachable"
        assert result["correlation_id"].startswith("run-")
        mock_db.rollback.assert_awaited()
        assert orchestrator.rule_repo.record_run.call_args[1]["status"] == "failed"

    asyncio.run(test_logic())


def test_deadline_returns_partial_summary(mock_db):
    async def body(summary, budget, now):
        summary["processed"] = 3
        raise RunDeadlineExceeded("hourly", 1)

    async def test_logic():
        orchestrator = _orchestrator(mock_db)
        result = await orchestrator._run(RunType.HOURLY, body, NOW)

        assert result["success"] is True
        assert result["status"] == "partial"
        assert result["summary"]["processed"] == 3
        assert result["summary"]["deadline_exceeded"] is True

    asyncio.run(test_logic())


def test_item_errors_make_run_partial(mock_db):
    async def failing_item():
        raise ValueError("bad rule")

    async def body(summary, budget, now):
        await orchestrator._bounded(budget, "rule:1", summary, failing_item)

    async def test_logic():
        result = await orchestrator._run(RunType.HOURLY, body, NOW)
        assert result["status"] == "partial"
        assert result["summary"]["errors"] == [{"item": "rule:1", "error": "bad rule"}]

    orchestrator = _orchestrator(mock_db)
    asyncio.run(test_logic())


# --- COUPONS ONLY ---

def test_coupons_only_stops_at_daily_limit(mock_db, sample_channels):
    outcomes = [
        _distribution(sent=1, results=[{"status": "triggered", "error": None}]),
        _distribution(skipped=1, results=[{"status": "skipped", "error": LimitStatus.DAILY_LIMIT_REACHED.value}]),
    ]

    async def test_logic():
        distributor = MagicMock()
        distributor.distribute = AsyncMock(side_effect=outcomes)
        orchestrator = _orchestrator(mock_db, distributor)
        orchestrator.channel_repo.get_active_channels = AsyncMock(return_value=sample_channels)

        result = await orchestrator.run_coupons_only(now=NOW)

        assert distributor.distribute.await_count == 2
        channels = result["summary"]["channels"]
        assert [c["status"] for c in channels] == ["triggered", "skipped", "skipped", "skipped"]
        assert channels[3]["reason"] == "DAILY_LIMIT_REACHED"
        assert result["summary"]["messages_sent"] == 1

    asyncio.run(test_logic())


# --- CLAIMED ITEMS ON DEADLINE ---

def test_deadline_releases_unexecuted_schedule_items(mock_db):
    claimed = [{"id": 1}, {"id": 2}, {"id": 3}]

    async def test_logic():
        orchestrator = _orchestrator(mock_db)
        orchestrator.scheduler = MagicMock()
        orchestrator.scheduler.claim_due_items = AsyncMock(return_value=claimed)
        orchestrator.scheduler.execute_item = AsyncMock(side_effect=[
            {"item_id": 1, "status": "sent"},
            RunDeadlineExceeded("hourly", 1),
        ])
        orchestrator.schedule_repo = MagicMock()
        orchestrator.schedule_repo.release_claimed_items = AsyncMock(return_value=2)

        result = await orchestrator._run(RunType.HOURLY, orchestrator._execute_due_items, NOW)

        assert result["status"] == "partial"
        orchestrator.schedule_repo.release_claimed_items.assert_awaited_once_with([2, 3])
        summary = result["summary"]
        assert summary["deadline_exceeded"] is True
        assert summary["released_items"] == 2
        assert summary["scheduled_items_due"] == 3
        assert summary["scheduled_items_sent"] == 1

    asyncio.run(test_logic())


def test_completed_schedule_items_are_not_released(mock_db):
    async def test_logic():
        orchestrator = _orchestrator(mock_db)
        orchestrator.scheduler = MagicMock()
        orchestrator.scheduler.claim_due_items = AsyncMock(return_value=[{"id": 1}])
        orchestrator.scheduler.execute_item = AsyncMock(return_value={"item_id": 1, "status": "sent"})
        orchestrator.schedule_repo = MagicMock()
        orchestrator.schedule_repo.release_claimed_items = AsyncMock()

        result = await orchestrator._run(RunType.HOURLY, orchestrator._execute_due_items, NOW)

        assert result["status"] == "completed"
        orchestrator.schedule_repo.release_claimed_items.assert_not_awaited()
        assert "released_items" not in result["summary"]

    asyncio.run(test_logic())


def test_deadline_releases_undelivered_push_items(mock_db):
    claimed = [{"id": 11}, {"id": 12}, {"id": 13}]

    async def test_logic():
        orchestrator = _orchestrator(mock_db)
        orchestrator.queue_repo = MagicMock()
        orchestrator.queue_repo.claim_due = AsyncMock(return_value=claimed)
        orchestrator.queue_repo.release_claimed = AsyncMock(return_value=2)
        orchestrator._deliver_push_item = AsyncMock(side_effect=[
            {"item_id": 11, "status": "completed", "sent": 1, "halted": None},
            RunDeadlineExceeded("push_delivery", 1),
        ])

        result = await orchestrator._run(RunType.PUSH_DELIVERY, orchestrator._push_delivery, NOW)

        assert result["status"] == "partial"
        orchestrator.queue_repo.release_claimed.assert_awaited_once_with([12, 13])
        assert result["summary"]["due_items"] == 3
        assert result["summary"]["completed"] == 1
        assert result["summary"]["released_items"] == 2

    asyncio.run(test_logic())


def test_failed_release_is_recorded_not_raised(mock_db):
    async def test_logic():
        orchestrator = _orchestrator(mock_db)
        orchestrator.scheduler = MagicMock()
        orchestrator.scheduler.claim_due_items = AsyncMock(return_value=[{"id": 1}, {"id": 2}])
        orchestrator.scheduler.execute_item = AsyncMock(side_effect=RunDeadlineExceeded("hourly", 1))
        orchestrator.schedule_repo = MagicMock()
        orchestrator.schedule_repo.release_claimed_items = AsyncMock(side_effect=RuntimeError("connection lost"))

        result = await orchestrator._run(RunType.HOURLY, orchestrator._execute_due_items, NOW)

        assert result["status"] == "partial"
        assert result["summary"]["deadline_exceeded"] is True
        assert {"item": "release_claimed", "error": "connection lost"} in result["summary"]["errors"]

    asyncio.run(test_logic())
