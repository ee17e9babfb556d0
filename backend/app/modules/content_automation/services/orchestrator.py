"""
Automation Orchestrator
Entry points invoked by the external triggers (cron -> HTTP -> here).

Every run:
- gets its own run-xxxxxxxx correlation id,
- is bounded by a run deadline, and each rule/match/channel/item by a
  per-item timeout that never exceeds the time left,
- always returns a structured summary (a fatal error becomes
  status=failed with the error, never an exception),
- is recorded in automation_runs.

No state survives between runs; everything is re-read from the database.
"""
import asyncio
import logging
import random
import time
from datetime import datetime, timedelta
from typing import Dict, Any, List, Optional, Callable, Awaitable

from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.core.config import settings
from app.shared.core.constants import (
    MAX_DUE_SCHEDULE_ITEMS,
    MAX_DUE_PUSH_ITEMS,
    RUN_LOG_RETENTION_DAYS,
)
from app.shared.core.logging import set_correlation_id
from app.shared.utils.exceptions import RunDeadlineExceeded, ScheduleConflictError
from app.shared.utils.json_utils import to_jsonable
from app.shared.utils.time_utils import local_now
from app.modules.content_automation.repositories.match_repository import MatchRepository
from app.modules.content_automation.repositories.rule_repository import RuleRepository
from app.modules.content_automation.repositories.channel_repository import ChannelRepository
from app.modules.content_automation.repositories.push_queue_repository import PushQueueRepository
from app.modules.content_automation.repositories.schedule_repository import ScheduleRepository
from app.modules.content_automation.services.match_scorer import match_scorer, ScoringContext
from app.modules.content_automation.services.rule_evaluator import (
    EvaluatorConfig,
    evaluate_rule,
    resolve_target_channels,
    duplicate_guard_minutes,
)
from app.modules.content_automation.services.smart_scheduler import (
    SmartContentScheduler,
    group_channels_by_language,
)
from app.modules.content_automation.services.random_push_scheduler import RandomPushScheduler
from app.modules.content_automation.services.distributor import ContentDistributor
from app.modules.content_automation.services.fixtures_client import fixtures_client as default_fixtures_client
from app.modules.content_automation.constants import (
    ContentType,
    RunType,
    RunStatus,
    ActionStatus,
    LimitStatus,
    PushStatus,
    ScheduleStatus,
    MIN_IMPORTANCE_SCORE,
    DISCOVERY_MAX_FUTURE_DAYS,
    URGENT_CONTENT_TYPES,
)

logger = logging.getLogger("orchestrator")


class RunBudget:
    """Deadline bookkeeping for one run."""

    def __init__(self, run_type: str, deadline_seconds: float, item_timeout_seconds: float):
        self.run_type = run_type
        self.deadline_seconds = deadline_seconds
        self.item_timeout_seconds = item_timeout_seconds
        self._started = time.monotonic()

    def remaining(self) -> float:
        return self.deadline_seconds - (time.monotonic() - self._started)

    def check(self) -> None:
        if self.remaining() <= 0:
            raise RunDeadlineExceeded(self.run_type, self.deadline_seconds)

    async def run_item(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Await func(*args, **kwargs) with timeout min(item timeout, time left).

        Raises RunDeadlineExceeded before starting when no time is left and
        asyncio.TimeoutError when the item itself overruns.
        """
        self.check()
        timeout = min(self.item_timeout_seconds, self.remaining())
        return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)


class AutomationOrchestrator:
    """
    Runs automation cycles against one database session.

    Usage:
        orchestrator = AutomationOrchestrator(db)
        summary = await orchestrator.run_hourly()
    """

    def __init__(
        self,
        db: AsyncSession,
        evaluator_config: Optional[EvaluatorConfig] = None,
        distributor: Optional[ContentDistributor] = None,
        fixtures=None,
        rng: Optional[random.Random] = None,
        run_deadline_seconds: Optional[float] = None,
        item_timeout_seconds: Optional[float] = None
    ):
        self.db = db
        self.config = evaluator_config or EvaluatorConfig.from_settings()
        self.rng = rng or random.Random()
        self.distributor = distributor or ContentDistributor(db, rng=self.rng)
        self.fixtures = fixtures or default_fixtures_client
        self.run_deadline_seconds = settings.RUN_DEADLINE_SECONDS if run_deadline_seconds is None else run_deadline_seconds
        self.item_timeout_seconds = settings.ITEM_TIMEOUT_SECONDS if item_timeout_seconds is None else item_timeout_seconds

        self.match_repo = MatchRepository(db)
        self.rule_repo = RuleRepository(db)
        self.channel_repo = ChannelRepository(db)
        self.queue_repo = PushQueueRepository(db)
        self.schedule_repo = ScheduleRepository(db)
        self.scheduler = SmartContentScheduler(db, rng=self.rng)

    # ============================================
    # RUN WRAPPER
    # ============================================

    async def _run(
        self,
        run_type: RunType,
        body: Callable[[Dict[str, Any], RunBudget, datetime], Awaitable[None]],
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        correlation_id = set_correlation_id(prefix="run")
        now = now or local_now()
        started_at = datetime.now(now.tzinfo)
        budget = RunBudget(run_type.value, self.run_deadline_seconds, self.item_timeout_seconds)
        summary: Dict[str, Any] = {"errors": []}
        error = None

        logger.info(f"▶️ {run_type.value} run started at {now.isoformat()}")
        try:
            await body(summary, budget, now)
            status = RunStatus.PARTIAL if summary["errors"] else RunStatus.COMPLETED
        except RunDeadlineExceeded as e:
            logger.warning(f"⏱️ {e.message}")
            summary["deadline_exceeded"] = True
            status = RunStatus.PARTIAL
        except Exception as e:
            await self.db.rollback()
            logger.exception(f"❌ {run_type.value} run failed: {e}")
            status = RunStatus.FAILED
            error = str(e)

        finished_at = datetime.now(now.tzinfo)
        summary = to_jsonable(summary)
        try:
            await self.rule_repo.record_run(
                run_type=run_type.value,
                status=status.value,
                summary=summary,
                started_at=started_at,
                finished_at=finished_at,
                correlation_id=correlation_id,
                error_message=error,
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Could not record {run_type.value} run: {e}")

        logger.info(f"⏹️ {run_type.value} run {status.value} in {(finished_at - started_at).total_seconds():.1f}s")
        return {
            "success": status != RunStatus.FAILED,
            "run_type": run_type.value,
            "status": status.value,
            "correlation_id": correlation_id,
            "started_at": started_at.isoformat(),
            "finished_at": finished_at.isoformat(),
            "summary": summary,
            "error": error,
        }

    async def _bounded(self, budget: RunBudget, label: str, summary: Dict[str, Any], func, *args, **kwargs):
        """
        Run one item inside the budget. Timeouts and errors are recorded in
        summary["errors"] and return None; RunDeadlineExceeded propagates.
        """
        try:
            return await budget.run_item(func, *args, **kwargs)
        except RunDeadlineExceeded:
            raise
        except asyncio.TimeoutError:
            await self.db.rollback()
            logger.error(f"⏱️ {label} timed out")
            summary["errors"].append({"item": label, "error": "timeout"})
        except Exception as e:
            await self.db.rollback()
            logger.error(f"❌ {label} failed: {e}")
            summary["errors"].append({"item": label, "error": str(e)})
        return None

    async def _release(self, release: Callable[[List[int]], Awaitable[int]], item_ids: List[int], summary: Dict[str, Any]) -> None:
        """
        Return claimed items that this run never resolved.
        A failing release is logged and recorded, never raised.
        """
        try:
            await self.db.rollback()
            released = await release(item_ids)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Could not release claimed items {item_ids}: {e}")
            summary["errors"].append({"item": "release_claimed", "error": str(e)})
            return
        logger.warning(f"↩️ Released {released} unfinished claimed items back to pending")
        summary["released_items"] = summary.get("released_items", 0) + released

    # ============================================
    # DAILY DISCOVERY
    # ============================================

    async def run_daily_discovery(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Cleanup -> fetch fixtures -> score -> persist -> schedule."""
        return await self._run(RunType.DAILY_DISCOVERY, self._daily_discovery, now)

    async def _daily_discovery(self, summary: Dict[str, Any], budget: RunBudget, now: datetime) -> None:
        today = now.date()

        cleanup = await self.match_repo.delete_matches_before(today)
        await self.db.commit()
        summary["cleanup"] = cleanup

        days = [today + timedelta(days=offset) for offset in range(DISCOVERY_MAX_FUTURE_DAYS + 1)]
        responses = await asyncio.gather(*(self.fixtures.get_fixtures(day) for day in days))

        raw_matches = []
        for day, response in zip(days, responses):
            if response.get("success"):
                raw_matches.extend({**m, "api_source": response.get("api_source")} for m in response["matches"])
            else:
                summary["errors"].append({"item": f"fixtures:{day.isoformat()}", "error": response.get("error")})
        summary["fetched"] = len(raw_matches)

        context = ScoringContext(now=now, min_score=MIN_IMPORTANCE_SCORE, max_future_days=DISCOVERY_MAX_FUTURE_DAYS)
        important = match_scorer.find_important_matches(raw_matches, context)
        summary["scoring"] = match_scorer.scoring_stats(important)
        summary["important_matches"] = len(important)

        stored = []
        for scored in important:
            stored.append(await self.match_repo.upsert_match({
                "external_match_id": scored["external_match_id"],
                "home_team": scored["home_team"],
                "away_team": scored["away_team"],
                "home_team_id": scored.get("home_team_id"),
                "away_team_id": scored.get("away_team_id"),
                "competition": scored.get("competition") or "",
                "kickoff_time": scored["kickoff_time"],
                "venue": scored.get("venue"),
                "match_status": scored.get("status") or "scheduled",
                "discovery_date": today,
                "importance_score": scored["importance_score"],
                "score_breakdown": scored["score_breakdown"],
                "content_opportunities": scored["content_opportunities"],
                "api_source": scored.get("api_source"),
                "raw_match_data": to_jsonable(scored.get("raw")),
            }))
        await self.db.commit()

        language_channels = group_channels_by_language(await self.channel_repo.get_active_channels())
        scheduled_matches = []
        for match in stored:
            result = await self._bounded(
                budget, f"match:{match['id']}", summary,
                self._schedule_match, match["id"], now, language_channels
            )
            if result:
                scheduled_matches.append(result)
        summary["schedules"] = scheduled_matches
        summary["scheduled_items"] = sum(m.get("scheduled_count", 0) for m in scheduled_matches)

    async def _schedule_match(self, match_id: int, now: datetime, language_channels) -> Dict[str, Any]:
        try:
            result = await self.scheduler.schedule_content_for_match(match_id, now, language_channels)
        except ScheduleConflictError as e:
            return {"match_id": match_id, "status": ActionStatus.SKIPPED.value,
                    "reason": "already_scheduled", "pending": e.pending_count}
        return {
            "match_id": match_id,
            "status": ActionStatus.TRIGGERED.value,
            "template": result["template"],
            "scheduled_count": result["scheduled_count"],
        }

    # ============================================
    # RULE-DRIVEN RUNS
    # ============================================

    async def _process_rule(
        self,
        rule: Dict[str, Any],
        now: datetime,
        channels: List[Dict[str, Any]],
        kickoffs: List[datetime]
    ) -> Dict[str, Any]:
        outcome = {"rule_id": rule["id"], "rule_name": rule["name"], "content_type": rule["content_type"]}

        decision = evaluate_rule(rule, now, self.config, kickoffs)
        if not decision.fire:
            return {**outcome, "status": ActionStatus.SKIPPED.value, "reason": decision.reason}

        since = now - timedelta(minutes=duplicate_guard_minutes(rule, self.config))
        if await self.rule_repo.has_recent_rule_run(rule["id"], since):
            return {**outcome, "status": ActionStatus.SKIPPED.value, "reason": "recently_executed"}

        targets = resolve_target_channels(rule, channels)
        if not targets:
            return {**outcome, "status": ActionStatus.SKIPPED.value, "reason": "no_matching_channels"}

        started_at = datetime.now(now.tzinfo)
        result = await self.distributor.distribute(
            rule["content_type"], targets,
            context={"rule_id": rule["id"], "rule_name": rule["name"]},
            now=now
        )

        if result["sent"]:
            status = ActionStatus.TRIGGERED.value
            run_status = RunStatus.PARTIAL if result["failed"] else RunStatus.COMPLETED
        else:
            status = ActionStatus.FAILED.value if result["failed"] else ActionStatus.SKIPPED.value
            run_status = RunStatus.FAILED

        counts = {k: result[k] for k in ("sent", "failed", "skipped", "halted", "coupon_triggers")}
        await self.rule_repo.record_run(
            run_type=RunType.RULE_EXECUTION.value,
            status=run_status.value,
            summary=to_jsonable({**counts, "reason": decision.reason, "languages": result["languages"]}),
            started_at=started_at,
            finished_at=datetime.now(now.tzinfo),
            rule_id=rule["id"],
            content_type=rule["content_type"],
            error_message=result.get("error"),
        )
        await self.db.commit()

        return {
            **outcome,
            "status": status,
            "reason": decision.reason,
            "languages": result["languages"],
            "error": result.get("error"),
            **counts,
        }

    async def _run_rules(
        self,
        summary: Dict[str, Any],
        budget: RunBudget,
        now: datetime,
        content_types: Optional[List[str]] = None
    ) -> None:
        rules = await self.rule_repo.get_enabled_rules(content_types)
        channels = await self.channel_repo.get_active_channels()
        kickoffs = [
            k.astimezone(now.tzinfo)
            for k in await self.match_repo.get_kickoffs_between(now - timedelta(days=1), now + timedelta(days=1))
        ]

        results = []
        for rule in rules:
            result = await self._bounded(
                budget, f"rule:{rule['id']}", summary,
                self._process_rule, rule, now, channels, kickoffs
            )
            if result is not None:
                results.append(result)
                if result.get("halted") and LimitStatus.halts_all_types(result["halted"]):
                    logger.warning(f"🛑 Sends halted ({result['halted']}), skipping remaining rules")
                    break

        summary["rules_evaluated"] = len(results)
        summary["rules_triggered"] = sum(1 for r in results if r["status"] == ActionStatus.TRIGGERED.value)
        summary["messages_sent"] = sum(r.get("sent", 0) for r in results)
        summary["results"] = results

    async def run_hourly(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Evaluate every enabled rule, then execute due scheduled content."""
        return await self._run(RunType.HOURLY, self._hourly, now)

    async def _hourly(self, summary: Dict[str, Any], budget: RunBudget, now: datetime) -> None:
        await self._run_rules(summary, budget, now)
        await self._execute_due_items(summary, budget, now)

    async def _execute_due_items(self, summary: Dict[str, Any], budget: RunBudget, now: datetime) -> None:
        budget.check()
        items = await self.scheduler.claim_due_items(now, MAX_DUE_SCHEDULE_ITEMS)
        executed = []
        try:
            for item in items:
                result = await self._bounded(
                    budget, f"schedule_item:{item['id']}", summary,
                    self.scheduler.execute_item, item, self.distributor, now
                )
                if result is None:
                    await self.schedule_repo.mark_item_result(
                        item["id"], ScheduleStatus.FAILED.value, error_message="execution_error"
                    )
                    await self.db.commit()
                    result = {"item_id": item["id"], "status": ScheduleStatus.FAILED.value}
                executed.append(result)
        finally:
            # Items claimed but never reached go back to pending for the next run
            unresolved = [item["id"] for item in items[len(executed):]]
            if unresolved:
                await self._release(self.schedule_repo.release_claimed_items, unresolved, summary)

            summary["scheduled_items_due"] = len(items)
            summary["scheduled_items_sent"] = sum(1 for r in executed if r["status"] == ScheduleStatus.SENT.value)
            summary["scheduled_items"] = executed

    async def run_urgent(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Live/betting/analysis rules only; betting fallback when nothing went out."""
        return await self._run(RunType.URGENT, self._urgent, now)

    async def _urgent(self, summary: Dict[str, Any], budget: RunBudget, now: datetime) -> None:
        await self._run_rules(summary, budget, now, [t.value for t in URGENT_CONTENT_TYPES])
        if summary["messages_sent"]:
            return

        channels = await self.channel_repo.get_active_channels()
        if not channels:
            summary["fallback"] = {"status": ActionStatus.SKIPPED.value, "reason": "no_active_channels"}
            return

        result = await self._bounded(
            budget, "urgent_fallback", summary,
            self.distributor.distribute, ContentType.BETTING.value, channels,
            context={"urgent_fallback": True}, now=now
        )
        if result:
            summary["fallback"] = {k: result[k] for k in ("content_type", "sent", "failed", "skipped", "halted", "languages")}
            summary["messages_sent"] += result["sent"]

    # ============================================
    # COUPONS AND PUSH
    # ============================================

    async def run_coupons_only(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Coupons to every active channel, one channel at a time."""
        return await self._run(RunType.COUPONS_ONLY, self._coupons_only, now)

    async def _coupons_only(self, summary: Dict[str, Any], budget: RunBudget, now: datetime) -> None:
        channels = await self.channel_repo.get_active_channels()
        per_channel = []
        stop_reason = None

        for channel in channels:
            if stop_reason:
                per_channel.append({"channel_id": channel["id"], "status": ActionStatus.SKIPPED.value, "reason": stop_reason})
                continue

            result = await self._bounded(
                budget, f"coupons:{channel['id']}", summary,
                self.distributor.distribute, ContentType.COUPONS.value, [channel],
                origin=ContentType.COUPONS.value, now=now
            )
            if result is None:
                per_channel.append({"channel_id": channel["id"], "status": ActionStatus.ERROR.value})
                continue

            channel_result = result["results"][0] if result["results"] else {}
            per_channel.append({
                "channel_id": channel["id"],
                "channel": channel["name"],
                "status": channel_result.get("status", ActionStatus.SKIPPED.value),
                "error": channel_result.get("error"),
            })
            if result["halted"]:
                stop_reason = result["halted"]
            elif channel_result.get("error") == LimitStatus.DAILY_LIMIT_REACHED.value:
                stop_reason = LimitStatus.DAILY_LIMIT_REACHED.value

        summary["channels"] = per_channel
        summary["messages_sent"] = sum(1 for c in per_channel if c["status"] == ActionStatus.TRIGGERED.value)

    async def run_push_delivery(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Deliver coupons for due push queue items."""
        return await self._run(RunType.PUSH_DELIVERY, self._push_delivery, now)

    async def _deliver_push_item(self, item: Dict[str, Any], now: datetime) -> Dict[str, Any]:
        channels = [c for c in await self.channel_repo.get_channels_by_ids(item["channel_ids"]) if c["is_active"]]
        if not channels:
            await self.queue_repo.mark_result(item["id"], PushStatus.FAILED.value, 0, 0, "no_active_channels")
            await self.db.commit()
            return {"item_id": item["id"], "status": PushStatus.FAILED.value, "error": "no_active_channels"}

        origin = (item.get("context_data") or {}).get("origin") or item["primary_content_type"]
        result = await self.distributor.distribute(
            ContentType.COUPONS.value, channels, origin=origin,
            context={"push_item_id": item["id"], "trigger": item["primary_content_type"]},
            now=now
        )
        status = PushStatus.COMPLETED if result["sent"] else PushStatus.FAILED
        await self.queue_repo.mark_result(
            item["id"], status.value, result["sent"], result["failed"],
            None if result["sent"] else result.get("error")
        )
        await self.db.commit()
        return {"item_id": item["id"], "status": status.value, "sent": result["sent"], "halted": result["halted"]}

    async def _push_delivery(self, summary: Dict[str, Any], budget: RunBudget, now: datetime) -> None:
        items = await self.queue_repo.claim_due(now, MAX_DUE_PUSH_ITEMS)
        await self.db.commit()

        delivered = []
        try:
            for item in items:
                result = await self._bounded(budget, f"push_item:{item['id']}", summary, self._deliver_push_item, item, now)
                if result is None:
                    await self.queue_repo.mark_result(item["id"], PushStatus.FAILED.value, 0, 0, "execution_error")
                    await self.db.commit()
                    result = {"item_id": item["id"], "status": PushStatus.FAILED.value}
                delivered.append(result)
        finally:
            unresolved = [item["id"] for item in items[len(delivered):]]
            if unresolved:
                await self._release(self.queue_repo.release_claimed, unresolved, summary)

            summary["due_items"] = len(items)
            summary["completed"] = sum(1 for d in delivered if d["status"] == PushStatus.COMPLETED.value)
            summary["items"] = delivered

    async def run_random_push_schedule(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Generate today's random coupon slots."""
        return await self._run(RunType.RANDOM_PUSH_SCHEDULE, self._random_push_schedule, now)

    async def _random_push_schedule(self, summary: Dict[str, Any], budget: RunBudget, now: datetime) -> None:
        result = await RandomPushScheduler(self.db, rng=self.rng).generate_daily_schedule(now)
        if not result["success"]:
            summary["errors"].append({"item": "random_push_schedule", "error": result["error"]})
        summary.update({k: v for k, v in result.items() if k not in ("success", "error")})

    # ============================================
    # MAINTENANCE
    # ============================================

    async def run_maintenance(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Purge run logs past retention."""
        return await self._run(RunType.MAINTENANCE, self._maintenance, now)

    async def _maintenance(self, summary: Dict[str, Any], budget: RunBudget, now: datetime) -> None:
        deleted = await self.rule_repo.delete_runs_before(now - timedelta(days=RUN_LOG_RETENTION_DAYS))
        await self.db.commit()
        summary["runs_deleted"] = deleted
        summary["retention_days"] = RUN_LOG_RETENTION_DAYS
