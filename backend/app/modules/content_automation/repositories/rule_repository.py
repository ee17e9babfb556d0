"""
Rule Repository
Read access to automation_rules plus the automation_runs log.
"""
from datetime import datetime
from typing import Optional, List, Dict, Any

from sqlalchemy import select, delete, and_, insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.content_automation.models.automation_rule import AutomationRule, AutomationRun
from app.modules.content_automation.constants import RunType, RunStatus


class RuleRepository:
    """Repository for automation rules and run logs."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    # ============================================
    # RULES
    # ============================================

    async def get_enabled_rules(self, content_types: Optional[List[str]] = None) -> List[Dict]:
        """Enabled rules, lowest priority number first."""
        query = select(AutomationRule).where(AutomationRule.enabled.is_(True))
        if content_types:
            query = query.where(AutomationRule.content_type.in_([getattr(t, "value", t) for t in content_types]))
        query = query.order_by(AutomationRule.priority, AutomationRule.id)

        result = await self.db.execute(query)
        return [self._rule_to_dict(rule) for rule in result.scalars().all()]

    # ============================================
    # RUN LOG
    # ============================================

    async def record_run(
        self,
        run_type: str,
        status: str,
        summary: Dict[str, Any],
        started_at: datetime,
        finished_at: datetime,
        correlation_id: Optional[str] = None,
        rule_id: Optional[int] = None,
        content_type: Optional[str] = None,
        error_message: Optional[str] = None
    ) -> None:
        await self.db.execute(
            insert(AutomationRun),
            [{
                "run_type": run_type,
                "status": status,
                "summary": summary,
                "started_at": started_at,
                "finished_at": finished_at,
                "correlation_id": correlation_id,
                "rule_id": rule_id,
                "content_type": content_type,
                "error_message": error_message,
            }]
        )
        await self.db.flush()

    async def has_recent_rule_run(self, rule_id: int, since: datetime) -> bool:
        """True when the rule fired successfully at or after `since`."""
        query = (
            select(AutomationRun.id)
            .where(
                and_(
                    AutomationRun.run_type == RunType.RULE_EXECUTION.value,
                    AutomationRun.rule_id == rule_id,
                    AutomationRun.status != RunStatus.FAILED.value,
                    AutomationRun.started_at >= since
                )
            )
            .limit(1)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none() is not None

    async def get_recent_runs(self, limit: int = 20) -> List[Dict]:
        query = select(AutomationRun).order_by(AutomationRun.started_at.desc()).limit(limit)
        result = await self.db.execute(query)
        return [
            {
                "id": run.id,
                "run_type": run.run_type,
                "status": run.status,
                "rule_id": run.rule_id,
                "content_type": run.content_type,
                "summary": run.summary,
                "error_message": run.error_message,
                "started_at": run.started_at,
                "finished_at": run.finished_at,
            }
            for run in result.scalars().all()
        ]

    async def delete_runs_before(self, cutoff: datetime) -> int:
        result = await self.db.execute(delete(AutomationRun).where(AutomationRun.started_at < cutoff))
        await self.db.flush()
        return result.rowcount or 0

    # ============================================
    # HELPER METHODS
    # ============================================

    def _rule_to_dict(self, rule: AutomationRule) -> Dict:
        return {
            "id": rule.id,
            "name": rule.name,
            "content_type": rule.content_type,
            "automation_type": rule.automation_type,
            "enabled": rule.enabled,
            "priority": rule.priority,
            "languages": rule.languages or ["all"],
            "schedule": rule.schedule or {},
            "conditions": rule.conditions or {},
        }
