"""
Match Repository
Database operations for daily_important_matches and content_timing_templates.
"""
from datetime import date, datetime
from typing import Optional, List, Dict, Any

from sqlalchemy import select, update, delete, and_, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.content_automation.models.match import DailyMatch, ScheduledContentItem, TimingTemplate


class MatchRepository:
    """Repository for discovered matches and timing templates."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    # ============================================
    # MATCH OPERATIONS
    # ============================================

    async def upsert_match(self, data: Dict[str, Any]) -> Dict:
        """
        Insert a discovered match, or refresh its score if discovery runs twice
        on the same day.

        Unique key: (external_match_id, discovery_date).
        """
        stmt = pg_insert(DailyMatch).values(**data)
        stmt = stmt.on_conflict_do_update(
            constraint="uq_daily_matches_external_date",
            set_={
                "kickoff_time": stmt.excluded.kickoff_time,
                "importance_score": stmt.excluded.importance_score,
                "score_breakdown": stmt.excluded.score_breakdown,
                "content_opportunities": stmt.excluded.content_opportunities,
                "match_status": stmt.excluded.match_status,
            }
        ).returning(DailyMatch)

        result = await self.db.execute(stmt)
        match = result.scalar_one()
        await self.db.flush()
        return self._match_to_dict(match)

    async def get_by_id(self, match_id: int) -> Optional[Dict]:
        result = await self.db.execute(select(DailyMatch).where(DailyMatch.id == match_id))
        match = result.scalar_one_or_none()
        return self._match_to_dict(match) if match else None

    async def update_kickoff(self, match_id: int, kickoff: datetime) -> int:
        stmt = (
            update(DailyMatch)
            .where(DailyMatch.id == match_id)
            .values(kickoff_time=kickoff, updated_at=func.now())
        )
        result = await self.db.execute(stmt)
        await self.db.flush()
        return result.rowcount or 0

    async def get_matches_for_date(self, discovery_date: date) -> List[Dict]:
        """Matches discovered for a day, most important first."""
        query = (
            select(DailyMatch)
            .where(DailyMatch.discovery_date == discovery_date)
            .order_by(DailyMatch.importance_score.desc(), DailyMatch.kickoff_time)
        )
        result = await self.db.execute(query)
        return [self._match_to_dict(m) for m in result.scalars().all()]

    async def get_kickoffs_between(self, start: datetime, end: datetime) -> List[datetime]:
        """Kickoff times inside [start, end), used by rule conditions."""
        query = select(DailyMatch.kickoff_time).where(
            and_(DailyMatch.kickoff_time >= start, DailyMatch.kickoff_time < end)
        )
        result = await self.db.execute(query)
        return [row[0] for row in result.all()]

    async def delete_matches_before(self, discovery_date: date) -> Dict[str, int]:
        """
        Delete matches discovered before `discovery_date` together with their
        schedule rows. Schedule rows go first so the pass also works on
        databases created without ON DELETE CASCADE.
        """
        stale_ids = select(DailyMatch.id).where(DailyMatch.discovery_date < discovery_date)

        schedule_result = await self.db.execute(
            delete(ScheduledContentItem).where(ScheduledContentItem.match_id.in_(stale_ids))
        )
        match_result = await self.db.execute(
            delete(DailyMatch).where(DailyMatch.discovery_date < discovery_date)
        )
        await self.db.flush()
        return {
            "schedules_deleted": schedule_result.rowcount or 0,
            "matches_deleted": match_result.rowcount or 0,
        }

    # ============================================
    # TIMING TEMPLATES
    # ============================================

    async def get_active_templates(self) -> List[Dict]:
        query = (
            select(TimingTemplate)
            .where(TimingTemplate.is_active.is_(True))
            .order_by(TimingTemplate.min_importance_score.desc())
        )
        result = await self.db.execute(query)
        return [self._template_to_dict(t) for t in result.scalars().all()]

    async def upsert_template(self, data: Dict[str, Any]) -> None:
        """Insert or replace a template by name (used by the seed script)."""
        stmt = pg_insert(TimingTemplate).values(**data)
        stmt = stmt.on_conflict_do_update(
            index_elements=[TimingTemplate.name],
            set_={
                "description": stmt.excluded.description,
                "min_importance_score": stmt.excluded.min_importance_score,
                "max_importance_score": stmt.excluded.max_importance_score,
                "content_schedule": stmt.excluded.content_schedule,
                "is_active": True,
            }
        )
        await self.db.execute(stmt)

    # ============================================
    # HELPER METHODS
    # ============================================

    def _match_to_dict(self, match: DailyMatch) -> Dict:
        return {
            "id": match.id,
            "external_match_id": match.external_match_id,
            "home_team": match.home_team,
            "away_team": match.away_team,
            "home_team_id": match.home_team_id,
            "away_team_id": match.away_team_id,
            "competition": match.competition,
            "kickoff_time": match.kickoff_time,
            "venue": match.venue,
            "match_status": match.match_status,
            "importance_score": match.importance_score,
            "score_breakdown": match.score_breakdown or {},
            "content_opportunities": match.content_opportunities or {},
            "discovery_date": match.discovery_date,
            "api_source": match.api_source,
        }

    def _template_to_dict(self, template: TimingTemplate) -> Dict:
        return {
            "id": template.id,
            "name": template.name,
            "description": template.description,
            "min_importance_score": template.min_importance_score,
            "max_importance_score": template.max_importance_score,
            "content_schedule": template.content_schedule or [],
            "is_active": template.is_active,
        }
