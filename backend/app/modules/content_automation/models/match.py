"""
Match Scheduling ORM Models
SQLAlchemy models for the daily match discovery and per-match content schedule.

- daily_important_matches: matches discovered each morning with importance scores
- dynamic_content_schedule: timed content items anchored to a match's kickoff
- content_timing_templates: reusable offset schedules per importance bracket
"""
from sqlalchemy import (
    Column, BigInteger, Text, Integer, Date, DateTime, Boolean, Index, ForeignKey, UniqueConstraint
)
from sqlalchemy.dialects.postgresql import JSONB
from app.shared.db.base import Base, TimestampMixin


class DailyMatch(Base, TimestampMixin):
    """
    ORM Model for the daily_important_matches table.

    One row per match per discovery date. Only matches scoring at least the
    eligibility threshold are stored. Rows are deleted (with their schedule)
    by the next day's cleanup pass.
    """
    __tablename__ = "daily_important_matches"

    # Primary Key
    id = Column(BigInteger, primary_key=True)

    # ============================================
    # MATCH IDENTIFICATION
    # ============================================
    external_match_id = Column(Text, nullable=False)
    home_team = Column(Text, nullable=False)
    away_team = Column(Text, nullable=False)
    home_team_id = Column(Text, nullable=True)
    away_team_id = Column(Text, nullable=True)

    # ============================================
    # MATCH DETAILS
    # ============================================
    competition = Column(Text, nullable=False)
    kickoff_time = Column(DateTime(timezone=True), nullable=False)
    venue = Column(Text, nullable=True)
    match_status = Column(Text, nullable=False, default='scheduled')  # scheduled, live, finished, postponed

    # ============================================
    # IMPORTANCE SCORING
    # ============================================
    importance_score = Column(Integer, nullable=False)
    score_breakdown = Column(JSONB, default=dict)        # factor -> points
    content_opportunities = Column(JSONB, default=dict)  # opportunity -> bool

    # ============================================
    # DISCOVERY METADATA
    # ============================================
    discovery_date = Column(Date, nullable=False)
    api_source = Column(Text, nullable=True)
    raw_match_data = Column(JSONB, nullable=True)

    __table_args__ = (
        UniqueConstraint('external_match_id', 'discovery_date', name='uq_daily_matches_external_date'),
        Index('idx_daily_matches_discovery_date', 'discovery_date'),
        Index('idx_daily_matches_kickoff', 'kickoff_time'),
        Index('idx_daily_matches_importance', 'importance_score'),
    )

    def __repr__(self):
        return f"<DailyMatch(id={self.id}, {self.home_team} vs {self.away_team}, score={self.importance_score})>"


class ScheduledContentItem(Base, TimestampMixin):
    """
    ORM Model for the dynamic_content_schedule table.

    One match expands into many items: (opportunity x template offset) x language.
    """
    __tablename__ = "dynamic_content_schedule"

    # Primary Key
    id = Column(BigInteger, primary_key=True)

    # ============================================
    # FOREIGN KEYS
    # ============================================
    match_id = Column(
        BigInteger,
        ForeignKey('daily_important_matches.id', ondelete='CASCADE'),
        nullable=False
    )

    # ============================================
    # CONTENT
    # ============================================
    content_type = Column(Text, nullable=False)     # OpportunityType value
    content_subtype = Column(Text, nullable=True)   # prediction, tactical, ...
    language = Column(Text, nullable=False, default='en')
    target_channels = Column(JSONB, nullable=False, default=list)

    # ============================================
    # SCHEDULING
    # ============================================
    scheduled_for = Column(DateTime(timezone=True), nullable=False)
    priority = Column(Integer, nullable=False, default=5)  # 1-10, higher = more important
    engagement_score = Column(Integer, nullable=True)      # Expected engagement 1-100
    timing_reason = Column(Text, nullable=True)

    # ============================================
    # EXECUTION TRACKING
    # ============================================
    # Status: pending, executing, sent, failed, cancelled
    status = Column(Text, nullable=False, default='pending')
    executed_at = Column(DateTime(timezone=True), nullable=True)
    execution_result = Column(JSONB, nullable=True)
    error_message = Column(Text, nullable=True)

    __table_args__ = (
        Index('idx_content_schedule_match', 'match_id'),
        Index('idx_content_schedule_due', 'status', 'scheduled_for'),
    )

    def __repr__(self):
        return (
            f"<ScheduledContentItem(id={self.id}, match_id={self.match_id}, "
            f"type='{self.content_type}', lang='{self.language}', status='{self.status}')>"
        )


class TimingTemplate(Base, TimestampMixin):
    """
    ORM Model for content_timing_templates.

    content_schedule is a list of timing rules, e.g.
        {"content_type": "betting", "hours_before_kickoff": 3, "priority": 8, "subtype": "standard"}
    """
    __tablename__ = "content_timing_templates"

    id = Column(BigInteger, primary_key=True)
    name = Column(Text, nullable=False, unique=True)
    description = Column(Text, nullable=True)
    min_importance_score = Column(Integer, nullable=False)
    max_importance_score = Column(Integer, nullable=True)
    content_schedule = Column(JSONB, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index('idx_templates_importance', 'min_importance_score', 'max_importance_score'),
    )

    def __repr__(self):
        return f"<TimingTemplate(name='{self.name}', {self.min_importance_score}-{self.max_importance_score})>"
