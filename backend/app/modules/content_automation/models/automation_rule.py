"""
Automation Rule ORM Models

- automation_rules: configured rules (read-only to the engine)
- automation_runs: one row per trigger invocation or rule firing, used for
  observability and for duplicate-fire prevention
"""
from sqlalchemy import Column, BigInteger, Text, Integer, Boolean, DateTime, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from app.shared.db.base import Base, TimestampMixin


class AutomationRule(Base, TimestampMixin):
    """
    ORM Model for the automation_rules table.

    schedule:   {"times": ["09:00", "18:30"], "days": ["sat", "sun"]}
    languages:  ["en", "am"] or ["all"]
    conditions: {"weekend_only": true, "match_day_only": true,
                 "minutes_before_match": 90, "minutes_after_match": 30}
    """
    __tablename__ = "automation_rules"

    id = Column(BigInteger, primary_key=True)
    name = Column(Text, nullable=False)
    content_type = Column(Text, nullable=False)
    automation_type = Column(Text, nullable=False)  # scheduled, event_driven, context_aware
    enabled = Column(Boolean, nullable=False, default=True)
    priority = Column(Integer, nullable=False, default=5)  # lower fires first
    languages = Column(JSONB, nullable=False, default=lambda: ["all"])
    schedule = Column(JSONB, nullable=False, default=dict)
    conditions = Column(JSONB, nullable=False, default=dict)

    __table_args__ = (
        Index('idx_automation_rules_enabled', 'enabled', 'priority'),
    )

    def __repr__(self):
        return f"<AutomationRule(id={self.id}, name='{self.name}', type='{self.automation_type}')>"


class AutomationRun(Base):
    """
    ORM Model for automation_runs.

    Stores counts, never full content payloads.
    """
    __tablename__ = "automation_runs"

    id = Column(BigInteger, primary_key=True)

    # ============================================
    # RUN IDENTITY
    # ============================================
    run_type = Column(Text, nullable=False)          # RunType value
    correlation_id = Column(Text, nullable=True)
    rule_id = Column(BigInteger, nullable=True)      # Set for rule_execution rows
    content_type = Column(Text, nullable=True)

    # ============================================
    # OUTCOME
    # ============================================
    status = Column(Text, nullable=False)            # completed, partial, failed
    summary = Column(JSONB, nullable=False, default=dict)
    error_message = Column(Text, nullable=True)

    # ============================================
    # TIMESTAMPS
    # ============================================
    started_at = Column(DateTime(timezone=True), server_default=func.now())
    finished_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('idx_automation_runs_started', 'started_at'),
        Index('idx_automation_runs_rule', 'rule_id', 'started_at'),
    )

    def __repr__(self):
        return f"<AutomationRun(id={self.id}, type='{self.run_type}', status='{self.status}')>"
