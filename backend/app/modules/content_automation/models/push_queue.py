"""
Push Queue ORM Model
SQLAlchemy model for smart_push_queue.

Filled in bulk by the random push scheduler (once per channel per day) and by
coupon follow-up triggers; drained by the push delivery pass.
"""
from sqlalchemy import Column, BigInteger, Text, Integer, DateTime, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from app.shared.db.base import Base


class PushQueueItem(Base):
    """ORM Model for the smart_push_queue table."""
    __tablename__ = "smart_push_queue"

    id = Column(BigInteger, primary_key=True)

    # ============================================
    # CONTENT REFERENCE
    # ============================================
    primary_content_id = Column(Text, nullable=False)
    primary_content_type = Column(Text, nullable=False)  # random_scheduled, coupon_trigger

    # ============================================
    # TARGETS
    # ============================================
    channel_ids = Column(JSONB, nullable=False, default=list)
    language = Column(Text, nullable=False, default='en')

    # ============================================
    # TIMING
    # ============================================
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    delay_minutes = Column(Integer, nullable=False, default=0)

    # ============================================
    # PROCESSING
    # ============================================
    # Status: pending, processing, completed, failed
    status = Column(Text, nullable=False, default='pending')
    claimed_at = Column(DateTime(timezone=True), nullable=True)  # set when a run takes the item
    processed_at = Column(DateTime(timezone=True), nullable=True)
    success_count = Column(Integer, nullable=False, default=0)
    failure_count = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)

    # Audit / debugging payload
    context_data = Column(JSONB, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index('idx_smart_push_scheduled', 'scheduled_at', 'status'),
        Index('idx_smart_push_status', 'status', 'created_at'),
    )

    def __repr__(self):
        return f"<PushQueueItem(id={self.id}, at={self.scheduled_at}, status='{self.status}')>"
