"""
Spam Counter ORM Model

One row per (calendar day, content type) plus one aggregate row per day whose
content_type is "*" and whose max_count is the emergency brake.
Rows are only ever incremented, and a new day simply uses new keys.
"""
from sqlalchemy import Column, BigInteger, Text, Integer, Date, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from app.shared.db.base import Base


class SpamCounter(Base):
    """ORM Model for the spam_counters table."""
    __tablename__ = "spam_counters"

    id = Column(BigInteger, primary_key=True)
    counter_date = Column(Date, nullable=False)
    content_type = Column(Text, nullable=False)
    count = Column(Integer, nullable=False, default=0)
    max_count = Column(Integer, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('counter_date', 'content_type', name='uq_spam_counters_date_type'),
    )

    def __repr__(self):
        return f"<SpamCounter({self.counter_date} {self.content_type}: {self.count}/{self.max_count})>"
