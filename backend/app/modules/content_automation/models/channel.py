"""
Telegram Channel ORM Models

- telegram_channels: delivery targets with their content language
- smart_push_settings: per-channel secondary push (coupon) configuration
"""
from sqlalchemy import Column, BigInteger, Text, Integer, Boolean, DateTime, Index, ForeignKey
from sqlalchemy.dialects.postgresql import JSONB
from app.shared.db.base import Base, TimestampMixin


class TelegramChannel(Base, TimestampMixin):
    """ORM Model for the telegram_channels table."""
    __tablename__ = "telegram_channels"

    id = Column(BigInteger, primary_key=True)
    name = Column(Text, nullable=False)
    telegram_chat_id = Column(Text, nullable=False, unique=True)  # @handle or -100... id
    language = Column(Text, nullable=False, default='en')
    is_active = Column(Boolean, nullable=False, default=True)

    # Pacing: last send and the clock hour sends_in_window counts
    last_sent_at = Column(DateTime(timezone=True), nullable=True)
    send_window_start = Column(DateTime(timezone=True), nullable=True)
    sends_in_window = Column(Integer, nullable=False, default=0, server_default="0")

    __table_args__ = (
        Index('idx_telegram_channels_active_lang', 'is_active', 'language'),
    )

    def __repr__(self):
        return f"<TelegramChannel(id={self.id}, name='{self.name}', lang='{self.language}')>"


class PushSettings(Base, TimestampMixin):
    """
    ORM Model for smart_push_settings.

    blackout_hours: {"start": "23:00", "end": "06:00"} (may wrap past midnight)
    """
    __tablename__ = "smart_push_settings"

    id = Column(BigInteger, primary_key=True)
    channel_id = Column(
        BigInteger,
        ForeignKey('telegram_channels.id', ondelete='CASCADE'),
        nullable=False,
        unique=True
    )
    is_enabled = Column(Boolean, nullable=False, default=True)

    # ============================================
    # TIMING
    # ============================================
    min_delay_minutes = Column(Integer, nullable=False, default=2)
    max_delay_minutes = Column(Integer, nullable=False, default=5)

    # ============================================
    # SPAM LIMITS
    # ============================================
    max_coupons_per_day = Column(Integer, nullable=False, default=3)
    min_gap_hours = Column(Integer, nullable=False, default=2)
    blackout_hours = Column(JSONB, nullable=True)

    def __repr__(self):
        return f"<PushSettings(channel_id={self.channel_id}, enabled={self.is_enabled})>"
