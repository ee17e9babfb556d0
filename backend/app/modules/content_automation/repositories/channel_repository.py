"""
Channel Repository
Database operations for telegram_channels and smart_push_settings.
"""
from typing import List, Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.content_automation.models.channel import TelegramChannel, PushSettings


class ChannelRepository:
    """Repository for delivery channels."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get_active_channels(self) -> List[Dict]:
        query = (
            select(TelegramChannel)
            .where(TelegramChannel.is_active.is_(True))
            .order_by(TelegramChannel.language, TelegramChannel.id)
        )
        result = await self.db.execute(query)
        return [self._channel_to_dict(c) for c in result.scalars().all()]

    async def get_channels_by_ids(self, channel_ids: List[int]) -> List[Dict]:
        if not channel_ids:
            return []
        query = select(TelegramChannel).where(TelegramChannel.id.in_(channel_ids))
        result = await self.db.execute(query)
        return [self._channel_to_dict(c) for c in result.scalars().all()]

    async def get_push_enabled_channels(self) -> List[Dict]:
        """Active channels with secondary push enabled, with their push settings merged in."""
        query = (
            select(TelegramChannel, PushSettings)
            .join(PushSettings, PushSettings.channel_id == TelegramChannel.id)
            .where(TelegramChannel.is_active.is_(True))
            .where(PushSettings.is_enabled.is_(True))
            .order_by(TelegramChannel.id)
        )
        result = await self.db.execute(query)
        channels = []
        for channel, push in result.all():
            data = self._channel_to_dict(channel)
            data["push_settings"] = {
                "max_coupons_per_day": push.max_coupons_per_day,
                "min_gap_hours": push.min_gap_hours,
                "blackout_hours": push.blackout_hours,
                "min_delay_minutes": push.min_delay_minutes,
                "max_delay_minutes": push.max_delay_minutes,
            }
            channels.append(data)
        return channels

    def _channel_to_dict(self, channel: TelegramChannel) -> Dict:
        return {
            "id": channel.id,
            "name": channel.name,
            "telegram_chat_id": channel.telegram_chat_id,
            "language": channel.language,
            "is_active": channel.is_active,
        }
