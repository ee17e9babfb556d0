"""
Clock helpers.

Rule windows, daily counters and push slots all follow the deployment's wall
clock (settings.TIMEZONE). Timestamps are stored timezone-aware, so values
from here compare directly with database columns.
"""
from datetime import datetime
from zoneinfo import ZoneInfo

from app.shared.core.config import settings


def local_tz() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def local_now() -> datetime:
    """Current time in the deployment timezone."""
    return datetime.now(local_tz())
