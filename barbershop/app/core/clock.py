"""
Time helpers.

All timestamps are stored in UTC; the business timezone is only used to
lay out a day's opening hours.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from barbershop.app.core.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def business_tz() -> ZoneInfo:
    return ZoneInfo(settings.business_timezone)


def ensure_utc(value: datetime) -> datetime:
    """
    Return an aware UTC datetime.

    Naive values are taken to already be UTC (SQLite drops the offset
    of stored timestamps).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
