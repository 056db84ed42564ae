"""
Datetime helpers.

Every timestamp persisted by the service is timezone-aware UTC so records
written by the API and by the workers compare and serialize the same way.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow_aware() -> datetime:
    """
    Current datetime in UTC, timezone-aware.

    Example:
        >>> from common.datetime_utils import utcnow_aware
        >>> utcnow_aware().tzinfo
        datetime.timezone.utc
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Naive datetimes are assumed to already be UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def epoch_millis(dt: Optional[datetime] = None) -> int:
    """Milliseconds since the epoch for ``dt`` (now when omitted)"""
    if dt is None:
        dt = utcnow_aware()
    return int(to_utc(dt).timestamp() * 1000)


__all__ = [
    'utcnow_aware',
    'to_utc',
    'epoch_millis',
]
