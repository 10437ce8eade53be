"""
Time helpers shared by domain services.

All datetimes handled by the domain are timezone-aware UTC.
"""
from datetime import datetime, timedelta, timezone

DAY = timedelta(days=1)


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def days_between(start: datetime, end: datetime) -> int:
    """
    Whole days from start to end, truncated toward zero.

    Args:
        start: Earlier datetime
        end: Later datetime

    Returns:
        Number of whole days (negative when end precedes start)
    """
    seconds = (end - start).total_seconds()
    return int(seconds / DAY.total_seconds())


def exact_days(start: datetime, end: datetime) -> float:
    """Fractional days from start to end."""
    return (end - start).total_seconds() / DAY.total_seconds()
