"""Date manipulation utilities"""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Current instant as naive UTC, the representation stored everywhere"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def whole_days_between(start: datetime, end: datetime) -> int:
    """Number of complete days from start to end (negative if end precedes start)"""
    return (end - start) // timedelta(days=1)
