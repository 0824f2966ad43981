"""
Time helpers. All timestamps are stored as naive UTC datetimes.
"""

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def start_of_day(moment: datetime) -> datetime:
    """Midnight of the day `moment` falls on"""
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def seconds_from_now(seconds: int) -> datetime:
    return utcnow() + timedelta(seconds=seconds)
