from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def days_until(moment: datetime, now: datetime) -> int:
    """Whole days from now until moment, never negative"""
    if moment <= now:
        return 0
    return (moment - now).days
