# campusvote/date_utils.py
# Time helpers shared by models, services and the feed display.
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC (that is how MongoDB hands them back)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def time_left(target: datetime, now: Optional[datetime] = None) -> str:
    """Compact countdown such as '2d 3h', '4h 5m', '12m' or 'Ended'."""
    now = ensure_utc(now or utcnow())
    remaining = (ensure_utc(target) - now).total_seconds()
    if remaining <= 0:
        return "Ended"

    minutes_total = int(remaining // 60)
    days, rest = divmod(minutes_total, 60 * 24)
    hours, minutes = divmod(rest, 60)

    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def relative_time(timestamp: datetime, now: Optional[datetime] = None) -> str:
    """Human label for a feed entry: 'just now', '5 minutes ago', '2 days ago'."""
    now = ensure_utc(now or utcnow())
    minutes = int((now - ensure_utc(timestamp)).total_seconds() // 60)

    if minutes < 1:
        return "just now"
    if minutes < 60:
        return _plural(minutes, "minute")
    if minutes < 60 * 24:
        return _plural(minutes // 60, "hour")
    return _plural(minutes // (60 * 24), "day")
