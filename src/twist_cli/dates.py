from __future__ import annotations

from datetime import datetime, timedelta, timezone

MINUTE = timedelta(minutes=1)
HOUR = timedelta(hours=1)
DAY = timedelta(days=1)


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def format_relative_date(value: datetime | None, *, now: datetime | None = None) -> str:
    if value is None:
        return ""
    now = now or datetime.now(timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    diff = now - value

    if diff < timedelta(0):
        return format_absolute_date(value, now=now)
    if diff < MINUTE:
        return "just now"
    if diff < HOUR:
        return _plural(diff // MINUTE, "minute")
    if diff < DAY:
        return _plural(diff // HOUR, "hour")
    if diff < 2 * DAY:
        return "yesterday"
    if diff < 7 * DAY:
        return f"{diff // DAY} days ago"
    return format_absolute_date(value, now=now)


def format_absolute_date(value: datetime, *, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    label = f"{value:%b} {value.day}"
    if value.year == now.year:
        return label
    return f"{label}, {value.year}"


def parse_date(value: str) -> datetime | None:
    """Parse an ISO date or datetime; naive values are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
