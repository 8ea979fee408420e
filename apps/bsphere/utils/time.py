"""UTC time helpers (timezone-aware calculation, naive storage)."""
from __future__ import annotations

from datetime import datetime, timezone, date


def utc_now() -> datetime:
    """Return a UTC timestamp without tzinfo for DB columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_today() -> date:
    """Return today's date in UTC (naive)."""
    return utc_now().date()


def to_naive_utc(dt):
    """Convert a timezone-aware datetime to naive UTC for safe comparisons."""
    if not dt:
        return dt
    if dt.tzinfo:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_datetime(value):
    """Parse an ISO-8601 string (``Z`` suffix allowed) into naive UTC, or None."""
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return to_naive_utc(datetime.fromisoformat(text))


def age_on(birthdate: date, today: date | None = None) -> int:
    today = today or utc_today()
    years = today.year - birthdate.year
    if (today.month, today.day) < (birthdate.month, birthdate.day):
        years -= 1
    return years


def ordinal_day(day: int) -> str:
    """1 -> '1st', 12 -> '12th', 23 -> '23rd'."""
    if 11 <= day % 100 <= 13:
        return f"{day}th"
    suffix = {1: 'st', 2: 'nd', 3: 'rd'}.get(day % 10, 'th')
    return f"{day}{suffix}"
