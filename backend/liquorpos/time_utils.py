# Overview: UTC-naive timestamps, calendar-day bounds and ISO serialisation helpers.

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value) -> Optional[date]:
    """Accept a date, a datetime or a "YYYY-MM-DD" string (expiry dates, report days)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    return date.fromisoformat(s[:10])


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """[start, end) of a calendar day as UTC-naive datetimes."""
    start = datetime(day.year, day.month, day.day)
    return start, start + timedelta(days=1)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def to_iso_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None
