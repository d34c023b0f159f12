# Overview: UTC clock and the datetime parsing used by invoice date filters.

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Invoice clock: UTC, stored naive."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_utc_naive(dt: datetime) -> datetime:
    # Naive input is already UTC
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _bare_date(s: str) -> Optional[date]:
    if len(s) != 10:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an invoice date filter bound to a UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DD" -> midnight UTC of that day
    - trailing "Z" or an offset is converted to UTC
    Raises ValueError for anything else.
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    day = _bare_date(s)
    if day is not None:
        return datetime.combine(day, time.min)

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return _as_utc_naive(datetime.fromisoformat(s))


def parse_range_end(value: Optional[str]) -> Optional[datetime]:
    """
    Inclusive upper bound for invoice date filters.

    A bare "YYYY-MM-DD" covers the whole day: the result is the last
    microsecond before the next midnight, so `invoice_date <= end` keeps
    every invoice of that day. Full timestamps are used as given.
    """
    if value is None or not value.strip():
        return None
    day = _bare_date(value.strip())
    if day is not None:
        return datetime.combine(day + timedelta(days=1), time.min) - timedelta(microseconds=1)
    return parse_iso_datetime(value)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize for JSON as ISO-8601 seconds with a trailing 'Z'."""
    if dt is None:
        return None
    return _as_utc_naive(dt).replace(microsecond=0).isoformat() + "Z"
