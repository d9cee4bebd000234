from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context


DEFAULT_BUSINESS_TIMEZONE = "Asia/Tokyo"


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


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


# =============================================================================
# BUSINESS-TIMEZONE CALENDAR HELPERS
# =============================================================================

def business_tz() -> tzinfo:
    """Timezone used for day and month buckets (from BUSINESS_TIMEZONE)."""
    name = DEFAULT_BUSINESS_TIMEZONE
    if has_app_context():
        name = current_app.config.get("BUSINESS_TIMEZONE", name)
    return ZoneInfo(name)


def to_local(dt: datetime, tz: tzinfo) -> datetime:
    """Convert a stored UTC-naive datetime to an aware datetime in tz."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz)


def to_utc_naive(dt: datetime) -> datetime:
    """Inverse of to_local: aware datetime -> UTC-naive for storage/queries."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def start_of_day(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def end_of_day(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.max, tzinfo=tz)


def shift_months(year: int, month: int, delta: int) -> tuple[int, int]:
    """Move (year, month) by delta calendar months."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def month_bounds(year: int, month: int, tz: tzinfo) -> tuple[datetime, datetime]:
    """
    Inclusive [startOfMonth, endOfMonth] for a calendar month in tz.

    Both ends are aware datetimes; endOfMonth is the last microsecond of the
    last day.
    """
    first = date(year, month, 1)
    next_year, next_month = shift_months(year, month, 1)
    last = date(next_year, next_month, 1) - timedelta(days=1)
    return start_of_day(first, tz), end_of_day(last, tz)


def parse_month(value: Optional[str]) -> Optional[tuple[int, int]]:
    """
    Parse "YYYY-MM" into (year, month).

    - None / "" -> None
    - anything else malformed raises ValueError
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    year_part, sep, month_part = s.partition("-")
    if not sep or not year_part.isdigit() or not month_part.isdigit():
        raise ValueError(f"Invalid month {value!r}; expected YYYY-MM")
    year, month = int(year_part), int(month_part)
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month {value!r}; expected YYYY-MM")
    return year, month
