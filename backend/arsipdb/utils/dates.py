from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalise to timezone-aware UTC.

    SQLite hands back naive datetimes for DateTime(timezone=True) columns;
    they were written as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def month_start(value: datetime) -> datetime:
    return start_of_day(value).replace(day=1)


def add_months(value: datetime, months: int) -> datetime:
    """Shift by whole months, clamping the day (Jan 31 + 1 month -> Feb 28/29)."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, _days_in_month(year, month))
    return value.replace(year=year, month=month, day=day)


def add_years(value: datetime, years: int) -> datetime:
    return add_months(value, 12 * years)


def _days_in_month(year: int, month: int) -> int:
    if month == 12:
        return 31
    return (date(year, month + 1, 1) - date(year, month, 1)).days


def period_start(period: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Start of a reporting window ending now.

    week: last 7 days; month / quarter / year: calendar-aligned;
    all: no lower bound (None).
    """
    now = now or utcnow()
    if period == "week":
        return start_of_day(now) - timedelta(days=6)
    if period == "month":
        return month_start(now)
    if period == "quarter":
        first_month = ((now.month - 1) // 3) * 3 + 1
        return month_start(now).replace(month=first_month)
    if period == "year":
        return month_start(now).replace(month=1)
    if period == "all":
        return None
    raise ValueError(f"Unknown period {period!r}")


def rolling_period_start(period: str, now: Optional[datetime] = None) -> datetime:
    """Same instant one week / month / quarter / year before `now`."""
    now = now or utcnow()
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return add_months(now, -1)
    if period == "quarter":
        return add_months(now, -3)
    if period == "year":
        return add_years(now, -1)
    raise ValueError(f"Unknown period {period!r}")


def month_key(value: datetime) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def last_months(count: int, now: Optional[datetime] = None) -> List[str]:
    """Month keys for the last `count` months, oldest first, current month last."""
    current = month_start(now or utcnow())
    return [month_key(add_months(current, -offset)) for offset in range(count - 1, -1, -1)]


def last_days(count: int, now: Optional[datetime] = None) -> List[str]:
    """ISO dates for the last `count` days, oldest first, today last."""
    today = start_of_day(now or utcnow())
    return [(today - timedelta(days=offset)).date().isoformat() for offset in range(count - 1, -1, -1)]
