"""
Calendar helpers.

Expense dates are compared by local calendar day, never by timestamp.
Aware datetimes are converted to the given zone (system local when None);
naive datetimes are taken to already be local.
"""

from datetime import date, datetime, timedelta, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo


def resolve_zone(name: Optional[str]) -> Optional[tzinfo]:
    return ZoneInfo(name) if name else None


def local_date(value: datetime, tz: Optional[tzinfo] = None) -> date:
    if value.tzinfo is not None:
        value = value.astimezone(tz)
    return value.date()


def today_local(tz: Optional[tzinfo] = None) -> date:
    return datetime.now(tz).date()


def yesterday_of(day: date) -> date:
    return day - timedelta(days=1)


def same_month(day: date, other: date) -> bool:
    return day.year == other.year and day.month == other.month
