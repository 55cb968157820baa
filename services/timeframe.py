# FILE: services/timeframe.py
"""
Calendar arithmetic for timeframes.

- Canonical ISO rendering of instants (UTC, millisecond precision, "Z")
- Snapping a [start, end] pair to grain boundaries
- Deriving the equal-length period immediately before a range

Everything here is pure and works in UTC.
"""

import calendar
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from dateutil import parser as date_parser

from core.date_grain import DateGrain

UTC = timezone.utc
ONE_MILLISECOND = timedelta(milliseconds=1)


def ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_iso(dt: datetime) -> str:
    """2025-02-14T00:00:00.000Z"""
    return ensure_utc(dt).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_instant(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 (or otherwise unambiguous) timestamp into an aware UTC datetime.
    Returns None instead of raising.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    try:
        return ensure_utc(date_parser.isoparse(text))
    except (ValueError, OverflowError):
        pass
    try:
        return ensure_utc(date_parser.parse(text))
    except (ValueError, OverflowError):
        return None


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=23, minute=59, second=59, microsecond=999000)


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def snap_to_grain(start: datetime, end: datetime, grain: DateGrain) -> Tuple[datetime, datetime]:
    """
    day     -> 00:00:00.000 .. 23:59:59.999 of each bound's own day
    week    -> Monday .. Sunday of the start's ISO week
    month   -> 1st of the start's month .. last day of the end's month
    quarter -> first .. last day of the start's 3-month block
    year    -> Jan 1 of the start's year .. Dec 31 of the end's year
    custom  -> untouched
    """
    start, end = ensure_utc(start), ensure_utc(end)
    grain = DateGrain(grain)

    if grain.is_custom():
        return start, end

    if grain is DateGrain.DAY:
        return start_of_day(start), end_of_day(end)

    if grain is DateGrain.WEEK:
        monday = start_of_day(start) - timedelta(days=start.weekday())
        return monday, end_of_day(monday + timedelta(days=6))

    if grain is DateGrain.MONTH:
        first = start_of_day(start.replace(day=1))
        last = end_of_day(end.replace(day=last_day_of_month(end.year, end.month)))
        return first, last

    if grain is DateGrain.QUARTER:
        first_month = ((start.month - 1) // 3) * 3 + 1
        last_month = first_month + 2
        first = start_of_day(start.replace(month=first_month, day=1))
        last = end_of_day(
            start.replace(month=last_month, day=last_day_of_month(start.year, last_month))
        )
        return first, last

    if grain is DateGrain.YEAR:
        return (
            start_of_day(start.replace(month=1, day=1)),
            end_of_day(end.replace(month=12, day=31)),
        )

    return start, end


def previous_period(start: datetime, end: datetime) -> Tuple[datetime, datetime]:
    """Same duration, ending one millisecond before `start`."""
    duration = ensure_utc(end) - ensure_utc(start)
    compare_end = ensure_utc(start) - ONE_MILLISECOND
    return compare_end - duration, compare_end
