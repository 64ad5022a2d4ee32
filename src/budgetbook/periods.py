"""Canonical period keys.

Every schedule row is keyed by a single sortable ``YYYY-MM`` string. The
helpers here convert to and from dates, month names and integer ordinals so
that no other module needs to reason about calendar arithmetic.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, time, timezone
from typing import Iterator

from .errors import ValidationError

MONTH_NAMES = [calendar.month_name[i] for i in range(1, 13)]
_PERIOD_RE = re.compile(r"^(\d{4})-(\d{2})$")


def make_period(year: int, month: int) -> str:
    """Return the period key for a year/month pair."""

    if not 1 <= month <= 12:
        raise ValidationError(f"Month out of range: {month}", entity="period", key=month)
    if not 1 <= year <= 9999:
        raise ValidationError(f"Year out of range: {year}", entity="period", key=year)
    return f"{year:04d}-{month:02d}"


def parse_period(value: str) -> tuple[int, int]:
    """Split a ``YYYY-MM`` key into ``(year, month)``."""

    match = _PERIOD_RE.match((value or "").strip())
    if not match:
        raise ValidationError(f"Invalid period {value!r}; expected YYYY-MM", entity="period", key=value)
    year, month = int(match.group(1)), int(match.group(2))
    make_period(year, month)
    return year, month


def period_of(day: date) -> str:
    """Return the period containing *day*."""

    return make_period(day.year, day.month)


def ordinal(period: str) -> int:
    """Return ``year * 12 + (month - 1)`` for arithmetic and comparisons."""

    year, month = parse_period(period)
    return year * 12 + (month - 1)


def from_ordinal(value: int) -> str:
    year, month0 = divmod(value, 12)
    return make_period(year, month0 + 1)


def add_months(period: str, months: int) -> str:
    """Shift a period by a (possibly negative) number of months."""

    return from_ordinal(ordinal(period) + months)


def months_between(start: str, end: str) -> int:
    """Number of months from *start* to *end* (negative when end precedes start)."""

    return ordinal(end) - ordinal(start)


def iter_periods(start: str, end: str) -> Iterator[str]:
    """Yield every period from *start* to *end*, both inclusive."""

    for value in range(ordinal(start), ordinal(end) + 1):
        yield from_ordinal(value)


def month_days(period: str) -> int:
    year, month = parse_period(period)
    return calendar.monthrange(year, month)[1]


def day_in_period(period: str, day: int) -> date:
    """Return the date for *day* within *period*, clamped to the month length."""

    year, month = parse_period(period)
    return date(year, month, max(1, min(day, month_days(period))))


def first_day(period: str) -> date:
    return day_in_period(period, 1)


def last_day(period: str) -> date:
    return day_in_period(period, 31)


def period_from_name(month_name: str, year: int | str) -> str:
    """Convert a legacy ``("January", "2026")`` pair into a period key."""

    name = (month_name or "").strip().capitalize()
    if name not in MONTH_NAMES:
        raise ValidationError(f"Unknown month name {month_name!r}", entity="period", key=month_name)
    try:
        year_value = int(str(year).strip())
    except ValueError as exc:
        raise ValidationError(f"Invalid year {year!r}", entity="period", key=year) from exc
    return make_period(year_value, MONTH_NAMES.index(name) + 1)


def label(period: str) -> str:
    """Human-readable label such as ``March 2026``."""

    year, month = parse_period(period)
    return f"{MONTH_NAMES[month - 1]} {year}"


def horizon(today: date, *, back: int, ahead: int) -> tuple[str, str]:
    """Return the ``(first, last)`` periods of the visible window around *today*."""

    current = period_of(today)
    return add_months(current, -back), add_months(current, ahead)


def as_utc(moment: datetime) -> datetime:
    """Return *moment* as an aware UTC datetime; naive values are taken as UTC."""

    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    """Aware UTC instants covering *start* through the end of *end*."""

    return (
        datetime.combine(start, time.min, tzinfo=timezone.utc),
        datetime.combine(end, time.max, tzinfo=timezone.utc),
    )
