"""Tests for period key arithmetic."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from budgetbook import periods
from budgetbook.errors import ValidationError


def test_make_and_parse_round_trip():
    """Period keys are zero-padded YYYY-MM strings."""
    assert periods.make_period(2026, 3) == "2026-03"
    assert periods.parse_period("2026-03") == (2026, 3)


@pytest.mark.parametrize("value", ["2026-13", "2026-00", "26-01", "2026/01", "", None])
def test_parse_rejects_malformed_periods(value):
    """Malformed keys raise ValidationError."""
    with pytest.raises(ValidationError):
        periods.parse_period(value)


def test_add_months_crosses_year_boundaries():
    """Adding and subtracting months rolls the year."""
    assert periods.add_months("2026-11", 3) == "2027-02"
    assert periods.add_months("2026-01", -1) == "2025-12"
    assert periods.months_between("2025-12", "2026-02") == 2


def test_iter_periods_is_inclusive():
    """Both ends of the range are yielded."""
    assert list(periods.iter_periods("2025-11", "2026-02")) == [
        "2025-11",
        "2025-12",
        "2026-01",
        "2026-02",
    ]
    assert list(periods.iter_periods("2026-02", "2026-01")) == []


def test_day_in_period_clamps_to_month_length():
    """Day 31 in February lands on the last day of the month."""
    assert periods.day_in_period("2026-02", 31) == date(2026, 2, 28)
    assert periods.day_in_period("2028-02", 30) == date(2028, 2, 29)
    assert periods.last_day("2026-04") == date(2026, 4, 30)


def test_period_from_legacy_month_name():
    """Legacy month names convert to period keys."""
    assert periods.period_from_name("March", "2026") == "2026-03"
    assert periods.period_from_name("march", 2026) == "2026-03"
    with pytest.raises(ValidationError):
        periods.period_from_name("Marchember", "2026")
    with pytest.raises(ValidationError):
        periods.period_from_name("March", "twenty")


def test_horizon_window():
    """The horizon spans back and ahead of the month containing today."""
    assert periods.horizon(date(2026, 1, 20), back=1, ahead=11) == ("2025-12", "2026-12")


def test_label():
    assert periods.label("2026-07") == "July 2026"


def test_as_utc():
    utc = timezone.utc
    assert periods.as_utc(datetime(2026, 5, 1, 9)) == datetime(2026, 5, 1, 9, tzinfo=utc)
    eastern = timezone(timedelta(hours=-5))
    converted = periods.as_utc(datetime(2026, 5, 1, 22, tzinfo=eastern))
    assert converted.tzinfo is utc
    assert converted == datetime(2026, 5, 2, 3, tzinfo=utc)


def test_day_bounds_are_aware_and_inclusive():
    lower, upper = periods.day_bounds(date(2026, 1, 12), date(2026, 2, 11))
    assert lower == datetime(2026, 1, 12, tzinfo=timezone.utc)
    assert (upper.date(), upper.hour, upper.minute) == (date(2026, 2, 11), 23, 59)
    assert upper.tzinfo is timezone.utc
