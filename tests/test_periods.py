from datetime import UTC, datetime, timedelta

import pytest

from orderdesk.models.budget import PeriodType
from orderdesk.services.periods import (
    PERIOD_RESOLUTION,
    calculate_period_bounds,
    period_contains,
    periods_overlap,
)
from orderdesk.utils.errors import ValidationError


def _at(*args) -> datetime:
    return datetime(*args, tzinfo=UTC)


def test_monthly_mid_month_anchor():
    bounds = calculate_period_bounds(PeriodType.MONTHLY, _at(2024, 5, 17, 13, 45))

    assert bounds.period_start == _at(2024, 5, 1)
    assert bounds.period_end == _at(2024, 5, 31, 23, 59, 59, 999000)
    assert bounds.exclusive_end == _at(2024, 6, 1)


def test_monthly_december_rolls_into_next_year():
    bounds = calculate_period_bounds("monthly", _at(2024, 12, 20))

    assert bounds.period_start == _at(2024, 12, 1)
    assert bounds.period_end == _at(2024, 12, 31, 23, 59, 59, 999000)
    assert bounds.exclusive_end == _at(2025, 1, 1)


def test_monthly_february_leap_year():
    bounds = calculate_period_bounds(PeriodType.MONTHLY, _at(2024, 2, 10))
    assert bounds.period_end == _at(2024, 2, 29, 23, 59, 59, 999000)


@pytest.mark.parametrize(
    ("anchor", "start", "end"),
    [
        (_at(2025, 2, 14), _at(2025, 1, 1), _at(2025, 3, 31, 23, 59, 59, 999000)),
        (_at(2025, 3, 31, 23, 59), _at(2025, 1, 1), _at(2025, 3, 31, 23, 59, 59, 999000)),
        (_at(2025, 4, 1), _at(2025, 4, 1), _at(2025, 6, 30, 23, 59, 59, 999000)),
        (_at(2025, 11, 5), _at(2025, 10, 1), _at(2025, 12, 31, 23, 59, 59, 999000)),
    ],
)
def test_quarterly_bounds(anchor, start, end):
    bounds = calculate_period_bounds(PeriodType.QUARTERLY, anchor)
    assert (bounds.period_start, bounds.period_end) == (start, end)


def test_fourth_quarter_ends_at_new_year():
    bounds = calculate_period_bounds(PeriodType.QUARTERLY, _at(2025, 12, 31, 12))
    assert bounds.exclusive_end == _at(2026, 1, 1)


def test_yearly_bounds():
    bounds = calculate_period_bounds(PeriodType.YEARLY, _at(2025, 7, 4))

    assert bounds.period_start == _at(2025, 1, 1)
    assert bounds.period_end == _at(2025, 12, 31, 23, 59, 59, 999000)


def test_naive_anchor_is_treated_as_utc():
    naive = calculate_period_bounds(PeriodType.MONTHLY, datetime(2025, 3, 15))
    aware = calculate_period_bounds(PeriodType.MONTHLY, _at(2025, 3, 15))
    assert naive == aware


def test_bounds_are_deterministic():
    anchor = _at(2025, 8, 9, 1, 2, 3)
    assert calculate_period_bounds("quarterly", anchor) == calculate_period_bounds("quarterly", anchor)


def test_unknown_period_type_rejected():
    with pytest.raises(ValidationError) as exc_info:
        calculate_period_bounds("weekly", _at(2025, 1, 1))
    assert exc_info.value.code == "INVALID_PERIOD_TYPE"


def test_contains_includes_last_millisecond_only():
    bounds = calculate_period_bounds(PeriodType.MONTHLY, _at(2025, 1, 15))

    assert bounds.contains(bounds.period_start)
    assert bounds.contains(bounds.period_end)
    assert not bounds.contains(bounds.period_end + PERIOD_RESOLUTION)
    assert not bounds.contains(bounds.period_start - timedelta(microseconds=1))


def test_contains_accepts_naive_stored_values():
    start = datetime(2025, 1, 1)
    end = datetime(2025, 1, 31, 23, 59, 59, 999000)
    assert period_contains(start, end, _at(2025, 1, 31, 23, 59, 59, 999000))


def test_adjacent_periods_do_not_overlap():
    january = calculate_period_bounds(PeriodType.MONTHLY, _at(2025, 1, 10))
    february = calculate_period_bounds(PeriodType.MONTHLY, _at(2025, 2, 10))

    assert not periods_overlap(
        january.period_start, january.period_end, february.period_start, february.period_end
    )


def test_month_overlaps_its_quarter():
    month = calculate_period_bounds(PeriodType.MONTHLY, _at(2025, 2, 10))
    quarter = calculate_period_bounds(PeriodType.QUARTERLY, _at(2025, 2, 10))

    assert periods_overlap(month.period_start, month.period_end, quarter.period_start, quarter.period_end)
    assert periods_overlap(quarter.period_start, quarter.period_end, month.period_start, month.period_end)
