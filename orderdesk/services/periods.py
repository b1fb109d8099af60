"""Calendar period arithmetic for budgets.

Periods are closed on the left and stored with an inclusive last instant
(``23:59:59.999``). All comparisons go through the half-open form
``[period_start, exclusive_end)`` where ``exclusive_end`` is the first
instant of the following period.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from orderdesk.models.budget import PeriodType
from orderdesk.utils.errors import ValidationError
from orderdesk.utils.time import ensure_utc, utcnow

PERIOD_RESOLUTION = timedelta(milliseconds=1)


@dataclass(frozen=True)
class PeriodBounds:
    period_type: PeriodType
    period_start: datetime
    period_end: datetime

    @property
    def exclusive_end(self) -> datetime:
        return self.period_end + PERIOD_RESOLUTION

    def contains(self, instant: datetime) -> bool:
        return period_contains(self.period_start, self.period_end, instant)


def coerce_period_type(value: PeriodType | str) -> PeriodType:
    if isinstance(value, PeriodType):
        return value
    try:
        return PeriodType(value)
    except ValueError as exc:
        raise ValidationError(
            f"Unknown period type {value!r}.", code="INVALID_PERIOD_TYPE"
        ) from exc


def _month_start(year: int, month: int) -> datetime:
    # month may be 13 when rolling past December
    if month > 12:
        year, month = year + 1, month - 12
    return datetime(year, month, 1, tzinfo=UTC)


def calculate_period_bounds(
    period_type: PeriodType | str, anchor: datetime | None = None
) -> PeriodBounds:
    """Return the calendar period of ``period_type`` containing ``anchor``."""

    kind = coerce_period_type(period_type)
    at = ensure_utc(anchor) if anchor is not None else utcnow()

    if kind == PeriodType.MONTHLY:
        start = _month_start(at.year, at.month)
        next_start = _month_start(at.year, at.month + 1)
    elif kind == PeriodType.QUARTERLY:
        first_month = ((at.month - 1) // 3) * 3 + 1
        start = _month_start(at.year, first_month)
        next_start = _month_start(at.year, first_month + 3)
    else:
        start = datetime(at.year, 1, 1, tzinfo=UTC)
        next_start = datetime(at.year + 1, 1, 1, tzinfo=UTC)

    return PeriodBounds(period_type=kind, period_start=start, period_end=next_start - PERIOD_RESOLUTION)


def period_contains(period_start: datetime, period_end: datetime, instant: datetime) -> bool:
    """True when ``instant`` lies inside the period (``period_end`` inclusive)."""

    at = ensure_utc(instant)
    return ensure_utc(period_start) <= at < ensure_utc(period_end) + PERIOD_RESOLUTION


def periods_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """True when two periods share at least one instant.

    Touching periods (one ends at ``.999``, the next starts on the
    following millisecond) do not overlap.
    """

    a_exclusive = ensure_utc(a_end) + PERIOD_RESOLUTION
    b_exclusive = ensure_utc(b_end) + PERIOD_RESOLUTION
    return ensure_utc(a_start) < b_exclusive and a_exclusive > ensure_utc(b_start)


__all__ = [
    "PERIOD_RESOLUTION",
    "PeriodBounds",
    "calculate_period_bounds",
    "coerce_period_type",
    "period_contains",
    "periods_overlap",
]
