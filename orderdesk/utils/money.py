"""Fixed-point currency helpers."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Matches the Numeric(18, 2) money columns.
MAX_DIGITS = 18
MAX_MONEY = Decimal(10) ** (MAX_DIGITS - 2) - CENT


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError) as exc:
            raise ValueError(f"Invalid money amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Invalid money amount: {value!r}")
    return amount


def to_money(value: Any) -> Decimal:
    """Normalize an amount to a two-decimal ``Decimal``.

    Accepts ``Decimal``, ``int``, ``float`` and ``str``; floats go through
    ``str()`` to avoid binary artefacts. Raises ``ValueError`` on garbage.
    """

    amount = _to_decimal(value)
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"Money amount out of range: {value!r}") from exc


def parse_money(value: Any) -> Decimal:
    """Parse user input as money without changing its value.

    Rejects sub-cent precision and amounts that do not fit the money
    columns instead of rounding them.
    """

    amount = _to_decimal(value)
    if abs(amount) > MAX_MONEY:
        raise ValueError(f"Money amount out of range: {value!r}")
    money = to_money(amount)
    if money != amount:
        raise ValueError(f"Money amount has more than two decimal places: {value!r}")
    return money


def sum_money(values: Iterable[Any]) -> Decimal:
    total = ZERO
    for value in values:
        total += to_money(value)
    return total


__all__ = ["CENT", "MAX_MONEY", "ZERO", "parse_money", "sum_money", "to_money"]
