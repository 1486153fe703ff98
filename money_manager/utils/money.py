"""Decimal helpers for money amounts."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union


CENT = Decimal("0.01")

Number = Union[Decimal, int, float, str, None]


def to_decimal(value: Number) -> Decimal:
    """
    Coerce a database or user value to Decimal.

    Floats go through str() so 0.1 stays 0.1. None and garbage become 0.
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def to_money(value: Number) -> Decimal:
    """Round to cents, half up."""
    amount = to_decimal(value)
    if not amount.is_finite():
        return Decimal("0.00")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)
