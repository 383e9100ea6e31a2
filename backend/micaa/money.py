"""Decimal helpers shared by the pricing path.

Rounding only ever happens at the documented points: the final unit price,
persisted prices and budget line subtotals. Intermediate subtotals keep full
precision.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENTS = Decimal("0.01")
FACTOR_PLACES = Decimal("0.0001")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Coerce a stored or transmitted number into a Decimal.

    Floats go through ``str`` so ``0.1`` becomes ``Decimal("0.1")`` rather
    than its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(value: Decimal) -> Decimal:
    """Round to currency minor units using round-half-up."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def round_factor(value: Decimal) -> Decimal:
    return value.quantize(FACTOR_PLACES, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, percentage: Decimal) -> Decimal:
    """Return ``amount * percentage / 100`` without intermediate rounding."""
    return amount * percentage / HUNDRED
