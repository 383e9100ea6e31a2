"""Formatting helpers for APU and budget output.

Amounts are shown the way Bolivian budgets are usually written
(e.g. ``Bs 1,234.56``), with an optional USD equivalent computed from the
stored exchange rate.
"""

from __future__ import annotations

from decimal import Decimal

from micaa.money import round_money


def format_bs(amount: Decimal) -> str:
    """Format an amount in bolivianos, always with cents."""
    return f"Bs {round_money(amount):,.2f}"


def format_usd(amount: Decimal, exchange_rate: Decimal) -> str:
    """Convert bolivianos to USD with the stored rate and format it.

    - Rates must be positive; a zero rate would be a data error upstream.
    """
    return f"$ {round_money(amount / exchange_rate):,.2f}"


def format_percentage(value: Decimal) -> str:
    """Format a stored percentage (``15.00``) as ``'15.00%'``."""
    return f"{round_money(value):.2f}%"
