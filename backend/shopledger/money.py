"""
Money helpers.

Amounts are stored and exchanged over the API as integer cents of ETB.
Spreadsheets show whole birr with two decimals.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


def cents_to_etb(cents: int | None) -> float | None:
    if cents is None:
        return None
    return float((Decimal(cents) / 100).quantize(Decimal("0.01")))


def etb_to_cents(value) -> int:
    """
    Convert a birr amount (number or numeric string) to integer cents.

    Raises ValueError for anything that is not a finite number.
    """
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"not a number: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"not a number: {value!r}")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
