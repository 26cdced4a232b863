"""
Price conversion between the local database (integer cents) and
Mirakl (decimal dollar strings).

Conversions go through Decimal so that 9999 cents is always "99.99".
Half-cent inputs are rounded half away from zero (ROUND_HALF_UP).
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

CENTS_PER_DOLLAR = Decimal(100)
TWO_PLACES = Decimal("0.01")


def cents_to_dollars(cents: int) -> str:
    """Convert cents (database) to a dollar string with two decimals (Mirakl)"""
    if isinstance(cents, bool) or not isinstance(cents, int):
        raise TypeError(f"cents must be an integer, got {type(cents).__name__}")
    dollars = (Decimal(cents) / CENTS_PER_DOLLAR).quantize(TWO_PLACES)
    return f"{dollars:.2f}"


def dollars_to_cents(dollars: Union[str, int, float, Decimal]) -> int:
    """Convert a dollar amount (Mirakl) to integer cents (database)"""
    if isinstance(dollars, float):
        # str() keeps the shortest repr, so 19.98 stays 19.98 instead of 19.979999...
        dollars = str(dollars)
    try:
        amount = Decimal(dollars)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Invalid dollar amount: {dollars!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid dollar amount: {dollars!r}")
    return int((amount * CENTS_PER_DOLLAR).quantize(Decimal(1), rounding=ROUND_HALF_UP))
