"""
Kiosk Core Primitives — Money Values
====================================
All currency and quantity arithmetic is done in Decimal.

Floats are accepted at the boundary (a caller may hand over 12.5)
but are converted through their string form, so 9.99 stays 9.99
instead of 9.9900000000000002131628...
"""

from __future__ import annotations

from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from numbers import Number

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Coerce an int, float, str or Decimal into Decimal."""
    if isinstance(value, bool):
        raise TypeError("bool is not a monetary value.")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        result = Decimal(value)
    elif isinstance(value, Number):
        result = Decimal(str(value))
    else:
        raise TypeError(
            f"Cannot interpret {type(value).__name__} as a decimal amount."
        )
    if not result.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}.")
    return result


def truncate_to_int(value: Decimal) -> int:
    """Whole units toward zero: 19.99 → 19, -19.99 → -19."""
    return int(value.to_integral_value(rounding=ROUND_DOWN))


def quantize_money(value: Decimal) -> Decimal:
    """Round to cents, half up. Applied wherever a price or rate multiplies."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
