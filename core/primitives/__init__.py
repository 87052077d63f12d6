"""
Kiosk Core Primitives
=====================
Engine-agnostic building blocks.

    money — Decimal coercion, cent rounding, whole-unit truncation
"""

from core.primitives.money import CENT, ZERO, quantize_money, to_decimal, truncate_to_int

__all__ = ["CENT", "ZERO", "quantize_money", "to_decimal", "truncate_to_int"]
