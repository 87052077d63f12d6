"""
Kiosk Core Time — Public API
============================
Explicit clock protocol and temporal helpers.
Doctrine: NO datetime.now() in engine logic.
"""

from core.time.clock import (
    Clock,
    FixedClock,
    SystemClock,
    get_default_clock,
    set_default_clock,
)
from core.time.temporal import (
    expiry_after,
    is_before,
    whole_days_between,
)

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "get_default_clock",
    "set_default_clock",
    "expiry_after",
    "is_before",
    "whole_days_between",
]
