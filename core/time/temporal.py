"""
Kiosk Core Time — Temporal Helpers
==================================
Pure functions over explicit datetimes. No hidden clock access.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

SECONDS_PER_DAY = 24 * 60 * 60


def expiry_after(start: datetime, days: int) -> datetime:
    """Instant `days` whole days after `start`."""
    if days < 0:
        raise ValueError(f"days must be >= 0, got {days}.")
    return start + timedelta(days=days)


def is_before(now: datetime, deadline: Optional[datetime]) -> bool:
    """Strictly before the deadline. An absent deadline is never in the future."""
    if deadline is None:
        return False
    return now < deadline


def whole_days_between(now: datetime, later: Optional[datetime]) -> int:
    """Full days from `now` until `later`, truncated; 0 if already past."""
    if later is None or later <= now:
        return 0
    return int((later - now).total_seconds() // SECONDS_PER_DAY)
