"""
Kiosk Core Time — Injectable Clock
==================================
Doctrine: engine logic never calls datetime.now().

Commands carry their own `issued_at`. The Clock is what the service
uses to stamp commands it builds on a caller's behalf, and what tests
freeze to make pass expiry deterministic.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """Anything that can tell the current UTC time."""

    def now_utc(self) -> datetime:
        ...  # pragma: no cover


class SystemClock:
    """Wall-clock time."""

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    Frozen clock for tests and replays.

    Usage:
        clock = FixedClock(datetime(2026, 3, 1, tzinfo=timezone.utc))
        clock.advance(days=8)   # a weekly pass bought at start is now stale
    """

    def __init__(self, fixed_dt: datetime) -> None:
        if fixed_dt.tzinfo is None:
            raise ValueError("FixedClock requires timezone-aware datetime.")
        self._current = fixed_dt

    def now_utc(self) -> datetime:
        return self._current

    def advance(self, seconds: float = 0, *, days: float = 0) -> datetime:
        """Move time forward and return the new instant."""
        if seconds < 0 or days < 0:
            raise ValueError("FixedClock only moves forward.")
        self._current = self._current + timedelta(days=days, seconds=seconds)
        return self._current

    def set(self, moment: datetime) -> None:
        if moment.tzinfo is None:
            raise ValueError("FixedClock requires timezone-aware datetime.")
        self._current = moment


_default_clock: Clock = SystemClock()


def set_default_clock(clock: Clock) -> None:
    """Clock used by services built without an explicit one."""
    global _default_clock
    _default_clock = clock


def get_default_clock() -> Clock:
    return _default_clock
