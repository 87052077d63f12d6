"""
Kiosk Pass Validator
====================
A pass is valid iff it has a kind and the decision instant is strictly
before its expiry. Validity is recomputed at every point of use; the
stored pass_kind is never trusted on its own (lazy expiry), so a stale
WEEKLY flag on an expired pass simply reads as "no pass".
"""

from __future__ import annotations

from datetime import datetime

from core.time.temporal import is_before, whole_days_between
from engines.kiosk.commands import PASS_NONE


def is_pass_valid(user, now: datetime) -> bool:
    """`user` is anything with pass_kind and pass_expiry attributes."""
    if user.pass_kind == PASS_NONE:
        return False
    return is_before(now, user.pass_expiry)


def active_pass_kind(user, now: datetime) -> str:
    return user.pass_kind if is_pass_valid(user, now) else PASS_NONE


def pass_days_remaining(user, now: datetime) -> int:
    if not is_pass_valid(user, now):
        return 0
    return whole_days_between(now, user.pass_expiry)
