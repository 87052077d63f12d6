"""
Water Kiosk – Tariff Settings
=============================
Every number the pricing engine uses lives here, not in engine code.

Engines receive a KioskSettings instance by injection. The module-level
DEFAULT_SETTINGS is the production tariff; load_settings() lets a
deployment override any value through KIOSK_* environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Mapping, Optional, Tuple


# ── Pass plans ────────────────────────────────────────────────

@dataclass(frozen=True)
class PassPlan:
    """Price and validity window of one pass kind."""

    kind: str
    cost: Decimal
    duration_days: int

    def __post_init__(self):
        if not self.kind:
            raise ValueError("kind must be non-empty.")
        if self.cost <= 0:
            raise ValueError(f"Pass cost must be > 0, got {self.cost}.")
        if self.duration_days <= 0:
            raise ValueError("duration_days must be > 0.")


# ── Settings record ───────────────────────────────────────────

def _default_bulk_tiers() -> Tuple[Tuple[Decimal, Decimal], ...]:
    # (minimum liters, flat discount), highest tier first
    return (
        (Decimal("20"), Decimal("4.00")),
        (Decimal("15"), Decimal("3.00")),
        (Decimal("10"), Decimal("2.00")),
    )


def _default_pass_plans() -> Tuple[PassPlan, ...]:
    return (
        PassPlan(kind="WEEKLY", cost=Decimal("15.00"), duration_days=7),
        PassPlan(kind="MONTHLY", cost=Decimal("50.00"), duration_days=30),
    )


@dataclass(frozen=True)
class KioskSettings:
    price_per_liter: Decimal = Decimal("2.00")
    digital_fee: Decimal = Decimal("1.00")
    bulk_threshold_liters: Decimal = Decimal("10")
    bulk_tiers: Tuple[Tuple[Decimal, Decimal], ...] = field(
        default_factory=_default_bulk_tiers
    )
    student_discount_rate: Decimal = Decimal("0.10")
    loyalty_threshold: Decimal = Decimal("50.00")
    loyalty_discount_rate: Decimal = Decimal("0.05")
    points_redemption_block: int = 100
    points_redemption_value: Decimal = Decimal("5.00")
    topup_bonus_threshold: Decimal = Decimal("100")
    topup_bonus_rate: Decimal = Decimal("0.02")
    pass_plans: Tuple[PassPlan, ...] = field(default_factory=_default_pass_plans)
    max_users: Optional[int] = None
    max_transactions: Optional[int] = None

    def __post_init__(self):
        if self.price_per_liter <= 0:
            raise ValueError("price_per_liter must be > 0.")
        if self.digital_fee < 0:
            raise ValueError("digital_fee must be >= 0.")
        if self.bulk_threshold_liters <= 0:
            raise ValueError("bulk_threshold_liters must be > 0.")
        for rate_name in (
            "student_discount_rate", "loyalty_discount_rate", "topup_bonus_rate",
        ):
            rate = getattr(self, rate_name)
            if not Decimal(0) <= rate <= Decimal(1):
                raise ValueError(f"{rate_name} must be between 0 and 1, got {rate}.")
        if self.points_redemption_block <= 0:
            raise ValueError("points_redemption_block must be > 0.")
        thresholds = [minimum for minimum, _ in self.bulk_tiers]
        if thresholds != sorted(thresholds, reverse=True):
            raise ValueError("bulk_tiers must be ordered from the highest tier down.")
        kinds = [plan.kind for plan in self.pass_plans]
        if len(set(kinds)) != len(kinds):
            raise ValueError(f"Duplicate pass plan kinds: {kinds}")
        for limit_name in ("max_users", "max_transactions"):
            limit = getattr(self, limit_name)
            if limit is not None and limit <= 0:
                raise ValueError(f"{limit_name} must be > 0 when set.")

    def pass_plan(self, kind: str) -> Optional[PassPlan]:
        for plan in self.pass_plans:
            if plan.kind == kind:
                return plan
        return None


DEFAULT_SETTINGS = KioskSettings()


# ── Environment overrides ─────────────────────────────────────

_DECIMAL_OVERRIDES = {
    "KIOSK_PRICE_PER_LITER": "price_per_liter",
    "KIOSK_DIGITAL_FEE": "digital_fee",
    "KIOSK_BULK_THRESHOLD_LITERS": "bulk_threshold_liters",
    "KIOSK_STUDENT_DISCOUNT_RATE": "student_discount_rate",
    "KIOSK_LOYALTY_THRESHOLD": "loyalty_threshold",
    "KIOSK_LOYALTY_DISCOUNT_RATE": "loyalty_discount_rate",
    "KIOSK_POINTS_REDEMPTION_VALUE": "points_redemption_value",
    "KIOSK_TOPUP_BONUS_THRESHOLD": "topup_bonus_threshold",
    "KIOSK_TOPUP_BONUS_RATE": "topup_bonus_rate",
}

_INT_OVERRIDES = {
    "KIOSK_POINTS_REDEMPTION_BLOCK": "points_redemption_block",
    "KIOSK_MAX_USERS": "max_users",
    "KIOSK_MAX_TRANSACTIONS": "max_transactions",
}


def load_settings(environ: Optional[Mapping[str, str]] = None) -> KioskSettings:
    """Build settings from KIOSK_* variables, defaulting everything else."""
    env = os.environ if environ is None else environ
    overrides = {}
    for var, attr in _DECIMAL_OVERRIDES.items():
        if env.get(var):
            overrides[attr] = Decimal(env[var])
    for var, attr in _INT_OVERRIDES.items():
        if env.get(var):
            overrides[attr] = int(env[var])
    return replace(DEFAULT_SETTINGS, **overrides)
