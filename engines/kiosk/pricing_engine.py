"""
Kiosk Pricing Engine — Discounts, Fee Optimizer, Quotes
=======================================================

RULES:
- Deterministic and side-effect free. Nothing here mutates a user;
  point redemption is reported in the breakdown and applied later as
  its own event.
- Discount components are evaluated independently and summed:
    student     10% of base cost
    bulk        step function of liters (>=20: 4.00, >=15: 3.00, >=10: 2.00)
    loyalty     5% of lifetime spend *before* this purchase, from 50.00
    redemption  flat 5.00 for one block of 100 points, at most once
- The digital fee is decided by the first matching strategy:
    1. valid pass            → 0
    2. liters >= threshold   → 0
    3. discount >= fee       → 0 (discount absorbs fee, stays whole)
    4. otherwise             → max(0, fee - discount)
  Cash never carries a fee.
- Base cost and every rate-derived amount are rounded to cents, half up,
  so receipts, ledger records and wallets carry two decimal places.
- Loyalty points earned = base cost truncated to whole units.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Tuple

from config.settings import KioskSettings
from core.primitives.money import ZERO, quantize_money, truncate_to_int
from engines.kiosk.commands import PASS_MONTHLY, PAYMENT_DIGITAL

FEE_RULE_CASH = "CASH"
FEE_RULE_PASS = "PASS_WAIVER"
FEE_RULE_BULK = "BULK_WAIVER"
FEE_RULE_ABSORBED = "DISCOUNT_ABSORBED"
FEE_RULE_PARTIAL = "PARTIAL_ABSORPTION"


# ══════════════════════════════════════════════════════════════
# DISCOUNT ENGINE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DiscountBreakdown:
    student: Decimal = ZERO
    bulk: Decimal = ZERO
    loyalty: Decimal = ZERO
    redemption: Decimal = ZERO
    points_redeemed: int = 0

    @property
    def total(self) -> Decimal:
        return self.student + self.bulk + self.loyalty + self.redemption


def base_cost(liters: Decimal, settings: KioskSettings) -> Decimal:
    return quantize_money(liters * settings.price_per_liter)


def student_discount(cost: Decimal, is_student: bool, settings: KioskSettings) -> Decimal:
    if not is_student:
        return ZERO
    return quantize_money(cost * settings.student_discount_rate)


def bulk_tier_discount(liters: Decimal, settings: KioskSettings) -> Decimal:
    for minimum, amount in settings.bulk_tiers:
        if liters >= minimum:
            return amount
    return ZERO


def loyalty_discount(total_spent: Decimal, settings: KioskSettings) -> Decimal:
    if total_spent < settings.loyalty_threshold:
        return ZERO
    return quantize_money(total_spent * settings.loyalty_discount_rate)


def points_redemption(loyalty_points: int, settings: KioskSettings) -> Tuple[Decimal, int]:
    """(discount, points to deduct). One block per purchase, whatever the balance."""
    if loyalty_points < settings.points_redemption_block:
        return ZERO, 0
    return settings.points_redemption_value, settings.points_redemption_block


def compute_discount(user, liters: Decimal, cost: Decimal,
                     settings: KioskSettings) -> DiscountBreakdown:
    redemption, points = points_redemption(user.loyalty_points, settings)
    return DiscountBreakdown(
        student=student_discount(cost, user.is_student, settings),
        bulk=bulk_tier_discount(liters, settings),
        loyalty=loyalty_discount(user.total_spent, settings),
        redemption=redemption,
        points_redeemed=points,
    )


# ══════════════════════════════════════════════════════════════
# FEE OPTIMIZER
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class FeeDecision:
    fee: Decimal
    rule: str


def decide_fee(pass_valid: bool, liters: Decimal, discount: Decimal,
               settings: KioskSettings) -> FeeDecision:
    """Digital payments only; callers use FEE_RULE_CASH for cash."""
    if pass_valid:
        return FeeDecision(fee=ZERO, rule=FEE_RULE_PASS)
    if liters >= settings.bulk_threshold_liters:
        return FeeDecision(fee=ZERO, rule=FEE_RULE_BULK)
    if discount >= settings.digital_fee:
        return FeeDecision(fee=ZERO, rule=FEE_RULE_ABSORBED)
    return FeeDecision(
        fee=max(ZERO, settings.digital_fee - discount),
        rule=FEE_RULE_PARTIAL,
    )


def compute_fee(pass_valid: bool, liters: Decimal, discount: Decimal,
                settings: KioskSettings) -> Decimal:
    return decide_fee(pass_valid, liters, discount, settings).fee


def points_for(cost: Decimal) -> int:
    return truncate_to_int(cost)


# ══════════════════════════════════════════════════════════════
# QUOTE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PriceQuote:
    liters: Decimal
    payment_method: str
    base_cost: Decimal
    breakdown: DiscountBreakdown
    fee: Decimal
    fee_rule: str
    pass_valid: bool
    is_bulk: bool
    points_earned: int

    @property
    def discount(self) -> Decimal:
        return self.breakdown.total

    @property
    def final_amount(self) -> Decimal:
        return self.base_cost - self.discount + self.fee

    @property
    def wallet_debit(self) -> Decimal:
        """What leaves the wallet: the final amount for digital, nothing for cash."""
        if self.payment_method == PAYMENT_DIGITAL:
            return self.final_amount
        return ZERO


def quote_purchase(user, liters: Decimal, payment_method: str, *,
                   pass_valid: bool, settings: KioskSettings) -> PriceQuote:
    cost = base_cost(liters, settings)
    breakdown = compute_discount(user, liters, cost, settings)
    if payment_method == PAYMENT_DIGITAL:
        decision = decide_fee(pass_valid, liters, breakdown.total, settings)
    else:
        decision = FeeDecision(fee=ZERO, rule=FEE_RULE_CASH)
    return PriceQuote(
        liters=liters,
        payment_method=payment_method,
        base_cost=cost,
        breakdown=breakdown,
        fee=decision.fee,
        fee_rule=decision.rule,
        pass_valid=pass_valid,
        is_bulk=liters >= settings.bulk_threshold_liters,
        points_earned=points_for(cost),
    )


def topup_bonus(amount: Decimal, settings: KioskSettings) -> Decimal:
    """Bonus is a share of the top-up itself, never of the resulting balance."""
    if amount < settings.topup_bonus_threshold:
        return ZERO
    return quantize_money(amount * settings.topup_bonus_rate)


# ══════════════════════════════════════════════════════════════
# TARIFF SHEET
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CostComparison:
    days: int
    liters_per_day: Decimal
    cash_total: Decimal
    digital_without_pass_total: Decimal
    digital_with_monthly_pass_total: Decimal
    monthly_pass_savings: Decimal


@dataclass(frozen=True)
class PricingInfo:
    price_per_liter: Decimal
    digital_fee: Decimal
    pass_plans: tuple
    bulk_threshold_liters: Decimal
    bulk_tiers: tuple
    student_discount_rate: Decimal
    loyalty_threshold: Decimal
    loyalty_discount_rate: Decimal
    topup_bonus_threshold: Decimal
    topup_bonus_rate: Decimal
    points_per_currency_unit: int
    points_redemption_block: int
    points_redemption_value: Decimal
    comparison: CostComparison


def cost_comparison(settings: KioskSettings, *, days: int = 30,
                    liters_per_day: Decimal = Decimal("5")) -> CostComparison:
    """Daily small purchases over a month: cash vs digital vs digital + monthly pass."""
    daily = base_cost(liters_per_day, settings)
    monthly = settings.pass_plan(PASS_MONTHLY)
    monthly_cost = monthly.cost if monthly else ZERO
    return CostComparison(
        days=days,
        liters_per_day=liters_per_day,
        cash_total=days * daily,
        digital_without_pass_total=days * (daily + settings.digital_fee),
        digital_with_monthly_pass_total=monthly_cost + days * daily,
        monthly_pass_savings=days * settings.digital_fee - monthly_cost,
    )


def pricing_info(settings: KioskSettings) -> PricingInfo:
    return PricingInfo(
        price_per_liter=settings.price_per_liter,
        digital_fee=settings.digital_fee,
        pass_plans=settings.pass_plans,
        bulk_threshold_liters=settings.bulk_threshold_liters,
        bulk_tiers=settings.bulk_tiers,
        student_discount_rate=settings.student_discount_rate,
        loyalty_threshold=settings.loyalty_threshold,
        loyalty_discount_rate=settings.loyalty_discount_rate,
        topup_bonus_threshold=settings.topup_bonus_threshold,
        topup_bonus_rate=settings.topup_bonus_rate,
        points_per_currency_unit=1,
        points_redemption_block=settings.points_redemption_block,
        points_redemption_value=settings.points_redemption_value,
        comparison=cost_comparison(settings),
    )
