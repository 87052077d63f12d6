"""
Kiosk Engine — Event Types
==========================
Everything the kiosk accepts is recorded as one of these events.
The user registry, the transaction ledger and analytics are folds
over this stream.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

# ── Event Types ───────────────────────────────────────────────

USER_REGISTERED_V1 = "kiosk.user.registered.v1"
WALLET_TOPPED_UP_V1 = "kiosk.wallet.topped_up.v1"
POINTS_REDEEMED_V1 = "kiosk.points.redeemed.v1"
WATER_PURCHASED_V1 = "kiosk.water.purchased.v1"
PASS_PURCHASED_V1 = "kiosk.pass.purchased.v1"


# ── Payload Builders ──────────────────────────────────────────

def _base_fields(cmd):
    return {
        "command_id": str(cmd.command_id),
        "correlation_id": str(cmd.correlation_id) if cmd.correlation_id else None,
    }


def build_user_registered_payload(cmd, *, user_id: int) -> dict:
    base = _base_fields(cmd)
    p = cmd.payload
    base.update({
        "user_id": user_id,
        "name": p["name"],
        "phone": p["phone"],
        "is_student": p["is_student"],
        "registered_at": cmd.issued_at,
    })
    return base


def build_wallet_topped_up_payload(cmd, *, bonus: Decimal) -> dict:
    base = _base_fields(cmd)
    p = cmd.payload
    base.update({
        "user_id": p["user_id"],
        "amount": p["amount"],
        "bonus": bonus,
        "credited": p["amount"] + bonus,
        "topped_up_at": cmd.issued_at,
    })
    return base


def build_points_redeemed_payload(
    cmd, *, points: int, discount_value: Decimal, transaction_id: int,
) -> dict:
    base = _base_fields(cmd)
    base.update({
        "user_id": cmd.payload["user_id"],
        "points": points,
        "discount_value": discount_value,
        "transaction_id": transaction_id,
        "redeemed_at": cmd.issued_at,
    })
    return base


def build_water_purchased_payload(cmd, *, transaction_id: int, quote) -> dict:
    base = _base_fields(cmd)
    p = cmd.payload
    base.update({
        "transaction_id": transaction_id,
        "user_id": p["user_id"],
        "liters": quote.liters,
        "payment_method": quote.payment_method,
        "base_cost": quote.base_cost,
        "discount": quote.discount,
        "fee": quote.fee,
        "fee_rule": quote.fee_rule,
        "final_amount": quote.final_amount,
        "wallet_debit": quote.wallet_debit,
        "points_earned": quote.points_earned,
        "is_bulk": quote.is_bulk,
        "purchased_at": cmd.issued_at,
    })
    return base


def build_pass_purchased_payload(cmd, *, plan, expires_at: datetime) -> dict:
    base = _base_fields(cmd)
    base.update({
        "user_id": cmd.payload["user_id"],
        "pass_kind": plan.kind,
        "cost": plan.cost,
        "duration_days": plan.duration_days,
        "expires_at": expires_at,
        "purchased_at": cmd.issued_at,
    })
    return base

