"""
Kiosk Engine — Policies
=======================
Each policy inspects a command (plus whatever lookups it is bound to)
and returns None to pass or a RejectionReason to refuse. They never
mutate anything, so a rejected command leaves every projection as it
was.
"""

from __future__ import annotations

from typing import Optional

from core.commands.base import Command
from core.commands.rejection import ReasonCode, RejectionReason
from engines.kiosk.commands import VALID_PASS_KINDS, VALID_PAYMENT_METHODS


def user_must_exist_policy(
    command: Command, user_lookup=None,
) -> Optional[RejectionReason]:
    if user_lookup is None:
        return None
    user_id = command.payload.get("user_id")
    if user_lookup(user_id) is None:
        return RejectionReason(
            code=ReasonCode.USER_NOT_FOUND,
            message=f"User {user_id} not found.",
            policy_name="user_must_exist_policy",
        )
    return None


def registration_must_have_name_policy(
    command: Command,
) -> Optional[RejectionReason]:
    if not command.payload.get("name"):
        return RejectionReason(
            code=ReasonCode.INVALID_REGISTRATION,
            message="Name is required to register.",
            policy_name="registration_must_have_name_policy",
        )
    return None


def registry_capacity_policy(
    command: Command, user_count_lookup=None, max_users: Optional[int] = None,
) -> Optional[RejectionReason]:
    if user_count_lookup is None or max_users is None:
        return None
    if user_count_lookup() >= max_users:
        return RejectionReason(
            code=ReasonCode.REGISTRY_FULL,
            message=f"Maximum of {max_users} users reached.",
            policy_name="registry_capacity_policy",
        )
    return None


def quantity_must_be_positive_policy(
    command: Command,
) -> Optional[RejectionReason]:
    liters = command.payload.get("liters")
    if liters is None or liters <= 0:
        return RejectionReason(
            code=ReasonCode.INVALID_QUANTITY,
            message=f"Quantity must be > 0 liters, got {liters}.",
            policy_name="quantity_must_be_positive_policy",
        )
    return None


def amount_must_be_positive_policy(
    command: Command,
) -> Optional[RejectionReason]:
    amount = command.payload.get("amount")
    if amount is None or amount <= 0:
        return RejectionReason(
            code=ReasonCode.INVALID_AMOUNT,
            message=f"Amount must be > 0, got {amount}.",
            policy_name="amount_must_be_positive_policy",
        )
    return None


def payment_method_must_be_valid_policy(
    command: Command,
) -> Optional[RejectionReason]:
    method = command.payload.get("payment_method")
    if method not in VALID_PAYMENT_METHODS:
        return RejectionReason(
            code=ReasonCode.INVALID_PAYMENT_METHOD,
            message=f"Payment method '{method}' is not valid. "
                    f"Must be one of: {sorted(VALID_PAYMENT_METHODS)}",
            policy_name="payment_method_must_be_valid_policy",
        )
    return None


def pass_kind_must_be_valid_policy(
    command: Command, plan_lookup=None,
) -> Optional[RejectionReason]:
    kind = command.payload.get("pass_kind")
    known = kind in VALID_PASS_KINDS
    if known and plan_lookup is not None:
        known = plan_lookup(kind) is not None
    if not known:
        return RejectionReason(
            code=ReasonCode.INVALID_PASS_TYPE,
            message=f"Pass type '{kind}' is not valid. "
                    f"Must be one of: {sorted(VALID_PASS_KINDS)}",
            policy_name="pass_kind_must_be_valid_policy",
        )
    return None


def ledger_capacity_policy(
    command: Command, transaction_count_lookup=None,
    max_transactions: Optional[int] = None,
) -> Optional[RejectionReason]:
    if transaction_count_lookup is None or max_transactions is None:
        return None
    if transaction_count_lookup() >= max_transactions:
        return RejectionReason(
            code=ReasonCode.LEDGER_FULL,
            message=f"Transaction ledger is full ({max_transactions} records).",
            policy_name="ledger_capacity_policy",
        )
    return None


def sufficient_wallet_balance_policy(
    command: Command, balance_lookup=None, amount_due_lookup=None,
) -> Optional[RejectionReason]:
    """Wallet must cover the amount due; balance is read, never touched."""
    if balance_lookup is None or amount_due_lookup is None:
        return None
    balance = balance_lookup(command.payload.get("user_id"))
    due = amount_due_lookup(command)
    if balance < due:
        return RejectionReason(
            code=ReasonCode.INSUFFICIENT_FUNDS,
            message=f"Insufficient wallet balance. Required: {due}, "
                    f"available: {balance}.",
            policy_name="sufficient_wallet_balance_policy",
        )
    return None
