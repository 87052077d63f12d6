"""
Kiosk Command Layer — Rejection Model
=====================================
Structured reasons for denied commands.

A rejection is a value, not an exception: the caller receives it inside
a CommandOutcome and decides how to present it.

Every rejection is:
- Deterministic (same input → same rejection)
- Machine-readable (code)
- Human-readable (message)
- Attributable (policy_name)
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RejectionReason:
    """
    Structured reason for command rejection.

    Fields:
        code:        Machine-readable code (see ReasonCode).
        message:     Human-readable explanation.
        policy_name: Name of the policy that rejected.
    """

    code: str
    message: str
    policy_name: str

    def __post_init__(self):
        if not self.code or not isinstance(self.code, str):
            raise ValueError("code must be a non-empty string.")

        if not self.message or not isinstance(self.message, str):
            raise ValueError("message must be a non-empty string.")

        if not self.policy_name or not isinstance(self.policy_name, str):
            raise ValueError("policy_name must be a non-empty string.")


class ReasonCode:
    """
    Known rejection codes.

    Convention: SCREAMING_SNAKE_CASE.
    """

    # ── Lookup ────────────────────────────────────────────────
    USER_NOT_FOUND = "USER_NOT_FOUND"

    # ── Input constraints ─────────────────────────────────────
    INVALID_QUANTITY = "INVALID_QUANTITY"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_PAYMENT_METHOD = "INVALID_PAYMENT_METHOD"
    INVALID_PASS_TYPE = "INVALID_PASS_TYPE"
    INVALID_REGISTRATION = "INVALID_REGISTRATION"

    # ── Funds ─────────────────────────────────────────────────
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"

    # ── Capacity ──────────────────────────────────────────────
    REGISTRY_FULL = "REGISTRY_FULL"
    LEDGER_FULL = "LEDGER_FULL"
