"""
Kiosk Engine — Request Commands
===============================
Requests arrive from the kiosk front-end with values already typed:
integer user ids, decimal liters and amounts, payment method and pass
kind as strings. Requests only check *shape*; business constraints
(positivity, existence, balance) are policies and come back as typed
rejections, never as exceptions.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from core.commands.base import Command, derive_source_engine
from core.primitives.money import to_decimal

KIOSK_USER_REGISTER_REQUEST = "kiosk.user.register.request"
KIOSK_WALLET_TOP_UP_REQUEST = "kiosk.wallet.top_up.request"
KIOSK_WATER_PURCHASE_REQUEST = "kiosk.water.purchase.request"
KIOSK_PASS_PURCHASE_REQUEST = "kiosk.pass.purchase.request"

PAYMENT_CASH = "CASH"
PAYMENT_DIGITAL = "DIGITAL"
VALID_PAYMENT_METHODS = frozenset({PAYMENT_CASH, PAYMENT_DIGITAL})

PASS_NONE = "NONE"
PASS_WEEKLY = "WEEKLY"
PASS_MONTHLY = "MONTHLY"
VALID_PASS_KINDS = frozenset({PASS_WEEKLY, PASS_MONTHLY})


def _cmd(command_type, payload, *, issued_at, command_id=None, correlation_id=None):
    return Command(
        command_id=command_id or uuid.uuid4(),
        command_type=command_type,
        payload=payload,
        issued_at=issued_at,
        source_engine=derive_source_engine(command_type),
        correlation_id=correlation_id,
    )


def _require_user_id(user_id) -> None:
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise ValueError("user_id must be an integer.")


@dataclass(frozen=True)
class RegisterUserRequest:
    name: str
    phone: str
    is_student: bool = False

    def __post_init__(self):
        if not isinstance(self.name, str):
            raise ValueError("name must be a string.")
        if not isinstance(self.phone, str):
            raise ValueError("phone must be a string.")

    def to_command(self, *, issued_at: datetime, **kw) -> Command:
        return _cmd(KIOSK_USER_REGISTER_REQUEST,
                    {"name": self.name.strip(), "phone": self.phone.strip(),
                     "is_student": bool(self.is_student)},
                    issued_at=issued_at, **kw)


@dataclass(frozen=True)
class TopUpWalletRequest:
    user_id: int
    amount: Decimal

    def __post_init__(self):
        _require_user_id(self.user_id)
        object.__setattr__(self, "amount", to_decimal(self.amount))

    def to_command(self, *, issued_at: datetime, **kw) -> Command:
        return _cmd(KIOSK_WALLET_TOP_UP_REQUEST,
                    {"user_id": self.user_id, "amount": self.amount},
                    issued_at=issued_at, **kw)


@dataclass(frozen=True)
class PurchaseWaterRequest:
    user_id: int
    liters: Decimal
    payment_method: str

    def __post_init__(self):
        _require_user_id(self.user_id)
        object.__setattr__(self, "liters", to_decimal(self.liters))
        if not isinstance(self.payment_method, str):
            raise ValueError("payment_method must be a string.")

    def to_command(self, *, issued_at: datetime, **kw) -> Command:
        return _cmd(KIOSK_WATER_PURCHASE_REQUEST,
                    {"user_id": self.user_id, "liters": self.liters,
                     "payment_method": self.payment_method.upper()},
                    issued_at=issued_at, **kw)


@dataclass(frozen=True)
class PurchasePassRequest:
    user_id: int
    pass_kind: str

    def __post_init__(self):
        _require_user_id(self.user_id)
        if not isinstance(self.pass_kind, str):
            raise ValueError("pass_kind must be a string.")

    def to_command(self, *, issued_at: datetime, **kw) -> Command:
        return _cmd(KIOSK_PASS_PURCHASE_REQUEST,
                    {"user_id": self.user_id, "pass_kind": self.pass_kind.upper()},
                    issued_at=issued_at, **kw)
