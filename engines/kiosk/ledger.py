"""
Kiosk Transaction Ledger
========================
Append-only record of completed water purchases.

Transaction ids are sequential from 1, so id order is time order.
Records are immutable. The ledger is a projection of
kiosk.water.purchased.v1 events and can be rebuilt by replaying them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from core.primitives.money import ZERO
from engines.kiosk.events import WATER_PURCHASED_V1


@dataclass(frozen=True)
class Transaction:
    transaction_id: int
    user_id: int
    amount: Decimal             # final amount paid
    liters: Decimal
    payment_method: str
    fee_charged: Decimal
    discount_applied: Decimal
    base_cost: Decimal
    timestamp: datetime


@dataclass(frozen=True)
class LedgerTotals:
    revenue: Decimal
    fees: Decimal
    discounts: Decimal
    transaction_count: int


class TransactionLedger:
    def __init__(self):
        self._transactions: List[Transaction] = []

    def apply(self, event_type: str, payload: Dict[str, Any]) -> None:
        if event_type != WATER_PURCHASED_V1:
            return
        txn_id = payload["transaction_id"]
        if txn_id != self.next_transaction_id:
            raise ValueError(
                f"Ledger is append-only: expected transaction "
                f"{self.next_transaction_id}, got {txn_id}."
            )
        self._transactions.append(Transaction(
            transaction_id=txn_id,
            user_id=payload["user_id"],
            amount=payload["final_amount"],
            liters=payload["liters"],
            payment_method=payload["payment_method"],
            fee_charged=payload["fee"],
            discount_applied=payload["discount"],
            base_cost=payload["base_cost"],
            timestamp=payload["purchased_at"],
        ))

    # ── Queries ───────────────────────────────────────────────

    @property
    def next_transaction_id(self) -> int:
        return len(self._transactions) + 1

    @property
    def count(self) -> int:
        return len(self._transactions)

    def get(self, transaction_id: int) -> Optional[Transaction]:
        if 1 <= transaction_id <= len(self._transactions):
            return self._transactions[transaction_id - 1]
        return None

    def all(self) -> List[Transaction]:
        return list(self._transactions)

    def for_user(self, user_id: int) -> List[Transaction]:
        return [t for t in self._transactions if t.user_id == user_id]

    def totals(self) -> LedgerTotals:
        """Fold the whole ledger. Revenue is counted on base cost."""
        revenue = fees = discounts = ZERO
        for txn in self._transactions:
            revenue += txn.base_cost
            fees += txn.fee_charged
            discounts += txn.discount_applied
        return LedgerTotals(
            revenue=revenue,
            fees=fees,
            discounts=discounts,
            transaction_count=len(self._transactions),
        )

    def truncate(self):
        self._transactions.clear()
