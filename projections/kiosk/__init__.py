"""
Kiosk Projections — Analytics Read Model
========================================
Running business counters for the kiosk.

Built from events:
- kiosk.water.purchased.v1
- kiosk.pass.purchased.v1

Never edited directly: the only way in is apply(). Because of that the
model can always be rebuilt from the event store and compared with the
live instance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable

from core.primitives.money import ZERO
from engines.kiosk.commands import PAYMENT_CASH, PAYMENT_DIGITAL
from engines.kiosk.events import PASS_PURCHASED_V1, WATER_PURCHASED_V1

logger = logging.getLogger("kiosk.projections")

LOW_PASS_ADOPTION_RATIO = Decimal("0.3")


@dataclass(frozen=True)
class AnalyticsReport:
    total_users: int
    total_transactions: int
    cash_transactions: int
    digital_transactions: int
    cash_share_percent: Decimal
    digital_share_percent: Decimal
    bulk_purchases: int
    pass_holders: int
    total_revenue: Decimal
    total_fees_collected: Decimal
    total_discounts_given: Decimal
    net_revenue: Decimal
    promote_passes: bool
    low_pass_adoption: bool


class KioskAnalyticsReadModel:
    """Process-wide aggregate; a fold over purchase and pass events."""

    projection_name = "kiosk_analytics"

    def __init__(self) -> None:
        self.total_revenue: Decimal = ZERO
        self.total_fees_collected: Decimal = ZERO
        self.total_discounts_given: Decimal = ZERO
        self.cash_transaction_count = 0
        self.digital_transaction_count = 0
        self.bulk_purchase_count = 0
        self.pass_holder_count = 0
        self._events_applied = 0

    def apply(self, event_type: str, payload: Dict[str, Any]) -> None:
        if event_type == WATER_PURCHASED_V1:
            self.total_revenue += payload["base_cost"]
            self.total_fees_collected += payload["fee"]
            self.total_discounts_given += payload["discount"]
            if payload["payment_method"] == PAYMENT_CASH:
                self.cash_transaction_count += 1
            elif payload["payment_method"] == PAYMENT_DIGITAL:
                self.digital_transaction_count += 1
            if payload["is_bulk"]:
                self.bulk_purchase_count += 1
            self._events_applied += 1

        elif event_type == PASS_PURCHASED_V1:
            self.pass_holder_count += 1
            self._events_applied += 1

    @classmethod
    def from_events(cls, events: Iterable) -> "KioskAnalyticsReadModel":
        """Rebuild from (event_type, payload) pairs or StoredEvent records."""
        model = cls()
        for event in events:
            if isinstance(event, tuple):
                model.apply(*event)
            else:
                model.apply(event.event_type, event.payload)
        return model

    @property
    def transaction_count(self) -> int:
        return self.cash_transaction_count + self.digital_transaction_count

    @property
    def net_revenue(self) -> Decimal:
        return self.total_revenue + self.total_fees_collected - self.total_discounts_given

    def snapshot(self) -> Dict[str, Any]:
        return {
            "total_revenue": self.total_revenue,
            "total_fees_collected": self.total_fees_collected,
            "total_discounts_given": self.total_discounts_given,
            "cash_transaction_count": self.cash_transaction_count,
            "digital_transaction_count": self.digital_transaction_count,
            "bulk_purchase_count": self.bulk_purchase_count,
            "pass_holder_count": self.pass_holder_count,
        }

    def matches(self, other: "KioskAnalyticsReadModel") -> bool:
        return self.snapshot() == other.snapshot()

    def report(self, *, total_users: int, total_transactions: int) -> AnalyticsReport:
        def share(count: int) -> Decimal:
            if total_transactions <= 0:
                return ZERO
            return Decimal(count * 100) / Decimal(total_transactions)

        return AnalyticsReport(
            total_users=total_users,
            total_transactions=total_transactions,
            cash_transactions=self.cash_transaction_count,
            digital_transactions=self.digital_transaction_count,
            cash_share_percent=share(self.cash_transaction_count),
            digital_share_percent=share(self.digital_transaction_count),
            bulk_purchases=self.bulk_purchase_count,
            pass_holders=self.pass_holder_count,
            total_revenue=self.total_revenue,
            total_fees_collected=self.total_fees_collected,
            total_discounts_given=self.total_discounts_given,
            net_revenue=self.net_revenue,
            promote_passes=self.digital_transaction_count < self.cash_transaction_count,
            low_pass_adoption=(
                Decimal(self.pass_holder_count) < total_users * LOW_PASS_ADOPTION_RATIO
            ),
        )

    @property
    def event_count(self) -> int:
        return self._events_applied

    def truncate(self) -> None:
        self.total_revenue = ZERO
        self.total_fees_collected = ZERO
        self.total_discounts_given = ZERO
        self.cash_transaction_count = 0
        self.digital_transaction_count = 0
        self.bulk_purchase_count = 0
        self.pass_holder_count = 0
        self._events_applied = 0
        logger.debug(f"Projection '{self.projection_name}' truncated.")
