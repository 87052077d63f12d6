"""
Kiosk Engine — Application Service
==================================
Purchase orchestration for the water kiosk.

Flow for every command:
    1. Dispatcher runs the policy chain for the command type
    2. Handler prices / prepares, may still reject (wallet balance)
    3. Events are built, appended to the event store in one batch
    4. Each event is applied to the registry, the ledger and analytics

Steps 1-4 run inside one lock. Nothing is mutated before step 3, so a
rejected command leaves users, ledger and analytics untouched.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from functools import partial
from threading import RLock
from typing import Any, Dict, List, Optional

from config.settings import DEFAULT_SETTINGS, KioskSettings
from core.commands.base import Command
from core.commands.dispatcher import CommandDispatcher
from core.commands.outcomes import CommandOutcome
from core.event_store.memory import InMemoryEventStore
from core.primitives.money import ZERO
from core.time.clock import Clock, get_default_clock
from core.time.temporal import expiry_after
from engines.kiosk.commands import (
    KIOSK_PASS_PURCHASE_REQUEST,
    KIOSK_USER_REGISTER_REQUEST,
    KIOSK_WALLET_TOP_UP_REQUEST,
    KIOSK_WATER_PURCHASE_REQUEST,
    PASS_MONTHLY,
    PASS_NONE,
    PAYMENT_DIGITAL,
    PurchasePassRequest,
    PurchaseWaterRequest,
    RegisterUserRequest,
    TopUpWalletRequest,
)
from engines.kiosk.events import (
    PASS_PURCHASED_V1,
    POINTS_REDEEMED_V1,
    USER_REGISTERED_V1,
    WALLET_TOPPED_UP_V1,
    WATER_PURCHASED_V1,
    build_pass_purchased_payload,
    build_points_redeemed_payload,
    build_user_registered_payload,
    build_wallet_topped_up_payload,
    build_water_purchased_payload,
)
from engines.kiosk.ledger import Transaction, TransactionLedger
from engines.kiosk.pass_validator import (
    active_pass_kind,
    is_pass_valid,
    pass_days_remaining,
)
from engines.kiosk.policies import (
    amount_must_be_positive_policy,
    ledger_capacity_policy,
    pass_kind_must_be_valid_policy,
    payment_method_must_be_valid_policy,
    quantity_must_be_positive_policy,
    registration_must_have_name_policy,
    registry_capacity_policy,
    sufficient_wallet_balance_policy,
    user_must_exist_policy,
)
from engines.kiosk.pricing_engine import (
    DiscountBreakdown,
    PriceQuote,
    PricingInfo,
    pricing_info,
    quote_purchase,
    topup_bonus,
)
from projections.kiosk import AnalyticsReport, KioskAnalyticsReadModel

logger = logging.getLogger("kiosk.engine")


# ── User Registry ─────────────────────────────────────────────

@dataclass
class UserRecord:
    """Mutable user state; only KioskProjectionStore.apply writes to it."""
    user_id: int
    name: str
    phone: str
    is_student: bool
    registered_at: datetime
    wallet_balance: Decimal = ZERO
    total_spent: Decimal = ZERO
    transaction_count: int = 0
    loyalty_points: int = 0
    pass_kind: str = PASS_NONE
    pass_expiry: Optional[datetime] = None


class KioskProjectionStore:
    """In-memory user registry keyed by user id."""

    def __init__(self):
        self._events_applied = 0
        self._users: Dict[int, UserRecord] = {}

    def apply(self, event_type: str, payload: Dict[str, Any]) -> None:
        self._events_applied += 1

        if event_type == USER_REGISTERED_V1:
            uid = payload["user_id"]
            if uid in self._users:
                raise ValueError(f"User {uid} is already registered.")
            self._users[uid] = UserRecord(
                user_id=uid,
                name=payload["name"],
                phone=payload["phone"],
                is_student=payload["is_student"],
                registered_at=payload["registered_at"],
            )

        elif event_type == WALLET_TOPPED_UP_V1:
            user = self._users[payload["user_id"]]
            user.wallet_balance += payload["credited"]

        elif event_type == POINTS_REDEEMED_V1:
            user = self._users[payload["user_id"]]
            user.loyalty_points -= payload["points"]

        elif event_type == WATER_PURCHASED_V1:
            user = self._users[payload["user_id"]]
            user.wallet_balance -= payload["wallet_debit"]
            user.total_spent += payload["base_cost"]
            user.transaction_count += 1
            user.loyalty_points += payload["points_earned"]

        elif event_type == PASS_PURCHASED_V1:
            user = self._users[payload["user_id"]]
            user.wallet_balance -= payload["cost"]
            user.pass_kind = payload["pass_kind"]
            user.pass_expiry = payload["expires_at"]

    def get_user(self, user_id) -> Optional[UserRecord]:
        return self._users.get(user_id)

    def users(self) -> List[UserRecord]:
        return [self._users[uid] for uid in sorted(self._users)]

    @property
    def user_count(self) -> int:
        return len(self._users)

    @property
    def next_user_id(self) -> int:
        return max(self._users, default=0) + 1

    @property
    def event_count(self) -> int:
        return self._events_applied

    def truncate(self):
        self._events_applied = 0
        self._users.clear()


# ── Receipts & Views ──────────────────────────────────────────

@dataclass(frozen=True)
class RegistrationReceipt:
    user_id: int
    name: str
    is_student: bool


@dataclass(frozen=True)
class TopUpReceipt:
    user_id: int
    amount: Decimal
    bonus: Decimal
    new_balance: Decimal


@dataclass(frozen=True)
class PurchaseReceipt:
    transaction_id: int
    user_id: int
    user_name: str
    liters: Decimal
    payment_method: str
    base_cost: Decimal
    discount: Decimal
    breakdown: DiscountBreakdown
    fee: Decimal
    fee_rule: str
    final_amount: Decimal
    wallet_balance: Decimal
    points_earned: int
    loyalty_points: int


@dataclass(frozen=True)
class PassReceipt:
    user_id: int
    pass_kind: str
    cost: Decimal
    duration_days: int
    expires_at: datetime
    wallet_balance: Decimal


@dataclass(frozen=True)
class PurchaseQuote:
    quote: PriceQuote
    wallet_balance: Decimal
    affordable: bool


@dataclass(frozen=True)
class UserProfile:
    user_id: int
    name: str
    phone: str
    is_student: bool
    wallet_balance: Decimal
    total_spent: Decimal
    transaction_count: int
    loyalty_points: int
    pass_valid: bool
    active_pass: str
    pass_days_remaining: int
    potential_monthly_fees: Decimal
    monthly_pass_savings: Optional[Decimal]


# ── Service ───────────────────────────────────────────────────

class KioskService:
    """Water kiosk engine. Every mutation goes through execute()."""

    def __init__(
        self,
        *,
        settings: Optional[KioskSettings] = None,
        clock: Optional[Clock] = None,
        event_store: Optional[InMemoryEventStore] = None,
        projection_store: Optional[KioskProjectionStore] = None,
        ledger: Optional[TransactionLedger] = None,
        analytics: Optional[KioskAnalyticsReadModel] = None,
    ):
        self._settings = settings or DEFAULT_SETTINGS
        self._clock = clock or get_default_clock()
        self._event_store = event_store or InMemoryEventStore()
        self._projection = projection_store or KioskProjectionStore()
        self._ledger = ledger or TransactionLedger()
        self._analytics = analytics or KioskAnalyticsReadModel()
        self._lock = RLock()
        self._dispatcher = CommandDispatcher()
        self._register_policies()
        self._handlers = {
            KIOSK_USER_REGISTER_REQUEST: self._handle_register_user,
            KIOSK_WALLET_TOP_UP_REQUEST: self._handle_top_up,
            KIOSK_WATER_PURCHASE_REQUEST: self._handle_water_purchase,
            KIOSK_PASS_PURCHASE_REQUEST: self._handle_pass_purchase,
        }

    def _register_policies(self) -> None:
        d = self._dispatcher
        s = self._settings
        user_exists = partial(user_must_exist_policy, user_lookup=self._projection.get_user)

        d.register_policy(KIOSK_USER_REGISTER_REQUEST, registration_must_have_name_policy)
        d.register_policy(KIOSK_USER_REGISTER_REQUEST, partial(
            registry_capacity_policy,
            user_count_lookup=lambda: self._projection.user_count,
            max_users=s.max_users,
        ))

        d.register_policy(KIOSK_WALLET_TOP_UP_REQUEST, user_exists)
        d.register_policy(KIOSK_WALLET_TOP_UP_REQUEST, amount_must_be_positive_policy)

        d.register_policy(KIOSK_WATER_PURCHASE_REQUEST, user_exists)
        d.register_policy(KIOSK_WATER_PURCHASE_REQUEST, quantity_must_be_positive_policy)
        d.register_policy(KIOSK_WATER_PURCHASE_REQUEST, payment_method_must_be_valid_policy)
        d.register_policy(KIOSK_WATER_PURCHASE_REQUEST, partial(
            ledger_capacity_policy,
            transaction_count_lookup=lambda: self._ledger.count,
            max_transactions=s.max_transactions,
        ))

        d.register_policy(KIOSK_PASS_PURCHASE_REQUEST, user_exists)
        d.register_policy(KIOSK_PASS_PURCHASE_REQUEST, partial(
            pass_kind_must_be_valid_policy, plan_lookup=s.pass_plan,
        ))
        d.register_policy(KIOSK_PASS_PURCHASE_REQUEST, partial(
            sufficient_wallet_balance_policy,
            balance_lookup=self._balance_of,
            amount_due_lookup=lambda c: s.pass_plan(c.payload["pass_kind"]).cost,
        ))

    def _balance_of(self, user_id) -> Decimal:
        return self._projection.get_user(user_id).wallet_balance

    # ── Command execution ─────────────────────────────────────

    def execute(self, command: Command) -> CommandOutcome:
        handler = self._handlers.get(command.command_type)
        if handler is None:
            raise ValueError(f"Unsupported: {command.command_type}")

        with self._lock:
            decision = self._dispatcher.dispatch(command)
            if decision.is_rejected:
                return decision
            outcome = handler(command)

        if outcome.is_accepted:
            logger.info(f"Command {command.command_id} ACCEPTED ({command.command_type})")
        return outcome

    def _commit(self, events, occurred_at: datetime) -> None:
        for stored in self._event_store.append_batch(events, occurred_at):
            self._apply(stored.event_type, stored.payload)

    def _apply(self, event_type: str, payload: Dict[str, Any]) -> None:
        self._projection.apply(event_type, payload)
        self._ledger.apply(event_type, payload)
        self._analytics.apply(event_type, payload)

    def _price(self, user: UserRecord, liters: Decimal, payment_method: str,
               now: datetime) -> PriceQuote:
        return quote_purchase(
            user, liters, payment_method,
            pass_valid=is_pass_valid(user, now),
            settings=self._settings,
        )

    def _handle_register_user(self, command: Command) -> CommandOutcome:
        user_id = self._projection.next_user_id
        payload = build_user_registered_payload(command, user_id=user_id)
        self._commit([(USER_REGISTERED_V1, payload)], command.issued_at)
        return CommandOutcome.accepted(command, RegistrationReceipt(
            user_id=user_id,
            name=payload["name"],
            is_student=payload["is_student"],
        ))

    def _handle_top_up(self, command: Command) -> CommandOutcome:
        amount = command.payload["amount"]
        bonus = topup_bonus(amount, self._settings)
        payload = build_wallet_topped_up_payload(command, bonus=bonus)
        self._commit([(WALLET_TOPPED_UP_V1, payload)], command.issued_at)
        return CommandOutcome.accepted(command, TopUpReceipt(
            user_id=payload["user_id"],
            amount=amount,
            bonus=bonus,
            new_balance=self._balance_of(payload["user_id"]),
        ))

    def _handle_water_purchase(self, command: Command) -> CommandOutcome:
        p = command.payload
        user = self._projection.get_user(p["user_id"])
        quote = self._price(user, p["liters"], p["payment_method"], command.issued_at)

        if quote.payment_method == PAYMENT_DIGITAL:
            rejection = sufficient_wallet_balance_policy(
                command,
                balance_lookup=self._balance_of,
                amount_due_lookup=lambda _c: quote.final_amount,
            )
            if rejection is not None:
                logger.info(
                    f"Command {command.command_id} rejected by "
                    f"policy '{rejection.policy_name}': "
                    f"[{rejection.code}] {rejection.message}"
                )
                return CommandOutcome.rejected(command, rejection)

        txn_id = self._ledger.next_transaction_id
        events = []
        if quote.breakdown.points_redeemed:
            events.append((POINTS_REDEEMED_V1, build_points_redeemed_payload(
                command,
                points=quote.breakdown.points_redeemed,
                discount_value=quote.breakdown.redemption,
                transaction_id=txn_id,
            )))
        events.append((WATER_PURCHASED_V1, build_water_purchased_payload(
            command, transaction_id=txn_id, quote=quote,
        )))
        self._commit(events, command.issued_at)

        return CommandOutcome.accepted(command, PurchaseReceipt(
            transaction_id=txn_id,
            user_id=user.user_id,
            user_name=user.name,
            liters=quote.liters,
            payment_method=quote.payment_method,
            base_cost=quote.base_cost,
            discount=quote.discount,
            breakdown=quote.breakdown,
            fee=quote.fee,
            fee_rule=quote.fee_rule,
            final_amount=quote.final_amount,
            wallet_balance=user.wallet_balance,
            points_earned=quote.points_earned,
            loyalty_points=user.loyalty_points,
        ))

    def _handle_pass_purchase(self, command: Command) -> CommandOutcome:
        plan = self._settings.pass_plan(command.payload["pass_kind"])
        # a new pass replaces the old one; remaining validity is not carried over
        expires_at = expiry_after(command.issued_at, plan.duration_days)
        payload = build_pass_purchased_payload(command, plan=plan, expires_at=expires_at)
        self._commit([(PASS_PURCHASED_V1, payload)], command.issued_at)
        return CommandOutcome.accepted(command, PassReceipt(
            user_id=payload["user_id"],
            pass_kind=plan.kind,
            cost=plan.cost,
            duration_days=plan.duration_days,
            expires_at=expires_at,
            wallet_balance=self._balance_of(payload["user_id"]),
        ))

    # ── Convenience entry points (stamped by the clock) ───────

    def register_user(self, name: str, phone: str, is_student: bool = False) -> CommandOutcome:
        return self.execute(RegisterUserRequest(
            name=name, phone=phone, is_student=is_student,
        ).to_command(issued_at=self._clock.now_utc()))

    def top_up(self, user_id: int, amount) -> CommandOutcome:
        return self.execute(TopUpWalletRequest(
            user_id=user_id, amount=amount,
        ).to_command(issued_at=self._clock.now_utc()))

    def purchase_water(self, user_id: int, liters, payment_method: str) -> CommandOutcome:
        return self.execute(PurchaseWaterRequest(
            user_id=user_id, liters=liters, payment_method=payment_method,
        ).to_command(issued_at=self._clock.now_utc()))

    def purchase_pass(self, user_id: int, pass_kind: str) -> CommandOutcome:
        return self.execute(PurchasePassRequest(
            user_id=user_id, pass_kind=pass_kind,
        ).to_command(issued_at=self._clock.now_utc()))

    def quote_purchase(self, user_id: int, liters, payment_method: str) -> CommandOutcome:
        """Price a purchase exactly as purchase_water would, changing nothing."""
        command = PurchaseWaterRequest(
            user_id=user_id, liters=liters, payment_method=payment_method,
        ).to_command(issued_at=self._clock.now_utc())
        with self._lock:
            decision = self._dispatcher.dispatch(command)
            if decision.is_rejected:
                return decision
            user = self._projection.get_user(user_id)
            quote = self._price(user, command.payload["liters"],
                                command.payload["payment_method"], command.issued_at)
            balance = user.wallet_balance
        return CommandOutcome.accepted(command, PurchaseQuote(
            quote=quote,
            wallet_balance=balance,
            affordable=balance >= quote.wallet_debit,
        ))

    # ── Queries ───────────────────────────────────────────────

    def get_user(self, user_id: int) -> Optional[UserRecord]:
        """Detached copy; edits to it do not reach the registry."""
        with self._lock:
            user = self._projection.get_user(user_id)
            return dataclasses.replace(user) if user else None

    def get_profile(self, user_id: int, now: Optional[datetime] = None) -> Optional[UserProfile]:
        now = now or self._clock.now_utc()
        with self._lock:
            user = self._projection.get_user(user_id)
            if user is None:
                return None
            potential = user.transaction_count * self._settings.digital_fee
            monthly = self._settings.pass_plan(PASS_MONTHLY)
            savings = None
            if monthly is not None and potential > monthly.cost:
                savings = potential - monthly.cost
            return UserProfile(
                user_id=user.user_id,
                name=user.name,
                phone=user.phone,
                is_student=user.is_student,
                wallet_balance=user.wallet_balance,
                total_spent=user.total_spent,
                transaction_count=user.transaction_count,
                loyalty_points=user.loyalty_points,
                pass_valid=is_pass_valid(user, now),
                active_pass=active_pass_kind(user, now),
                pass_days_remaining=pass_days_remaining(user, now),
                potential_monthly_fees=potential,
                monthly_pass_savings=savings,
            )

    def transactions(self, user_id: Optional[int] = None) -> List[Transaction]:
        with self._lock:
            if user_id is None:
                return self._ledger.all()
            return self._ledger.for_user(user_id)

    def pricing_info(self) -> PricingInfo:
        return pricing_info(self._settings)

    def analytics_report(self) -> AnalyticsReport:
        with self._lock:
            return self._analytics.report(
                total_users=self._projection.user_count,
                total_transactions=self._ledger.count,
            )

    def verify_analytics(self) -> bool:
        """Replay the event store into a fresh model and fold the ledger; both must agree."""
        with self._lock:
            rebuilt = KioskAnalyticsReadModel.from_events(self._event_store.events())
            totals = self._ledger.totals()
            consistent = (
                rebuilt.matches(self._analytics)
                and totals.revenue == self._analytics.total_revenue
                and totals.fees == self._analytics.total_fees_collected
                and totals.discounts == self._analytics.total_discounts_given
                and totals.transaction_count == self._analytics.transaction_count
            )
        if not consistent:
            logger.warning("Analytics drifted from the event store.")
        return consistent

    def rebuild_projections(self) -> int:
        """Drop registry, ledger and analytics and replay every stored event."""
        with self._lock:
            self._projection.truncate()
            self._ledger.truncate()
            self._analytics.truncate()
            return self._event_store.replay(self._apply)

    @property
    def settings(self) -> KioskSettings:
        return self._settings

    @property
    def projection_store(self) -> KioskProjectionStore:
        return self._projection

    @property
    def ledger(self) -> TransactionLedger:
        return self._ledger

    @property
    def analytics(self) -> KioskAnalyticsReadModel:
        return self._analytics

    @property
    def event_store(self) -> InMemoryEventStore:
        return self._event_store
