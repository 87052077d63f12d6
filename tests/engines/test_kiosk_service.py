"""
Kiosk Service — End-to-End Tests
================================
Registration, top-ups, purchases, passes and the read side, driven
through KioskService with a frozen clock.

Every rejection must leave users, ledger, analytics and the event
store exactly as they were.
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from config.settings import KioskSettings
from core.time.clock import FixedClock

NOW = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)
D = Decimal


def _service(**settings_overrides):
    from engines.kiosk.services import KioskService

    clock = FixedClock(NOW)
    settings = KioskSettings(**settings_overrides)
    return KioskService(settings=settings, clock=clock), clock


def _registered(svc, *, name="Amina", is_student=False, balance=None):
    outcome = svc.register_user(name, "0700000000", is_student)
    assert outcome.is_accepted
    user_id = outcome.result.user_id
    if balance is not None:
        assert svc.top_up(user_id, balance).is_accepted
    return user_id


def _state(svc, user_id):
    return (
        svc.get_user(user_id),
        svc.ledger.count,
        svc.analytics.snapshot(),
        svc.event_store.event_count,
    )


# ══════════════════════════════════════════════════════════════
# REGISTRATION
# ══════════════════════════════════════════════════════════════

class TestRegistration:
    def test_sequential_ids_and_zeroed_fields(self):
        svc, _ = _service()
        first = _registered(svc)
        second = _registered(svc, name="Brian", is_student=True)
        assert (first, second) == (1, 2)

        user = svc.get_user(second)
        assert user.is_student
        assert user.wallet_balance == 0
        assert user.total_spent == 0
        assert user.loyalty_points == 0
        assert user.pass_kind == "NONE"
        assert user.pass_expiry is None
        assert user.registered_at == NOW

    def test_blank_name_rejected(self):
        svc, _ = _service()
        outcome = svc.register_user("  ", "0700")
        assert outcome.reason_code == "INVALID_REGISTRATION"
        assert svc.projection_store.user_count == 0

    def test_registry_capacity(self):
        svc, _ = _service(max_users=1)
        _registered(svc)
        outcome = svc.register_user("Brian", "0711")
        assert outcome.reason_code == "REGISTRY_FULL"
        assert svc.projection_store.user_count == 1

    def test_get_user_is_detached(self):
        svc, _ = _service()
        uid = _registered(svc)
        copy = svc.get_user(uid)
        copy.wallet_balance = D("1000")
        assert svc.get_user(uid).wallet_balance == 0
        assert svc.get_user(99) is None


# ══════════════════════════════════════════════════════════════
# TOP-UP
# ══════════════════════════════════════════════════════════════

class TestTopUp:
    def test_bonus_at_threshold(self):
        svc, _ = _service()
        uid = _registered(svc)
        outcome = svc.top_up(uid, 100)
        assert outcome.result.bonus == D("2.00")
        assert outcome.result.new_balance == D("102.00")

    def test_no_bonus_below_threshold(self):
        svc, _ = _service()
        uid = _registered(svc)
        outcome = svc.top_up(uid, 99.99)
        assert outcome.result.bonus == 0
        assert svc.get_user(uid).wallet_balance == D("99.99")

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amount(self, amount):
        svc, _ = _service()
        uid = _registered(svc)
        before = _state(svc, uid)
        outcome = svc.top_up(uid, amount)
        assert outcome.reason_code == "INVALID_AMOUNT"
        assert _state(svc, uid) == before

    def test_unknown_user(self):
        svc, _ = _service()
        assert svc.top_up(42, 10).reason_code == "USER_NOT_FOUND"


# ══════════════════════════════════════════════════════════════
# WATER PURCHASE
# ══════════════════════════════════════════════════════════════

class TestWaterPurchase:
    @pytest.mark.parametrize("liters", [0, -3, D("-0.5")])
    def test_invalid_quantity_changes_nothing(self, liters):
        svc, _ = _service()
        uid = _registered(svc, balance=50)
        before = _state(svc, uid)
        outcome = svc.purchase_water(uid, liters, "DIGITAL")
        assert outcome.is_rejected
        assert outcome.reason_code == "INVALID_QUANTITY"
        assert _state(svc, uid) == before

    def test_unknown_user_checked_first(self):
        svc, _ = _service()
        outcome = svc.purchase_water(5, 0, "BITCOIN")
        assert outcome.reason_code == "USER_NOT_FOUND"

    def test_invalid_payment_method(self):
        svc, _ = _service()
        uid = _registered(svc)
        assert svc.purchase_water(uid, 5, "CARD").reason_code == "INVALID_PAYMENT_METHOD"

    def test_insufficient_funds_leaves_wallet(self):
        svc, _ = _service()
        uid = _registered(svc, balance=D("5.00"))
        before = _state(svc, uid)
        # 2.5 L = 5.00 + 1.00 fee
        outcome = svc.purchase_water(uid, D("2.5"), "DIGITAL")
        assert outcome.reason_code == "INSUFFICIENT_FUNDS"
        assert svc.get_user(uid).wallet_balance == D("5.00")
        assert _state(svc, uid) == before

    def test_exact_balance_is_enough(self):
        svc, _ = _service()
        uid = _registered(svc, balance=D("6.00"))
        outcome = svc.purchase_water(uid, D("2.5"), "DIGITAL")
        assert outcome.is_accepted
        assert outcome.result.wallet_balance == 0

    def test_digital_purchase_updates_everything(self):
        svc, _ = _service()
        uid = _registered(svc, balance=20)
        outcome = svc.purchase_water(uid, 5, "digital")
        receipt = outcome.result

        assert receipt.transaction_id == 1
        assert receipt.base_cost == D("10.00")
        assert receipt.discount == 0
        assert receipt.fee == D("1.00")
        assert receipt.final_amount == D("11.00")
        assert receipt.wallet_balance == D("9.00")
        assert receipt.points_earned == 10
        assert receipt.loyalty_points == 10

        user = svc.get_user(uid)
        assert user.total_spent == D("10.00")
        assert user.transaction_count == 1

        txn = svc.ledger.get(1)
        assert txn.user_id == uid
        assert txn.amount == D("11.00")
        assert txn.fee_charged == D("1.00")
        assert txn.payment_method == "DIGITAL"
        assert txn.timestamp == NOW

    def test_cash_purchase_keeps_wallet_and_discount(self):
        svc, _ = _service()
        uid = _registered(svc, is_student=True)
        receipt = svc.purchase_water(uid, 5, "CASH").result
        assert receipt.fee == 0
        assert receipt.discount == D("1.00")
        assert receipt.final_amount == D("9.00")
        assert receipt.wallet_balance == 0
        assert receipt.loyalty_points == 10

    def test_points_truncate_on_base_cost(self):
        svc, _ = _service()
        uid = _registered(svc)
        receipt = svc.purchase_water(uid, D("9.995"), "CASH").result
        assert receipt.base_cost == D("19.99")
        assert receipt.points_earned == 19

    def test_redemption_once_then_award(self):
        svc, _ = _service()
        uid = _registered(svc)
        svc.purchase_water(uid, 125, "CASH")          # base 250.00 → 250 points
        assert svc.get_user(uid).loyalty_points == 250

        receipt = svc.purchase_water(uid, 1, "CASH").result
        assert receipt.breakdown.points_redeemed == 100
        assert receipt.breakdown.redemption == D("5.00")
        assert receipt.breakdown.loyalty == D("12.50")
        assert receipt.loyalty_points == 152          # 250 - 100 + 2

        types = [e.event_type for e in svc.event_store.events()][-2:]
        assert types == ["kiosk.points.redeemed.v1", "kiosk.water.purchased.v1"]

    def test_discounts_beyond_base_cost_credit_the_wallet(self):
        svc, _ = _service()
        uid = _registered(svc, is_student=True, balance=200)   # 204.00 with bonus
        svc.purchase_water(uid, 90, "CASH")           # spend 180.00, 180 points

        receipt = svc.purchase_water(uid, D("0.5"), "DIGITAL").result
        # 1.00 - (0.10 student + 9.00 loyalty + 5.00 redemption)
        assert receipt.discount == D("14.10")
        assert receipt.fee == 0
        assert receipt.final_amount == D("-13.10")
        assert receipt.wallet_balance == D("217.10")
        assert svc.ledger.get(2).amount == D("-13.10")

    def test_money_carries_two_decimals(self):
        svc, _ = _service()
        uid = _registered(svc, is_student=True, balance=D("100.50"))
        receipt = svc.purchase_water(uid, D("3.333"), "DIGITAL").result
        assert receipt.base_cost == D("6.67")
        assert receipt.breakdown.student == D("0.67")
        for amount in (receipt.base_cost, receipt.discount, receipt.fee,
                       receipt.final_amount, receipt.wallet_balance):
            assert amount.as_tuple().exponent == -2

    def test_float_liters(self):
        svc, _ = _service()
        uid = _registered(svc)
        receipt = svc.purchase_water(uid, 12.5, "CASH").result
        assert receipt.liters == D("12.5")
        assert receipt.base_cost == D("25.00")
        assert receipt.breakdown.bulk == D("2.00")

    def test_ledger_capacity(self):
        svc, _ = _service(max_transactions=1)
        uid = _registered(svc)
        assert svc.purchase_water(uid, 1, "CASH").is_accepted
        outcome = svc.purchase_water(uid, 1, "CASH")
        assert outcome.reason_code == "LEDGER_FULL"
        assert svc.ledger.count == 1

    def test_transactions_by_user(self):
        svc, _ = _service()
        a = _registered(svc)
        b = _registered(svc, name="Brian")
        svc.purchase_water(a, 1, "CASH")
        svc.purchase_water(b, 2, "CASH")
        svc.purchase_water(a, 3, "CASH")
        assert [t.transaction_id for t in svc.transactions(a)] == [1, 3]
        assert len(svc.transactions()) == 3


# ══════════════════════════════════════════════════════════════
# PASSES
# ══════════════════════════════════════════════════════════════

class TestPasses:
    def test_valid_pass_waives_fee(self):
        svc, _ = _service()
        uid = _registered(svc, balance=20)
        receipt = svc.purchase_pass(uid, "WEEKLY").result
        assert receipt.wallet_balance == D("5.00")
        assert receipt.expires_at == NOW + timedelta(days=7)

        purchase = svc.purchase_water(uid, 1, "DIGITAL").result
        assert purchase.fee == 0
        assert purchase.fee_rule == "PASS_WAIVER"
        assert purchase.wallet_balance == D("3.00")

    def test_pass_expires_lazily(self):
        svc, clock = _service()
        uid = _registered(svc, balance=20)
        svc.purchase_pass(uid, "WEEKLY")
        clock.advance(days=7)                         # now == expiry, no longer valid

        purchase = svc.purchase_water(uid, 1, "DIGITAL").result
        assert purchase.fee == D("1.00")

        profile = svc.get_profile(uid)
        assert svc.get_user(uid).pass_kind == "WEEKLY"
        assert profile.active_pass == "NONE"
        assert not profile.pass_valid
        assert profile.pass_days_remaining == 0

    def test_new_pass_overwrites(self):
        svc, clock = _service()
        uid = _registered(svc, balance=100)
        svc.purchase_pass(uid, "WEEKLY")
        clock.advance(days=2)
        svc.purchase_pass(uid, "MONTHLY")

        user = svc.get_user(uid)
        assert user.pass_kind == "MONTHLY"
        assert user.pass_expiry == NOW + timedelta(days=32)
        assert user.wallet_balance == D("37.00")     # 102 - 15 - 50

    def test_insufficient_funds(self):
        svc, _ = _service()
        uid = _registered(svc, balance=D("14.99"))
        before = _state(svc, uid)
        outcome = svc.purchase_pass(uid, "WEEKLY")
        assert outcome.reason_code == "INSUFFICIENT_FUNDS"
        assert _state(svc, uid) == before

    @pytest.mark.parametrize("kind", ["YEARLY", "NONE"])
    def test_invalid_pass_type(self, kind):
        svc, _ = _service()
        uid = _registered(svc, balance=100)
        assert svc.purchase_pass(uid, kind).reason_code == "INVALID_PASS_TYPE"

    def test_days_remaining_truncated(self):
        svc, clock = _service()
        uid = _registered(svc, balance=20)
        svc.purchase_pass(uid, "WEEKLY")
        clock.advance(days=1.5)
        profile = svc.get_profile(uid)
        assert profile.pass_valid
        assert profile.active_pass == "WEEKLY"
        assert profile.pass_days_remaining == 5


# ══════════════════════════════════════════════════════════════
# READ SIDE
# ══════════════════════════════════════════════════════════════

class TestReadSide:
    def test_quote_is_read_only(self):
        svc, _ = _service()
        uid = _registered(svc)
        svc.purchase_water(uid, 125, "CASH")
        before = _state(svc, uid)

        outcome = svc.quote_purchase(uid, 1, "CASH")
        assert outcome.is_accepted
        assert outcome.result.quote.breakdown.points_redeemed == 100
        assert _state(svc, uid) == before
        assert svc.get_user(uid).loyalty_points == 250

    def test_quote_affordability(self):
        svc, _ = _service()
        uid = _registered(svc, balance=D("2.99"))
        result = svc.quote_purchase(uid, 1, "DIGITAL").result
        assert result.quote.final_amount == D("3.00")
        assert not result.affordable
        assert svc.quote_purchase(uid, 1, "CASH").result.affordable

    def test_quote_rejections(self):
        svc, _ = _service()
        assert svc.quote_purchase(1, 1, "CASH").reason_code == "USER_NOT_FOUND"

    def test_profile_fee_projection(self):
        svc, _ = _service(digital_fee=D("30.00"))
        uid = _registered(svc)
        profile = svc.get_profile(uid)
        assert profile.potential_monthly_fees == 0
        assert profile.monthly_pass_savings is None

        svc.purchase_water(uid, 1, "CASH")
        svc.purchase_water(uid, 1, "CASH")
        profile = svc.get_profile(uid)
        assert profile.potential_monthly_fees == D("60.00")
        assert profile.monthly_pass_savings == D("10.00")

    def test_profile_unknown_user(self):
        svc, _ = _service()
        assert svc.get_profile(3) is None

    def test_analytics_report(self):
        svc, _ = _service()
        a = _registered(svc, balance=100)
        b = _registered(svc, name="Brian")
        _registered(svc, name="Chen")
        svc.purchase_water(a, 10, "DIGITAL")
        svc.purchase_water(b, 2, "CASH")
        svc.purchase_water(b, 3, "CASH")
        svc.purchase_pass(a, "WEEKLY")

        report = svc.analytics_report()
        assert report.total_users == 3
        assert report.total_transactions == 3
        assert report.cash_transactions == 2
        assert report.digital_transactions == 1
        assert report.bulk_purchases == 1
        assert report.pass_holders == 1
        assert report.total_revenue == D("30.00")
        assert report.total_discounts_given == D("2.00")
        assert report.total_fees_collected == 0
        assert report.net_revenue == D("28.00")
        assert report.promote_passes
        assert not report.low_pass_adoption

    def test_pricing_info(self):
        svc, _ = _service()
        assert svc.pricing_info().digital_fee == D("1.00")

    def test_unknown_command_type_raises(self):
        from core.commands.base import Command

        svc, _ = _service()
        cmd = Command(
            command_id=uuid.uuid4(),
            command_type="kiosk.machine.restock.request",
            payload={},
            issued_at=NOW,
            source_engine="kiosk",
        )
        with pytest.raises(ValueError, match="Unsupported"):
            svc.execute(cmd)


# ══════════════════════════════════════════════════════════════
# CONSISTENCY & REPLAY
# ══════════════════════════════════════════════════════════════

class TestConsistency:
    def _busy(self):
        svc, clock = _service()
        a = _registered(svc, is_student=True, balance=150)
        b = _registered(svc, name="Brian", balance=30)
        svc.purchase_water(a, 30, "DIGITAL")
        svc.purchase_water(b, 2, "DIGITAL")
        svc.purchase_pass(b, "WEEKLY")
        svc.purchase_water(b, 1, "DIGITAL")
        clock.advance(days=8)
        svc.purchase_water(b, 1, "CASH")
        svc.purchase_water(a, 25, "CASH")
        svc.purchase_water(a, 1, "DIGITAL")
        svc.purchase_water(b, 100, "DIGITAL")           # rejected: funds
        return svc, (a, b)

    def test_analytics_matches_ledger_fold(self):
        svc, _ = self._busy()
        totals = svc.ledger.totals()
        assert totals.revenue == svc.analytics.total_revenue
        assert totals.fees == svc.analytics.total_fees_collected
        assert totals.discounts == svc.analytics.total_discounts_given
        assert totals.transaction_count == 6
        assert svc.verify_analytics()

    def test_sequences_and_registry_count(self):
        svc, _ = self._busy()
        count = svc.event_store.event_count
        assert [e.sequence for e in svc.event_store] == list(range(1, count + 1))
        assert svc.projection_store.event_count == count
        svc.rebuild_projections()
        assert svc.projection_store.event_count == count

    def test_drift_is_detected(self):
        svc, _ = self._busy()
        svc.analytics.total_revenue += D("1")
        assert not svc.verify_analytics()

    def test_rebuild_reproduces_state(self):
        svc, users = self._busy()
        before_users = [svc.get_user(uid) for uid in users]
        before_ledger = svc.transactions()
        before_analytics = svc.analytics.snapshot()

        replayed = svc.rebuild_projections()
        assert replayed == svc.event_store.event_count
        assert [svc.get_user(uid) for uid in users] == before_users
        assert svc.transactions() == before_ledger
        assert svc.analytics.snapshot() == before_analytics


# ══════════════════════════════════════════════════════════════
# CONCURRENCY & DEFAULT CLOCK
# ══════════════════════════════════════════════════════════════

class TestConcurrency:
    def test_parallel_purchases_cannot_overdraw(self):
        import threading

        svc, _ = _service()
        uid = _registered(svc, balance=10)
        barrier = threading.Barrier(20)
        outcomes = []

        def buy():
            barrier.wait()
            outcomes.append(svc.purchase_water(uid, 4, "DIGITAL"))  # 9.00 each

        threads = [threading.Thread(target=buy) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        accepted = [o for o in outcomes if o.is_accepted]
        assert len(outcomes) == 20
        assert len(accepted) == 1
        assert all(o.reason_code == "INSUFFICIENT_FUNDS" for o in outcomes if o.is_rejected)
        assert svc.get_user(uid).wallet_balance == D("1.00")
        assert svc.ledger.count == 1
        assert svc.verify_analytics()


class TestDefaultClock:
    def test_service_without_clock_uses_default(self):
        from core.time.clock import get_default_clock, set_default_clock
        from engines.kiosk.services import KioskService

        original = get_default_clock()
        later = NOW + timedelta(days=1)
        set_default_clock(FixedClock(later))
        try:
            svc = KioskService()
            uid = _registered(svc)
            assert svc.get_user(uid).registered_at == later
        finally:
            set_default_clock(original)
