"""
Tests for discount eligibility and the monthly billing cycle
"""

import pytest

import utils
from club import Club
from errors import ArithmeticUnderflow, BillingNotDue, NoBillingYet, PermissionDenied
from models import ClubState, CostConfiguration, Member, Category, Payment

DUE = 10_000


def club_with_history(payments, streak=2):
    state = ClubState(
        owner="owner",
        costs=CostConfiguration(streak_required=streak),
        members=[Member("X", 1, Category.A)],
        payments=list(payments),
    )
    return Club(state, clock=lambda: DUE)


# =============================================================================
# Discount eligibility
# =============================================================================

class TestEligibleForDiscount:
    def test_two_on_time_payments(self):
        club = club_with_history([
            Payment(1, 5000, DUE, settlement_date=DUE - 1),
            Payment(1, 5000, DUE, settlement_date=DUE),
        ])
        assert club.eligible_for_discount(1) is True

    def test_late_payment_breaks_streak(self):
        club = club_with_history([
            Payment(1, 5000, DUE, settlement_date=DUE - 1),
            Payment(1, 5000, DUE, settlement_date=DUE + 1),
        ])
        assert club.eligible_for_discount(1) is False

    def test_pending_payment_breaks_streak(self):
        club = club_with_history([
            Payment(1, 5000, DUE, settlement_date=DUE - 1),
            Payment(1, 5000, DUE),
        ])
        assert club.eligible_for_discount(1) is False

    def test_discounted_payment_breaks_streak(self):
        club = club_with_history([
            Payment(1, 5000, DUE, settlement_date=DUE - 1),
            Payment(1, 4500, DUE, settlement_date=DUE - 1, discounted=True),
        ])
        assert club.eligible_for_discount(1) is False

    def test_too_few_payments(self):
        club = club_with_history([Payment(1, 5000, DUE, settlement_date=DUE - 1)])
        assert club.eligible_for_discount(1) is False

    def test_only_most_recent_payments_count(self):
        club = club_with_history([
            Payment(1, 5000, DUE, settlement_date=DUE + 50),  # old late payment
            Payment(1, 5000, DUE, settlement_date=DUE),
            Payment(1, 5000, DUE, settlement_date=DUE),
        ])
        assert club.eligible_for_discount(1) is True

    def test_other_members_ignored(self):
        club = club_with_history([
            Payment(1, 5000, DUE, settlement_date=DUE),
            Payment(2, 5000, DUE),
            Payment(1, 5000, DUE, settlement_date=DUE),
        ])
        assert club.eligible_for_discount(1) is True

    def test_zero_streak_is_always_eligible(self):
        club = club_with_history([], streak=0)
        assert club.eligible_for_discount(1) is True


# =============================================================================
# Billing cycle
# =============================================================================

class TestRunBillingCycle:
    def test_no_billing_before_first_member(self, club):
        with pytest.raises(NoBillingYet):
            club.run_billing_cycle("owner")

    def test_requires_permission(self, club):
        with pytest.raises(PermissionDenied):
            club.run_billing_cycle("stranger")

    def test_cadence(self, club, clock):
        club.register_member("owner", 1, "X", 1)
        with pytest.raises(BillingNotDue):
            club.run_billing_cycle("owner")

        clock.advance(utils.days(30) - 1)
        with pytest.raises(BillingNotDue):
            club.run_billing_cycle("owner")

        clock.advance(1)
        assert club.run_billing_cycle("owner") is True
        assert club.state.last_billing_date == clock.now
        with pytest.raises(BillingNotDue):
            club.run_billing_cycle("owner")

    def test_one_payment_per_member(self, club, clock):
        club.register_member("owner", 1, "A", 1)
        club.register_member("owner", 2, "B", 2, 6)
        club.register_member("owner", 3, "C", 3)
        clock.advance(utils.days(30))
        club.run_billing_cycle("owner")

        emitted = club.payment_history("owner")[3:]
        assert [(p.member_id, p.amount) for p in emitted] == [(1, 5000), (2, 3000), (3, 2000)]
        assert all(p.is_pending and not p.discounted for p in emitted)
        assert all(p.due_date == clock.now + utils.days(30) for p in emitted)

    def test_discount_applied_after_streak(self, club, clock):
        club.update_discount_streak("owner", 2)
        club.register_member("owner", 1, "X", 1)
        club.settle_payment("owner", 1, 5000)

        clock.advance(utils.days(30))
        club.run_billing_cycle("owner")
        # one payment so far: not eligible yet
        assert club.payment_history("owner", 1)[-1].amount == 5000
        club.settle_payment("owner", 1, 5000)
        assert club.eligible_for_discount(1)

        clock.advance(utils.days(30))
        club.run_billing_cycle("owner")
        latest = club.payment_history("owner", 1)[-1]
        assert latest.amount == 4500
        assert latest.discounted is True
        # the discounted payment is now part of the recent window
        assert not club.eligible_for_discount(1)

    def test_late_settlement_not_discounted(self, club, clock):
        club.update_discount_streak("owner", 2)
        club.register_member("owner", 1, "X", 1)
        club.settle_payment("owner", 1, 5000)
        clock.advance(utils.days(30))
        club.run_billing_cycle("owner")

        clock.advance(utils.days(31))
        club.settle_payment("owner", 1, 5000)
        club.run_billing_cycle("owner")
        assert club.payment_history("owner", 1)[-1].discounted is False

    def test_underflow_fails_whole_cycle(self, club, clock):
        club.update_discount_streak("owner", 0)
        club.update_discount_amount("owner", 2500)
        club.register_member("owner", 1, "A", 1)
        club.register_member("owner", 3, "C", 3)
        started = club.state.last_billing_date
        clock.advance(utils.days(30))

        with pytest.raises(ArithmeticUnderflow):
            club.run_billing_cycle("owner")
        assert len(club.payment_history("owner")) == 2
        assert club.state.last_billing_date == started

    def test_discount_equal_to_price_is_free(self, club, clock):
        club.update_discount_streak("owner", 0)
        club.update_discount_amount("owner", 2000)
        club.register_member("owner", 3, "C", 3)
        clock.advance(utils.days(30))
        club.run_billing_cycle("owner")
        assert club.payment_history("owner", 3)[-1].amount == 0
