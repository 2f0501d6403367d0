"""
club.py
The club service: member registry, payment ledger, billing cycle and cost
settings over a single ClubState.

Every public operation takes the caller identity first, runs under one lock,
reads the clock once and either completes or raises a ClubError without
mutating anything.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from threading import RLock
from typing import Callable

import utils
from auth import Policy
from errors import (
    AlreadyExists,
    ArithmeticUnderflow,
    BillingNotDue,
    InvalidActivity,
    InvalidAmount,
    InvalidCategory,
    NoBillingYet,
    NoMatchingPendingPayment,
    NotFound,
)
from models import (
    BILLING_PERIOD_DAYS,
    FIRST_PAYMENT_DUE_DAYS,
    Category,
    ClubState,
    CostConfiguration,
    Member,
    Payment,
    activity_from_code,
    category_from_code,
    pending,
)

logger = logging.getLogger(__name__)


def _require_unsigned(value: int, what: str) -> None:
    if value < 0:
        raise InvalidAmount(f"{what} must be >= 0 (got {value}).")


class Club:
    def __init__(
        self,
        state: ClubState,
        clock: Callable[[], int] = utils.now_ms,
        on_change: Callable[[ClubState], None] | None = None,
    ):
        self.state = state
        self.clock = clock
        self.on_change = on_change
        self.policy = Policy(state)
        self.lock = RLock()

    @classmethod
    def new(cls, owner: str, **kwargs) -> "Club":
        return cls(ClubState(owner=owner), **kwargs)

    def _committed(self) -> None:
        if self.on_change is not None:
            self.on_change(self.state)

    # ---------- Authorization ----------

    def may_act(self, caller: str) -> bool:
        with self.lock:
            return self.policy.may_act(caller)

    def is_admin(self, caller: str) -> bool:
        with self.lock:
            return self.policy.is_admin(caller)

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        with self.lock:
            self.policy.transfer_ownership(caller, new_owner)
            self._committed()

    def add_staff(self, caller: str, identity: str) -> None:
        with self.lock:
            self.policy.add_staff(caller, identity)
            self._committed()

    def remove_staff(self, caller: str, identity: str) -> None:
        with self.lock:
            self.policy.remove_staff(caller, identity)
            self._committed()

    def list_staff(self, caller: str) -> list[str]:
        with self.lock:
            self.policy.require_staff_or_admin(caller)
            return sorted(self.state.staff)

    def toggle_enforcement(self, caller: str) -> bool:
        with self.lock:
            enforced = self.policy.toggle_enforcement(caller)
            self._committed()
            return enforced

    def get_enforcement(self, caller: str) -> bool:
        with self.lock:
            self.policy.require_staff_or_admin(caller)
            return self.state.policy_enforced

    # ---------- Members ----------

    def member_exists(self, member_id: int) -> bool:
        return any(m.member_id == member_id for m in self.state.members)

    def register_member(
        self,
        caller: str,
        member_id: int,
        full_name: str,
        category_code: int,
        activity_code: int | None = None,
    ) -> Payment:
        with self.lock:
            self.policy.require_may_act(caller)
            now = self.clock()

            _require_unsigned(member_id, "Member id")
            if self.member_exists(member_id):
                raise AlreadyExists(f"Member {member_id} is already registered.")
            category = category_from_code(category_code)
            if category is None:
                raise InvalidCategory(f"No category with code {category_code}.")
            activity = None
            if activity_code is not None:
                activity = activity_from_code(activity_code)
                if activity is None:
                    raise InvalidActivity(f"No activity with code {activity_code}.")

            member = Member.build(full_name, member_id, category, activity)
            payment = Payment(
                member_id=member_id,
                amount=self.state.costs.price_for(category),
                due_date=now + utils.days(FIRST_PAYMENT_DUE_DAYS),
            )
            self.state.payments.append(payment)
            self.state.members.append(member)
            if self.state.last_billing_date is None:
                self.state.last_billing_date = now

            logger.info("Registered member %s (%s) by %s", member_id, category.value, caller)
            self._committed()
            return payment

    def get_member(self, caller: str, member_id: int) -> Member | None:
        with self.lock:
            self.policy.require_may_act(caller)
            return next((m for m in self.state.members if m.member_id == member_id), None)

    def list_members(self, caller: str) -> list[Member]:
        with self.lock:
            self.policy.require_may_act(caller)
            return list(self.state.members)

    # ---------- Ledger ----------

    def _payments_for(self, member_id: int) -> list[Payment]:
        return [p for p in self.state.payments if p.member_id == member_id]

    def payment_history(self, caller: str, member_id: int | None = None) -> list[Payment]:
        with self.lock:
            self.policy.require_may_act(caller)
            if member_id is None:
                return list(self.state.payments)
            return self._payments_for(member_id)

    def settle_payment(self, caller: str, member_id: int, amount: int) -> Payment:
        """
        Settle the first pending payment (ledger order) of `member_id` whose
        amount matches exactly. Equal pending amounts resolve to the oldest one.
        """
        with self.lock:
            self.policy.require_may_act(caller)
            now = self.clock()
            if not self.member_exists(member_id):
                raise NotFound(f"Member {member_id} does not exist.")

            for i, p in enumerate(self.state.payments):
                if p.is_pending and p.member_id == member_id and p.amount == amount:
                    paid = replace(p, settlement_date=now)
                    self.state.payments[i] = paid
                    logger.info("Settled payment of %s for member %s", amount, member_id)
                    self._committed()
                    return paid

            raise NoMatchingPendingPayment(
                f"Member {member_id} has no pending payment of {amount}."
            )

    # ---------- Billing ----------

    def eligible_for_discount(self, member_id: int) -> bool:
        """
        True when the member's last `streak_required` payments were all settled
        on time and none of them was discounted.
        """
        streak = self.state.costs.streak_required
        history = self._payments_for(member_id)
        if len(history) < streak:
            return False
        recent = history[len(history) - streak:]
        for p in recent:
            if not p.on_time or p.discounted:
                return False
        return True

    def run_billing_cycle(self, caller: str) -> bool:
        with self.lock:
            self.policy.require_may_act(caller)
            now = self.clock()
            last = self.state.last_billing_date
            if last is None:
                raise NoBillingYet("No member has been registered yet.")
            if now < last + utils.days(BILLING_PERIOD_DAYS):
                raise BillingNotDue(
                    f"Next billing is due on {utils.format_ts(last + utils.days(BILLING_PERIOD_DAYS))}."
                )

            costs = self.state.costs
            due_date = now + utils.days(BILLING_PERIOD_DAYS)
            emitted: list[Payment] = []
            # All amounts are computed before anything is appended
            for member in self.state.members:
                eligible = self.eligible_for_discount(member.member_id)
                price = costs.price_for(member.category)
                if eligible:
                    if costs.discount_amount > price:
                        raise ArithmeticUnderflow(
                            f"Discount {costs.discount_amount} exceeds the "
                            f"{member.category.value} price {price}."
                        )
                    price -= costs.discount_amount
                emitted.append(
                    Payment(
                        member_id=member.member_id,
                        amount=price,
                        due_date=due_date,
                        discounted=eligible,
                    )
                )

            self.state.payments.extend(emitted)
            self.state.last_billing_date = now
            logger.info(
                "Billing cycle emitted %d payments (%d discounted)",
                len(emitted),
                sum(1 for p in emitted if p.discounted),
            )
            self._committed()
            return True

    def get_last_billing_date(self, caller: str) -> int | None:
        with self.lock:
            self.policy.require_may_act(caller)
            return self.state.last_billing_date

    def pending_payments(self, caller: str) -> list[Payment]:
        with self.lock:
            self.policy.require_may_act(caller)
            return pending(self.state.payments)

    # ---------- Costs ----------

    def get_costs(self, caller: str) -> CostConfiguration:
        with self.lock:
            self.policy.require_may_act(caller)
            return self.state.costs

    def update_category_price(self, caller: str, category_code: int, amount: int) -> bool:
        with self.lock:
            self.policy.require_staff_or_admin(caller)
            category = category_from_code(category_code)
            if category is None:
                raise InvalidCategory(f"No category with code {category_code}.")
            _require_unsigned(amount, "Price")
            field_name = {
                Category.A: "price_a",
                Category.B: "price_b",
                Category.C: "price_c",
            }[category]
            self.state.costs = replace(self.state.costs, **{field_name: amount})
            logger.info("Price of category %s set to %s", category.value, amount)
            self._committed()
            return True

    def update_discount_amount(self, caller: str, amount: int) -> bool:
        with self.lock:
            self.policy.require_staff_or_admin(caller)
            _require_unsigned(amount, "Discount")
            self.state.costs = replace(self.state.costs, discount_amount=amount)
            logger.info("Discount amount set to %s", amount)
            self._committed()
            return True

    def update_discount_streak(self, caller: str, n: int) -> bool:
        with self.lock:
            self.policy.require_staff_or_admin(caller)
            _require_unsigned(n, "Streak")
            self.state.costs = replace(self.state.costs, streak_required=n)
            logger.info("Discount streak set to %s", n)
            self._committed()
            return True
