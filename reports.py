"""
reports.py
Delinquency, revenue and activity-eligibility reports.

The engine only needs three things from its data source: an access check and
full member / payment snapshots. `club.Club` provides them; tests can pass any
object with the same methods.
"""

from __future__ import annotations

from contextlib import nullcontext
from typing import Callable, Protocol

import utils
from errors import InvalidActivity, LedgerIntegrityError, PermissionDenied
from models import (
    GYM_CODE,
    Category,
    Member,
    Payment,
    activity_from_code,
    pending,
    settled,
)


class ClubDataSource(Protocol):
    def may_act(self, caller: str) -> bool: ...

    def list_members(self, caller: str) -> list[Member]: ...

    def payment_history(self, caller: str, member_id: int | None = None) -> list[Payment]: ...


class ReportingEngine:
    def __init__(self, source: ClubDataSource, clock: Callable[[], int] = utils.now_ms):
        self.source = source
        self.clock = clock

    def _snapshot(self):
        # Hold the source lock so members and payments come from the same state
        return getattr(self.source, "lock", None) or nullcontext()

    def _check_access(self, caller: str) -> None:
        if not self.source.may_act(caller):
            raise PermissionDenied(
                "Missing permissions or the authorization policy is enforced."
            )

    def delinquent_members(self, caller: str) -> list[Member]:
        """
        Members with at least one pending payment past its due date, in the
        order their first overdue payment appears in the ledger.
        """
        with self._snapshot():
            self._check_access(caller)
            payments = self.source.payment_history(caller)
            members = self.source.list_members(caller)
            return self._delinquent(payments, members, self.clock())

    @staticmethod
    def _delinquent(payments: list[Payment], members: list[Member], now: int) -> list[Member]:
        by_id = {m.member_id: m for m in members}
        result: list[Member] = []
        for p in pending(payments):
            if p.due_date >= now:
                continue
            member = by_id.get(p.member_id)
            if member is None:
                raise LedgerIntegrityError(f"Payment references unknown member {p.member_id}.")
            if member not in result:
                result.append(member)
        return result

    def revenue_by_category(self, caller: str) -> list[tuple[Category, int]]:
        with self._snapshot():
            self._check_access(caller)
            payments = self.source.payment_history(caller)
            members = self.source.list_members(caller)

        totals = {Category.A: 0, Category.B: 0, Category.C: 0}
        categories = {m.member_id: m.category for m in members}
        for p in settled(payments):
            category = categories.get(p.member_id)
            if category is None:
                raise LedgerIntegrityError(f"Payment references unknown member {p.member_id}.")
            totals[category] += p.amount
        return list(totals.items())

    def eligible_members_for_activity(self, caller: str, activity_code: int) -> list[Member]:
        """
        Non-delinquent members allowed into an activity. Category A members
        join every sport; the gym code admits everyone.
        """
        with self._snapshot():
            self._check_access(caller)
            if activity_code == GYM_CODE:
                sport = None
            else:
                sport = activity_from_code(activity_code)
                if sport is None:
                    raise InvalidActivity(f"No activity with code {activity_code}.")

            members = self.source.list_members(caller)
            delinquent = self.delinquent_members(caller)

        result = []
        for m in members:
            if m in delinquent:
                continue
            if sport is None or m.activity == sport or m.category == Category.A:
                result.append(m)
        return result
