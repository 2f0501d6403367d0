"""
models.py
Domain types (categories, sports, members, payments, costs) and code lookups.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

# Default monthly prices per category and discount settings
DEFAULT_PRICES = {
    "A": 5000,
    "B": 3000,
    "C": 2000,
}
DEFAULT_DISCOUNT_AMOUNT = 500
DEFAULT_STREAK_REQUIRED = 3

# Report-only activity code: the gym is open to every category
GYM_CODE = 8

# Offsets (in days) used when emitting payments
FIRST_PAYMENT_DUE_DAYS = 10
BILLING_PERIOD_DAYS = 30


class Category(str, Enum):
    A = "A"  # every sport plus gym
    B = "B"  # one chosen sport plus gym
    C = "C"  # gym only


class Sport(str, Enum):
    FOOTBALL = "Football"
    BASKETBALL = "Basketball"
    RUGBY = "Rugby"
    HOCKEY = "Hockey"
    SWIMMING = "Swimming"
    TENNIS = "Tennis"
    PADDLE = "Paddle"


CATEGORY_CODES = {
    1: Category.A,
    2: Category.B,
    3: Category.C,
}

SPORT_CODES = {
    1: Sport.FOOTBALL,
    2: Sport.BASKETBALL,
    3: Sport.RUGBY,
    4: Sport.HOCKEY,
    5: Sport.SWIMMING,
    6: Sport.TENNIS,
    7: Sport.PADDLE,
}


def category_from_code(code) -> Category | None:
    return CATEGORY_CODES.get(code)


def activity_from_code(code) -> Sport | None:
    return SPORT_CODES.get(code)


def code_for_category(category: Category) -> int:
    return next(k for k, v in CATEGORY_CODES.items() if v == category)


def code_for_sport(sport: Sport) -> int:
    return next(k for k, v in SPORT_CODES.items() if v == sport)


@dataclass(frozen=True)
class Member:
    full_name: str
    member_id: int
    category: Category
    activity: Sport | None = None

    @classmethod
    def build(cls, full_name: str, member_id: int, category: Category, activity: Sport | None) -> "Member":
        """
        Category decides the activity: only B members keep a chosen sport.
        """
        return cls(
            full_name=full_name,
            member_id=member_id,
            category=category,
            activity=activity if category == Category.B else None,
        )


@dataclass(frozen=True)
class Payment:
    member_id: int
    amount: int
    due_date: int  # ms since epoch
    settlement_date: int | None = None
    discounted: bool = False

    @property
    def is_pending(self) -> bool:
        return self.settlement_date is None

    @property
    def is_settled(self) -> bool:
        return self.settlement_date is not None

    def is_overdue(self, now: int) -> bool:
        return self.is_pending and now > self.due_date

    @property
    def on_time(self) -> bool:
        return self.is_settled and self.settlement_date <= self.due_date


@dataclass(frozen=True)
class CostConfiguration:
    price_a: int = DEFAULT_PRICES["A"]
    price_b: int = DEFAULT_PRICES["B"]
    price_c: int = DEFAULT_PRICES["C"]
    discount_amount: int = DEFAULT_DISCOUNT_AMOUNT
    streak_required: int = DEFAULT_STREAK_REQUIRED

    def price_for(self, category: Category) -> int:
        if category == Category.A:
            return self.price_a
        if category == Category.B:
            return self.price_b
        return self.price_c


@dataclass
class ClubState:
    owner: str
    costs: CostConfiguration = field(default_factory=CostConfiguration)
    members: list[Member] = field(default_factory=list)
    payments: list[Payment] = field(default_factory=list)
    staff: set[str] = field(default_factory=set)
    policy_enforced: bool = True
    last_billing_date: int | None = None


# ---------- Ledger filters (pure, order-preserving) ----------

def pending(payments: list[Payment]) -> list[Payment]:
    return [p for p in payments if p.is_pending]


def settled(payments: list[Payment]) -> list[Payment]:
    return [p for p in payments if p.is_settled]


def overdue(payments: list[Payment], now: int) -> list[Payment]:
    return [p for p in payments if p.is_overdue(now)]
