"""
utils.py
Time conversion (ms), clock, tabular exports and sample data.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone

import pandas as pd

from errors import AlreadyExists
from models import Category, Member, Payment

MS_PER_SECOND = 1000
SECONDS_PER_HOUR = 3600
HOURS_PER_DAY = 24
DAYS_PER_WEEK = 7
DAYS_PER_MONTH = 30
DAYS_PER_YEAR = 365


def seconds(n: int) -> int:
    return n * MS_PER_SECOND


def hours(n: int) -> int:
    return seconds(n * SECONDS_PER_HOUR)


def days(n: int) -> int:
    return hours(n * HOURS_PER_DAY)


def weeks(n: int) -> int:
    return days(n * DAYS_PER_WEEK)


def months(n: int) -> int:
    """
    A month is a fixed 30-day window (billing period), not a calendar month.
    """
    return days(n * DAYS_PER_MONTH)


def years(n: int) -> int:
    return days(n * DAYS_PER_YEAR)


def now_ms() -> int:
    return int(time.time() * MS_PER_SECOND)


def format_ts(ts: int | None) -> str:
    if ts is None:
        return ""
    dt = datetime.fromtimestamp(ts / MS_PER_SECOND, tz=timezone.utc)
    return dt.strftime("%Y-%m-%d %H:%M")


# ---------- Frames / exports ----------

MEMBER_COLUMNS = ["member_id", "full_name", "category", "activity"]
PAYMENT_COLUMNS = ["member_id", "amount", "due_date", "settlement_date", "discounted", "status"]


def members_frame(members: list[Member]) -> pd.DataFrame:
    rows = [
        {
            "member_id": m.member_id,
            "full_name": m.full_name,
            "category": m.category.value,
            "activity": m.activity.value if m.activity else None,
        }
        for m in members
    ]
    if not rows:
        return pd.DataFrame(columns=MEMBER_COLUMNS)
    return pd.DataFrame(rows, columns=MEMBER_COLUMNS)


def payments_frame(payments: list[Payment], now: int | None = None) -> pd.DataFrame:
    def status(p: Payment) -> str:
        if p.is_settled:
            return "settled"
        if now is not None and p.is_overdue(now):
            return "overdue"
        return "pending"

    rows = [
        {
            "member_id": p.member_id,
            "amount": p.amount,
            "due_date": format_ts(p.due_date),
            "settlement_date": format_ts(p.settlement_date),
            "discounted": p.discounted,
            "status": status(p),
        }
        for p in payments
    ]
    if not rows:
        return pd.DataFrame(columns=PAYMENT_COLUMNS)
    return pd.DataFrame(rows, columns=PAYMENT_COLUMNS)


def revenue_frame(revenue: list[tuple[Category, int]]) -> pd.DataFrame:
    return pd.DataFrame(
        [{"category": c.value, "revenue": amount} for c, amount in revenue],
        columns=["category", "revenue"],
    )


def frame_to_csv_bytes(df: pd.DataFrame) -> bytes:
    return df.to_csv(index=False).encode("utf-8")


def insert_sample_data(club, caller: str) -> None:
    """
    Register 3 sample members (one per category). Ids already taken are skipped.
    """
    samples = [
        (1001, "Ahmed Hassan", 1, None),
        (1002, "Mona Ali", 2, 6),
        (1003, "Omar Samy", 3, None),
    ]
    for member_id, name, category_code, activity_code in samples:
        try:
            club.register_member(caller, member_id, name, category_code, activity_code)
        except AlreadyExists:
            continue
