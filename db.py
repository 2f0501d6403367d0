"""
db.py
SQLite helpers + initialization (accounts, settings) and club state
persistence (members, payments, staff, costs).
"""

from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from models import (
    Category,
    ClubState,
    CostConfiguration,
    Member,
    Payment,
    Sport,
)

logger = logging.getLogger(__name__)

DB_FILE = Path(os.getenv("CLUB_DB_FILE", Path(__file__).with_name("club.db")))

DEFAULT_OWNER = "owner"


@contextmanager
def get_conn():
    conn = sqlite3.connect(DB_FILE, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def execute(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.lastrowid


def fetch_one(sql: str, params: tuple = ()):
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def fetch_all(sql: str, params: tuple = ()) -> list[sqlite3.Row]:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchall()


def _create_tables() -> None:
    execute(
        """
        CREATE TABLE IF NOT EXISTS accounts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
        """
    )

    # Login-related flags (force password change on first login)
    execute(
        """
        CREATE TABLE IF NOT EXISTS app_settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )

    # Owner, enforcement, last billing date and costs
    execute(
        """
        CREATE TABLE IF NOT EXISTS club_settings (
            key TEXT PRIMARY KEY,
            value TEXT
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS staff (
            identity TEXT PRIMARY KEY
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS members (
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            member_id INTEGER NOT NULL UNIQUE,
            full_name TEXT NOT NULL,
            category TEXT NOT NULL CHECK(category IN ('A','B','C')),
            activity TEXT
        )
        """
    )

    # seq keeps ledger order
    execute(
        """
        CREATE TABLE IF NOT EXISTS payments (
            seq INTEGER PRIMARY KEY AUTOINCREMENT,
            member_id INTEGER NOT NULL,
            amount INTEGER NOT NULL CHECK(amount >= 0),
            due_date INTEGER NOT NULL,
            settlement_date INTEGER,
            discounted INTEGER NOT NULL CHECK(discounted IN (0,1))
        )
        """
    )


def _get_setting(key: str, default: str | None = None) -> str | None:
    row = fetch_one("SELECT value FROM app_settings WHERE key = ?", (key,))
    if row:
        return str(row["value"])
    return default


def _set_setting(key: str, value: str) -> None:
    execute(
        """
        INSERT INTO app_settings(key, value) VALUES(?, ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        (key, value),
    )


def insert_account(username: str, password_hash: str) -> int:
    now = datetime.utcnow().isoformat(timespec="seconds")
    return execute(
        "INSERT INTO accounts(username, password_hash, created_at) VALUES(?,?,?)",
        (username, password_hash, now),
    )


def list_accounts() -> list[str]:
    return [r["username"] for r in fetch_all("SELECT username FROM accounts ORDER BY username ASC")]


def init_db(default_owner_hash: str) -> None:
    """
    Initialize the database.
    - Create tables
    - Insert default owner account (owner/owner123) if no account exists
    - Create an empty club owned by that account
    - Force password change on first login
    """
    _create_tables()

    account = fetch_one("SELECT id FROM accounts LIMIT 1")
    if not account:
        insert_account(DEFAULT_OWNER, default_owner_hash)
        _set_setting("force_password_change", "1")
        logger.info("Created default owner account")
    else:
        # ensure setting exists
        if _get_setting("force_password_change") is None:
            _set_setting("force_password_change", "0")

    if load_club_state() is None:
        save_club_state(ClubState(owner=DEFAULT_OWNER))


def is_force_password_change() -> bool:
    val = fetch_one("SELECT value FROM app_settings WHERE key = ?", ("force_password_change",))
    return bool(val and str(val["value"]) == "1")


def clear_force_password_change() -> None:
    _set_setting("force_password_change", "0")


# ---------- Club state ----------

def _int_or_none(value) -> int | None:
    return None if value is None else int(value)


def load_club_state() -> ClubState | None:
    """
    Rebuild the ClubState. Returns None when no club was saved yet.
    """
    settings = {r["key"]: r["value"] for r in fetch_all("SELECT key, value FROM club_settings")}
    if "owner" not in settings:
        return None

    costs = CostConfiguration(
        price_a=int(settings["price_a"]),
        price_b=int(settings["price_b"]),
        price_c=int(settings["price_c"]),
        discount_amount=int(settings["discount_amount"]),
        streak_required=int(settings["streak_required"]),
    )
    members = [
        Member(
            full_name=r["full_name"],
            member_id=r["member_id"],
            category=Category(r["category"]),
            activity=Sport(r["activity"]) if r["activity"] else None,
        )
        for r in fetch_all("SELECT * FROM members ORDER BY seq ASC")
    ]
    payments = [
        Payment(
            member_id=r["member_id"],
            amount=r["amount"],
            due_date=r["due_date"],
            settlement_date=r["settlement_date"],
            discounted=bool(r["discounted"]),
        )
        for r in fetch_all("SELECT * FROM payments ORDER BY seq ASC")
    ]
    staff = {r["identity"] for r in fetch_all("SELECT identity FROM staff")}

    return ClubState(
        owner=settings["owner"],
        costs=costs,
        members=members,
        payments=payments,
        staff=staff,
        policy_enforced=settings["policy_enforced"] == "1",
        last_billing_date=_int_or_none(settings.get("last_billing_date")),
    )


def save_club_state(state: ClubState) -> None:
    """
    Replace the stored club with `state` in a single transaction.
    """
    costs = state.costs
    settings = [
        ("owner", state.owner),
        ("policy_enforced", "1" if state.policy_enforced else "0"),
        ("last_billing_date", None if state.last_billing_date is None else str(state.last_billing_date)),
        ("price_a", str(costs.price_a)),
        ("price_b", str(costs.price_b)),
        ("price_c", str(costs.price_c)),
        ("discount_amount", str(costs.discount_amount)),
        ("streak_required", str(costs.streak_required)),
    ]
    with get_conn() as conn:
        conn.execute("DELETE FROM club_settings")
        conn.execute("DELETE FROM staff")
        conn.execute("DELETE FROM members")
        conn.execute("DELETE FROM payments")
        conn.executemany("INSERT INTO club_settings(key, value) VALUES(?,?)", settings)
        conn.executemany("INSERT INTO staff(identity) VALUES(?)", [(s,) for s in sorted(state.staff)])
        conn.executemany(
            "INSERT INTO members(member_id, full_name, category, activity) VALUES(?,?,?,?)",
            [
                (m.member_id, m.full_name, m.category.value, m.activity.value if m.activity else None)
                for m in state.members
            ],
        )
        conn.executemany(
            "INSERT INTO payments(member_id, amount, due_date, settlement_date, discounted) VALUES(?,?,?,?,?)",
            [
                (p.member_id, p.amount, p.due_date, p.settlement_date, int(p.discounted))
                for p in state.payments
            ],
        )
    logger.debug("Saved club state (%d members, %d payments)", len(state.members), len(state.payments))
