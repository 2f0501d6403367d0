"""
auth.py
Account login (bcrypt hashing, verify, change password) and the club's
authorization policy (owner, staff, enforcement toggle).

A username is the caller identity passed to every club operation.
"""

from __future__ import annotations

import logging

import bcrypt

import db
from errors import AlreadyStaff, NotStaff, PermissionDenied
from models import ClubState

logger = logging.getLogger(__name__)


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    We truncate to 72 bytes to avoid ValueError and to make behavior explicit.
    """
    pw = password.encode("utf-8")
    if len(pw) > 72:
        pw = pw[:72]
    return pw


def hash_password(password: str, rounds: int = 12) -> str:
    """
    Returns a bcrypt hash as a UTF-8 string (stored in SQLite).
    """
    secret = _to_bcrypt_secret(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(secret, salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    secret = _to_bcrypt_secret(password)
    stored = password_hash.encode("utf-8")
    return bcrypt.checkpw(secret, stored)


def get_account(username: str):
    return db.fetch_one("SELECT * FROM accounts WHERE username = ?", (username,))


def login(username: str, password: str) -> bool:
    account = get_account(username)
    if not account:
        logger.warning("Login failed for unknown account %s", username)
        return False
    ok = verify_password(password, account["password_hash"])
    if not ok:
        logger.warning("Login failed for %s", username)
    return ok


def create_account(username: str, password: str) -> None:
    db.insert_account(username, hash_password(password))
    logger.info("Account %s created", username)


def change_password(username: str, new_password: str) -> None:
    new_hash = hash_password(new_password)
    db.execute(
        "UPDATE accounts SET password_hash = ? WHERE username = ?",
        (new_hash, username),
    )
    db.clear_force_password_change()


class Policy:
    """Authorization decisions over a ClubState.

    `may_act` is the gate for ordinary operations and opens to everyone once
    enforcement is off. Owner-only operations use `is_admin`; cost settings use
    `is_staff_or_admin`, which ignores the toggle.
    """

    def __init__(self, state: ClubState):
        self.state = state

    def may_act(self, caller: str) -> bool:
        return (
            caller == self.state.owner
            or caller in self.state.staff
            or not self.state.policy_enforced
        )

    def is_admin(self, caller: str) -> bool:
        return caller == self.state.owner

    def is_staff_or_admin(self, caller: str) -> bool:
        return self.is_admin(caller) or caller in self.state.staff

    def require_may_act(self, caller: str) -> None:
        if not self.may_act(caller):
            logger.warning("Access denied for %s", caller)
            raise PermissionDenied(f"{caller} is not allowed to operate on the club.")

    def require_admin(self, caller: str) -> None:
        if not self.is_admin(caller):
            logger.warning("Owner-only operation denied for %s", caller)
            raise PermissionDenied("Only the owner can perform this operation.")

    def require_staff_or_admin(self, caller: str) -> None:
        if not self.is_staff_or_admin(caller):
            logger.warning("Staff operation denied for %s", caller)
            raise PermissionDenied("Only the owner or staff can perform this operation.")

    def toggle_enforcement(self, caller: str) -> bool:
        self.require_admin(caller)
        self.state.policy_enforced = not self.state.policy_enforced
        logger.info("Policy enforcement set to %s", self.state.policy_enforced)
        return self.state.policy_enforced

    def add_staff(self, caller: str, identity: str) -> None:
        self.require_admin(caller)
        if identity in self.state.staff:
            raise AlreadyStaff(f"{identity} is already staff.")
        self.state.staff.add(identity)
        logger.info("Staff %s added", identity)

    def remove_staff(self, caller: str, identity: str) -> None:
        self.require_admin(caller)
        if identity not in self.state.staff:
            raise NotStaff(f"{identity} is not staff.")
        self.state.staff.remove(identity)
        logger.info("Staff %s removed", identity)

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self.require_admin(caller)
        self.state.owner = new_owner
        logger.info("Ownership transferred from %s to %s", caller, new_owner)
