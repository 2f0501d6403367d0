"""
errors.py
Typed failures for club operations.

Every ClubError is fatal to the operation that raised it; nothing is committed.
The UI shows `message` via st.error.
"""

from __future__ import annotations


class ClubError(Exception):
    """Base error for every recoverable club failure."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class PermissionDenied(ClubError):
    """Caller fails the relevant authorization gate."""


class NotFound(ClubError):
    """Member id absent where one is required."""


class AlreadyExists(ClubError):
    """Duplicate registration id."""


class InvalidCategory(ClubError):
    pass


class InvalidActivity(ClubError):
    pass


class InvalidAmount(ClubError):
    """Negative amount or streak (values are unsigned)."""


class NoMatchingPendingPayment(ClubError):
    pass


class NoBillingYet(ClubError):
    """Billing run before any member was ever registered."""


class BillingNotDue(ClubError):
    """Billing run before the 30-day window elapsed."""


class AlreadyStaff(ClubError):
    pass


class NotStaff(ClubError):
    pass


class ArithmeticUnderflow(ClubError):
    """Discount exceeds a category's base price during billing."""


class LedgerIntegrityError(RuntimeError):
    """A payment references a member that is not registered.

    This is a broken invariant, not a caller mistake, so it is not a ClubError.
    """
