"""
auth/errors.py -- Exceptions raised inside the auth package.

Expected authentication failures (unknown account, disabled account, wrong
password) are NOT exceptions; authenticate() returns them as AuthOutcome
values. These classes cover conditions a caller cannot recover from locally.
"""

from __future__ import annotations

from auth.models import StoreErrorKind


class AuthError(Exception):
    """Base class for auth package failures."""


class StoreUnavailable(AuthError):
    """The account store could not be reached or did not answer in time.

    kind carries the structured category so callers never inspect message text.
    """

    def __init__(self, kind: StoreErrorKind, message: str = "Account store unavailable.") -> None:
        super().__init__(message)
        self.kind = kind


class AccountExists(AuthError):
    """create_account() hit the username or email UNIQUE constraint."""


class PasswordHashError(AuthError):
    """A stored password hash could not be parsed or checked."""
