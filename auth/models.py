"""
auth/models.py -- Domain dataclasses and enums for authentication entities.

Pattern: Data class (pure data container, almost zero logic). Stores, the
authentication pipeline, and routes do the work; these types only own shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    user = "user"
    admin = "admin"
    doctor = "doctor"


class AuthStatus(str, Enum):
    """Terminal states of one authentication attempt."""

    ok = "ok"
    not_found = "not_found"
    inactive = "inactive"
    invalid_password = "invalid_password"
    error = "error"


class StoreErrorKind(str, Enum):
    """Why the account store could not serve a request.

    The HTTP layer maps these to 503 / 504 / 500 respectively.
    """

    connection = "connection"
    timeout = "timeout"
    generic = "generic"


@dataclass
class Account:
    """A login identity.

    password_hash is the bcrypt hash. It must never leave the auth package:
    routes convert Account to a response model that omits it.

    Timestamps are ISO 8601 UTC strings, matching how the store persists them.
    last_login is None until the first successful authentication.
    """

    username: str
    email: str
    role: Role
    password_hash: str
    id: int | None = None
    is_active: bool = True
    created_at: str | None = None
    updated_at: str | None = None
    last_login: str | None = None


@dataclass(frozen=True)
class SessionClaims:
    """Identity claims carried by a session token. Times are Unix seconds."""

    account_id: int
    username: str
    email: str
    role: str
    issued_at: int
    expires_at: int

    def is_expired(self, now: int) -> bool:
        return self.expires_at <= now


# User-facing messages per outcome. Not-found and wrong-password are kept
# distinguishable on purpose; see DESIGN.md for the tradeoff.
OUTCOME_MESSAGES: dict[AuthStatus, str] = {
    AuthStatus.ok: "Login successful.",
    AuthStatus.not_found: "User not found.",
    AuthStatus.inactive: "Your account is disabled.",
    AuthStatus.invalid_password: "Invalid password.",
    AuthStatus.error: "Login failed. Please try again.",
}


@dataclass(frozen=True)
class AuthOutcome:
    """Tagged result of authenticate(). Exactly one status per attempt.

    account, claims, and token are set only for AuthStatus.ok.
    error_kind is set only for AuthStatus.error, and is None when the failure
    came from password hashing rather than the store.
    """

    status: AuthStatus
    account: Account | None = None
    claims: SessionClaims | None = None
    token: str | None = None
    error_kind: StoreErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.status is AuthStatus.ok

    @property
    def message(self) -> str:
        return OUTCOME_MESSAGES[self.status]
