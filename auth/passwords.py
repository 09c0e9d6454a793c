"""
auth/passwords.py -- bcrypt password hashing and verification.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

bcrypt only looks at the first 72 bytes of a password and current releases
refuse longer input outright. hash_password() rejects such passwords up front;
verify_password() reports them as a mismatch, since no stored hash can have
been produced from one.

Neither function logs its arguments.
"""

from __future__ import annotations

import bcrypt

from auth.errors import PasswordHashError
from core.config import get_settings

BCRYPT_MAX_BYTES = 72


def hash_password(plain: str, rounds: int | None = None) -> str:
    """Return a bcrypt hash of the given plaintext password.

    rounds defaults to Settings.bcrypt_rounds. Tests pass a lower value to keep
    the suite fast; production code never should.

    Raises ValueError if the password encodes to more than 72 bytes.
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes.")
    cost = rounds if rounds is not None else get_settings().bcrypt_rounds
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=cost)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. A malformed stored hash is a
    data problem, not a wrong password, so it raises PasswordHashError.
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except (ValueError, TypeError) as exc:
        raise PasswordHashError("Stored password hash could not be checked.") from exc
