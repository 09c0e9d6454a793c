"""
auth/service.py -- The authentication pipeline and account registration.

authenticate() is a short-circuiting sequence over a single attempt. The
checks run strictly in this order, cheapest first, and the first failing
check decides the outcome:

  1. resolve the identifier        -> not_found
  2. account active flag           -> inactive
  3. bcrypt password comparison    -> invalid_password
  4. record_login, claims, token   -> ok

Store and hashing failures at any step become AuthStatus.error. The
underlying exception is logged here and never handed to the caller. Expected
failures are values, not exceptions, so callers branch on outcome.status.

Rate limiting is the caller's job (see api/routes/v1/auth.py): the pipeline
is a function of (identifier, password) plus store state only.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from auth.errors import PasswordHashError, StoreUnavailable
from auth.models import Account, AuthOutcome, AuthStatus, Role
from auth.passwords import hash_password, verify_password
from auth.tokens import build_claims, issue_session_token

if TYPE_CHECKING:
    from auth.store import AccountStore

logger = logging.getLogger("careauth.auth")


def authenticate(store: AccountStore, identifier: str, password: str, *, now: int | None = None) -> AuthOutcome:
    """Run one login attempt and return its outcome.

    Args:
        store:      Account store (or any object with the same
                    find_by_identifier / record_login contract).
        identifier: Username or email, already trimmed by the caller.
        password:   Plaintext password. Never logged.
        now:        Issue time in Unix seconds; defaults to the current time.
    """
    account: Account | None = None
    try:
        account = store.find_by_identifier(identifier)
        if account is None:
            logger.info("Login rejected: not_found")
            return AuthOutcome(AuthStatus.not_found)

        if not account.is_active:
            logger.info("Login rejected: inactive (account_id=%s)", account.id)
            return AuthOutcome(AuthStatus.inactive)

        if not verify_password(password, account.password_hash):
            logger.info("Login rejected: invalid_password (account_id=%s)", account.id)
            return AuthOutcome(AuthStatus.invalid_password)

        store.record_login(account.id)
    except StoreUnavailable as exc:
        logger.error("Login aborted: account store unavailable (%s)", exc.kind.value)
        return AuthOutcome(AuthStatus.error, error_kind=exc.kind)
    except PasswordHashError:
        logger.exception("Login aborted: password hash check failed (account_id=%s)", account.id if account else None)
        return AuthOutcome(AuthStatus.error)

    issued_at = now if now is not None else int(time.time())
    claims = build_claims(
        account_id=account.id,
        username=account.username,
        email=account.email,
        role=account.role.value,
        issued_at=issued_at,
    )
    token = issue_session_token(claims)
    logger.info("Login succeeded (account_id=%s)", account.id)
    return AuthOutcome(AuthStatus.ok, account=account, claims=claims, token=token)


def register(
    store: AccountStore,
    username: str,
    email: str,
    password: str,
    role: Role = Role.user,
    *,
    is_active: bool = True,
) -> Account:
    """Create an account with a freshly hashed password.

    Format validation (username pattern, email shape, password length) is the
    request model's job; this function only normalizes.

    Raises:
        AccountExists:    username or email already taken.
        ValueError:       password longer than bcrypt accepts.
        StoreUnavailable: database unreachable.
    """
    account = store.create_account(
        username=username.strip(),
        email=email.strip().lower(),
        password_hash=hash_password(password),
        role=Role(role),
        is_active=is_active,
    )
    logger.info("Account registered (account_id=%s, role=%s)", account.id, account.role.value)
    return account
