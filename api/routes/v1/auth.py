"""
api/routes/v1/auth.py -- Login, registration, and session introspection endpoints.

Routes:
  POST /api/v1/auth/login     -- password login; returns a signed session token
  POST /api/v1/auth/register  -- create an account
  GET  /api/v1/auth/me        -- claims of the caller's session token

Security:
  [H2] POST /login is limited per client IP (LOGIN_RATE_LIMIT_*), POST
       /register separately (REGISTER_RATE_LIMIT_*). A rejected attempt is
       reported as 429 rate_limited, never folded into a credentials error.
  [M5] Cache-Control: no-store on every /auth response, error responses
       included (set in api/main.py).
  Store failures map to 503 / 504 / 500 by StoreErrorKind. Raw database
  errors never reach the response body.
"""

from __future__ import annotations

import logging
import math

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import client_ip, hash_limiter_key, limiter
from api.models import (
    ErrorDetail,
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    MeResponse,
    RegisteredUser,
    RegisterRequest,
    RegisterResponse,
    UserInfo,
)
from auth.dependencies import get_current_claims
from auth.errors import AccountExists, StoreUnavailable
from auth.models import AuthStatus, SessionClaims, StoreErrorKind
from auth.service import authenticate, register
from auth.store import AccountStore
from core.config import get_settings

logger = logging.getLogger("careauth.api")

# Auth policy:
# - POST /api/v1/auth/login:     public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/register:  public -- self-registration, rate limited
# - GET  /api/v1/auth/me:        requires a valid session token (get_current_claims)
router = APIRouter()

_FAILURE_STATUS = {
    AuthStatus.not_found: 401,
    AuthStatus.inactive: 403,
    AuthStatus.invalid_password: 401,
}

STORE_FAILURES = {
    StoreErrorKind.connection: (503, "service_unavailable", "Could not reach the database. Please try again later."),
    StoreErrorKind.timeout: (504, "timeout", "The operation timed out. Please try again."),
    StoreErrorKind.generic: (500, "internal_error", "Login failed. Please try again."),
}


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with a username (or email) and password.

    Outcome mapping:
      ok               -> 200 with user info and token
      not_found        -> 401 not_found
      inactive         -> 403 inactive
      invalid_password -> 401 invalid_password
      error            -> 503 / 504 / 500 by store error kind
    """
    settings = get_settings()
    key = f"login:{client_ip(request)}"
    if not limiter.allow(key, settings.login_rate_limit_attempts, settings.login_rate_limit_window_ms):
        return _rate_limited(key, settings.login_rate_limit_attempts, settings.login_rate_limit_window_ms)

    store: AccountStore = request.app.state.account_store
    outcome = authenticate(store, body.username, body.password)

    if outcome.status is AuthStatus.ok:
        account = outcome.account
        resp = JSONResponse(
            status_code=200,
            content=LoginResponse(
                user=UserInfo(id=account.id, username=account.username, email=account.email, role=account.role),
                token=outcome.token,
                expires_at=outcome.claims.expires_at,
            ).model_dump(mode="json"),
        )
    elif outcome.status is AuthStatus.error:
        status_code, code, message = STORE_FAILURES[outcome.error_kind or StoreErrorKind.generic]
        resp = _error(status_code, code, message)
    else:
        resp = _error(_FAILURE_STATUS[outcome.status], outcome.status.value, outcome.message)

    return resp


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register_account(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a new account. Username and email must both be unused."""
    settings = get_settings()
    key = f"register:{client_ip(request)}"
    if not limiter.allow(key, settings.register_rate_limit_attempts, settings.register_rate_limit_window_ms):
        return _rate_limited(key, settings.register_rate_limit_attempts, settings.register_rate_limit_window_ms)

    store: AccountStore = request.app.state.account_store
    try:
        account = register(store, body.username, body.email, body.password, body.role)
    except AccountExists:
        return _error(409, "conflict", "That username or email is already in use.")
    except ValueError as exc:
        # Password within the character limit but over bcrypt's 72-byte limit
        return _error(400, "invalid_password", str(exc))
    except StoreUnavailable as exc:
        status_code, code, _message = STORE_FAILURES[exc.kind]
        return _error(status_code, code, "Registration failed. Please try again.")

    return JSONResponse(
        status_code=201,
        content=RegisterResponse(
            user=RegisteredUser(
                id=account.id,
                username=account.username,
                email=account.email,
                role=account.role,
                is_active=account.is_active,
                created_at=account.created_at or "",
            )
        ).model_dump(mode="json"),
    )


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
async def me(claims: SessionClaims = Depends(get_current_claims)) -> MeResponse:
    """Return the verified claims of the caller's session token."""
    return MeResponse(
        account_id=claims.account_id,
        username=claims.username,
        email=claims.email,
        role=claims.role,
        issued_at=claims.issued_at,
        expires_at=claims.expires_at,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(),
    )


def _rate_limited(key: str, max_attempts: int, window_ms: int) -> JSONResponse:
    """Build the 429 response. Retry-After is in whole seconds, rounded up."""
    retry_after = max(1, math.ceil(limiter.retry_after_ms(key, max_attempts, window_ms) / 1000))
    logger.warning("Rate limit exceeded (key_hash=%s, retry_after_s=%d)", hash_limiter_key(key), retry_after)
    resp = _error(429, "rate_limited", "Too many attempts. Please wait and try again.")
    resp.headers["Retry-After"] = str(retry_after)
    return resp
