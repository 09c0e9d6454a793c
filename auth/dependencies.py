"""
auth/dependencies.py -- FastAPI Depends() helpers for session tokens.

The session token travels in an Authorization: Bearer <token> header.
try_get_current_claims() is the soft variant (returns None on failure).
get_current_claims() wraps it and raises HTTP 401 if unauthenticated.

Both go through decode_session_token(), so forged and expired tokens are
rejected here even though the issuer never refuses to mint them. A token
that verifies is still refused if its account has since been deleted or
disabled. Store failures propagate as StoreUnavailable and are mapped to
503 / 504 / 500 by the handler in api/main.py.

This module may import from fastapi because it is part of the FastAPI
dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request

from auth.models import SessionClaims
from auth.tokens import decode_session_token, read_unverified_claims

logger = logging.getLogger("careauth.auth")


def try_get_current_claims(request: Request) -> SessionClaims | None:
    """Return the verified claims of the request's Bearer token, or None."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header[7:].strip()
    if not token:
        return None

    claims = decode_session_token(token)
    if claims is None:
        # Unverified: identifies the claimed subject in the log, nothing more.
        unverified = read_unverified_claims(token) or {}
        logger.info("Rejected session token (claimed sub=%s)", unverified.get("sub", unverified.get("id")))
        return None

    account = request.app.state.account_store.get_by_id(claims.account_id)
    if account is None or not account.is_active:
        logger.info("Rejected session token for missing or disabled account (account_id=%s)", claims.account_id)
        return None
    return claims


def get_current_claims(request: Request) -> SessionClaims:
    """Require a valid session token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(claims: SessionClaims = Depends(get_current_claims)): ...
    """
    claims = try_get_current_claims(request)
    if claims is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return claims
