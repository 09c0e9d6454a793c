"""
auth/tokens.py -- Session token issuing and decoding.

Security design decisions:
  Tokens are compact JWTs (header.claims.signature) signed with HS256 using
  SECRET_KEY via python-jose. The legacy format this replaces carried an
  "alg: none" header and the literal string "signature" in place of a real
  signature, so anyone could mint a token for any account. Signed tokens
  close that hole; read_unverified_claims() still understands the legacy
  shape for diagnostics but never feeds a trust decision.

  issue_session_token() does not police the expiry it is handed. Every
  consumer goes through decode_session_token(), which rejects expired tokens.
  Returning None (rather than raising) keeps callers simple: any token that
  fails verification is treated as unauthenticated.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging

from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import SessionClaims
from core.config import get_settings

logger = logging.getLogger("careauth.auth")

_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ("sub", "username", "email", "role", "iat", "exp")


def build_claims(account_id: int, username: str, email: str, role: str, issued_at: int) -> SessionClaims:
    """Return claims for a fresh session starting at issued_at (Unix seconds)."""
    return SessionClaims(
        account_id=account_id,
        username=username,
        email=email,
        role=role,
        issued_at=issued_at,
        expires_at=issued_at + get_settings().session_ttl_seconds,
    )


def issue_session_token(claims: SessionClaims) -> str:
    """Encode claims as an HS256-signed JWT."""
    payload = {
        "sub": str(claims.account_id),
        "username": claims.username,
        "email": claims.email,
        "role": claims.role,
        "iat": claims.issued_at,
        "exp": claims.expires_at,
    }
    return jwt.encode(payload, get_settings().secret_key, algorithm=_ALGORITHM)


def decode_session_token(token: str) -> SessionClaims | None:
    """Verify signature and expiry; return the claims or None on any failure."""
    try:
        payload = jwt.decode(token, get_settings().secret_key, algorithms=[_ALGORITHM])
    except ExpiredSignatureError:
        logger.debug("Rejected expired session token")
        return None
    except JWTError:
        logger.debug("Rejected session token that failed verification")
        return None
    return _payload_to_claims(payload)


def read_unverified_claims(token: str) -> dict | None:
    """Return the claims segment of a three-part token WITHOUT verifying it.

    Accepts both base64url (JWT) and padded standard base64 (legacy tokens).
    Never use the result to authenticate anyone.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return None
    segment = parts[1].replace("-", "+").replace("_", "/")
    segment += "=" * (-len(segment) % 4)
    try:
        payload = json.loads(base64.b64decode(segment, validate=True))
    except (binascii.Error, ValueError):
        return None
    return payload if isinstance(payload, dict) else None


def _payload_to_claims(payload: dict) -> SessionClaims | None:
    if any(name not in payload for name in _REQUIRED_CLAIMS):
        return None
    try:
        return SessionClaims(
            account_id=int(payload["sub"]),
            username=str(payload["username"]),
            email=str(payload["email"]),
            role=str(payload["role"]),
            issued_at=int(payload["iat"]),
            expires_at=int(payload["exp"]),
        )
    except (TypeError, ValueError):
        return None
