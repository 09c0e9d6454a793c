"""
api/limiter.py -- Shared rate limiter instance and client key helpers.

Import this wherever a route needs throttling. Using a single shared instance
ensures all routes share the same in-memory window table. If this were
instantiated in each module separately, each module would get its own
isolated table and limits would be split.

Limits themselves are passed per call (see Settings.login_rate_limit_* and
Settings.register_rate_limit_*), so one table serves every operation.
"""

from __future__ import annotations

import hashlib

from fastapi import Request

from auth.ratelimit import SlidingWindowRateLimiter
from core.config import get_settings

limiter = SlidingWindowRateLimiter()


def client_ip(request: Request) -> str:
    """Return the client address used in rate-limit keys.

    X-Forwarded-For is honoured only when TRUST_FORWARDED_FOR is set; the
    first hop is the original client.
    """
    if get_settings().trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.client.host if request.client else "unknown"


def hash_limiter_key(key: str) -> str:
    """Hash a limiter key for logging without writing client addresses to the log."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]
