"""
auth/seed.py -- Idempotent creation of the default accounts.

Existing accounts are matched by email and left untouched, so re-running the
seed never resets a password or re-enables a disabled account.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from auth.errors import AccountExists
from auth.models import Role
from auth.service import register
from core.config import get_settings

if TYPE_CHECKING:
    from auth.store import AccountStore

logger = logging.getLogger("careauth.auth")


@dataclass(frozen=True)
class SeedResult:
    created: int
    skipped: int


def seed_default_accounts(store: AccountStore) -> SeedResult:
    """Create the admin and mehmetbabur accounts if they do not exist yet."""
    settings = get_settings()
    defaults = [
        ("admin", "admin@example.com", settings.seed_admin_password),
        ("mehmetbabur", "mehmetbabur@example.com", settings.seed_user_password),
    ]

    created = 0
    skipped = 0
    for username, email, password in defaults:
        if store.find_by_identifier(email) is not None:
            skipped += 1
            continue
        try:
            register(store, username, email, password, Role.admin)
        except AccountExists:
            # Username taken by a different email, or a concurrent seed won.
            skipped += 1
            continue
        created += 1

    logger.info("Seed complete: %d created, %d already present", created, skipped)
    return SeedResult(created=created, skipped=skipped)
