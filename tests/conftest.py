"""
tests/conftest.py -- Shared test fixtures for CareAuth.

This module provides:
  - store: AccountStore over a SQLite file under tmp_path (real QueuePool)
  - fake_store: thread-safe in-memory double satisfying the store contract
  - make_account(): inserts an account with a cheap bcrypt hash
  - api_client: TestClient wired to an isolated store via a patched lifespan

The DEBUG env var must be set before any auth/core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
BCRYPT_ROUNDS is pinned to the minimum the settings accept; fixtures that
only need a stored hash use hash_password(rounds=4) directly.
"""

from __future__ import annotations

import os

# CRITICAL: Set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "10")

import threading
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.errors import AccountExists
from auth.models import Account, Role
from auth.passwords import hash_password
from auth.store import AccountStore, create_store_engine

TEST_ROUNDS = 4


# ---------------------------------------------------------------------------
# Store doubles and helpers
# ---------------------------------------------------------------------------


class FakeAccountStore:
    """In-memory store with the same find / create / record_login contract.

    record_login_calls lists every account id passed to record_login, so tests
    can assert it ran exactly once per successful login.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._accounts: dict[int, Account] = {}
        self._next_id = 1
        self.record_login_calls: list[int] = []

    def find_by_identifier(self, identifier: str) -> Account | None:
        with self._lock:
            for account in self._accounts.values():
                if account.username == identifier or account.email == identifier.lower():
                    return replace(account)
        return None

    def create_account(self, username, email, password_hash, role, is_active=True) -> Account:
        with self._lock:
            for existing in self._accounts.values():
                if existing.username == username or existing.email == email.lower():
                    raise AccountExists("duplicate")
            now = datetime.now(timezone.utc).isoformat()
            account = Account(
                id=self._next_id,
                username=username,
                email=email.lower(),
                role=Role(role),
                password_hash=password_hash,
                is_active=is_active,
                created_at=now,
                updated_at=now,
            )
            self._accounts[account.id] = account
            self._next_id += 1
            return replace(account)

    def record_login(self, account_id: int) -> None:
        with self._lock:
            self.record_login_calls.append(account_id)
            self._accounts[account_id].last_login = datetime.now(timezone.utc).isoformat()


def make_account(
    store,
    username: str = "alice",
    password: str = "CorrectHorse1",
    *,
    email: str | None = None,
    role: Role = Role.user,
    is_active: bool = True,
) -> Account:
    """Insert an account hashed at TEST_ROUNDS and return it."""
    return store.create_account(
        username=username,
        email=email or f"{username}@example.com",
        password_hash=hash_password(password, rounds=TEST_ROUNDS),
        role=role,
        is_active=is_active,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store(tmp_path) -> Generator[AccountStore, None, None]:
    engine = create_store_engine(f"sqlite:///{tmp_path / 'accounts.db'}", pool_size=5, pool_timeout=2.0)
    s = AccountStore(engine)
    yield s
    s.close()


@pytest.fixture
def fake_store() -> FakeAccountStore:
    return FakeAccountStore()


@pytest.fixture(autouse=True)
def _reset_limiter() -> Generator[None, None, None]:
    """The shared limiter is process-wide; isolate each test's windows."""
    limiter.clear()
    yield
    limiter.clear()


def _patch_lifespan(account_store):
    """Return a lifespan that wires a pre-built store into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.account_store = account_store
        yield

    return test_lifespan


@pytest.fixture
def api_client(store) -> Generator[tuple[TestClient, AccountStore], None, None]:
    """Yield (client, store) for route tests.

    base_url uses localhost so TrustedHostMiddleware accepts the requests.
    """
    app.router.lifespan_context = _patch_lifespan(store)
    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield client, store
