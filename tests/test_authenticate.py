"""Unit tests for auth/service.py -- the authentication pipeline and registration.

Most cases run against FakeAccountStore (see conftest) so record_login calls
can be counted; a few run against the real SQLite-backed store.
"""

import threading
import time
from unittest.mock import MagicMock

import pytest

from auth.errors import AccountExists, StoreUnavailable
from auth.models import AuthStatus, Role, StoreErrorKind
from auth.service import authenticate, register
from auth.tokens import decode_session_token
from conftest import make_account


class TestOutcomes:
    def test_unknown_identifier_is_not_found(self, fake_store):
        outcome = authenticate(fake_store, "nouser", "x")
        assert outcome.status is AuthStatus.not_found
        assert outcome.token is None
        assert fake_store.record_login_calls == []

    @pytest.mark.parametrize("password", ["CorrectHorse1", "wrong"])
    def test_inactive_account_regardless_of_password(self, fake_store, password):
        make_account(fake_store, "sleepy", "CorrectHorse1", is_active=False)
        outcome = authenticate(fake_store, "sleepy", password)
        assert outcome.status is AuthStatus.inactive
        assert fake_store.record_login_calls == []

    def test_wrong_password(self, fake_store):
        make_account(fake_store, "alice", "CorrectHorse1")
        outcome = authenticate(fake_store, "alice", "incorrect")
        assert outcome.status is AuthStatus.invalid_password
        assert fake_store.record_login_calls == []

    def test_correct_password_records_exactly_one_login(self, fake_store):
        account = make_account(fake_store, "alice", "CorrectHorse1")
        outcome = authenticate(fake_store, "alice", "CorrectHorse1")
        assert outcome.ok
        assert fake_store.record_login_calls == [account.id]

    def test_login_by_email(self, fake_store):
        make_account(fake_store, "alice", "CorrectHorse1", email="alice@example.com")
        assert authenticate(fake_store, "Alice@Example.com", "CorrectHorse1").ok

    def test_each_status_has_a_message(self, fake_store):
        assert authenticate(fake_store, "nouser", "x").message == "User not found."


class TestSuccessfulSession:
    def test_admin_scenario_token_carries_role(self, fake_store):
        make_account(fake_store, "admin", "Admin123456", email="admin@example.com", role=Role.admin)
        outcome = authenticate(fake_store, "admin", "Admin123456")
        assert outcome.status is AuthStatus.ok
        claims = decode_session_token(outcome.token)
        assert claims.role == "admin"
        assert claims == outcome.claims

    def test_claims_expire_one_day_after_issue(self, fake_store):
        account = make_account(fake_store, "alice", "CorrectHorse1", email="alice@example.com")
        outcome = authenticate(fake_store, "alice", "CorrectHorse1", now=1_700_000_000)
        assert outcome.claims.account_id == account.id
        assert outcome.claims.email == "alice@example.com"
        assert outcome.claims.issued_at == 1_700_000_000
        assert outcome.claims.expires_at == 1_700_000_000 + 86400

    def test_default_issue_time_is_now(self, fake_store):
        make_account(fake_store, "alice", "CorrectHorse1")
        before = int(time.time())
        outcome = authenticate(fake_store, "alice", "CorrectHorse1")
        assert before <= outcome.claims.issued_at <= int(time.time())

    def test_against_real_store_updates_last_login(self, store):
        make_account(store, "alice", "CorrectHorse1")
        outcome = authenticate(store, "alice", "CorrectHorse1")
        assert outcome.ok
        assert store.find_by_identifier("alice").last_login is not None


class TestFailures:
    @pytest.mark.parametrize("kind", list(StoreErrorKind))
    def test_lookup_failure_becomes_error_outcome(self, kind):
        failing = MagicMock()
        failing.find_by_identifier.side_effect = StoreUnavailable(kind)
        outcome = authenticate(failing, "alice", "pw")
        assert outcome.status is AuthStatus.error
        assert outcome.error_kind is kind
        assert outcome.message == "Login failed. Please try again."

    def test_record_login_failure_is_not_success(self, fake_store):
        make_account(fake_store, "alice", "CorrectHorse1")
        fake_store.record_login = MagicMock(side_effect=StoreUnavailable(StoreErrorKind.connection))
        outcome = authenticate(fake_store, "alice", "CorrectHorse1")
        assert outcome.status is AuthStatus.error
        assert outcome.token is None

    def test_corrupt_hash_is_error_not_invalid_password(self, fake_store):
        fake_store.create_account("broken", "broken@example.com", "corrupt", Role.user)
        outcome = authenticate(fake_store, "broken", "whatever")
        assert outcome.status is AuthStatus.error
        assert outcome.error_kind is None

    def test_unexpected_exceptions_propagate(self):
        failing = MagicMock()
        failing.find_by_identifier.side_effect = RuntimeError("bug")
        with pytest.raises(RuntimeError):
            authenticate(failing, "alice", "pw")


class TestConcurrency:
    def test_concurrent_logins_for_same_account_both_succeed(self, store):
        make_account(store, "alice", "CorrectHorse1")
        barrier = threading.Barrier(2)
        outcomes = []
        lock = threading.Lock()

        def attempt():
            barrier.wait()
            result = authenticate(store, "alice", "CorrectHorse1")
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert [o.status for o in outcomes] == [AuthStatus.ok, AuthStatus.ok]
        assert store.engine.pool.checkedout() == 0


class TestRegister:
    def test_register_normalizes_and_hashes(self, fake_store):
        account = register(fake_store, "  newbie ", " NewBie@Example.com ", "secret1", Role.doctor)
        assert account.username == "newbie"
        assert account.email == "newbie@example.com"
        assert account.role is Role.doctor
        assert account.password_hash != "secret1"
        assert authenticate(fake_store, "newbie", "secret1").ok

    def test_register_duplicate_raises(self, fake_store):
        register(fake_store, "newbie", "newbie@example.com", "secret1")
        with pytest.raises(AccountExists):
            register(fake_store, "newbie", "another@example.com", "secret1")
