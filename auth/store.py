"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper. AccountStore is the repository;
_row_to_account is the mapper. The authentication pipeline and routes never
touch SQL directly.

Resource model:
  The engine (and therefore its bounded connection pool) is built once by
  create_store_engine() and injected into AccountStore. close() disposes it.
  Every query runs inside `with self.engine.connect()`, so the connection goes
  back to the pool on every exit path, including exceptions. A request that
  cannot get a connection within pool_timeout fails with StoreUnavailable.

Error model:
  Driver failures are translated into StoreUnavailable carrying a
  StoreErrorKind, decided from exception types and driver error codes (never
  from message text). Unique-constraint violations become AccountExists.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Account.password_hash is returned to the auth package only.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, or_, select, text
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import QueuePool, StaticPool

from auth.errors import AccountExists, StoreUnavailable
from auth.models import Account, Role, StoreErrorKind

logger = logging.getLogger("careauth.store")

# Driver error codes that mean "gave up waiting" rather than "cannot connect".
_PG_QUERY_CANCELED = "57014"  # statement_timeout
_SQLITE_BUSY = 5  # busy timeout elapsed while the database was locked

# Integrity failures that mean "already taken". Other integrity errors
# (NOT NULL, CHECK) are bugs and surface as generic store errors.
_PG_UNIQUE_VIOLATION = "23505"
_SQLITE_CONSTRAINT_UNIQUE = 2067

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),  # stored lower-case
    Column("role", String(30), nullable=False, server_default="user"),
    Column("password_hash", Text, nullable=False),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("last_login", String(32)),  # ISO 8601 timestamp of last successful auth
)


# ---------------------------------------------------------------------------
# Engine construction
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by the last-login writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_store_engine(db_url: str, *, pool_size: int = 10, pool_timeout: float = 5.0) -> Engine:
    """Build the engine backing an AccountStore.

    The pool is bounded: at most pool_size connections exist at once
    (max_overflow=0) and a caller waits at most pool_timeout seconds for one.

    In-memory SQLite databases vanish with their last connection, so they get
    a single shared connection (StaticPool) instead of a QueuePool.
    """
    url = make_url(db_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(
            url,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=0,
            pool_timeout=pool_timeout,
            pool_pre_ping=True,
        )

    connect_args = {"check_same_thread": False}
    if url.database in (None, "", ":memory:") or url.query.get("mode") == "memory":
        return create_engine(url, connect_args=connect_args, poolclass=StaticPool)

    engine = create_engine(
        url,
        connect_args=connect_args,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=0,
        pool_timeout=pool_timeout,
    )
    event.listen(engine, "connect", _set_wal_mode)
    return engine


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------


def classify_store_error(exc: sa_exc.SQLAlchemyError) -> StoreErrorKind:
    """Map a SQLAlchemy exception onto the three externally visible failure kinds."""
    if isinstance(exc, sa_exc.TimeoutError):
        # QueuePool exhausted for longer than pool_timeout
        return StoreErrorKind.timeout
    if isinstance(exc, sa_exc.DBAPIError):
        orig = exc.orig
        code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        if code == _PG_QUERY_CANCELED or getattr(orig, "sqlite_errorcode", None) == _SQLITE_BUSY:
            return StoreErrorKind.timeout
        if exc.connection_invalidated or isinstance(exc, sa_exc.OperationalError):
            return StoreErrorKind.connection
    return StoreErrorKind.generic


def _is_unique_violation(exc: sa_exc.IntegrityError) -> bool:
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    return code == _PG_UNIQUE_VIOLATION or getattr(orig, "sqlite_errorcode", None) == _SQLITE_CONSTRAINT_UNIQUE


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except sa_exc.SQLAlchemyError as exc:
        kind = classify_store_error(exc)
        logger.warning("Account store %s failed (%s)", operation, kind.value, exc_info=True)
        raise StoreUnavailable(kind) from exc


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities.

    Usage:
        engine = create_store_engine("sqlite:///careauth.db")
        store = AccountStore(engine)
        store.create_account("admin", "admin@example.com", hash_password("secret"), Role.admin)
        account = store.find_by_identifier("admin")
        store.close()
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        with _store_errors("schema setup"):
            _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_identifier(self, identifier: str) -> Account | None:
        """Look up an account by exact username or by email (case-insensitive).

        Returns the full record including password_hash, or None if no
        account matches.
        """
        query = (
            select(_accounts)
            .where(or_(_accounts.c.username == identifier, _accounts.c.email == identifier.lower()))
            .order_by(_accounts.c.id)
            .limit(1)
        )
        with _store_errors("lookup"), self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_id(self, account_id: int) -> Account | None:
        """Look up an account by primary key. Returns None if not found."""
        with _store_errors("lookup"), self.engine.connect() as conn:
            row = conn.execute(select(_accounts).where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def has_accounts(self) -> bool:
        """Return True if at least one account exists."""
        with _store_errors("count"), self.engine.connect() as conn:
            result = conn.execute(text("SELECT COUNT(*) FROM users")).scalar()
        return (result or 0) > 0

    def ping(self) -> None:
        """Round-trip a trivial query. Raises StoreUnavailable if the database is unreachable."""
        with _store_errors("ping"), self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_account(
        self,
        username: str,
        email: str,
        password_hash: str,
        role: Role,
        is_active: bool = True,
    ) -> Account:
        """Insert a new account and return it with its assigned ID.

        Raises AccountExists if the username or email is already taken, and
        StoreUnavailable for any other failure.
        """
        now = _now_iso()
        account = Account(
            username=username,
            email=email.lower(),
            role=Role(role),
            password_hash=password_hash,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )
        with _store_errors("insert"), self.engine.connect() as conn:
            try:
                result = conn.execute(
                    _accounts.insert().values(
                        username=account.username,
                        email=account.email,
                        role=account.role.value,
                        password_hash=account.password_hash,
                        is_active=1 if account.is_active else 0,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
            except sa_exc.IntegrityError as exc:
                conn.rollback()
                if not _is_unique_violation(exc):
                    raise
                raise AccountExists("An account with that username or email already exists.") from exc
        account.id = result.inserted_primary_key[0]
        return account

    def record_login(self, account_id: int) -> None:
        """Stamp the current UTC time as last_login for the given account.

        Called on every successful authentication. Raises StoreUnavailable
        rather than dropping the update silently.
        """
        with _store_errors("record_login"), self.engine.connect() as conn:
            result = conn.execute(
                _accounts.update().where(_accounts.c.id == account_id).values(last_login=_now_iso())
            )
            conn.commit()
        if result.rowcount == 0:
            logger.warning("record_login matched no account (id=%s)", account_id)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        username=row.username,
        email=row.email,
        role=Role(row.role),
        password_hash=row.password_hash,
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
        last_login=row.last_login,
    )
