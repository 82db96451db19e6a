"""
auth/store.py -- Credential store contract and its SQLAlchemy Core implementation.

Pattern: Repository + Data Mapper.
CredentialStore is the contract the auth gateway depends on; UserStore is the
SQL repository and _row_to_user is the mapper. Gateway and route code never
touch SQL directly, so any store satisfying CredentialStore can be injected
(see auth/memory_store.py for the in-process one used by tests).

Rotation invariant:
  Each user has exactly one refresh-token slot. During refresh, "read the
  stored value, compare with the presented token, overwrite" must be atomic
  per user. compare_and_set_refresh_token() does it as a single conditional
  UPDATE and reports success through rowcount, so two concurrent refreshes
  presenting the same token cannot both win.

Security:
  All queries use bound parameters. No f-strings in SQL.

DB path: auth/tokengate_auth.db unless DATABASE_URL says otherwise.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import User

logger = logging.getLogger("tokengate.store")


class DuplicateEmailError(Exception):
    """Raised by CredentialStore.insert() when the email is already registered."""

    def __init__(self, email: str) -> None:
        super().__init__(f"User with email {email!r} already exists")
        self.email = email


class CredentialStore(Protocol):
    """Storage capabilities the auth gateway needs.

    Implementations own the authoritative refresh_token value per user.
    Uniqueness of email is the only constraint a store is expected to enforce;
    the gateway still checks before inserting.
    """

    def find_by_email(self, email: str) -> User | None: ...

    def find_by_id(self, user_id: int) -> User | None: ...

    def insert(self, user: User) -> User:
        """Persist a new user and return it with id and created_at filled in.

        Raises DuplicateEmailError if the email is taken.
        """
        ...

    def set_refresh_token(self, user_id: int, token: str | None) -> None:
        """Unconditionally replace (or clear, with None) the user's refresh slot."""
        ...

    def compare_and_set_refresh_token(self, user_id: int, expected: str, new: str | None) -> bool:
        """Atomically replace the refresh slot only if it currently equals expected.

        Returns True if the slot was replaced, False if the user is unknown or
        the stored value differs (stale or already rotated token).
        """
        ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("refresh_token", Text),  # NULL = no live session
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """SQL-backed CredentialStore.

    Usage:
        store = UserStore("sqlite:///auth.db")
        user = store.insert(User(email="a@example.com", hashed_password=hash_password("secret")))
        store.set_refresh_token(user.id, refresh)
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def has_users(self) -> bool:
        """Return True if at least one user record exists. Used by /health."""
        with self.engine.connect() as conn:
            result = conn.execute(text("SELECT COUNT(*) FROM users")).scalar()
        return (result or 0) > 0

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def insert(self, user: User) -> User:
        """Insert a new user and return the stored record.

        The UNIQUE(email) constraint backs up the gateway's pre-insert check
        when two registrations for the same email race.
        """
        created_at = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        email=user.email,
                        hashed_password=user.hashed_password,
                        refresh_token=user.refresh_token,
                        created_at=created_at,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateEmailError(user.email) from exc
        return User(
            id=result.inserted_primary_key[0],
            email=user.email,
            hashed_password=user.hashed_password,
            refresh_token=user.refresh_token,
            created_at=created_at,
        )

    def set_refresh_token(self, user_id: int, token: str | None) -> None:
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(refresh_token=token))
            conn.commit()

    def compare_and_set_refresh_token(self, user_id: int, expected: str, new: str | None) -> bool:
        """Conditional UPDATE: the WHERE clause is the comparison, rowcount is the verdict.

        SQLite serializes writers, so of two concurrent calls with the same
        expected value only the first matches a row; the second sees the
        already-rotated value and updates nothing.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & (_users.c.refresh_token == expected))
                .values(refresh_token=new)
            )
            conn.commit()
        return result.rowcount == 1

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        refresh_token=row.refresh_token,
        created_at=row.created_at,
    )
