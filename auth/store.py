"""
auth/store.py -- User record storage behind a small injectable interface.

Pattern: Repository. AuthService depends only on the UserStore protocol
(lookup by email, lookup by id, insert-if-absent, update), so it can be tested
against the in-memory store and pointed at a persistent one without change.

Two implementations:
  InMemoryUserStore -- the default. Volatile dicts keyed by email and id,
      guarded by one lock. insert_if_absent() checks and inserts under the
      lock, so two concurrent registrations of the same email cannot both win.

  SQLUserStore -- SQLAlchemy Core adapter with the same contract. Uniqueness
      comes from the UNIQUE email column: a losing concurrent insert raises
      IntegrityError, which is reported as False. _row_to_user is the Data
      Mapper between rows and User dataclasses.

Only role and access_level are updatable. Records are never deleted here.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import dataclasses
import threading
from typing import Protocol

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import AccessLevel, User, UserRole

UPDATABLE_FIELDS = frozenset({"role", "access_level"})


class UserStore(Protocol):
    def get_by_email(self, email: str) -> User | None: ...

    def get_by_id(self, user_id: str) -> User | None: ...

    def insert_if_absent(self, user: User) -> bool: ...

    def update(self, user_id: str, **fields) -> User | None: ...


def _check_fields(fields: dict) -> None:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown user fields: {unknown!r}")


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class InMemoryUserStore:
    """Volatile store. Returned User objects are copies -- callers cannot
    mutate stored state except through update()."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_email: dict[str, User] = {}
        self._by_id: dict[str, User] = {}

    def get_by_email(self, email: str) -> User | None:
        with self._lock:
            user = self._by_email.get(email)
            return dataclasses.replace(user) if user is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        with self._lock:
            user = self._by_id.get(user_id)
            return dataclasses.replace(user) if user is not None else None

    def insert_if_absent(self, user: User) -> bool:
        """Store the user unless the email or id is taken. Returns True if stored."""
        with self._lock:
            if user.email in self._by_email or user.id in self._by_id:
                return False
            stored = dataclasses.replace(user)
            self._by_email[stored.email] = stored
            self._by_id[stored.id] = stored
            return True

    def update(self, user_id: str, **fields) -> User | None:
        """Apply role/access_level changes in place. Returns the updated copy,
        or None if user_id is unknown."""
        _check_fields(fields)
        with self._lock:
            user = self._by_id.get(user_id)
            if user is None:
                return None
            for name, value in fields.items():
                setattr(user, name, value)
            return dataclasses.replace(user)

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)


# ---------------------------------------------------------------------------
# SQL store
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(254), nullable=False, unique=True),
    Column("name", String(100), nullable=False),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(20), nullable=False, server_default=UserRole.USER.value),
    Column("access_level", Integer, nullable=False, server_default=str(int(AccessLevel.READ))),
    Column("created_at", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


class SQLUserStore:
    """Usage:
    store = SQLUserStore("sqlite:///rxauth_users.db")
    store.insert_if_absent(user)
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

    def get_by_email(self, email: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def insert_if_absent(self, user: User) -> bool:
        """Insert the user. Returns False if the email or id already exists."""
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _users.insert().values(
                        id=user.id,
                        email=user.email,
                        name=user.name,
                        hashed_password=user.hashed_password,
                        role=UserRole(user.role).value,
                        access_level=int(user.access_level),
                        created_at=user.created_at,
                    )
                )
                conn.commit()
        except IntegrityError:
            return False
        return True

    def update(self, user_id: str, **fields) -> User | None:
        _check_fields(fields)
        values = dict(fields)
        if "role" in values:
            values["role"] = UserRole(values["role"]).value
        if "access_level" in values:
            values["access_level"] = int(values["access_level"])
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_by_id(user_id)

    def close(self) -> None:
        self.engine.dispose()


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        hashed_password=row.hashed_password,
        role=UserRole(row.role),
        access_level=AccessLevel(row.access_level),
        created_at=row.created_at,
    )
