"""
auth/store.py -- The users table and the UserStore repository over it.

UserStore mirrors RiskStore in register/store.py: one Table, one engine,
rows mapped to dataclasses by _row_to_user, bound parameters throughout.

A username is claimed by the UNIQUE index on users.username. Two concurrent
registrations for the same name cannot both succeed; the loser's INSERT
raises IntegrityError, which surfaces as UsernameTakenError.

Imports only auth.models and core/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import User
from core.config import get_settings
from core.errors import UsernameTakenError

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default="Viewer"),
    Column("created_at", String(40), nullable=False),
)


# ---------------------------------------------------------------------------
# SQLite pragmas
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Runs on every new DBAPI connection: WAL journal, fsync on each commit."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA synchronous=FULL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Accounts keyed by id, looked up by username at login.

    The url defaults to DATABASE_URL, so users and risks share one file.
    """

    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        _metadata.create_all(self.engine)

    def insert_user(self, username: str, password_hash: str, role: str) -> User:
        """Store a new account. A duplicate username raises UsernameTakenError."""
        user = User(
            id=str(uuid.uuid4()),
            username=username,
            role=role,
            hashed_password=password_hash,
            created_at=_now_iso(),
        )
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _users.insert().values(
                        id=user.id,
                        username=user.username,
                        hashed_password=user.hashed_password,
                        role=user.role,
                        created_at=user.created_at,
                    )
                )
        except IntegrityError as exc:
            raise UsernameTakenError() from exc
        return user

    def get_by_username(self, username: str) -> Optional[User]:
        """Exact, case-sensitive match, or None."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str) -> Optional[User]:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return result or 0

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        role=row.role,
        hashed_password=row.hashed_password,
        created_at=row.created_at,
    )
