"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Route and service code never touches SQL directly.

Password hashing happens here, on save: create_user() and set_password()
take plaintext and write only the bcrypt hash. No other layer ever holds a
hash it did not read from this store.

Refresh token storage:
  users.refresh_token holds at most one live token per user. set_refresh_token()
  is a single-row UPDATE, so the store's own atomicity is the only
  consistency mechanism -- concurrent writers are last-writer-wins.

Security:
  All queries use bound parameters. No f-strings in SQL.
  user_name and email are normalized (lowercase, trimmed) on every write and
  every lookup, so the UNIQUE constraints behave case-insensitively.

DB path: auth/uservault.db by default (Settings.database_url).

Layer rule: no imports from api/ or media/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, or_, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from auth.models import User
from auth.passwords import hash_password

logger = logging.getLogger("uservault.auth.store")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'uservault.db'}"

# Profile columns the route layer may change through update_profile().
# hashed_password and refresh_token have dedicated methods.
_PROFILE_FIELDS = {"full_name", "email", "avatar", "cover_image"}

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_name", String(64), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("full_name", String(255), nullable=False),
    Column("hashed_password", Text, nullable=False),
    Column("avatar", Text, nullable=False),
    Column("cover_image", Text, nullable=False, server_default=""),
    Column("refresh_token", Text),  # NULL = no live session
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
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


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_user_name(user_name: str) -> str:
    return user_name.strip().lower()


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore()
        uid = store.create_user(User(user_name="ab", email="a@b.com", full_name="A B", avatar=url), "secret1")
        user = store.get_by_id(uid)
        store.set_refresh_token(uid, token)
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Database ping failed")
            return False
        return True

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User, password: str) -> int:
        """Insert a new user, hashing the plaintext password, and return its ID.

        Raises sqlalchemy.exc.IntegrityError if the user_name or email already
        exists. The registration route pre-checks for duplicates but still
        catches IntegrityError, since two concurrent registrations can both
        pass the pre-check.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    user_name=normalize_user_name(user.user_name),
                    email=normalize_email(user.email),
                    full_name=user.full_name.strip(),
                    hashed_password=hash_password(password),
                    avatar=user.avatar,
                    cover_image=user.cover_image or "",
                    refresh_token=None,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def set_refresh_token(self, user_id: int, token: str | None) -> bool:
        """Overwrite (or clear, with None) the stored refresh token.

        This single-row UPDATE is the rotation point: every previously issued
        refresh token stops matching the instant it commits.

        Returns True if a row was updated, False if user_id was not found.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(refresh_token=token, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def set_password(self, user_id: int, password: str) -> bool:
        """Hash and store a new password. Touches only the hash column.

        Returns True if a row was updated, False if user_id was not found.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(hashed_password=hash_password(password), updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def update_profile(self, user_id: int, **fields) -> bool:
        """Update profile columns on an existing user.

        Accepted fields: full_name, email, avatar, cover_image. Unknown keys
        raise ValueError rather than being silently ignored.

        Returns True if a row was updated, False if user_id was not found.
        Raises IntegrityError if the new email belongs to another user.
        """
        unknown = set(fields) - _PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Unknown profile fields: {unknown!r}")
        if "email" in fields:
            fields["email"] = normalize_email(fields["email"])
        if "full_name" in fields:
            fields["full_name"] = fields["full_name"].strip()
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_user_name(self, user_name: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.user_name == normalize_user_name(user_name))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_email_or_user_name(self, email: str | None = None, user_name: str | None = None) -> User | None:
        """Return the first user matching either identifier, or None.

        Empty / None identifiers are ignored. If both are empty, returns None
        without touching the DB.
        """
        clauses = []
        if email:
            clauses.append(_users.c.email == normalize_email(email))
        if user_name:
            clauses.append(_users.c.user_name == normalize_user_name(user_name))
        if not clauses:
            return None
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(or_(*clauses)).order_by(_users.c.id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        user_name=row.user_name,
        email=row.email,
        full_name=row.full_name,
        hashed_password=row.hashed_password,
        avatar=row.avatar or "",
        cover_image=row.cover_image or "",
        refresh_token=row.refresh_token,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
