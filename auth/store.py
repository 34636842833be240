"""
auth/store.py -- SQLAlchemy Core persistence layer for users.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. The workflow never touches SQL directly.

Connection discipline:
  Every method opens `with self.engine.connect() as conn`, runs one
  statement, and leaves the block. The context manager hands the connection
  back to the pool on success and on exception alike, so a failed insert
  cannot leak a connection or leave a half-open transaction. Concurrency is
  bounded by the pool, not by any lock in here.

Uniqueness:
  UNIQUE(email) in the schema is the only duplicate guard. Two concurrent
  registrations for the same address both reach INSERT; the database lets one
  win and the loser's IntegrityError comes back as StorageError.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import StorageError
from auth.models import User

logger = logging.getLogger("identity.store")

_DEFAULT_DB_URL = "sqlite:///identity.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("user_id", String(36), primary_key=True),  # UUID4, generated by the workflow
    Column("username", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("edited_at", String(32)),  # NULL until a profile edit (not implemented)
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by a writer.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///identity.db")
        store.insert(User(user_id=..., username="alice", email="a@x.com", password_hash=...))
        user = store.find_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL, pool_size: int = 5) -> None:
        connect_args: dict = {}
        engine_kwargs: dict = {"pool_pre_ping": True}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        else:
            engine_kwargs["pool_size"] = pool_size
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, **engine_kwargs)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def insert(self, user: User) -> None:
        """Insert a new user record.

        Raises StorageError on any database failure. A duplicate email is one
        such failure; it is not pre-checked.
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _users.insert().values(
                        user_id=user.user_id,
                        username=user.username,
                        email=user.email,
                        password_hash=user.password_hash,
                        created_at=user.created_at,
                        edited_at=user.edited_at,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            logger.warning("Insert rejected by constraint for user_id=%s: %s", user.user_id, exc.orig)
            raise StorageError(detail="integrity_error") from exc
        except SQLAlchemyError as exc:
            logger.error("Insert failed for user_id=%s: %s", user.user_id, exc)
            raise StorageError(detail="insert_failed") from exc

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        return self._fetch_one(select(_users).where(_users.c.email == email))

    def find_by_id(self, user_id: str) -> User | None:
        """Look up a user by user_id. Returns None if not found."""
        return self._fetch_one(select(_users).where(_users.c.user_id == user_id))

    def _fetch_one(self, query) -> User | None:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(query).fetchone()
        except SQLAlchemyError as exc:
            logger.error("User lookup failed: %s", exc)
            raise StorageError(detail="lookup_failed") from exc
        return _row_to_user(row) if row is not None else None

    def ping(self) -> bool:
        """Return True if a connection can be acquired and used."""
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
        except SQLAlchemyError:
            logger.exception("Database ping failed")
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        user_id=row.user_id,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
        created_at=row.created_at,
        edited_at=row.edited_at,
    )
