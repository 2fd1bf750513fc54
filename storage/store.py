"""
storage/store.py -- Key-value storage for the backend's configuration record.

Pattern: Repository (same shape as a one-table store). The backend only needs
two operations, each atomic on its own:

    get(key) -> bytes | None     None means "not found", never an error.
    put(key, value) -> None      one INSERT ... ON CONFLICT upsert.

There is no cross-call locking and no compare-and-swap. A concurrent
load-merge-store in the write handler is last-writer-wins.

Implementations:
  SQLStorage      -- SQLAlchemy Core, one `entries` table. SQLite gets WAL mode.
  InMemoryStorage -- dict-backed, for tests and throwaway dev servers.

Every driver-level failure is re-raised as core.errors.StorageError so the
API layer can tell "storage broke" apart from "nothing stored yet".

Layer rule: no imports from api/ or backend/. Import from core/ is allowed.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, LargeBinary, MetaData, String, Table, create_engine, event
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from core.errors import StorageError

# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class Storage(Protocol):
    def get(self, key: str) -> bytes | None: ...

    def put(self, key: str, value: bytes) -> None: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_entries = Table(
    "entries",
    _metadata,
    Column("key", String(255), primary_key=True),
    Column("value", LargeBinary, nullable=False),
    Column("updated_at", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so reads do not block behind a write.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# Dialects with a native upsert. put() is one statement on each of them.
_UPSERT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
    "mysql": mysql.insert,
    "mariadb": mysql.insert,
}


def upsert_statement(dialect_name: str, key: str, value: bytes, updated_at: str):
    """Build INSERT ... ON CONFLICT (or ON DUPLICATE KEY) UPDATE for one entry."""
    stmt = _UPSERT_INSERTS[dialect_name](_entries).values(key=key, value=value, updated_at=updated_at)
    if dialect_name in ("mysql", "mariadb"):
        return stmt.on_duplicate_key_update(value=stmt.inserted.value, updated_at=stmt.inserted.updated_at)
    return stmt.on_conflict_do_update(
        index_elements=[_entries.c.key],
        set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
    )


# ---------------------------------------------------------------------------
# SQLAlchemy-backed store
# ---------------------------------------------------------------------------


class SQLStorage:
    """Durable key-value store on SQLite, PostgreSQL or MySQL/MariaDB.

    Usage:
        store = SQLStorage("sqlite:///orgauth.db")
        store.put("config", b"{...}")
        raw = store.get("config")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        try:
            self.engine: Engine = create_engine(db_url, connect_args=connect_args)
            if db_url.startswith("sqlite"):
                event.listen(self.engine, "connect", _set_wal_mode)
            if self.engine.dialect.name not in _UPSERT_INSERTS:
                raise StorageError(f"unsupported storage dialect {self.engine.dialect.name!r}")
            _metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"unable to open storage: {exc}") from exc

    def get(self, key: str) -> bytes | None:
        """Return the stored bytes for key, or None if no entry exists."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_entries.select().where(_entries.c.key == key)).fetchone()
        except SQLAlchemyError as exc:
            raise StorageError(f"failed to read {key!r}: {exc}") from exc
        return bytes(row.value) if row is not None else None

    def put(self, key: str, value: bytes) -> None:
        """Insert or replace the entry for key with one upsert statement."""
        try:
            with self.engine.begin() as conn:
                conn.execute(upsert_statement(self.engine.dialect.name, key, value, _now_iso()))
        except SQLAlchemyError as exc:
            raise StorageError(f"failed to write {key!r}: {exc}") from exc

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class InMemoryStorage:
    """Process-local store. Contents vanish with the process."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)

    def close(self) -> None:
        pass
