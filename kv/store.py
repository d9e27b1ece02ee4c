"""
kv/store.py -- Embedded key-value store on SQLite via SQLAlchemy Core.

One table, two TEXT columns. Keys are namespaced strings ("user:<id>",
"refresh_token:<id>") and values are opaque strings -- callers decide the
encoding (auth/store.py stores JSON).

Transactions:
  view()   -- read-only transaction (engine.connect()).
  update() -- read-write transaction (engine.begin()). Commits on clean exit,
              rolls back if the block raises.

Each transaction is scoped to the block that opened it. Callers never hold
one across several service steps.

The single-shot helpers get() / set() / delete() / scan() each open their own
transaction.

Errors: every SQLAlchemyError is re-raised as StoreError so callers depend on
this module's exception type, not on the engine underneath.

Usage:
    kv = KVStore("sqlite:///accounts.db")
    kv.set("user:42", '{"id": "42"}')
    kv.get("user:42")                       # '{"id": "42"}'
    with kv.update() as tx:
        if tx.get("user:42") is None:
            tx.set("user:42", "...")
    kv.close()
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import Column, MetaData, Table, Text, create_engine, event, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

logger = logging.getLogger("accounts.kv")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_kv = Table(
    "kv",
    _metadata,
    Column("key", Text, primary_key=True),
    Column("value", Text, nullable=False),
)


class StoreError(Exception):
    """Raised when the underlying database fails."""


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _is_private_memory(db_url: str) -> bool:
    # "sqlite://" and "sqlite:///:memory:" give every connection its own empty DB.
    return db_url in ("sqlite://", "sqlite:///:memory:")


# ---------------------------------------------------------------------------
# Transaction handle
# ---------------------------------------------------------------------------


class KVTransaction:
    """Key-value operations bound to one open connection."""

    def __init__(self, conn: Connection, writable: bool) -> None:
        self._conn = conn
        self.writable = writable

    def get(self, key: str) -> str | None:
        row = self._conn.execute(select(_kv.c.value).where(_kv.c.key == key)).fetchone()
        return row.value if row is not None else None

    def set(self, key: str, value: str) -> None:
        self._require_writable()
        self._conn.execute(_kv.insert().prefix_with("OR REPLACE").values(key=key, value=value))

    def delete(self, key: str) -> bool:
        """Delete key. Returns False if it did not exist."""
        self._require_writable()
        result = self._conn.execute(_kv.delete().where(_kv.c.key == key))
        return result.rowcount > 0

    def scan(self, prefix: str = "") -> Iterator[tuple[str, str]]:
        """Yield (key, value) pairs whose key starts with prefix, in key order."""
        stmt = select(_kv.c.key, _kv.c.value).order_by(_kv.c.key)
        if prefix:
            stmt = stmt.where(_kv.c.key.startswith(prefix, autoescape=True))
        for row in self._conn.execute(stmt):
            yield row.key, row.value

    def _require_writable(self) -> None:
        if not self.writable:
            raise StoreError("Transaction is read-only.")


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class KVStore:
    """SQLite-backed key-value store."""

    def __init__(self, db_url: str = "sqlite:///accounts.db") -> None:
        connect_args: dict = {"check_same_thread": False}
        if _is_private_memory(db_url):
            # One shared connection, otherwise each pool checkout sees a blank DB.
            # Not safe across threads; servers get the named shared-cache URL.
            self.engine: Engine = create_engine(db_url, connect_args=connect_args, poolclass=StaticPool)
        else:
            self.engine = create_engine(db_url, connect_args=connect_args)
            event.listen(self.engine, "connect", _set_wal_mode)
        try:
            _metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreError(f"Could not open key-value store at {db_url}") from exc
        logger.debug("Key-value store ready at %s", db_url)

    @contextmanager
    def view(self) -> Iterator[KVTransaction]:
        try:
            with self.engine.connect() as conn:
                yield KVTransaction(conn, writable=False)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    @contextmanager
    def update(self) -> Iterator[KVTransaction]:
        try:
            with self.engine.begin() as conn:
                yield KVTransaction(conn, writable=True)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Single-operation helpers
    # ------------------------------------------------------------------

    def get(self, key: str) -> str | None:
        with self.view() as tx:
            return tx.get(key)

    def set(self, key: str, value: str) -> None:
        with self.update() as tx:
            tx.set(key, value)

    def delete(self, key: str) -> bool:
        with self.update() as tx:
            return tx.delete(key)

    def scan(self, prefix: str = "") -> list[tuple[str, str]]:
        # Materialized so the connection is released before the caller iterates.
        with self.view() as tx:
            return list(tx.scan(prefix))

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.view() as tx:
                tx.get("")
        except StoreError:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()
