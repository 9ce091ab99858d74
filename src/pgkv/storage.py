"""PostgreSQL-backed key-value storage.

``PostgresKeyValueStorage`` keeps every entry as one row of a two-column
table (``key TEXT PRIMARY KEY, value JSONB NOT NULL``) and exposes the
``get``/``has``/``set``/``delete``/``entries`` contract of
:class:`pgkv.protocols.KeyValueStorage`.

Lifecycle::

    Uninitialized ──initialize()──▶ Ready(conn) ──close()──▶ Closed

Operations check the state and raise :class:`NotReadyError` outside
``Ready``. The single live connection is shared by all operations of an
instance; psycopg serializes commands sent over it.

Example::

    store = PostgresKeyValueStorage("postgresql://localhost/app", "sessions")
    await store.initialize()
    await store.set("abc", {"exp": 100})
    async for key, value in store.entries():
        ...
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import psycopg
from psycopg import sql
from psycopg.types.json import Jsonb

from pgkv.errors import InitializationError, NotReadyError
from pgkv.logging import get_logger
from pgkv.protocols import Initializer
from pgkv.provisioning import DEFAULT_MAINTENANCE_DB, database_name, ensure_database, ensure_table
from pgkv.settings import StoreSettings, get_settings

logger = get_logger(__name__)

V = TypeVar("V")

DEFAULT_BATCH_SIZE = 50


@dataclass(frozen=True)
class _Uninitialized:
    pass


@dataclass(frozen=True)
class _Ready:
    conn: psycopg.AsyncConnection


@dataclass(frozen=True)
class _Closed:
    pass


class PostgresKeyValueStorage(Initializer, Generic[V]):
    """Key-value storage over a single PostgreSQL table.

    Args:
        connection_string: libpq connection string naming the target database
        table_name: Table holding the entries, created on first initialize
        batch_size: Rows fetched per round trip by ``entries()``
        maintenance_db: Always-present database used while creating the target
    """

    def __init__(
        self,
        connection_string: str,
        table_name: str,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        maintenance_db: str = DEFAULT_MAINTENANCE_DB,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self._connection_string = connection_string
        self._table_name = table_name
        self._batch_size = batch_size
        self._maintenance_db = maintenance_db
        self._table = sql.Identifier(table_name)
        self._state: _Uninitialized | _Ready | _Closed = _Uninitialized()
        self._init_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: StoreSettings | None = None) -> PostgresKeyValueStorage[Any]:
        """Build a store from :class:`StoreSettings` (environment by default)."""
        settings = settings or get_settings()
        return cls(
            settings.database_url,
            settings.table_name,
            batch_size=settings.batch_size,
            maintenance_db=settings.maintenance_db,
        )

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def initialized(self) -> bool:
        return isinstance(self._state, _Ready)

    # ── Lifecycle ─────────────────────────────────────────────────

    async def handle(self) -> None:
        await self.initialize()

    async def initialize(self) -> None:
        """
        Ensure the database and table exist and open the live connection.

        Calling it again once ready is a no-op. Any provisioning failure is
        raised as :class:`InitializationError` and leaves the store
        uninitialized so that a later call starts over.
        """
        async with self._init_lock:
            if isinstance(self._state, _Ready):
                return
            if isinstance(self._state, _Closed):
                raise NotReadyError("Storage has been closed").with_context(table=self._table_name)

            database: str | None = None
            try:
                database = database_name(self._connection_string)
                await ensure_database(self._connection_string, maintenance_db=self._maintenance_db)
                conn = await psycopg.AsyncConnection.connect(self._connection_string, autocommit=True)
                try:
                    await ensure_table(conn, self._table_name)
                except BaseException:
                    await conn.close()
                    raise
            except Exception as e:
                logger.error(
                    "store_initialization_failed",
                    database=database,
                    table=self._table_name,
                    error=str(e),
                )
                raise InitializationError(
                    f"Error initializing PostgresKeyValueStorage: {e}",
                    cause=e,
                ).with_context(database=database, table=self._table_name) from e

            self._state = _Ready(conn)
            logger.info("store_initialized", table=self._table_name)

    async def close(self) -> None:
        """Close the live connection. The store cannot be used afterwards."""
        async with self._init_lock:
            state = self._state
            self._state = _Closed()
            if isinstance(state, _Ready):
                await state.conn.close()
                logger.info("store_closed", table=self._table_name)

    async def __aenter__(self) -> PostgresKeyValueStorage[V]:
        await self.initialize()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    def _connection(self) -> psycopg.AsyncConnection:
        state = self._state
        if isinstance(state, _Ready):
            return state.conn
        if isinstance(state, _Closed):
            raise NotReadyError("Storage has been closed").with_context(table=self._table_name)
        raise NotReadyError("Storage is not initialized; await initialize() first").with_context(
            table=self._table_name
        )

    # ── Point operations ──────────────────────────────────────────

    async def get(self, key: str, default: V | None = None) -> V | None:
        """Return the value stored under ``key``, or ``default`` if absent."""
        conn = self._connection()
        cur = await conn.execute(
            sql.SQL("SELECT value FROM {} WHERE key = %s").format(self._table),
            (str(key),),
        )
        row = await cur.fetchone()
        if row is None:
            return default
        return row[0]

    async def has(self, key: str) -> bool:
        conn = self._connection()
        cur = await conn.execute(
            sql.SQL("SELECT 1 FROM {} WHERE key = %s LIMIT 1").format(self._table),
            (str(key),),
        )
        return await cur.fetchone() is not None

    async def set(self, key: str, value: V) -> PostgresKeyValueStorage[V]:
        """Insert or overwrite ``key``. Returns the store for chaining."""
        conn = self._connection()
        await conn.execute(
            sql.SQL(
                """
                INSERT INTO {} (key, value)
                VALUES (%s, %s)
                ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value
                """
            ).format(self._table),
            (str(key), Jsonb(value)),
        )
        return self

    async def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True if a row was deleted."""
        conn = self._connection()
        cur = await conn.execute(
            sql.SQL("DELETE FROM {} WHERE key = %s").format(self._table),
            (str(key),),
        )
        return cur.rowcount > 0

    # ── Enumeration ───────────────────────────────────────────────

    async def entries(self) -> AsyncIterator[tuple[str, V]]:
        """
        Yield every stored ``(key, value)`` pair in unspecified order.

        Rows are streamed through a named server-side cursor, ``batch_size``
        rows per round trip. The cursor is declared ``WITH HOLD`` because the
        connection runs in autocommit mode. It is closed when iteration
        finishes, fails, or the generator is closed early, so stop early with
        ``contextlib.aclosing``::

            async with aclosing(store.entries()) as entries:
                async for key, value in entries:
                    if key == wanted:
                        break
        """
        conn = self._connection()
        cursor = conn.cursor(name=f"pgkv_entries_{uuid.uuid4().hex}", withhold=True)
        cursor.itersize = self._batch_size
        try:
            await cursor.execute(sql.SQL("SELECT key, value FROM {}").format(self._table))
            async for key, value in cursor:
                yield key, value
        finally:
            await cursor.close()

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(table={self._table_name!r}, "
            f"state={type(self._state).__name__.lstrip('_').lower()})"
        )


__all__ = [
    "DEFAULT_BATCH_SIZE",
    "PostgresKeyValueStorage",
]
