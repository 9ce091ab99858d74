"""Idempotent database and table provisioning.

Creating the target database is a check-then-act sequence that several
processes may run at once (e.g. replicas starting together). The whole
sequence runs under a PostgreSQL session advisory lock keyed by
``hashtext(<database name>)``, taken on the maintenance database since the
target may not exist yet::

    ensure_database(conninfo)
      ├── connect to maintenance db (one autocommit connection)
      ├── pg_advisory_lock(hashtext(name))
      │     ├── SELECT 1 FROM pg_database WHERE datname = name
      │     └── CREATE DATABASE "name"          (only if absent)
      └── pg_advisory_unlock(hashtext(name))    (always)

The table is created with ``CREATE TABLE IF NOT EXISTS`` under a second
advisory lock taken on the target database.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import psycopg
from psycopg import sql
from psycopg.conninfo import conninfo_to_dict, make_conninfo

from pgkv.errors import ConfigError
from pgkv.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAINTENANCE_DB = "postgres"


def database_name(conninfo: str) -> str:
    """Return the target database name encoded in a connection string."""
    try:
        params = conninfo_to_dict(conninfo)
    except psycopg.ProgrammingError as e:
        raise ConfigError(f"Invalid connection string: {e}", cause=e) from e

    name = params.get("dbname")
    if not name:
        raise ConfigError("Connection string does not name a database")
    return str(name)


def maintenance_conninfo(conninfo: str, maintenance_db: str = DEFAULT_MAINTENANCE_DB) -> str:
    """Return ``conninfo`` pointed at the maintenance database instead."""
    return make_conninfo(conninfo, dbname=maintenance_db)


@asynccontextmanager
async def advisory_lock(conn: psycopg.AsyncConnection, name: str) -> AsyncIterator[None]:
    """Hold a session advisory lock keyed by ``hashtext(name)``."""
    await conn.execute("SELECT pg_advisory_lock(hashtext(%s))", (name,))
    try:
        yield
    finally:
        await conn.execute("SELECT pg_advisory_unlock(hashtext(%s))", (name,))


async def ensure_database(
    conninfo: str,
    *,
    maintenance_db: str = DEFAULT_MAINTENANCE_DB,
) -> bool:
    """
    Create the database named in ``conninfo`` if it does not exist.

    Safe to run concurrently from independent processes: only one of them
    issues ``CREATE DATABASE``, the others find it already present.

    Args:
        conninfo: Connection string of the target database
        maintenance_db: Always-present database to connect to meanwhile

    Returns:
        True if the database was created by this call
    """
    name = database_name(conninfo)

    # Single connection: administrative statements run one at a time.
    async with await psycopg.AsyncConnection.connect(
        maintenance_conninfo(conninfo, maintenance_db),
        autocommit=True,
    ) as conn:
        async with advisory_lock(conn, name):
            cur = await conn.execute(
                "SELECT 1 FROM pg_database WHERE datname = %s",
                (name,),
            )
            if await cur.fetchone() is not None:
                logger.debug("database_exists", database=name)
                return False

            await conn.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(name)))
            logger.info("database_created", database=name)
            return True


async def ensure_table(conn: psycopg.AsyncConnection, table: str) -> None:
    """Create the key-value table if it does not exist.

    Concurrent ``CREATE TABLE IF NOT EXISTS`` statements for the same name
    can still collide on the catalog's unique indexes, so they are
    serialized with an advisory lock in the target database.
    """
    async with advisory_lock(conn, f"pgkv.table.{table}"):
        await conn.execute(
            sql.SQL(
                """
                CREATE TABLE IF NOT EXISTS {} (
                    key TEXT PRIMARY KEY,
                    value JSONB NOT NULL
                )
                """
            ).format(sql.Identifier(table))
        )
    logger.debug("table_ensured", table=table)


__all__ = [
    "DEFAULT_MAINTENANCE_DB",
    "advisory_lock",
    "database_name",
    "ensure_database",
    "ensure_table",
    "maintenance_conninfo",
]
