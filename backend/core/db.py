from collections.abc import AsyncGenerator
from typing import Any

import psycopg
import psycopg.rows
import psycopg_pool
from litestar.datastructures import State


async def init_pool(conninfo: str) -> psycopg_pool.AsyncConnectionPool:
    """Open an async connection pool.

    Connections run in autocommit mode: every repository statement is
    durable once it returns, which the asset lifecycle relies on.
    """
    pool = psycopg_pool.AsyncConnectionPool(
        conninfo=conninfo,
        min_size=2,
        max_size=10,
        kwargs={"autocommit": True},
        open=False,
    )
    await pool.open()
    await pool.wait()
    return pool


async def close_pool(pool: psycopg_pool.AsyncConnectionPool | None) -> None:
    """Close the connection pool."""
    if pool:
        await pool.close()


async def provide_connection(
    state: State,
) -> AsyncGenerator[psycopg.AsyncConnection, None]:
    """Litestar dependency provider for database connections."""
    pool = state.get("pool")
    if not pool:
        raise RuntimeError("Database pool not initialized")
    async with pool.connection() as conn:
        yield conn


async def fetch_one(
    conn: psycopg.AsyncConnection,
    query: str,
    params: dict[str, Any] | None = None,
) -> dict[str, Any] | None:
    """Execute a query and return one row as dict."""
    async with conn.cursor(row_factory=psycopg.rows.dict_row) as cur:
        await cur.execute(query, params or {})
        return await cur.fetchone()


async def fetch_all(
    conn: psycopg.AsyncConnection,
    query: str,
    params: dict[str, Any] | None = None,
) -> list[dict[str, Any]]:
    """Execute a query and return all rows as dicts."""
    async with conn.cursor(row_factory=psycopg.rows.dict_row) as cur:
        await cur.execute(query, params or {})
        return await cur.fetchall()


async def execute(
    conn: psycopg.AsyncConnection,
    query: str,
    params: dict[str, Any] | None = None,
) -> int:
    """Execute a query and return the row count."""
    async with conn.cursor() as cur:
        await cur.execute(query, params)
        return cur.rowcount


def sql_create_admins_table() -> str:
    return """
        CREATE TABLE IF NOT EXISTS admins (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            username text NOT NULL UNIQUE,
            pwhash text NOT NULL,
            created_at timestamptz NOT NULL DEFAULT now()
        )
    """


def sql_create_contacts_table() -> str:
    return """
        CREATE TABLE IF NOT EXISTS contacts (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            seq bigint GENERATED ALWAYS AS IDENTITY,
            name text NOT NULL,
            phone text,
            mobile text,
            position text,
            designation text,
            image_path text,
            created_at timestamptz NOT NULL DEFAULT now()
        )
    """


async def ensure_schema(conn: psycopg.AsyncConnection) -> None:
    """Create the admins and contacts tables if they are missing."""
    await execute(conn, sql_create_admins_table())
    await execute(conn, sql_create_contacts_table())
