# ============================================================================
# DATABASE CONNECTION POOL
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Async PostgreSQL connection management
# PURPOSE: Connection pooling and schema for the PostgreSQL object store
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Database Connection Pool

Manages async PostgreSQL connections using psycopg3 and psycopg_pool.
Singleton pattern ensures one pool per application.

Connection settings come from DATABASE_URL or the POSTGRES_* variables.

Usage:
    from repositories.database import get_pool

    pool = await get_pool()
    async with pool.connection() as conn:
        result = await conn.execute("SELECT 1")
"""

import os
import logging
from typing import Optional
from contextlib import asynccontextmanager

from psycopg import sql
from psycopg_pool import AsyncConnectionPool

logger = logging.getLogger(__name__)

# Global pool instance
_pool: Optional[AsyncConnectionPool] = None


def get_connection_string() -> str:
    """
    Get database connection string from environment.

    Priority:
    1. DATABASE_URL environment variable
    2. Individual POSTGRES_* components

    Returns:
        PostgreSQL connection string
    """
    if url := os.environ.get("DATABASE_URL"):
        return url

    host = os.environ.get("POSTGRES_HOST", "localhost")
    port = os.environ.get("POSTGRES_PORT", "5432")
    name = os.environ.get("POSTGRES_DB", "postgres")
    user = os.environ.get("POSTGRES_USER", "postgres")
    password = os.environ.get("POSTGRES_PASSWORD", "")
    sslmode = os.environ.get("POSTGRES_SSLMODE", "prefer")

    return f"postgresql://{user}:{password}@{host}:{port}/{name}?sslmode={sslmode}"


def safe_conninfo(conninfo: str) -> str:
    """Connection string with the credentials stripped, for logs."""
    if "@" in conninfo:
        return conninfo.split("@")[-1]
    if "password=" in conninfo:
        return conninfo.split("password=")[0] + "password=***"
    return conninfo


async def init_pool(
    min_size: int = 2,
    max_size: int = 10,
    connection_string: Optional[str] = None,
) -> AsyncConnectionPool:
    """
    Initialize the global connection pool.

    Args:
        min_size: Minimum connections to maintain
        max_size: Maximum connections allowed
        connection_string: Override connection string (defaults to env)

    Returns:
        AsyncConnectionPool instance
    """
    global _pool

    if _pool is not None:
        logger.warning("Pool already initialized, returning existing pool")
        return _pool

    conninfo = connection_string or get_connection_string()
    logger.info(f"Initializing connection pool: {safe_conninfo(conninfo)}")

    _pool = AsyncConnectionPool(
        conninfo=conninfo,
        min_size=min_size,
        max_size=max_size,
        open=False,  # We'll open it explicitly
    )

    await _pool.open()
    logger.info(f"Connection pool opened (min={min_size}, max={max_size})")

    return _pool


async def get_pool() -> AsyncConnectionPool:
    """
    Get the global connection pool, initializing if needed.

    Returns:
        AsyncConnectionPool instance
    """
    if _pool is None:
        await init_pool()
    return _pool


async def close_pool() -> None:
    """Close the global connection pool."""
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Connection pool closed")


@asynccontextmanager
async def get_connection():
    """
    Get a connection from the pool.

    Usage:
        async with get_connection() as conn:
            await conn.execute(...)
    """
    pool = await get_pool()
    async with pool.connection() as conn:
        yield conn


# ============================================================================
# SCHEMA
# ============================================================================

SCHEMA = os.environ.get("SYNC_SCHEMA", "syncmaster")

# Table identifiers - use with sql.SQL().format() for injection-safe queries
TABLE_RESOURCES = sql.Identifier(SCHEMA, "resources")

# NOTIFY channel carrying ResourceEvent payloads
NOTIFY_CHANNEL = f"{SCHEMA}_resources"

# seq gives a total creation order independent of clock skew between writers
SCHEMA_DDL = [
    sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(SCHEMA)),
    sql.SQL("""
    CREATE TABLE IF NOT EXISTS {} (
        kind TEXT NOT NULL,
        namespace TEXT NOT NULL,
        name TEXT NOT NULL,
        labels JSONB NOT NULL DEFAULT '{{}}'::jsonb,
        spec JSONB NOT NULL DEFAULT '{{}}'::jsonb,
        status JSONB NOT NULL DEFAULT '{{}}'::jsonb,
        creation_timestamp TIMESTAMPTZ NOT NULL,
        resource_version BIGINT NOT NULL DEFAULT 1,
        seq BIGSERIAL,
        PRIMARY KEY (kind, namespace, name)
    )
    """).format(TABLE_RESOURCES),
    sql.SQL("CREATE INDEX IF NOT EXISTS resources_labels_idx ON {} USING GIN (labels)").format(
        TABLE_RESOURCES
    ),
]


async def ensure_schema(pool: AsyncConnectionPool) -> None:
    """Create the schema and resources table if missing."""
    async with pool.connection() as conn:
        for statement in SCHEMA_DDL:
            await conn.execute(statement)
    logger.info(f"Schema {SCHEMA} ready")
