"""
db/connection.py
----------------
Owns the PostgreSQL connection pool shared by repositories and schema readers.
Uses psycopg2's SimpleConnectionPool; synchronization itself is single-threaded,
so one small pool per process is enough.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2
from psycopg2 import extras, pool
from psycopg2.extensions import connection as PgConnection

from config import DATABASE_URL, DB_POOL_MAX_CONN, DB_POOL_MIN_CONN
from utils.logger import get_logger

logger = get_logger(__name__)

# uuid.UUID parameters adapt to uuid, and uuid columns come back as uuid.UUID
extras.register_uuid()

_pool: pool.SimpleConnectionPool | None = None


def init_pool(
    min_conn: int = DB_POOL_MIN_CONN,
    max_conn: int = DB_POOL_MAX_CONN,
    dsn: Optional[str] = None,
) -> None:
    """
    Open the pool. Calling it again while a pool exists does nothing.

    Args:
        min_conn: Connections opened eagerly.
        max_conn: Upper bound on simultaneously checked-out connections.
        dsn: Connection string; falls back to ``config.DATABASE_URL``.

    Raises:
        psycopg2.OperationalError: If the database is unreachable.
    """
    global _pool
    if is_initialized():
        return
    try:
        _pool = pool.SimpleConnectionPool(min_conn, max_conn, dsn or DATABASE_URL)
        logger.info(f"Database connection pool ready ({min_conn}-{max_conn} connections).")
    except psycopg2.OperationalError as e:
        logger.error(f"Failed to initialize database pool: {e}")
        raise


def is_initialized() -> bool:
    return _pool is not None


def get_connection() -> PgConnection:
    """
    Check a connection out of the pool.

    Raises:
        RuntimeError: If the pool has not been initialized.
    """
    if _pool is None:
        raise RuntimeError("Database pool not initialized. Call init_pool() first.")
    return _pool.getconn()


def release_connection(conn: PgConnection) -> None:
    """Hand a connection back to the pool (no-op once the pool is closed)."""
    if _pool is not None:
        _pool.putconn(conn)


@contextmanager
def pooled_connection() -> Iterator[PgConnection]:
    """Borrow a connection for the duration of a ``with`` block."""
    conn = get_connection()
    try:
        yield conn
    finally:
        release_connection(conn)


def close_pool() -> None:
    """Close every pooled connection and forget the pool."""
    global _pool
    if _pool is not None:
        _pool.closeall()
        _pool = None
        logger.info("Database connection pool closed.")
