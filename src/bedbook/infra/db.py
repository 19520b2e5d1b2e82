"""Database access layer using psycopg2.

Provides:
- get_conn(): Get a database connection from DATABASE_URL
- txn(): Context manager for short, safe transactions
- fetchone/fetchall: Query helpers
- for_update(): SELECT ... FOR UPDATE helper
- advisory_xact_lock(): named lock held until the transaction ends
"""

import os
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

import psycopg2
from psycopg2.extensions import connection as PgConnection, cursor as PgCursor

APPLICATION_NAME = "bedbook"


def get_conn() -> PgConnection:
    """Get a new database connection from DATABASE_URL.

    Sessions run in UTC; local dates are derived in application code.

    Raises:
        RuntimeError: If DATABASE_URL is not set.
        psycopg2.Error: On connection failure.
    """
    dsn = os.environ.get("DATABASE_URL")
    if not dsn:
        raise RuntimeError("DATABASE_URL environment variable not set")
    return psycopg2.connect(
        dsn,
        application_name=APPLICATION_NAME,
        options="-c timezone=UTC",
    )


@contextmanager
def txn(conn: PgConnection | None = None, *, readonly: bool = False) -> Iterator[PgCursor]:
    """Context manager for a short, safe transaction.

    If conn is None, creates a new connection that is closed on exit.
    Commits on successful exit, rolls back on exception.

    Args:
        conn: Optional existing connection. If None, creates new one.
        readonly: Mark the transaction READ ONLY (list and report queries).

    Yields:
        Cursor for executing queries within the transaction.

    Example:
        with txn() as cur:
            cur.execute("UPDATE beds SET status = %s WHERE id = %s", ("maintenance", bed_id))
    """
    owns_conn = conn is None
    if owns_conn:
        conn = get_conn()

    try:
        with conn.cursor() as cur:
            if readonly:
                cur.execute("SET TRANSACTION READ ONLY")
            yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        if owns_conn:
            conn.close()


def fetchone(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
) -> tuple[Any, ...] | None:
    """Execute query and fetch one row, or None."""
    cur.execute(query, params)
    return cur.fetchone()


def fetchall(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
) -> list[tuple[Any, ...]]:
    """Execute query and fetch all rows."""
    cur.execute(query, params)
    return cur.fetchall()


def for_update(
    cur: PgCursor,
    query: str,
    params: Sequence[Any] | None = None,
) -> tuple[Any, ...] | None:
    """Execute SELECT ... FOR UPDATE and fetch one row.

    Locks the selected row until the surrounding transaction ends; a
    concurrent admin action on the same row waits for the commit.
    """
    full_query = query.rstrip().rstrip(";") + " FOR UPDATE"
    cur.execute(full_query, params)
    return cur.fetchone()


def advisory_xact_lock(cur: PgCursor, key: str) -> None:
    """Take a transaction-scoped advisory lock named by ``key``.

    Released automatically at commit/rollback; concurrent holders of the
    same key queue behind it.
    """
    cur.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (key,))
