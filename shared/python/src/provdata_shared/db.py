"""
db.py — DuckDB connection singleton and transactional scopes.

Usage:
    from provdata_shared.db import get_duckdb_connection, unit_of_work, read_scope

    with unit_of_work() as cur:            # BEGIN … COMMIT, rollback on error
        cur.execute("INSERT INTO …", params)

    with read_scope() as cur:              # lock-free read cursor
        rows = fetch_dicts(cur, "SELECT * FROM provinces")
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional

import duckdb
import structlog

from provdata_shared.config import settings
from provdata_shared.errors import InfrastructureError

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# DuckDB: single connection per process
# ---------------------------------------------------------------------------
_duckdb_lock = threading.Lock()
_duckdb_conn: Optional[duckdb.DuckDBPyConnection] = None

# DuckDB is a single-writer engine: write transactions from different
# cursors are serialized here instead of failing on commit.
_write_lock = threading.RLock()


def get_duckdb_connection() -> duckdb.DuckDBPyConnection:
    """
    Return the singleton DuckDB connection.

    The file path is read from settings.duckdb_path (":memory:" for an
    in-process database). Creates parent directories if they don't exist.

    Returns:
        duckdb.DuckDBPyConnection
    """
    global _duckdb_conn

    with _duckdb_lock:
        if _duckdb_conn is None:
            if settings.duckdb_path == ":memory:":
                _duckdb_conn = duckdb.connect(":memory:")
            else:
                db_path = Path(settings.duckdb_path)
                db_path.parent.mkdir(parents=True, exist_ok=True)
                _duckdb_conn = duckdb.connect(str(db_path))

            _duckdb_conn.execute(f"SET threads TO {int(settings.duckdb_threads)};")
            logger.info("duckdb_connected", path=settings.duckdb_path)

        return _duckdb_conn


def reset_duckdb_connection() -> None:
    """Reset the DuckDB singleton (useful in tests)."""
    global _duckdb_conn
    with _duckdb_lock:
        if _duckdb_conn is not None:
            _duckdb_conn.close()
            _duckdb_conn = None


def init_schema(conn: duckdb.DuckDBPyConnection | None = None) -> None:
    """Create the provinces, fact and connection tables if missing."""
    from provdata_shared.schema import schema_statements

    conn = conn or get_duckdb_connection()
    with _write_lock:
        try:
            for statement in schema_statements():
                conn.execute(statement)
        except duckdb.Error as exc:
            raise InfrastructureError(f"Schema initialisation failed: {exc}") from exc
    logger.info("schema_initialised")


# ---------------------------------------------------------------------------
# Scopes
# ---------------------------------------------------------------------------


@contextmanager
def unit_of_work(
    conn: duckdb.DuckDBPyConnection | None = None,
    *,
    rollback_only: bool = False,
) -> Iterator[duckdb.DuckDBPyConnection]:
    """
    Run a block inside one DuckDB transaction.

    Commits on normal exit, rolls back on any exception. DuckDB errors are
    re-raised as InfrastructureError; provdata errors propagate unchanged.

    Args:
        conn:          Base connection (defaults to the process singleton).
        rollback_only: Always roll back, even on success (dry runs).

    Yields:
        A dedicated cursor bound to the open transaction.
    """
    base = conn or get_duckdb_connection()
    with _write_lock:
        try:
            cur = base.cursor()
            cur.execute("BEGIN TRANSACTION")
        except duckdb.Error as exc:
            raise InfrastructureError(f"Could not open transaction: {exc}") from exc

        try:
            yield cur
            if rollback_only:
                cur.execute("ROLLBACK")
            else:
                cur.execute("COMMIT")
        except duckdb.Error as exc:
            _rollback(cur)
            logger.error("transaction_aborted", error=str(exc))
            raise InfrastructureError(f"Transaction aborted: {exc}") from exc
        except BaseException:
            _rollback(cur)
            raise
        finally:
            cur.close()


@contextmanager
def read_scope(
    conn: duckdb.DuckDBPyConnection | None = None,
) -> Iterator[duckdb.DuckDBPyConnection]:
    """Yield a fresh cursor for lock-free reads."""
    base = conn or get_duckdb_connection()
    try:
        cur = base.cursor()
    except duckdb.Error as exc:
        raise InfrastructureError(f"Database unavailable: {exc}") from exc
    try:
        yield cur
    except duckdb.Error as exc:
        raise InfrastructureError(f"Query failed: {exc}") from exc
    finally:
        cur.close()


def _rollback(cur: duckdb.DuckDBPyConnection) -> None:
    try:
        cur.execute("ROLLBACK")
    except duckdb.Error as exc:
        # Transaction already closed by DuckDB after a fatal error.
        logger.debug("rollback_skipped", error=str(exc))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def fetch_dicts(
    cur: duckdb.DuckDBPyConnection,
    sql: str,
    params: Sequence[Any] | None = None,
) -> list[dict[str, Any]]:
    """Execute a query and return rows as dicts keyed by column name."""
    cur.execute(sql, list(params or []))
    columns = [d[0] for d in cur.description]
    return [dict(zip(columns, row)) for row in cur.fetchall()]


def fetch_one(
    cur: duckdb.DuckDBPyConnection,
    sql: str,
    params: Sequence[Any] | None = None,
) -> dict[str, Any] | None:
    rows = fetch_dicts(cur, sql, params)
    return rows[0] if rows else None


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the TIMESTAMP columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
