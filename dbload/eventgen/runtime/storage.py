"""
SQLite connection handling and table migration.

Invariants:
    - Connections run in autocommit mode, so a completed store() is durable
      once it returns
    - auto_migrate only ever adds: it creates missing tables, missing
      columns and the time index, and never drops or alters existing ones
    - Migrating an up-to-date database executes no DDL that changes it

How to change safely:
    - Keep the backoff linear (initial_delay + i * backoff_step); operators
      size DB_RETRY_COUNT against it
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Sequence
from pathlib import Path

from ..errors import ConnectionError, MigrationError

logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAY = 1.0
DEFAULT_RETRY_STEP = 5.0


def open_connection(db_path: str | Path, busy_timeout_ms: int = 5000) -> sqlite3.Connection:
    """Open and check a connection.

    The parent directory is not created: a missing directory is treated as
    a database that is not reachable yet.

    Raises:
        sqlite3.Error: If the database cannot be opened
    """
    conn = sqlite3.connect(
        str(db_path),
        timeout=busy_timeout_ms / 1000.0,
        isolation_level=None,  # Autocommit
    )
    try:
        conn.row_factory = sqlite3.Row
        conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
        conn.execute("SELECT 1").fetchone()
    except sqlite3.Error:
        conn.close()
        raise
    return conn


def retry_delay(attempt: int, initial_delay: float, backoff_step: float) -> float:
    """Delay after the given failed attempt (0-based): 1s, 6s, 11s, ..."""
    return initial_delay + attempt * backoff_step


async def connect_with_retry(
    db_path: str | Path,
    max_attempts: int = 5,
    busy_timeout_ms: int = 5000,
    initial_delay: float = DEFAULT_RETRY_DELAY,
    backoff_step: float = DEFAULT_RETRY_STEP,
) -> sqlite3.Connection:
    """Connect to the database, retrying with linear backoff.

    Args:
        db_path: SQLite database file
        max_attempts: Total number of attempts
        busy_timeout_ms: Lock wait for every statement
        initial_delay: Wait after the first failure, in seconds
        backoff_step: Added to the wait after every further failure

    Returns:
        Open connection

    Raises:
        ConnectionError: If every attempt failed
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    last_error: Exception | None = None
    for attempt in range(max_attempts):
        try:
            conn = open_connection(db_path, busy_timeout_ms)
        except sqlite3.Error as e:
            last_error = e
            delay = retry_delay(attempt, initial_delay, backoff_step)
            logger.warning(
                f"Database connection attempt {attempt + 1}/{max_attempts} failed: {e}",
                extra={"db_path": str(db_path)},
            )
            if attempt + 1 < max_attempts:
                await asyncio.sleep(delay)
            continue

        logger.info(f"Connected to database at {db_path}")
        return conn

    raise ConnectionError(
        f"can't connect to database after {max_attempts} attempts: {last_error}",
        address=str(db_path),
        attempts=max_attempts,
    )


def _existing_columns(conn: sqlite3.Connection, table: str) -> list[str]:
    return [row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()]


def auto_migrate(
    conn: sqlite3.Connection,
    table: str,
    column_defs: Sequence[tuple[str, str]],
    time_column: str,
) -> list[str]:
    """Bring one event table up to date.

    Args:
        conn: Open connection
        table: Table name
        column_defs: (column, column type) pairs in field order
        time_column: Column range queries filter on

    Returns:
        DDL statements that changed the database, empty if it was up to date

    Raises:
        MigrationError: If any statement fails
    """
    applied: list[str] = []
    try:
        existing = _existing_columns(conn, table)
        if not existing:
            columns = ", ".join(f"{name} {column_type}" for name, column_type in column_defs)
            ddl = f"CREATE TABLE IF NOT EXISTS {table} ({columns})"
            conn.execute(ddl)
            applied.append(ddl)
        else:
            present = {column.casefold() for column in existing}
            for name, column_type in column_defs:
                if name.casefold() not in present:
                    ddl = f"ALTER TABLE {table} ADD COLUMN {name} {column_type}"
                    conn.execute(ddl)
                    applied.append(ddl)

        index = f"idx_{table}_{time_column}"
        found = conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'index' AND name = ? COLLATE NOCASE",
            (index,),
        ).fetchone()
        if found is None:
            ddl = f"CREATE INDEX IF NOT EXISTS {index} ON {table} ({time_column})"
            conn.execute(ddl)
            applied.append(ddl)
    except sqlite3.Error as e:
        raise MigrationError(f"can't migrate table {table}: {e}", table=table) from e

    for ddl in applied:
        logger.info(f"Applied migration: {ddl}", extra={"table": table})
    return applied
