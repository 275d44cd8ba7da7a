"""
Connection helpers for the inventory SQLite file.

Connections are opened in autocommit mode so that ``transaction`` controls
BEGIN/COMMIT explicitly.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

__all__ = ["MEMORY_PATH", "database_uri", "open_db", "transaction"]

MEMORY_PATH = ":memory:"


def database_uri(path: str, mode: str = "rwc") -> str:
    """Return the ``file:`` URI for ``path`` with ``?``, ``#`` and ``%`` percent-encoded."""

    return f"{Path(path).absolute().as_uri()}?mode={mode}"


def open_db(path: str, *, mode: str = "rwc") -> sqlite3.Connection:
    """
    Open a SQLite database usable from any thread.

    mode: "ro" (read-only), "rw", "rwc" (create if needed). Default: "rwc".
    """
    if path == MEMORY_PATH:
        conn = sqlite3.connect(MEMORY_PATH, check_same_thread=False, isolation_level=None)
    else:
        conn = sqlite3.connect(
            database_uri(path, mode), uri=True, check_same_thread=False, isolation_level=None
        )
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def transaction(
    conn: sqlite3.Connection,
    *,
    begin: str = "BEGIN IMMEDIATE",
) -> Iterator[sqlite3.Connection]:
    """
    Transaction wrapper that commits on success and rolls back on error.
    """

    conn.execute(begin)
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")
