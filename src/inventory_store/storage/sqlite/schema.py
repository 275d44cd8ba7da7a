"""
Schema and pragma helpers for the ``items`` table.
"""

from __future__ import annotations

import logging
import sqlite3

from inventory_store.errors import InventoryStoreError

__all__ = [
    "SCHEMA_VERSION",
    "ITEMS_TABLE",
    "SchemaVersionError",
    "apply_default_pragmas",
    "ensure_schema",
    "get_user_version",
]

SCHEMA_VERSION = 1
ITEMS_TABLE = "items"

log = logging.getLogger(__name__)


class SchemaVersionError(InventoryStoreError):
    """Raised when a database file carries a schema version this code cannot open."""

    def __init__(self, found: int, expected: int = SCHEMA_VERSION):
        self.found = found
        self.expected = expected
        super().__init__(
            f"Database schema version {found} is not supported (expected {expected}); "
            "no migration path is defined."
        )


def apply_default_pragmas(
    conn: sqlite3.Connection,
    *,
    journal_mode: str = "WAL",
    synchronous: str = "NORMAL",
    busy_timeout_ms: int = 10000,
) -> None:
    """
    Apply the pragmas every inventory connection runs with.

    In-memory databases silently keep their ``memory`` journal mode.
    """
    conn.execute("PRAGMA foreign_keys = ON")
    # journal_mode answers with the mode actually in effect.
    mode = conn.execute(f"PRAGMA journal_mode = {journal_mode}").fetchone()[0]
    if str(mode).lower() != journal_mode.lower():
        log.debug("journal_mode %s requested, %s in effect", journal_mode, mode)
    conn.execute(f"PRAGMA synchronous = {synchronous}")
    conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")


def ensure_schema(conn: sqlite3.Connection) -> int:
    """
    Create the ``items`` table on a fresh file and validate the version otherwise.

    Returns the schema version found before the call (0 for a fresh file).
    """

    found = get_user_version(conn)
    if found == SCHEMA_VERSION:
        return found
    if found != 0:
        raise SchemaVersionError(found)

    log.info("Creating inventory schema v%s", SCHEMA_VERSION)
    conn.executescript(
        f"""
        BEGIN;
        CREATE TABLE IF NOT EXISTS {ITEMS_TABLE} (
            id INTEGER PRIMARY KEY AUTOINCREMENT NOT NULL,
            name TEXT NOT NULL,
            price REAL NOT NULL,
            quantity INTEGER NOT NULL
        );
        PRAGMA user_version = {SCHEMA_VERSION};
        COMMIT;
        """
    )
    return found


def get_user_version(conn: sqlite3.Connection) -> int:
    """Return the PRAGMA user_version value."""

    cur = conn.execute("PRAGMA user_version")
    row = cur.fetchone()
    return int(row[0]) if row and row[0] is not None else 0

