# Inventory Store
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Data-access object for the ``items`` table."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from concurrent.futures import Future
from typing import TYPE_CHECKING

from inventory_store.live_query import LiveQuery
from inventory_store.models import Item
from inventory_store.storage.sqlite.schema import ITEMS_TABLE
from inventory_store.storage.sqlite.utils import transaction

if TYPE_CHECKING:
    from inventory_store.database import InventoryDatabase

__all__ = ["ItemDao"]

log = logging.getLogger(__name__)

_INSERT_SQL = f"INSERT OR IGNORE INTO {ITEMS_TABLE} (id, name, price, quantity) VALUES (?, ?, ?, ?)"
_UPDATE_SQL = f"UPDATE {ITEMS_TABLE} SET name = ?, price = ?, quantity = ? WHERE id = ?"
_DELETE_SQL = f"DELETE FROM {ITEMS_TABLE} WHERE id = ?"
_SELECT_ONE_SQL = f"SELECT id, name, price, quantity FROM {ITEMS_TABLE} WHERE id = ?"
_SELECT_ALL_SQL = f"SELECT id, name, price, quantity FROM {ITEMS_TABLE} ORDER BY name ASC"


def _insert_row(conn: sqlite3.Connection, item: Item) -> int | None:
    cur = conn.execute(_INSERT_SQL, item.as_params())
    if cur.rowcount == 0:
        log.debug("Insert of item id=%s ignored (conflict)", item.id)
        return None
    return cur.lastrowid


class ItemDao:
    """
    The only sanctioned way to read or write ``Item`` rows.

    Mutations are queued on the database worker and return a
    :class:`~concurrent.futures.Future`; wait with ``future.result()`` or, from
    asyncio code, ``await asyncio.wrap_future(future)``. Reads return
    :class:`~inventory_store.live_query.LiveQuery` objects.
    """

    def __init__(self, database: InventoryDatabase) -> None:
        self._database = database

    # ------------------------------------------------------------------
    # Mutations
    def insert(self, item: Item) -> Future:
        """Insert ``item``; resolves to the new row id, or ``None`` if the id already exists."""

        def _write(conn: sqlite3.Connection) -> int | None:
            with transaction(conn):
                return _insert_row(conn, item)

        return self._submit(_write)

    def insert_all(self, items: Iterable[Item]) -> Future:
        """Insert several items in one transaction; resolves to one result per item."""

        batch = list(items)

        def _write(conn: sqlite3.Connection) -> list[int | None]:
            with transaction(conn):
                return [_insert_row(conn, item) for item in batch]

        return self._submit(_write)

    def update(self, item: Item) -> Future:
        """Replace the row with ``item.id``; resolves to the number of rows changed."""

        def _write(conn: sqlite3.Connection) -> int:
            with transaction(conn):
                cur = conn.execute(_UPDATE_SQL, (item.name, item.price, item.quantity, item.id))
                return cur.rowcount

        return self._submit(_write)

    def delete(self, item: Item) -> Future:
        """Delete the row with ``item.id``; resolves to the number of rows removed."""

        def _write(conn: sqlite3.Connection) -> int:
            with transaction(conn):
                cur = conn.execute(_DELETE_SQL, (item.id,))
                return cur.rowcount

        return self._submit(_write)

    # ------------------------------------------------------------------
    # Live queries
    def get_item(self, item_id: int) -> LiveQuery[Item]:
        """Observe one row. Nothing is emitted while the row does not exist."""

        def _fetch(conn: sqlite3.Connection) -> Item | None:
            row = conn.execute(_SELECT_ONE_SQL, (item_id,)).fetchone()
            return Item.from_row(row) if row is not None else None

        return self._live(_fetch, distinct=True, name=f"get_item({item_id})")

    def get_all_items(self) -> LiveQuery[list[Item]]:
        """Observe the whole table ordered by name."""

        def _fetch(conn: sqlite3.Connection) -> list[Item]:
            rows = conn.execute(_SELECT_ALL_SQL).fetchall()
            return [Item.from_row(row) for row in rows]

        return self._live(_fetch, name="get_all_items()")

    # ------------------------------------------------------------------
    def _submit(self, func) -> Future:
        return self._database.writer.submit(func, invalidates=(ITEMS_TABLE,))

    def _live(self, fetch, *, distinct: bool = False, name: str) -> LiveQuery:
        return LiveQuery(
            self._database.writer,
            self._database.tracker,
            (ITEMS_TABLE,),
            fetch,
            distinct=distinct,
            name=name,
        )
