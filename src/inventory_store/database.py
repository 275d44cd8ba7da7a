# Inventory Store
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""
Process-wide handle for the ``item_database`` SQLite file.

``get_database(context)`` lazily builds the handle on first use and returns the
same object afterwards, from any thread. Everything that touches the file goes
through the handle's :class:`DbWriter`, so the process has exactly one
connection and one writer for it.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
from pathlib import Path
from typing import ClassVar

from inventory_store.core.config import StoreSettings
from inventory_store.core.context import AppContext
from inventory_store.dao import ItemDao
from inventory_store.errors import DatabaseOpenError
from inventory_store.storage.invalidation import InvalidationTracker
from inventory_store.storage.sqlite.db_writer import DbWriter
from inventory_store.storage.sqlite.schema import apply_default_pragmas, ensure_schema
from inventory_store.storage.sqlite.utils import MEMORY_PATH, open_db

__all__ = ["DATABASE_NAME", "InventoryDatabase", "get_database"]

DATABASE_NAME = "item_database"

log = logging.getLogger(__name__)


class InventoryDatabase:
    """Open inventory database: one connection, one writer thread, one tracker."""

    _instance: ClassVar[InventoryDatabase | None] = None
    _instance_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, path: str, conn: sqlite3.Connection, settings: StoreSettings) -> None:
        self.path = path
        self.settings = settings
        self.tracker = InvalidationTracker()
        self.writer = DbWriter(
            conn,
            tracker=self.tracker,
            name=f"InventoryDb[{Path(path).name}]",
            close_timeout=settings.close_timeout,
        )
        self._dao: ItemDao | None = None
        self._dao_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Construction
    @classmethod
    def get_database(cls, context: AppContext) -> InventoryDatabase:
        """Return the shared handle, building it on the first call."""

        # Attribute reads are atomic; an unset reference falls through to the lock.
        instance = cls._instance
        if instance is not None:
            return instance
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls.build(context, DATABASE_NAME)
            return cls._instance

    @classmethod
    def build(
        cls,
        context: AppContext,
        name: str = DATABASE_NAME,
        *,
        settings: StoreSettings | None = None,
    ) -> InventoryDatabase:
        """Open (creating if needed) database ``name`` in ``context``.

        Raises:
            DatabaseOpenError: the file cannot be opened or created
            SchemaVersionError: the file was written by an unsupported schema
        """

        settings = settings or context.settings
        try:
            path = context.get_database_path(name)
        except OSError as exc:
            raise DatabaseOpenError(context.data_dir / "databases" / name, str(exc)) from exc
        return cls._open(os.fspath(path), settings)

    @classmethod
    def in_memory(cls, settings: StoreSettings | None = None) -> InventoryDatabase:
        """Private in-memory database; its contents vanish on :meth:`close`."""

        if settings is None:
            settings = AppContext().settings
        return cls._open(MEMORY_PATH, settings)

    @classmethod
    def _open(cls, path: str, settings: StoreSettings) -> InventoryDatabase:
        try:
            conn = open_db(path)
        except sqlite3.Error as exc:
            raise DatabaseOpenError(path, str(exc)) from exc

        try:
            apply_default_pragmas(
                conn,
                journal_mode=settings.journal_mode,
                synchronous=settings.synchronous,
                busy_timeout_ms=settings.busy_timeout_ms,
            )
            previous = ensure_schema(conn)
        except sqlite3.Error as exc:
            conn.close()
            raise DatabaseOpenError(path, str(exc)) from exc
        except Exception:
            conn.close()
            raise

        try:
            database = cls(path, conn, settings)
        except Exception:
            conn.close()
            raise
        log.info(
            "Opened inventory database path=%s created=%s journal=%s",
            path,
            previous == 0,
            settings.journal_mode,
        )
        return database

    # ------------------------------------------------------------------
    def item_dao(self) -> ItemDao:
        if self._dao is None:
            with self._dao_lock:
                if self._dao is None:
                    self._dao = ItemDao(self)
        return self._dao

    @property
    def closed(self) -> bool:
        return self.writer.closed

    def close(self) -> None:
        """End live subscriptions and stop the writer.

        Only for handles from :meth:`build` or :meth:`in_memory`; the shared
        handle lives for the whole process.
        """

        if self.writer.closed:
            return
        self.tracker.close()
        self.writer.close()
        log.info("Closed inventory database path=%s", self.path)

    def __enter__(self) -> InventoryDatabase:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


get_database = InventoryDatabase.get_database
