# Inventory Store
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""
Live queries: query results that are re-delivered whenever their tables change.

A :class:`LiveQuery` is only a description (SQL fetch function plus the tables
it reads). Each call to :meth:`LiveQuery.subscribe` (or ``iter()``) starts an
independent :class:`Subscription` which

* runs the query once on the database worker and emits the first snapshot,
* re-runs it after every committed write that changed one of its tables,
* stops when cancelled, when its database closes, or after a query error.

Snapshots are produced on the database worker thread; consumers either block
on :meth:`Subscription.get` / iterate, or pass a callback to
:meth:`LiveQuery.observe`.
"""

from __future__ import annotations

import logging
import queue
import sqlite3
import threading
from collections.abc import Callable, Iterable, Iterator
from typing import Generic, TypeVar

from inventory_store.errors import InventoryStoreError
from inventory_store.storage.invalidation import InvalidationTracker
from inventory_store.storage.sqlite.db_writer import DbWriter, WriterClosed

__all__ = ["LiveQuery", "Subscription", "SubscriptionClosed"]

log = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()


class SubscriptionClosed(InventoryStoreError):
    """Raised by :meth:`Subscription.get` once the subscription has ended."""


class LiveQuery(Generic[T]):
    """Restartable description of an observable query."""

    def __init__(
        self,
        writer: DbWriter,
        tracker: InvalidationTracker,
        tables: Iterable[str],
        fetch: Callable[[sqlite3.Connection], T | None],
        *,
        distinct: bool = False,
        name: str = "query",
    ) -> None:
        self.writer = writer
        self.tracker = tracker
        self.tables = frozenset(tables)
        self.fetch = fetch
        self.distinct = distinct
        self.name = name

    def subscribe(self) -> Subscription[T]:
        """Start a new subscription that buffers snapshots for :meth:`Subscription.get`."""

        return Subscription(self)._start()

    def observe(self, callback: Callable[[T], None]) -> Subscription[T]:
        """Start a new subscription that hands every snapshot to ``callback``.

        ``callback`` runs on the database worker thread. It may submit further
        DAO operations but must not block on their futures.
        """

        return Subscription(self, callback)._start()

    def first(self, timeout: float | None = None) -> T:
        """Return the first snapshot and cancel the subscription."""

        with self.subscribe() as subscription:
            return subscription.get(timeout=timeout)

    def __iter__(self) -> Iterator[T]:
        return self.subscribe()

    def __repr__(self) -> str:
        return f"LiveQuery({self.name!r}, tables={sorted(self.tables)})"


class Subscription(Generic[T]):
    """One active observation of a :class:`LiveQuery`."""

    def __init__(self, query: LiveQuery[T], callback: Callable[[T], None] | None = None) -> None:
        self._query = query
        self._callback = callback
        self._snapshots: "queue.Queue[object]" = queue.Queue()
        self._lock = threading.Lock()
        self._refresh_queued = False
        self._cancelled = False
        self._finished = False
        self._error: BaseException | None = None
        self._has_last = False
        self._last: T | None = None

    # ------------------------------------------------------------------
    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def get(self, timeout: float | None = None) -> T:
        """Wait for the next snapshot.

        Raises ``TimeoutError`` when nothing arrives within ``timeout`` seconds,
        the query's exception after a query failure, and
        :class:`SubscriptionClosed` once the subscription has ended.
        """

        if self._finished or (self._cancelled and self._error is None):
            self._finished = True
            raise SubscriptionClosed(f"Subscription to {self._query.name} has ended")
        try:
            item = self._snapshots.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError(
                f"No snapshot from {self._query.name} within {timeout} seconds"
            ) from None
        if item is _CLOSED:
            self._finished = True
            if self._error is not None:
                raise self._error
            raise SubscriptionClosed(f"Subscription to {self._query.name} has ended")
        return item  # type: ignore[return-value]

    def cancel(self) -> None:
        """Stop future emissions. Safe to call repeatedly and from any thread."""

        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
        self._query.tracker.remove_observer(self._on_invalidated, self.cancel)
        self._snapshots.put(_CLOSED)
        log.debug("Cancelled subscription to %s", self._query.name)

    def __iter__(self) -> Iterator[T]:
        return self

    def __next__(self) -> T:
        try:
            return self.get()
        except SubscriptionClosed:
            raise StopIteration from None

    def __enter__(self) -> Subscription[T]:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()

    # ------------------------------------------------------------------
    def _start(self) -> Subscription[T]:
        tracker = self._query.tracker
        if tracker.is_closed:
            raise WriterClosed("Database is closed")
        tracker.add_observer(self._on_invalidated, self.cancel)
        self._schedule_refresh()
        return self

    def _on_invalidated(self, tables: frozenset) -> None:
        # Runs inside a Qt slot: nothing may propagate from here.
        try:
            if self._query.tables & tables:
                self._schedule_refresh()
        except Exception as exc:
            self._fail(exc)

    def _schedule_refresh(self) -> None:
        with self._lock:
            if self._cancelled or self._refresh_queued:
                return
            self._refresh_queued = True
        try:
            self._query.writer.submit(self._refresh)
        except WriterClosed:
            self.cancel()

    def _refresh(self, conn: sqlite3.Connection) -> None:
        # Fetch and delivery both happen inside the worker job, so snapshots
        # reach the consumer in the order the queries ran.
        with self._lock:
            self._refresh_queued = False
            if self._cancelled:
                return
        try:
            value = self._query.fetch(conn)
        except Exception as exc:
            self._fail(exc)
            return
        self._deliver(value)

    def _deliver(self, value: T | None) -> None:
        with self._lock:
            if self._cancelled:
                return
            if self._query.distinct and self._has_last and value == self._last:
                return
            self._has_last = True
            self._last = value
        if value is None:
            return

        if self._callback is None:
            self._snapshots.put(value)
            return
        try:
            self._callback(value)
        except Exception:
            log.exception("Observer of %s failed; cancelling its subscription", self._query.name)
            self.cancel()

    def _fail(self, error: BaseException) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._error = error
            self._cancelled = True
        log.error("Live query %s failed: %s", self._query.name, error)
        self._query.tracker.remove_observer(self._on_invalidated, self.cancel)
        self._snapshots.put(_CLOSED)
