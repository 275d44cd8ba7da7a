"""Serialized SQLite executor shared by the item DAO and its live queries.

The writer owns a single ``sqlite3.Connection`` (``check_same_thread=False``)
and executes all submitted callables on a dedicated worker thread.  This
provides the guarantees the access layer relies on:

* Only one statement runs at a time (single-writer), in submission order.
* Callers never touch the connection from their own thread; they wait on a
  :class:`~concurrent.futures.Future` instead.
* Reads are queued behind the writes submitted before them, so a query always
  observes every earlier write.

Usage:
    writer = DbWriter(conn, tracker=tracker)
    writer.submit(lambda conn: conn.execute("INSERT ..."), invalidates=("items",))
    writer.barrier()  # Wait until the queue is empty
    writer.close()
"""

from __future__ import annotations

import logging
import queue
import sqlite3
import threading
from collections.abc import Iterable
from concurrent.futures import Future
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from inventory_store.storage.invalidation import InvalidationTracker

__all__ = ["DbWriter", "WriterClosed"]

log = logging.getLogger(__name__)


class WriterClosed(RuntimeError):
    """Raised when a submission is attempted after the writer is closed."""


class DbWriter:
    """Single-writer queue for SQLite connections."""

    def __init__(
        self,
        connection: sqlite3.Connection,
        *,
        tracker: InvalidationTracker | None = None,
        name: str = "DbWriter",
        close_timeout: float = 5.0,
    ) -> None:
        self.conn = connection
        self._tracker = tracker
        self._close_timeout = close_timeout
        self._queue: "queue.Queue[tuple[Future, Callable[[sqlite3.Connection], Any], frozenset[str]] | None]" = queue.Queue()
        self._thread = threading.Thread(target=self._worker, name=name, daemon=True)
        self._submit_lock = threading.Lock()
        self._closed = False
        self._thread.start()

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    @property
    def closed(self) -> bool:
        return self._closed

    def in_worker(self) -> bool:
        return threading.current_thread() is self._thread

    def run(
        self,
        func: Callable[[sqlite3.Connection], Any],
        *,
        invalidates: Iterable[str] = (),
    ) -> Any:
        """Submit ``func`` to run on the writer thread and return its result.

        Called from the worker itself (e.g. inside an observer callback) the
        function runs inline; queueing it would deadlock.
        """

        if self.in_worker():
            return self._execute(func, frozenset(invalidates))
        return self.submit(func, invalidates=invalidates).result()

    def submit(
        self,
        func: Callable[[sqlite3.Connection], Any],
        *,
        invalidates: Iterable[str] = (),
    ) -> Future:
        """Submit ``func`` asynchronously and return the future.

        When ``func`` changes at least one row, the tracker is told that the
        ``invalidates`` tables changed before the future is resolved.
        """

        future: Future = Future()
        with self._submit_lock:
            if self._closed:
                raise WriterClosed("Writer is closed")
            self._queue.put((future, func, frozenset(invalidates)))
        return future

    def barrier(self) -> None:
        """Block until all queued work has been processed."""

        self.run(lambda _conn: None)

    def close(self) -> None:
        """Drain the queue, stop the worker thread and close the connection.

        The worker closes the connection after the last queued job. Called from
        a job, this returns at once and the remaining jobs still run.
        """

        with self._submit_lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(None)
        if self.in_worker():
            return
        self._thread.join(timeout=self._close_timeout)
        if self._thread.is_alive():
            log.warning("%s did not stop within %.1fs", self._thread.name, self._close_timeout)

    # ------------------------------------------------------------------ #
    # Internal worker                                                    #
    # ------------------------------------------------------------------ #
    def _execute(self, func: Callable[[sqlite3.Connection], Any], invalidates: frozenset[str]) -> Any:
        before = self.conn.total_changes
        result = func(self.conn)
        if invalidates and self._tracker is not None and self.conn.total_changes != before:
            self._tracker.notify(invalidates)
        return result

    def _worker(self) -> None:
        while True:
            job = self._queue.get()
            if job is None:
                self.conn.close()
                self._queue.task_done()
                break

            future, func, invalidates = job
            if not future.set_running_or_notify_cancel():
                self._queue.task_done()
                continue

            try:
                # Observers are notified before the caller resumes, so their
                # refresh is queued ahead of anything the caller submits next.
                result = self._execute(func, invalidates)
            except Exception as exc:
                log.debug("Database job failed: %s", exc)
                future.set_exception(exc)
            else:
                future.set_result(result)
            finally:
                self._queue.task_done()

    # ------------------------------------------------------------------ #
    # Context manager helpers                                            #
    # ------------------------------------------------------------------ #
    def __enter__(self) -> "DbWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
