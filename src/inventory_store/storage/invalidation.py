# Inventory Store
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Table-change notifications for live queries."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable

from PyQt5.QtCore import QObject, Qt, pyqtBoundSignal, pyqtSignal

__all__ = ["InvalidationTracker"]

log = logging.getLogger(__name__)


class InvalidationTracker(QObject):
    """Broadcast the set of tables touched by each committed write.

    Observers are connected with ``Qt.DirectConnection`` so they run on the
    thread that emitted the signal (the database worker) and need no Qt event
    loop. PyQt aborts the process on an exception escaping a slot, so observers
    must handle their own errors.

    PyQt keeps only weak references to bound-method slots, so the tracker holds
    every connected observer until it is removed or the tracker closes.
    """

    tables_invalidated = pyqtSignal(object)
    closed = pyqtSignal()

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._is_closed = False
        self._held: set[Callable] = set()
        self._held_lock = threading.Lock()

    @property
    def is_closed(self) -> bool:
        return self._is_closed

    def add_observer(
        self,
        observer: Callable[[frozenset], None],
        on_close: Callable[[], None] | None = None,
    ) -> None:
        with self._held_lock:
            self._held.add(observer)
            if on_close is not None:
                self._held.add(on_close)
        self.tables_invalidated.connect(observer, Qt.DirectConnection)
        if on_close is not None:
            self.closed.connect(on_close, Qt.DirectConnection)

    def remove_observer(
        self,
        observer: Callable[[frozenset], None],
        on_close: Callable[[], None] | None = None,
    ) -> None:
        pairs: list[tuple[pyqtBoundSignal, Callable]] = [(self.tables_invalidated, observer)]
        if on_close is not None:
            pairs.append((self.closed, on_close))
        for signal, slot in pairs:
            try:
                signal.disconnect(slot)
            except TypeError:
                # Already disconnected (double cancel).
                log.debug("Observer %r was not connected", slot)
        with self._held_lock:
            for _, slot in pairs:
                self._held.discard(slot)

    def notify(self, tables: Iterable[str]) -> None:
        changed = frozenset(tables)
        if not changed or self._is_closed:
            return
        log.debug("Tables invalidated: %s", sorted(changed))
        self.tables_invalidated.emit(changed)

    def close(self) -> None:
        """Tell every observer that no further notifications will come."""

        if self._is_closed:
            return
        self._is_closed = True
        self.closed.emit()
        with self._held_lock:
            self._held.clear()
