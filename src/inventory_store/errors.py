"""Exception types raised by the inventory store."""

from __future__ import annotations

import os
from pathlib import Path

__all__ = ["InventoryStoreError", "DatabaseOpenError"]


class InventoryStoreError(RuntimeError):
    """Base class for inventory store failures."""


class DatabaseOpenError(InventoryStoreError):
    """Raised when the database file cannot be opened or created."""

    def __init__(self, path: str | os.PathLike[str], reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Unable to open inventory database at {self.path}: {reason}")
