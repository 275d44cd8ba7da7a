from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from inventory_store.core.config import StoreSettings, load_settings

__all__ = ["AppContext"]


@dataclass(frozen=True)
class AppContext:
    """Where the application keeps its files. Databases live under ``databases/``."""

    settings: StoreSettings = field(default_factory=load_settings)

    @property
    def data_dir(self) -> Path:
        return self.settings.data_dir

    def get_database_path(self, name: str) -> Path:
        """Return the path of database ``name``, creating its directory if needed."""

        if not name or Path(name).name != name:
            raise ValueError(f"Invalid database name: {name!r}")
        db_dir = self.data_dir / "databases"
        db_dir.mkdir(parents=True, exist_ok=True)
        return db_dir / name
