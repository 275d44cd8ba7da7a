from pathlib import Path

import pytest

from inventory_store.core import config
from inventory_store.core.config import StoreSettings
from inventory_store.core.context import AppContext
from inventory_store.database import InventoryDatabase


@pytest.fixture
def settings(tmp_path: Path) -> StoreSettings:
    return StoreSettings(data_dir=tmp_path / "data", close_timeout=2.0)


@pytest.fixture
def context(settings: StoreSettings) -> AppContext:
    return AppContext(settings)


@pytest.fixture
def database(context: AppContext):
    db = InventoryDatabase.build(context)
    yield db
    db.close()


@pytest.fixture
def dao(database: InventoryDatabase):
    return database.item_dao()


@pytest.fixture
def fresh_singleton(monkeypatch):
    """Run a test against an unset process-wide handle and close whatever it built."""

    monkeypatch.setattr(InventoryDatabase, "_instance", None)
    yield
    built = InventoryDatabase._instance
    if built is not None:
        built.close()


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("INVENTORY_DATA_DIR", str(tmp_path / "env-data"))
    config.reload()
    yield
    config.reload()
