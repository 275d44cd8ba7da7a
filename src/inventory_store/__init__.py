# Inventory Store
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Public package interface for the inventory persistence layer."""

from inventory_store.core.config import StoreSettings, load_settings
from inventory_store.core.context import AppContext
from inventory_store.dao import ItemDao
from inventory_store.database import DATABASE_NAME, InventoryDatabase, get_database
from inventory_store.errors import DatabaseOpenError, InventoryStoreError
from inventory_store.live_query import LiveQuery, Subscription, SubscriptionClosed
from inventory_store.models import Item
from inventory_store.storage.sqlite.db_writer import WriterClosed
from inventory_store.storage.sqlite.schema import SchemaVersionError

__all__ = [
    "AppContext",
    "DATABASE_NAME",
    "DatabaseOpenError",
    "InventoryDatabase",
    "InventoryStoreError",
    "Item",
    "ItemDao",
    "LiveQuery",
    "SchemaVersionError",
    "StoreSettings",
    "Subscription",
    "SubscriptionClosed",
    "WriterClosed",
    "get_database",
    "load_settings",
]
