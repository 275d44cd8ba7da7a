"""
SQLite helpers: connection utilities, the ``items`` schema and the
single-writer executor.
"""

from inventory_store.storage.sqlite.db_writer import DbWriter, WriterClosed
from inventory_store.storage.sqlite.schema import SCHEMA_VERSION, SchemaVersionError

__all__ = ["DbWriter", "WriterClosed", "SCHEMA_VERSION", "SchemaVersionError"]
