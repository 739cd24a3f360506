"""Storage adapters for Ward Tracker.

This module contains the primary record stores that implement the
RecordStorePort interface.
"""

from wardtrack.adapters.storage.duckdb_adapter import DuckDBRecordStore
from wardtrack.adapters.storage.postgresql_adapter import PostgreSQLRecordStore

__all__ = ["DuckDBRecordStore", "PostgreSQLRecordStore"]
