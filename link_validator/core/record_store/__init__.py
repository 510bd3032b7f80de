"""
Record Store Package

Persistence gateways for link records:
- protocol: the RecordStore contract used by the engine and services
- mongo_store: MongoDB implementation (default backend)
- sqlite_store: SQLite implementation for single-host use
"""

from .mongo_store import MongoRecordStore
from .protocol import RecordStore
from .sqlite_store import SQLiteRecordStore


def create_record_store(store_config) -> RecordStore:
    """
    Build the record store selected by a :class:`StoreConfig`.

    Args:
        store_config: Store section of the loaded configuration

    Returns:
        A connected RecordStore
    """
    if store_config.backend == "sqlite":
        return SQLiteRecordStore(store_config.sqlite_path)
    return MongoRecordStore.from_config(store_config)


__all__ = [
    "RecordStore",
    "MongoRecordStore",
    "SQLiteRecordStore",
    "create_record_store",
]
