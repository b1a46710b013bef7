"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The remote snapshot store defaults to an HTTP endpoint, with Google Sheets
and in-memory implementations behind the same interface.
"""

from tripbudget.services.storage.interface import (
    KeyValueStoreInterface,
    LocalCacheError,
    RemoteFetchFailed,
    RemotePersistFailed,
    SnapshotStoreInterface,
    StorageConnectionError,
    StorageError,
)
from tripbudget.services.storage.http_store import HttpSnapshotStore
from tripbudget.services.storage.local_cache import JsonFileKeyValueStore
from tripbudget.services.storage.memory import (
    InMemoryKeyValueStore,
    InMemorySnapshotStore,
)

__all__ = [
    # Interfaces
    "KeyValueStoreInterface",
    "SnapshotStoreInterface",
    # Exceptions
    "LocalCacheError",
    "RemoteFetchFailed",
    "RemotePersistFailed",
    "StorageConnectionError",
    "StorageError",
    # Implementations
    "HttpSnapshotStore",
    "InMemoryKeyValueStore",
    "InMemorySnapshotStore",
    "JsonFileKeyValueStore",
]
