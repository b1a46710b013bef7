"""Services package."""

from tripbudget.services.rates import (
    RateError,
    RateNotFoundError,
    RatePersistError,
    RateProviderInterface,
    RateRefreshError,
    RateStore,
    StaticRateProvider,
    TableConverter,
    convert,
    convert_strict,
)
from tripbudget.services.storage import (
    HttpSnapshotStore,
    InMemoryKeyValueStore,
    InMemorySnapshotStore,
    JsonFileKeyValueStore,
    KeyValueStoreInterface,
    LocalCacheError,
    RemoteFetchFailed,
    RemotePersistFailed,
    SnapshotStoreInterface,
    StorageConnectionError,
    StorageError,
)

__all__ = [
    # Rate services
    "RateError",
    "RateNotFoundError",
    "RatePersistError",
    "RateProviderInterface",
    "RateRefreshError",
    "RateStore",
    "StaticRateProvider",
    "TableConverter",
    "convert",
    "convert_strict",
    # Storage services
    "HttpSnapshotStore",
    "InMemoryKeyValueStore",
    "InMemorySnapshotStore",
    "JsonFileKeyValueStore",
    "KeyValueStoreInterface",
    "LocalCacheError",
    "RemoteFetchFailed",
    "RemotePersistFailed",
    "SnapshotStoreInterface",
    "StorageConnectionError",
    "StorageError",
]
