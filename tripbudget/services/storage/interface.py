"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the HTTP endpoint for Google Sheets (or a real database) later
2. Use in-memory storage for testing
3. Keep the sync engine decoupled from the storage implementation

The interface is intentionally tiny. The remote side is a key/value store
holding one JSON blob per account key; the local side is a key/value
store holding small convenience values.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from tripbudget.models.trip import AccountSnapshot


class SnapshotStoreInterface(ABC):
    """
    Abstract interface for the remote account snapshot store.

    Any storage implementation (HTTP endpoint, Google Sheets, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def fetch_snapshot(self, account_key: str) -> Optional[AccountSnapshot]:
        """
        Fetch the snapshot stored under an account key.

        Args:
            account_key: The opaque user key

        Returns:
            The stored snapshot, or None for a new account

        Raises:
            RemoteFetchFailed: If the store could not be read
        """
        pass

    @abstractmethod
    async def save_snapshot(self, account_key: str, snapshot: AccountSnapshot) -> bool:
        """
        Replace the snapshot stored under an account key.

        Args:
            account_key: The opaque user key
            snapshot: The complete snapshot to store

        Returns:
            True if saved successfully

        Raises:
            RemotePersistFailed: If the store rejected or never received the write
        """
        pass


class KeyValueStoreInterface(ABC):
    """
    Abstract interface for small durable local values.

    Values must be JSON-serializable.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None if the key is absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """
        Store a value.

        Raises:
            LocalCacheError: If the value could not be written
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove a key; removing an absent key is not an error."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class RemoteFetchFailed(StorageError):
    """The remote snapshot could not be read."""
    pass


class RemotePersistFailed(StorageError):
    """The remote store did not accept a snapshot."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class LocalCacheError(StorageError):
    """The local key/value cache could not be read or written."""
    pass
