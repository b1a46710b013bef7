"""
In-Memory Storage

Process-local implementations of both storage interfaces. Used by the
`memory` backend (offline / demo) and throughout the tests.

Snapshots are stored in their wire form, so a round trip through this
store exercises the same serialization as the real remote store.
"""

import copy
import json
from typing import Any, Optional

from tripbudget.models.trip import AccountSnapshot
from tripbudget.services.storage.interface import (
    KeyValueStoreInterface,
    SnapshotStoreInterface,
)


class InMemorySnapshotStore(SnapshotStoreInterface):
    """Snapshot store backed by a dict of account key -> wire JSON."""

    def __init__(self, initial: Optional[dict[str, dict]] = None):
        self._blobs: dict[str, str] = {
            key: json.dumps(data) for key, data in (initial or {}).items()
        }
        self.save_count = 0

    async def fetch_snapshot(self, account_key: str) -> Optional[AccountSnapshot]:
        blob = self._blobs.get(account_key)
        if blob is None:
            return None
        return AccountSnapshot.model_validate(json.loads(blob))

    async def save_snapshot(self, account_key: str, snapshot: AccountSnapshot) -> bool:
        self._blobs[account_key] = json.dumps(snapshot.to_wire())
        self.save_count += 1
        return True

    def raw(self, account_key: str) -> Optional[dict]:
        """The stored wire payload, exactly as a remote store would hold it."""
        blob = self._blobs.get(account_key)
        return json.loads(blob) if blob is not None else None


class InMemoryKeyValueStore(KeyValueStoreInterface):
    """Key/value cache that lives only as long as the process."""

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._values: dict[str, Any] = copy.deepcopy(initial or {})

    def get(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._values.get(key))

    def set(self, key: str, value: Any) -> None:
        self._values[key] = copy.deepcopy(value)

    def remove(self, key: str) -> None:
        self._values.pop(key, None)
