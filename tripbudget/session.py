"""
Account Session

DESIGN DECISION: There is no ambient "current account". Everything that is
specific to one logged-in user lives on an explicit session object that is
passed to whoever needs it:
- the account key (an opaque shared password, never logged raw)
- the current snapshot and its revision counter
- the loading flag and the last out-of-band error
- the last-selected trip, kept in the local key/value cache
"""

from typing import Optional

import structlog

from tripbudget.audit import hash_account_key
from tripbudget.models.trip import AccountSnapshot, Trip
from tripbudget.services.storage.interface import (
    KeyValueStoreInterface,
    LocalCacheError,
)


logger = structlog.get_logger(__name__)


class AccountSession:
    """State of one logged-in account."""

    def __init__(
        self,
        account_key: str,
        cache: Optional[KeyValueStoreInterface] = None,
        active_trip_key: str = "vsc_activeTripId",
    ):
        if not account_key:
            raise ValueError("An account key is required")

        self.account_key = account_key
        self.account_key_hash = hash_account_key(account_key)
        self.snapshot: Optional[AccountSnapshot] = None
        self.revision = 0
        self.loading = False
        self.last_error: Optional[Exception] = None

        self._cache = cache
        self._active_trip_key = active_trip_key

    @property
    def is_loaded(self) -> bool:
        return self.snapshot is not None

    def publish(self, snapshot: AccountSnapshot) -> int:
        """Make `snapshot` current and return its revision number."""
        self.snapshot = snapshot
        self.revision += 1
        return self.revision

    # ==================== ACTIVE TRIP ====================

    @property
    def active_trip_id(self) -> Optional[str]:
        if self._cache is None:
            return None
        value = self._cache.get(self._active_trip_key)
        return value if isinstance(value, str) and value else None

    def active_trip(self) -> Optional[Trip]:
        trip_id = self.active_trip_id
        if trip_id is None or self.snapshot is None:
            return None
        return self.snapshot.get_trip(trip_id)

    def select_trip(self, trip_id: str) -> bool:
        """Remember a trip as the active one. Unknown trip ids are ignored."""
        if self.snapshot is None or self.snapshot.get_trip(trip_id) is None:
            return False
        self._write_active(trip_id)
        return True

    def clear_active_trip(self) -> None:
        self._write_active(None)

    def restore_active_trip(self) -> Optional[str]:
        """
        Keep the remembered trip only if it still exists in the snapshot.

        Returns the active trip id after the check.
        """
        trip_id = self.active_trip_id
        if trip_id is None:
            return None
        if self.snapshot is None or self.snapshot.get_trip(trip_id) is None:
            self.clear_active_trip()
            return None
        return trip_id

    def _write_active(self, trip_id: Optional[str]) -> None:
        if self._cache is None:
            return
        # The active trip is a convenience; a cache failure only loses it
        try:
            if trip_id is None:
                self._cache.remove(self._active_trip_key)
            else:
                self._cache.set(self._active_trip_key, trip_id)
        except LocalCacheError as e:
            logger.warning("active_trip_not_saved", trip_id=trip_id, error=str(e))
