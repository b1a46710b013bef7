"""
Sync Engine and Application Wiring

This module ties the components together and defines the two flows the
engine runs:
1. Load (fetch remote snapshot → normalize → validate → publish)
2. Mutate (apply locally → publish → persist in the background)

DESIGN DECISION: Optimistic update and persistence are separate steps.
- `apply_locally(operation, mutation)` computes and publishes the new
  snapshot synchronously. Readers see it immediately.
- `persist(snapshot)` schedules the remote save and returns the task.
- `mutate()` composes the two.

Callers never wait on the network and network errors never reach them.
A failed save is reported out-of-band (session.last_error, audit event,
listeners) and the optimistic state stands. There is no rollback and no
automatic retry; the next successful save carries the full snapshot.

Saves are sent one at a time, in mutation order. A save whose snapshot was
superseded before it started is skipped.
"""

import asyncio
from typing import Callable, Optional

import structlog
from pydantic import ValidationError

from tripbudget.audit import AuditLogger
from tripbudget.config import get_settings
from tripbudget.models.audit import AuditEventBuilder
from tripbudget.models.trip import (
    AccountSnapshot,
    Category,
    CategoryDraft,
    Expense,
    ExpenseDraft,
    FrequentExpenseDraft,
    Trip,
    TripDraft,
)
from tripbudget.queries import TripAnalytics
from tripbudget.services.rates import RateStore, StaticRateProvider
from tripbudget.services.storage import (
    HttpSnapshotStore,
    InMemorySnapshotStore,
    JsonFileKeyValueStore,
    KeyValueStoreInterface,
    SnapshotStoreInterface,
)
from tripbudget.session import AccountSession
from tripbudget.store import (
    EntityStore,
    EntityStoreError,
    default_snapshot,
    normalize_categories,
)
from tripbudget.validation import SnapshotValidator


logger = structlog.get_logger(__name__)


Mutation = Callable[[Optional[AccountSnapshot]], AccountSnapshot]
SnapshotListener = Callable[[AccountSnapshot], None]


class SyncEngine:
    """
    Orchestrates the optimistic mutate-then-persist cycle for one session.

    Flow for every mutation:
    1. Compute the new snapshot with the entity store (may raise)
    2. Publish it on the session (optimistic, visible at once)
    3. Schedule the remote save (fire-and-forget)
    4. Report the save outcome through audit events and last_error
    """

    def __init__(
        self,
        session: AccountSession,
        remote_store: SnapshotStoreInterface,
        entity_store: Optional[EntityStore] = None,
        validator: Optional[SnapshotValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._session = session
        self._remote = remote_store
        self._store = entity_store or EntityStore()
        self._validator = validator or SnapshotValidator()
        self._audit_logger = audit_logger or AuditLogger()

        self._listeners: list[SnapshotListener] = []
        self._pending: set[asyncio.Task] = set()
        self._save_lock: Optional[asyncio.Lock] = None
        self._latest_scheduled = 0
        self._last_saved: Optional[AccountSnapshot] = None
        self._deferred: Optional[tuple[AccountSnapshot, int]] = None

    @property
    def session(self) -> AccountSession:
        return self._session

    @property
    def snapshot(self) -> Optional[AccountSnapshot]:
        return self._session.snapshot

    @property
    def loading(self) -> bool:
        return self._session.loading

    @property
    def last_error(self) -> Optional[Exception]:
        return self._session.last_error

    @property
    def has_pending_saves(self) -> bool:
        return bool(self._pending) or self._deferred is not None

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call `listener` with every newly published snapshot. Returns an unsubscribe function."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    # ==================== LOAD ====================

    async def load(self) -> AccountSnapshot:
        """
        Fetch the account snapshot and make it current.

        A missing remote snapshot means a new account. A failed fetch still
        yields a usable default snapshot; the failure goes to last_error.
        """
        session = self._session
        account = session.account_key_hash
        session.loading = True
        try:
            try:
                fetched = await self._remote.fetch_snapshot(session.account_key)
            except Exception as e:
                session.last_error = e
                self._audit_logger.log(AuditEventBuilder.fetch_failed(account, str(e)))
                snapshot = default_snapshot()
                self._audit_logger.log(
                    AuditEventBuilder.snapshot_defaulted(account, "remote fetch failed")
                )
            else:
                if fetched is None:
                    snapshot = default_snapshot()
                    self._audit_logger.log(
                        AuditEventBuilder.snapshot_defaulted(account, "new account")
                    )
                else:
                    snapshot = normalize_categories(fetched)
                    self._report_validation(snapshot)
                    self._audit_logger.log(AuditEventBuilder.snapshot_loaded(
                        account,
                        trips=len(snapshot.trips),
                        categories=len(snapshot.categories),
                    ))

            self._publish(snapshot)
            session.restore_active_trip()
            return snapshot
        finally:
            session.loading = False

    def _report_validation(self, snapshot: AccountSnapshot) -> None:
        result = self._validator.validate(snapshot)
        if not result.issues:
            return
        self._audit_logger.log(AuditEventBuilder.snapshot_validated(
            self._session.account_key_hash,
            errors=result.error_count,
            warnings=len(result.warnings),
            issues=[issue.model_dump() for issue in result.issues],
        ))

    # ==================== MUTATE ====================

    def apply_locally(self, operation: str, mutation: Mutation) -> AccountSnapshot:
        """
        Compute the new snapshot and publish it. No I/O.

        Returns the current snapshot unchanged (same object) when the
        mutation had nothing to do.

        Raises:
            EntityStoreError: The mutation was rejected; nothing changed
            ValidationError: A record was malformed; nothing changed
        """
        current = self._session.snapshot
        try:
            updated = mutation(current)
        except (EntityStoreError, ValidationError) as e:
            self._audit_logger.log(AuditEventBuilder.mutation_rejected(
                self._session.account_key_hash,
                operation,
                error_type=type(e).__name__,
                error_message=str(e),
            ))
            raise

        if updated is current:
            return current

        revision = self._publish(updated)
        self._audit_logger.log(AuditEventBuilder.entity_mutated(
            self._session.account_key_hash, operation, revision
        ))
        return updated

    def persist(self, snapshot: AccountSnapshot) -> Optional[asyncio.Task]:
        """
        Schedule a remote save of `snapshot`.

        Only the current snapshot is ever saved.

        Returns the save task, or None when nothing was scheduled: the
        snapshot is already saved, is not the current one, or no event loop
        is running (the save is then deferred until `flush()`).
        """
        if snapshot is self._last_saved:
            return None
        if snapshot is not self._session.snapshot:
            logger.warning(
                "persist_stale_snapshot_ignored", current_revision=self._session.revision
            )
            return None

        revision = self._session.revision

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._deferred = (snapshot, revision)
            logger.info("persist_deferred", revision=revision)
            return None

        self._latest_scheduled = max(self._latest_scheduled, revision)
        self._deferred = None
        task = loop.create_task(self._save(snapshot, revision))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def mutate(self, operation: str, mutation: Mutation) -> AccountSnapshot:
        """Apply a mutation optimistically and persist it in the background."""
        current = self._session.snapshot
        updated = self.apply_locally(operation, mutation)
        if updated is not current:
            self.persist(updated)
        return updated

    async def flush(self) -> None:
        """Send any deferred save and wait until every save has finished."""
        if self._deferred is not None:
            snapshot, _ = self._deferred
            self._deferred = None
            self.persist(snapshot)
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def _save(self, snapshot: AccountSnapshot, revision: int) -> bool:
        session = self._session
        account = session.account_key_hash
        if self._save_lock is None:
            self._save_lock = asyncio.Lock()

        async with self._save_lock:
            if revision < self._latest_scheduled:
                self._audit_logger.log(AuditEventBuilder.persist_skipped(
                    account, revision, "superseded by a newer snapshot"
                ))
                return False

            try:
                await self._remote.save_snapshot(session.account_key, snapshot)
            except Exception as e:
                # Local state stays ahead of remote until the next good save
                session.last_error = e
                self._audit_logger.log(
                    AuditEventBuilder.persist_failed(account, revision, str(e))
                )
                return False

            self._last_saved = snapshot
            session.last_error = None
            self._audit_logger.log(AuditEventBuilder.persisted(account, revision))
            return True

    def _publish(self, snapshot: AccountSnapshot) -> int:
        revision = self._session.publish(snapshot)
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error("snapshot_listener_failed", error=str(e), revision=revision)
        return revision

    # ==================== OPERATIONS ====================

    def add_trip(self, draft: TripDraft) -> AccountSnapshot:
        return self.mutate("add_trip", lambda s: self._store.add_trip(s, draft))

    def update_trip(self, trip: Trip) -> AccountSnapshot:
        return self.mutate("update_trip", lambda s: self._store.update_trip(s, trip))

    def delete_trip(self, trip_id: str) -> AccountSnapshot:
        snapshot = self.mutate("delete_trip", lambda s: self._store.delete_trip(s, trip_id))
        if self._session.active_trip_id == trip_id:
            self._session.clear_active_trip()
        return snapshot

    def add_expense(self, trip_id: str, draft: ExpenseDraft) -> AccountSnapshot:
        return self.mutate(
            "add_expense", lambda s: self._store.add_expense(s, trip_id, draft)
        )

    def update_expense(self, trip_id: str, expense: Expense) -> AccountSnapshot:
        return self.mutate(
            "update_expense", lambda s: self._store.update_expense(s, trip_id, expense)
        )

    def delete_expense(self, trip_id: str, expense_id: str) -> AccountSnapshot:
        return self.mutate(
            "delete_expense", lambda s: self._store.delete_expense(s, trip_id, expense_id)
        )

    def add_category(self, draft: CategoryDraft) -> AccountSnapshot:
        return self.mutate("add_category", lambda s: self._store.add_category(s, draft))

    def update_category(self, category: Category) -> AccountSnapshot:
        return self.mutate(
            "update_category", lambda s: self._store.update_category(s, category)
        )

    def delete_category(self, category_id: str) -> AccountSnapshot:
        return self.mutate(
            "delete_category", lambda s: self._store.delete_category(s, category_id)
        )

    def add_frequent_expense(self, trip_id: str, draft: FrequentExpenseDraft) -> AccountSnapshot:
        return self.mutate(
            "add_frequent_expense",
            lambda s: self._store.add_frequent_expense(s, trip_id, draft),
        )

    def delete_frequent_expense(self, trip_id: str, template_id: str) -> AccountSnapshot:
        return self.mutate(
            "delete_frequent_expense",
            lambda s: self._store.delete_frequent_expense(s, trip_id, template_id),
        )

    def set_category_budget(self, trip_id: str, category_name: str, amount: float) -> AccountSnapshot:
        return self.mutate(
            "set_category_budget",
            lambda s: self._store.set_category_budget(s, trip_id, category_name, amount),
        )

    def set_category_budgets_enabled(self, trip_id: str, enabled: bool) -> AccountSnapshot:
        return self.mutate(
            "set_category_budgets_enabled",
            lambda s: self._store.set_category_budgets_enabled(s, trip_id, enabled),
        )

    def add_preferred_currency(self, trip_id: str, currency: str) -> AccountSnapshot:
        return self.mutate(
            "add_preferred_currency",
            lambda s: self._store.add_preferred_currency(s, trip_id, currency),
        )

    def remove_preferred_currency(self, trip_id: str, currency: str) -> AccountSnapshot:
        return self.mutate(
            "remove_preferred_currency",
            lambda s: self._store.remove_preferred_currency(s, trip_id, currency),
        )


def create_analytics(
    snapshot: AccountSnapshot,
    rate_store: RateStore,
) -> TripAnalytics:
    """Trip queries bound to the live rate table and the account's categories."""
    settings = get_settings().app
    return TripAnalytics(
        converter=rate_store.convert,
        categories=snapshot.categories,
        warning_pct=settings.budget_warning_pct,
        tz=settings.reporting_tz,
    )


def _create_remote_store(backend: str) -> SnapshotStoreInterface:
    settings = get_settings()
    if backend == "http":
        return HttpSnapshotStore(
            endpoint_url=settings.remote_store.endpoint_url or "",
            timeout_seconds=settings.remote_store.timeout_seconds,
            fetch_attempts=settings.remote_store.fetch_attempts,
        )
    if backend == "google_sheets":
        # Imported here so gspread is only loaded when this backend is chosen
        from tripbudget.services.storage.google_sheets import (
            GoogleSheetsClient,
            GoogleSheetsSnapshotStore,
        )
        return GoogleSheetsSnapshotStore(GoogleSheetsClient())
    if backend == "memory":
        return InMemorySnapshotStore()
    raise ValueError(f"Unknown storage backend: {backend}")


def create_app_components(
    account_key: str,
    remote_store: Optional[SnapshotStoreInterface] = None,
    cache: Optional[KeyValueStoreInterface] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> tuple[SyncEngine, RateStore]:
    """
    Factory function to create all components for one account.

    Args:
        account_key: The user's account key (shared password)
        remote_store: Snapshot backend; built from settings when None.
                      If the configured backend cannot be created, an
                      in-memory store is used and a system error is audited.
        cache: Local key/value cache; the JSON file from settings when None

    Returns:
        (sync_engine, rate_store)
    """
    settings = get_settings()
    audit_logger = audit_logger or AuditLogger()
    cache = cache or JsonFileKeyValueStore(settings.local_cache.path)

    if remote_store is None:
        backend = settings.app.storage_backend
        try:
            remote_store = _create_remote_store(backend)
        except Exception as e:
            # Storage not configured - continue with local-only state
            audit_logger.log(AuditEventBuilder.system_error(
                "storage_not_configured",
                str(e),
                details={"backend": backend},
            ))
            remote_store = InMemorySnapshotStore()

    rate_store = RateStore(
        cache=cache,
        provider=StaticRateProvider(delay_seconds=settings.app.rate_refresh_delay_seconds),
        cache_key=settings.local_cache.rates_key,
        audit_logger=audit_logger,
        pivot_currency=settings.app.pivot_currency,
    )

    session = AccountSession(
        account_key,
        cache=cache,
        active_trip_key=settings.local_cache.active_trip_key,
    )
    sync_engine = SyncEngine(
        session=session,
        remote_store=remote_store,
        entity_store=EntityStore(fallback_category_id=settings.app.fallback_category_id),
        validator=SnapshotValidator(),
        audit_logger=audit_logger,
    )

    return sync_engine, rate_store
