"""
Audit Models for the Trip Budget Engine

Every mutation, load, save and rate refresh produces an audit event.
This provides:
1. A trace of what happened to the in-memory snapshot and when
2. The out-of-band channel for network failures that never reach callers
3. Debugging information when local and remote state diverge

DESIGN DECISION: Audit events are written to the structured log and
handed to listeners; they are never part of the account snapshot.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Snapshot lifecycle
    SNAPSHOT_LOADED = "snapshot_loaded"
    SNAPSHOT_DEFAULTED = "snapshot_defaulted"
    SNAPSHOT_FETCH_FAILED = "snapshot_fetch_failed"
    SNAPSHOT_VALIDATED = "snapshot_validated"

    # Persistence
    SNAPSHOT_PERSISTED = "snapshot_persisted"
    SNAPSHOT_PERSIST_FAILED = "snapshot_persist_failed"
    SNAPSHOT_PERSIST_SKIPPED = "snapshot_persist_skipped"

    # Entity mutations
    ENTITY_MUTATED = "entity_mutated"
    MUTATION_REJECTED = "mutation_rejected"

    # Exchange rates
    RATES_LOADED = "rates_loaded"
    RATES_REFRESHED = "rates_refreshed"
    RATES_REFRESH_FAILED = "rates_refresh_failed"
    RATES_CACHE_FAILED = "rates_cache_failed"
    RATE_NOT_FOUND = "rate_not_found"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'trip', 'expense', 'snapshot')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Which account the event belongs to
    account_key_hash: Optional[str] = Field(
        default=None,
        description="Short hash of the account key; the key itself is a password"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "account": self.account_key_hash,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.snapshot_loaded(account, trips=2, categories=9)
        event = AuditEventBuilder.persist_failed(account, revision=4, error=str(e))
    """

    @staticmethod
    def snapshot_loaded(
        account: Optional[str],
        trips: int,
        categories: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_LOADED,
            entity_type="snapshot",
            account_key_hash=account,
            description=f"Snapshot loaded with {trips} trips",
            details={"trips": trips, "categories": categories},
        )

    @staticmethod
    def snapshot_defaulted(account: Optional[str], reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_DEFAULTED,
            entity_type="snapshot",
            account_key_hash=account,
            description=f"Default snapshot created: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def fetch_failed(account: Optional[str], error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_FETCH_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="snapshot",
            account_key_hash=account,
            description="Remote snapshot fetch failed, using local defaults",
            error_code="remote_fetch_failed",
            error_message=error_message,
        )

    @staticmethod
    def snapshot_validated(
        account: Optional[str],
        errors: int,
        warnings: int,
        issues: list[dict],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_VALIDATED,
            severity=AuditSeverity.WARNING if (errors or warnings) else AuditSeverity.INFO,
            entity_type="snapshot",
            account_key_hash=account,
            description=f"Snapshot check found {errors} errors and {warnings} warnings",
            details={"issues": issues},
        )

    @staticmethod
    def persisted(account: Optional[str], revision: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_PERSISTED,
            entity_type="snapshot",
            account_key_hash=account,
            description=f"Snapshot revision {revision} saved",
            details={"revision": revision},
        )

    @staticmethod
    def persist_failed(
        account: Optional[str],
        revision: int,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_PERSIST_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="snapshot",
            account_key_hash=account,
            description=f"Snapshot revision {revision} could not be saved; local state is ahead of remote",
            details={"revision": revision},
            error_code="remote_persist_failed",
            error_message=error_message,
        )

    @staticmethod
    def persist_skipped(
        account: Optional[str],
        revision: int,
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_PERSIST_SKIPPED,
            severity=AuditSeverity.DEBUG,
            entity_type="snapshot",
            account_key_hash=account,
            description=f"Save of revision {revision} skipped: {reason}",
            details={"revision": revision, "reason": reason},
        )

    @staticmethod
    def entity_mutated(
        account: Optional[str],
        operation: str,
        revision: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_MUTATED,
            entity_type="snapshot",
            account_key_hash=account,
            description=f"{operation} applied locally",
            details={"operation": operation, "revision": revision},
        )

    @staticmethod
    def mutation_rejected(
        account: Optional[str],
        operation: str,
        error_type: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="snapshot",
            account_key_hash=account,
            description=f"{operation} rejected: {error_type}",
            details={"operation": operation},
            error_code=error_type,
            error_message=error_message,
        )

    @staticmethod
    def rates_loaded(source: str, currencies: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATES_LOADED,
            entity_type="rates",
            description=f"Exchange rates loaded from {source}",
            details={"source": source, "currencies": currencies},
        )

    @staticmethod
    def rates_refreshed(currencies: int, last_updated: datetime) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATES_REFRESHED,
            entity_type="rates",
            description=f"Exchange rates refreshed for {currencies} currencies",
            details={"currencies": currencies, "last_updated": last_updated.isoformat()},
        )

    @staticmethod
    def rates_refresh_failed(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATES_REFRESH_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="rates",
            description="Exchange rate refresh failed, keeping current table",
            error_code="rate_refresh_failed",
            error_message=error_message,
        )

    @staticmethod
    def rates_cache_failed(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATES_CACHE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="rates",
            description="Refreshed rates are in use but could not be cached locally",
            error_code="rate_persist_failed",
            error_message=error_message,
        )

    @staticmethod
    def rate_not_found(currency: str, from_currency: str, to_currency: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATE_NOT_FOUND,
            severity=AuditSeverity.WARNING,
            entity_type="rates",
            entity_id=currency,
            description=f"No exchange rate for {currency}, amount left unconverted",
            error_code="rate_not_found",
            details={"from_currency": from_currency, "to_currency": to_currency},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
