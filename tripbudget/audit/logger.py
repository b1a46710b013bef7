"""
Audit Logger

DESIGN DECISION: Every significant engine action is logged.
This provides:
1. Traceability of every optimistic update and every save
2. The out-of-band channel through which network failures are reported
3. Debugging capability when remote and local state diverge

The audit logger:
- Is synchronous, because engine mutations run to completion on the caller's turn
- Gracefully handles listener failures (a broken listener never breaks a mutation)
- Never writes the raw account key; it is a shared password
"""

import hashlib
from typing import Callable, Optional

import structlog

from tripbudget.models.audit import AuditEvent


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


AuditListener = Callable[[AuditEvent], None]


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Registered listeners (for surfacing errors to the UI layer)
    """

    def __init__(self, listeners: Optional[list[AuditListener]] = None):
        self._listeners: list[AuditListener] = list(listeners or [])
        self._logger = structlog.get_logger("tripbudget.audit")

    def add_listener(self, listener: AuditListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: AuditListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def log(self, event: AuditEvent) -> None:
        """
        Log an audit event.

        Always logs locally, then notifies listeners.
        """
        log_dict = event.to_log_dict()
        severity = event.severity.value

        if severity in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif severity == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif severity == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_listener_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )


def hash_account_key(account_key: Optional[str]) -> Optional[str]:
    """
    Short, stable fingerprint of an account key for log correlation.

    The key is the user's password, so it must never be logged as-is.
    """
    if not account_key:
        return None
    return hashlib.sha256(account_key.encode("utf-8")).hexdigest()[:12]
