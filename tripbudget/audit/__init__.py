"""Audit logging package."""

from tripbudget.audit.logger import AuditListener, AuditLogger, hash_account_key

__all__ = ["AuditListener", "AuditLogger", "hash_account_key"]
