"""Snapshot validation package."""

from tripbudget.validation.validator import SnapshotValidator

__all__ = ["SnapshotValidator"]
