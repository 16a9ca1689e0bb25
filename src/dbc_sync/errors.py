"""
Exception hierarchy for DBC Sync.

Every per-table failure derives from DbcSyncError so the sync engine can
catch it at the table boundary, report it and move on to the next table.
"""

from __future__ import annotations


class DbcSyncError(Exception):
    """Base exception for DBC Sync errors."""

    def __init__(self, message: str, table: str | None = None) -> None:
        super().__init__(message)
        self.table = table


class SchemaError(DbcSyncError):
    """Raised when a meta document is malformed or inconsistent."""

    pass


class FormatError(DbcSyncError):
    """Raised when a DBC buffer violates the binary layout."""

    pass


class StorageError(DbcSyncError):
    """Raised when DDL or a batch write fails. The transaction is rolled back."""

    pass


class TableSkipped(DbcSyncError):
    """Base for conditions that skip a table without failing the run."""

    pass


class MissingInputWarning(TableSkipped):
    """Raised when the source DBC file or source table does not exist."""

    pass


class AlreadyPresentNotice(TableSkipped):
    """Raised when the destination table already exists at import time."""

    pass


class DuplicateKeyWarning(UserWarning):
    """Issued when decoded records collide on a declared unique key."""

    pass
