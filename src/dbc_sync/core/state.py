"""
Table state and checksum tracking.

Provides:
- Per-table pipeline states (unknown, checked, skipped, exported...)
- Persistent per-table content checksums in the database
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from dbc_sync.connectors.sqlite import SQLiteConnector
from dbc_sync.core.mapper import quote_ident


CHECKSUM_TABLE = "dbc_checksum"


class TableState(str, Enum):
    """Lifecycle of one table within a run."""

    UNKNOWN = "unknown"
    CHECKED = "checked"
    SKIPPED = "skipped"
    EXPORTED = "exported"
    IMPORTED = "imported"
    FAILED = "failed"


@dataclass
class TableProgress:
    """Outcome tracking for a single table."""

    name: str
    state: TableState = TableState.UNKNOWN
    rows: int = 0
    bytes_written: int = 0
    checksum: int | None = None
    duplicates: int = 0
    message: str = ""
    started_at: str | None = None
    completed_at: str | None = None

    def start(self) -> None:
        self.started_at = datetime.now(timezone.utc).isoformat()

    def finish(self, state: TableState, message: str = "") -> None:
        self.state = state
        self.message = message
        self.completed_at = datetime.now(timezone.utc).isoformat()


@dataclass
class ChecksumEntry:
    table_name: str
    checksum: int


class ChecksumStore:
    """
    Persistent table_name -> checksum records.

    An entry is created with checksum 0 on the first export attempt and is
    only overwritten after the exported file was written.

    Example:
        store = ChecksumStore(db)
        stored = store.ensure("Spell")
        ...
        store.update("Spell", fingerprint)
    """

    def __init__(self, db: SQLiteConnector, table: str = CHECKSUM_TABLE) -> None:
        self.db = db
        self.table = table
        self._ready = False

    def _ensure_table(self) -> None:
        if self._ready:
            return
        self.db.execute_sql(
            f"CREATE TABLE IF NOT EXISTS {quote_ident(self.table)} ("
            "table_name TEXT PRIMARY KEY, "
            "checksum INTEGER NOT NULL DEFAULT 0)",
            table=self.table,
        )
        self._ready = True

    def get(self, table_name: str) -> int | None:
        """Stored checksum, or None when the table has no entry."""
        if not self.db.table_exists(self.table):
            return None
        rows = self.db.fetch_all(
            f"SELECT checksum FROM {quote_ident(self.table)} WHERE table_name = ?",
            (table_name,),
            table=self.table,
        )
        return rows[0]["checksum"] if rows else None

    def ensure(self, table_name: str) -> int:
        """Return the stored checksum, creating a zero entry if absent."""
        self._ensure_table()
        self.db.execute_sql(
            f"INSERT OR IGNORE INTO {quote_ident(self.table)} (table_name, checksum) "
            "VALUES (?, 0)",
            (table_name,),
            table=self.table,
        )
        stored = self.get(table_name)
        return stored if stored is not None else 0

    def update(self, table_name: str, checksum: int) -> None:
        """Persist a new checksum after a successful export."""
        self._ensure_table()
        self.db.execute_sql(
            f"INSERT OR REPLACE INTO {quote_ident(self.table)} (table_name, checksum) "
            "VALUES (?, ?)",
            (table_name, checksum),
            table=self.table,
        )

    def entries(self) -> list[ChecksumEntry]:
        """All stored entries, sorted by table name."""
        if not self.db.table_exists(self.table):
            return []
        rows = self.db.fetch_all(
            f"SELECT table_name, checksum FROM {quote_ident(self.table)} "
            "ORDER BY table_name",
            table=self.table,
        )
        return [ChecksumEntry(row["table_name"], row["checksum"]) for row in rows]

    def clear(self, table_name: str | None = None) -> int:
        """Forget one entry, or all of them. Returns the number removed."""
        if not self.db.table_exists(self.table):
            return 0
        if table_name is None:
            return self.db.execute_sql(f"DELETE FROM {quote_ident(self.table)}")
        return self.db.execute_sql(
            f"DELETE FROM {quote_ident(self.table)} WHERE table_name = ?",
            (table_name,),
        )
