"""
SQLite Database Connector.

Provides the relational side of DBC Sync:
- Table existence and column introspection
- Explicit transactions (one per table write phase)
- Batched, parameter-bounded upserts
- Streaming row reads for export
- Whole-table content checksums
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Generator, Iterator, Sequence

from dbc_sync.config import Settings
from dbc_sync.core.chunker import RowChunker
from dbc_sync.core.integrity import IntegrityChecker
from dbc_sync.core.mapper import quote_ident
from dbc_sync.errors import StorageError


@dataclass
class ColumnInfo:
    """Information about a table column."""

    name: str
    type: str
    notnull: bool
    default_value: Any
    is_primary_key: bool


@dataclass
class TableInfo:
    """Information about a database table."""

    name: str
    columns: list[ColumnInfo] = field(default_factory=list)
    row_count: int = 0


@dataclass
class RowBatch:
    """A batch of rows with metadata."""

    table: str
    columns: list[str]
    rows: list[dict[str, Any]]
    offset: int

    def __len__(self) -> int:
        return len(self.rows)


class SQLiteConnector:
    """
    Connector for the SQLite database holding DBC tables.

    The connection runs in autocommit mode; writes that must be atomic go
    through transaction().

    Example:
        with SQLiteConnector(Path("dbc.sqlite")) as db:
            with db.transaction():
                db.create_table(create_sql, table="Spell")
                db.upsert_rows("Spell", columns, rows, chunker)
    """

    def __init__(
        self,
        path: Path | str,
        readonly: bool = False,
        settings: Settings | None = None,
    ) -> None:
        """
        Initialize SQLite connector.

        Args:
            path: Path to the SQLite database file
            readonly: Open in read-only mode
            settings: Optional settings object
        """
        self.path = Path(path)
        self.readonly = readonly
        self.settings = settings
        self._connection: sqlite3.Connection | None = None

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get the database connection, opening it on first use."""
        if self._connection is None:
            try:
                self._connection = self._create_connection()
            except sqlite3.Error as e:
                raise StorageError(f"Cannot open database {self.path}: {e}") from e
        yield self._connection

    def _create_connection(self) -> sqlite3.Connection:
        """Create a new database connection."""
        if self.readonly:
            if not self.path.exists():
                raise FileNotFoundError(f"Database not found: {self.path}")
            conn = sqlite3.connect(
                f"file:{self.path}?mode=ro",
                uri=True,
                isolation_level=None,
                timeout=30.0,
            )
        else:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                self.path,
                isolation_level=None,
                timeout=30.0,
            )

        conn.row_factory = sqlite3.Row
        if not self.readonly:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA cache_size=-64000")  # 64MB cache
        conn.execute("PRAGMA temp_store=MEMORY")

        return conn

    def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            self._connection.close()
            self._connection = None

    def __enter__(self) -> "SQLiteConnector":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Run a block atomically.

        Rolls back on any exception, DDL included, so a failed import
        leaves no partially created table behind.
        """
        self._check_writable()
        with self.connection() as conn:
            conn.execute("BEGIN")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            else:
                conn.execute("COMMIT")

    def _check_writable(self) -> None:
        if self.readonly:
            raise RuntimeError("Cannot execute write operations in read-only mode")

    # =========================================================================
    # Introspection
    # =========================================================================
    def fetch_all(
        self,
        sql: str,
        params: Sequence[Any] = (),
        table: str | None = None,
    ) -> list[sqlite3.Row]:
        """
        Run a read query and return every row.

        Raises:
            StorageError: wrapping the sqlite3 error
        """
        with self.connection() as conn:
            try:
                return conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"{e} while executing: {sql[:200]}", table=table) from e

    def table_exists(self, table: str) -> bool:
        """Check whether a table exists."""
        rows = self.fetch_all(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
            (table,),
            table=table,
        )
        return bool(rows)

    def get_tables(self) -> list[TableInfo]:
        """Get all user tables with their metadata."""
        names = [
            row["name"]
            for row in self.fetch_all(
                """
                SELECT name FROM sqlite_master
                WHERE type = 'table'
                AND name NOT LIKE 'sqlite_%'
                ORDER BY name
                """
            )
        ]
        return [
            TableInfo(
                name=name,
                columns=self.get_columns(name),
                row_count=self.get_row_count(name),
            )
            for name in names
        ]

    def get_columns(self, table: str) -> list[ColumnInfo]:
        """Get column information for a table."""
        rows = self.fetch_all(f"PRAGMA table_info({quote_ident(table)})", table=table)
        return [
            ColumnInfo(
                name=row["name"],
                type=row["type"],
                notnull=bool(row["notnull"]),
                default_value=row["dflt_value"],
                is_primary_key=bool(row["pk"]),
            )
            for row in rows
        ]

    def get_row_count(self, table: str) -> int:
        """Get the row count for a table."""
        rows = self.fetch_all(
            f"SELECT COUNT(*) AS count FROM {quote_ident(table)}", table=table
        )
        return rows[0]["count"] if rows else 0

    def max_bound_params(self) -> int:
        """Per-statement bound parameter limit of this SQLite build."""
        with self.connection() as conn:
            try:
                return conn.getlimit(sqlite3.SQLITE_LIMIT_VARIABLE_NUMBER)
            except sqlite3.Error as e:
                raise StorageError(f"Cannot read parameter limit: {e}") from e

    # =========================================================================
    # Writes
    # =========================================================================
    def execute_sql(
        self,
        sql: str,
        params: Sequence[Any] = (),
        table: str | None = None,
    ) -> int:
        """
        Execute a write statement and return the affected row count.

        Raises:
            StorageError: wrapping the sqlite3 error
        """
        self._check_writable()
        with self.connection() as conn:
            try:
                cursor = conn.execute(sql, params)
            except sqlite3.Error as e:
                raise StorageError(f"{e} while executing: {sql[:200]}", table=table) from e
            return cursor.rowcount

    def create_table(self, create_sql: str, table: str | None = None) -> None:
        """Create a table using a CREATE TABLE statement."""
        self.execute_sql(create_sql, table=table)

    def drop_table(self, table: str) -> None:
        """Drop a table if it exists."""
        self.execute_sql(f"DROP TABLE IF EXISTS {quote_ident(table)}", table=table)

    def upsert_rows(
        self,
        table: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        chunker: RowChunker,
    ) -> int:
        """
        Write rows in parameter-bounded batches.

        Call inside transaction() so that a failing batch rolls back
        every batch of the table.

        Returns:
            Number of rows written
        """
        written = 0
        for chunk in chunker.chunk_rows(table, columns, rows):
            try:
                self.execute_sql(chunk.sql, chunk.params, table=table)
            except StorageError as e:
                raise StorageError(
                    f"Batch of rows {chunk.start_offset}-{chunk.end_offset} failed: {e}",
                    table=table,
                ) from e
            written += chunk.row_count
        return written

    # =========================================================================
    # Reads
    # =========================================================================
    def iter_rows(
        self,
        table: str,
        query: str,
        batch_size: int = 1000,
    ) -> Iterator[RowBatch]:
        """
        Stream the result of a query in batches.

        Args:
            table: Table the query reads from
            query: SELECT statement
            batch_size: Rows per batch

        Yields:
            RowBatch objects whose rows are column -> value dicts
        """
        with self.connection() as conn:
            try:
                cursor = conn.execute(query)
            except sqlite3.Error as e:
                raise StorageError(f"Query failed: {e}", table=table) from e
            columns = [d[0] for d in cursor.description]
            offset = 0
            while True:
                try:
                    fetched = cursor.fetchmany(batch_size)
                except sqlite3.Error as e:
                    raise StorageError(
                        f"Read failed after {offset} rows: {e}", table=table
                    ) from e
                if not fetched:
                    break
                yield RowBatch(
                    table=table,
                    columns=columns,
                    rows=[dict(row) for row in fetched],
                    offset=offset,
                )
                offset += len(fetched)

    def table_checksum(self, table: str, checker: IntegrityChecker) -> int:
        """Whole-table content fingerprint."""
        columns = [c.name for c in self.get_columns(table)]
        col_str = ", ".join(quote_ident(c) for c in columns)
        with self.connection() as conn:
            try:
                cursor = conn.execute(f"SELECT {col_str} FROM {quote_ident(table)}")
                return checker.table_fingerprint(columns, (tuple(r) for r in cursor))
            except sqlite3.Error as e:
                raise StorageError(f"Checksum failed: {e}", table=table) from e
