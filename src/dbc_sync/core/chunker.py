"""
Row Chunker - parameter-aware upsert statement builder.

Builds multi-row upsert statements whose bound parameter count stays within
the database engine's per-statement ceiling.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Sequence

from dbc_sync.config import Limits
from dbc_sync.core.mapper import quote_ident


@dataclass
class UpsertChunk:
    """A multi-row upsert ready for execution."""

    table: str
    sql: str
    params: list[Any]
    row_count: int
    start_offset: int
    end_offset: int


class RowChunker:
    """
    Parameter-aware upsert builder.

    Rows are written with INSERT OR REPLACE: a row colliding with an existing
    row on the primary key or any unique key replaces it, so the last write
    wins and re-running an import is idempotent.

    Example:
        chunker = RowChunker(limits, engine_max_params=32766)

        for chunk in chunker.chunk_rows("Spell", columns, rows):
            conn.execute(chunk.sql, chunk.params)
    """

    def __init__(self, limits: Limits, engine_max_params: int | None = None) -> None:
        """
        Initialize chunker with batching limits.

        Args:
            limits: Batching limits from configuration
            engine_max_params: Bound parameter limit reported by the engine
        """
        self.limits = limits
        self.max_params = limits.max_bound_params
        if engine_max_params:
            self.max_params = min(self.max_params, engine_max_params)

    def batch_size(self, column_count: int) -> int:
        """Rows per statement for a table with `column_count` columns."""
        if column_count <= 0:
            return self.limits.max_rows_per_batch
        return max(1, min(self.limits.max_rows_per_batch, self.max_params // column_count))

    def build_upsert_statement(
        self,
        table: str,
        columns: Sequence[str],
        row_count: int,
    ) -> str:
        """Build a parameterized multi-row upsert for `row_count` rows."""
        col_str = ", ".join(quote_ident(c) for c in columns)
        placeholders = "(" + ", ".join("?" for _ in columns) + ")"
        values = ", ".join(placeholders for _ in range(row_count))
        return f"INSERT OR REPLACE INTO {quote_ident(table)} ({col_str}) VALUES {values}"

    def chunk_rows(
        self,
        table: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        start_offset: int = 0,
    ) -> Iterator[UpsertChunk]:
        """
        Split rows into parameter-bounded upserts.

        Args:
            table: Target table name
            columns: Column names
            rows: All rows to write, each in column order
            start_offset: Offset of the first row (for reporting)

        Yields:
            UpsertChunk objects
        """
        if not rows:
            return

        size = self.batch_size(len(columns))
        full_sql: str | None = None

        for start in range(0, len(rows), size):
            batch = rows[start:start + size]
            if len(batch) == size:
                if full_sql is None:
                    full_sql = self.build_upsert_statement(table, columns, size)
                sql = full_sql
            else:
                sql = self.build_upsert_statement(table, columns, len(batch))

            params: list[Any] = []
            for i, row in enumerate(batch):
                if len(row) != len(columns):
                    raise ValueError(
                        f"Row at offset {start_offset + start + i} has {len(row)} values, "
                        f"expected {len(columns)}"
                    )
                params.extend(row)

            yield UpsertChunk(
                table=table,
                sql=sql,
                params=params,
                row_count=len(batch),
                start_offset=start_offset + start,
                end_offset=start_offset + start + len(batch) - 1,
            )

    def estimate_chunks_needed(self, column_count: int, total_rows: int) -> int:
        """Number of statements needed for `total_rows` rows."""
        if total_rows <= 0:
            return 0
        size = self.batch_size(column_count)
        return (total_rows + size - 1) // size
