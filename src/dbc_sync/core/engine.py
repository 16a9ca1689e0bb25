"""
Sync Engine - Main orchestration for import and export.

Coordinates all components:
- Schema resolver for meta documents
- Binary codec for DBC files
- Relational mapper and chunker for table writes
- Checksum store and integrity checker for change detection
- Duplicate-key auditor before import

Tables are processed one after another. A failure stops only the table it
happened in; the run moves on to the next table.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from dbc_sync.config import Settings
from dbc_sync.connectors.files import FileStore
from dbc_sync.connectors.sqlite import SQLiteConnector
from dbc_sync.core.auditor import audit_unique_keys
from dbc_sync.core.chunker import RowChunker
from dbc_sync.core.codec import DBCFile, DBCHeader, decode, encode, read_header
from dbc_sync.core.integrity import IntegrityChecker
from dbc_sync.core.mapper import (
    create_table_sql,
    derive_table_definition,
    nan_fields,
    record_to_row,
    row_to_record,
    select_sql,
)
from dbc_sync.core.schema import Schema, SchemaCache, discover_schemas, meta_path_for
from dbc_sync.core.state import ChecksumStore, TableProgress, TableState
from dbc_sync.errors import (
    AlreadyPresentNotice,
    DbcSyncError,
    FormatError,
    MissingInputWarning,
    SchemaError,
    TableSkipped,
)
from dbc_sync.utils.logger import table_logger


@dataclass
class SyncStats:
    """Statistics for an import or export run."""

    operation: str  # import or export
    tables_total: int = 0
    tables_processed: int = 0
    tables_skipped: int = 0
    tables_failed: int = 0
    rows_processed: int = 0
    bytes_written: int = 0
    start_time: float = 0.0
    end_time: float = 0.0
    tables: dict[str, TableProgress] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        """Duration in seconds."""
        if self.end_time and self.start_time:
            return self.end_time - self.start_time
        if self.start_time:
            return time.time() - self.start_time
        return 0.0

    @property
    def rows_per_second(self) -> float:
        duration = self.duration_seconds
        if duration > 0:
            return self.rows_processed / duration
        return 0.0


# Progress callback type
ProgressCallback = Callable[[SyncStats], None]


class SyncEngine:
    """
    Main engine coordinating import and export.

    Example:
        with SQLiteConnector(settings.database.path) as db:
            engine = SyncEngine(settings, db)

            # DBC files -> tables
            stats = engine.import_all()

            # Tables -> DBC files, skipping unchanged tables
            stats = engine.export_all()
    """

    def __init__(
        self,
        settings: Settings,
        db: SQLiteConnector,
        files: FileStore | None = None,
    ) -> None:
        """
        Initialize sync engine.

        Args:
            settings: Application settings
            db: Open database connector
            files: File store (defaults to the configured paths)
        """
        self.settings = settings
        self.db = db
        self.files = files or FileStore(
            settings.paths.base_dir, settings.paths.export_dir
        )
        self.schemas = SchemaCache()
        self.integrity = IntegrityChecker(settings.sync.checksum_algorithm)
        self.checksums = ChecksumStore(db)
        self._chunker: RowChunker | None = None

    @property
    def chunker(self) -> RowChunker:
        if self._chunker is None:
            self._chunker = RowChunker(
                self.settings.limits, engine_max_params=self.db.max_bound_params()
            )
        return self._chunker

    # =========================================================================
    # Meta discovery
    # =========================================================================
    def meta_paths(self, name: str | None = None) -> list[Path]:
        """Meta documents to process: one by DBC name, or all of them."""
        if name:
            return [meta_path_for(self.settings.paths.meta_dir, name)]
        return discover_schemas(self.settings.paths.meta_dir)

    def load_schema(self, name: str) -> Schema:
        """Schema for a DBC given by name without extension."""
        path = meta_path_for(self.settings.paths.meta_dir, name)
        if not path.exists():
            raise SchemaError(f"Meta document not found: {path}", table=name)
        return self.schemas.get(path)

    # =========================================================================
    # Import
    # =========================================================================
    def import_all(
        self,
        name: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> SyncStats:
        """Import every DBC that has a meta document, or just `name`."""
        return self._run("import", self.import_table, name, on_progress)

    def import_table(self, schema: Schema, progress: TableProgress) -> None:
        """
        Import one DBC file into a new table.

        Raises:
            MissingInputWarning: the DBC file does not exist
            AlreadyPresentNotice: the table already exists
            FormatError, StorageError: decode or write failures
        """
        table = schema.table_name
        source = self.files.source_path(schema.file)
        if not self.files.exists(source):
            raise MissingInputWarning(f"DBC file does not exist: {source}", table=table)
        if self.db.table_exists(table):
            raise AlreadyPresentNotice("table already exists", table=table)

        log = table_logger(__name__, table)
        log.info(f"Importing {source} into table {table}...")
        dbc = self._decode(source, schema)

        duplicates = audit_unique_keys(dbc.records, schema)
        progress.duplicates = sum(len(g.indices) for g in duplicates)
        for name, count in nan_fields(dbc.records, schema).items():
            log.warning(
                f"{table}.{name}: {count} NaN value(s) are stored as NULL "
                "and export as 0.0"
            )

        definition = derive_table_definition(schema)
        rows = [record_to_row(record, schema) for record in dbc.records]

        with self.db.transaction():
            self.db.create_table(create_table_sql(definition), table=table)
            written = self.db.upsert_rows(
                table, definition.column_names, rows, self.chunker
            )

        progress.rows = written
        progress.finish(TableState.IMPORTED)
        log.info(f"Imported {written} records into table {table}")

    def _decode(self, path: Path, schema: Schema) -> DBCFile:
        try:
            return decode(self.files.read_bytes(path), schema)
        except FormatError as e:
            e.table = schema.table_name
            raise

    # =========================================================================
    # Export
    # =========================================================================
    def export_all(
        self,
        name: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> SyncStats:
        """Export every table that has a meta document, or just `name`."""
        return self._run("export", self.export_table, name, on_progress)

    def export_table(self, schema: Schema, progress: TableProgress) -> None:
        """
        Export one table to a DBC file unless its content is unchanged.

        The stored checksum is updated only after the file was written.

        Raises:
            MissingInputWarning: the table does not exist
            FormatError, StorageError: read or encode failures
        """
        table = schema.table_name
        if not self.db.table_exists(table):
            raise MissingInputWarning("table does not exist", table=table)

        log = table_logger(__name__, table)
        stored = self.checksums.ensure(table)
        current = self.db.table_checksum(table, self.integrity)
        progress.checksum = current
        progress.state = TableState.CHECKED

        if self.settings.sync.use_versioning and self.integrity.compare_fingerprints(
            stored, current
        ):
            progress.finish(TableState.SKIPPED, "unchanged")
            log.info(f"Skipping {table}: unchanged since last export")
            return

        log.info(f"Exporting table {table} to DBC...")
        definition = derive_table_definition(schema)
        records = []
        for batch in self.db.iter_rows(table, select_sql(definition, schema.sort_order)):
            records.extend(row_to_record(row, schema) for row in batch.rows)

        try:
            data = encode(records, schema)
        except FormatError as e:
            e.table = table
            raise

        out_path = self.files.export_path(schema.file)
        progress.bytes_written = self.files.write_bytes(out_path, data)
        self.checksums.update(table, current)

        progress.rows = len(records)
        progress.finish(TableState.EXPORTED)
        log.info(f"Exported {out_path} ({len(records)} records)")

    # =========================================================================
    # Single file helpers
    # =========================================================================
    def read_dbc(self, name: str) -> tuple[DBCFile, Schema]:
        """Decode a source DBC by name."""
        schema = self.load_schema(name)
        source = self.files.source_path(schema.file)
        if not self.files.exists(source):
            raise MissingInputWarning(f"DBC file does not exist: {source}", table=name)
        return self._decode(source, schema), schema

    def read_header(self, name: str) -> DBCHeader:
        """Read only the header of a source DBC given by file name."""
        file_name = name if name.lower().endswith(".dbc") else f"{name}.dbc"
        source = self.files.source_path(file_name)
        if not self.files.exists(source):
            raise MissingInputWarning(f"DBC file does not exist: {source}", table=name)
        return read_header(self.files.read_bytes(source))

    def rebuild_dbc(self, dbc: DBCFile, schema: Schema) -> Path:
        """Re-encode decoded records into the export directory."""
        out_path = self.files.export_path(schema.file)
        self.files.write_bytes(out_path, encode(dbc.records, schema))
        return out_path

    # =========================================================================
    # Run loop
    # =========================================================================
    def _run(
        self,
        operation: str,
        handler: Callable[[Schema, TableProgress], None],
        name: str | None,
        on_progress: ProgressCallback | None,
    ) -> SyncStats:
        stats = SyncStats(operation=operation)
        stats.start_time = time.time()

        paths = self.meta_paths(name)
        stats.tables_total = len(paths)
        if on_progress:
            on_progress(stats)

        for meta_path in paths:
            table = meta_path.name.removesuffix(".meta.json")
            progress = TableProgress(name=table)
            progress.start()

            try:
                if not meta_path.exists():
                    raise SchemaError(f"Meta document not found: {meta_path}", table=table)
                schema = self.schemas.get(meta_path)
                progress.name = table = schema.table_name
                if not self.settings.selects_table(table):
                    stats.tables_total -= 1
                    continue
                stats.tables[table] = progress
                handler(schema, progress)
            except TableSkipped as e:
                stats.tables[table] = progress
                progress.finish(TableState.SKIPPED, str(e))
                stats.tables_skipped += 1
                table_logger(__name__, table).info(f"Skipping {table}: {e}")
            except (DbcSyncError, OSError) as e:
                stats.tables[table] = progress
                progress.finish(TableState.FAILED, str(e))
                stats.tables_failed += 1
                stats.errors.append(f"{table}: {type(e).__name__}: {e}")
                table_logger(__name__, table).error(
                    f"{operation.capitalize()} failed for {table}: {e}"
                )
            else:
                if progress.state is TableState.SKIPPED:
                    stats.tables_skipped += 1
                stats.rows_processed += progress.rows
                stats.bytes_written += progress.bytes_written

            stats.tables_processed += 1
            if on_progress:
                on_progress(stats)

        stats.end_time = time.time()
        return stats
