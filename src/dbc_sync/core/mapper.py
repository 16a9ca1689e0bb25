"""
Relational Mapper - table definitions and record/row conversion.

Derives the table layout from the same Schema that drives the binary codec,
so a DBC record and its table row always agree column by column.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Sequence

from dbc_sync.core.codec import LocalizedText, Record, Value
from dbc_sync.core.schema import LOCALES, FieldKind, Schema, SortKey
from dbc_sync.errors import FormatError, SchemaError


class SqlType(str, Enum):
    """Column types emitted in CREATE TABLE."""

    INT = "INT"
    BIGINT_UNSIGNED = "BIGINT UNSIGNED"
    INT_UNSIGNED = "INT UNSIGNED"
    FLOAT = "FLOAT"
    TEXT = "TEXT"


@dataclass(frozen=True)
class ColumnDef:
    name: str
    sql_type: SqlType
    kind: FieldKind


@dataclass(frozen=True)
class TableDefinition:
    """Columns and key constraints of one DBC table."""

    name: str
    columns: tuple[ColumnDef, ...]
    primary_key: tuple[str, ...]
    unique_keys: tuple[tuple[str, ...], ...] = ()

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]


def quote_ident(name: str) -> str:
    """Quote an identifier for SQLite."""
    return '"' + name.replace('"', '""') + '"'


_SCALAR_TYPES = {
    FieldKind.INT32: SqlType.INT,
    FieldKind.UINT32: SqlType.BIGINT_UNSIGNED,
    FieldKind.FLOAT: SqlType.FLOAT,
    FieldKind.STRING: SqlType.TEXT,
}


def derive_table_definition(schema: Schema) -> TableDefinition:
    """
    Build the table definition for a schema.

    Repeated fields expand first, then each Loc field expands into one TEXT
    column per locale plus an unsigned flags column.

    Raises:
        SchemaError: for a field kind with no column mapping
    """
    columns: list[ColumnDef] = []
    for pf in schema.physical_fields:
        if pf.kind is FieldKind.LOC:
            for loc in LOCALES:
                columns.append(ColumnDef(f"{pf.name}_{loc}", SqlType.TEXT, FieldKind.STRING))
            columns.append(ColumnDef(f"{pf.name}_flags", SqlType.INT_UNSIGNED, FieldKind.UINT32))
            continue
        sql_type = _SCALAR_TYPES.get(pf.kind)
        if sql_type is None:
            raise SchemaError(
                f"Unknown field type '{pf.kind}' for '{pf.name}'",
                table=schema.table_name,
            )
        columns.append(ColumnDef(pf.name, sql_type, pf.kind))

    return TableDefinition(
        name=schema.table_name,
        columns=tuple(columns),
        primary_key=schema.effective_primary_keys,
        unique_keys=tuple(group for group in schema.unique_keys if group),
    )


def create_table_sql(definition: TableDefinition) -> str:
    """Build the CREATE TABLE statement with primary and unique keys."""
    parts = [f"{quote_ident(c.name)} {c.sql_type.value}" for c in definition.columns]
    parts.append(
        "PRIMARY KEY (" + ", ".join(quote_ident(k) for k in definition.primary_key) + ")"
    )
    for i, group in enumerate(definition.unique_keys):
        cols = ", ".join(quote_ident(k) for k in group)
        parts.append(f"CONSTRAINT {quote_ident(f'uk_{i}')} UNIQUE ({cols})")
    body = ",\n    ".join(parts)
    return f"CREATE TABLE {quote_ident(definition.name)} (\n    {body}\n)"


def select_sql(definition: TableDefinition, sort_order: Sequence[SortKey] = ()) -> str:
    """Build the export query, ordered by the declared sort keys."""
    col_str = ", ".join(quote_ident(c) for c in definition.column_names)
    query = f"SELECT {col_str} FROM {quote_ident(definition.name)}"
    if sort_order:
        order = ", ".join(
            f"{quote_ident(k.column)} {k.direction.value}" for k in sort_order
        )
        query += f" ORDER BY {order}"
    return query


# =============================================================================
# Record <-> row
# =============================================================================
def record_to_row(record: Mapping[str, Value], schema: Schema) -> tuple[Any, ...]:
    """Flatten a record into column values in table column order."""
    values: list[Any] = []
    for pf in schema.physical_fields:
        value = record[pf.name]
        if pf.kind is FieldKind.LOC:
            values.extend(value.strings)
            values.append(value.flags)
        else:
            values.append(value)
    return tuple(values)


def record_to_columns(record: Mapping[str, Value], schema: Schema) -> dict[str, Any]:
    """Flatten a record into a column name -> value mapping."""
    return dict(zip(schema.column_names, record_to_row(record, schema)))


def _cell(row: Mapping[str, Any], column: str, kind: FieldKind, table: str) -> Value:
    value = row.get(column)
    try:
        return _convert(value, kind)
    except (TypeError, ValueError, OverflowError) as e:
        raise FormatError(
            f"column '{column}': cannot convert {value!r} to {kind.value}: {e}",
            table=table,
        ) from e


def _convert(value: Any, kind: FieldKind) -> Value:
    if value is None:
        if kind is FieldKind.FLOAT:
            return 0.0
        if kind is FieldKind.STRING:
            return ""
        return 0
    if kind is FieldKind.FLOAT:
        return float(value)
    if kind is FieldKind.STRING:
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)
    return int(value)


def row_to_record(row: Mapping[str, Any], schema: Schema) -> Record:
    """
    Rebuild a record from a column name -> value mapping.

    Missing or NULL cells become the kind's zero value.

    Raises:
        FormatError: when a cell cannot be converted to its field kind
    """
    table = schema.table_name
    record: Record = {}
    for pf in schema.physical_fields:
        if pf.kind is FieldKind.LOC:
            strings = tuple(
                _cell(row, f"{pf.name}_{loc}", FieldKind.STRING, table) for loc in LOCALES
            )
            flags = _cell(row, f"{pf.name}_flags", FieldKind.UINT32, table)
            record[pf.name] = LocalizedText(strings, flags)
        else:
            record[pf.name] = _cell(row, pf.name, pf.kind, table)
    return record


def nan_fields(records: Sequence[Record], schema: Schema) -> dict[str, int]:
    """
    Count NaN values per float field.

    SQLite stores a NaN REAL as NULL, so these values come back as 0.0.
    """
    floats = [pf.name for pf in schema.physical_fields if pf.kind is FieldKind.FLOAT]
    counts: dict[str, int] = {}
    for record in records:
        for name in floats:
            if math.isnan(record[name]):
                counts[name] = counts.get(name, 0) + 1
    return counts
