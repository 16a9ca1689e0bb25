"""Core components for DBC Sync: schema, codec, mapping and auditing."""

from dbc_sync.core.schema import FieldKind, FieldSpec, Schema, load_schema, resolve_schema
from dbc_sync.core.codec import DBCFile, DBCHeader, LocalizedText, decode, encode
from dbc_sync.core.mapper import TableDefinition, derive_table_definition
from dbc_sync.core.chunker import RowChunker
from dbc_sync.core.integrity import IntegrityChecker
from dbc_sync.core.auditor import audit_unique_keys

__all__ = [
    "FieldKind",
    "FieldSpec",
    "Schema",
    "load_schema",
    "resolve_schema",
    "DBCFile",
    "DBCHeader",
    "LocalizedText",
    "decode",
    "encode",
    "TableDefinition",
    "derive_table_definition",
    "RowChunker",
    "IntegrityChecker",
    "audit_unique_keys",
]
