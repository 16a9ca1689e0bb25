"""
Schema Resolver - meta document parsing and validation.

A meta document describes one DBC file kind:

    {
        "file": "Spell.dbc",
        "primaryKeys": ["ID"],
        "uniqueKeys": [["Name_enUS", "Rank"]],
        "sortOrder": [{"name": "ID", "direction": "ASC"}],
        "fields": [
            {"name": "ID", "type": "int32"},
            {"name": "Reagent", "type": "int32", "count": 8},
            {"name": "Name", "type": "Loc"}
        ]
    }

The resolved Schema is immutable and drives the codec, the relational
mapper and the duplicate-key auditor.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from dbc_sync.errors import SchemaError


# Wire order of localized strings. The 17th slot of a Loc field is the flags value.
LOCALES: tuple[str, ...] = (
    "enUS", "koKR", "frFR", "deDE", "zhCN", "zhTW",
    "esES", "esMX", "ruRU", "jaJP", "ptPT", "itIT",
    "unused1", "unused2", "unused3", "unused4",
)

LOC_SLOTS = len(LOCALES) + 1
SLOT_SIZE = 4
DEFAULT_PRIMARY_KEY = "ID"
META_SUFFIX = ".meta.json"


class FieldKind(str, Enum):
    """Closed set of DBC field kinds."""

    INT32 = "int32"
    UINT32 = "uint32"
    FLOAT = "float"
    STRING = "string"
    LOC = "Loc"

    @property
    def slots(self) -> int:
        """Number of 4-byte slots one value of this kind occupies."""
        return LOC_SLOTS if self is FieldKind.LOC else 1


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"

    @classmethod
    def coerce(cls, value: str | None) -> "SortDirection":
        """Unknown direction literals sort ascending."""
        if value and value.upper() == "DESC":
            return cls.DESC
        return cls.ASC


@dataclass(frozen=True)
class FieldSpec:
    """A declared field, possibly repeated `count` times."""

    name: str
    kind: FieldKind
    count: int = 1

    def expand(self) -> list["PhysicalField"]:
        """Expand into independently addressable fields named <name>_<1..N>."""
        if self.count == 1:
            return [PhysicalField(self.name, self.kind)]
        return [
            PhysicalField(f"{self.name}_{i}", self.kind)
            for i in range(1, self.count + 1)
        ]


@dataclass(frozen=True)
class PhysicalField:
    """One field slot group as it appears in a record and on disk."""

    name: str
    kind: FieldKind

    @property
    def columns(self) -> list[str]:
        """Relational column names derived from this field."""
        if self.kind is FieldKind.LOC:
            return [f"{self.name}_{loc}" for loc in LOCALES] + [f"{self.name}_flags"]
        return [self.name]


@dataclass(frozen=True)
class SortKey:
    column: str
    direction: SortDirection = SortDirection.ASC


@dataclass(frozen=True)
class Schema:
    """Validated description of one DBC file kind."""

    file: str
    fields: tuple[FieldSpec, ...]
    primary_keys: tuple[str, ...] = ()
    unique_keys: tuple[tuple[str, ...], ...] = ()
    sort_order: tuple[SortKey, ...] = ()
    source: Path | None = field(default=None, compare=False)

    @property
    def table_name(self) -> str:
        """Table name is the file name without its .dbc extension."""
        name = Path(self.file).name
        if name.lower().endswith(".dbc"):
            name = name[:-4]
        return name

    @cached_property
    def physical_fields(self) -> tuple[PhysicalField, ...]:
        """Fields after repeat expansion, in binary slot order."""
        return tuple(pf for spec in self.fields for pf in spec.expand())

    @cached_property
    def column_names(self) -> tuple[str, ...]:
        return tuple(col for pf in self.physical_fields for col in pf.columns)

    @property
    def effective_primary_keys(self) -> tuple[str, ...]:
        return self.primary_keys or (DEFAULT_PRIMARY_KEY,)

    @property
    def slot_count(self) -> int:
        """Number of 4-byte slots per record."""
        return sum(pf.kind.slots for pf in self.physical_fields)

    @property
    def record_size(self) -> int:
        """Record stride in bytes."""
        return self.slot_count * SLOT_SIZE


# =============================================================================
# Meta document models
# =============================================================================
class _FieldDoc(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    type: str
    count: int | None = None


class _SortDoc(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    direction: str | None = None


class _MetaDoc(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    file: str = Field(min_length=1)
    primary_keys: list[str] = Field(default_factory=list, alias="primaryKeys")
    unique_keys: list[list[str]] = Field(default_factory=list, alias="uniqueKeys")
    sort_order: list[_SortDoc] = Field(default_factory=list, alias="sortOrder")
    fields: list[_FieldDoc] = Field(min_length=1)


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def resolve_schema(data: Any, source: Path | None = None) -> Schema:
    """
    Validate a parsed meta document and build a Schema.

    Args:
        data: Parsed JSON document
        source: Optional path the document was read from (for messages)

    Returns:
        Immutable Schema

    Raises:
        SchemaError: naming the offending field or key
    """
    origin = str(source) if source else "<meta>"
    try:
        doc = _MetaDoc.model_validate(data)
    except ValidationError as e:
        raise SchemaError(f"{origin}: {_format_validation_error(e)}") from e

    specs: list[FieldSpec] = []
    for fdoc in doc.fields:
        try:
            kind = FieldKind(fdoc.type)
        except ValueError:
            raise SchemaError(
                f"{origin}: field '{fdoc.name}' has unknown type '{fdoc.type}'"
            ) from None
        count = 1 if fdoc.count is None else fdoc.count
        if count < 1:
            raise SchemaError(
                f"{origin}: field '{fdoc.name}' has invalid count {fdoc.count}"
            )
        specs.append(FieldSpec(fdoc.name, kind, count))

    schema = Schema(
        file=doc.file,
        fields=tuple(specs),
        primary_keys=tuple(doc.primary_keys),
        unique_keys=tuple(tuple(group) for group in doc.unique_keys),
        sort_order=tuple(
            SortKey(s.name, SortDirection.coerce(s.direction))
            for s in doc.sort_order
        ),
        source=source,
    )

    seen: set[str] = set()
    for col in schema.column_names:
        if col in seen:
            raise SchemaError(f"{origin}: duplicate column '{col}'")
        seen.add(col)

    for key in schema.primary_keys:
        if key not in seen:
            raise SchemaError(f"{origin}: primary key '{key}' is not a column")
    for i, group in enumerate(schema.unique_keys):
        for key in group:
            if key not in seen:
                raise SchemaError(
                    f"{origin}: unique key #{i} column '{key}' is not a column"
                )
    for sort_key in schema.sort_order:
        if sort_key.column not in seen:
            raise SchemaError(
                f"{origin}: sort column '{sort_key.column}' is not a column"
            )

    return schema


def load_schema(path: Path | str) -> Schema:
    """Read and resolve a *.meta.json document."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise SchemaError(f"{path}: cannot read meta document: {e}") from e
    return resolve_schema(data, source=path)


def discover_schemas(meta_dir: Path | str) -> list[Path]:
    """List meta documents in a directory, sorted by name."""
    return sorted(Path(meta_dir).glob(f"*{META_SUFFIX}"))


def meta_path_for(meta_dir: Path | str, name: str) -> Path:
    """Path of the meta document for a DBC name given without extension."""
    return Path(meta_dir) / f"{name}{META_SUFFIX}"


class SchemaCache:
    """
    Loads each meta document once per run.

    Schemas are immutable, so the cached instances are shared by every
    stage of the pipeline.
    """

    def __init__(self) -> None:
        self._schemas: dict[Path, Schema] = {}

    def get(self, path: Path | str) -> Schema:
        key = Path(path).resolve()
        schema = self._schemas.get(key)
        if schema is None:
            schema = load_schema(path)
            self._schemas[key] = schema
        return schema

    def __len__(self) -> int:
        return len(self._schemas)
