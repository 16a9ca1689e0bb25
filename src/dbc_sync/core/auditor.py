"""
Duplicate-Key Auditor.

Reports decoded records that collide on a declared unique key before they
are written. The report is advisory: the upsert that follows keeps the last
record written for each key.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Any, Sequence

from dbc_sync.core.codec import Record
from dbc_sync.core.mapper import record_to_columns
from dbc_sync.core.schema import Schema
from dbc_sync.errors import DuplicateKeyWarning
from dbc_sync.utils.logger import table_logger

MISSING = "<MISSING>"


@dataclass
class DuplicateGroup:
    """Records sharing one value of a unique key."""

    key_index: int
    columns: tuple[str, ...]
    key: str
    indices: list[int]
    rows: list[dict[str, Any]]

    def describe(self, table: str) -> str:
        lines = [
            f"Duplicate records in table '{table}' for unique key #{self.key_index} "
            f"({', '.join(self.columns)}) = {self.key}:"
        ]
        for idx, row in zip(self.indices, self.rows):
            lines.append(f"  Record {idx}: {{")
            for name in sorted(row):
                lines.append(f"    {name}: {row[name]!r}")
            lines.append("  }")
        return "\n".join(lines)


def audit_unique_keys(records: Sequence[Record], schema: Schema) -> list[DuplicateGroup]:
    """
    Find records that share a value for any declared unique key.

    Args:
        records: Decoded records in file order
        schema: Schema declaring the unique keys

    Returns:
        One DuplicateGroup per colliding key value, in first-seen order
    """
    groups: list[DuplicateGroup] = []
    if not any(schema.unique_keys):
        return groups

    flat = [record_to_columns(record, schema) for record in records]
    log = table_logger(__name__, schema.table_name)

    for key_index, columns in enumerate(schema.unique_keys):
        if not columns:
            continue

        seen: dict[str, list[int]] = {}
        for idx, row in enumerate(flat):
            parts = [str(row[c]) if c in row else MISSING for c in columns]
            seen.setdefault(":".join(parts), []).append(idx)

        for key, indices in seen.items():
            if len(indices) > 1:
                group = DuplicateGroup(
                    key_index=key_index,
                    columns=tuple(columns),
                    key=key,
                    indices=indices,
                    rows=[flat[i] for i in indices],
                )
                groups.append(group)
                message = group.describe(schema.table_name)
                log.warning(message)
                warnings.warn(message, DuplicateKeyWarning, stacklevel=2)

    return groups
