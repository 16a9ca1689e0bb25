"""Shared fixtures for DBC Sync tests."""

import json
import struct
from pathlib import Path
from typing import Any

import pytest

from dbc_sync.config import DatabaseConfig, PathsConfig, Settings
from dbc_sync.connectors.sqlite import SQLiteConnector
from dbc_sync.core.schema import Schema, resolve_schema


ITEM_META: dict[str, Any] = {
    "file": "Item.dbc",
    "primaryKeys": ["ID"],
    "uniqueKeys": [["Code"]],
    "sortOrder": [{"name": "ID", "direction": "ASC"}],
    "fields": [
        {"name": "ID", "type": "int32"},
        {"name": "Code", "type": "uint32"},
        {"name": "Weight", "type": "float"},
        {"name": "Name", "type": "string"},
        {"name": "Stat", "type": "int32", "count": 3},
        {"name": "Title", "type": "Loc"},
    ],
}


def build_dbc(
    rows: list[bytes],
    block: bytes,
    record_size: int,
    field_count: int,
    magic: bytes = b"WDBC",
) -> bytes:
    """Assemble a DBC buffer from pre-packed rows and a string block."""
    header = struct.pack("<4sIIII", magic, len(rows), field_count, record_size, len(block))
    return header + b"".join(rows) + block


def write_meta(meta_dir: Path, data: dict[str, Any]) -> Path:
    """Write a meta document named after its DBC file."""
    meta_dir.mkdir(parents=True, exist_ok=True)
    name = data["file"].removesuffix(".dbc")
    path = meta_dir / f"{name}.meta.json"
    path.write_text(json.dumps(data))
    return path


@pytest.fixture
def simple_schema() -> Schema:
    """ID int32 plus Name string."""
    return resolve_schema(
        {
            "file": "Simple.dbc",
            "fields": [
                {"name": "ID", "type": "int32"},
                {"name": "Name", "type": "string"},
            ],
        }
    )


@pytest.fixture
def item_schema() -> Schema:
    """Schema covering every field kind and a repeated field."""
    return resolve_schema(ITEM_META)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing every path into a temporary directory."""
    return Settings(
        paths=PathsConfig(
            base_dir=tmp_path / "dbc",
            meta_dir=tmp_path / "meta",
            export_dir=tmp_path / "export",
        ),
        database=DatabaseConfig(path=tmp_path / "dbc.sqlite"),
    )


@pytest.fixture
def db(settings: Settings):
    """Open connector on the temporary database."""
    with SQLiteConnector(settings.database.path, settings=settings) as conn:
        yield conn
