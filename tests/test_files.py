"""Tests for the DBC file store."""

from pathlib import Path

import pytest

from dbc_sync.connectors import files
from dbc_sync.connectors.files import FileStore


@pytest.fixture
def store(tmp_path: Path) -> FileStore:
    return FileStore(tmp_path / "dbc", tmp_path / "out")


class TestFileStore:
    """Tests for FileStore."""

    def test_paths(self, store, tmp_path: Path) -> None:
        assert store.source_path("Item.dbc") == tmp_path / "dbc" / "Item.dbc"
        assert store.export_path("Item.dbc") == tmp_path / "out" / "Item.dbc"

    def test_write_creates_directories(self, store) -> None:
        path = store.export_path("Item.dbc")

        assert store.write_bytes(path, b"WDBC" + bytes(16)) == 20
        assert store.exists(path)
        assert store.read_bytes(path) == b"WDBC" + bytes(16)
        assert list(path.parent.iterdir()) == [path]

    def test_failed_rename_leaves_no_temp_file(self, store, monkeypatch) -> None:
        path = store.export_path("Item.dbc")
        store.write_bytes(path, b"old")

        def fail(src, dst):
            raise OSError("rename failed")

        monkeypatch.setattr(files.os, "replace", fail)

        with pytest.raises(OSError, match="rename failed"):
            store.write_bytes(path, b"new")

        assert not path.with_name("Item.dbc.tmp").exists()
        assert path.read_bytes() == b"old"
