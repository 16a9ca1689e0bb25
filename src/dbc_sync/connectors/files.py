"""File-system access for DBC files."""

from __future__ import annotations

import os
from pathlib import Path


class FileStore:
    """
    Reads source DBC files and writes exported ones.

    Writes go to a temporary sibling first and are renamed into place, so an
    interrupted export never leaves a truncated DBC behind.
    """

    def __init__(self, base_dir: Path | str, export_dir: Path | str) -> None:
        self.base_dir = Path(base_dir)
        self.export_dir = Path(export_dir)

    def source_path(self, file_name: str) -> Path:
        return self.base_dir / file_name

    def export_path(self, file_name: str) -> Path:
        return self.export_dir / file_name

    def exists(self, path: Path | str) -> bool:
        return Path(path).is_file()

    def read_bytes(self, path: Path | str) -> bytes:
        return Path(path).read_bytes()

    def write_bytes(self, path: Path | str, data: bytes) -> int:
        """Write a whole file, creating parent directories. Returns bytes written."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        try:
            tmp.write_bytes(data)
            os.replace(tmp, path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise
        return len(data)
