"""Tests for configuration module."""

import json
from pathlib import Path

import pytest

from dbc_sync.config import Limits, Settings, load_settings


class TestSettings:
    """Test Settings class."""

    def test_default_settings(self) -> None:
        """Test default settings creation."""
        settings = Settings()
        assert settings.limits.max_bound_params == 60_000
        assert settings.limits.max_rows_per_batch == 2_000
        assert settings.sync.use_versioning is True
        assert settings.sync.checksum_algorithm == "md5"

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test settings loading from environment variables."""
        monkeypatch.setenv("DBC_SYNC_DATABASE__PATH", "/tmp/world.sqlite")
        monkeypatch.setenv("DBC_SYNC_SYNC__USE_VERSIONING", "false")
        monkeypatch.setenv("DBC_SYNC_PATHS__META_DIR", "/data/meta")

        settings = Settings()
        assert settings.database.path == Path("/tmp/world.sqlite")
        assert settings.sync.use_versioning is False
        assert settings.paths.meta_dir == Path("/data/meta")

    def test_invalid_checksum_algorithm(self) -> None:
        """Test that unknown checksum algorithms are rejected."""
        with pytest.raises(ValueError):
            Settings.model_validate({"sync": {"checksum_algorithm": "crc32"}})

    def test_settings_to_file_json(self, tmp_path: Path) -> None:
        """Test saving settings to JSON file and loading them back."""
        settings = Settings.model_validate(
            {"database": {"path": "game.sqlite"}, "sync": {"use_versioning": False}}
        )
        output_path = tmp_path / "config.json"
        settings.to_file(output_path)

        data = json.loads(output_path.read_text())
        assert data["database"]["path"] == "game.sqlite"

        loaded = load_settings(output_path)
        assert loaded.sync.use_versioning is False
        assert loaded.database.path == Path("game.sqlite")

    def test_settings_to_file_toml(self, tmp_path: Path) -> None:
        """Test the TOML template round trip."""
        output_path = tmp_path / "config.toml"
        Settings().to_file(output_path)

        content = output_path.read_text()
        assert "[paths]" in content
        assert "[limits]" in content

        loaded = Settings.from_file(output_path)
        assert loaded.limits.max_rows_per_batch == 2_000

    def test_from_file_missing(self, tmp_path: Path) -> None:
        """Test loading a config file that does not exist."""
        with pytest.raises(FileNotFoundError):
            Settings.from_file(tmp_path / "nope.json")

    def test_from_file_unsupported(self, tmp_path: Path) -> None:
        """Test loading a config file with an unknown extension."""
        path = tmp_path / "config.ini"
        path.write_text("[paths]")
        with pytest.raises(ValueError, match="Unsupported"):
            Settings.from_file(path)


class TestTableSelection:
    """Test table filters."""

    def test_selects_all_by_default(self) -> None:
        settings = Settings()
        assert settings.selects_table("Spell")

    def test_include_and_exclude(self) -> None:
        settings = Settings.model_validate(
            {"sync": {"tables": ["Spell", "Item"], "exclude_tables": ["Item"]}}
        )
        assert settings.selects_table("Spell")
        assert not settings.selects_table("Item")
        assert not settings.selects_table("Map")


class TestLimits:
    """Tests for statement limits."""

    def test_bound_params_capped(self) -> None:
        assert Limits(max_bound_params=60_000).max_bound_params == 60_000
        with pytest.raises(ValueError):
            Limits(max_bound_params=70_000)

    def test_bound_params_positive(self) -> None:
        with pytest.raises(ValueError):
            Limits(max_bound_params=0)
