"""
DBC Sync Configuration System.

This module provides a type-safe configuration system using Pydantic.
Settings can be loaded from:
1. Environment variables (prefixed with DBC_SYNC_)
2. Config file (TOML or JSON)
3. CLI arguments (highest priority)

Example usage:
    from dbc_sync.config import Settings

    # Load from environment
    settings = Settings()

    # Or with explicit values
    settings = Settings(
        paths=PathsConfig(base_dir="./dbc", meta_dir="./meta"),
        database=DatabaseConfig(path="./dbc.sqlite"),
    )
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Limits(BaseModel):
    """Batching limits for relational writes."""

    max_bound_params: int = Field(
        default=60_000,
        ge=1,
        le=60_000,
        description="Ceiling on bound parameters per statement",
    )
    max_rows_per_batch: int = Field(
        default=2_000,
        ge=1,
        description="Maximum rows to include in a single upsert batch",
    )


class PathsConfig(BaseModel):
    """Locations of DBC files and their meta documents."""

    base_dir: Path = Field(
        default=Path("./dbc"),
        description="Directory holding source DBC files for import",
    )
    meta_dir: Path = Field(
        default=Path("./meta"),
        description="Directory holding *.meta.json schema documents",
    )
    export_dir: Path = Field(
        default=Path("./export"),
        description="Directory that receives exported DBC files",
    )


class SyncOptions(BaseModel):
    """Options controlling import and export behavior."""

    use_versioning: bool = Field(
        default=True,
        description="Skip export of tables whose content checksum is unchanged",
    )
    checksum_algorithm: str = Field(
        default="md5",
        pattern="^(md5|sha256)$",
        description="Algorithm for table content fingerprints",
    )

    # Table selection
    tables: list[str] = Field(
        default_factory=list,
        description="Specific tables to process (empty = all meta files)",
    )
    exclude_tables: list[str] = Field(
        default_factory=list,
        description="Tables to exclude",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Log level",
    )
    file: Path | None = Field(
        default=None,
        description="Log file path (None = console only)",
    )
    format: str = Field(
        default="rich",
        pattern="^(rich|json|simple)$",
        description="Log format: rich (colored), json, or simple",
    )
    max_file_size_mb: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Max log file size before rotation",
    )
    backup_count: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Number of rotated log files to keep",
    )


class DatabaseConfig(BaseModel):
    """Relational database configuration."""

    path: Path = Field(
        default=Path("./dbc.sqlite"),
        description="Path to the SQLite database holding DBC tables",
    )


class Settings(BaseSettings):
    """
    Main settings class for DBC Sync.

    Settings are loaded in this priority (highest first):
    1. Explicit constructor arguments
    2. Environment variables (DBC_SYNC_* prefix)
    3. Config file (if specified)
    4. Defaults

    Example:
        # From environment
        export DBC_SYNC_DATABASE__PATH="./world.sqlite"
        export DBC_SYNC_SYNC__USE_VERSIONING=false
        settings = Settings()

        # From config file
        settings = Settings.from_file("config.toml")
    """

    model_config = SettingsConfigDict(
        env_prefix="DBC_SYNC_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Nested configs
    paths: PathsConfig = Field(default_factory=PathsConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    limits: Limits = Field(default_factory=Limits)
    sync: SyncOptions = Field(default_factory=SyncOptions)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, path: Path | str) -> "Settings":
        """Load settings from a TOML or JSON config file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        content = path.read_text()

        if path.suffix in (".toml", ".tml"):
            import tomllib

            data = tomllib.loads(content)
        elif path.suffix == ".json":
            data = json.loads(content)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")

        return cls.model_validate(data)

    def to_file(self, path: Path | str) -> None:
        """Save current settings to a config file."""
        path = Path(path)
        data = self.model_dump(mode="json", exclude_none=True)

        if path.suffix in (".toml", ".tml"):
            # Basic TOML serialization
            lines = []
            for key, value in data.items():
                if isinstance(value, dict):
                    lines.append(f"\n[{key}]")
                    for k, v in value.items():
                        lines.append(f"{k} = {json.dumps(v)}")
                else:
                    lines.append(f"{key} = {json.dumps(value)}")
            path.write_text("\n".join(lines))
        else:
            path.write_text(json.dumps(data, indent=2))

    def selects_table(self, table: str) -> bool:
        """Check the table filters from the sync options."""
        if self.sync.tables and table not in self.sync.tables:
            return False
        return table not in self.sync.exclude_tables


# Convenience function for loading settings
def load_settings(
    config_file: Path | str | None = None,
    **overrides: Any,
) -> Settings:
    """
    Load settings with optional config file and overrides.

    Args:
        config_file: Optional path to config file
        **overrides: Settings to override (highest priority)

    Returns:
        Configured Settings instance
    """
    if config_file:
        settings = Settings.from_file(config_file)
        if overrides:
            data = settings.model_dump()
            data.update(overrides)
            return Settings.model_validate(data)
        return settings
    return Settings(**overrides)
