"""
DBC Sync CLI - Command Line Interface.

Commands:
    import  Import DBC files into the database
    export  Export database tables back to DBC files
    read    Decode a DBC file, show a record and optionally rebuild it
    header  Print header info of a DBC file
    status  Show stored export checksums
    config  Manage configuration
"""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from dbc_sync import __version__
from dbc_sync.config import Settings, load_settings
from dbc_sync.connectors.sqlite import SQLiteConnector
from dbc_sync.core.engine import SyncEngine, SyncStats
from dbc_sync.errors import DbcSyncError, DuplicateKeyWarning
from dbc_sync.utils.display import (
    print_checksums,
    print_error,
    print_header,
    print_info,
    print_record,
    print_success,
    print_summary,
    print_warning,
)
from dbc_sync.utils.logger import setup_logging


app = typer.Typer(
    name="dbc-sync",
    help="Convert DBC files to database tables and back.",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to config file.",
    exists=True,
    dir_okay=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]dbc-sync[/bold cyan] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """DBC Sync - DBC files <-> relational tables."""
    pass


# =============================================================================
# IMPORT Command
# =============================================================================
@app.command("import")
def import_(
    name: Optional[str] = typer.Option(
        None,
        "--name",
        "-n",
        help="DBC name without extension (default: every meta file).",
    ),
    config_file: Optional[Path] = ConfigOption,
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Minimal output."),
) -> None:
    """
    Import DBC files into the database.

    Tables that already exist are skipped.
    """
    settings = _load(config_file, quiet)

    with SQLiteConnector(settings.database.path, settings=settings) as db:
        engine = SyncEngine(settings, db)
        stats = engine.import_all(name)

    _finish(stats, quiet)


# =============================================================================
# EXPORT Command
# =============================================================================
@app.command()
def export(
    name: Optional[str] = typer.Option(
        None,
        "--name",
        "-n",
        help="DBC name without extension (default: every meta file).",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Export even when the table checksum is unchanged.",
    ),
    config_file: Optional[Path] = ConfigOption,
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Minimal output."),
) -> None:
    """Export database tables back to DBC files."""
    settings = _load(config_file, quiet)
    if force:
        settings.sync.use_versioning = False

    with SQLiteConnector(settings.database.path, settings=settings) as db:
        engine = SyncEngine(settings, db)
        stats = engine.export_all(name)

    _finish(stats, quiet)


# =============================================================================
# READ Command
# =============================================================================
@app.command()
def read(
    name: str = typer.Option(..., "--name", "-n", help="DBC name without extension."),
    record: int = typer.Option(0, "--record", "-r", help="Sample record index to display."),
    out: bool = typer.Option(
        False, "--out", "-o", help="Rebuild and write the DBC to the export directory."
    ),
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """Read a DBC file and optionally rebuild it."""
    settings = _load(config_file, quiet=False)

    with SQLiteConnector(settings.database.path, settings=settings) as db:
        engine = SyncEngine(settings, db)
        try:
            dbc, schema = engine.read_dbc(name)
        except DbcSyncError as e:
            print_error(f"Failed to read DBC: {e}")
            raise typer.Exit(1)

        if not 0 <= record < len(dbc):
            print_error(f"Sample record index out of range, records in file: {len(dbc)}")
            raise typer.Exit(1)

        console.print(f"Read [bold]{schema.file}[/bold] ({len(dbc):,} records)")
        print_record(record, dbc.records[record])

        if out:
            try:
                out_path = engine.rebuild_dbc(dbc, schema)
            except DbcSyncError as e:
                print_error(f"Failed to rebuild DBC: {e}")
                raise typer.Exit(1)
            print_success(f"{schema.file} written to {out_path}")


# =============================================================================
# HEADER Command
# =============================================================================
@app.command()
def header(
    name: str = typer.Option(..., "--name", "-n", help="DBC name without extension."),
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """Print header info of a DBC file."""
    settings = _load(config_file, quiet=False)

    with SQLiteConnector(settings.database.path, settings=settings) as db:
        engine = SyncEngine(settings, db)
        try:
            dbc_header = engine.read_header(name)
        except DbcSyncError as e:
            print_error(f"Failed to read DBC header: {e}")
            raise typer.Exit(1)

    print_header(name, dbc_header)


# =============================================================================
# STATUS Command
# =============================================================================
@app.command()
def status(
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """Show stored export checksums."""
    settings = _load(config_file, quiet=False)

    if not settings.database.path.exists():
        print_info("No database found. Run an import first.")
        raise typer.Exit(0)

    with SQLiteConnector(settings.database.path, settings=settings) as db:
        engine = SyncEngine(settings, db)
        entries = engine.checksums.entries()

    if not entries:
        print_info("No export checksums stored yet.")
        raise typer.Exit(0)

    print_checksums(entries)


# =============================================================================
# CONFIG Command
# =============================================================================
@app.command()
def config(
    show: bool = typer.Option(False, "--show", help="Show current configuration."),
    init: bool = typer.Option(False, "--init", help="Write a config file template."),
    output: Path = typer.Option(
        Path("config.toml"),
        "--output",
        "-o",
        help="Output path for config file.",
    ),
) -> None:
    """Manage configuration."""
    if init:
        if output.exists():
            print_warning(f"Config file already exists: {output}")
            raise typer.Exit(1)
        Settings().to_file(output)
        print_success(f"Config template created at {output}. Edit it and re-run.")
        return

    if show:
        from rich.table import Table

        settings = Settings()
        table = Table(title="Current Configuration", border_style="cyan")
        table.add_column("Setting", style="cyan")
        table.add_column("Value")

        table.add_row("DBC Directory", str(settings.paths.base_dir))
        table.add_row("Meta Directory", str(settings.paths.meta_dir))
        table.add_row("Export Directory", str(settings.paths.export_dir))
        table.add_row("Database", str(settings.database.path))
        table.add_row("Versioning", "on" if settings.sync.use_versioning else "off")
        table.add_row("Max Batch Size", f"{settings.limits.max_rows_per_batch} rows")
        table.add_row("Max Bound Params", f"{settings.limits.max_bound_params:,}")

        console.print(table)
        return

    console.print("Use --show to view config or --init to create config file.")


# =============================================================================
# Helper Functions
# =============================================================================
def _load(config_file: Path | None, quiet: bool) -> Settings:
    """Load settings and configure logging."""
    try:
        settings = load_settings(config_file)
    except (ValueError, FileNotFoundError) as e:
        print_error(str(e))
        raise typer.Exit(1)

    setup_logging(
        level="WARNING" if quiet else settings.logging.level,
        log_file=settings.logging.file,
        format_style=settings.logging.format,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )
    # Duplicate keys are already reported through the logger.
    warnings.simplefilter("ignore", DuplicateKeyWarning)
    return settings


def _finish(stats: SyncStats, quiet: bool) -> None:
    """Print the run summary and exit non-zero when a table failed."""
    if not quiet:
        console.print()
        print_summary(stats)

    if stats.errors:
        console.print()
        print_warning(f"{len(stats.errors)} tables failed:")
        for err in stats.errors[:10]:
            print_error(f"  • {err}")
        if len(stats.errors) > 10:
            print_info(f"  ... and {len(stats.errors) - 10} more")
        raise typer.Exit(1)

    print_success(f"{stats.operation.capitalize()} completed successfully!")


if __name__ == "__main__":
    app()
