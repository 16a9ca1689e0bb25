"""
Rich Terminal Display Components.

Provides console output for:
- Run summaries with per-table outcomes
- DBC headers and sample records
- Checksum status
- Status messages
"""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.table import Table

from dbc_sync.core.codec import DBCHeader, LocalizedText, Record
from dbc_sync.core.schema import LOCALES
from dbc_sync.core.state import ChecksumEntry, TableState


console = Console()

_STATE_STYLES = {
    TableState.IMPORTED: "[green]✓ imported[/green]",
    TableState.EXPORTED: "[green]✓ exported[/green]",
    TableState.SKIPPED: "[dim]skipped[/dim]",
    TableState.CHECKED: "[yellow]checked[/yellow]",
    TableState.FAILED: "[red]✗ failed[/red]",
    TableState.UNKNOWN: "[dim]unknown[/dim]",
}


def format_state(state: TableState) -> str:
    """Format a table state with color."""
    return _STATE_STYLES.get(state, state.value)


def print_summary(stats: Any) -> None:
    """Print a summary table after an import or export run."""
    if stats.tables:
        tables_table = Table(title="Tables", border_style="blue")
        tables_table.add_column("Table", style="cyan")
        tables_table.add_column("Status")
        tables_table.add_column("Rows", justify="right")
        tables_table.add_column("Note")

        for name, progress in stats.tables.items():
            tables_table.add_row(
                name,
                format_state(progress.state),
                f"{progress.rows:,}",
                progress.message,
            )
        console.print(tables_table)

    table = Table(title=f"{stats.operation.capitalize()} Summary", border_style="green")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Duration", f"{stats.duration_seconds:.1f}s")
    table.add_row("Tables", f"{stats.tables_processed}/{stats.tables_total}")
    table.add_row("Skipped", f"{stats.tables_skipped}")
    table.add_row("Failed", f"{stats.tables_failed}")
    table.add_row("Rows", f"{stats.rows_processed:,}")
    if stats.bytes_written:
        table.add_row("Data Written", format_bytes(stats.bytes_written))

    console.print(table)


def print_header(name: str, header: DBCHeader) -> None:
    """Print the header fields of a DBC file."""
    table = Table(title=f"Header info for {name}", border_style="cyan")
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Magic", header.magic.decode("ascii", errors="replace"))
    table.add_row("Record Count", f"{header.record_count:,}")
    table.add_row("Field Count", f"{header.field_count:,}")
    table.add_row("Record Size", f"{header.record_size:,} bytes")
    table.add_row("String Block Size", f"{header.string_block_size:,} bytes")

    console.print(table)


def print_record(index: int, record: Record) -> None:
    """Print one decoded record, expanding localized fields."""
    table = Table(title=f"Record {index}", border_style="blue")
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    for name, value in record.items():
        if isinstance(value, LocalizedText):
            for loc, text in zip(LOCALES, value.strings):
                if text:
                    table.add_row(f"{name}_{loc}", repr(text))
            table.add_row(f"{name}_flags", f"0x{value.flags:08X}")
        else:
            table.add_row(name, repr(value))

    console.print(table)


def print_checksums(entries: list[ChecksumEntry]) -> None:
    """Print stored table checksums."""
    table = Table(title="Export Checksums", border_style="blue")
    table.add_column("Table", style="cyan")
    table.add_column("Checksum", justify="right")

    for entry in entries:
        table.add_row(entry.table_name, f"{entry.checksum & 0xFFFFFFFFFFFFFFFF:016x}")

    console.print(table)


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    value = float(size)
    for unit in ["B", "KB", "MB", "GB"]:
        if abs(value) < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} TB"


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red bold]Error:[/red bold] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green bold]✓[/green bold] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow bold]⚠[/yellow bold] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]ℹ[/blue] {message}")
