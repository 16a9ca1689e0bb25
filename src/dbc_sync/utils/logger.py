"""
Logging setup for DBC Sync.

Console output goes to stderr so command output on stdout stays clean.
Records logged through a TableLogger carry the table they concern, which
the JSON and file formats print as a separate field.
"""

from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, MutableMapping

from rich.console import Console
from rich.logging import RichHandler


console = Console(stderr=True)

# Package logger; every module logs through a child of it
logger = logging.getLogger("dbc_sync")

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_SIMPLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(table)s | %(message)s"
_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(table)s | %(message)s"


class TableContextFilter(logging.Filter):
    """Give every record a `table` attribute so formats can reference it."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "table", None):
            record.table = "-"
        return True


class TableLogger(logging.LoggerAdapter):
    """Logger adapter that tags records with a table name."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("table", self.extra["table"])
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(
    level: str = "INFO",
    log_file: Path | str | None = None,
    format_style: str = "rich",
    max_file_size_mb: int = 10,
    backup_count: int = 3,
) -> None:
    """
    Configure the package logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to a rotating log file
        format_style: "rich", "json", or "simple"
        max_file_size_mb: Max log file size before rotation
        backup_count: Number of rotated files to keep
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logger.handlers.clear()
    logger.setLevel(log_level)

    handler = _console_handler(format_style)
    handler.setLevel(log_level)
    handler.addFilter(TableContextFilter())
    logger.addHandler(handler)

    if log_file:
        file_path = Path(log_file)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            file_path,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count,
        )
        file_handler.setLevel(log_level)
        file_handler.addFilter(TableContextFilter())
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
        logger.addHandler(file_handler)


def _console_handler(format_style: str) -> logging.Handler:
    if format_style == "rich":
        handler: logging.Handler = RichHandler(
            console=console,
            rich_tracebacks=True,
            show_time=True,
            show_path=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    elif format_style == "json":
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JsonFormatter())
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_SIMPLE_FORMAT, datefmt=_DATE_FORMAT))
    return handler


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        table = getattr(record, "table", None)
        if table and table != "-":
            log_data["table"] = table

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def get_logger(name: str = "dbc_sync") -> logging.Logger:
    """Get a logger under the package logger."""
    return logging.getLogger(name)


def table_logger(name: str, table: str) -> TableLogger:
    """Get a logger whose records are tagged with `table`."""
    return TableLogger(logging.getLogger(name), {"table": table})
