"""Tests for logging setup."""

import json
import logging
from pathlib import Path

import pytest

from dbc_sync.utils.logger import JsonFormatter, setup_logging, table_logger


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logging.getLogger("dbc_sync").handlers.clear()


class TestLogging:
    """Tests for setup_logging() and table loggers."""

    def test_file_log_carries_table(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "dbc-sync.log"
        setup_logging(level="INFO", log_file=log_file, format_style="simple")

        table_logger("dbc_sync.core.engine", "Spell").info("Exported Spell.dbc")
        logging.getLogger("dbc_sync.core.codec").warning("no table here")
        for handler in logging.getLogger("dbc_sync").handlers:
            handler.flush()

        lines = log_file.read_text().splitlines()
        assert "| dbc_sync.core.engine | Spell | Exported Spell.dbc" in lines[0]
        assert "| dbc_sync.core.codec | - | no table here" in lines[1]

    def test_level_filters(self, tmp_path: Path) -> None:
        log_file = tmp_path / "dbc-sync.log"
        setup_logging(level="WARNING", log_file=log_file, format_style="json")

        logging.getLogger("dbc_sync.x").info("hidden")
        for handler in logging.getLogger("dbc_sync").handlers:
            handler.flush()

        assert log_file.read_text() == ""

    def test_json_formatter(self) -> None:
        record = logging.LogRecord("dbc_sync.core", logging.ERROR, __file__, 1, "boom %s", ("x",), None)
        record.table = "Item"

        data = json.loads(JsonFormatter().format(record))

        assert data["message"] == "boom x"
        assert data["level"] == "ERROR"
        assert data["table"] == "Item"

    def test_json_formatter_without_table(self) -> None:
        record = logging.LogRecord("dbc_sync", logging.INFO, __file__, 1, "plain", (), None)
        assert "table" not in json.loads(JsonFormatter().format(record))
