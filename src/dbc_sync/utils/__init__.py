"""Utility modules for DBC Sync."""

from dbc_sync.utils.logger import setup_logging, get_logger

__all__ = ["setup_logging", "get_logger"]
