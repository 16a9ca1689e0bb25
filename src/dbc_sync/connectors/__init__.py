"""Database and file-system connectors for DBC Sync."""

from dbc_sync.connectors.sqlite import SQLiteConnector
from dbc_sync.connectors.files import FileStore

__all__ = ["SQLiteConnector", "FileStore"]
