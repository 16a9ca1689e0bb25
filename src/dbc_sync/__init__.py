"""DBC Sync - DBC binary files to relational tables and back."""

__version__ = "1.0.0"
__author__ = "DBC Sync Contributors"

from dbc_sync.config import Settings

__all__ = ["Settings", "__version__"]
