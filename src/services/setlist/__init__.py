"""Setlist position management and its SQLite store."""

from .position_manager import SetlistPositionManager
from .sqlite_store import SqlitePositionTransaction, SqliteSetlistStore

__all__ = [
    "SetlistPositionManager",
    "SqlitePositionTransaction",
    "SqliteSetlistStore",
]
