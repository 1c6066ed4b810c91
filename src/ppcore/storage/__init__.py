"""Storage layer for persistent data."""

from ppcore.storage.database import (
    Base,
    DatabaseManager,
    StoredNote,
    get_db_manager,
    reset_db_manager,
)

__all__ = [
    "Base",
    "DatabaseManager",
    "StoredNote",
    "get_db_manager",
    "reset_db_manager",
]
