"""
Persistence layer for Stick It data.
No business logic, no turn engine; only read/write interfaces.
"""
from .db import get_connection, get_db_path, init_db, set_db_path
from .repositories import (
    PlayerRepository,
    JumpRepository,
    MatchRepository,
)
from .storage import MatchStorage, SqliteStorage, StorageError

__all__ = [
    "get_connection",
    "get_db_path",
    "init_db",
    "set_db_path",
    "PlayerRepository",
    "JumpRepository",
    "MatchRepository",
    "MatchStorage",
    "SqliteStorage",
    "StorageError",
]
