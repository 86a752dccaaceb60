"""
Storage contract consumed by the match service, recorder and analytics,
plus the SQLite implementation. Injected explicitly; tests substitute a fake.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Protocol

from stickit.models import MatchRecord, Player

from .db import get_connection
from .repositories import JumpRepository, MatchRepository, PlayerRepository

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """A load or save failed. In-memory match state is unaffected."""


class MatchStorage(Protocol):
    def load_roster(self) -> list[Player]: ...

    def load_jump_order(self) -> list[str]: ...

    def load_jump_library(self) -> list[str]: ...

    def save_match(self, record: MatchRecord) -> MatchRecord: ...

    def load_match_history(self) -> list[MatchRecord]: ...


class SqliteStorage:
    """MatchStorage over SQLite. One short-lived connection per call."""

    def __init__(self, db_path: str | Path | None = None) -> None:
        self._db_path = db_path
        self._players = PlayerRepository()
        self._jumps = JumpRepository()
        self._matches = MatchRepository()

    @contextmanager
    def _conn(self, action: str) -> Generator[sqlite3.Connection, None, None]:
        """Yield a connection; sqlite and JSON failures surface as StorageError."""
        try:
            conn = get_connection(self._db_path)
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Cannot open database to {action}: {e}") from e
        try:
            yield conn
        except (sqlite3.Error, json.JSONDecodeError) as e:
            logger.error("Storage failure while trying to %s: %s", action, e)
            raise StorageError(f"Failed to {action}: {e}") from e
        finally:
            conn.close()

    def load_roster(self) -> list[Player]:
        with self._conn("load roster") as conn:
            return self._players.list_all(conn)

    def load_jump_order(self) -> list[str]:
        with self._conn("load jump order") as conn:
            return self._jumps.get_order(conn)

    def load_jump_library(self) -> list[str]:
        with self._conn("load jump library") as conn:
            return self._jumps.list_elements(conn)

    def save_match(self, record: MatchRecord) -> MatchRecord:
        """Persist a completed match; returns the record carrying its assigned id."""
        with self._conn("save match") as conn:
            match_id = self._matches.create(conn, record)
        logger.info("Saved match %d (winner %s)", match_id, record.winner)
        return record.with_id(match_id)

    def load_match_history(self) -> list[MatchRecord]:
        with self._conn("load match history") as conn:
            return self._matches.list_all(conn)
