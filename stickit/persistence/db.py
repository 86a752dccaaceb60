"""
Database location, connections and initialization.

The database file is chosen in this order: set_db_path(), then $STICKIT_DB_PATH,
then data/stickit.db under the project root. Every call site opens its own
short-lived connection; nothing here caches one.
"""
from __future__ import annotations

import os
import sqlite3
from pathlib import Path

from .schema import all_schema_sql

DB_PATH_ENV = "STICKIT_DB_PATH"
DEFAULT_DB_NAME = "stickit.db"

_db_path: Path | None = None


def set_db_path(path: str | Path) -> None:
    """Pin the database file for this process (tests, the demo script). Wins over the env var."""
    global _db_path
    _db_path = Path(path)


def get_db_path() -> Path:
    if _db_path is not None:
        return _db_path
    from_env = os.environ.get(DB_PATH_ENV)
    if from_env:
        return Path(from_env)
    return Path(__file__).resolve().parents[2] / "data" / DEFAULT_DB_NAME


def _resolve(db_path: str | Path | None) -> Path:
    """Explicit path or the configured one; the parent directory is created on demand."""
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def get_connection(db_path: str | Path | None = None) -> sqlite3.Connection:
    """Open a connection with name-addressable rows. The caller closes it."""
    conn = sqlite3.connect(str(_resolve(db_path)))
    conn.row_factory = sqlite3.Row
    return conn


# ---------- Migrations (additive only) ----------


def _column_names(conn: sqlite3.Connection, table: str) -> set[str]:
    return {row[1] for row in conn.execute(f"PRAGMA table_info({table})")}


def _run_events_migration(conn: sqlite3.Connection) -> None:
    """Add matches.events (JSON event log). Older rows keep NULL and load with no events."""
    if "events" not in _column_names(conn, "matches"):
        conn.execute("ALTER TABLE matches ADD COLUMN events TEXT")


def init_db(db_path: str | Path | None = None) -> None:
    """Create missing tables, then bring older databases up to the current columns."""
    conn = sqlite3.connect(str(_resolve(db_path)))
    try:
        conn.executescript(all_schema_sql())
        _run_events_migration(conn)
        conn.commit()
    finally:
        conn.close()
