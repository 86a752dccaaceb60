"""
SQLite schema for Stick It.
Migration-friendly: each table created with IF NOT EXISTS.
"""
from __future__ import annotations


def players_schema() -> str:
    """Roster. Referenced by name snapshot in stored events, so deletes never touch history."""
    return """
    CREATE TABLE IF NOT EXISTS players (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL
    );
    """


def jump_elements_schema() -> str:
    """Jump library: every jump a player may attempt (superset of the jump order)."""
    return """
    CREATE TABLE IF NOT EXISTS jump_elements (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE
    );
    """


def jump_orders_schema() -> str:
    """Saved jump orders. sequence is a JSON list of jump names; id 1 is the default order."""
    return """
    CREATE TABLE IF NOT EXISTS jump_orders (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        sequence TEXT NOT NULL
    );
    """


def matches_schema() -> str:
    """
    Completed matches. participants, stats and events are JSON.
    events added via migration for databases created before the event log was stored.
    """
    return """
    CREATE TABLE IF NOT EXISTS matches (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        date TEXT NOT NULL,
        winner TEXT NOT NULL,
        participants TEXT NOT NULL,
        stats TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS ix_matches_date ON matches(date);
    """


def all_schema_sql() -> str:
    """Combine all schema DDL for a single execution."""
    return "\n".join([
        players_schema(),
        jump_elements_schema(),
        jump_orders_schema(),
        matches_schema(),
    ])
