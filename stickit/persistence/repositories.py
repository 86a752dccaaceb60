"""
Repository interfaces for Stick It data.
No business logic, only read/write operations.
"""
from __future__ import annotations

import json
import sqlite3

from stickit.models import GameEvent, MatchRecord, MatchStats, Player, validate_player_name

DEFAULT_ORDER_ID = 1
DEFAULT_ORDER_NAME = "Standard Game"


# ---------- PlayerRepository ----------


class PlayerRepository:
    """Roster reads (and creates, for seeding). Listed by name."""

    def create(self, conn: sqlite3.Connection, name: str) -> Player:
        """Raises ValueError for names that cannot appear in a participants entry."""
        name = validate_player_name(name)
        cur = conn.execute("INSERT INTO players (name) VALUES (?)", (name,))
        conn.commit()
        return Player(id=int(cur.lastrowid), name=name)

    def get(self, conn: sqlite3.Connection, player_id: int) -> Player | None:
        row = conn.execute("SELECT id, name FROM players WHERE id = ?", (player_id,)).fetchone()
        if row is None:
            return None
        return Player(id=row["id"], name=row["name"])

    def list_all(self, conn: sqlite3.Connection) -> list[Player]:
        rows = conn.execute("SELECT id, name FROM players ORDER BY name").fetchall()
        return [Player(id=r["id"], name=r["name"]) for r in rows]


# ---------- JumpRepository ----------


class JumpRepository:
    """Jump library and the saved default jump order."""

    def add_element(self, conn: sqlite3.Connection, name: str) -> None:
        """Add a jump to the library. Raises sqlite3.IntegrityError for duplicates."""
        conn.execute("INSERT INTO jump_elements (name) VALUES (?)", (name,))
        conn.commit()

    def list_elements(self, conn: sqlite3.Connection) -> list[str]:
        rows = conn.execute("SELECT name FROM jump_elements ORDER BY id").fetchall()
        return [r["name"] for r in rows]

    def save_order(
        self,
        conn: sqlite3.Connection,
        sequence: list[str],
        name: str = DEFAULT_ORDER_NAME,
        order_id: int = DEFAULT_ORDER_ID,
    ) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO jump_orders (id, name, sequence) VALUES (?, ?, ?)",
            (order_id, name, json.dumps(list(sequence))),
        )
        conn.commit()

    def get_order(self, conn: sqlite3.Connection, order_id: int = DEFAULT_ORDER_ID) -> list[str]:
        """Saved jump order, or [] when none has been saved."""
        row = conn.execute("SELECT sequence FROM jump_orders WHERE id = ?", (order_id,)).fetchone()
        if row is None:
            return []
        return list(json.loads(row["sequence"]))


# ---------- MatchRepository ----------


def _row_to_record(r: sqlite3.Row) -> MatchRecord:
    rd = dict(r)
    events_json = rd.get("events")
    events = json.loads(events_json) if events_json else []
    return MatchRecord(
        id=rd["id"],
        date=rd["date"],
        winner=rd["winner"],
        participants=tuple(json.loads(rd["participants"])),
        stats=MatchStats.from_dict(json.loads(rd["stats"])),
        events=tuple(GameEvent.from_dict(e) for e in events),
    )


class MatchRepository:
    """Completed match records. Write once, read many."""

    def create(self, conn: sqlite3.Connection, record: MatchRecord) -> int:
        """Insert a record (its id, if any, is ignored). Returns the assigned id."""
        cur = conn.execute(
            "INSERT INTO matches (date, winner, participants, stats, events) VALUES (?, ?, ?, ?, ?)",
            (
                record.date,
                record.winner,
                json.dumps(list(record.participants)),
                json.dumps(record.stats.to_dict()),
                json.dumps([e.to_dict() for e in record.events]),
            ),
        )
        conn.commit()
        return int(cur.lastrowid)

    def get(self, conn: sqlite3.Connection, match_id: int) -> MatchRecord | None:
        row = conn.execute(
            "SELECT id, date, winner, participants, stats, events FROM matches WHERE id = ?",
            (match_id,),
        ).fetchone()
        if row is None:
            return None
        return _row_to_record(row)

    def list_all(self, conn: sqlite3.Connection) -> list[MatchRecord]:
        """Newest first."""
        rows = conn.execute(
            "SELECT id, date, winner, participants, stats, events FROM matches ORDER BY date DESC"
        ).fetchall()
        return [_row_to_record(r) for r in rows]
