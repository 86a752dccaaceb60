"""
Data models for the Stick It backend.
Domain objects only: no persistence or API logic.

A match is played by teams of players who take turns attempting jumps.
Every turn is a GameEvent; a completed match becomes an immutable MatchRecord.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable


# ---------- Turn result (closed variant) ----------
class JumpResult(str, Enum):
    """Outcome of one turn. Values are the stored strings."""
    STICK = "stick"
    NO_STICK = "noStick"
    FALL = "fall"


# Position change per result; falls are floored at 0 by the engine.
POSITION_DELTAS: dict[JumpResult, int] = {
    JumpResult.STICK: 1,
    JumpResult.NO_STICK: 0,
    JumpResult.FALL: -2,
}


# ---------- Match status (state machine) ----------
class MatchStatus(str, Enum):
    """in_progress → completed (terminal)."""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# ---------- Name rules ----------
# Participants entries are "<TeamName>: <name1>, <name2>", so team names may not
# contain PARTICIPANT_SEPARATOR and player names may not contain PLAYER_NAME_SEPARATOR.
PARTICIPANT_SEPARATOR = ":"
PLAYER_NAME_SEPARATOR = ","


def validate_player_name(name: str) -> str:
    """Return the stripped name; ValueError when empty or containing the player separator."""
    cleaned = name.strip()
    if not cleaned:
        raise ValueError("Player name may not be empty")
    if PLAYER_NAME_SEPARATOR in cleaned:
        raise ValueError(f"Player name {name!r} may not contain {PLAYER_NAME_SEPARATOR!r}")
    return cleaned


# ---------- Player ----------
@dataclass(frozen=True)
class Player:
    """A roster member. Owned by the roster; teams and events only reference it."""
    id: int
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}


# ---------- Team ----------
@dataclass
class Team:
    """
    Players competing together in one match. Order of players is the turn order.
    position is the index into the jump order (plus choice jumps) reached so far.
    """
    id: int
    name: str
    players: list[Player]
    position: int = 0

    def __post_init__(self) -> None:
        if not self.players:
            raise ValueError(f"Team {self.name!r} has no players")
        if PARTICIPANT_SEPARATOR in self.name:
            raise ValueError(f"Team name {self.name!r} may not contain {PARTICIPANT_SEPARATOR!r}")
        for p in self.players:
            validate_player_name(p.name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "players": [p.to_dict() for p in self.players],
            "position": self.position,
        }


# ---------- GameEvent ----------
@dataclass(frozen=True)
class GameEvent:
    """
    One turn. Append-only; undo pops the most recent one.
    player_name is a snapshot because roster membership may change later.
    previous_position makes undo exact.
    """
    team_id: int
    player_id: int
    player_name: str
    jump_name: str
    result: JumpResult
    previous_position: int
    is_choice_jump: bool = False
    choice_jump_number: int | None = None

    def __post_init__(self) -> None:
        if self.is_choice_jump != (self.choice_jump_number is not None):
            raise ValueError("choice_jump_number must be set iff is_choice_jump")

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "teamId": self.team_id,
            "playerId": self.player_id,
            "playerName": self.player_name,
            "jumpName": self.jump_name,
            "result": self.result.value,
            "previousPosition": self.previous_position,
            "isChoiceJump": self.is_choice_jump,
        }
        if self.choice_jump_number is not None:
            d["choiceJumpNumber"] = self.choice_jump_number
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> GameEvent:
        return cls(
            team_id=d["teamId"],
            player_id=d["playerId"],
            player_name=d["playerName"],
            jump_name=d["jumpName"],
            result=JumpResult(d["result"]),
            previous_position=d["previousPosition"],
            is_choice_jump=bool(d.get("isChoiceJump", False)),
            choice_jump_number=d.get("choiceJumpNumber"),
        )


# ---------- MatchStats ----------
@dataclass(frozen=True)
class MatchStats:
    """Result tallies. Always derived from the event log, never a source of truth."""
    stick: int = 0
    no_stick: int = 0
    fall: int = 0

    @classmethod
    def from_events(cls, events: Iterable[GameEvent]) -> MatchStats:
        counts = {r: 0 for r in JumpResult}
        for e in events:
            counts[e.result] += 1
        return cls(
            stick=counts[JumpResult.STICK],
            no_stick=counts[JumpResult.NO_STICK],
            fall=counts[JumpResult.FALL],
        )

    @property
    def total(self) -> int:
        return self.stick + self.no_stick + self.fall

    def to_dict(self) -> dict[str, int]:
        return {"stick": self.stick, "noStick": self.no_stick, "fall": self.fall}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> MatchStats:
        return cls(
            stick=int(d.get("stick", 0)),
            no_stick=int(d.get("noStick", 0)),
            fall=int(d.get("fall", 0)),
        )


# ---------- Participants ("<TeamName>: <name1>, <name2>") ----------


def format_participant_entry(team: Team) -> str:
    """One participants entry per team. Analytics parses this to resolve winners."""
    names = f"{PLAYER_NAME_SEPARATOR} ".join(p.name for p in team.players)
    return f"{team.name}{PARTICIPANT_SEPARATOR} {names}"


def parse_participant_entry(entry: str) -> tuple[str, list[str]] | None:
    """
    Split "<TeamName>: a, b" into ("TeamName", ["a", "b"]).
    Returns None for entries without a separator (legacy flat player names).
    """
    team_name, sep, rest = entry.partition(PARTICIPANT_SEPARATOR)
    if not sep:
        return None
    names = [n.strip() for n in rest.split(PLAYER_NAME_SEPARATOR) if n.strip()]
    return team_name.strip(), names


# ---------- MatchRecord ----------
@dataclass(frozen=True)
class MatchRecord:
    """
    The permanent artifact of a completed match.
    Immutable once created; id is assigned by storage.
    """
    date: str  # ISO timestamp of completion
    winner: str  # winning team name
    participants: tuple[str, ...]
    stats: MatchStats
    events: tuple[GameEvent, ...] = field(default_factory=tuple)
    id: int | None = None

    def with_id(self, record_id: int) -> MatchRecord:
        return replace(self, id=record_id)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "date": self.date,
            "winner": self.winner,
            "participants": list(self.participants),
            "stats": self.stats.to_dict(),
            "events": [e.to_dict() for e in self.events],
        }
        if self.id is not None:
            d["id"] = self.id
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> MatchRecord:
        return cls(
            id=d.get("id"),
            date=d["date"],
            winner=d["winner"],
            participants=tuple(d.get("participants") or ()),
            stats=MatchStats.from_dict(d.get("stats") or {}),
            events=tuple(GameEvent.from_dict(e) for e in (d.get("events") or [])),
        )
