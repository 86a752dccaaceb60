"""
Deterministic match-history analytics.
Read-only: consumes MatchRecords, returns leaderboards and per-jump rankings.
Pure functions: everything is recomputed per call, nothing is cached.
No persistence, no engine state.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable

from stickit.models import JumpResult, MatchRecord, MatchStats, parse_participant_entry
from stickit.periods import DateRange, Period, parse_record_date, period_range

logger = logging.getLogger(__name__)


class LeaderboardSort(str, Enum):
    """win_rate: ties by stick rate. stick_rate: ties by wins. falls: most falls first."""
    WIN_RATE = "win_rate"
    STICK_RATE = "stick_rate"
    FALLS = "falls"


def rate(part: int, total: int) -> float:
    """Percentage; 0.0 when there is nothing to divide by."""
    if total <= 0:
        return 0.0
    return 100.0 * part / total


# ---------- Aggregates (derived, never persisted) ----------


@dataclass
class JumpTally:
    sticks: int = 0
    total: int = 0

    @property
    def stick_rate(self) -> float:
        return rate(self.sticks, self.total)


@dataclass
class PlayerAggregate:
    """One player's turns within the filtered records."""
    name: str
    turns: int = 0
    sticks: int = 0
    falls: int = 0
    matches_played: set[Any] = field(default_factory=set)
    matches_won: set[Any] = field(default_factory=set)
    jumps: dict[str, JumpTally] = field(default_factory=dict)

    @property
    def stick_rate(self) -> float:
        return rate(self.sticks, self.turns)

    @property
    def fall_rate(self) -> float:
        return rate(self.falls, self.turns)

    @property
    def win_rate(self) -> float:
        return rate(len(self.matches_won), len(self.matches_played))


# jump name -> player name -> tally
ElementAggregate = dict[str, dict[str, JumpTally]]


# ---------- Ranked output ----------


@dataclass(frozen=True)
class LeaderboardEntry:
    name: str
    turns: int
    sticks: int
    falls: int
    matches_played: int
    matches_won: int
    stick_rate: float
    win_rate: float
    fall_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "turns": self.turns,
            "sticks": self.sticks,
            "falls": self.falls,
            "matches_played": self.matches_played,
            "matches_won": self.matches_won,
            "stick_rate": round(self.stick_rate, 1),
            "win_rate": round(self.win_rate, 1),
            "fall_rate": round(self.fall_rate, 1),
        }


@dataclass(frozen=True)
class ElementEntry:
    """One player's record on one jump."""
    player_name: str
    sticks: int
    total: int
    stick_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_name": self.player_name,
            "sticks": self.sticks,
            "total": self.total,
            "stick_rate": round(self.stick_rate, 1),
        }


@dataclass(frozen=True)
class ElementRanking:
    jump_name: str
    entries: list[ElementEntry]

    def to_dict(self) -> dict[str, Any]:
        return {"jump_name": self.jump_name, "entries": [e.to_dict() for e in self.entries]}


@dataclass(frozen=True)
class MasteryEntry:
    """One jump in a single player's breakdown."""
    jump_name: str
    sticks: int
    total: int
    stick_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "jump_name": self.jump_name,
            "sticks": self.sticks,
            "total": self.total,
            "stick_rate": round(self.stick_rate, 1),
        }


@dataclass(frozen=True)
class PeriodSummary:
    date_range: DateRange
    matches: int
    turns: int
    stats: MatchStats

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.date_range.to_dict(),
            "matches": self.matches,
            "turns": self.turns,
            "stats": self.stats.to_dict(),
        }


# ---------- Step 1: filter ----------


def filter_records(records: Iterable[MatchRecord], date_range: DateRange) -> list[MatchRecord]:
    """Records whose completion date falls inside the (inclusive) range."""
    kept: list[MatchRecord] = []
    for r in records:
        try:
            when = parse_record_date(r.date)
        except ValueError:
            logger.warning("Skipping match %s with unreadable date %r", r.id, r.date)
            continue
        if date_range.start <= when <= date_range.end:
            kept.append(r)
    return kept


# ---------- Step 2: winners ----------


def resolve_winning_players(record: MatchRecord) -> set[str]:
    """
    Player names of the winning team, parsed from the "<TeamName>: a, b" participants
    entry whose team name matches the winner (case-insensitive).
    Records without such an entry (legacy flat name lists) resolve to no winners.
    """
    winner = record.winner.strip().casefold()
    for entry in record.participants:
        parsed = parse_participant_entry(entry)
        if parsed is None:
            continue
        team_name, names = parsed
        if team_name.casefold() == winner:
            return set(names)
    return set()


def _match_key(record: MatchRecord) -> Any:
    return record.id if record.id is not None else record.date


# ---------- Step 3: fold events ----------


def aggregate(records: Iterable[MatchRecord]) -> tuple[dict[str, PlayerAggregate], ElementAggregate]:
    """Fold every event of every record into per-player and per-jump tallies."""
    players: dict[str, PlayerAggregate] = {}
    elements: ElementAggregate = {}
    for record in records:
        key = _match_key(record)
        winners = resolve_winning_players(record)
        for event in record.events:
            name = event.player_name
            stuck = event.result == JumpResult.STICK

            agg = players.get(name)
            if agg is None:
                agg = players[name] = PlayerAggregate(name=name)
            agg.turns += 1
            if stuck:
                agg.sticks += 1
            elif event.result == JumpResult.FALL:
                agg.falls += 1
            agg.matches_played.add(key)
            if name in winners:
                agg.matches_won.add(key)
            tally = agg.jumps.setdefault(event.jump_name, JumpTally())
            tally.total += 1
            tally.sticks += int(stuck)

            by_player = elements.setdefault(event.jump_name, {})
            el = by_player.setdefault(name, JumpTally())
            el.total += 1
            el.sticks += int(stuck)
    return players, elements


# ---------- Step 4: rank ----------


def _sort_key(entry: LeaderboardEntry, sort: LeaderboardSort) -> tuple:
    if sort == LeaderboardSort.WIN_RATE:
        return (-entry.win_rate, -entry.stick_rate, entry.name)
    if sort == LeaderboardSort.STICK_RATE:
        return (-entry.stick_rate, -entry.matches_won, entry.name)
    return (-entry.falls, entry.name)


def build_leaderboard(
    records: Iterable[MatchRecord],
    sort: LeaderboardSort | str = LeaderboardSort.WIN_RATE,
) -> list[LeaderboardEntry]:
    """Players with at least one turn in the records, ranked by the chosen statistic."""
    sort = LeaderboardSort(sort)
    players, _ = aggregate(records)
    entries = [
        LeaderboardEntry(
            name=p.name,
            turns=p.turns,
            sticks=p.sticks,
            falls=p.falls,
            matches_played=len(p.matches_played),
            matches_won=len(p.matches_won),
            stick_rate=p.stick_rate,
            win_rate=p.win_rate,
            fall_rate=p.fall_rate,
        )
        for p in players.values()
        if p.turns > 0
    ]
    entries.sort(key=lambda e: _sort_key(e, sort))
    return entries


def _element_entries(by_player: dict[str, JumpTally]) -> list[ElementEntry]:
    entries = [
        ElementEntry(player_name=name, sticks=t.sticks, total=t.total, stick_rate=t.stick_rate)
        for name, t in by_player.items()
    ]
    entries.sort(key=lambda e: (-e.stick_rate, -e.total, e.player_name))
    return entries


def rank_elements(records: Iterable[MatchRecord]) -> list[ElementRanking]:
    """Per jump (alphabetical), players ranked by stick rate on that jump."""
    _, elements = aggregate(records)
    return [
        ElementRanking(jump_name=jump, entries=_element_entries(elements[jump]))
        for jump in sorted(elements)
    ]


def player_mastery(records: Iterable[MatchRecord], player_name: str) -> list[MasteryEntry]:
    """One player's jumps, best stick rate first. Empty for a player with no turns."""
    players, _ = aggregate(records)
    agg = players.get(player_name)
    if agg is None:
        return []
    entries = [
        MasteryEntry(jump_name=jump, sticks=t.sticks, total=t.total, stick_rate=t.stick_rate)
        for jump, t in agg.jumps.items()
    ]
    entries.sort(key=lambda e: (-e.stick_rate, -e.total, e.jump_name))
    return entries


# ---------- Period helpers ----------


def leaderboard_for_period(
    records: Iterable[MatchRecord],
    period: Period | str,
    offset: int = 0,
    sort: LeaderboardSort | str = LeaderboardSort.WIN_RATE,
    now: datetime | None = None,
) -> list[LeaderboardEntry]:
    return build_leaderboard(filter_records(records, period_range(period, offset, now)), sort)


def elements_for_period(
    records: Iterable[MatchRecord],
    period: Period | str,
    offset: int = 0,
    now: datetime | None = None,
) -> list[ElementRanking]:
    return rank_elements(filter_records(records, period_range(period, offset, now)))


def summarize_period(
    records: Iterable[MatchRecord],
    period: Period | str,
    offset: int = 0,
    now: datetime | None = None,
) -> PeriodSummary:
    """Match count and result totals for a period, recomputed from the events."""
    date_range = period_range(period, offset, now)
    kept = filter_records(records, date_range)
    stats = MatchStats.from_events(e for r in kept for e in r.events)
    return PeriodSummary(date_range=date_range, matches=len(kept), turns=stats.total, stats=stats)
