"""
Match turn engine: whose turn it is, how outcomes move a team, how ties extend
the finish line and how a match concludes. Keeps the event log as the single
source of truth; undo pops the log. No persistence here; completion hands a
MatchRecord to the on_complete callback (the match recorder).
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from stickit.models import (
    POSITION_DELTAS,
    GameEvent,
    JumpResult,
    MatchRecord,
    MatchStats,
    MatchStatus,
    Player,
    Team,
    format_participant_entry,
)

logger = logging.getLogger(__name__)

# Two choice jumps follow the fixed jump order; each tie adds one more.
CHOICE_JUMPS = 2
CHOICE_JUMP_LABEL = "Choice Jump {number}"


class ChoiceJumpConflictError(ValueError):
    """Player already holds this jump for a different choice slot."""


def build_match_record(
    teams: list[Team],
    events: list[GameEvent],
    winner: str,
    completed_at: datetime,
) -> MatchRecord:
    """Assemble the permanent record: one participants entry per team, stats from the full log."""
    return MatchRecord(
        date=completed_at.isoformat(),
        winner=winner,
        participants=tuple(format_participant_entry(t) for t in teams),
        stats=MatchStats.from_events(events),
        events=tuple(events),
    )


def replay_position(events: Iterable[GameEvent], team_id: int) -> int:
    """Rebuild a team's position from position 0 by folding its events (floor at 0)."""
    position = 0
    for e in events:
        if e.team_id == team_id:
            position = max(0, position + POSITION_DELTAS[e.result])
    return position


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MatchEngine:
    """
    One match in progress. Teams play in fixed order; players within a team rotate.
    Win and tie checks happen only after the last team of a round has played.
    """

    def __init__(
        self,
        teams: list[Team],
        jump_order: list[str],
        on_complete: Callable[[MatchRecord], None] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not teams:
            raise ValueError("A match needs at least one team")
        ids = [t.id for t in teams]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Team ids must be unique within a match: {ids}")
        # The record keeps only the winner's name; analytics matches it case-insensitively.
        names = [t.name.strip().casefold() for t in teams]
        if len(set(names)) != len(names):
            raise ValueError(
                f"Team names must differ (ignoring case): {[t.name for t in teams]}"
            )
        # Own copies; every team starts at the beginning of the jump order.
        self._teams = [Team(id=t.id, name=t.name, players=list(t.players)) for t in teams]
        self._jump_order = list(jump_order)
        self._on_complete = on_complete
        self._clock = clock or _utc_now
        self._events: list[GameEvent] = []
        self._winner: str | None = None
        self._record: MatchRecord | None = None
        self._reported = False
        self._extra_rounds = 0
        # len(events) at each tie extension, so undo can retract it
        self._tie_turns: list[int] = []
        self._choice_picks: dict[int, dict[int, str]] = {}

    # ---------- Read-only state ----------

    @property
    def teams(self) -> list[Team]:
        return list(self._teams)

    @property
    def jump_order(self) -> list[str]:
        return list(self._jump_order)

    @property
    def events(self) -> list[GameEvent]:
        return list(self._events)

    @property
    def winner(self) -> str | None:
        return self._winner

    @property
    def record(self) -> MatchRecord | None:
        return self._record

    @property
    def extra_rounds(self) -> int:
        return self._extra_rounds

    @property
    def status(self) -> MatchStatus:
        return MatchStatus.COMPLETED if self._winner is not None else MatchStatus.IN_PROGRESS

    @property
    def stats(self) -> MatchStats:
        return MatchStats.from_events(self._events)

    # ---------- Derived turn state ----------

    @property
    def total_steps(self) -> int:
        """The finish line: fixed jumps, the choice jumps, plus one per tie."""
        return len(self._jump_order) + CHOICE_JUMPS + self._extra_rounds

    @property
    def turn_index(self) -> int:
        return len(self._events)

    @property
    def active_team_index(self) -> int:
        return self.turn_index % len(self._teams)

    @property
    def active_team(self) -> Team:
        return self._teams[self.active_team_index]

    @property
    def is_last_team_in_round(self) -> bool:
        return self.active_team_index == len(self._teams) - 1

    @property
    def active_player(self) -> Player:
        return self.next_player(self.active_team)

    def next_player(self, team: Team) -> Player:
        """Round-robin within the team, driven by how many turns the team has taken."""
        turns_taken = sum(1 for e in self._events if e.team_id == team.id)
        return team.players[turns_taken % len(team.players)]

    def is_on_choice_jump(self, team: Team) -> bool:
        return team.position >= len(self._jump_order)

    def choice_jump_number(self, team: Team) -> int | None:
        """1-based choice slot the team is on, or None while in the fixed order."""
        if not self.is_on_choice_jump(team):
            return None
        return team.position - len(self._jump_order) + 1

    def jump_name_for(
        self,
        team: Team,
        player: Player | None = None,
        manual_jump_name: str | None = None,
    ) -> str:
        """
        Jump the team is attempting. On a choice slot: the manual selection,
        else the player's stored selection, else a "Choice Jump k" label.
        """
        number = self.choice_jump_number(team)
        if number is None:
            return self._jump_order[team.position]
        if manual_jump_name:
            return manual_jump_name
        if player is not None:
            picked = self._choice_picks.get(player.id, {}).get(number)
            if picked:
                return picked
        return CHOICE_JUMP_LABEL.format(number=number)

    # ---------- Choice jumps ----------

    def choice_selections(self, player_id: int) -> dict[int, str]:
        return dict(self._choice_picks.get(player_id, {}))

    def available_choice_jumps(
        self,
        player_id: int,
        library: Iterable[str],
        choice_number: int | None = None,
    ) -> list[str]:
        """
        Candidates for a choice slot: library jumps outside the jump order that the
        player has not picked for a different slot. Sets are returned sorted.
        """
        if isinstance(library, (set, frozenset)):
            library = sorted(library)
        fixed = set(self._jump_order)
        taken = {
            name for slot, name in self._choice_picks.get(player_id, {}).items()
            if slot != choice_number
        }
        seen: set[str] = set()
        available: list[str] = []
        for jump in library:
            if jump in fixed or jump in taken or jump in seen:
                continue
            seen.add(jump)
            available.append(jump)
        return available

    def select_choice_jump(self, player_id: int, choice_number: int, jump_name: str) -> None:
        """Attach a selection to a player's choice slot. Library membership is the caller's concern."""
        if choice_number < 1:
            raise ValueError(f"choice_number must be >= 1, got {choice_number}")
        picks = self._choice_picks.setdefault(player_id, {})
        for slot, name in picks.items():
            if name == jump_name and slot != choice_number:
                raise ChoiceJumpConflictError(
                    f"Player {player_id} already chose {jump_name!r} for choice jump {slot}"
                )
        picks[choice_number] = jump_name

    def clear_choice_jump(self, player_id: int, choice_number: int) -> str | None:
        """Drop a stored selection (e.g. after undoing the turn that used it)."""
        return self._choice_picks.get(player_id, {}).pop(choice_number, None)

    # ---------- Operations ----------

    def apply_outcome(
        self,
        result: JumpResult | str,
        manual_jump_name: str | None = None,
    ) -> GameEvent | None:
        """
        Record one turn for the active team. Returns the new event, or None when
        the match is already decided (duplicate triggers are ignored).
        """
        if self._winner is not None:
            logger.debug("Outcome %s ignored: match already won by %s", result, self._winner)
            return None
        result = JumpResult(result)
        team_index = self.active_team_index
        team = self._teams[team_index]
        player = self.next_player(team)
        choice_number = self.choice_jump_number(team)
        if choice_number is not None and manual_jump_name:
            self.select_choice_jump(player.id, choice_number, manual_jump_name)
        jump_name = self.jump_name_for(team, player=player)

        previous = team.position
        team.position = max(0, min(previous + POSITION_DELTAS[result], self.total_steps))
        event = GameEvent(
            team_id=team.id,
            player_id=player.id,
            player_name=player.name,
            jump_name=jump_name,
            result=result,
            previous_position=previous,
            is_choice_jump=choice_number is not None,
            choice_jump_number=choice_number,
        )
        self._events.append(event)
        logger.debug(
            "Turn %d: %s (%s) %s on %s, position %d -> %d",
            len(self._events), player.name, team.name, result.value, jump_name,
            previous, team.position,
        )
        if team_index == len(self._teams) - 1:
            self._end_round()
        return event

    def undo(self) -> GameEvent | None:
        """
        Pop the last turn and restore its team's position (and any tie extension it
        caused). Returns the removed event, or None if nothing can be undone.
        """
        if not self._events or self._winner is not None:
            return None
        if self._tie_turns and self._tie_turns[-1] == len(self._events):
            self._tie_turns.pop()
            self._extra_rounds -= 1
        event = self._events.pop()
        team = next(t for t in self._teams if t.id == event.team_id)
        team.position = event.previous_position
        logger.debug("Undid turn %d (%s %s)", len(self._events) + 1, event.player_name, event.result.value)
        return event

    def _end_round(self) -> None:
        finish = self.total_steps
        finished = [t for t in self._teams if t.position >= finish]
        if len(finished) == 1:
            self._complete(finished[0])
        elif len(finished) > 1:
            self._extra_rounds += 1
            self._tie_turns.append(len(self._events))
            logger.info(
                "Tie at the finish between %s; extra round %d (finish line %d)",
                ", ".join(t.name for t in finished), self._extra_rounds, self.total_steps,
            )

    def _complete(self, team: Team) -> None:
        self._winner = team.name
        self._record = build_match_record(self._teams, self._events, team.name, self._clock())
        logger.info("%s wins after %d turns", team.name, len(self._events))
        if self._on_complete is not None and not self._reported:
            self._reported = True
            self._on_complete(self._record)

    # ---------- Snapshot ----------

    def snapshot(self) -> dict[str, Any]:
        """JSON-friendly view of the whole match for the API and terminal runner."""
        in_progress = self._winner is None
        active = self.active_team if in_progress else None
        player = self.next_player(active) if active is not None else None
        teams: list[dict[str, Any]] = []
        for t in self._teams:
            d = t.to_dict()
            d["on_choice_jump"] = self.is_on_choice_jump(t)
            d["choice_jump_number"] = self.choice_jump_number(t)
            d["current_jump"] = (
                self.jump_name_for(t, player=self.next_player(t))
                if t.position < self.total_steps else None
            )
            teams.append(d)
        return {
            "status": self.status.value,
            "turn_number": self.turn_index + 1,
            "total_steps": self.total_steps,
            "extra_rounds": self._extra_rounds,
            "jump_order": list(self._jump_order),
            "active_team_id": active.id if active is not None else None,
            "active_player": player.to_dict() if player is not None else None,
            "winner": self._winner,
            "teams": teams,
            "stats": self.stats.to_dict(),
            "events": [e.to_dict() for e in self._events],
        }
