"""
Match hosting service: starts matches from storage-provided jump data, keeps the
running engines, and serializes every call on a match through that match's lock.
Persistence is delegated to the injected storage (via the match recorder).
"""
from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any

from stickit.match_engine import MatchEngine
from stickit.models import GameEvent, JumpResult, Team
from stickit.persistence.storage import MatchStorage
from stickit.services.match_recorder import MatchRecorder

logger = logging.getLogger(__name__)

# ---------- Exceptions ----------


class MatchServiceError(ValueError):
    """Invalid request against a hosted match."""


class MatchNotFoundError(MatchServiceError):
    """No hosted match with that id."""


class InvalidChoiceJumpError(MatchServiceError):
    """Selection is not a candidate: not in the library, part of the jump order, or not on a choice jump."""


# ---------- Session ----------


@dataclass
class MatchSession:
    id: str
    engine: MatchEngine
    recorder: MatchRecorder
    library: list[str]
    lock: threading.Lock = field(default_factory=threading.Lock)


# ---------- MatchService ----------


class MatchService:
    """
    Domain entry point for live matches.
    One lock per match: no two turns ever mutate the same match concurrently.
    """

    def __init__(self, storage: MatchStorage) -> None:
        self._storage = storage
        self._sessions: dict[str, MatchSession] = {}
        self._registry_lock = threading.Lock()

    @property
    def storage(self) -> MatchStorage:
        return self._storage

    def start_match(self, teams: list[Team], jump_order: list[str] | None = None) -> str:
        """
        Create a match. jump_order defaults to the saved order; the jump library is
        loaded once and used for choice-jump candidates. Returns the match id.
        """
        order = self._storage.load_jump_order() if jump_order is None else list(jump_order)
        library = self._storage.load_jump_library()
        recorder = MatchRecorder(self._storage)
        try:
            engine = MatchEngine(teams, order, on_complete=recorder)
        except ValueError as e:
            raise MatchServiceError(str(e)) from e
        session = MatchSession(id=str(uuid.uuid4()), engine=engine, recorder=recorder, library=library)
        with self._registry_lock:
            self._sessions[session.id] = session
        logger.info(
            "Started match %s: %s; %d jumps in order",
            session.id, ", ".join(t.name for t in teams), len(order),
        )
        return session.id

    def get(self, match_id: str) -> MatchSession:
        with self._registry_lock:
            session = self._sessions.get(match_id)
        if session is None:
            raise MatchNotFoundError(f"Match not found: {match_id}")
        return session

    def discard(self, match_id: str) -> None:
        """
        Drop a hosted match (abandoned, or finished and saved).
        A finished match whose save is still pending is kept so the result is not lost.
        """
        session = self.get(match_id)
        with session.lock:
            if session.recorder.pending is not None:
                raise MatchServiceError(f"Match {match_id} has an unsaved result; retry the save first")
        with self._registry_lock:
            if self._sessions.pop(match_id, None) is None:
                raise MatchNotFoundError(f"Match not found: {match_id}")
        logger.info("Discarded match %s", match_id)

    def list_ids(self) -> list[str]:
        with self._registry_lock:
            return list(self._sessions)

    # ---------- Turns ----------

    def apply_outcome(
        self,
        match_id: str,
        result: JumpResult | str,
        manual_jump_name: str | None = None,
    ) -> GameEvent | None:
        """
        Record the active player's turn. A manual jump name on a choice jump must be a
        candidate. Raises MatchSaveError (match still completed) if the final save fails.
        """
        session = self.get(match_id)
        with session.lock:
            engine = session.engine
            if manual_jump_name and engine.winner is None:
                team = engine.active_team
                number = engine.choice_jump_number(team)
                if number is not None:
                    self._assert_candidate(session, manual_jump_name)
            return engine.apply_outcome(result, manual_jump_name)

    def undo(self, match_id: str) -> GameEvent | None:
        session = self.get(match_id)
        with session.lock:
            return session.engine.undo()

    # ---------- Choice jumps ----------

    def available_choice_jumps(self, match_id: str) -> list[str]:
        """Candidates for the active player's current choice slot ([] outside choice jumps)."""
        session = self.get(match_id)
        with session.lock:
            engine = session.engine
            if engine.winner is not None:
                return []
            team = engine.active_team
            number = engine.choice_jump_number(team)
            if number is None:
                return []
            player = engine.next_player(team)
            return engine.available_choice_jumps(player.id, session.library, number)

    def select_choice_jump(self, match_id: str, jump_name: str, choice_number: int | None = None) -> None:
        """Attach a selection for the active player; defaults to the slot their team is on."""
        session = self.get(match_id)
        with session.lock:
            engine = session.engine
            if engine.winner is not None:
                raise MatchServiceError("Match is already complete")
            team = engine.active_team
            number = choice_number if choice_number is not None else engine.choice_jump_number(team)
            if number is None:
                raise InvalidChoiceJumpError(f"{team.name} is not on a choice jump")
            player = engine.next_player(team)
            self._assert_candidate(session, jump_name)
            engine.select_choice_jump(player.id, number, jump_name)

    def _assert_candidate(self, session: MatchSession, jump_name: str) -> None:
        if jump_name not in session.library:
            raise InvalidChoiceJumpError(f"{jump_name!r} is not in the jump library")
        if jump_name in session.engine.jump_order:
            raise InvalidChoiceJumpError(f"{jump_name!r} is part of the jump order")
        # Per-player repeats are rejected by the engine (ChoiceJumpConflictError).

    # ---------- Completion ----------

    def retry_save(self, match_id: str):
        """Re-attempt persisting a completed match whose save failed."""
        session = self.get(match_id)
        with session.lock:
            return session.recorder.retry()

    def snapshot(self, match_id: str) -> dict[str, Any]:
        session = self.get(match_id)
        with session.lock:
            data = session.engine.snapshot()
            saved = session.recorder.saved
            data["match_id"] = session.id
            data["saved"] = saved is not None
            data["record_id"] = saved.id if saved is not None else None
            return data
