"""
Shared fixtures: an in-memory MatchStorage fake and small roster helpers.
"""
from __future__ import annotations

import pytest

from stickit.models import MatchRecord, Player, Team
from stickit.persistence.storage import StorageError


class InMemoryStorage:
    """MatchStorage fake. Set fail_saves / fail_loads to exercise the failure paths."""

    def __init__(
        self,
        roster: list[Player] | None = None,
        jump_order: list[str] | None = None,
        library: list[str] | None = None,
    ) -> None:
        self.roster = list(roster or [])
        self.jump_order = list(jump_order or [])
        self.library = list(library or [])
        self.matches: list[MatchRecord] = []
        self.fail_saves = False
        self.fail_loads = False
        self.save_calls = 0

    def load_roster(self) -> list[Player]:
        if self.fail_loads:
            raise StorageError("roster unavailable")
        return list(self.roster)

    def load_jump_order(self) -> list[str]:
        if self.fail_loads:
            raise StorageError("jump order unavailable")
        return list(self.jump_order)

    def load_jump_library(self) -> list[str]:
        if self.fail_loads:
            raise StorageError("jump library unavailable")
        return list(self.library)

    def save_match(self, record: MatchRecord) -> MatchRecord:
        self.save_calls += 1
        if self.fail_saves:
            raise StorageError("disk full")
        saved = record.with_id(len(self.matches) + 1)
        self.matches.append(saved)
        return saved

    def load_match_history(self) -> list[MatchRecord]:
        if self.fail_loads:
            raise StorageError("history unavailable")
        return list(reversed(self.matches))


def build_named_teams(*rosters: list[str]) -> list[Team]:
    """build_named_teams(["Ann", "Bob"], ["Cy"]) -> Team 1 (Ann, Bob), Team 2 (Cy). Player ids are unique."""
    teams: list[Team] = []
    next_id = 1
    for i, names in enumerate(rosters, start=1):
        players = [Player(id=next_id + j, name=n) for j, n in enumerate(names)]
        next_id += len(names)
        teams.append(Team(id=i, name=f"Team {i}", players=players))
    return teams


@pytest.fixture
def roster() -> list[Player]:
    return [
        Player(id=1, name="Ann"),
        Player(id=2, name="Bob"),
        Player(id=3, name="Cy"),
        Player(id=4, name="Dee"),
    ]


@pytest.fixture
def memory_storage(roster) -> InMemoryStorage:
    return InMemoryStorage(
        roster=roster,
        jump_order=["A", "B", "C"],
        library=["A", "B", "C", "X", "Y", "Z"],
    )


@pytest.fixture
def make_teams():
    return build_named_teams
