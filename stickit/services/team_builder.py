"""
Team setup: shuffle the selected players and deal them into fixed-size teams.

Seeded so a given (players, team_size, seed) always yields the same teams.
The last team takes whatever players are left and may be smaller.
"""
from __future__ import annotations

import random

from stickit.models import Player, Team


def build_teams(players: list[Player], team_size: int, seed: int | None = None) -> list[Team]:
    """
    Return teams named "Team 1", "Team 2", ... with ids 1..N, in deal order.
    Raises ValueError when team_size is not positive or there are too few players.
    """
    if team_size <= 0:
        raise ValueError(f"team_size must be positive, got {team_size}")
    if len(players) < team_size:
        raise ValueError(
            f"Need at least {team_size} players to fill one team (got {len(players)})"
        )
    shuffled = list(players)
    random.Random(seed).shuffle(shuffled)
    teams: list[Team] = []
    for i in range(0, len(shuffled), team_size):
        number = len(teams) + 1
        teams.append(Team(id=number, name=f"Team {number}", players=shuffled[i : i + team_size]))
    return teams
