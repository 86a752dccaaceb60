#!/usr/bin/env python3
"""
Vertical slice: Seed roster and jumps → Play a match → Persist → Leaderboard.
Run from project root: python3 scripts/vertical_slice.py
"""
from __future__ import annotations

import random
import sys
from pathlib import Path

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from stickit.analytics import build_leaderboard, rank_elements
from stickit.models import JumpResult
from stickit.persistence import JumpRepository, PlayerRepository, SqliteStorage, get_connection, init_db
from stickit.persistence.db import set_db_path
from stickit.services import MatchService, build_teams

ROSTER = ["Ann", "Bob", "Cy", "Dee"]
LIBRARY = ["Frontside", "Backside", "360", "540", "Cork", "Rodeo"]
ORDER = ["Frontside", "Backside", "360"]


def main() -> None:
    # Use data/vertical_slice.db for demo (distinct from stickit.db)
    db_path = PROJECT_ROOT / "data" / "vertical_slice.db"
    set_db_path(db_path)
    init_db(db_path)

    conn = get_connection()
    try:
        player_repo = PlayerRepository()
        jump_repo = JumpRepository()

        # 1. Seed roster and jumps on first run
        if not player_repo.list_all(conn):
            for name in ROSTER:
                player_repo.create(conn, name)
            print(f"Created players: {', '.join(ROSTER)}")
        if not jump_repo.list_elements(conn):
            for name in LIBRARY:
                jump_repo.add_element(conn, name)
            jump_repo.save_order(conn, ORDER)
            print(f"Created jump library ({len(LIBRARY)}) and order: {' → '.join(ORDER)}")
        roster = player_repo.list_all(conn)
    finally:
        conn.close()

    # 2. Deal teams and play until someone wins
    storage = SqliteStorage(db_path)
    service = MatchService(storage)
    seed = 99999
    teams = build_teams(roster, team_size=2, seed=seed)
    match_id = service.start_match(teams)
    print(f"Started match {match_id}: {' vs '.join(t.name for t in teams)}")

    rng = random.Random(seed)
    results = list(JumpResult)
    session = service.get(match_id)
    while session.engine.winner is None:
        if service.available_choice_jumps(match_id):
            service.select_choice_jump(match_id, rng.choice(service.available_choice_jumps(match_id)))
        service.apply_outcome(match_id, rng.choices(results, weights=[6, 3, 1])[0])

    snap = service.snapshot(match_id)
    print(f"  Winner: {snap['winner']} after {len(snap['events'])} turns (extra rounds: {snap['extra_rounds']})")
    print(f"  Stats: {snap['stats']}")
    print(f"Persisted match: id={snap['record_id']}")

    # 3. Leaderboard and per-jump rankings from everything stored so far
    history = storage.load_match_history()
    print(f"\nLeaderboard ({len(history)} matches):")
    for entry in build_leaderboard(history):
        d = entry.to_dict()
        print(f"  {d['name']:<6} win {d['win_rate']:>5}%  stick {d['stick_rate']:>5}%  falls {d['falls']}")
    for ranking in rank_elements(history):
        best = ranking.entries[0]
        print(f"  {ranking.jump_name:<10} best: {best.player_name} ({best.sticks}/{best.total})")

    print("\nVertical slice complete.")


if __name__ == "__main__":
    main()
