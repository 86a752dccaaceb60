"""
Play a scripted match in the terminal. Each outcome is fed to the turn engine and
the turn, positions and result are printed as if the match were being called live.

    python -m stickit.run_match --jumps "Frontside,Backside,360" \
        --team "Team 1:Ann,Bob" --team "Team 2:Cy,Dee" --outcomes s,s,f,n,u

Outcome codes: s = stick, n = no stick, f = fall, u = undo.
"""
from __future__ import annotations

import argparse
from pathlib import Path

from stickit.match_engine import MatchEngine
from stickit.models import GameEvent, JumpResult, Player, Team
from stickit.persistence import SqliteStorage, init_db
from stickit.services.match_recorder import MatchRecorder, MatchSaveError

OUTCOME_CODES = {
    "s": JumpResult.STICK,
    "n": JumpResult.NO_STICK,
    "f": JumpResult.FALL,
}
UNDO_CODE = "u"


def parse_team(spec: str, team_id: int, first_player_id: int) -> Team:
    """'Team 1:Ann,Bob' -> Team with players Ann and Bob."""
    name, sep, players = spec.partition(":")
    if not sep or not name.strip():
        raise SystemExit(f"Team must look like 'Name:Player1,Player2', got {spec!r}")
    names = [p.strip() for p in players.split(",") if p.strip()]
    if not names:
        raise SystemExit(f"Team {name.strip()!r} has no players")
    return Team(
        id=team_id,
        name=name.strip(),
        players=[Player(id=first_player_id + i, name=n) for i, n in enumerate(names)],
    )


def _print_turn(event: GameEvent, engine: MatchEngine) -> None:
    team = next(t for t in engine.teams if t.id == event.team_id)
    marker = f" (choice {event.choice_jump_number})" if event.is_choice_jump else ""
    print(
        f"  {event.player_name:<12} {team.name:<10} {event.jump_name:<20}{marker}"
        f"  {event.result.value:<8} {event.previous_position} → {team.position}/{engine.total_steps}"
    )


def _print_final(engine: MatchEngine) -> None:
    stats = engine.stats
    print()
    print("=" * 60)
    if engine.winner is not None:
        print(f"  WINNER: {engine.winner}  after {len(engine.events)} turns")
    else:
        print(f"  No winner yet after {len(engine.events)} turns")
    print("=" * 60)
    for t in engine.teams:
        print(f"  {t.name:<10} position {t.position}/{engine.total_steps}")
    print(f"  Sticks {stats.stick}  |  No sticks {stats.no_stick}  |  Falls {stats.fall}")
    if engine.extra_rounds:
        print(f"  Extra rounds played: {engine.extra_rounds}")
    print()


def main() -> None:
    parser = argparse.ArgumentParser(description="Play a scripted Stick It match in the terminal.")
    parser.add_argument("--jumps", default="", help="Comma-separated jump order (may be empty)")
    parser.add_argument("--team", action="append", required=True, help="'Name:Player1,Player2' (repeatable)")
    parser.add_argument("--outcomes", required=True, help="Comma-separated codes: s, n, f, u (undo)")
    parser.add_argument("--db", type=Path, default=None, help="Record the finished match into this SQLite DB")
    args = parser.parse_args()

    jump_order = [j.strip() for j in args.jumps.split(",") if j.strip()]
    teams: list[Team] = []
    next_player_id = 1
    for i, spec in enumerate(args.team, start=1):
        team = parse_team(spec, i, next_player_id)
        next_player_id += len(team.players)
        teams.append(team)

    recorder = None
    if args.db is not None:
        init_db(args.db)
        recorder = MatchRecorder(SqliteStorage(args.db))
    try:
        engine = MatchEngine(teams, jump_order, on_complete=recorder)
    except ValueError as e:
        raise SystemExit(str(e)) from e

    print(f"\n  {' vs '.join(t.name for t in teams)}  [{len(jump_order)} jumps + choice jumps]")
    print("  " + "-" * 56)
    for code in (c.strip().lower() for c in args.outcomes.split(",") if c.strip()):
        if code == UNDO_CODE:
            undone = engine.undo()
            print(f"  undo: {undone.player_name} {undone.result.value}" if undone else "  undo: nothing to undo")
            continue
        if code not in OUTCOME_CODES:
            raise SystemExit(f"Unknown outcome code {code!r} (use s, n, f, u)")
        try:
            event = engine.apply_outcome(OUTCOME_CODES[code])
        except MatchSaveError as e:
            print(f"  {e}")
            break
        if event is None:
            print("  (match already decided; remaining outcomes ignored)")
            break
        _print_turn(event, engine)

    _print_final(engine)
    if recorder is not None and recorder.saved is not None:
        print(f"  Saved as match #{recorder.saved.id} in {args.db}")


if __name__ == "__main__":
    main()
