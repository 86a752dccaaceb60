"""
Tests for the match turn engine: turn order, movement, ties, completion, undo
and choice jumps.
"""
from __future__ import annotations

import itertools
from datetime import datetime, timezone

import pytest

from stickit.match_engine import (
    CHOICE_JUMPS,
    ChoiceJumpConflictError,
    MatchEngine,
    replay_position,
)
from stickit.models import JumpResult, MatchStatus, Player, Team

S, N, F = JumpResult.STICK, JumpResult.NO_STICK, JumpResult.FALL


def play(engine: MatchEngine, results) -> list:
    return [engine.apply_outcome(r) for r in results]


# ---------- Setup ----------


class TestSetup:
    def test_total_steps_counts_choice_jumps(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), ["A", "B", "C"])
        assert CHOICE_JUMPS == 2
        assert engine.total_steps == 5
        assert engine.extra_rounds == 0
        assert engine.status == MatchStatus.IN_PROGRESS

    def test_teams_start_at_zero(self):
        team = Team(id=1, name="Team 1", players=[Player(1, "Ann")], position=3)
        engine = MatchEngine([team], ["A"])
        assert engine.teams[0].position == 0
        # caller's team is untouched
        assert team.position == 3

    def test_no_teams_rejected(self):
        with pytest.raises(ValueError):
            MatchEngine([], ["A"])

    def test_duplicate_team_ids_rejected(self):
        teams = [
            Team(id=1, name="Team 1", players=[Player(1, "Ann")]),
            Team(id=1, name="Team 2", players=[Player(2, "Cy")]),
        ]
        with pytest.raises(ValueError):
            MatchEngine(teams, ["A"])

    def test_team_needs_players(self):
        with pytest.raises(ValueError):
            Team(id=1, name="Empty", players=[])

    def test_team_names_must_differ_ignoring_case(self):
        """Only the winner's name is recorded, so "Red" and "red" cannot share a match."""
        teams = [
            Team(id=1, name="Red", players=[Player(1, "Ann")]),
            Team(id=2, name=" red", players=[Player(2, "Cy")]),
        ]
        with pytest.raises(ValueError):
            MatchEngine(teams, ["A"])

    def test_team_name_cannot_contain_colon(self):
        with pytest.raises(ValueError):
            Team(id=1, name="Red: A", players=[Player(1, "Ann")])

    def test_player_name_cannot_contain_comma(self):
        with pytest.raises(ValueError):
            Team(id=1, name="Red", players=[Player(1, "Lee, Jr.")])
        with pytest.raises(ValueError):
            Team(id=1, name="Red", players=[Player(1, "  ")])


# ---------- Turn order ----------


class TestTurnOrder:
    def test_teams_alternate(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"], ["Dee"]), ["A", "B", "C"])
        events = play(engine, [N, N, N, N])
        assert [e.team_id for e in events] == [1, 2, 3, 1]
        assert engine.active_team.id == 2

    def test_players_rotate_within_team(self, make_teams):
        engine = MatchEngine(make_teams(["Ann", "Bob"], ["Cy"]), ["A", "B", "C"])
        events = play(engine, [N, N, N, N, N])
        assert [e.player_name for e in events] == ["Ann", "Cy", "Bob", "Cy", "Ann"]
        assert engine.active_player.name == "Cy"

    def test_last_team_in_round(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), ["A"])
        assert not engine.is_last_team_in_round
        engine.apply_outcome(N)
        assert engine.is_last_team_in_round


# ---------- Movement ----------


class TestMovement:
    def test_result_deltas(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"]), ["A", "B", "C", "D", "E"])
        play(engine, [S, S, S])
        assert engine.teams[0].position == 3
        engine.apply_outcome(N)
        assert engine.teams[0].position == 3
        engine.apply_outcome(F)
        assert engine.teams[0].position == 1

    def test_fall_floors_at_zero(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), ["A", "B"])
        event = engine.apply_outcome(F)
        assert event.previous_position == 0
        assert engine.teams[0].position == 0
        play(engine, [N, S, N, F])
        assert engine.teams[0].position == 0

    def test_jump_name_follows_position(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), ["A", "B", "C"])
        events = play(engine, [S, N, S, N, F, N])
        assert [e.jump_name for e in events] == ["A", "A", "B", "A", "C", "A"]

    def test_string_results_accepted(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), ["A"])
        event = engine.apply_outcome("noStick")
        assert event.result == JumpResult.NO_STICK

    def test_invalid_result_rejected(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), ["A"])
        with pytest.raises(ValueError):
            engine.apply_outcome("jump")
        assert engine.events == []


# ---------- Completion & ties ----------


class TestCompletion:
    def test_first_team_to_finish_wins_at_round_end(self, make_teams):
        """Team 1 sticks every turn, Team 2 falls then sticks: Team 1 wins on turn 10."""
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), ["A", "B", "C"])
        play(engine, [S, F, S, S, S, S, S, S, S])
        assert engine.teams[0].position == 5
        assert engine.winner is None
        engine.apply_outcome(S)
        assert engine.winner == "Team 1"
        assert engine.status == MatchStatus.COMPLETED
        assert len(engine.events) == 10
        assert engine.teams[1].position == 4

    def test_no_win_mid_round(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), [])
        assert engine.total_steps == 2
        play(engine, [S, F, S])
        assert engine.teams[0].position == 2
        assert engine.winner is None
        engine.apply_outcome(N)
        assert engine.winner == "Team 1"

    def test_tie_adds_extra_round(self, make_teams):
        """Both teams stick five times: tie at 5, finish moves to 6, Team 1 then wins."""
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), ["A", "B", "C"])
        play(engine, [S] * 10)
        assert engine.winner is None
        assert engine.extra_rounds == 1
        assert engine.total_steps == 6
        engine.apply_outcome(S)
        assert engine.winner is None
        event = engine.apply_outcome(N)
        assert event.jump_name == "Choice Jump 3"
        assert event.choice_jump_number == 3
        assert engine.winner == "Team 1"
        assert len(engine.events) == 12

    def test_tie_among_finishers_only(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"], ["Dee"]), [])
        play(engine, [S, S, N, S, S, N])
        assert engine.winner is None
        assert engine.extra_rounds == 1
        play(engine, [N, S, N])
        assert engine.winner == "Team 2"

    def test_single_team_match(self, make_teams):
        engine = MatchEngine(make_teams(["Ann", "Bob"]), [])
        play(engine, [S, S])
        assert engine.winner == "Team 1"

    def test_outcomes_after_win_ignored(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"]), [])
        play(engine, [S, S])
        assert engine.apply_outcome(S) is None
        assert len(engine.events) == 2

    def test_on_complete_fires_once(self, make_teams):
        seen = []
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), [], on_complete=seen.append)
        play(engine, [S, N, S, N, S, S, F])
        assert len(seen) == 1
        assert seen[0] is engine.record
        assert seen[0].winner == "Team 1"

    def test_record_contents(self, make_teams):
        fixed = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)
        engine = MatchEngine(make_teams(["Ann", "Bob"], ["Cy"]), [], clock=lambda: fixed)
        play(engine, [S, F, S, N])
        record = engine.record
        assert record.date == "2026-10-14T12:00:00+00:00"
        assert record.winner == "Team 1"
        assert record.participants == ("Team 1: Ann, Bob", "Team 2: Cy")
        assert record.stats.to_dict() == {"stick": 2, "noStick": 1, "fall": 1}
        assert list(record.events) == engine.events
        assert record.id is None

    def test_snapshot_after_completion(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"]), [])
        play(engine, [S, S])
        snap = engine.snapshot()
        assert snap["status"] == "completed"
        assert snap["winner"] == "Team 1"
        assert snap["active_team_id"] is None
        assert snap["active_player"] is None
        assert snap["teams"][0]["current_jump"] is None


# ---------- Undo ----------


class TestUndo:
    def test_undo_restores_position(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), ["A", "B", "C"])
        play(engine, [S, S, F])
        event = engine.undo()
        assert event.result == F
        assert engine.teams[0].position == 1
        assert engine.active_team.id == 1
        assert len(engine.events) == 2

    def test_undo_restores_floored_fall(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), ["A", "B", "C"])
        play(engine, [S, N, F])
        assert engine.teams[0].position == 0
        engine.undo()
        assert engine.teams[0].position == 1

    def test_undo_on_empty_log(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), ["A"])
        assert engine.undo() is None

    def test_undo_after_win_refused(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"]), [])
        play(engine, [S, S])
        assert engine.undo() is None
        assert engine.winner == "Team 1"
        assert len(engine.events) == 2

    def test_undo_retracts_tie_extension(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), ["A", "B", "C"])
        play(engine, [S] * 10)
        assert engine.extra_rounds == 1
        engine.undo()
        assert engine.extra_rounds == 0
        assert engine.total_steps == 5
        assert engine.teams[1].position == 4
        engine.apply_outcome(N)
        assert engine.winner == "Team 1"

    def test_undo_rotates_player_back(self, make_teams):
        engine = MatchEngine(make_teams(["Ann", "Bob"], ["Cy"]), ["A", "B"])
        play(engine, [N, N, N])
        engine.undo()
        engine.undo()
        assert engine.active_team.id == 2
        assert engine.active_player.name == "Cy"
        engine.undo()
        assert engine.active_player.name == "Ann"

    def test_undo_is_exact_for_every_short_sequence(self, make_teams):
        """apply then undo returns to the identical snapshot, for every 5-turn sequence."""
        for results in itertools.product(list(JumpResult), repeat=5):
            engine = MatchEngine(make_teams(["Ann", "Bob"], ["Cy"]), ["A"])
            for r in results:
                before = engine.snapshot()
                engine.apply_outcome(r)
                if engine.winner is not None:
                    break
                engine.undo()
                assert engine.snapshot() == before, results
                engine.apply_outcome(r)


# ---------- Event log consistency ----------


class TestEventLog:
    def test_replay_matches_positions(self, make_teams):
        engine = MatchEngine(make_teams(["Ann", "Bob"], ["Cy"], ["Dee"]), ["A", "B", "C"])
        play(engine, [S, F, S, S, S, N, F, S, S, F, S, S, N, S])
        for team in engine.teams:
            assert replay_position(engine.events, team.id) == team.position

    def test_stats_sum_to_events(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), ["A", "B", "C"])
        play(engine, [S, F, N, S, F, F, N])
        stats = engine.stats
        assert stats.total == len(engine.events) == 7
        assert (stats.stick, stats.no_stick, stats.fall) == (2, 2, 3)

    def test_event_round_trip(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), [])
        event = engine.apply_outcome(S)
        d = event.to_dict()
        assert d["isChoiceJump"] is True
        assert d["choiceJumpNumber"] == 1
        assert type(event).from_dict(d) == event


# ---------- Choice jumps ----------


class TestChoiceJumps:
    def test_label_when_nothing_selected(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), ["A"])
        play(engine, [S, N])
        event = engine.apply_outcome(S)
        assert event.jump_name == "Choice Jump 1"
        assert event.is_choice_jump
        assert event.choice_jump_number == 1

    def test_fixed_jumps_are_not_choice_jumps(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), ["A"])
        event = engine.apply_outcome(S)
        assert not event.is_choice_jump
        assert event.choice_jump_number is None

    def test_stored_selection_used(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), ["A"])
        play(engine, [S, N])
        engine.select_choice_jump(1, 1, "X")
        event = engine.apply_outcome(S)
        assert event.jump_name == "X"
        assert engine.snapshot()["teams"][0]["current_jump"] == "Choice Jump 2"

    def test_manual_name_overrides_and_is_stored(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), ["A"])
        play(engine, [S, N])
        engine.select_choice_jump(1, 1, "X")
        event = engine.apply_outcome(N, manual_jump_name="Y")
        assert event.jump_name == "Y"
        assert engine.choice_selections(1) == {1: "Y"}

    def test_manual_name_ignored_on_fixed_jump(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), ["A"])
        event = engine.apply_outcome(S, manual_jump_name="X")
        assert event.jump_name == "A"
        assert engine.choice_selections(1) == {}

    def test_same_jump_for_two_slots_conflicts(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), ["A"])
        engine.select_choice_jump(1, 1, "X")
        with pytest.raises(ChoiceJumpConflictError):
            engine.select_choice_jump(1, 2, "X")
        # another player may pick it
        engine.select_choice_jump(2, 2, "X")
        # reselecting the same slot is fine
        engine.select_choice_jump(1, 1, "X")

    def test_choice_number_must_be_positive(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"]), ["A"])
        with pytest.raises(ValueError):
            engine.select_choice_jump(1, 0, "X")

    def test_available_excludes_order_and_other_slots(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"], ["Cy"]), ["A"])
        library = ["A", "X", "Y", "Y", "Z"]
        assert engine.available_choice_jumps(1, library, 1) == ["X", "Y", "Z"]
        engine.select_choice_jump(1, 1, "X")
        assert engine.available_choice_jumps(1, library, 2) == ["Y", "Z"]
        assert engine.available_choice_jumps(1, library, 1) == ["X", "Y", "Z"]
        assert engine.available_choice_jumps(2, library, 2) == ["X", "Y", "Z"]

    def test_available_sorts_sets(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"]), ["A"])
        assert engine.available_choice_jumps(1, {"Z", "A", "X"}) == ["X", "Z"]

    def test_clear_choice_jump(self, make_teams):
        engine = MatchEngine(make_teams(["Ann"]), ["A"])
        engine.select_choice_jump(1, 1, "X")
        assert engine.clear_choice_jump(1, 1) == "X"
        assert engine.clear_choice_jump(1, 1) is None
        engine.select_choice_jump(1, 2, "X")
