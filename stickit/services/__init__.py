"""
Service layer: hosting live matches, recording results, building teams.
The turn engine itself never persists; the recorder hands finished matches to storage.
"""
from .match_recorder import MatchRecorder, MatchSaveError
from .match_service import (
    MatchService,
    MatchSession,
    MatchServiceError,
    MatchNotFoundError,
    InvalidChoiceJumpError,
)
from .team_builder import build_teams

__all__ = [
    "MatchRecorder",
    "MatchSaveError",
    "MatchService",
    "MatchSession",
    "MatchServiceError",
    "MatchNotFoundError",
    "InvalidChoiceJumpError",
    "build_teams",
]
