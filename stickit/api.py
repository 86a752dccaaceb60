"""
REST API for the Stick It backend.
Thin wrappers around the match service, analytics and persistence.
"""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncGenerator, Generator

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from stickit.analytics import (
    LeaderboardSort,
    build_leaderboard,
    filter_records,
    player_mastery,
    rank_elements,
    summarize_period,
)
from stickit.match_engine import ChoiceJumpConflictError
from stickit.models import JumpResult, MatchRecord, Team
from stickit.periods import Period, period_range
from stickit.persistence import SqliteStorage, StorageError, init_db
from stickit.services import (
    InvalidChoiceJumpError,
    MatchNotFoundError,
    MatchSaveError,
    MatchService,
    MatchServiceError,
    build_teams,
)

# ---------- Logging ----------
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------- Match service (one per process) ----------
_match_service: MatchService | None = None


def get_match_service() -> MatchService:
    """Lazily build the service over SQLite; storage resolves the DB path on every call."""
    global _match_service
    if _match_service is None:
        _match_service = MatchService(SqliteStorage())
    return _match_service


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    init_db()
    logger.info("Database ready")
    yield


# ---------- FastAPI app ----------
app = FastAPI(
    title="Stick It API",
    description="Turn-based jump matches, match history and leaderboards",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Request/Response models ----------


class TeamSpec(BaseModel):
    # ":" separates team name from players in stored participants
    name: str = Field(..., min_length=1, max_length=100, pattern=r"^[^:]+$")
    player_ids: list[int] = Field(..., min_length=1)


class StartMatchRequest(BaseModel):
    teams: list[TeamSpec] | None = Field(None, description="Explicit teams, in turn order")
    player_ids: list[int] | None = Field(None, description="Players to shuffle into teams of team_size")
    team_size: int | None = Field(None, ge=1)
    seed: int | None = Field(None, description="Shuffle seed for reproducible teams")
    jump_order: list[str] | None = Field(None, description="Defaults to the saved jump order")


class OutcomeRequest(BaseModel):
    result: JumpResult
    manual_jump_name: str | None = Field(None, description="Selected jump when on a choice jump")


class ChoiceJumpRequest(BaseModel):
    jump_name: str = Field(..., min_length=1)
    choice_number: int | None = Field(None, ge=1, description="Defaults to the active team's choice slot")


# ---------- Helpers ----------


@contextmanager
def match_errors() -> Generator[None, None, None]:
    """Map service errors to HTTP responses."""
    try:
        yield
    except MatchNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ChoiceJumpConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except (InvalidChoiceJumpError, MatchServiceError) as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except StorageError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e


def _load_history(service: MatchService) -> list[MatchRecord]:
    try:
        return service.storage.load_match_history()
    except StorageError as e:
        logger.error("Could not load match history: %s", e)
        raise HTTPException(status_code=503, detail="Match history could not be loaded") from e


def _filtered_history(service: MatchService, period: Period, offset: int) -> list[MatchRecord]:
    return filter_records(_load_history(service), period_range(period, offset))


def _teams_from_request(req: StartMatchRequest, service: MatchService) -> list[Team]:
    try:
        roster = {p.id: p for p in service.storage.load_roster()}
    except StorageError as e:
        raise HTTPException(status_code=503, detail="Roster could not be loaded") from e

    def lookup(player_id: int):
        player = roster.get(player_id)
        if player is None:
            raise HTTPException(status_code=400, detail=f"Player not found: {player_id}")
        return player

    if req.teams:
        try:
            return [
                Team(id=i, name=spec.name, players=[lookup(pid) for pid in spec.player_ids])
                for i, spec in enumerate(req.teams, start=1)
            ]
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
    if req.player_ids and req.team_size:
        players = [lookup(pid) for pid in req.player_ids]
        try:
            return build_teams(players, req.team_size, seed=req.seed)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
    raise HTTPException(status_code=400, detail="Provide teams, or player_ids with team_size")


# ---------- Roster & jumps (read-only) ----------


@app.get("/players")
def get_players(service: MatchService = Depends(get_match_service)) -> dict[str, Any]:
    with match_errors():
        return {"players": [p.to_dict() for p in service.storage.load_roster()]}


@app.get("/jumps")
def get_jumps(service: MatchService = Depends(get_match_service)) -> dict[str, Any]:
    """Jump library and the saved jump order."""
    with match_errors():
        return {
            "library": service.storage.load_jump_library(),
            "order": service.storage.load_jump_order(),
        }


# ---------- Matches ----------


@app.post("/matches")
def start_match(req: StartMatchRequest, service: MatchService = Depends(get_match_service)) -> dict[str, Any]:
    """Start a match from explicit teams or a shuffled selection of players."""
    teams = _teams_from_request(req, service)
    with match_errors():
        match_id = service.start_match(teams, jump_order=req.jump_order)
        return service.snapshot(match_id)


@app.get("/matches/{match_id}")
def get_match(match_id: str, service: MatchService = Depends(get_match_service)) -> dict[str, Any]:
    with match_errors():
        return service.snapshot(match_id)


@app.delete("/matches/{match_id}")
def delete_match(match_id: str, service: MatchService = Depends(get_match_service)) -> dict[str, Any]:
    """Stop hosting a match. 400 while a finished match still has an unsaved result."""
    with match_errors():
        service.discard(match_id)
        return {"discarded": match_id}


@app.post("/matches/{match_id}/outcome")
def post_outcome(
    match_id: str,
    req: OutcomeRequest,
    service: MatchService = Depends(get_match_service),
) -> dict[str, Any]:
    """
    Record the active player's turn. Outcomes after the match is decided are ignored
    (applied=false). 503 if the match completed but could not be saved; retry via /save.
    """
    with match_errors():
        try:
            event = service.apply_outcome(match_id, req.result, req.manual_jump_name)
        except MatchSaveError as e:
            raise HTTPException(
                status_code=503,
                detail={"message": str(e), "match": service.snapshot(match_id)},
            ) from e
        return {
            "applied": event is not None,
            "event": event.to_dict() if event is not None else None,
            "match": service.snapshot(match_id),
        }


@app.post("/matches/{match_id}/undo")
def post_undo(match_id: str, service: MatchService = Depends(get_match_service)) -> dict[str, Any]:
    """Undo the last turn. undone=false when there is nothing to undo or the match is decided."""
    with match_errors():
        event = service.undo(match_id)
        return {
            "undone": event is not None,
            "event": event.to_dict() if event is not None else None,
            "match": service.snapshot(match_id),
        }


@app.get("/matches/{match_id}/choice-jumps")
def get_choice_jumps(match_id: str, service: MatchService = Depends(get_match_service)) -> dict[str, Any]:
    with match_errors():
        return {"available": service.available_choice_jumps(match_id)}


@app.post("/matches/{match_id}/choice-jumps")
def post_choice_jump(
    match_id: str,
    req: ChoiceJumpRequest,
    service: MatchService = Depends(get_match_service),
) -> dict[str, Any]:
    with match_errors():
        service.select_choice_jump(match_id, req.jump_name, req.choice_number)
        return service.snapshot(match_id)


@app.post("/matches/{match_id}/save")
def retry_save(match_id: str, service: MatchService = Depends(get_match_service)) -> dict[str, Any]:
    """Retry persisting a completed match whose first save failed."""
    with match_errors():
        try:
            record = service.retry_save(match_id)
        except MatchSaveError as e:
            raise HTTPException(status_code=503, detail=str(e)) from e
        if record is None:
            raise HTTPException(status_code=400, detail="Match is not complete")
        return {"record": record.to_dict()}


# ---------- History & analytics ----------


@app.get("/history")
def get_history(
    period: Period = Period.WEEK,
    offset: int = Query(default=0, ge=0),
    service: MatchService = Depends(get_match_service),
) -> dict[str, Any]:
    records = _load_history(service)
    summary = summarize_period(records, period, offset)
    kept = filter_records(records, summary.date_range)
    return {"summary": summary.to_dict(), "matches": [r.to_dict() for r in kept]}


@app.get("/analytics/leaderboard")
def get_leaderboard(
    period: Period = Period.WEEK,
    offset: int = Query(default=0, ge=0),
    sort: LeaderboardSort = LeaderboardSort.WIN_RATE,
    service: MatchService = Depends(get_match_service),
) -> dict[str, Any]:
    entries = build_leaderboard(_filtered_history(service, period, offset), sort)
    return {"period": period.value, "offset": offset, "sort": sort.value, "entries": [e.to_dict() for e in entries]}


@app.get("/analytics/elements")
def get_elements(
    period: Period = Period.WEEK,
    offset: int = Query(default=0, ge=0),
    service: MatchService = Depends(get_match_service),
) -> dict[str, Any]:
    rankings = rank_elements(_filtered_history(service, period, offset))
    return {"period": period.value, "offset": offset, "elements": [r.to_dict() for r in rankings]}


@app.get("/analytics/players/{player_name}")
def get_player_mastery(
    player_name: str,
    period: Period = Period.WEEK,
    offset: int = Query(default=0, ge=0),
    service: MatchService = Depends(get_match_service),
) -> dict[str, Any]:
    jumps = player_mastery(_filtered_history(service, period, offset), player_name)
    return {"player_name": player_name, "jumps": [j.to_dict() for j in jumps]}


# ---------- Run with: uvicorn stickit.api:app --reload ----------
