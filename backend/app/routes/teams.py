"""
Team Management API Routes
Provides CRUD operations for a tournament's roster.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import Session

from app.database import get_session
from app.models.team import Team
from app.models.tournament import Tournament
from app.routes.tournaments import get_tournament_or_404
from app.services.bracket_service import get_roster

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class TeamCreateRequest(BaseModel):
    name: str
    seed_number: Optional[int] = None
    players: Optional[List[str]] = None

    @field_validator("seed_number")
    @classmethod
    def validate_seed(cls, v):
        if v is not None and v < 1:
            raise ValueError("seed_number must be >= 1")
        return v


class TeamUpdateRequest(BaseModel):
    name: Optional[str] = None
    seed_number: Optional[int] = None
    players: Optional[List[str]] = None

    @field_validator("seed_number")
    @classmethod
    def validate_seed(cls, v):
        if v is not None and v < 1:
            raise ValueError("seed_number must be >= 1")
        return v


class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tournament_id: int
    name: str
    seed_number: Optional[int] = None
    players: Optional[List[str]] = None
    created_at: datetime


def _ensure_roster_open(tournament: Tournament) -> None:
    if tournament.teams_locked:
        raise HTTPException(status_code=409, detail="Teams are locked for this tournament")


def _commit_team(session: Session, team: Team) -> Team:
    try:
        session.add(team)
        session.commit()
        session.refresh(team)
        return team
    except Exception as e:
        session.rollback()
        # Check for constraint violations
        if "UNIQUE constraint failed" in str(e) or "IntegrityError" in str(type(e).__name__):
            if "seed" in str(e):
                raise HTTPException(
                    status_code=409, detail=f"Team with seed {team.seed_number} already exists for this tournament"
                )
            elif "name" in str(e):
                raise HTTPException(
                    status_code=409, detail=f"Team with name '{team.name}' already exists for this tournament"
                )
        raise HTTPException(status_code=400, detail=str(e))


def _get_team_or_404(session: Session, tournament_id: int, team_id: int) -> Team:
    team = session.get(Team, team_id)
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    if team.tournament_id != tournament_id:
        raise HTTPException(status_code=400, detail="Team does not belong to this tournament")
    return team


# ============================================================================
# Team CRUD Endpoints
# ============================================================================


@router.get("/tournaments/{tournament_id}/teams", response_model=List[TeamResponse])
def get_teams(tournament_id: int, session: Session = Depends(get_session)):
    """
    Get all teams for a tournament.

    Returns teams in deterministic order:
    1. seed_number ascending (nulls last)
    2. id ascending
    """
    get_tournament_or_404(session, tournament_id)
    return get_roster(session, tournament_id)


@router.post("/tournaments/{tournament_id}/teams", response_model=TeamResponse, status_code=201)
def create_team(tournament_id: int, request: TeamCreateRequest, session: Session = Depends(get_session)):
    """
    Create a new team for a tournament.

    Constraints:
    - roster must not be locked
    - (tournament_id, seed_number) must be unique if seed_number is not null
    - (tournament_id, name) must be unique
    """
    tournament = get_tournament_or_404(session, tournament_id)
    _ensure_roster_open(tournament)

    team = Team(
        tournament_id=tournament_id,
        name=request.name,
        seed_number=request.seed_number,
        players=request.players,
    )
    return _commit_team(session, team)


@router.patch("/tournaments/{tournament_id}/teams/{team_id}", response_model=TeamResponse)
def update_team(tournament_id: int, team_id: int, request: TeamUpdateRequest, session: Session = Depends(get_session)):
    """
    Update a team's name, seed or players.
    """
    tournament = get_tournament_or_404(session, tournament_id)
    _ensure_roster_open(tournament)
    team = _get_team_or_404(session, tournament_id, team_id)

    if request.name is not None:
        team.name = request.name
    if request.seed_number is not None:
        team.seed_number = request.seed_number
    if request.players is not None:
        team.players = request.players

    return _commit_team(session, team)


@router.delete("/tournaments/{tournament_id}/teams/{team_id}", status_code=204)
def delete_team(tournament_id: int, team_id: int, session: Session = Depends(get_session)):
    """
    Delete a team.
    """
    tournament = get_tournament_or_404(session, tournament_id)
    _ensure_roster_open(tournament)
    team = _get_team_or_404(session, tournament_id, team_id)

    session.delete(team)
    session.commit()

    return None
