from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator, model_validator
from sqlmodel import Session, select

from app.database import get_session
from app.models.match import Match
from app.models.team import Team
from app.models.tournament import Tournament
from app.services.bracket_service import set_teams_locked

router = APIRouter()


class TournamentCreate(BaseModel):
    name: str
    location: str
    start_date: date
    end_date: date
    notes: Optional[str] = None
    court_count: int = 0

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("court_count")
    @classmethod
    def validate_court_count(cls, v):
        if v < 0:
            raise ValueError("court_count must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_date_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be >= start_date")
        return self


class TournamentUpdate(BaseModel):
    name: Optional[str] = None
    location: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None
    court_count: Optional[int] = None

    @field_validator("court_count")
    @classmethod
    def validate_court_count(cls, v):
        if v is not None and v < 0:
            raise ValueError("court_count must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_date_range(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be >= start_date")
        return self


class TournamentResponse(BaseModel):
    id: int
    name: str
    location: str
    start_date: date
    end_date: date
    notes: Optional[str]
    court_count: int
    teams_locked: bool
    format_key: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


def get_tournament_or_404(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(session: Session = Depends(get_session)):
    """List all tournaments"""
    return session.exec(select(Tournament)).all()


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(tournament_data: TournamentCreate, session: Session = Depends(get_session)):
    """Create a new tournament"""
    tournament = Tournament(**tournament_data.model_dump())
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Get a tournament by ID"""
    return get_tournament_or_404(session, tournament_id)


@router.put("/tournaments/{tournament_id}", response_model=TournamentResponse)
def update_tournament(tournament_id: int, tournament_data: TournamentUpdate, session: Session = Depends(get_session)):
    """Update tournament details (not its roster or format)"""
    tournament = get_tournament_or_404(session, tournament_id)

    update_data = tournament_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(tournament, field, value)

    if tournament.end_date < tournament.start_date:
        raise HTTPException(status_code=422, detail="end_date must be >= start_date")

    tournament.updated_at = datetime.utcnow()
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.delete("/tournaments/{tournament_id}", status_code=204)
def delete_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Delete a tournament with its matches and teams"""
    tournament = get_tournament_or_404(session, tournament_id)

    # Matches reference teams: delete them first
    for match in session.exec(select(Match).where(Match.tournament_id == tournament_id)).all():
        session.delete(match)
    session.flush()
    for team in session.exec(select(Team).where(Team.tournament_id == tournament_id)).all():
        session.delete(team)
    session.flush()

    session.delete(tournament)
    session.commit()
    return None


@router.post("/tournaments/{tournament_id}/teams/lock", response_model=TournamentResponse)
def lock_teams(tournament_id: int, session: Session = Depends(get_session)):
    """Freeze the roster so a format can be selected"""
    tournament = get_tournament_or_404(session, tournament_id)
    team_count = len(session.exec(select(Team).where(Team.tournament_id == tournament_id)).all())
    if team_count < 2:
        raise HTTPException(status_code=409, detail="At least 2 teams are required to lock the roster")

    set_teams_locked(session, tournament, True)
    session.refresh(tournament)
    return tournament


@router.post("/tournaments/{tournament_id}/teams/unlock", response_model=TournamentResponse)
def unlock_teams(tournament_id: int, session: Session = Depends(get_session)):
    """Unfreeze the roster. Discards the selected format, its matches and its draw."""
    tournament = get_tournament_or_404(session, tournament_id)
    set_teams_locked(session, tournament, False)
    session.refresh(tournament)
    return tournament
