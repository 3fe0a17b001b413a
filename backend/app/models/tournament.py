from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.match import Match
    from app.models.team import Team


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    location: str
    start_date: date
    end_date: date
    notes: Optional[str] = None
    court_count: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Roster must be locked before a format can be applied
    teams_locked: bool = Field(default=False)

    # Applied format: key in the catalog + private copy of the format document
    format_key: Optional[str] = Field(default=None)
    format_json: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))

    # Draw bindings {"random_5_8_1": team_id}; reused on reload, replaced on reroll
    random_assignments: Optional[Dict[str, int]] = Field(default=None, sa_column=Column(JSON, nullable=True))

    # Relationships
    teams: List["Team"] = Relationship(back_populates="tournament")
    matches: List["Match"] = Relationship(back_populates="tournament")
