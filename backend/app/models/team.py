from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.tournament import Tournament


class Team(SQLModel, table=True):
    __table_args__ = (
        # Enforce unique seeds within a tournament (where seed is not null)
        SAUniqueConstraint("tournament_id", "seed_number", name="uq_tournament_seed"),
        SAUniqueConstraint("tournament_id", "name", name="uq_tournament_team_name"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    name: str
    seed_number: Optional[int] = Field(default=None)  # 1-based (TS1 = strongest)
    players: Optional[List[str]] = Field(default=None, sa_column=Column(JSON, nullable=True))  # display only
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="teams")
