from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.tournament import Tournament


class Match(SQLModel, table=True):
    __table_args__ = (
        SAUniqueConstraint("tournament_id", "template_match_id", name="uq_match_tournament_template_id"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)

    # Template identity: id used by winner_X / loser_X references, and the total order
    template_match_id: int
    order_index: int

    stage: Optional[str] = Field(default=None)  # "1/4 Finale", "Finale", ...
    rotation_group: Optional[str] = Field(default=None)
    bracket_location: Optional[str] = Field(default=None)
    ranking_game: bool = Field(default=False)
    ranking_label: Optional[str] = Field(default=None)

    # Symbolic slot specifiers ("TS1", "random_5_8", "winner_3", ...)
    slot1_source: str
    slot2_source: str

    # Authoritative result state
    score1: Optional[int] = Field(default=None)
    score2: Optional[int] = Field(default=None)
    winner_slot: Optional[int] = Field(default=None)  # 1 | 2 | None
    # Entrants the result was recorded against; a result stands only for them
    decided_team1_id: Optional[int] = Field(default=None, foreign_key="team.id")
    decided_team2_id: Optional[int] = Field(default=None, foreign_key="team.id")

    # Last resolved entrants (derived; rewritten after every rebuild)
    team1_id: Optional[int] = Field(default=None, foreign_key="team.id")
    team2_id: Optional[int] = Field(default=None, foreign_key="team.id")

    court_number: Optional[int] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="matches")
