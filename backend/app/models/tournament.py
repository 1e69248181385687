from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.group import TournamentGroup
    from app.models.pair import Pair


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    location: Optional[str] = None
    start_date: date
    end_date: date
    available_courts: int = Field(default=3)
    # Category declaration order, e.g. ["male1", "female1", "mixed1"]
    categories: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column_kwargs={"onupdate": lambda: datetime.now(timezone.utc)},
    )

    # Relationships
    pairs: List["Pair"] = Relationship(back_populates="tournament")
    groups: List["TournamentGroup"] = Relationship(
        back_populates="tournament", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
