from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlalchemy.orm import validates
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.fixture import Fixture
    from app.models.tournament import Tournament


class TournamentGroup(SQLModel, table=True):
    __tablename__ = "tournament_group"
    __table_args__ = (
        SAUniqueConstraint("tournament_id", "category", "group_number", name="uq_tournament_category_group"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True, ondelete="CASCADE")
    category: str
    group_number: int  # 1-based within (tournament, category)
    name: str
    capacity: int  # Target pairs-per-group
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="groups")
    members: List["GroupPair"] = Relationship(
        back_populates="group",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "GroupPair.pair_number"},
    )
    fixtures: List["Fixture"] = Relationship(
        back_populates="group", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )


class GroupPair(SQLModel, table=True):
    __tablename__ = "group_pair"
    __table_args__ = (
        SAUniqueConstraint("group_id", "pair_number", name="uq_group_pair_number"),
        SAUniqueConstraint("group_id", "pair_id", name="uq_group_pair"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key="tournament_group.id", index=True, ondelete="CASCADE")
    pair_id: int = Field(foreign_key="pair.id", index=True)
    pair_number: int  # 1..group.capacity

    @validates("pair_number")
    def validate_pair_number(self, key: str, value: int) -> int:
        if value is None or value < 1:
            raise ValueError(f"pair_number must be >= 1, got {value}")
        return value

    # Relationships
    group: "TournamentGroup" = Relationship(back_populates="members")
