from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.tournament import Tournament


class Pair(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    category: str = Field(index=True)

    # Member identities. *_ref is the participant identity used for conflict
    # checks across categories (registration id, user id or email).
    player1_name: str
    player1_ref: Optional[str] = Field(default=None)
    player2_name: Optional[str] = Field(default=None)
    player2_ref: Optional[str] = Field(default=None)

    confirmed: bool = Field(default=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="pairs")
