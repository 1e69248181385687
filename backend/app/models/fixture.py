from datetime import date, datetime, time, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from app.models.group import TournamentGroup

# Any of these set means a result was reported for the fixture
RESULT_COLUMNS = (
    "winner_pair_id",
    "pair1_games",
    "pair2_games",
    "pair1_set1",
    "pair1_set2",
    "pair1_set3",
    "pair2_set1",
    "pair2_set2",
    "pair2_set3",
    "reported_at",
)


class Fixture(SQLModel, table=True):
    __table_args__ = (
        SAUniqueConstraint("group_id", "pair1_id", "pair2_id", name="uq_fixture_group_pairs"),
        CheckConstraint("pair1_id <> pair2_id", name="ck_fixture_distinct_pairs"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key="tournament_group.id", index=True, ondelete="CASCADE")
    pair1_id: int = Field(foreign_key="pair.id", index=True)
    pair2_id: int = Field(foreign_key="pair.id", index=True)

    # Schedule (null until allocated)
    scheduled_date: Optional[date] = Field(default=None, index=True)
    start_time: Optional[time] = Field(default=None)
    court_number: Optional[int] = Field(default=None)

    # Reserved for the result-reporting subsystem; never written here
    pair1_games: Optional[int] = Field(default=None)
    pair2_games: Optional[int] = Field(default=None)
    pair1_set1: Optional[int] = Field(default=None)
    pair1_set2: Optional[int] = Field(default=None)
    pair1_set3: Optional[int] = Field(default=None)
    pair2_set1: Optional[int] = Field(default=None)
    pair2_set2: Optional[int] = Field(default=None)
    pair2_set3: Optional[int] = Field(default=None)
    winner_pair_id: Optional[int] = Field(default=None, foreign_key="pair.id")
    reported_at: Optional[datetime] = Field(default=None)
    reported_by: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Relationships
    group: "TournamentGroup" = Relationship(back_populates="fixtures")

    @property
    def is_scheduled(self) -> bool:
        return self.scheduled_date is not None and self.start_time is not None and self.court_number is not None

    @property
    def has_result(self) -> bool:
        return any(getattr(self, column) is not None for column in RESULT_COLUMNS)
