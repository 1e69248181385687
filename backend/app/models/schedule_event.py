"""Schedule event log consumed by the audit/notification layer."""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel


class ScheduleEvent(SQLModel, table=True):
    """One row per schedule generation or clear."""

    __tablename__ = "schedule_event"

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    action: str  # schedule_generated|schedule_cleared
    scheduled_count: int = Field(default=0)
    unscheduled_count: int = Field(default=0)
    removed_count: int = Field(default=0)
    total_capacity: int = Field(default=0)
    group_ids: Optional[List[int]] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
