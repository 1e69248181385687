"""
Schedule event log.

Every generation and clear leaves one ScheduleEvent row, written in the same
transaction as the fixture changes it describes. The audit and notification
layers read this feed; nothing here delivers notifications.
"""

from typing import List, Optional, Sequence

from sqlmodel import Session, select

from app.models.schedule_event import ScheduleEvent

SCHEDULE_GENERATED = "schedule_generated"
SCHEDULE_CLEARED = "schedule_cleared"


def record_schedule_event(
    session: Session,
    tournament_id: int,
    action: str,
    scheduled_count: int = 0,
    unscheduled_count: int = 0,
    removed_count: int = 0,
    total_capacity: int = 0,
    group_ids: Optional[Sequence[int]] = None,
) -> ScheduleEvent:
    """Add an event to the session; the caller owns the commit"""
    if action not in (SCHEDULE_GENERATED, SCHEDULE_CLEARED):
        raise ValueError(f"Unknown schedule event action: {action}")

    event = ScheduleEvent(
        tournament_id=tournament_id,
        action=action,
        scheduled_count=scheduled_count,
        unscheduled_count=unscheduled_count,
        removed_count=removed_count,
        total_capacity=total_capacity,
        group_ids=sorted(set(group_ids)) if group_ids else [],
    )
    session.add(event)
    return event


def list_schedule_events(session: Session, tournament_id: int, limit: int = 50) -> List[ScheduleEvent]:
    """Newest first"""
    return list(
        session.exec(
            select(ScheduleEvent)
            .where(ScheduleEvent.tournament_id == tournament_id)
            .order_by(ScheduleEvent.id.desc())
            .limit(limit)
        ).all()
    )
