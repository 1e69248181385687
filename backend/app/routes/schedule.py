from datetime import date, datetime, time
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, model_validator
from sqlmodel import Session, select

from app.database import get_session
from app.models.fixture import Fixture
from app.models.group import TournamentGroup
from app.routes.tournaments import get_tournament_or_404
from app.services.schedule_events import list_schedule_events
from app.services.schedule_grid import build_schedule_grid
from app.services.schedule_orchestrator import (
    ScheduleParameters,
    capacity_preview,
    clear_schedule,
    generate_schedule,
)
from app.settings import DEFAULT_BREAK_MINUTES, DEFAULT_MATCH_DURATION_MINUTES
from app.utils.schedule_types import SchedulingWindow
from app.utils.scheduling_errors import ScheduleBusyError, ScheduleHasResultsError, SchedulingValidationError

router = APIRouter()


class WindowRequest(BaseModel):
    day_date: date
    start_time: time
    end_time: time

    @model_validator(mode="after")
    def validate_time_range(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ScheduleRequest(BaseModel):
    windows: List[WindowRequest]
    courts_available: Optional[int] = None  # Defaults to tournament.available_courts
    match_duration_minutes: int = DEFAULT_MATCH_DURATION_MINUTES
    break_minutes: int = DEFAULT_BREAK_MINUTES
    category_order: Optional[List[str]] = None
    dry_run: bool = False
    force: bool = False


class FixtureResponse(BaseModel):
    id: int
    group_id: int
    group_name: str
    category: str
    pair1_id: int
    pair2_id: int
    scheduled_date: Optional[date]
    start_time: Optional[time]
    court_number: Optional[int]
    winner_pair_id: Optional[int] = None


class ScheduleResponse(BaseModel):
    tournament_id: int
    scheduled: int
    unscheduled: int
    fixtures: List[FixtureResponse]


class ScheduleEventResponse(BaseModel):
    id: int
    tournament_id: int
    action: str
    scheduled_count: int
    unscheduled_count: int
    removed_count: int
    total_capacity: int
    group_ids: Optional[List[int]] = None
    created_at: datetime

    class Config:
        from_attributes = True


def _to_parameters(request: ScheduleRequest, default_courts: int) -> ScheduleParameters:
    return ScheduleParameters(
        windows=[SchedulingWindow(w.day_date, w.start_time, w.end_time) for w in request.windows],
        courts_available=request.courts_available if request.courts_available is not None else default_courts,
        match_duration_minutes=request.match_duration_minutes,
        break_minutes=request.break_minutes,
        category_order=request.category_order,
        dry_run=request.dry_run,
        force=request.force,
    )


@router.post("/tournaments/{tournament_id}/schedule")
def generate_tournament_schedule(
    tournament_id: int, request: ScheduleRequest, session: Session = Depends(get_session)
):
    """
    Generate the tournament schedule (replaces stored fixtures).

    The response lists every stored fixture with its id and resolved
    schedule. Fixtures that do not fit are stored unscheduled (null date,
    time and court); that is not an error. dry_run computes without writing.
    """
    tournament = get_tournament_or_404(session, tournament_id)

    try:
        params = _to_parameters(request, tournament.available_courts)
        result = generate_schedule(session, tournament_id, params)
    except (ScheduleHasResultsError, ScheduleBusyError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SchedulingValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return result.to_dict()


@router.get("/tournaments/{tournament_id}/schedule", response_model=ScheduleResponse)
def get_tournament_schedule(
    tournament_id: int,
    category: Optional[str] = Query(None),
    group_id: Optional[int] = Query(None),
    session: Session = Depends(get_session),
):
    """Stored fixtures in schedule order; unscheduled fixtures last"""
    get_tournament_or_404(session, tournament_id)

    query = (
        select(Fixture, TournamentGroup)
        .join(TournamentGroup, Fixture.group_id == TournamentGroup.id)
        .where(TournamentGroup.tournament_id == tournament_id)
    )
    if category is not None:
        query = query.where(TournamentGroup.category == category)
    if group_id is not None:
        query = query.where(Fixture.group_id == group_id)

    rows = session.exec(query).all()
    rows = sorted(
        rows,
        key=lambda r: (
            not r[0].is_scheduled,
            r[0].scheduled_date or date.max,
            r[0].start_time or time.max,
            r[0].court_number or 0,
            r[0].id,
        ),
    )

    fixtures = [
        FixtureResponse(
            id=fixture.id,
            group_id=group.id,
            group_name=group.name,
            category=group.category,
            pair1_id=fixture.pair1_id,
            pair2_id=fixture.pair2_id,
            scheduled_date=fixture.scheduled_date,
            start_time=fixture.start_time,
            court_number=fixture.court_number,
            winner_pair_id=fixture.winner_pair_id,
        )
        for fixture, group in rows
    ]
    scheduled = sum(1 for f in fixtures if f.scheduled_date is not None)
    return ScheduleResponse(
        tournament_id=tournament_id, scheduled=scheduled, unscheduled=len(fixtures) - scheduled, fixtures=fixtures
    )


@router.delete("/tournaments/{tournament_id}/schedule")
def clear_tournament_schedule(
    tournament_id: int, force: bool = Query(False), session: Session = Depends(get_session)
):
    """Delete every fixture of the tournament"""
    get_tournament_or_404(session, tournament_id)

    try:
        removed = clear_schedule(session, tournament_id, force=force)
    except (ScheduleHasResultsError, ScheduleBusyError) as e:
        raise HTTPException(status_code=409, detail=str(e))

    return {"tournament_id": tournament_id, "removed": removed}


@router.post("/tournaments/{tournament_id}/schedule/capacity")
def preview_schedule_capacity(
    tournament_id: int, request: ScheduleRequest, session: Session = Depends(get_session)
):
    """Slot capacity of the windows vs. fixtures required by the current groups"""
    tournament = get_tournament_or_404(session, tournament_id)

    try:
        return capacity_preview(session, tournament_id, _to_parameters(request, tournament.available_courts))
    except SchedulingValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/tournaments/{tournament_id}/schedule/grid")
def get_schedule_grid(
    tournament_id: int,
    display_slot_minutes: Optional[int] = Query(None, ge=1),
    session: Session = Depends(get_session),
):
    """Fixtures bucketed by date and display row"""
    get_tournament_or_404(session, tournament_id)
    return build_schedule_grid(session, tournament_id, display_slot_minutes)


@router.get("/tournaments/{tournament_id}/schedule/events", response_model=List[ScheduleEventResponse])
def get_schedule_events(
    tournament_id: int,
    limit: int = Query(50, ge=1, le=500),
    session: Session = Depends(get_session),
):
    """Schedule generation/clear log, newest first"""
    get_tournament_or_404(session, tournament_id)
    return list_schedule_events(session, tournament_id, limit)
