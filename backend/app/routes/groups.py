from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, field_validator
from sqlmodel import Session, select

from app.database import get_session
from app.models.fixture import Fixture
from app.models.group import TournamentGroup
from app.models.pair import Pair
from app.routes.tournaments import get_tournament_or_404
from app.services.schedule_grid import pair_label
from app.services.schedule_orchestrator import build_category_groups, tournament_lock
from app.settings import DEFAULT_GROUP_SIZE
from app.utils.fixture_generation import create_missing_fixtures
from app.utils.group_partition import reset_category_groups
from app.utils.scheduling_errors import (
    GroupLayoutConflictError,
    ScheduleBusyError,
    ScheduleHasResultsError,
    SchedulingValidationError,
)

router = APIRouter()


class AutoGroupRequest(BaseModel):
    category: str
    target_group_size: int = DEFAULT_GROUP_SIZE

    @field_validator("category")
    @classmethod
    def validate_category(cls, v):
        if not v or not v.strip():
            raise ValueError("category is required")
        return v.strip()


class GroupMemberResponse(BaseModel):
    pair_number: int
    pair_id: int
    label: str


class GroupResponse(BaseModel):
    id: int
    tournament_id: int
    category: str
    group_number: int
    name: str
    capacity: int
    members: List[GroupMemberResponse]
    fixtures_count: int


def _group_response(session: Session, group: TournamentGroup) -> GroupResponse:
    pair_ids = [m.pair_id for m in group.members]
    pairs = {p.id: p for p in session.exec(select(Pair).where(Pair.id.in_(pair_ids))).all()} if pair_ids else {}
    return GroupResponse(
        id=group.id,
        tournament_id=group.tournament_id,
        category=group.category,
        group_number=group.group_number,
        name=group.name,
        capacity=group.capacity,
        members=[
            GroupMemberResponse(pair_number=m.pair_number, pair_id=m.pair_id, label=pair_label(pairs.get(m.pair_id)))
            for m in group.members
        ],
        fixtures_count=len(group.fixtures),
    )


@router.get("/tournaments/{tournament_id}/groups", response_model=List[GroupResponse])
def list_groups(
    tournament_id: int,
    category: Optional[str] = Query(None),
    session: Session = Depends(get_session),
):
    """Groups with their members, by category then group number"""
    get_tournament_or_404(session, tournament_id)

    query = select(TournamentGroup).where(TournamentGroup.tournament_id == tournament_id)
    if category is not None:
        query = query.where(TournamentGroup.category == category)
    groups = session.exec(query.order_by(TournamentGroup.category, TournamentGroup.group_number)).all()
    return [_group_response(session, g) for g in groups]


@router.post("/tournaments/{tournament_id}/groups/auto")
def auto_group_category(tournament_id: int, request: AutoGroupRequest, session: Session = Depends(get_session)):
    """
    Partition a category's confirmed pairs into groups and create their fixtures.

    Idempotent: repeating the call with unchanged registrations writes nothing.
    """
    get_tournament_or_404(session, tournament_id)

    try:
        result = build_category_groups(session, tournament_id, request.category, request.target_group_size)
    except (GroupLayoutConflictError, ScheduleBusyError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SchedulingValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {**result.to_dict(), "groups": [_group_response(session, g) for g in result.groups]}


@router.delete("/tournaments/{tournament_id}/groups")
def reset_groups(
    tournament_id: int,
    category: str = Query(...),
    force: bool = Query(False),
    session: Session = Depends(get_session),
):
    """Delete a category's groups, memberships and fixtures"""
    get_tournament_or_404(session, tournament_id)

    try:
        with tournament_lock(tournament_id):
            deleted = reset_category_groups(session, tournament_id, category, force=force)
    except (ScheduleHasResultsError, ScheduleBusyError) as e:
        raise HTTPException(status_code=409, detail=str(e))

    return {"tournament_id": tournament_id, "category": category, "deleted_groups": deleted}


@router.post("/tournaments/{tournament_id}/groups/{group_id}/fixtures")
def create_group_fixtures(tournament_id: int, group_id: int, session: Session = Depends(get_session)):
    """Create the fixtures a group is missing (after a group edit)"""
    get_tournament_or_404(session, tournament_id)

    group = session.get(TournamentGroup, group_id)
    if not group or group.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Group not found")

    try:
        with tournament_lock(tournament_id):
            created = create_missing_fixtures(session, group_id)
    except ScheduleBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SchedulingValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    total = len(session.exec(select(Fixture.id).where(Fixture.group_id == group_id)).all())
    return {"group_id": group_id, "created": len(created), "fixtures_total": total}
