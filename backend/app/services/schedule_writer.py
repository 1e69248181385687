"""
Schedule Writer - persists an allocation for a tournament

Regeneration policy: replace fixture rows. apply() deletes every fixture
under the tournament's groups and inserts one row per scheduled and
unscheduled fixture, then commits once. Readers see either the old schedule
or the new one, never a mix.
"""

import logging
from typing import Dict, List, Optional, Tuple

from sqlmodel import Session, select

from app.models.fixture import Fixture
from app.models.group import TournamentGroup
from app.services.schedule_events import SCHEDULE_CLEARED, SCHEDULE_GENERATED, record_schedule_event
from app.utils.fixture_generation import has_reported_results
from app.utils.schedule_types import AllocationResult
from app.utils.scheduling_errors import AllocationInputError, ScheduleHasResultsError

logger = logging.getLogger(__name__)


class ScheduleWriteSummary:
    """What apply() changed"""

    def __init__(self):
        self.tournament_id: Optional[int] = None
        self.removed_count = 0
        self.inserted_count = 0
        self.scheduled_count = 0
        self.unscheduled_count = 0
        self.event_id: Optional[int] = None
        # FixtureSpec.key -> stored Fixture.id
        self.fixture_ids: Dict[Tuple[int, int, int], int] = {}

    def to_dict(self):
        return {
            "tournament_id": self.tournament_id,
            "removed_count": self.removed_count,
            "inserted_count": self.inserted_count,
            "scheduled_count": self.scheduled_count,
            "unscheduled_count": self.unscheduled_count,
            "event_id": self.event_id,
        }


def get_tournament_group_ids(session: Session, tournament_id: int) -> List[int]:
    return list(session.exec(select(TournamentGroup.id).where(TournamentGroup.tournament_id == tournament_id)).all())


def _guard_results(session: Session, tournament_id: int, group_ids: List[int], force: bool) -> None:
    if not force and has_reported_results(session, group_ids):
        raise ScheduleHasResultsError(
            f"Tournament {tournament_id} has fixtures with reported results; pass force to discard them"
        )


def _delete_fixtures(session: Session, group_ids: List[int]) -> int:
    if not group_ids:
        return 0
    fixtures = session.exec(select(Fixture).where(Fixture.group_id.in_(group_ids))).all()
    for fixture in fixtures:
        session.delete(fixture)
    # Deletes must reach the database before re-inserting the same keys
    session.flush()
    return len(fixtures)


def clear(session: Session, tournament_id: int, force: bool = False, _transactional: bool = False) -> int:
    """
    Delete every fixture of every group under the tournament.

    Returns:
        Number of fixtures removed

    Raises:
        ScheduleHasResultsError: results reported and force not set
    """
    group_ids = get_tournament_group_ids(session, tournament_id)
    _guard_results(session, tournament_id, group_ids, force)

    try:
        removed = _delete_fixtures(session, group_ids)
        record_schedule_event(
            session, tournament_id, SCHEDULE_CLEARED, removed_count=removed, group_ids=group_ids
        )
        if _transactional:
            session.flush()
        else:
            session.commit()
    except Exception:
        if not _transactional:
            session.rollback()
            logger.exception("Clearing schedule for tournament %s failed, transaction rolled back", tournament_id)
        raise

    logger.info("Cleared %d fixtures for tournament %s", removed, tournament_id)
    return removed


def apply(
    session: Session,
    tournament_id: int,
    result: AllocationResult,
    force: bool = False,
) -> ScheduleWriteSummary:
    """
    Replace the tournament's fixtures with an allocation, in one transaction.

    On any failure the transaction is rolled back, the prior schedule stays
    intact and the error propagates.

    Raises:
        ScheduleHasResultsError: results reported and force not set
        AllocationInputError: the result references a group of another tournament
    """
    summary = ScheduleWriteSummary()
    summary.tournament_id = tournament_id

    group_ids = get_tournament_group_ids(session, tournament_id)
    _guard_results(session, tournament_id, group_ids, force)

    known = set(group_ids)
    touched = {p.fixture.group_id for p in result.scheduled} | {u.fixture.group_id for u in result.unscheduled}
    foreign = sorted(touched - known)
    if foreign:
        raise AllocationInputError(f"Groups {foreign} do not belong to tournament {tournament_id}")

    try:
        summary.removed_count = _delete_fixtures(session, group_ids)

        rows = []
        for placement in result.scheduled:
            fixture, slot = placement.fixture, placement.slot
            rows.append(
                (
                    fixture.key,
                    Fixture(
                        group_id=fixture.group_id,
                        pair1_id=fixture.pair1_id,
                        pair2_id=fixture.pair2_id,
                        scheduled_date=slot.day_date,
                        start_time=slot.start_time,
                        court_number=slot.court_number,
                    ),
                )
            )
        for unscheduled in result.unscheduled:
            fixture = unscheduled.fixture
            rows.append(
                (fixture.key, Fixture(group_id=fixture.group_id, pair1_id=fixture.pair1_id, pair2_id=fixture.pair2_id))
            )
        session.add_all([row for _, row in rows])
        session.flush()
        summary.fixture_ids = {key: row.id for key, row in rows}

        summary.scheduled_count = len(result.scheduled)
        summary.unscheduled_count = len(result.unscheduled)
        summary.inserted_count = summary.scheduled_count + summary.unscheduled_count

        event = record_schedule_event(
            session,
            tournament_id,
            SCHEDULE_GENERATED,
            scheduled_count=summary.scheduled_count,
            unscheduled_count=summary.unscheduled_count,
            removed_count=summary.removed_count,
            total_capacity=result.total_capacity,
            group_ids=sorted(known),
        )
        session.flush()
        summary.event_id = event.id

        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Writing schedule for tournament %s failed, transaction rolled back", tournament_id)
        raise

    logger.info(
        "Schedule written for tournament %s: %d scheduled, %d unscheduled, %d replaced",
        tournament_id,
        summary.scheduled_count,
        summary.unscheduled_count,
        summary.removed_count,
    )
    return summary
