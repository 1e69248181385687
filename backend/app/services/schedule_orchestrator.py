"""
Schedule Orchestrator Service

Runs the read-compute-write pipeline for one tournament:
1. Validate parameters and build the slot grid
2. Load groups and memberships
3. Generate round-robin fixtures per group
4. Allocate fixtures to slots
5. Persist through the schedule writer (skipped on dry run)

Generation for a tournament is a critical section: a second request for the
same tournament waits for the per-tournament lock and fails with
ScheduleBusyError when the wait times out.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from sqlmodel import Session, select

from app.models.group import TournamentGroup
from app.models.tournament import Tournament
from app.services import schedule_writer
from app.settings import SCHEDULE_LOCK_TIMEOUT_SECONDS
from app.utils.court_allocator import allocate
from app.utils.fixture_generation import create_missing_fixtures, generate_fixtures, load_group_specs, rr_fixture_count
from app.utils.group_partition import partition_category
from app.utils.pair_access import list_categories
from app.utils.schedule_types import AllocationResult, FixtureSpec, SchedulingWindow
from app.utils.scheduling_errors import EmptyInputError, ScheduleBusyError, SchedulingError
from app.utils.slot_grid import build_grid, grid_capacity, slots_per_window

logger = logging.getLogger(__name__)

# ============================================================================
# Per-tournament lock registry
# ============================================================================

_registry_lock = threading.Lock()
# tournament_id -> (lock, number of holders and waiters)
_tournament_locks: Dict[int, Tuple[threading.Lock, int]] = {}


def _checkout_lock(tournament_id: int) -> threading.Lock:
    with _registry_lock:
        lock, users = _tournament_locks.get(tournament_id, (None, 0))
        if lock is None:
            lock = threading.Lock()
        _tournament_locks[tournament_id] = (lock, users + 1)
        return lock


def _return_lock(tournament_id: int) -> None:
    with _registry_lock:
        lock, users = _tournament_locks[tournament_id]
        if users <= 1:
            del _tournament_locks[tournament_id]
        else:
            _tournament_locks[tournament_id] = (lock, users - 1)


@contextmanager
def tournament_lock(tournament_id: int, timeout: Optional[float] = None) -> Iterator[None]:
    """
    Serialize schedule writes for one tournament within this process.

    The registry entry is dropped once nobody holds or waits for the lock.
    """
    if timeout is None:
        timeout = SCHEDULE_LOCK_TIMEOUT_SECONDS

    lock = _checkout_lock(tournament_id)
    try:
        if not lock.acquire(timeout=timeout):
            raise ScheduleBusyError(f"Schedule generation for tournament {tournament_id} is already running")
        try:
            yield
        finally:
            lock.release()
    finally:
        _return_lock(tournament_id)


# ============================================================================
# Request / Response Models
# ============================================================================


@dataclass
class ScheduleParameters:
    """Inputs of one generation run"""

    windows: List[SchedulingWindow]
    courts_available: int
    match_duration_minutes: int
    break_minutes: int
    category_order: Optional[List[str]] = None
    dry_run: bool = False
    force: bool = False


@dataclass
class ScheduleRunResult:
    """Complete result of a generation run"""

    tournament_id: int
    dry_run: bool = False
    status: str = "success"
    categories: List[str] = field(default_factory=list)
    groups_count: int = 0
    allocation: Optional[AllocationResult] = None
    write: Optional[schedule_writer.ScheduleWriteSummary] = None
    failed_step: Optional[str] = None
    error_message: Optional[str] = None

    def to_dict(self):
        fixture_ids = self.write.fixture_ids if self.write else None
        allocation = self.allocation.to_dict(fixture_ids) if self.allocation else {}
        result = {
            "status": self.status,
            "tournament_id": self.tournament_id,
            "dry_run": self.dry_run,
            "categories": self.categories,
            "groups_count": self.groups_count,
            "scheduled": allocation.get("scheduled", 0),
            "unscheduled": allocation.get("unscheduled", 0),
            "total_capacity": allocation.get("total_capacity", 0),
            "total_requested": allocation.get("total_requested", 0),
            "fixtures": allocation.get("fixtures", []),
            "unscheduled_fixtures": allocation.get("unscheduled_fixtures", []),
            "write": self.write.to_dict() if self.write else None,
        }
        if self.dry_run and self.allocation:
            result["placements"] = [
                {**p.fixture.to_dict(), **p.slot.to_dict()} for p in self.allocation.scheduled
            ]
        if self.failed_step:
            result["failed_step"] = self.failed_step
            result["error_message"] = self.error_message
        return result


# ============================================================================
# Helpers
# ============================================================================


def _get_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise ValueError(f"Tournament {tournament_id} not found")
    return tournament


def _load_groups(session: Session, tournament_id: int) -> List[TournamentGroup]:
    return list(
        session.exec(
            select(TournamentGroup)
            .where(TournamentGroup.tournament_id == tournament_id)
            .order_by(TournamentGroup.category, TournamentGroup.group_number)
        ).all()
    )


def resolve_category_order(
    session: Session, tournament_id: int, override: Optional[List[str]] = None
) -> List[str]:
    """Request override first, then the tournament's declaration order"""
    declared = list_categories(session, tournament_id)
    order = [c for c in (override or []) if c in declared]
    order += [c for c in declared if c not in order]
    return order


# ============================================================================
# Main Orchestrator Functions
# ============================================================================


def generate_schedule(
    session: Session,
    tournament_id: int,
    params: ScheduleParameters,
    lock_timeout: Optional[float] = None,
) -> ScheduleRunResult:
    """
    Generate (or preview, with dry_run) the full schedule of a tournament.

    Validation errors are raised before anything is read or written. A
    capacity shortfall is reported through result.allocation.unscheduled.

    Raises:
        ValueError: tournament not found
        SchedulingValidationError: invalid parameters, no groups
        ScheduleHasResultsError: results reported and force not set
        ScheduleBusyError: lock wait timed out
    """
    result = ScheduleRunResult(tournament_id=tournament_id, dry_run=params.dry_run)

    with tournament_lock(tournament_id, lock_timeout):
        try:
            result.failed_step = "VALIDATE"
            _get_tournament(session, tournament_id)
            grid = build_grid(
                params.windows, params.match_duration_minutes, params.break_minutes, params.courts_available
            )

            result.failed_step = "LOAD_GROUPS"
            groups = _load_groups(session, tournament_id)
            if not groups:
                raise EmptyInputError(f"Tournament {tournament_id} has no groups; partition categories first")
            specs = load_group_specs(session, groups)
            result.groups_count = len(specs)
            result.categories = resolve_category_order(session, tournament_id, params.category_order)

            result.failed_step = "GENERATE_FIXTURES"
            fixtures_by_category: Dict[str, List[FixtureSpec]] = {c: [] for c in result.categories}
            for spec in specs:
                fixtures_by_category.setdefault(spec.category, []).extend(generate_fixtures(spec))

            result.failed_step = "ALLOCATE"
            result.allocation = allocate(fixtures_by_category, grid, specs, category_order=result.categories)

            if not params.dry_run:
                result.failed_step = "WRITE"
                result.write = schedule_writer.apply(session, tournament_id, result.allocation, force=params.force)

            result.failed_step = None
        except SchedulingError as e:
            result.status = "failed"
            result.error_message = str(e)
            logger.warning(
                "Schedule generation for tournament %s rejected at %s: %s", tournament_id, result.failed_step, e
            )
            raise
        except Exception as e:
            session.rollback()
            result.status = "failed"
            result.error_message = str(e)
            logger.exception("Schedule generation for tournament %s failed at %s", tournament_id, result.failed_step)
            raise

    return result


def clear_schedule(
    session: Session, tournament_id: int, force: bool = False, lock_timeout: Optional[float] = None
) -> int:
    """Delete every fixture of the tournament under the generation lock"""
    with tournament_lock(tournament_id, lock_timeout):
        _get_tournament(session, tournament_id)
        return schedule_writer.clear(session, tournament_id, force=force)


@dataclass
class CategoryGroupsResult:
    tournament_id: int
    category: str
    groups: List[TournamentGroup] = field(default_factory=list)
    fixtures_created: int = 0

    def to_dict(self):
        return {
            "tournament_id": self.tournament_id,
            "category": self.category,
            "groups_count": len(self.groups),
            "fixtures_created": self.fixtures_created,
            "group_ids": [g.id for g in self.groups],
        }


def build_category_groups(
    session: Session,
    tournament_id: int,
    category: str,
    target_group_size: int,
    lock_timeout: Optional[float] = None,
) -> CategoryGroupsResult:
    """
    Partition a category and create its missing fixtures in one transaction.

    Running it again with unchanged registrations writes nothing.
    """
    result = CategoryGroupsResult(tournament_id=tournament_id, category=category)

    with tournament_lock(tournament_id, lock_timeout):
        try:
            result.groups = partition_category(
                session, tournament_id, category, target_group_size, _transactional=True
            )
            for group in result.groups:
                result.fixtures_created += len(create_missing_fixtures(session, group.id, _transactional=True))
            session.commit()
        except SchedulingError:
            session.rollback()
            raise
        except Exception:
            session.rollback()
            logger.exception("Building groups for tournament %s category %s failed", tournament_id, category)
            raise

    for group in result.groups:
        session.refresh(group)
    return result


def capacity_preview(session: Session, tournament_id: int, params: ScheduleParameters) -> Dict:
    """Slot capacity of the windows against the fixtures the current groups need"""
    _get_tournament(session, tournament_id)
    total_capacity = grid_capacity(
        params.windows, params.match_duration_minutes, params.break_minutes, params.courts_available
    )
    slot_length = params.match_duration_minutes + params.break_minutes

    groups = _load_groups(session, tournament_id)
    requested = sum(rr_fixture_count(len(g.members)) for g in groups)

    return {
        "tournament_id": tournament_id,
        "slot_length_minutes": slot_length,
        "courts_available": params.courts_available,
        "windows": [
            {
                "date": w.day_date.isoformat(),
                "start_time": w.start_time.strftime("%H:%M"),
                "end_time": w.end_time.strftime("%H:%M"),
                "slots_per_court": slots_per_window(w, slot_length),
                "capacity": slots_per_window(w, slot_length) * params.courts_available,
            }
            for w in params.windows
        ],
        "total_capacity": total_capacity,
        "total_requested": requested,
        "shortfall": max(0, requested - total_capacity),
    }
