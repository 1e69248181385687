"""
Value types passed between the partitioner, fixture generator, slot grid,
allocator and writer.

Constructors validate their invariants so that malformed data fails where it
is created instead of deep inside the allocation loop.
"""

from dataclasses import dataclass, field
from datetime import date, time
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from app.utils.scheduling_errors import InvalidGroupSizeError, InvalidWindowError


def time_to_minutes(value: time) -> int:
    """Minutes from midnight"""
    return value.hour * 60 + value.minute


def minutes_to_time(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


@dataclass(frozen=True)
class PairSpec:
    """A confirmed pair as seen by the partitioner."""

    pair_id: int
    category: str
    participants: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.pair_id is None:
            raise ValueError("PairSpec requires a persisted pair_id")
        if not self.category:
            raise ValueError(f"Pair {self.pair_id} has no category")


@dataclass(frozen=True)
class GroupMember:
    pair_number: int
    pair_id: int
    participants: Tuple[str, ...] = ()


@dataclass(frozen=True)
class GroupSpec:
    """
    A round-robin group: ordered members at pair_number slots 1..capacity.

    group_id is None for groups planned by the pure partitioner and not yet
    persisted.
    """

    category: str
    group_number: int
    name: str
    capacity: int
    members: Tuple[GroupMember, ...]
    group_id: Optional[int] = None
    tournament_id: Optional[int] = None

    def __post_init__(self):
        if self.capacity < 2:
            raise InvalidGroupSizeError(f"Group capacity must be >= 2, got {self.capacity}")
        if self.group_number < 1:
            raise ValueError(f"group_number must be >= 1, got {self.group_number}")
        if len(self.members) > self.capacity:
            raise ValueError(
                f"{self.name} holds {len(self.members)} pairs but capacity is {self.capacity}"
            )
        numbers = [m.pair_number for m in self.members]
        if len(set(numbers)) != len(numbers):
            raise ValueError(f"{self.name} has duplicate pair numbers: {numbers}")
        if any(n < 1 or n > self.capacity for n in numbers):
            raise ValueError(f"{self.name} has pair numbers outside 1..{self.capacity}: {numbers}")
        pair_ids = [m.pair_id for m in self.members]
        if len(set(pair_ids)) != len(pair_ids):
            raise ValueError(f"{self.name} contains the same pair twice: {pair_ids}")

    @property
    def pair_ids(self) -> List[int]:
        return [m.pair_id for m in self.members]


@dataclass(frozen=True)
class FixtureSpec:
    """One unordered game between two members of the same group."""

    group_id: int
    category: str
    pair1_id: int
    pair2_id: int
    pair1_number: int
    pair2_number: int
    participants: FrozenSet[str] = frozenset()
    fixture_id: Optional[int] = None

    def __post_init__(self):
        if self.pair1_id == self.pair2_id:
            raise ValueError(f"Fixture in group {self.group_id} pairs {self.pair1_id} with itself")
        if self.pair1_number >= self.pair2_number:
            raise ValueError(
                f"Fixture pair numbers must be ascending, got ({self.pair1_number}, {self.pair2_number})"
            )

    @property
    def key(self) -> Tuple[int, int, int]:
        """Orientation-free identity within a group"""
        return (self.group_id, min(self.pair1_id, self.pair2_id), max(self.pair1_id, self.pair2_id))

    @property
    def conflict_keys(self) -> FrozenSet[str]:
        """Everything that must not be double-booked: both pairs and their players"""
        keys = {f"pair:{self.pair1_id}", f"pair:{self.pair2_id}"}
        keys.update(f"player:{p}" for p in self.participants)
        return frozenset(keys)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fixture_id": self.fixture_id,
            "group_id": self.group_id,
            "category": self.category,
            "pair1_id": self.pair1_id,
            "pair2_id": self.pair2_id,
        }


@dataclass(frozen=True)
class SchedulingWindow:
    day_date: date
    start_time: time
    end_time: time

    def __post_init__(self):
        if self.end_time <= self.start_time:
            raise InvalidWindowError(
                f"Window on {self.day_date} ends ({self.end_time}) before it starts ({self.start_time})"
            )

    @property
    def duration_minutes(self) -> int:
        return time_to_minutes(self.end_time) - time_to_minutes(self.start_time)


@dataclass(frozen=True)
class Slot:
    """
    One bookable (date, start time, court) unit.

    end_time is the end of play (start + match duration), not of the break.
    """

    day_date: date
    start_time: time
    end_time: time
    court_number: int

    def __post_init__(self):
        if self.court_number < 1:
            raise ValueError(f"court_number must be >= 1, got {self.court_number}")
        if self.end_time <= self.start_time:
            raise ValueError(f"Slot at {self.day_date} {self.start_time} has non-positive length")

    @property
    def sort_key(self) -> Tuple[date, time, int]:
        return (self.day_date, self.start_time, self.court_number)

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end_time)

    def overlaps(self, other: "Slot") -> bool:
        """Time overlap on the same date, regardless of court"""
        if self.day_date != other.day_date:
            return False
        return self.start_minutes < other.end_minutes and other.start_minutes < self.end_minutes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.day_date.isoformat(),
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "court_number": self.court_number,
        }


@dataclass(frozen=True)
class Placement:
    fixture: FixtureSpec
    slot: Slot


@dataclass(frozen=True)
class UnscheduledFixture:
    fixture: FixtureSpec
    reason: str  # NO_FREE_SLOT | PARTICIPANT_CONFLICT


@dataclass
class AllocationResult:
    """Scheduled/unscheduled partition of one allocation run."""

    scheduled: List[Placement] = field(default_factory=list)
    unscheduled: List[UnscheduledFixture] = field(default_factory=list)
    total_capacity: int = 0
    total_requested: int = 0

    @property
    def is_complete(self) -> bool:
        return not self.unscheduled

    def fixture_rows(self, fixture_ids: Optional[Dict[Tuple[int, int, int], int]] = None) -> List[Dict[str, Any]]:
        """
        Every requested fixture with its resolved schedule, scheduled first.

        fixture_ids maps FixtureSpec.key to the stored row id once persisted;
        unscheduled rows carry null schedule fields and their reason.
        """
        fixture_ids = fixture_ids or {}
        rows = []
        for placement in self.scheduled:
            fixture, slot = placement.fixture, placement.slot
            rows.append(
                {
                    **fixture.to_dict(),
                    "fixture_id": fixture_ids.get(fixture.key, fixture.fixture_id),
                    "scheduled_date": slot.day_date.isoformat(),
                    "start_time": slot.start_time.strftime("%H:%M"),
                    "court_number": slot.court_number,
                    "reason": None,
                }
            )
        for unscheduled in self.unscheduled:
            fixture = unscheduled.fixture
            rows.append(
                {
                    **fixture.to_dict(),
                    "fixture_id": fixture_ids.get(fixture.key, fixture.fixture_id),
                    "scheduled_date": None,
                    "start_time": None,
                    "court_number": None,
                    "reason": unscheduled.reason,
                }
            )
        return rows

    def to_dict(self, fixture_ids: Optional[Dict[Tuple[int, int, int], int]] = None) -> Dict[str, Any]:
        rows = self.fixture_rows(fixture_ids)
        return {
            "scheduled": len(self.scheduled),
            "unscheduled": len(self.unscheduled),
            "total_capacity": self.total_capacity,
            "total_requested": self.total_requested,
            "fixtures": rows,
            "unscheduled_fixtures": [row for row in rows if row["reason"] is not None],
        }
