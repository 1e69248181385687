"""
Court-Time Allocator: deterministic first-fit fixture-to-slot assignment

Single-pass greedy:
1. Flatten fixtures into one work list. Within a category: group_number,
   then emission order. Categories are interleaved round-robin in
   declaration order so early slots are spread across categories.
2. For each fixture, scan the grid in (date, start_time, court) order and
   take the first free slot whose playing interval does not overlap any
   fixture already placed for either pair or any of their participants.
3. Fixtures with no qualifying slot stay unscheduled; the run continues.

Non-goals:
- Optimal packing (no backtracking, no lookahead)
- Rest rules beyond the break built into the slot length
- Court preferences
- Any randomness
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from app.utils.schedule_types import (
    AllocationResult,
    FixtureSpec,
    GroupSpec,
    Placement,
    Slot,
    UnscheduledFixture,
)
from app.utils.scheduling_errors import AllocationInputError

logger = logging.getLogger(__name__)

NO_FREE_SLOT = "NO_FREE_SLOT"
PARTICIPANT_CONFLICT = "PARTICIPANT_CONFLICT"


def get_slot_sort_key(slot: Slot) -> Tuple:
    """
    Order: day_date -> start_time -> court_number

    Slots are filled chronologically, court-by-court.
    """
    return slot.sort_key


def validate_inputs(
    fixtures_by_category: Mapping[str, Sequence[FixtureSpec]],
    grid: Sequence[Slot],
    groups_by_id: Mapping[int, GroupSpec],
) -> None:
    """
    Sanity checks before allocation.

    Raises AllocationInputError if validation fails.
    """
    if not grid:
        raise AllocationInputError("Slot grid is empty")

    slot_keys = [s.sort_key for s in grid]
    if len(slot_keys) != len(set(slot_keys)):
        raise AllocationInputError("Duplicate slots detected in grid")

    seen: Set[Tuple[int, int, int]] = set()
    for category, fixtures in fixtures_by_category.items():
        for fixture in fixtures:
            group = groups_by_id.get(fixture.group_id)
            if group is None:
                raise AllocationInputError(
                    f"Fixture {fixture.pair1_id} v {fixture.pair2_id} references unknown group {fixture.group_id}"
                )
            if group.category != category or fixture.category != category:
                raise AllocationInputError(
                    f"Fixture {fixture.pair1_id} v {fixture.pair2_id} of group {fixture.group_id} "
                    f"({group.category}) listed under category {category}"
                )
            if fixture.key in seen:
                raise AllocationInputError(
                    f"Fixture {fixture.pair1_id} v {fixture.pair2_id} of group {fixture.group_id} listed twice"
                )
            seen.add(fixture.key)


def order_work_list(
    fixtures_by_category: Mapping[str, Sequence[FixtureSpec]],
    groups_by_id: Mapping[int, GroupSpec],
    category_order: Optional[Sequence[str]] = None,
) -> List[FixtureSpec]:
    """
    Interleave categories round-robin.

    category_order lists categories first; categories missing from it follow
    in mapping order.
    """
    categories: List[str] = [c for c in (category_order or []) if c in fixtures_by_category]
    categories += [c for c in fixtures_by_category if c not in categories]

    # sorted() is stable: emission order is kept within a group
    queues = [
        sorted(fixtures_by_category[c], key=lambda f: groups_by_id[f.group_id].group_number) for c in categories
    ]

    work: List[FixtureSpec] = []
    depth = max((len(q) for q in queues), default=0)
    for i in range(depth):
        for queue in queues:
            if i < len(queue):
                work.append(queue[i])
    return work


class _BusyCalendar:
    """Playing intervals already taken, per (date, conflict key)"""

    def __init__(self):
        self._busy: Dict[Tuple[date, str], List[Tuple[int, int]]] = defaultdict(list)

    def is_free(self, keys: Iterable[str], slot: Slot) -> bool:
        for key in keys:
            for start, end in self._busy.get((slot.day_date, key), ()):
                if slot.start_minutes < end and start < slot.end_minutes:
                    return False
        return True

    def book(self, keys: Iterable[str], slot: Slot) -> None:
        for key in keys:
            self._busy[(slot.day_date, key)].append((slot.start_minutes, slot.end_minutes))


def allocate(
    fixtures_by_category: Mapping[str, Sequence[FixtureSpec]],
    grid: Sequence[Slot],
    groups: Iterable[GroupSpec],
    category_order: Optional[Sequence[str]] = None,
) -> AllocationResult:
    """
    Assign fixtures to slots.

    Args:
        fixtures_by_category: fixtures per category, each list in emission order
        grid: slots from build_grid (re-sorted here)
        groups: specs of every group referenced by the fixtures
        category_order: declaration order; defaults to the mapping's order

    Returns:
        AllocationResult; a non-empty unscheduled list is a normal outcome

    Raises:
        AllocationInputError: empty grid, duplicate slots, unknown group
    """
    groups_by_id: Dict[int, GroupSpec] = {g.group_id: g for g in groups if g.group_id is not None}
    validate_inputs(fixtures_by_category, grid, groups_by_id)

    slots = sorted(grid, key=get_slot_sort_key)
    work = order_work_list(fixtures_by_category, groups_by_id, category_order)

    result = AllocationResult(total_capacity=len(slots), total_requested=len(work))
    consumed: Set[int] = set()
    calendar = _BusyCalendar()

    for fixture in work:
        keys = fixture.conflict_keys
        chosen: Optional[int] = None
        saw_free_slot = False

        for index, slot in enumerate(slots):
            if index in consumed:
                continue
            saw_free_slot = True
            if calendar.is_free(keys, slot):
                chosen = index
                break

        if chosen is None:
            reason = PARTICIPANT_CONFLICT if saw_free_slot else NO_FREE_SLOT
            result.unscheduled.append(UnscheduledFixture(fixture=fixture, reason=reason))
            continue

        slot = slots[chosen]
        consumed.add(chosen)
        calendar.book(keys, slot)
        result.scheduled.append(Placement(fixture=fixture, slot=slot))

    logger.info(
        "Allocated %d/%d fixtures into %d slots (%d unscheduled)",
        len(result.scheduled),
        result.total_requested,
        result.total_capacity,
        len(result.unscheduled),
    )
    return result
