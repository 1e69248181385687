"""
Group Partitioner

Splits the confirmed pairs of one category into round-robin groups of a
target size. Pairs are sliced in registration order: group k receives pairs
[k*size, (k+1)*size) and the last group may be under-filled.

Persisting is idempotent. Stored memberships must agree with the computed
layout; new pairs are appended, anything else is a layout conflict and the
category has to be reset first.
"""

import logging
import math
import string
from typing import Dict, List, Sequence

from sqlmodel import Session, select

from app.models.group import GroupPair, TournamentGroup
from app.models.tournament import Tournament
from app.utils.fixture_generation import has_reported_results
from app.utils.pair_access import get_confirmed_pairs
from app.utils.schedule_types import GroupMember, GroupSpec, PairSpec
from app.utils.scheduling_errors import (
    EmptyInputError,
    GroupLayoutConflictError,
    InvalidGroupSizeError,
    ScheduleHasResultsError,
)

logger = logging.getLogger(__name__)


def group_name(group_number: int) -> str:
    """Group A..Group Z, then Group 27 onwards"""
    if 1 <= group_number <= len(string.ascii_uppercase):
        return f"Group {string.ascii_uppercase[group_number - 1]}"
    return f"Group {group_number}"


def partition(pairs: Sequence[PairSpec], target_group_size: int) -> List[GroupSpec]:
    """
    Pure partition of an ordered pair list.

    Raises:
        InvalidGroupSizeError: target_group_size < 2
        EmptyInputError: no pairs
    """
    if target_group_size is None or target_group_size < 2:
        raise InvalidGroupSizeError(f"Target group size must be >= 2, got {target_group_size}")
    if not pairs:
        raise EmptyInputError("No confirmed pairs to partition")

    categories = {p.category for p in pairs}
    if len(categories) > 1:
        raise ValueError(f"Pairs span several categories: {sorted(categories)}")
    category = pairs[0].category

    group_count = math.ceil(len(pairs) / target_group_size)
    groups: List[GroupSpec] = []
    for k in range(group_count):
        chunk = pairs[k * target_group_size : (k + 1) * target_group_size]
        members = tuple(
            GroupMember(pair_number=i + 1, pair_id=p.pair_id, participants=p.participants)
            for i, p in enumerate(chunk)
        )
        groups.append(
            GroupSpec(
                category=category,
                group_number=k + 1,
                name=group_name(k + 1),
                capacity=target_group_size,
                members=members,
            )
        )
    return groups


def _check_layout(existing: List[TournamentGroup], planned: List[GroupSpec]) -> None:
    planned_by_number = {g.group_number: g for g in planned}
    for group in existing:
        plan = planned_by_number.get(group.group_number)
        if plan is None:
            raise GroupLayoutConflictError(
                f"{group.name} ({group.category}) is not part of the computed layout of {len(planned)} groups"
            )
        if group.capacity != plan.capacity:
            raise GroupLayoutConflictError(
                f"{group.name} ({group.category}) has capacity {group.capacity}, requested {plan.capacity}"
            )
        planned_slots = {m.pair_number: m.pair_id for m in plan.members}
        for member in group.members:
            if planned_slots.get(member.pair_number) != member.pair_id:
                raise GroupLayoutConflictError(
                    f"{group.name} ({group.category}) slot {member.pair_number} holds pair {member.pair_id}, "
                    f"computed layout expects {planned_slots.get(member.pair_number)}"
                )


def partition_category(
    session: Session,
    tournament_id: int,
    category: str,
    target_group_size: int,
    _transactional: bool = False,
) -> List[TournamentGroup]:
    """
    Partition a category's confirmed pairs and persist Group/GroupPair rows.

    Returns the category's groups ordered by group_number. Raises before
    writing anything when the input or the stored layout is invalid.
    """
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise ValueError(f"Tournament {tournament_id} not found")

    planned = partition(get_confirmed_pairs(session, tournament_id, category), target_group_size)

    existing = list(
        session.exec(
            select(TournamentGroup)
            .where(TournamentGroup.tournament_id == tournament_id)
            .where(TournamentGroup.category == category)
            .order_by(TournamentGroup.group_number)
        ).all()
    )
    _check_layout(existing, planned)

    existing_by_number: Dict[int, TournamentGroup] = {g.group_number: g for g in existing}
    groups_created = 0
    members_created = 0

    for plan in planned:
        group = existing_by_number.get(plan.group_number)
        if group is None:
            group = TournamentGroup(
                tournament_id=tournament_id,
                category=category,
                group_number=plan.group_number,
                name=plan.name,
                capacity=plan.capacity,
            )
            session.add(group)
            session.flush()
            existing_by_number[plan.group_number] = group
            groups_created += 1

        taken = {m.pair_number for m in group.members}
        for member in plan.members:
            if member.pair_number in taken:
                continue
            group.members.append(GroupPair(group_id=group.id, pair_id=member.pair_id, pair_number=member.pair_number))
            members_created += 1

    if _transactional:
        session.flush()
    else:
        session.commit()

    logger.info(
        "Partitioned tournament %s category %s: %d groups (%d new), %d new memberships",
        tournament_id,
        category,
        len(planned),
        groups_created,
        members_created,
    )
    return [existing_by_number[g.group_number] for g in planned]


def reset_category_groups(
    session: Session,
    tournament_id: int,
    category: str,
    force: bool = False,
    _transactional: bool = False,
) -> int:
    """
    Delete a category's groups together with their memberships and fixtures.

    Returns the number of groups removed.
    """
    groups = session.exec(
        select(TournamentGroup)
        .where(TournamentGroup.tournament_id == tournament_id)
        .where(TournamentGroup.category == category)
    ).all()

    if not force and has_reported_results(session, [g.id for g in groups]):
        raise ScheduleHasResultsError(f"Category {category} has fixtures with reported results; pass force to reset")

    for group in groups:
        session.delete(group)

    if _transactional:
        session.flush()
    else:
        session.commit()

    logger.info("Reset %d groups for tournament %s category %s", len(groups), tournament_id, category)
    return len(groups)
