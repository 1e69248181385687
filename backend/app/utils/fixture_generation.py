"""
Round-robin fixture generation for groups.

A group of k pairs plays C(k, 2) fixtures, emitted in lexicographic
(pair_number_i, pair_number_j) order with i < j. That order is also the
default tie-break when fixtures compete for the same slot.
"""

import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple

from sqlalchemy import or_
from sqlmodel import Session, select

from app.models.fixture import RESULT_COLUMNS, Fixture
from app.models.group import TournamentGroup
from app.utils.pair_access import get_participants_by_pair
from app.utils.schedule_types import FixtureSpec, GroupMember, GroupSpec

logger = logging.getLogger(__name__)


def rr_fixture_count(pair_count: int) -> int:
    """C(n, 2)"""
    return pair_count * (pair_count - 1) // 2 if pair_count >= 2 else 0


def generate_fixtures(group: GroupSpec) -> List[FixtureSpec]:
    if group.group_id is None:
        raise ValueError(f"{group.name} ({group.category}) must be persisted before generating fixtures")

    members = sorted(group.members, key=lambda m: m.pair_number)
    fixtures: List[FixtureSpec] = []
    for i, first in enumerate(members):
        for second in members[i + 1 :]:
            fixtures.append(
                FixtureSpec(
                    group_id=group.group_id,
                    category=group.category,
                    pair1_id=first.pair_id,
                    pair2_id=second.pair_id,
                    pair1_number=first.pair_number,
                    pair2_number=second.pair_number,
                    participants=frozenset(first.participants) | frozenset(second.participants),
                )
            )
    return fixtures


def group_spec_from_model(
    group: TournamentGroup, participants_by_pair: Optional[Dict[int, Tuple[str, ...]]] = None
) -> GroupSpec:
    participants_by_pair = participants_by_pair or {}
    return GroupSpec(
        category=group.category,
        group_number=group.group_number,
        name=group.name,
        capacity=group.capacity,
        members=tuple(
            GroupMember(
                pair_number=m.pair_number,
                pair_id=m.pair_id,
                participants=participants_by_pair.get(m.pair_id, ()),
            )
            for m in sorted(group.members, key=lambda m: m.pair_number)
        ),
        group_id=group.id,
        tournament_id=group.tournament_id,
    )


def load_group_specs(session: Session, groups: Sequence[TournamentGroup]) -> List[GroupSpec]:
    """Group specs with participant identities resolved from the Pair rows"""
    pair_ids = [m.pair_id for g in groups for m in g.members]
    participants = get_participants_by_pair(session, pair_ids)
    return [group_spec_from_model(g, participants) for g in groups]


def _existing_keys(session: Session, group_id: int) -> Set[Tuple[int, int]]:
    rows = session.exec(select(Fixture).where(Fixture.group_id == group_id)).all()
    return {(min(f.pair1_id, f.pair2_id), max(f.pair1_id, f.pair2_id)) for f in rows}


def create_missing_fixtures(session: Session, group_id: int, _transactional: bool = False) -> List[Fixture]:
    """
    Insert the fixtures a group is missing, schedule left empty.

    Fixtures already stored for a pair combination (either orientation) are
    skipped, so re-running after a group edit only adds the new subset.
    """
    group = session.get(TournamentGroup, group_id)
    if not group:
        raise ValueError(f"Group {group_id} not found")

    spec = load_group_specs(session, [group])[0]
    existing = _existing_keys(session, group_id)

    created: List[Fixture] = []
    for fixture in generate_fixtures(spec):
        if fixture.key[1:] in existing:
            continue
        row = Fixture(group_id=group_id, pair1_id=fixture.pair1_id, pair2_id=fixture.pair2_id)
        session.add(row)
        created.append(row)

    if _transactional:
        session.flush()
    else:
        session.commit()
        for row in created:
            session.refresh(row)

    logger.info(
        "Group %s (%s): %d fixtures created, %d already present", group_id, group.name, len(created), len(existing)
    )
    return created


def has_reported_results(session: Session, group_ids: Sequence[int]) -> bool:
    """True when any fixture of the given groups carries a reported result"""
    if not group_ids:
        return False
    reported = session.exec(
        select(Fixture.id)
        .where(Fixture.group_id.in_(list(group_ids)))
        .where(
            or_(*(getattr(Fixture, column).is_not(None) for column in RESULT_COLUMNS))
        )
    ).first()
    return reported is not None
