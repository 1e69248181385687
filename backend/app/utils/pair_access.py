"""
Read access to registered pairs and the categories they belong to.

Everything downstream (partitioner, orchestrator) sees pairs only as
PairSpec values produced here.
"""

from typing import Dict, List, Tuple

from sqlmodel import Session, select

from app.models.group import TournamentGroup
from app.models.pair import Pair
from app.models.tournament import Tournament
from app.utils.schedule_types import PairSpec


def pair_participants(pair: Pair) -> Tuple[str, ...]:
    """Participant identities of a pair, refs only (names are not identities)"""
    return tuple(ref for ref in (pair.player1_ref, pair.player2_ref) if ref)


def to_pair_spec(pair: Pair) -> PairSpec:
    return PairSpec(pair_id=pair.id, category=pair.category, participants=pair_participants(pair))


def get_confirmed_pairs(session: Session, tournament_id: int, category: str) -> List[PairSpec]:
    """Confirmed pairs of one category in registration order"""
    pairs = session.exec(
        select(Pair)
        .where(Pair.tournament_id == tournament_id)
        .where(Pair.category == category)
        .where(Pair.confirmed == True)  # noqa: E712
        .order_by(Pair.id)
    ).all()
    return [to_pair_spec(p) for p in pairs]


def get_participants_by_pair(session: Session, pair_ids: List[int]) -> Dict[int, Tuple[str, ...]]:
    if not pair_ids:
        return {}
    pairs = session.exec(select(Pair).where(Pair.id.in_(pair_ids))).all()
    return {p.id: pair_participants(p) for p in pairs}


def list_categories(session: Session, tournament_id: int) -> List[str]:
    """
    Category declaration order for a tournament.

    Tournament.categories first (as declared), then any other category that
    has pairs or groups, alphabetically.
    """
    tournament = session.get(Tournament, tournament_id)
    declared: List[str] = list(tournament.categories or []) if tournament else []

    pair_categories = session.exec(
        select(Pair.category).where(Pair.tournament_id == tournament_id).distinct()
    ).all()
    group_categories = session.exec(
        select(TournamentGroup.category).where(TournamentGroup.tournament_id == tournament_id).distinct()
    ).all()

    ordered: List[str] = []
    for category in declared:
        if category not in ordered:
            ordered.append(category)
    extra = sorted((set(pair_categories) | set(group_categories)) - set(ordered))
    return ordered + extra
