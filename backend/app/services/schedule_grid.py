"""
Display grid: stored fixtures bucketed by date and row, for schedule views.

Rows default to one per distinct start time. With display_slot_minutes the
rows are fixed-width buckets counted from the day's first start, which lets
a view use a coarser granularity than the generation slot length.
"""

from collections import defaultdict
from datetime import date
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from app.models.fixture import Fixture
from app.models.group import TournamentGroup
from app.models.pair import Pair
from app.utils.schedule_types import minutes_to_time, time_to_minutes


def pair_label(pair: Optional[Pair]) -> str:
    if pair is None:
        return "TBD"
    if pair.player2_name:
        return f"{pair.player1_name} / {pair.player2_name}"
    return pair.player1_name


def _fixture_cell(fixture: Fixture, group: TournamentGroup, pairs: Dict[int, Pair]) -> Dict[str, Any]:
    return {
        "fixture_id": fixture.id,
        "group_id": group.id,
        "group_name": group.name,
        "category": group.category,
        "pair1_id": fixture.pair1_id,
        "pair2_id": fixture.pair2_id,
        "pair1_label": pair_label(pairs.get(fixture.pair1_id)),
        "pair2_label": pair_label(pairs.get(fixture.pair2_id)),
        "court_number": fixture.court_number,
        "start_time": fixture.start_time.strftime("%H:%M") if fixture.start_time else None,
    }


def _day_rows(fixtures: List[Fixture], cells: Dict[int, Dict[str, Any]], display_slot_minutes: Optional[int]):
    rows: Dict[int, List[Fixture]] = defaultdict(list)
    first_start = min(time_to_minutes(f.start_time) for f in fixtures)
    for fixture in fixtures:
        start = time_to_minutes(fixture.start_time)
        if display_slot_minutes:
            row_start = first_start + ((start - first_start) // display_slot_minutes) * display_slot_minutes
        else:
            row_start = start
        rows[row_start].append(fixture)

    result = []
    for row_start in sorted(rows):
        row_end = row_start + display_slot_minutes if display_slot_minutes else None
        result.append(
            {
                "start_time": minutes_to_time(row_start).strftime("%H:%M"),
                "end_time": minutes_to_time(min(row_end, 24 * 60 - 1)).strftime("%H:%M") if row_end else None,
                "fixtures": [
                    cells[f.id]
                    for f in sorted(rows[row_start], key=lambda f: (f.court_number, f.start_time, f.id))
                ],
            }
        )
    return result


def build_schedule_grid(
    session: Session, tournament_id: int, display_slot_minutes: Optional[int] = None
) -> Dict[str, Any]:
    """Read-only view; never touches the stored schedule"""
    if display_slot_minutes is not None and display_slot_minutes < 1:
        raise ValueError(f"display_slot_minutes must be >= 1, got {display_slot_minutes}")

    groups = {
        g.id: g
        for g in session.exec(select(TournamentGroup).where(TournamentGroup.tournament_id == tournament_id)).all()
    }
    fixtures = (
        session.exec(select(Fixture).where(Fixture.group_id.in_(list(groups))).order_by(Fixture.id)).all()
        if groups
        else []
    )
    pair_ids = {f.pair1_id for f in fixtures} | {f.pair2_id for f in fixtures}
    pairs = {p.id: p for p in session.exec(select(Pair).where(Pair.id.in_(list(pair_ids)))).all()} if pair_ids else {}

    cells = {f.id: _fixture_cell(f, groups[f.group_id], pairs) for f in fixtures}

    by_date: Dict[date, List[Fixture]] = defaultdict(list)
    unscheduled: List[Dict[str, Any]] = []
    for fixture in fixtures:
        if fixture.is_scheduled:
            by_date[fixture.scheduled_date].append(fixture)
        else:
            unscheduled.append(cells[fixture.id])

    courts = sorted({f.court_number for f in fixtures if f.court_number is not None})

    return {
        "tournament_id": tournament_id,
        "display_slot_minutes": display_slot_minutes,
        "courts": courts,
        "days": [
            {"date": day.isoformat(), "rows": _day_rows(by_date[day], cells, display_slot_minutes)}
            for day in sorted(by_date)
        ],
        "unscheduled": unscheduled,
        "scheduled_count": sum(len(v) for v in by_date.values()),
        "unscheduled_count": len(unscheduled),
    }
