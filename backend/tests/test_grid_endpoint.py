"""HTTP round trips for schedule generation, listing, grid, capacity and events"""

from datetime import date, time

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from app.models.fixture import Fixture
from app.services.schedule_grid import build_schedule_grid
from app.services.schedule_orchestrator import build_category_groups

WINDOW_6_SLOTS = {"day_date": "2026-06-01", "start_time": "09:00", "end_time": "15:00"}


@pytest.fixture
def grouped_tournament(client: TestClient, session: Session, tournament, make_pairs):
    """8 male1 pairs in 2 groups of 4 (12 fixtures), tournament default 2 courts"""
    make_pairs(tournament.id, "male1", 8)
    build_category_groups(session, tournament.id, "male1", 4)
    return tournament.id


def generate(client, tournament_id, **overrides):
    payload = {"windows": [WINDOW_6_SLOTS], "match_duration_minutes": 45, "break_minutes": 15}
    payload.update(overrides)
    return client.post(f"/api/tournaments/{tournament_id}/schedule", json=payload)


class TestGenerateEndpoint:
    def test_generate_uses_tournament_courts_by_default(self, client: TestClient, grouped_tournament):
        response = generate(client, grouped_tournament)

        assert response.status_code == 200
        data = response.json()
        assert data["scheduled"] == 12
        assert data["unscheduled"] == 0
        assert data["total_capacity"] == 12
        assert data["total_requested"] == 12

    def test_shortfall(self, client: TestClient, grouped_tournament):
        data = generate(client, grouped_tournament, courts_available=1).json()

        assert data["scheduled"] == 6
        assert data["unscheduled"] == 6
        assert {f["reason"] for f in data["unscheduled_fixtures"]} == {"NO_FREE_SLOT"}

    def test_response_lists_stored_fixtures(self, client: TestClient, session: Session, grouped_tournament):
        data = generate(client, grouped_tournament, courts_available=1).json()

        rows = {r.id: r for r in session.exec(select(Fixture)).all()}
        fixtures = data["fixtures"]
        assert len(fixtures) == 12
        assert sorted(f["fixture_id"] for f in fixtures) == sorted(rows)

        scheduled = [f for f in fixtures if f["reason"] is None]
        unscheduled = [f for f in fixtures if f["reason"] is not None]
        assert len(scheduled) == 6
        assert len(unscheduled) == 6
        for f in scheduled:
            row = rows[f["fixture_id"]]
            assert f["scheduled_date"] == row.scheduled_date.isoformat()
            assert f["start_time"] == row.start_time.strftime("%H:%M")
            assert f["court_number"] == row.court_number == 1
            assert (f["group_id"], f["pair1_id"], f["pair2_id"]) == (row.group_id, row.pair1_id, row.pair2_id)
        for f in unscheduled:
            assert f["scheduled_date"] is None
            assert f["start_time"] is None
            assert f["court_number"] is None
            assert not rows[f["fixture_id"]].is_scheduled

        assert {f["fixture_id"] for f in data["unscheduled_fixtures"]} == {f["fixture_id"] for f in unscheduled}

    def test_regenerate_keeps_row_count(self, client: TestClient, session: Session, grouped_tournament):
        generate(client, grouped_tournament, courts_available=1)
        generate(client, grouped_tournament, courts_available=2)

        listing = client.get(f"/api/tournaments/{grouped_tournament}/schedule").json()
        assert len(listing["fixtures"]) == 12
        assert listing["scheduled"] == 12

    def test_dry_run(self, client: TestClient, grouped_tournament):
        data = generate(client, grouped_tournament, dry_run=True).json()

        assert data["dry_run"] is True
        assert len(data["placements"]) == 12
        assert len(data["fixtures"]) == 12
        assert all(f["fixture_id"] is None for f in data["fixtures"])
        assert client.get(f"/api/tournaments/{grouped_tournament}/schedule").json()["scheduled"] == 0

    @pytest.mark.parametrize(
        "overrides",
        [
            {"courts_available": 0},
            {"match_duration_minutes": 0},
            {"break_minutes": -1},
            {"windows": []},
            {"windows": [{"day_date": "2026-06-01", "start_time": "09:00", "end_time": "09:30"}]},
            {
                "windows": [
                    WINDOW_6_SLOTS,
                    {"day_date": "2026-06-01", "start_time": "14:00", "end_time": "16:00"},
                ]
            },
        ],
    )
    def test_invalid_parameters_are_400(self, client: TestClient, grouped_tournament, overrides):
        assert generate(client, grouped_tournament, **overrides).status_code == 400

    def test_inverted_window_is_422(self, client: TestClient, grouped_tournament):
        window = {"day_date": "2026-06-01", "start_time": "15:00", "end_time": "09:00"}
        assert generate(client, grouped_tournament, windows=[window]).status_code == 422

    def test_results_block_regeneration(self, client: TestClient, session: Session, grouped_tournament):
        generate(client, grouped_tournament)
        fixture = session.exec(select(Fixture)).first()
        fixture.winner_pair_id = fixture.pair1_id
        session.add(fixture)
        session.commit()

        assert generate(client, grouped_tournament).status_code == 409
        assert client.delete(f"/api/tournaments/{grouped_tournament}/schedule").status_code == 409
        assert generate(client, grouped_tournament, force=True).status_code == 200

    def test_unknown_tournament(self, client: TestClient):
        assert generate(client, 9999).status_code == 404


class TestScheduleReads:
    def test_listing_order_and_filters(self, client: TestClient, grouped_tournament):
        generate(client, grouped_tournament, courts_available=1)
        url = f"/api/tournaments/{grouped_tournament}/schedule"

        fixtures = client.get(url).json()["fixtures"]
        scheduled = [f for f in fixtures if f["scheduled_date"]]
        assert [f["start_time"] for f in scheduled] == sorted(f["start_time"] for f in scheduled)
        assert all(f["scheduled_date"] is None for f in fixtures[len(scheduled) :])

        group_id = fixtures[0]["group_id"]
        only_group = client.get(url, params={"group_id": group_id}).json()["fixtures"]
        assert {f["group_id"] for f in only_group} == {group_id}
        assert client.get(url, params={"category": "female1"}).json()["fixtures"] == []

    def test_clear(self, client: TestClient, grouped_tournament):
        generate(client, grouped_tournament)

        response = client.delete(f"/api/tournaments/{grouped_tournament}/schedule")

        assert response.json() == {"tournament_id": grouped_tournament, "removed": 12}
        assert client.get(f"/api/tournaments/{grouped_tournament}/schedule").json()["fixtures"] == []

    def test_capacity_preview(self, client: TestClient, grouped_tournament):
        response = client.post(
            f"/api/tournaments/{grouped_tournament}/schedule/capacity",
            json={"windows": [WINDOW_6_SLOTS], "courts_available": 1},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["slot_length_minutes"] == 60
        assert data["total_capacity"] == 6
        assert data["shortfall"] == 6

    def test_events_feed(self, client: TestClient, grouped_tournament):
        generate(client, grouped_tournament)
        client.delete(f"/api/tournaments/{grouped_tournament}/schedule")

        events = client.get(f"/api/tournaments/{grouped_tournament}/schedule/events").json()

        assert [e["action"] for e in events] == ["schedule_cleared", "schedule_generated"]
        assert events[1]["scheduled_count"] == 12


class TestDisplayGrid:
    def test_rows_per_start_time(self, client: TestClient, grouped_tournament):
        generate(client, grouped_tournament)

        grid = client.get(f"/api/tournaments/{grouped_tournament}/schedule/grid").json()

        assert grid["courts"] == [1, 2]
        assert len(grid["days"]) == 1
        rows = grid["days"][0]["rows"]
        assert [r["start_time"] for r in rows] == ["09:00", "10:00", "11:00", "12:00", "13:00", "14:00"]
        assert all(len(r["fixtures"]) == 2 for r in rows)
        assert [f["court_number"] for f in rows[0]["fixtures"]] == [1, 2]
        assert grid["scheduled_count"] == 12
        assert grid["unscheduled"] == []

    def test_fixed_width_rows(self, client: TestClient, grouped_tournament):
        generate(client, grouped_tournament)

        grid = client.get(
            f"/api/tournaments/{grouped_tournament}/schedule/grid", params={"display_slot_minutes": 120}
        ).json()

        rows = grid["days"][0]["rows"]
        assert [(r["start_time"], r["end_time"]) for r in rows] == [
            ("09:00", "11:00"),
            ("11:00", "13:00"),
            ("13:00", "15:00"),
        ]
        assert all(len(r["fixtures"]) == 4 for r in rows)

    def test_invalid_display_slot(self, client: TestClient, grouped_tournament):
        response = client.get(
            f"/api/tournaments/{grouped_tournament}/schedule/grid", params={"display_slot_minutes": 0}
        )
        assert response.status_code == 422

    def test_unscheduled_listed_separately(self, session: Session, client: TestClient, grouped_tournament):
        generate(client, grouped_tournament, courts_available=1)

        grid = build_schedule_grid(session, grouped_tournament)

        assert grid["scheduled_count"] == 6
        assert grid["unscheduled_count"] == 6
        assert all(cell["court_number"] is None for cell in grid["unscheduled"])
        assert " / " in grid["unscheduled"][0]["pair1_label"]

    def test_empty_schedule(self, session: Session, tournament):
        grid = build_schedule_grid(session, tournament.id)
        assert grid["days"] == [] and grid["unscheduled"] == []


def test_fixture_rows_match_response(client: TestClient, session: Session, grouped_tournament):
    generate(client, grouped_tournament)

    rows = session.exec(select(Fixture)).all()
    assert {r.scheduled_date for r in rows} == {date(2026, 6, 1)}
    assert min(r.start_time for r in rows) == time(9, 0)
