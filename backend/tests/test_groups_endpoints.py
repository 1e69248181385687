"""HTTP round trips for pairs and groups"""

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def tournament_id(client: TestClient):
    response = client.post(
        "/api/tournaments",
        json={
            "name": "Padel Open",
            "start_date": "2026-06-01",
            "end_date": "2026-06-02",
            "available_courts": 2,
            "categories": ["male1", "mixed1"],
        },
    )
    assert response.status_code == 201
    return response.json()["id"]


def register(client, tournament_id, category, count, confirm=True, prefix=None):
    ids = []
    for i in range(1, count + 1):
        tag = f"{prefix or category}-{i}"
        response = client.post(
            f"/api/tournaments/{tournament_id}/pairs",
            json={
                "category": category,
                "player1_name": f"{tag} A",
                "player1_ref": f"{tag}-a",
                "player2_name": f"{tag} B",
                "player2_ref": f"{tag}-b",
            },
        )
        assert response.status_code == 201
        pair_id = response.json()["id"]
        if confirm:
            assert client.post(f"/api/pairs/{pair_id}/confirm").json()["confirmed"] is True
        ids.append(pair_id)
    return ids


class TestPairs:
    def test_register_and_filter(self, client: TestClient, tournament_id):
        register(client, tournament_id, "male1", 3)
        register(client, tournament_id, "male1", 1, confirm=False, prefix="pending")
        register(client, tournament_id, "mixed1", 2)

        all_male = client.get(f"/api/tournaments/{tournament_id}/pairs", params={"category": "male1"}).json()
        confirmed = client.get(
            f"/api/tournaments/{tournament_id}/pairs", params={"category": "male1", "confirmed": True}
        ).json()

        assert len(all_male) == 4
        assert len(confirmed) == 3

    def test_undeclared_category_rejected(self, client: TestClient, tournament_id):
        response = client.post(
            f"/api/tournaments/{tournament_id}/pairs", json={"category": "female9", "player1_name": "X"}
        )
        assert response.status_code == 400

    def test_same_player_twice_rejected(self, client: TestClient, tournament_id):
        response = client.post(
            f"/api/tournaments/{tournament_id}/pairs",
            json={"category": "male1", "player1_name": "X", "player1_ref": "x", "player2_name": "Y", "player2_ref": "x"},
        )
        assert response.status_code == 422

    def test_confirm_unknown_pair(self, client: TestClient):
        assert client.post("/api/pairs/9999/confirm").status_code == 404


class TestGroups:
    def test_auto_group_creates_groups_and_fixtures(self, client: TestClient, tournament_id):
        register(client, tournament_id, "male1", 6)

        response = client.post(
            f"/api/tournaments/{tournament_id}/groups/auto", json={"category": "male1", "target_group_size": 4}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["groups_count"] == 2
        assert data["fixtures_created"] == 6 + 1
        assert [g["name"] for g in data["groups"]] == ["Group A", "Group B"]
        assert [m["pair_number"] for m in data["groups"][0]["members"]] == [1, 2, 3, 4]

        listed = client.get(f"/api/tournaments/{tournament_id}/groups").json()
        assert [g["fixtures_count"] for g in listed] == [6, 1]

    def test_auto_group_is_idempotent(self, client: TestClient, tournament_id):
        register(client, tournament_id, "male1", 4)
        url = f"/api/tournaments/{tournament_id}/groups/auto"

        client.post(url, json={"category": "male1", "target_group_size": 4})
        again = client.post(url, json={"category": "male1", "target_group_size": 4}).json()

        assert again["fixtures_created"] == 0
        assert len(client.get(f"/api/tournaments/{tournament_id}/groups").json()) == 1

    def test_no_confirmed_pairs_is_400(self, client: TestClient, tournament_id):
        register(client, tournament_id, "male1", 2, confirm=False)
        response = client.post(f"/api/tournaments/{tournament_id}/groups/auto", json={"category": "male1"})
        assert response.status_code == 400

    def test_group_size_below_two_is_400(self, client: TestClient, tournament_id):
        register(client, tournament_id, "male1", 4)
        response = client.post(
            f"/api/tournaments/{tournament_id}/groups/auto", json={"category": "male1", "target_group_size": 1}
        )
        assert response.status_code == 400

    def test_layout_conflict_is_409(self, client: TestClient, tournament_id):
        register(client, tournament_id, "male1", 8)
        url = f"/api/tournaments/{tournament_id}/groups/auto"
        client.post(url, json={"category": "male1", "target_group_size": 4})

        response = client.post(url, json={"category": "male1", "target_group_size": 3})

        assert response.status_code == 409

    def test_reset_then_regroup(self, client: TestClient, tournament_id):
        register(client, tournament_id, "male1", 8)
        url = f"/api/tournaments/{tournament_id}/groups/auto"
        client.post(url, json={"category": "male1", "target_group_size": 4})

        reset = client.delete(f"/api/tournaments/{tournament_id}/groups", params={"category": "male1"})
        assert reset.status_code == 200
        assert reset.json()["deleted_groups"] == 2

        response = client.post(url, json={"category": "male1", "target_group_size": 3})
        assert response.status_code == 200
        assert response.json()["groups_count"] == 3

    def test_create_missing_fixtures_endpoint(self, client: TestClient, tournament_id):
        register(client, tournament_id, "male1", 4)
        group = client.post(
            f"/api/tournaments/{tournament_id}/groups/auto", json={"category": "male1"}
        ).json()["groups"][0]

        response = client.post(f"/api/tournaments/{tournament_id}/groups/{group['id']}/fixtures")

        assert response.status_code == 200
        assert response.json() == {"group_id": group["id"], "created": 0, "fixtures_total": 6}

    def test_group_of_other_tournament_404(self, client: TestClient, tournament_id):
        assert client.post(f"/api/tournaments/{tournament_id}/groups/9999/fixtures").status_code == 404
