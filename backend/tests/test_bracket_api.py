"""
End-to-end bracket lifecycle over the HTTP API:
format selection with a random draw, resolved view, score propagation, courts.
"""
import pytest
from fastapi.testclient import TestClient


def _setup_tournament(client: TestClient, team_count: int, court_count: int = 4, lock: bool = True) -> int:
    tid = client.post(
        "/api/tournaments",
        json={
            "name": "Bracket Test",
            "location": "Club",
            "start_date": "2026-06-01",
            "end_date": "2026-06-02",
            "court_count": court_count,
        },
    ).json()["id"]
    for seed in range(1, team_count + 1):
        response = client.post(
            f"/api/tournaments/{tid}/teams", json={"name": f"Team {seed}", "seed_number": seed}
        )
        assert response.status_code == 201
    if lock:
        assert client.post(f"/api/tournaments/{tid}/teams/lock").status_code == 200
    return tid


def _team_ids_by_seed(client: TestClient, tid: int):
    return {t["seed_number"]: t["id"] for t in client.get(f"/api/tournaments/{tid}/teams").json()}


def _matches(client: TestClient, tid: int):
    return {m["match_id"]: m for m in client.get(f"/api/tournaments/{tid}/bracket").json()["matches"]}


@pytest.fixture
def random_bracket(client: TestClient) -> int:
    tid = _setup_tournament(client, 8)
    response = client.post(f"/api/tournaments/{tid}/format", json={"format_key": "8_teams_random"})
    assert response.status_code == 201
    return tid


def test_select_format_requires_locked_roster(client: TestClient):
    tid = _setup_tournament(client, 8, lock=False)
    response = client.post(f"/api/tournaments/{tid}/format", json={"format_key": "8_teams_random"})
    assert response.status_code == 409


def test_select_format_rejects_wrong_team_count(client: TestClient):
    tid = _setup_tournament(client, 6)
    response = client.post(f"/api/tournaments/{tid}/format", json={"format_key": "8_teams_random"})
    assert response.status_code == 409


def test_select_unknown_format(client: TestClient):
    tid = _setup_tournament(client, 4)
    response = client.post(f"/api/tournaments/{tid}/format", json={"format_key": "does_not_exist"})
    assert response.status_code == 404


def test_select_format_twice_conflicts(client: TestClient, random_bracket: int):
    response = client.post(f"/api/tournaments/{random_bracket}/format", json={"format_key": "8_teams_random"})
    assert response.status_code == 409


def test_draw_fills_every_first_round_slot(client: TestClient, random_bracket: int):
    data = client.get(f"/api/tournaments/{random_bracket}/bracket").json()
    assert data["format_key"] == "8_teams_random"
    assert sorted(data["random_assignments"]) == [
        "random_3_4_1",
        "random_3_4_2",
        "random_5_8_1",
        "random_5_8_2",
        "random_5_8_3",
        "random_5_8_4",
    ]
    assert [m["match_id"] for m in data["matches"]] == list(range(1, 13))

    seeds = _team_ids_by_seed(client, random_bracket)
    matches = {m["match_id"]: m for m in data["matches"]}
    first_round = [matches[i] for i in (1, 2, 3, 4)]
    entrants = [m["team1"]["id"] for m in first_round] + [m["team2"]["id"] for m in first_round]

    # Every team plays exactly once in the first round
    assert sorted(entrants) == sorted(seeds.values())
    assert matches[1]["team1"]["id"] == seeds[1]
    assert matches[4]["team1"]["id"] == seeds[2]
    assert {matches[2]["team1"]["seed_number"], matches[3]["team1"]["seed_number"]} == {3, 4}
    assert all(m["state"] == "READY" for m in first_round)


def test_later_rounds_start_unresolved(client: TestClient, random_bracket: int):
    matches = _matches(client, random_bracket)
    semi = matches[5]
    assert semi["state"] == "UNRESOLVED"
    assert semi["team1"] is None
    assert semi["slot1_label"] == "winner_1"
    assert semi["slot2_label"] == "winner_2"
    assert matches[7]["slot1_label"] == "loser_1"


def test_score_propagates_winner_and_loser(client: TestClient, random_bracket: int):
    before = _matches(client, random_bracket)[1]

    response = client.put(f"/api/tournaments/{random_bracket}/matches/1/score", json={"score1": 6, "score2": 3})
    assert response.status_code == 200
    data = response.json()
    assert data["match"]["state"] == "DECIDED"
    assert data["match"]["winner_slot"] == 1
    assert data["match"]["winner_team_id"] == before["team1"]["id"]
    assert sorted(data["changed_match_ids"]) == [5, 7]

    matches = _matches(client, random_bracket)
    assert matches[5]["team1"]["id"] == before["team1"]["id"]
    assert matches[5]["team2"] is None
    assert matches[7]["team1"]["id"] == before["team2"]["id"]
    assert matches[5]["state"] == "UNRESOLVED"


def test_score_string_form(client: TestClient, random_bracket: int):
    response = client.put(
        f"/api/tournaments/{random_bracket}/matches/2/score", json={"score": "4-6 6-3 7-10"}
    )
    assert response.status_code == 200
    match = response.json()["match"]
    assert (match["score1"], match["score2"]) == (1, 2)
    assert match["winner_slot"] == 2


def test_unreadable_score_string(client: TestClient, random_bracket: int):
    response = client.put(f"/api/tournaments/{random_bracket}/matches/2/score", json={"score": "six-four"})
    assert response.status_code == 422


def test_score_request_needs_a_score(client: TestClient, random_bracket: int):
    response = client.put(f"/api/tournaments/{random_bracket}/matches/2/score", json={"score1": 6})
    assert response.status_code == 422


def test_negative_score_rejected(client: TestClient, random_bracket: int):
    response = client.put(f"/api/tournaments/{random_bracket}/matches/1/score", json={"score1": -1, "score2": 6})
    assert response.status_code == 422


def test_tie_records_score_without_winner(client: TestClient, random_bracket: int):
    response = client.put(f"/api/tournaments/{random_bracket}/matches/1/score", json={"score1": 5, "score2": 5})
    assert response.status_code == 200
    match = response.json()["match"]
    assert match["state"] == "READY"
    assert match["winner_slot"] is None
    assert response.json()["changed_match_ids"] == []
    assert _matches(client, random_bracket)[5]["team1"] is None


def test_scoring_unresolved_match_is_rejected(client: TestClient, random_bracket: int):
    response = client.put(f"/api/tournaments/{random_bracket}/matches/9/score", json={"score1": 6, "score2": 2})
    assert response.status_code == 422
    assert "Entrants not yet determined" in response.json()["detail"]


def test_unknown_match(client: TestClient, random_bracket: int):
    response = client.put(f"/api/tournaments/{random_bracket}/matches/99/score", json={"score1": 6, "score2": 2})
    assert response.status_code == 404


def test_full_path_to_final(client: TestClient, random_bracket: int):
    for match_id in (1, 2, 3, 4):
        client.put(f"/api/tournaments/{random_bracket}/matches/{match_id}/score", json={"score1": 6, "score2": 2})
    for match_id in (5, 6):
        response = client.put(
            f"/api/tournaments/{random_bracket}/matches/{match_id}/score", json={"score1": 2, "score2": 6}
        )
        assert response.status_code == 200

    matches = _matches(client, random_bracket)
    assert matches[9]["state"] == "READY"
    assert matches[9]["team1"]["id"] == matches[5]["team2"]["id"]
    assert matches[9]["team2"]["id"] == matches[6]["team2"]["id"]
    assert matches[10]["team1"]["id"] == matches[5]["team1"]["id"]
    assert matches[7]["state"] == "READY"
    assert matches[11]["state"] == "UNRESOLVED"


def test_declare_winner_without_score(client: TestClient, random_bracket: int):
    before = _matches(client, random_bracket)[1]

    response = client.put(f"/api/tournaments/{random_bracket}/matches/1/winner", json={"winner_slot": 2})
    assert response.status_code == 200
    data = response.json()
    assert data["match"]["state"] == "DECIDED"
    assert data["match"]["score1"] is None
    assert data["match"]["winner_team_id"] == before["team2"]["id"]
    assert sorted(data["changed_match_ids"]) == [5, 7]

    matches = _matches(client, random_bracket)
    assert matches[5]["team1"]["id"] == before["team2"]["id"]
    assert matches[7]["team1"]["id"] == before["team1"]["id"]

    # A walkover counts as a result: the draw is frozen
    assert client.post(f"/api/tournaments/{random_bracket}/draw").status_code == 409


def test_declare_winner_rejections(client: TestClient, random_bracket: int):
    base = f"/api/tournaments/{random_bracket}/matches"
    assert client.put(f"{base}/1/winner", json={"winner_slot": 3}).status_code == 422
    assert client.put(f"{base}/9/winner", json={"winner_slot": 1}).status_code == 422
    assert client.put(f"{base}/99/winner", json={"winner_slot": 1}).status_code == 404


def test_rescoring_upstream_stales_decided_dependent(client: TestClient, random_bracket: int):
    base = f"/api/tournaments/{random_bracket}/matches"
    client.put(f"{base}/1/score", json={"score1": 6, "score2": 3})
    client.put(f"{base}/2/score", json={"score1": 6, "score2": 3})
    client.put(f"{base}/5/score", json={"score1": 6, "score2": 0})
    assert _matches(client, random_bracket)[9]["team1"] is not None

    client.put(f"{base}/1/score", json={"score1": 3, "score2": 6})

    matches = _matches(client, random_bracket)
    assert matches[5]["team1"]["id"] == matches[1]["team2"]["id"]
    assert matches[5]["state"] == "DECIDED"
    assert matches[5]["is_stale"] is True
    assert matches[5]["winner_team_id"] is None
    assert matches[9]["team1"] is None
    assert matches[10]["team1"] is None


def test_reset_score_clears_result(client: TestClient, random_bracket: int):
    client.put(f"/api/tournaments/{random_bracket}/matches/1/score", json={"score1": 6, "score2": 1})

    response = client.delete(f"/api/tournaments/{random_bracket}/matches/1/score")
    assert response.status_code == 200
    data = response.json()
    assert data["match"]["state"] == "READY"
    assert data["match"]["score1"] is None
    assert sorted(data["changed_match_ids"]) == [5, 7]

    matches = _matches(client, random_bracket)
    assert matches[5]["team1"] is None
    assert matches[7]["team1"] is None


def test_reset_does_not_undo_later_results(client: TestClient, random_bracket: int):
    client.put(f"/api/tournaments/{random_bracket}/matches/1/score", json={"score1": 6, "score2": 1})
    client.put(f"/api/tournaments/{random_bracket}/matches/2/score", json={"score1": 6, "score2": 1})
    client.put(f"/api/tournaments/{random_bracket}/matches/5/score", json={"score1": 6, "score2": 4})

    client.delete(f"/api/tournaments/{random_bracket}/matches/1/score")

    semi = _matches(client, random_bracket)[5]
    assert semi["state"] == "DECIDED"
    assert semi["is_stale"] is True
    assert (semi["score1"], semi["score2"]) == (6, 4)


def test_redraw_before_any_score(client: TestClient, random_bracket: int):
    response = client.post(f"/api/tournaments/{random_bracket}/draw")
    assert response.status_code == 200
    data = response.json()
    assert data["unbound"] == []
    assert len(data["random_assignments"]) == 6
    assert len(set(data["random_assignments"].values())) == 6

    seeds = _team_ids_by_seed(client, random_bracket)
    matches = _matches(client, random_bracket)
    entrants = [matches[i]["team1"]["id"] for i in (1, 2, 3, 4)] + [matches[i]["team2"]["id"] for i in (1, 2, 3, 4)]
    assert sorted(entrants) == sorted(seeds.values())


def test_redraw_refused_after_score(client: TestClient, random_bracket: int):
    client.put(f"/api/tournaments/{random_bracket}/matches/1/score", json={"score1": 6, "score2": 1})
    response = client.post(f"/api/tournaments/{random_bracket}/draw")
    assert response.status_code == 409


def test_draw_candidates(client: TestClient, random_bracket: int):
    response = client.get(f"/api/tournaments/{random_bracket}/draw/candidates")
    assert response.status_code == 200
    data = response.json()
    assert [t["seed_number"] for t in data["random_3_4"]] == [3, 4]
    assert [t["seed_number"] for t in data["random_5_8"]] == [5, 6, 7, 8]


def test_draw_candidates_without_format(client: TestClient):
    tid = _setup_tournament(client, 4)
    assert client.get(f"/api/tournaments/{tid}/draw/candidates").status_code == 409


def test_fixed_seed_format_has_no_draw(client: TestClient):
    tid = _setup_tournament(client, 4)
    response = client.post(f"/api/tournaments/{tid}/format", json={"format_key": "4_teams"})
    assert response.status_code == 201
    data = response.json()
    assert data["random_assignments"] == {}

    seeds = _team_ids_by_seed(client, tid)
    matches = {m["match_id"]: m for m in data["matches"]}
    assert (matches[1]["team1"]["id"], matches[1]["team2"]["id"]) == (seeds[1], seeds[4])
    assert (matches[2]["team1"]["id"], matches[2]["team2"]["id"]) == (seeds[2], seeds[3])
    assert matches[3]["slot1_label"] == "winner_1"
    assert matches[4]["ranking_label"] == "3rd place"

    assert client.post(f"/api/tournaments/{tid}/draw").status_code == 409


def test_unselect_format_deletes_matches(client: TestClient, random_bracket: int):
    response = client.delete(f"/api/tournaments/{random_bracket}/format")
    assert response.status_code == 200
    assert response.json() == {"matches_deleted": 12}

    data = client.get(f"/api/tournaments/{random_bracket}/bracket").json()
    assert data["matches"] == []
    assert data["format_key"] is None
    assert data["random_assignments"] == {}


def test_unlock_discards_bracket(client: TestClient, random_bracket: int):
    client.put(f"/api/tournaments/{random_bracket}/matches/1/score", json={"score1": 6, "score2": 1})

    response = client.post(f"/api/tournaments/{random_bracket}/teams/unlock")
    assert response.status_code == 200
    assert response.json()["format_key"] is None
    assert _matches(client, random_bracket) == {}

    # Roster is editable again
    response = client.post(f"/api/tournaments/{random_bracket}/teams", json={"name": "Late entry", "seed_number": 9})
    assert response.status_code == 201


def test_ready_for_court_and_assignment(client: TestClient, random_bracket: int):
    ready = client.get(f"/api/tournaments/{random_bracket}/matches/ready-for-court").json()
    assert [m["match_id"] for m in ready] == [1, 2, 3, 4]

    response = client.put(f"/api/tournaments/{random_bracket}/matches/1/court", json={"court_number": 1})
    assert response.status_code == 200
    assert response.json()["court_number"] == 1

    ready = client.get(f"/api/tournaments/{random_bracket}/matches/ready-for-court").json()
    assert [m["match_id"] for m in ready] == [2, 3, 4]

    # Court 1 is busy until match 1 is decided
    assert client.put(
        f"/api/tournaments/{random_bracket}/matches/2/court", json={"court_number": 1}
    ).status_code == 409
    assert client.put(
        f"/api/tournaments/{random_bracket}/matches/2/court", json={"court_number": 5}
    ).status_code == 409

    client.put(f"/api/tournaments/{random_bracket}/matches/1/score", json={"score1": 6, "score2": 0})
    assert client.put(
        f"/api/tournaments/{random_bracket}/matches/2/court", json={"court_number": 1}
    ).status_code == 200

    response = client.put(f"/api/tournaments/{random_bracket}/matches/2/court", json={"court_number": None})
    assert response.status_code == 200
    assert response.json()["court_number"] is None


def test_bracket_of_unknown_tournament(client: TestClient):
    assert client.get("/api/tournaments/999/bracket").status_code == 404
