from fastapi.testclient import TestClient

from scorecard.main import app

from round_support import API, bogey_golf, entry_ids, round_payload, score_updates

client = TestClient(app)


def _play_round(strokes_for, holes=18):
    card = client.post(
        f"{API}/rounds", json=round_payload([("alice", "Alice", 18.0)], holes=holes)
    ).json()
    client.put(
        f"{API}/rounds/{card['id']}/scores",
        json={"entries": score_updates(card, "alice", strokes_for)},
    )
    resp = client.post(f"{API}/rounds/{card['id']}/complete", json={})
    assert resp.status_code == 200, resp.text
    return card


def test_handicap_needs_three_rounds():
    _play_round(bogey_golf)

    resp = client.get(f"{API}/players/alice/handicap")
    assert resp.status_code == 200
    body = resp.json()
    assert body["playerName"] == "Alice"
    assert body["handicapIndex"] is None
    assert body["display"] == "N/A"
    assert body["differentialsCount"] == 1
    assert body["differentialsUsed"] == 0
    assert [h["source"] for h in body["history"]] == ["round"]


def test_handicap_after_three_rounds():
    _play_round(bogey_golf)
    _play_round(lambda hole, par: par)
    _play_round(lambda hole, par: par + 2 if hole == 1 else par + 1)

    body = client.get(f"{API}/players/alice/handicap").json()

    assert body["differentialsCount"] == 3
    assert body["differentialsUsed"] == 1
    # best of 18.0, 0.0, 19.0 less the three-round adjustment
    assert body["handicapIndex"] == -2.0
    assert body["display"] == "+2.0"
    assert len(body["history"]) == 3
    assert body["history"][0]["value"] == -2.0
    assert sorted(d["value"] for d in body["recentDifferentials"]) == [0.0, 18.0, 19.0]


def test_history_includes_edits():
    card = _play_round(bogey_golf, holes=9)
    ids = entry_ids(card, "alice")
    client.post(
        f"{API}/rounds/{card['id']}/edit-scores",
        json={"edits": [{"entryId": ids[1], "strokes": 4}], "editedBy": "marker"},
    )

    body = client.get(f"{API}/players/alice/handicap").json()
    assert [h["source"] for h in body["history"]] == ["edit", "round"]
    assert body["recentDifferentials"][0]["editedAt"] is not None


def test_history_limit_is_validated():
    _play_round(bogey_golf, holes=9)
    assert client.get(f"{API}/players/alice/handicap?history=0").status_code == 422


def test_unknown_player():
    resp = client.get(f"{API}/players/nobody/handicap")
    assert resp.status_code == 404
    assert resp.json()["code"] == "player_not_found"
