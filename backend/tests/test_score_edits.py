from fastapi.testclient import TestClient

from scorecard.main import app
from scorecard.models import HandicapDifferential, HandicapIndexSnapshot, ScoreEdit

from round_support import API, bogey_golf, entry_ids, round_payload, rows, score_updates

client = TestClient(app)


def _completed_round(holes=18):
    card = client.post(
        f"{API}/rounds", json=round_payload([("alice", "Alice", 18.0)], holes=holes)
    ).json()
    client.put(
        f"{API}/rounds/{card['id']}/scores",
        json={"entries": score_updates(card, "alice", bogey_golf)},
    )
    resp = client.post(f"{API}/rounds/{card['id']}/complete", json={})
    assert resp.status_code == 200, resp.text
    return card, entry_ids(card, "alice")


def _edit(card, edits, **extra):
    body = {"edits": edits, "editedBy": "marker", "reason": "card mix-up"}
    body.update(extra)
    return client.post(f"{API}/rounds/{card['id']}/edit-scores", json=body)


def test_edit_recomputes_totals_and_differential():
    card, ids = _completed_round()

    resp = _edit(card, [{"entryId": ids[1], "strokes": 4, "putts": 2}])
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["changesCount"] == 1
    assert body["message"] == "Updated 1 score(s)"
    [player] = body["players"]
    assert player["grossScore"] == 89
    assert player["adjustedGrossScore"] == 89
    assert player["netScore"] == 71
    assert player["scoreDifferential"] == 17.0

    [audit] = rows(ScoreEdit)
    assert (audit.hole_number, audit.old_strokes, audit.new_strokes) == (1, 5, 4)
    assert (audit.old_putts, audit.new_putts) == (None, 2)
    assert audit.edited_by == "marker"
    assert audit.player_name == "Alice"

    [differential] = rows(HandicapDifferential)
    assert differential.value == 17.0
    assert differential.edited_at is not None
    sources = sorted(s.source for s in rows(HandicapIndexSnapshot))
    assert sources == ["edit", "round"]

    participant = client.get(f"{API}/rounds/{card['id']}").json()["participants"][0]
    assert participant["grossScore"] == 89


def test_edit_reuses_completion_esc_basis():
    card, ids = _completed_round()

    player = _edit(card, [{"entryId": ids[2], "strokes": 12}]).json()["players"][0]

    assert player["grossScore"] == 97
    # the course handicap stored at completion caps hole 2 at 7
    assert player["adjustedGrossScore"] == 92
    assert player["scoreDifferential"] == 20.0


def test_unchanged_values_are_not_audited():
    card, ids = _completed_round(holes=9)

    resp = _edit(card, [{"entryId": ids[1], "strokes": 5}])
    assert resp.status_code == 200
    assert resp.json() == {
        "roundId": card["id"],
        "changesCount": 0,
        "message": "No changes detected",
        "players": [],
    }
    assert rows(ScoreEdit) == []


def test_repeated_corrections_to_one_entry_merge():
    card, ids = _completed_round(holes=9)

    resp = _edit(
        card,
        [
            {"entryId": ids[1], "strokes": 6},
            {"entryId": ids[1], "strokes": 7},
        ],
    )
    assert resp.json()["changesCount"] == 1
    [audit] = rows(ScoreEdit)
    assert (audit.old_strokes, audit.new_strokes) == (5, 7)


def test_edit_history_is_newest_first():
    card, ids = _completed_round(holes=9)
    _edit(card, [{"entryId": ids[1], "strokes": 4}])
    _edit(card, [{"entryId": ids[2], "strokes": 6}], reason=None)

    resp = client.get(f"{API}/rounds/{card['id']}/edit-scores")
    assert resp.status_code == 200
    history = resp.json()
    assert [h["holeNumber"] for h in history] == [2, 1]
    assert history[0]["reason"] is None
    assert history[1]["reason"] == "card mix-up"


def test_edits_require_completed_round():
    card = client.post(
        f"{API}/rounds", json=round_payload([("alice", "Alice", 18.0)], holes=9)
    ).json()
    resp = _edit(card, [{"entryId": entry_ids(card, "alice")[1], "strokes": 4}])
    assert resp.status_code == 409
    assert resp.json()["code"] == "round_not_completed"


def test_invalid_corrections_are_rejected():
    card, ids = _completed_round(holes=9)

    resp = _edit(card, [{"entryId": "nope", "strokes": 4}])
    assert resp.status_code == 400
    assert resp.json()["code"] == "unknown_score_entry"

    for bad in ({"strokes": None}, {"strokes": 0}, {"putts": 16}):
        resp = _edit(card, [{"entryId": ids[1], **bad}])
        assert resp.status_code == 400, bad
        assert resp.json()["code"] == "invalid_score_value"

    assert _edit(card, [{"entryId": ids[1], "strokes": 4}], editedBy="").status_code == 422
    assert rows(ScoreEdit) == []
