import asyncio
import json
from datetime import datetime, timezone

import httpx
import pytest

from scorecard.client.store import NOT_TRACKED, ScoreData
from scorecard.client.transport import HttpScoreTransport, ScoreBatch, TransportError

SCORECARD = {
    "id": "r1",
    "status": "in_progress",
    "updatedAt": "2026-05-01T12:00:00Z",
    "participants": [{"id": "p2"}, {"id": "p1"}],
    "entries": [
        {
            "entryId": "e1",
            "participantId": "p1",
            "holeNumber": 1,
            "par": 4,
            "strokes": 5,
            "putts": 2,
            "fairwayHit": True,
            "greenInRegulation": False,
        }
    ],
}


def _run(handler, call):
    async def scenario():
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(handler), base_url="http://testserver"
        ) as client:
            return await call(HttpScoreTransport(client))

    return asyncio.run(scenario())


def test_fetch_scorecard_parses_round():
    def handler(request):
        assert request.method == "GET"
        assert request.url.path == "/api/v0/rounds/r1"
        return httpx.Response(200, json=SCORECARD)

    card = _run(handler, lambda t: t.fetch_scorecard("r1"))

    assert card.round_id == "r1"
    assert card.updated_at == datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert card.participant_order == ["p2", "p1"]
    entry = card.entries[0]
    assert (entry.entry_id, entry.hole_number, entry.strokes, entry.fairway_hit) == (
        "e1", 1, 5, True,
    )


def test_save_scores_puts_batch():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "roundId": "r1",
                "generation": 3,
                "savedAt": "2026-05-01T12:00:05+00:00",
                "entries": [{"entryId": "e1"}],
            },
        )

    batch = ScoreBatch(
        round_id="r1",
        generation=3,
        entries={"e1": ScoreData(strokes=4, putts=NOT_TRACKED)},
    )
    result = _run(handler, lambda t: t.save_scores(batch))

    assert seen["method"] == "PUT"
    assert seen["path"] == "/api/v0/rounds/r1/scores"
    assert seen["body"] == {
        "generation": 3,
        "entries": [
            {"entryId": "e1", "strokes": 4, "fairwayHit": None, "greenInRegulation": None}
        ],
    }
    assert result.saved_at == datetime(2026, 5, 1, 12, 0, 5, tzinfo=timezone.utc)
    assert result.accepted == ["e1"]


def test_problem_details_become_transport_errors():
    def handler(request):
        return httpx.Response(
            409,
            json={
                "title": "Round not in progress",
                "detail": "round 'r1' is completed; scores can no longer be changed",
                "status": 409,
                "code": "round_not_in_progress",
            },
        )

    batch = ScoreBatch(round_id="r1", generation=1, entries={"e1": ScoreData(strokes=4)})
    with pytest.raises(TransportError) as exc:
        _run(handler, lambda t: t.save_scores(batch))

    assert exc.value.status_code == 409
    assert exc.value.code == "round_not_in_progress"
    assert "completed" in str(exc.value)


def test_network_errors_become_transport_errors():
    def handler(request):
        raise httpx.ConnectError("no route to host", request=request)

    with pytest.raises(TransportError) as exc:
        _run(handler, lambda t: t.complete_round("r1"))
    assert exc.value.status_code is None


def test_missing_saved_at_is_an_error():
    def handler(request):
        return httpx.Response(200, json={"roundId": "r1", "entries": []})

    batch = ScoreBatch(round_id="r1", generation=1, entries={})
    with pytest.raises(TransportError):
        _run(handler, lambda t: t.save_scores(batch))


def test_complete_round_posts_nine():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"roundId": "r1", "status": "completed"})

    body = _run(handler, lambda t: t.complete_round("r1", "back"))

    assert seen == {"path": "/api/v0/rounds/r1/complete", "body": {"nine": "back"}}
    assert body["status"] == "completed"
