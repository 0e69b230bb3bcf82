from starlette.requests import Request

from scorecard import rate_limits
from scorecard.config import SCORE_BATCH_RATE_LIMIT


def _request(headers=None, client=("203.0.113.7", 5000)):
    scope = {
        "type": "http",
        "method": "PUT",
        "path": "/",
        "headers": [
            (k.lower().encode(), v.encode()) for k, v in (headers or {}).items()
        ],
        "client": client,
    }
    return Request(scope)


def test_client_ip_prefers_last_forwarded_hop():
    req = _request({"X-Forwarded-For": "198.51.100.1, 192.0.2.9"})
    assert rate_limits.client_ip(req) == "192.0.2.9"


def test_client_ip_falls_back_to_real_ip_then_peer():
    assert rate_limits.client_ip(_request({"X-Real-IP": "192.0.2.44"})) == "192.0.2.44"
    assert rate_limits.client_ip(_request()) == "203.0.113.7"
    assert rate_limits.client_ip(_request(client=None)) == "anonymous"


def test_score_batch_limit_can_be_disabled(monkeypatch):
    monkeypatch.setenv("DISABLE_RATE_LIMITS", "true")
    assert rate_limits.score_batch_rate_limit() == "1000/second"
    monkeypatch.setenv("DISABLE_RATE_LIMITS", "false")
    assert rate_limits.score_batch_rate_limit() == SCORE_BATCH_RATE_LIMIT
