"""Wire format between the device and the scorecard API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol

import httpx

from ..time_utils import coerce_utc
from .store import ScoreData, ServerEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreBatch:
    """Every dirty entry's full field set, keyed by entry id."""

    round_id: str
    generation: int
    entries: Dict[str, ScoreData]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "generation": self.generation,
            "entries": [
                {"entryId": entry_id, **data.to_payload()}
                for entry_id, data in self.entries.items()
            ],
        }


@dataclass(frozen=True)
class SaveResult:
    saved_at: datetime
    accepted: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Scorecard:
    round_id: str
    status: str
    updated_at: Optional[datetime]
    participant_order: List[str]
    entries: List[ServerEntry]


class TransportError(RuntimeError):
    """The server refused or never answered a request."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        problem: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.problem = dict(problem or {})


class ScoreTransport(Protocol):
    async def fetch_scorecard(self, round_id: str) -> Scorecard: ...

    async def save_scores(self, batch: ScoreBatch) -> SaveResult: ...

    async def complete_round(self, round_id: str, nine: Optional[str] = None) -> Dict[str, Any]: ...


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return coerce_utc(value)
    return coerce_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))


class HttpScoreTransport:
    """Talks to ``/rounds`` endpoints through an ``httpx.AsyncClient``.

    The client is owned by the caller; base URL, auth headers and timeouts are
    configured there.
    """

    def __init__(self, client: httpx.AsyncClient, *, api_prefix: str = "/api/v0") -> None:
        self.client = client
        self.api_prefix = api_prefix.rstrip("/")

    def _url(self, round_id: str, suffix: str = "") -> str:
        return f"{self.api_prefix}/rounds/{round_id}{suffix}"

    async def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.RequestError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

        if response.status_code >= 400:
            problem: Dict[str, Any] = {}
            try:
                body = response.json()
                if isinstance(body, dict):
                    problem = body
            except ValueError:
                pass
            message = problem.get("detail") or f"HTTP {response.status_code}"
            raise TransportError(
                str(message),
                status_code=response.status_code,
                code=problem.get("code"),
                problem=problem,
            )
        return response.json()

    async def fetch_scorecard(self, round_id: str) -> Scorecard:
        body = await self._request("GET", self._url(round_id))
        return Scorecard(
            round_id=body["id"],
            status=body["status"],
            updated_at=_parse_timestamp(body.get("updatedAt")),
            participant_order=[p["id"] for p in body.get("participants", [])],
            entries=[ServerEntry.from_payload(e) for e in body.get("entries", [])],
        )

    async def save_scores(self, batch: ScoreBatch) -> SaveResult:
        body = await self._request(
            "PUT", self._url(batch.round_id, "/scores"), json=batch.to_payload()
        )
        saved_at = _parse_timestamp(body.get("savedAt"))
        if saved_at is None:
            raise TransportError("score batch response is missing savedAt")
        return SaveResult(
            saved_at=saved_at,
            accepted=[e["entryId"] for e in body.get("entries", [])],
        )

    async def complete_round(self, round_id: str, nine: Optional[str] = None) -> Dict[str, Any]:
        return await self._request(
            "POST", self._url(round_id, "/complete"), json={"nine": nine}
        )
