"""Durable local storage for in-progress scorecards.

Every store mutation writes the full current snapshot here before anything
goes near the network, so a crash or a dead zone on the course never costs a
stroke. Backups are namespaced by round id.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..time_utils import coerce_utc

logger = logging.getLogger(__name__)

SNAPSHOT_PREFIX = "scorecard-"
ORDER_PREFIX = "player-order-"


class EntryValues(BaseModel):
    strokes: Optional[int] = None
    putts: Optional[int] = None
    fairwayHit: Optional[bool] = None
    greenInRegulation: Optional[bool] = None
    # Field names the player is not tracking for this entry.
    untracked: List[str] = Field(default_factory=list)


class StoreSnapshot(BaseModel):
    roundId: str
    participantOrder: List[str] = Field(default_factory=list)
    lastModified: Optional[datetime] = None
    # Server time of the last batch this device saw confirmed.
    lastSavedAt: Optional[datetime] = None
    entries: Dict[str, EntryValues] = Field(default_factory=dict)

    @field_validator("lastModified", "lastSavedAt")
    @classmethod
    def _normalize_timestamps(cls, v: datetime | None) -> datetime | None:
        return coerce_utc(v)


class LocalBackup(Protocol):
    def load(self, round_id: str) -> Optional[StoreSnapshot]: ...

    def save(self, snapshot: StoreSnapshot) -> None: ...

    def clear(self, round_id: str) -> None: ...

    def load_order(self, round_id: str) -> Optional[List[str]]: ...

    def save_order(self, round_id: str, order: List[str]) -> None: ...

    def clear_order(self, round_id: str) -> None: ...


class MemoryBackup:
    """Backup kept in a dict; stands in for device storage in tests."""

    def __init__(self) -> None:
        self.snapshots: Dict[str, str] = {}
        self.orders: Dict[str, List[str]] = {}
        self.writes = 0

    def load(self, round_id: str) -> Optional[StoreSnapshot]:
        raw = self.snapshots.get(round_id)
        if raw is None:
            return None
        return StoreSnapshot.model_validate_json(raw)

    def save(self, snapshot: StoreSnapshot) -> None:
        self.snapshots[snapshot.roundId] = snapshot.model_dump_json()
        self.writes += 1

    def clear(self, round_id: str) -> None:
        self.snapshots.pop(round_id, None)

    def load_order(self, round_id: str) -> Optional[List[str]]:
        order = self.orders.get(round_id)
        return list(order) if order is not None else None

    def save_order(self, round_id: str, order: List[str]) -> None:
        self.orders[round_id] = list(order)

    def clear_order(self, round_id: str) -> None:
        self.orders.pop(round_id, None)


def _safe_name(round_id: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]", "_", round_id)


class JsonFileBackup:
    """One JSON file per round under ``directory``, replaced atomically."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def _path(self, prefix: str, round_id: str) -> Path:
        return self.directory / f"{prefix}{_safe_name(round_id)}.json"

    def _write(self, path: Path, payload: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def load(self, round_id: str) -> Optional[StoreSnapshot]:
        path = self._path(SNAPSHOT_PREFIX, round_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            snapshot = StoreSnapshot.model_validate_json(raw)
        except ValidationError:
            logger.warning("Ignoring unreadable scorecard backup at %s", path, exc_info=True)
            return None
        if snapshot.roundId != round_id:
            return None
        return snapshot

    def save(self, snapshot: StoreSnapshot) -> None:
        self._write(self._path(SNAPSHOT_PREFIX, snapshot.roundId), snapshot.model_dump_json())

    def clear(self, round_id: str) -> None:
        self._path(SNAPSHOT_PREFIX, round_id).unlink(missing_ok=True)

    def load_order(self, round_id: str) -> Optional[List[str]]:
        path = self._path(ORDER_PREFIX, round_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            return _OrderFile.model_validate_json(raw).order
        except ValidationError:
            logger.warning("Ignoring unreadable player order at %s", path, exc_info=True)
            return None

    def save_order(self, round_id: str, order: List[str]) -> None:
        self._write(self._path(ORDER_PREFIX, round_id), _OrderFile(order=list(order)).model_dump_json())

    def clear_order(self, round_id: str) -> None:
        self._path(ORDER_PREFIX, round_id).unlink(missing_ok=True)


class _OrderFile(BaseModel):
    order: List[str]
