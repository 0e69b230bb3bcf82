"""Client-side state for one round's scorecard.

The store is the single source of truth for in-progress scoring on the
device. It knows nothing about the network: every mutation is synchronous,
derived values (dirty flags, current-hole cursor, totals) are consistent as
soon as a call returns, and the full snapshot is written to the durable
backup on every change. Getting dirty entries to the server is the
persistence bridge's job.

Create one store per open round and drop it (``reset``) on round exit.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Union

from ..time_utils import coerce_utc, is_newer, utcnow
from .backup import EntryValues, LocalBackup, StoreSnapshot

logger = logging.getLogger(__name__)

MIN_STROKES = 1
MAX_STROKES = 15
MAX_PUTTS = 15


class _NotTracked:
    """Marker for a stat the player is not recording (distinct from empty)."""

    _instance: Optional["_NotTracked"] = None

    def __new__(cls) -> "_NotTracked":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_TRACKED"

    def __bool__(self) -> bool:
        return False


NOT_TRACKED = _NotTracked()

OptionalInt = Union[int, None, _NotTracked]
OptionalFlag = Union[bool, None, _NotTracked]

# dataclass attribute -> wire/backup key
_FIELD_KEYS = {
    "strokes": "strokes",
    "putts": "putts",
    "fairway_hit": "fairwayHit",
    "green_in_regulation": "greenInRegulation",
}
_OPTIONAL_STATS = ("putts", "fairway_hit", "green_in_regulation")


@dataclass(frozen=True)
class ScoreData:
    strokes: Optional[int] = None
    putts: OptionalInt = None
    fairway_hit: OptionalFlag = None
    green_in_regulation: OptionalFlag = None

    def replace(self, **changes: Any) -> "ScoreData":
        return dataclasses.replace(self, **changes)

    def cleared(self) -> "ScoreData":
        """Empty every tracked field, keeping untracked ones untracked."""
        return ScoreData(
            strokes=None,
            putts=NOT_TRACKED if self.putts is NOT_TRACKED else None,
            fairway_hit=NOT_TRACKED if self.fairway_hit is NOT_TRACKED else None,
            green_in_regulation=(
                NOT_TRACKED if self.green_in_regulation is NOT_TRACKED else None
            ),
        )

    def to_payload(self) -> Dict[str, Any]:
        """Tracked fields keyed for the wire; untracked ones are left out."""
        payload: Dict[str, Any] = {}
        for attr, key in _FIELD_KEYS.items():
            value = getattr(self, attr)
            if value is not NOT_TRACKED:
                payload[key] = value
        return payload

    def to_values(self) -> EntryValues:
        untracked = [
            _FIELD_KEYS[attr]
            for attr in _OPTIONAL_STATS
            if getattr(self, attr) is NOT_TRACKED
        ]
        payload = self.to_payload()
        return EntryValues(untracked=untracked, **payload)

    @classmethod
    def from_values(cls, values: EntryValues) -> "ScoreData":
        untracked = set(values.untracked)
        return cls(
            strokes=values.strokes,
            putts=NOT_TRACKED if "putts" in untracked else values.putts,
            fairway_hit=NOT_TRACKED if "fairwayHit" in untracked else values.fairwayHit,
            green_in_regulation=(
                NOT_TRACKED if "greenInRegulation" in untracked else values.greenInRegulation
            ),
        )


@dataclass(frozen=True)
class ServerEntry:
    """A score record as the server last reported it."""

    entry_id: str
    participant_id: str
    hole_number: int
    par: int
    strokes: Optional[int] = None
    putts: OptionalInt = None
    fairway_hit: OptionalFlag = None
    green_in_regulation: OptionalFlag = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ServerEntry":
        return cls(
            entry_id=payload["entryId"],
            participant_id=payload["participantId"],
            hole_number=int(payload["holeNumber"]),
            par=int(payload["par"]),
            strokes=payload.get("strokes"),
            putts=payload.get("putts"),
            fairway_hit=payload.get("fairwayHit"),
            green_in_regulation=payload.get("greenInRegulation"),
        )

    @property
    def data(self) -> ScoreData:
        return ScoreData(
            strokes=self.strokes,
            putts=self.putts,
            fairway_hit=self.fairway_hit,
            green_in_regulation=self.green_in_regulation,
        )


@dataclass
class ScoreEntry:
    entry_id: str
    participant_id: str
    hole_number: int
    par: int
    original: ScoreData
    current: ScoreData

    @property
    def is_dirty(self) -> bool:
        return self.current != self.original


class Cell(NamedTuple):
    participant_id: str
    hole_number: int


class SaveStatus(str, Enum):
    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"
    OFFLINE = "offline"


class ReconcileSource(str, Enum):
    SERVER = "server"
    LOCAL = "local"


@dataclass(frozen=True)
class ReconcileResult:
    source: ReconcileSource
    dirty_count: int = 0
    local_modified_at: Optional[datetime] = None


class ScorecardStoreError(RuntimeError):
    """Caller bug: the store was used in a way that can never succeed."""


class StoreNotInitialized(ScorecardStoreError):
    def __init__(self) -> None:
        super().__init__("scorecard store has not been initialized with a round")


class UnknownEntry(ScorecardStoreError):
    def __init__(self, participant_id: str, hole_number: int) -> None:
        super().__init__(
            f"no score entry for participant {participant_id!r} on hole {hole_number}"
        )
        self.participant_id = participant_id
        self.hole_number = hole_number


Listener = Callable[[ScoreEntry], None]


def _check_int(name: str, value: Any, low: int, high: int) -> None:
    if value is None or value is NOT_TRACKED:
        return
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer")
    if not low <= value <= high:
        raise ValueError(f"{name} must be between {low} and {high}")


def _check_flag(name: str, value: Any) -> None:
    if value is None or value is NOT_TRACKED:
        return
    if not isinstance(value, bool):
        raise ValueError(f"{name} must be true, false or empty")


def _local_wins(local: StoreSnapshot, server_modified_at: Optional[datetime]) -> bool:
    if is_newer(local.lastModified, server_modified_at):
        return True
    # Server unchanged since the batch this device saw confirmed.
    return local.lastSavedAt is not None and not is_newer(
        server_modified_at, local.lastSavedAt
    )


class ScoreEntryStore:
    def __init__(
        self,
        backup: Optional[LocalBackup] = None,
        *,
        clock: Callable[[], datetime] = utcnow,
        track_putts: bool = True,
        track_fairways: bool = True,
        track_greens: bool = True,
    ) -> None:
        self._backup = backup
        self._clock = clock
        self.track_putts = track_putts
        self.track_fairways = track_fairways
        self.track_greens = track_greens
        self._listeners: List[Listener] = []
        self._clear_state()

    def _clear_state(self) -> None:
        self.round_id: Optional[str] = None
        self._entries: Dict[Cell, ScoreEntry] = {}
        self._by_id: Dict[str, Cell] = {}
        self.participant_order: List[str] = []
        self.hole_numbers: List[int] = []
        self.current_hole = 1
        self.focused: Optional[Cell] = None
        self.last_modified: Optional[datetime] = None
        self.last_saved: Optional[datetime] = None
        self.save_status = SaveStatus.IDLE
        self.save_error: Optional[str] = None

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    @property
    def initialized(self) -> bool:
        return self.round_id is not None

    def _require_round(self) -> str:
        if self.round_id is None:
            raise StoreNotInitialized()
        return self.round_id

    def _tracked(self, server: ServerEntry) -> ScoreData:
        data = server.data
        changes: Dict[str, Any] = {}
        if not self.track_putts:
            changes["putts"] = NOT_TRACKED
        if not self.track_fairways or server.par == 3:
            changes["fairway_hit"] = NOT_TRACKED
        if not self.track_greens:
            changes["green_in_regulation"] = NOT_TRACKED
        return data.replace(**changes) if changes else data

    def initialize(
        self,
        round_id: str,
        entries: Iterable[ServerEntry],
        participant_order: Optional[Sequence[str]] = None,
        server_modified_at: Optional[datetime] = None,
    ) -> ReconcileResult:
        """Replace all state with the server's entries for ``round_id``.

        If the durable backup holds a snapshot for this round that was modified
        after ``server_modified_at``, or the server has not been written since
        the last save this device saw confirmed, the whole local snapshot wins: current
        values come from the backup and the server values become the originals,
        leaving the unsent edits dirty. Otherwise the backup is discarded.
        """

        self._clear_state()
        self.round_id = round_id

        seen_participants: List[str] = []
        for server in entries:
            cell = Cell(server.participant_id, int(server.hole_number))
            if cell in self._entries:
                raise ValueError(
                    f"duplicate score entry for participant {cell.participant_id!r} "
                    f"on hole {cell.hole_number}"
                )
            data = self._tracked(server)
            self._entries[cell] = ScoreEntry(
                entry_id=server.entry_id,
                participant_id=server.participant_id,
                hole_number=cell.hole_number,
                par=int(server.par),
                original=data,
                current=data,
            )
            self._by_id[server.entry_id] = cell
            if server.participant_id not in seen_participants:
                seen_participants.append(server.participant_id)

        self.hole_numbers = sorted({cell.hole_number for cell in self._entries})

        local = self._backup.load(round_id) if self._backup is not None else None
        result = ReconcileResult(source=ReconcileSource.SERVER)
        if local is not None and _local_wins(local, server_modified_at):
            restored = 0
            for entry_id, values in local.entries.items():
                cell = self._by_id.get(entry_id)
                if cell is None:
                    logger.warning(
                        "Backup for round %s references unknown entry %s; skipping",
                        round_id,
                        entry_id,
                    )
                    continue
                self._entries[cell].current = ScoreData.from_values(values)
                restored += 1
            self.last_modified = local.lastModified
            self.last_saved = local.lastSavedAt
            result = ReconcileResult(
                source=ReconcileSource.LOCAL,
                dirty_count=len(self.dirty_entries()),
                local_modified_at=local.lastModified,
            )
            logger.info(
                "Restored %d backed-up entries for round %s (%d unsaved)",
                restored,
                round_id,
                result.dirty_count,
            )
        elif local is not None and self._backup is not None:
            logger.info("Discarding stale local backup for round %s", round_id)
            self._backup.clear(round_id)

        self.participant_order = self._resolve_order(
            participant_order,
            local.participantOrder if result.source is ReconcileSource.LOCAL and local else None,
            seen_participants,
        )
        self.current_hole = self._compute_current_hole()
        return result

    def _resolve_order(
        self,
        explicit: Optional[Sequence[str]],
        restored: Optional[Sequence[str]],
        seen: List[str],
    ) -> List[str]:
        known = set(seen)
        candidates: List[Optional[Sequence[str]]] = [explicit, restored]
        if self._backup is not None and self.round_id is not None:
            candidates.append(self._backup.load_order(self.round_id))
        for candidate in candidates:
            if candidate and set(candidate) == known and len(candidate) == len(known):
                return list(candidate)
        return list(seen)

    def reset(self) -> None:
        """Forget the round and its backup (round exit)."""
        if self._backup is not None and self.round_id is not None:
            self._backup.clear(self.round_id)
            self._backup.clear_order(self.round_id)
        self._clear_state()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # mutations
    # ------------------------------------------------------------------
    def _entry(self, participant_id: str, hole_number: int) -> ScoreEntry:
        self._require_round()
        entry = self._entries.get(Cell(participant_id, hole_number))
        if entry is None:
            raise UnknownEntry(participant_id, hole_number)
        return entry

    def _apply(self, entry: ScoreEntry, current: ScoreData) -> ScoreEntry:
        entry.current = current
        self.last_modified = self._clock()
        if self.save_status is SaveStatus.SAVED:
            self.save_status = SaveStatus.IDLE
        self.current_hole = self._compute_current_hole()
        self._write_backup()
        for listener in list(self._listeners):
            listener(entry)
        return entry

    def update_strokes(
        self, participant_id: str, hole_number: int, strokes: Optional[int]
    ) -> ScoreEntry:
        _check_int("strokes", strokes, MIN_STROKES, MAX_STROKES)
        if strokes is NOT_TRACKED:
            raise ValueError("strokes are always tracked")
        entry = self._entry(participant_id, hole_number)
        return self._apply(entry, entry.current.replace(strokes=strokes))

    def update_putts(
        self, participant_id: str, hole_number: int, putts: OptionalInt
    ) -> ScoreEntry:
        _check_int("putts", putts, 0, MAX_PUTTS)
        entry = self._entry(participant_id, hole_number)
        return self._apply(entry, entry.current.replace(putts=putts))

    def update_fairway_hit(
        self, participant_id: str, hole_number: int, hit: OptionalFlag
    ) -> ScoreEntry:
        _check_flag("fairway hit", hit)
        entry = self._entry(participant_id, hole_number)
        if entry.par == 3 and hit is not NOT_TRACKED and hit is not None:
            raise ValueError("fairways are not tracked on par 3 holes")
        return self._apply(entry, entry.current.replace(fairway_hit=hit))

    def update_green_in_regulation(
        self, participant_id: str, hole_number: int, gir: OptionalFlag
    ) -> ScoreEntry:
        _check_flag("green in regulation", gir)
        entry = self._entry(participant_id, hole_number)
        return self._apply(entry, entry.current.replace(green_in_regulation=gir))

    def clear_entry(self, participant_id: str, hole_number: int) -> ScoreEntry:
        entry = self._entry(participant_id, hole_number)
        return self._apply(entry, entry.current.cleared())

    def mark_saved(
        self,
        saved_at: Optional[datetime] = None,
        accepted: Optional[Mapping[str, ScoreData]] = None,
    ) -> None:
        """Record that the server accepted entries.

        With ``accepted=None`` every entry's current snapshot becomes its
        original. Otherwise only the listed entries are updated, to the values
        that were actually sent, so anything edited while the save was in
        flight stays dirty.
        """

        round_id = self._require_round()
        if accepted is None:
            for entry in self._entries.values():
                entry.original = entry.current
        else:
            for entry_id, data in accepted.items():
                cell = self._by_id.get(entry_id)
                if cell is not None:
                    self._entries[cell].original = data

        self.last_saved = coerce_utc(saved_at) or self._clock()
        self.save_error = None
        if self.dirty_entries():
            self.save_status = SaveStatus.IDLE
            self._write_backup()
        else:
            self.save_status = SaveStatus.SAVED
            if self._backup is not None:
                self._backup.clear(round_id)

    def set_save_status(self, status: SaveStatus, error: Optional[str] = None) -> None:
        self.save_status = status
        self.save_error = error

    def set_participant_order(self, order: Sequence[str]) -> None:
        self._require_round()
        if sorted(order) != sorted(self.participant_order):
            raise ValueError("participant order must contain exactly the round's participants")
        self.participant_order = list(order)
        self._save_order()

    def move_participant(self, from_index: int, to_index: int) -> None:
        self._require_round()
        order = list(self.participant_order)
        moved = order.pop(from_index)
        order.insert(to_index, moved)
        self.participant_order = order
        self._save_order()

    def _save_order(self) -> None:
        if self._backup is None or self.round_id is None:
            return
        try:
            self._backup.save_order(self.round_id, self.participant_order)
        except OSError:
            logger.warning("Failed to persist player order for round %s", self.round_id, exc_info=True)

    def _write_backup(self) -> None:
        if self._backup is None:
            return
        try:
            self._backup.save(self.export_snapshot())
        except OSError:
            logger.warning(
                "Failed to write local backup for round %s", self.round_id, exc_info=True
            )

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    def get_entry(self, participant_id: str, hole_number: int) -> Optional[ScoreEntry]:
        return self._entries.get(Cell(participant_id, hole_number))

    def entries(self) -> List[ScoreEntry]:
        return [
            self._entries[Cell(pid, hole)]
            for hole in self.hole_numbers
            for pid in self.participant_order
            if Cell(pid, hole) in self._entries
        ]

    def dirty_entries(self) -> List[ScoreEntry]:
        return [entry for entry in self._entries.values() if entry.is_dirty]

    @property
    def is_dirty(self) -> bool:
        return any(entry.is_dirty for entry in self._entries.values())

    def current_snapshot(self) -> Dict[str, ScoreData]:
        return {entry.entry_id: entry.current for entry in self._entries.values()}

    def export_snapshot(self) -> StoreSnapshot:
        round_id = self._require_round()
        return StoreSnapshot(
            roundId=round_id,
            participantOrder=list(self.participant_order),
            lastModified=self.last_modified,
            lastSavedAt=self.last_saved,
            entries={
                entry.entry_id: entry.current.to_values()
                for entry in self._entries.values()
            },
        )

    def export_entries(self) -> List[ServerEntry]:
        """Current values in the shape ``initialize`` accepts."""
        return [
            ServerEntry(
                entry_id=entry.entry_id,
                participant_id=entry.participant_id,
                hole_number=entry.hole_number,
                par=entry.par,
                strokes=entry.current.strokes,
                putts=entry.current.putts,
                fairway_hit=entry.current.fairway_hit,
                green_in_regulation=entry.current.green_in_regulation,
            )
            for entry in self._entries.values()
        ]

    def _compute_current_hole(self) -> int:
        if not self.hole_numbers:
            return 1
        for hole in self.hole_numbers:
            for pid in self.participant_order:
                entry = self._entries.get(Cell(pid, hole))
                if entry is None or entry.current.strokes is None:
                    return hole
        return self.hole_numbers[-1]

    def _to_par(self, participant_id: str, holes: Iterable[int]) -> Optional[int]:
        strokes = par = 0
        scored = False
        for hole in holes:
            entry = self._entries.get(Cell(participant_id, hole))
            if entry is None or entry.current.strokes is None:
                continue
            strokes += entry.current.strokes
            par += entry.par
            scored = True
        return strokes - par if scored else None

    def score_to_par(
        self, participant_id: str, through_hole: Optional[int] = None
    ) -> Optional[int]:
        holes = [
            h for h in self.hole_numbers if through_hole is None or h <= through_hole
        ]
        return self._to_par(participant_id, holes)

    def front_nine_to_par(self, participant_id: str) -> Optional[int]:
        return self._to_par(participant_id, range(1, 10))

    def back_nine_to_par(self, participant_id: str) -> Optional[int]:
        return self._to_par(participant_id, range(10, 19))

    def total_strokes(self, participant_id: str) -> int:
        return sum(
            entry.current.strokes or 0
            for cell, entry in self._entries.items()
            if cell.participant_id == participant_id
        )

    # ------------------------------------------------------------------
    # grid navigation
    # ------------------------------------------------------------------
    def focus(self, cell: Optional[Cell]) -> None:
        if cell is not None:
            self._entry(cell.participant_id, cell.hole_number)
        self.focused = cell

    def _move(self, cell: Cell) -> Cell:
        self.focused = cell
        return cell

    def navigate(self, direction: str) -> Optional[Cell]:
        """Move the focused cell ``up``/``down`` (participant) or ``left``/``right`` (hole)."""
        cell = self.focused
        if cell is None or not self.participant_order or not self.hole_numbers:
            return None
        try:
            p_index = self.participant_order.index(cell.participant_id)
            h_index = self.hole_numbers.index(cell.hole_number)
        except ValueError:
            return None

        if direction == "up":
            p_index = max(0, p_index - 1)
        elif direction == "down":
            p_index = min(len(self.participant_order) - 1, p_index + 1)
        elif direction == "left":
            h_index = max(0, h_index - 1)
        elif direction == "right":
            h_index = min(len(self.hole_numbers) - 1, h_index + 1)
        else:
            raise ValueError(f"unknown direction {direction!r}")

        return self._move(Cell(self.participant_order[p_index], self.hole_numbers[h_index]))

    def _grid_order(self) -> List[Cell]:
        return [Cell(pid, hole) for hole in self.hole_numbers for pid in self.participant_order]

    def next_cell(self) -> Optional[Cell]:
        """Next cell in hole-major order; the last participant wraps to the next hole."""
        order = self._grid_order()
        if self.focused is None or self.focused not in order:
            return None
        index = min(order.index(self.focused) + 1, len(order) - 1)
        return self._move(order[index])

    def prev_cell(self) -> Optional[Cell]:
        order = self._grid_order()
        if self.focused is None or self.focused not in order:
            return None
        index = max(order.index(self.focused) - 1, 0)
        return self._move(order[index])

    def next_hole(self) -> Optional[Cell]:
        if self.focused is None:
            return None
        return self.navigate("right")

    def prev_hole(self) -> Optional[Cell]:
        if self.focused is None:
            return None
        return self.navigate("left")

    def next_participant(self) -> Optional[Cell]:
        cell = self.focused
        if cell is None or not self.participant_order:
            return None
        index = self.participant_order.index(cell.participant_id)
        pid = self.participant_order[(index + 1) % len(self.participant_order)]
        return self._move(Cell(pid, cell.hole_number))

    def prev_participant(self) -> Optional[Cell]:
        cell = self.focused
        if cell is None or not self.participant_order:
            return None
        index = self.participant_order.index(cell.participant_id)
        pid = self.participant_order[(index - 1) % len(self.participant_order)]
        return self._move(Cell(pid, cell.hole_number))
