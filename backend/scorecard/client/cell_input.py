"""Editing a single scorecard cell.

Mirrors the score picker shown when a cell is tapped: pick a number, nudge
up or down from par, or clear. Values that would leave 1..15 are ignored
rather than rejected so a repeated tap on ``-`` is harmless.
"""

from __future__ import annotations

from typing import Optional

from ..scoring.stroke_play import format_score_to_par
from .store import MAX_STROKES, MIN_STROKES, Cell, ScoreEntry, ScoreEntryStore, UnknownEntry


def score_class(strokes: Optional[int], par: int) -> str:
    if strokes is None:
        return "empty"
    diff = strokes - par
    if diff <= -2:
        return "eagle_or_better"
    if diff == -1:
        return "birdie"
    if diff == 0:
        return "par"
    if diff == 1:
        return "bogey"
    return "double_plus"


class CellInput:
    def __init__(self, store: ScoreEntryStore, cell: Cell) -> None:
        self.store = store
        self.cell = cell
        # Raises UnknownEntry for a cell outside the grid.
        store.focus(cell)

    @property
    def par(self) -> int:
        return self._entry().par

    @property
    def strokes(self) -> Optional[int]:
        return self._entry().current.strokes

    def _entry(self) -> ScoreEntry:
        entry = self.store.get_entry(self.cell.participant_id, self.cell.hole_number)
        if entry is None:
            raise UnknownEntry(self.cell.participant_id, self.cell.hole_number)
        return entry

    def pick(self, strokes: int) -> None:
        self.store.update_strokes(self.cell.participant_id, self.cell.hole_number, strokes)

    def _step(self, delta: int) -> bool:
        value = (self.strokes if self.strokes is not None else self.par) + delta
        if not MIN_STROKES <= value <= MAX_STROKES:
            return False
        self.pick(value)
        return True

    def increment(self) -> bool:
        return self._step(1)

    def decrement(self) -> bool:
        return self._step(-1)

    def clear(self) -> None:
        self.store.clear_entry(self.cell.participant_id, self.cell.hole_number)

    def display(self) -> str:
        return "-" if self.strokes is None else str(self.strokes)

    def to_par_label(self) -> Optional[str]:
        if self.strokes is None:
            return None
        return format_score_to_par(self.strokes - self.par)

    @property
    def css_class(self) -> str:
        return score_class(self.strokes, self.par)

    def advance(self) -> Optional["CellInput"]:
        """Move the picker to the same player on the next hole, if any."""
        self.store.focus(self.cell)
        cell = self.store.next_hole()
        if cell is None or cell == self.cell:
            return None
        return CellInput(self.store, cell)
