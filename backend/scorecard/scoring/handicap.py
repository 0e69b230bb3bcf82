"""World Handicap System calculations.

Pure functions only: score differentials, Equitable Stroke Control, handicap
index selection and course/playing handicap conversion. Nothing here touches
the database or the clock, so the completion workflow and the audited edit
path share exactly the same arithmetic.

Nine-hole rounds are converted to an 18-hole equivalent by halving the course
rating, computing the nine-hole differential and doubling it. That convention
is applied everywhere a nine-hole differential is produced.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Mapping, Optional, Sequence

STANDARD_SLOPE = 113
MAX_HANDICAP_INDEX = 54.0
MAX_DIFFERENTIALS = 20
MIN_DIFFERENTIALS = 3
# Index assumed for players with no recorded history.
DEFAULT_HANDICAP_INDEX = 20.0

# (max course handicap in band, maximum score per hole); None means par + 2.
ESC_BANDS: tuple[tuple[float, Optional[int]], ...] = (
    (9, None),
    (19, 7),
    (29, 8),
    (39, 9),
)
ESC_CEILING = 10

# count -> (differentials averaged, adjustment)
_SELECTION_TABLE: dict[int, tuple[int, float]] = {
    3: (1, -2.0),
    4: (1, -1.0),
    5: (1, 0.0),
    6: (2, -1.0),
    7: (2, 0.0),
    8: (2, 0.0),
    9: (3, 0.0),
    10: (3, 0.0),
    11: (3, 0.0),
    12: (4, 0.0),
    13: (4, 0.0),
    14: (4, 0.0),
    15: (5, 0.0),
    16: (5, 0.0),
    17: (6, 0.0),
    18: (6, 0.0),
    19: (7, 0.0),
    20: (8, 0.0),
}


def _round_tenth(value: float) -> float:
    return float(Decimal(repr(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _round_whole(value: float) -> int:
    return int(Decimal(repr(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _require_slope(slope_rating: float) -> None:
    if slope_rating <= 0:
        raise ValueError("slope rating must be positive")


def score_differential(
    adjusted_gross: float, course_rating: float, slope_rating: float
) -> float:
    """Return ``(113 / slope) * (adjusted_gross - rating)`` rounded to 0.1."""

    _require_slope(slope_rating)
    differential = (STANDARD_SLOPE / slope_rating) * (adjusted_gross - course_rating)
    return _round_tenth(differential)


def nine_hole_score_differential(
    adjusted_gross: float, course_rating: float, slope_rating: float
) -> float:
    """Return the 18-hole equivalent differential for a nine-hole score.

    ``course_rating`` and ``slope_rating`` are the 18-hole values for the tee
    played. The rating is halved, the nine-hole differential computed and then
    doubled; rounding happens once, after doubling.
    """

    _require_slope(slope_rating)
    nine_rating = course_rating / 2
    nine_differential = (STANDARD_SLOPE / slope_rating) * (adjusted_gross - nine_rating)
    return _round_tenth(nine_differential * 2)


def esc_max_score(par: int, course_handicap: int) -> int:
    """Maximum score that counts on a hole for the given course handicap."""

    for upper, cap in ESC_BANDS:
        if course_handicap <= upper:
            return par + 2 if cap is None else cap
    return ESC_CEILING


def equitable_stroke_control(
    hole_scores: Iterable[Mapping[str, Optional[int]]],
    course_handicap: Optional[int],
) -> int:
    """Return the adjusted gross score after capping each hole.

    Each item needs ``strokes`` and ``par``. Holes without strokes are left out
    of the sum; callers completing a round must check completeness first.
    """

    if course_handicap is None:
        course_handicap = default_course_handicap(STANDARD_SLOPE)

    adjusted = 0
    for hole in hole_scores:
        strokes = hole.get("strokes")
        if strokes is None:
            continue
        par = hole.get("par")
        if par is None:
            raise ValueError("par is required for every scored hole")
        adjusted += min(int(strokes), esc_max_score(int(par), course_handicap))
    return adjusted


def differentials_used(count: int) -> int:
    """Number of lowest differentials averaged for ``count`` available."""

    if count < MIN_DIFFERENTIALS:
        return 0
    return _SELECTION_TABLE[min(count, MAX_DIFFERENTIALS)][0]


def index_adjustment(count: int) -> float:
    if count < MIN_DIFFERENTIALS:
        return 0.0
    return _SELECTION_TABLE[min(count, MAX_DIFFERENTIALS)][1]


def handicap_index(
    differentials: Sequence[float], newest_first: bool = True
) -> Optional[float]:
    """Compute a handicap index from a player's scoring record.

    Only the most recent 20 differentials are considered; ``newest_first``
    tells which end of ``differentials`` is the most recent. Returns ``None``
    with fewer than three differentials. The result is rounded to one decimal
    and capped at 54.0; plus (negative) indexes are left alone.
    """

    values = [float(d) for d in differentials]
    if newest_first:
        recent = values[:MAX_DIFFERENTIALS]
    else:
        recent = values[-MAX_DIFFERENTIALS:]

    count = len(recent)
    if count < MIN_DIFFERENTIALS:
        return None

    used, adjustment = _SELECTION_TABLE[count]
    lowest = sorted(recent)[:used]
    average = sum(lowest) / used
    return min(_round_tenth(average + adjustment), MAX_HANDICAP_INDEX)


def course_handicap(index: float, slope_rating: float) -> int:
    _require_slope(slope_rating)
    return _round_whole(index * slope_rating / STANDARD_SLOPE)


def playing_handicap(
    index: float, slope_rating: float, course_rating: float, par: int
) -> int:
    """Strokes received for a round: course handicap plus (rating - par)."""

    _require_slope(slope_rating)
    return _round_whole(index * slope_rating / STANDARD_SLOPE + (course_rating - par))


def default_course_handicap(slope_rating: float) -> int:
    return course_handicap(DEFAULT_HANDICAP_INDEX, slope_rating)


def round_handicap(value: float) -> int:
    """Whole strokes for a handicap value, halves rounded away from zero."""

    return _round_whole(value)


def net_score(gross: int, playing_handicap_value: float) -> int:
    return gross - _round_whole(playing_handicap_value)


def is_exceptional_score(differential: float, index: float) -> bool:
    """A differential at least 7.0 strokes better than the index is exceptional."""

    return differential <= index - 7.0


def exceptional_score_reduction(differential: float, index: float) -> float:
    improvement = _round_tenth(index - differential)
    if improvement >= 10.0:
        return 2.0
    if improvement >= 7.0:
        return 1.0
    return 0.0


def format_handicap(value: Optional[float]) -> str:
    if value is None:
        return "N/A"
    if value < 0:
        return f"+{abs(value):.1f}"
    return f"{value:.1f}"
