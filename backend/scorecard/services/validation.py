from typing import Any, Dict, Optional

MIN_STROKES = 1
MAX_STROKES = 15
MAX_PUTTS = 15

NINE_HOLES: Dict[str, range] = {
    "front": range(1, 10),
    "back": range(10, 19),
}


class ValidationError(Exception):
    """Raised when submitted hole values are invalid."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


def _validate_count(
    value: Any, *, label: str, min_value: int, max_value: int
) -> Optional[int]:
    if value is None:
        return None
    # Reject booleans explicitly (bool is a subclass of int in Python)
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be an integer (not a boolean).")
    if not isinstance(value, int):
        raise ValidationError(f"{label} must be an integer.")
    if value < min_value or value > max_value:
        raise ValidationError(
            f"{label} must be between {min_value} and {max_value}."
        )
    return value


def validate_strokes(value: Any, *, hole_number: Optional[int] = None) -> Optional[int]:
    """Validate a stroke count; ``None`` clears the hole."""

    label = f"Strokes on hole {hole_number}" if hole_number else "Strokes"
    return _validate_count(
        value, label=label, min_value=MIN_STROKES, max_value=MAX_STROKES
    )


def validate_putts(value: Any, *, hole_number: Optional[int] = None) -> Optional[int]:
    label = f"Putts on hole {hole_number}" if hole_number else "Putts"
    return _validate_count(value, label=label, min_value=0, max_value=MAX_PUTTS)


def validate_fairway(value: Any, *, par: int, hole_number: Optional[int] = None) -> Optional[bool]:
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ValidationError("Fairway hit must be true, false or null.")
    if par == 3:
        where = f" (hole {hole_number})" if hole_number else ""
        raise ValidationError(f"Fairways are not tracked on par 3 holes{where}.")
    return value


def validate_green(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ValidationError("Green in regulation must be true, false or null.")
    return value


def holes_for_nine(nine: Optional[str], hole_numbers: list[int]) -> list[int]:
    """Return the hole numbers in play for ``nine`` (``None`` means all)."""

    if nine is None:
        return sorted(hole_numbers)
    if nine not in NINE_HOLES:
        raise ValidationError("Nine must be 'front', 'back' or null.")
    selected = NINE_HOLES[nine]
    in_play = sorted(h for h in hole_numbers if h in selected)
    if not in_play:
        raise ValidationError(f"This round has no {nine} nine holes.")
    return in_play
