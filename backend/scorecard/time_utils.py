"""Helpers for working with timezone-aware datetimes."""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def require_utc(value: datetime | None, *, field_name: str = "timestamp") -> datetime | None:
    """Ensure ``value`` includes timezone info and return a UTC-normalized copy.

    Raises:
        ValueError: If ``value`` is timezone-naive.
    """

    if value is None:
        return None

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{field_name} must include a timezone offset")

    return value.astimezone(timezone.utc)


def coerce_utc(value: datetime | None) -> datetime | None:
    """Return a UTC-normalized datetime, assuming naive values are already UTC.

    SQLite hands back naive datetimes even for columns written with an offset,
    so anything compared against client timestamps goes through here first.
    """

    if value is None:
        return None

    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)

    return value.astimezone(timezone.utc)


def is_newer(candidate: datetime | None, reference: datetime | None) -> bool:
    """Return ``True`` when ``candidate`` is strictly later than ``reference``.

    A missing ``reference`` loses to any candidate; a missing candidate never wins.
    """

    candidate = coerce_utc(candidate)
    reference = coerce_utc(reference)
    if candidate is None:
        return False
    if reference is None:
        return True
    return candidate > reference
