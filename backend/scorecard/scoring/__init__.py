"""Scoring engines: handicap arithmetic and stroke-play totals."""

from . import handicap, stroke_play

__all__ = [
    "handicap",
    "stroke_play",
]
