"""Server-side round services (database access through an AsyncSession)."""

from .validation import ValidationError
from .rounds import abandon_round, apply_score_batch, get_scorecard, start_round
from .completion import complete_round
from .score_edits import edit_completed_scores, list_score_edits
from .handicap_history import get_player_handicap

__all__ = [
    "ValidationError",
    "start_round",
    "get_scorecard",
    "apply_score_batch",
    "abandon_round",
    "complete_round",
    "edit_completed_scores",
    "list_score_edits",
    "get_player_handicap",
]
