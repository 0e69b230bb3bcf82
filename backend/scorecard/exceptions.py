from pydantic import BaseModel
from typing import Any, Optional, Sequence


class ProblemDetail(BaseModel):
    """RFC 7807 compliant error response."""

    type: str = "about:blank"
    title: str
    detail: Optional[str] = None
    status: int
    instance: Optional[str] = None
    code: str
    extra: Optional[dict[str, Any]] = None


class DomainException(Exception):
    """Base class for domain-specific exceptions."""

    def __init__(
        self,
        status_code: int,
        title: str,
        *,
        code: str,
        detail: str | None = None,
        type_: str = "about:blank",
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(detail or title)
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type = type_
        self.code = code
        self.extra = extra


class RoundNotFound(DomainException):
    def __init__(self, round_id: str) -> None:
        super().__init__(
            status_code=404,
            title="Round not found",
            detail=f"round '{round_id}' not found",
            code="round_not_found",
        )


class PlayerNotFound(DomainException):
    def __init__(self, player_id: str) -> None:
        super().__init__(
            status_code=404,
            title="Player not found",
            detail=f"player '{player_id}' not found",
            code="player_not_found",
        )


class RoundNotInProgress(DomainException):
    def __init__(self, round_id: str, status: str) -> None:
        super().__init__(
            status_code=409,
            title="Round not in progress",
            detail=f"round '{round_id}' is {status}; scores can no longer be changed",
            code="round_not_in_progress",
            extra={"status": status},
        )


class RoundNotCompleted(DomainException):
    def __init__(self, round_id: str, status: str) -> None:
        super().__init__(
            status_code=409,
            title="Round not completed",
            detail=(
                f"round '{round_id}' is {status}; audited edits only apply to "
                "completed rounds"
            ),
            code="round_not_completed",
            extra={"status": status},
        )


class UnknownScoreEntry(DomainException):
    def __init__(self, round_id: str, entry_ids: Sequence[str]) -> None:
        listed = ", ".join(sorted(entry_ids))
        super().__init__(
            status_code=400,
            title="Unknown score entry",
            detail=f"score entries do not belong to round '{round_id}': {listed}",
            code="unknown_score_entry",
            extra={"entryIds": sorted(entry_ids)},
        )


class InvalidScoreValue(DomainException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=400,
            title="Invalid score value",
            detail=detail,
            code="invalid_score_value",
        )


class InvalidNineSelection(DomainException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=400,
            title="Invalid nine selection",
            detail=detail,
            code="invalid_nine_selection",
        )


class IncompleteRound(DomainException):
    """Raised when a participant is missing strokes on holes in play."""

    def __init__(
        self,
        participant_id: str,
        participant_name: str,
        missing_holes: Sequence[int],
        holes_required: int,
    ) -> None:
        missing = sorted(missing_holes)
        completed = holes_required - len(missing)
        super().__init__(
            status_code=400,
            title="Round incomplete",
            detail=(
                f"{participant_name} has only completed {completed} of "
                f"{holes_required} holes (missing {len(missing)}: "
                f"{', '.join(str(h) for h in missing)})"
            ),
            code="round_incomplete",
            extra={
                "participantId": participant_id,
                "participant": participant_name,
                "missingHoles": missing,
                "holesCompleted": completed,
                "holesRequired": holes_required,
            },
        )
        self.participant_id = participant_id
        self.participant_name = participant_name
        self.missing_holes = missing
