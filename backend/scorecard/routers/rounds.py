# backend/scorecard/routers/rounds.py
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..rate_limits import client_ip, limiter, score_batch_rate_limit
from ..schemas import (
    CompleteRoundIn,
    EditScoresIn,
    EditScoresOut,
    RoundCompletionOut,
    RoundCreate,
    RoundStatusOut,
    ScoreBatchIn,
    ScoreBatchOut,
    ScorecardOut,
    ScoreEditOut,
)
from ..services import (
    abandon_round,
    apply_score_batch,
    complete_round,
    edit_completed_scores,
    get_scorecard,
    list_score_edits,
    start_round,
)

# Resource-only prefix; versioning is added in main.py
router = APIRouter(prefix="/rounds", tags=["rounds"])


# POST /api/v0/rounds
@router.post("", response_model=ScorecardOut, status_code=status.HTTP_201_CREATED)
async def create_round_route(
    body: RoundCreate,
    session: AsyncSession = Depends(get_session),
) -> ScorecardOut:
    return await start_round(session, body)


@router.get("/{rid}", response_model=ScorecardOut)
async def get_round_route(
    rid: str, session: AsyncSession = Depends(get_session)
) -> ScorecardOut:
    return await get_scorecard(session, rid)


# PUT /api/v0/rounds/{rid}/scores
@router.put("/{rid}/scores", response_model=ScoreBatchOut)
@limiter.limit(score_batch_rate_limit, key_func=client_ip)
async def save_scores_route(
    request: Request,
    rid: str,
    body: ScoreBatchIn,
    session: AsyncSession = Depends(get_session),
) -> ScoreBatchOut:
    return await apply_score_batch(session, rid, body)


@router.post("/{rid}/complete", response_model=RoundCompletionOut)
async def complete_round_route(
    rid: str,
    body: Optional[CompleteRoundIn] = None,
    session: AsyncSession = Depends(get_session),
) -> RoundCompletionOut:
    nine = body.nine if body is not None else None
    return await complete_round(session, rid, nine)


@router.post("/{rid}/abandon", response_model=RoundStatusOut)
async def abandon_round_route(
    rid: str, session: AsyncSession = Depends(get_session)
) -> RoundStatusOut:
    return await abandon_round(session, rid)


@router.post("/{rid}/edit-scores", response_model=EditScoresOut)
async def edit_scores_route(
    rid: str,
    body: EditScoresIn,
    session: AsyncSession = Depends(get_session),
) -> EditScoresOut:
    return await edit_completed_scores(
        session, rid, body.edits, edited_by=body.editedBy, reason=body.reason
    )


@router.get("/{rid}/edit-scores", response_model=list[ScoreEditOut])
async def list_score_edits_route(
    rid: str, session: AsyncSession = Depends(get_session)
) -> list[ScoreEditOut]:
    return await list_score_edits(session, rid)
