"""Finishing a round: validation, final scores and handicap updates.

Every participant's results are computed before anything is staged, so an
incomplete card rejects the whole completion and a handicap failure for one
player never leaves partial rows behind for them. The round, participants,
differentials and index snapshots are then written in a single commit.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import IncompleteRound, InvalidNineSelection, RoundNotInProgress
from ..models import (
    HandicapDifferential,
    HandicapIndexSnapshot,
    Round,
    Score,
    ROUND_COMPLETED,
    ROUND_IN_PROGRESS,
)
from ..schemas import (
    HoleResultOut,
    NineSummaryOut,
    PlayerCompletionOut,
    RoundCompletionOut,
)
from ..scoring import handicap, stroke_play
from ..time_utils import utcnow
from .handicap_history import course_handicap_for, recent_differentials
from .rounds import ParticipantRow, hole_scores, load_card
from .validation import ValidationError, holes_for_nine

logger = logging.getLogger(__name__)

NINE_NOTE = {"front": "[Front 9 only]", "back": "[Back 9 only]"}


@dataclass
class PlayerOutcome:
    row: ParticipantRow
    gross: int
    summary: dict
    net: Optional[int] = None
    course_handicap: Optional[int] = None
    adjusted: Optional[int] = None
    differential: Optional[float] = None
    index: Optional[float] = None
    considered: int = 0
    existing: Optional[HandicapDifferential] = None
    error: Optional[str] = None


def missing_holes(scores: Dict[int, Score], holes: List[int]) -> List[int]:
    return [h for h in holes if h not in scores or scores[h].strokes is None]


def net_for(gross: int, playing_handicap: Optional[float], nine: Optional[str]) -> Optional[int]:
    """Net score; nine-hole play receives half the playing handicap."""

    if playing_handicap is None:
        return None
    allowance = playing_handicap / 2 if nine else playing_handicap
    return handicap.net_score(gross, allowance)


def differential_for(
    adjusted_gross: int, rnd: Round, nine: Optional[str]
) -> float:
    if nine:
        return handicap.nine_hole_score_differential(
            adjusted_gross, rnd.course_rating, rnd.slope_rating
        )
    return handicap.score_differential(
        adjusted_gross, rnd.course_rating, rnd.slope_rating
    )


async def _compute_player(
    session: AsyncSession,
    rnd: Round,
    row: ParticipantRow,
    items: List[dict],
    nine: Optional[str],
) -> PlayerOutcome:
    participant = row.participant
    summary = stroke_play.summarize(items)
    outcome = PlayerOutcome(
        row=row,
        gross=summary["gross"],
        summary=summary,
        net=net_for(summary["gross"], participant.playing_handicap, nine),
    )

    try:
        outcome.existing = (
            await session.execute(
                select(HandicapDifferential).where(
                    HandicapDifferential.player_id == participant.player_id,
                    HandicapDifferential.round_id == rnd.id,
                )
            )
        ).scalar_one_or_none()
        outcome.course_handicap = await course_handicap_for(
            session, participant.player_id, participant.playing_handicap, rnd.slope_rating
        )
        outcome.adjusted = handicap.equitable_stroke_control(items, outcome.course_handicap)
        if outcome.existing is not None:
            outcome.differential = outcome.existing.value
        else:
            outcome.differential = differential_for(outcome.adjusted, rnd, nine)

        prior = await recent_differentials(
            session,
            participant.player_id,
            exclude_round_id=rnd.id,
            limit=handicap.MAX_DIFFERENTIALS - 1,
        )
        values = [outcome.differential] + [d.value for d in prior]
        outcome.considered = len(values)
        outcome.index = handicap.handicap_index(values)
    except (ValueError, ArithmeticError) as exc:
        logger.exception(
            "Handicap calculation failed for player %s in round %s",
            participant.player_id,
            rnd.id,
        )
        outcome.error = str(exc) or exc.__class__.__name__
        outcome.adjusted = None
        outcome.differential = None
        outcome.index = None

    return outcome


def _stage(
    session: AsyncSession,
    rnd: Round,
    outcome: PlayerOutcome,
    nine: Optional[str],
    now: datetime,
) -> None:
    if outcome.error is not None:
        return

    participant = outcome.row.participant
    participant.gross_score = outcome.gross
    participant.adjusted_gross_score = outcome.adjusted
    participant.net_score = outcome.net

    if outcome.existing is None:
        session.add(
            HandicapDifferential(
                id=uuid.uuid4().hex,
                player_id=participant.player_id,
                round_id=rnd.id,
                value=outcome.differential,
                course_rating=rnd.course_rating,
                slope_rating=rnd.slope_rating,
                is_nine_hole=nine is not None,
                nine=nine,
                gross_score=outcome.gross,
                adjusted_gross_score=outcome.adjusted,
                esc_course_handicap=outcome.course_handicap,
                played_at=rnd.played_at or now,
                created_at=now,
            )
        )
    session.add(
        HandicapIndexSnapshot(
            id=uuid.uuid4().hex,
            player_id=participant.player_id,
            round_id=rnd.id,
            value=outcome.index,
            differentials_used=outcome.considered,
            source="round",
            effective_at=rnd.played_at or now,
            created_at=now,
        )
    )


def _player_out(outcome: PlayerOutcome) -> PlayerCompletionOut:
    participant = outcome.row.participant
    summary = outcome.summary
    return PlayerCompletionOut(
        participantId=participant.id,
        playerId=participant.player_id,
        playerName=outcome.row.name,
        grossScore=outcome.gross,
        adjustedGrossScore=outcome.adjusted,
        netScore=outcome.net,
        scoreToPar=summary["gross"] - summary["par"],
        playingHandicap=participant.playing_handicap,
        courseHandicap=outcome.course_handicap,
        scoreDifferential=outcome.differential,
        handicapIndex=outcome.index,
        handicapError=outcome.error,
        frontNine=NineSummaryOut(**summary["frontNine"]),
        backNine=NineSummaryOut(**summary["backNine"]),
        stats=summary["stats"],
        bestHoles=[HoleResultOut(**h) for h in summary["bestHoles"]],
        worstHoles=[HoleResultOut(**h) for h in summary["worstHoles"]],
    )


async def complete_round(
    session: AsyncSession, round_id: str, nine: Optional[str] = None
) -> RoundCompletionOut:
    card = await load_card(session, round_id)
    rnd = card.round
    if rnd.status != ROUND_IN_PROGRESS:
        raise RoundNotInProgress(round_id, rnd.status)

    par_by_hole = card.par_by_hole
    try:
        in_play = holes_for_nine(nine, list(par_by_hole))
    except ValidationError as exc:
        raise InvalidNineSelection(exc.detail)

    for row in card.participants:
        missing = missing_holes(card.scores_for(row.participant.id), in_play)
        if missing:
            raise IncompleteRound(row.participant.id, row.name, missing, len(in_play))

    outcomes: List[PlayerOutcome] = []
    for row in card.participants:
        items = hole_scores(card.scores_for(row.participant.id), par_by_hole, in_play)
        outcomes.append(await _compute_player(session, rnd, row, items, nine))

    now = utcnow()
    for outcome in outcomes:
        _stage(session, rnd, outcome, nine, now)

    rnd.status = ROUND_COMPLETED
    rnd.completed_at = now
    rnd.updated_at = now
    rnd.nine_hole_selection = nine
    if nine:
        rnd.notes = f"{rnd.notes}\n{NINE_NOTE[nine]}" if rnd.notes else NINE_NOTE[nine]
    await session.commit()

    for outcome in outcomes:
        logger.info(
            "Round %s completed for player %s: gross=%s adjusted=%s differential=%s index=%s",
            round_id,
            outcome.row.participant.player_id,
            outcome.gross,
            outcome.adjusted,
            outcome.differential,
            outcome.index,
        )

    return RoundCompletionOut(
        roundId=rnd.id,
        status=rnd.status,
        completedAt=now,
        courseRating=rnd.course_rating,
        slopeRating=rnd.slope_rating,
        totalPar=sum(par_by_hole[h] for h in in_play),
        isNineHole=nine is not None,
        nine=nine,
        holesPlayed=len(in_play),
        players=[_player_out(o) for o in outcomes],
    )
