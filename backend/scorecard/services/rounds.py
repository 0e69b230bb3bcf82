"""Round lifecycle and batched score writes."""

from __future__ import annotations

import logging
import uuid
from typing import Dict, List, NamedTuple, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import (
    InvalidScoreValue,
    PlayerNotFound,
    RoundNotFound,
    RoundNotInProgress,
    UnknownScoreEntry,
)
from ..models import (
    Player,
    Round,
    RoundHole,
    RoundParticipant,
    Score,
    ROUND_ABANDONED,
    ROUND_IN_PROGRESS,
)
from ..schemas import (
    RoundCreate,
    RoundHoleOut,
    RoundParticipantOut,
    RoundStatusOut,
    ScoreBatchIn,
    ScoreBatchOut,
    ScoreEntryOut,
    ScorecardOut,
    ScoreUpdateIn,
)
from ..time_utils import coerce_utc, utcnow
from .validation import (
    ValidationError,
    validate_fairway,
    validate_green,
    validate_putts,
    validate_strokes,
)

logger = logging.getLogger(__name__)


class ParticipantRow(NamedTuple):
    participant: RoundParticipant
    name: str


class RoundCard(NamedTuple):
    """Everything stored for one round, loaded with explicit queries."""

    round: Round
    holes: List[RoundHole]
    participants: List[ParticipantRow]
    scores: List[Score]

    @property
    def par_by_hole(self) -> Dict[int, int]:
        return {h.hole_number: h.par for h in self.holes}

    def scores_for(self, participant_id: str) -> Dict[int, Score]:
        return {
            s.hole_number: s for s in self.scores if s.participant_id == participant_id
        }


async def get_round(session: AsyncSession, round_id: str) -> Round:
    rnd = await session.get(Round, round_id)
    if rnd is None:
        raise RoundNotFound(round_id)
    return rnd


async def load_card(session: AsyncSession, round_id: str) -> RoundCard:
    rnd = await get_round(session, round_id)
    holes = (
        await session.execute(
            select(RoundHole)
            .where(RoundHole.round_id == round_id)
            .order_by(RoundHole.hole_number)
        )
    ).scalars().all()
    participant_rows = (
        await session.execute(
            select(RoundParticipant, Player.name)
            .join(Player, Player.id == RoundParticipant.player_id)
            .where(RoundParticipant.round_id == round_id)
            .order_by(RoundParticipant.display_position, RoundParticipant.id)
        )
    ).all()
    scores = (
        await session.execute(
            select(Score)
            .where(Score.round_id == round_id)
            .order_by(Score.hole_number, Score.participant_id)
        )
    ).scalars().all()
    return RoundCard(
        round=rnd,
        holes=list(holes),
        participants=[ParticipantRow(p, name) for p, name in participant_rows],
        scores=list(scores),
    )


def to_entry_out(score: Score, par: int) -> ScoreEntryOut:
    return ScoreEntryOut(
        entryId=score.id,
        participantId=score.participant_id,
        holeNumber=score.hole_number,
        par=par,
        strokes=score.strokes,
        putts=score.putts,
        fairwayHit=score.fairway_hit,
        greenInRegulation=score.green_in_regulation,
        updatedAt=coerce_utc(score.updated_at),
    )


def _to_scorecard_out(card: RoundCard) -> ScorecardOut:
    rnd = card.round
    par_by_hole = card.par_by_hole
    order = {row.participant.id: idx for idx, row in enumerate(card.participants)}
    entries = sorted(
        card.scores, key=lambda s: (s.hole_number, order.get(s.participant_id, 0))
    )
    return ScorecardOut(
        id=rnd.id,
        courseName=rnd.course_name,
        teeName=rnd.tee_name,
        courseRating=rnd.course_rating,
        slopeRating=rnd.slope_rating,
        status=rnd.status,
        nineHoleSelection=rnd.nine_hole_selection,
        notes=rnd.notes,
        playedAt=coerce_utc(rnd.played_at),
        createdAt=coerce_utc(rnd.created_at),
        updatedAt=coerce_utc(rnd.updated_at),
        completedAt=coerce_utc(rnd.completed_at),
        holes=[
            RoundHoleOut(
                holeNumber=h.hole_number,
                par=h.par,
                strokeIndex=h.stroke_index,
                distance=h.distance,
            )
            for h in card.holes
        ],
        participants=[
            RoundParticipantOut(
                id=row.participant.id,
                playerId=row.participant.player_id,
                name=row.name,
                displayPosition=row.participant.display_position,
                playingHandicap=row.participant.playing_handicap,
                grossScore=row.participant.gross_score,
                adjustedGrossScore=row.participant.adjusted_gross_score,
                netScore=row.participant.net_score,
            )
            for row in card.participants
        ],
        entries=[to_entry_out(s, par_by_hole[s.hole_number]) for s in entries],
    )


async def _resolve_players(session: AsyncSession, body: RoundCreate) -> None:
    ids = [p.playerId for p in body.participants]
    known = set(
        (await session.execute(select(Player.id).where(Player.id.in_(ids)))).scalars().all()
    )
    for part in body.participants:
        if part.playerId in known:
            continue
        if not part.name:
            raise PlayerNotFound(part.playerId)
        session.add(Player(id=part.playerId, name=part.name))


async def start_round(session: AsyncSession, body: RoundCreate) -> ScorecardOut:
    """Create a round with one empty score entry per participant and hole."""

    rid = uuid.uuid4().hex
    now = utcnow()
    await _resolve_players(session, body)

    session.add(
        Round(
            id=rid,
            course_name=body.courseName,
            tee_name=body.teeName,
            course_rating=body.courseRating,
            slope_rating=body.slopeRating,
            status=ROUND_IN_PROGRESS,
            notes=body.notes,
            played_at=body.playedAt or now,
            created_at=now,
            updated_at=now,
        )
    )
    for hole in body.holes:
        session.add(
            RoundHole(
                id=uuid.uuid4().hex,
                round_id=rid,
                hole_number=hole.holeNumber,
                par=hole.par,
                stroke_index=hole.strokeIndex,
                distance=hole.distance,
            )
        )
    for position, part in enumerate(body.participants):
        participant_id = uuid.uuid4().hex
        session.add(
            RoundParticipant(
                id=participant_id,
                round_id=rid,
                player_id=part.playerId,
                display_position=position,
                playing_handicap=part.playingHandicap,
            )
        )
        for hole in body.holes:
            session.add(
                Score(
                    id=uuid.uuid4().hex,
                    round_id=rid,
                    participant_id=participant_id,
                    hole_number=hole.holeNumber,
                )
            )
    await session.commit()
    logger.info(
        "Started round %s at %s with %d players over %d holes",
        rid,
        body.courseName,
        len(body.participants),
        len(body.holes),
    )
    return await get_scorecard(session, rid)


async def get_scorecard(session: AsyncSession, round_id: str) -> ScorecardOut:
    return _to_scorecard_out(await load_card(session, round_id))


def _validated_changes(update: ScoreUpdateIn, par: int, hole_number: int) -> Dict[str, object]:
    """Column values for the fields present in ``update``."""

    changes: Dict[str, object] = {}
    sent = update.model_fields_set
    if "strokes" in sent:
        changes["strokes"] = validate_strokes(update.strokes, hole_number=hole_number)
    if "putts" in sent:
        changes["putts"] = validate_putts(update.putts, hole_number=hole_number)
    if "fairwayHit" in sent:
        changes["fairway_hit"] = validate_fairway(
            update.fairwayHit, par=par, hole_number=hole_number
        )
    if "greenInRegulation" in sent:
        changes["green_in_regulation"] = validate_green(update.greenInRegulation)
    return changes


async def apply_score_batch(
    session: AsyncSession, round_id: str, body: ScoreBatchIn
) -> ScoreBatchOut:
    """Apply a batch of per-entry field sets atomically.

    Every entry id is checked against the round and every value validated
    before anything is written; one bad entry rejects the whole batch.
    """

    rnd = await get_round(session, round_id)
    if rnd.status != ROUND_IN_PROGRESS:
        raise RoundNotInProgress(round_id, rnd.status)

    entry_ids = list(dict.fromkeys(u.entryId for u in body.entries))
    scores: Dict[str, Score] = {}
    if entry_ids:
        rows = (
            await session.execute(
                select(Score).where(Score.round_id == round_id, Score.id.in_(entry_ids))
            )
        ).scalars().all()
        scores = {s.id: s for s in rows}
    unknown = [eid for eid in entry_ids if eid not in scores]
    if unknown:
        raise UnknownScoreEntry(round_id, unknown)

    par_by_hole = dict(
        (
            await session.execute(
                select(RoundHole.hole_number, RoundHole.par).where(
                    RoundHole.round_id == round_id
                )
            )
        ).all()
    )

    staged: List[Tuple[Score, Dict[str, object]]] = []
    try:
        for update in body.entries:
            score = scores[update.entryId]
            staged.append(
                (
                    score,
                    _validated_changes(
                        update, par_by_hole[score.hole_number], score.hole_number
                    ),
                )
            )
    except ValidationError as exc:
        raise InvalidScoreValue(exc.detail)

    saved_at = utcnow()
    for score, changes in staged:
        for column, value in changes.items():
            setattr(score, column, value)
        score.updated_at = saved_at
    rnd.updated_at = saved_at
    await session.commit()

    logger.debug(
        "Applied %d score updates to round %s (generation %s)",
        len(staged),
        round_id,
        body.generation,
    )
    return ScoreBatchOut(
        roundId=round_id,
        generation=body.generation,
        savedAt=saved_at,
        entries=[
            to_entry_out(scores[eid], par_by_hole[scores[eid].hole_number])
            for eid in entry_ids
        ],
    )


async def abandon_round(session: AsyncSession, round_id: str) -> RoundStatusOut:
    rnd = await get_round(session, round_id)
    if rnd.status != ROUND_IN_PROGRESS:
        raise RoundNotInProgress(round_id, rnd.status)
    rnd.status = ROUND_ABANDONED
    rnd.updated_at = utcnow()
    await session.commit()
    logger.info("Round %s abandoned", round_id)
    return RoundStatusOut(id=rnd.id, status=rnd.status, updatedAt=coerce_utc(rnd.updated_at))


def hole_scores(
    scores: Dict[int, Score], par_by_hole: Dict[int, int], holes: Sequence[int]
) -> List[Dict[str, object]]:
    """``{hole, par, strokes}`` items for the scoring engines."""

    return [
        {
            "hole": number,
            "par": par_by_hole[number],
            "strokes": scores[number].strokes if number in scores else None,
        }
        for number in holes
    ]
