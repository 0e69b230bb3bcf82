"""Corrections to rounds that are already completed.

Every changed value gets a ``score_edit`` row holding the old and new values
before the score itself is touched. Affected players get their totals and the
round's differential recomputed (nine-hole aware, same ESC basis as at
completion) and a fresh index snapshot tagged ``edit``. All of it is one
transaction.
"""

from __future__ import annotations

import logging
import uuid
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import InvalidScoreValue, RoundNotCompleted, UnknownScoreEntry
from ..models import (
    HandicapDifferential,
    HandicapIndexSnapshot,
    ScoreEdit,
    ROUND_COMPLETED,
)
from ..schemas import EditedPlayerOut, EditScoresOut, ScoreCorrectionIn, ScoreEditOut
from ..scoring import handicap
from ..time_utils import coerce_utc, utcnow
from .completion import differential_for, net_for
from .handicap_history import course_handicap_for, recent_differentials
from .rounds import get_round, hole_scores, load_card
from .validation import ValidationError, holes_for_nine, validate_putts, validate_strokes

logger = logging.getLogger(__name__)

NO_CHANGES_MESSAGE = "No changes detected"


def _merge_corrections(
    updates: Sequence[ScoreCorrectionIn],
) -> Dict[str, Dict[str, Optional[int]]]:
    """Validated field changes per entry id; later corrections win."""

    merged: Dict[str, Dict[str, Optional[int]]] = {}
    for update in updates:
        fields = merged.setdefault(update.entryId, {})
        sent = update.model_fields_set
        if "strokes" in sent:
            strokes = validate_strokes(update.strokes)
            if strokes is None:
                raise ValidationError("Strokes are required on a completed round.")
            fields["strokes"] = strokes
        if "putts" in sent:
            fields["putts"] = validate_putts(update.putts)
    return merged


async def edit_completed_scores(
    session: AsyncSession,
    round_id: str,
    updates: Sequence[ScoreCorrectionIn],
    edited_by: str,
    reason: Optional[str] = None,
) -> EditScoresOut:
    card = await load_card(session, round_id)
    rnd = card.round
    if rnd.status != ROUND_COMPLETED:
        raise RoundNotCompleted(round_id, rnd.status)

    scores = {s.id: s for s in card.scores}
    unknown = [eid for eid in dict.fromkeys(u.entryId for u in updates) if eid not in scores]
    if unknown:
        raise UnknownScoreEntry(round_id, unknown)

    try:
        merged = _merge_corrections(updates)
    except ValidationError as exc:
        raise InvalidScoreValue(exc.detail)

    names = {row.participant.id: row.name for row in card.participants}
    now = utcnow()
    audits: List[ScoreEdit] = []
    for entry_id, fields in merged.items():
        score = scores[entry_id]
        new_strokes = fields.get("strokes", score.strokes)
        new_putts = fields.get("putts", score.putts)
        if new_strokes == score.strokes and new_putts == score.putts:
            continue
        audits.append(
            ScoreEdit(
                id=uuid.uuid4().hex,
                round_id=round_id,
                score_id=score.id,
                participant_id=score.participant_id,
                player_name=names.get(score.participant_id, ""),
                hole_number=score.hole_number,
                old_strokes=score.strokes,
                new_strokes=new_strokes,
                old_putts=score.putts,
                new_putts=new_putts,
                edited_by=edited_by,
                reason=reason,
                edited_at=now,
            )
        )

    if not audits:
        return EditScoresOut(roundId=round_id, changesCount=0, message=NO_CHANGES_MESSAGE)

    session.add_all(audits)
    for audit in audits:
        score = scores[audit.score_id]
        score.strokes = audit.new_strokes
        score.putts = audit.new_putts
        score.updated_at = now

    nine = rnd.nine_hole_selection
    par_by_hole = card.par_by_hole
    in_play = holes_for_nine(nine, list(par_by_hole))
    affected = list(dict.fromkeys(a.participant_id for a in audits))
    players: List[EditedPlayerOut] = []

    for row in card.participants:
        participant = row.participant
        if participant.id not in affected:
            continue
        items = hole_scores(card.scores_for(participant.id), par_by_hole, in_play)
        gross = sum(item["strokes"] or 0 for item in items)

        differential = (
            await session.execute(
                select(HandicapDifferential).where(
                    HandicapDifferential.player_id == participant.player_id,
                    HandicapDifferential.round_id == round_id,
                )
            )
        ).scalar_one_or_none()
        if differential is not None and differential.esc_course_handicap is not None:
            course_hcp = differential.esc_course_handicap
        else:
            course_hcp = await course_handicap_for(
                session, participant.player_id, participant.playing_handicap, rnd.slope_rating
            )
        adjusted = handicap.equitable_stroke_control(items, course_hcp)
        value = differential_for(adjusted, rnd, nine)

        if differential is None:
            differential = HandicapDifferential(
                id=uuid.uuid4().hex,
                player_id=participant.player_id,
                round_id=round_id,
                course_rating=rnd.course_rating,
                slope_rating=rnd.slope_rating,
                is_nine_hole=nine is not None,
                nine=nine,
                esc_course_handicap=course_hcp,
                played_at=rnd.played_at or now,
                created_at=now,
            )
            session.add(differential)
        differential.value = value
        differential.gross_score = gross
        differential.adjusted_gross_score = adjusted
        differential.edited_at = now

        participant.gross_score = gross
        participant.adjusted_gross_score = adjusted
        participant.net_score = net_for(gross, participant.playing_handicap, nine)

        # Autoflush makes the corrected differential visible to this query.
        recent = await recent_differentials(session, participant.player_id)
        index = handicap.handicap_index([d.value for d in recent])
        session.add(
            HandicapIndexSnapshot(
                id=uuid.uuid4().hex,
                player_id=participant.player_id,
                round_id=round_id,
                value=index,
                differentials_used=len(recent),
                source="edit",
                effective_at=now,
                created_at=now,
            )
        )
        players.append(
            EditedPlayerOut(
                participantId=participant.id,
                playerId=participant.player_id,
                playerName=row.name,
                grossScore=gross,
                adjustedGrossScore=adjusted,
                netScore=participant.net_score,
                scoreDifferential=value,
                handicapIndex=index,
            )
        )

    rnd.updated_at = now
    await session.commit()
    logger.info(
        "Round %s edited by %s: %d change(s) for %d player(s)",
        round_id,
        edited_by,
        len(audits),
        len(players),
    )
    return EditScoresOut(
        roundId=round_id,
        changesCount=len(audits),
        message=f"Updated {len(audits)} score(s)",
        players=players,
    )


async def list_score_edits(session: AsyncSession, round_id: str) -> List[ScoreEditOut]:
    await get_round(session, round_id)
    rows = (
        await session.execute(
            select(ScoreEdit)
            .where(ScoreEdit.round_id == round_id)
            .order_by(ScoreEdit.edited_at.desc(), ScoreEdit.hole_number, ScoreEdit.id)
        )
    ).scalars().all()
    return [
        ScoreEditOut(
            id=e.id,
            scoreId=e.score_id,
            participantId=e.participant_id,
            playerName=e.player_name,
            holeNumber=e.hole_number,
            oldStrokes=e.old_strokes,
            newStrokes=e.new_strokes,
            oldPutts=e.old_putts,
            newPutts=e.new_putts,
            editedBy=e.edited_by,
            reason=e.reason,
            editedAt=coerce_utc(e.edited_at),
        )
        for e in rows
    ]
