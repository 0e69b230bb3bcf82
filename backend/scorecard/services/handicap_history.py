"""Read side of the handicap record: differentials and index snapshots."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import PlayerNotFound
from ..models import HandicapDifferential, HandicapIndexSnapshot, Player
from ..schemas import HandicapDifferentialOut, HandicapSnapshotOut, PlayerHandicapOut
from ..scoring import handicap
from ..time_utils import coerce_utc

_NEWEST_FIRST = (
    func.coalesce(HandicapDifferential.played_at, HandicapDifferential.created_at).desc(),
    HandicapDifferential.created_at.desc(),
    HandicapDifferential.id.desc(),
)


async def recent_differentials(
    session: AsyncSession,
    player_id: str,
    *,
    exclude_round_id: Optional[str] = None,
    limit: int = handicap.MAX_DIFFERENTIALS,
) -> List[HandicapDifferential]:
    """Most recent differentials for ``player_id``, newest first."""

    stmt = select(HandicapDifferential).where(HandicapDifferential.player_id == player_id)
    if exclude_round_id is not None:
        stmt = stmt.where(HandicapDifferential.round_id != exclude_round_id)
    stmt = stmt.order_by(*_NEWEST_FIRST).limit(limit)
    return list((await session.execute(stmt)).scalars().all())


async def latest_index(session: AsyncSession, player_id: str) -> Optional[float]:
    """Most recent non-null index snapshot value, if any."""

    stmt = (
        select(HandicapIndexSnapshot.value)
        .where(
            HandicapIndexSnapshot.player_id == player_id,
            HandicapIndexSnapshot.value.is_not(None),
        )
        .order_by(
            HandicapIndexSnapshot.effective_at.desc(),
            HandicapIndexSnapshot.created_at.desc(),
            HandicapIndexSnapshot.id.desc(),
        )
        .limit(1)
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def course_handicap_for(
    session: AsyncSession,
    player_id: str,
    playing_handicap: Optional[float],
    slope_rating: float,
) -> int:
    """Course handicap used for ESC.

    The playing handicap recorded on the round wins; otherwise the player's
    latest index is converted for this slope, falling back to the default
    index for players with no history.
    """

    if playing_handicap is not None:
        return handicap.round_handicap(playing_handicap)
    index = await latest_index(session, player_id)
    if index is None:
        return handicap.default_course_handicap(slope_rating)
    return handicap.course_handicap(index, slope_rating)


def _differential_out(row: HandicapDifferential) -> HandicapDifferentialOut:
    return HandicapDifferentialOut(
        roundId=row.round_id,
        value=row.value,
        courseRating=row.course_rating,
        slopeRating=row.slope_rating,
        isNineHole=bool(row.is_nine_hole),
        nine=row.nine,
        grossScore=row.gross_score,
        adjustedGrossScore=row.adjusted_gross_score,
        playedAt=coerce_utc(row.played_at),
        createdAt=coerce_utc(row.created_at),
        editedAt=coerce_utc(row.edited_at),
    )


async def get_player_handicap(
    session: AsyncSession, player_id: str, *, history_limit: int = 20
) -> PlayerHandicapOut:
    player = await session.get(Player, player_id)
    if player is None:
        raise PlayerNotFound(player_id)

    differentials = await recent_differentials(session, player_id)
    values = [d.value for d in differentials]
    index = handicap.handicap_index(values)

    snapshots = (
        await session.execute(
            select(HandicapIndexSnapshot)
            .where(HandicapIndexSnapshot.player_id == player_id)
            .order_by(
                HandicapIndexSnapshot.effective_at.desc(),
                HandicapIndexSnapshot.created_at.desc(),
                HandicapIndexSnapshot.id.desc(),
            )
            .limit(history_limit)
        )
    ).scalars().all()

    return PlayerHandicapOut(
        playerId=player.id,
        playerName=player.name,
        handicapIndex=index,
        display=handicap.format_handicap(index),
        differentialsCount=len(values),
        differentialsUsed=handicap.differentials_used(len(values)),
        history=[
            HandicapSnapshotOut(
                roundId=s.round_id,
                value=s.value,
                differentialsUsed=s.differentials_used,
                source=s.source,
                effectiveAt=coerce_utc(s.effective_at),
            )
            for s in snapshots
        ],
        recentDifferentials=[_differential_out(d) for d in differentials],
    )
