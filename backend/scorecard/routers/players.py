from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..schemas import PlayerHandicapOut
from ..services import get_player_handicap

router = APIRouter(prefix="/players", tags=["players"])


@router.get("/{player_id}/handicap", response_model=PlayerHandicapOut)
async def player_handicap(
    player_id: str,
    history: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
) -> PlayerHandicapOut:
    return await get_player_handicap(session, player_id, history_limit=history)
