import asyncio
import os

from sqlalchemy import select

from scorecard import db
from scorecard.models import Player, Round, ROUND_IN_PROGRESS
from scorecard.schemas import HoleDefinitionIn, RoundCreate, RoundParticipantIn
from scorecard.services import start_round

if not os.getenv("DATABASE_URL"):
    raise RuntimeError("DATABASE_URL environment variable is required")

PLAYERS = [
    ("alice", "Alice", 12.4),
    ("bob", "Bob", 18.0),
    ("carmen", "Carmen", 5.2),
]

# par, stroke index for a par-72 layout
HOLES = [
    (4, 7), (5, 13), (3, 15), (4, 1), (4, 9), (3, 17), (5, 3), (4, 11), (4, 5),
    (4, 8), (3, 16), (5, 2), (4, 12), (4, 6), (3, 18), (4, 10), (5, 4), (4, 14),
]


async def main():
    db.get_engine()
    async with db.AsyncSessionLocal() as s:
        have = set((await s.execute(select(Player.id))).scalars().all())
        for pid, name, _ in PLAYERS:
            if pid not in have:
                s.add(Player(id=pid, name=name))
        await s.commit()

        open_round = (
            await s.execute(
                select(Round.id).where(
                    Round.course_name == "Demo Links",
                    Round.status == ROUND_IN_PROGRESS,
                )
            )
        ).scalar_one_or_none()
        if open_round is None:
            card = await start_round(
                s,
                RoundCreate(
                    courseName="Demo Links",
                    teeName="White",
                    courseRating=71.2,
                    slopeRating=128,
                    holes=[
                        HoleDefinitionIn(holeNumber=n, par=par, strokeIndex=si)
                        for n, (par, si) in enumerate(HOLES, start=1)
                    ],
                    participants=[
                        RoundParticipantIn(playerId=pid, playingHandicap=hcp)
                        for pid, _, hcp in PLAYERS
                    ],
                ),
            )
            open_round = card.id
        print(f"Seeded demo round {open_round}")

    await db.get_engine().dispose()


if __name__ == "__main__":
    asyncio.run(main())
