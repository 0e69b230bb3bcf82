from typing import Any, Dict, List, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, Field, model_validator, field_validator, ConfigDict

from .time_utils import require_utc

NineSelection = Literal["front", "back"]


class HoleDefinitionIn(BaseModel):
    holeNumber: int = Field(..., ge=1, le=18)
    par: int = Field(..., ge=3, le=6)
    strokeIndex: Optional[int] = Field(default=None, ge=1, le=18)
    distance: Optional[int] = Field(default=None, ge=0)


class RoundParticipantIn(BaseModel):
    playerId: str = Field(..., min_length=1)
    # Used to register the player when the roster service has not synced them yet.
    name: Optional[str] = Field(default=None, max_length=100)
    playingHandicap: Optional[float] = Field(default=None, ge=-10, le=60)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() or None
        return value


class RoundCreate(BaseModel):
    courseName: str = Field(..., min_length=1, max_length=200)
    teeName: Optional[str] = Field(default=None, max_length=100)
    courseRating: float = Field(..., gt=0, le=90)
    slopeRating: int = Field(..., ge=55, le=155)
    playedAt: Optional[datetime] = None
    notes: Optional[str] = None
    holes: List[HoleDefinitionIn] = Field(..., min_length=1, max_length=18)
    participants: List[RoundParticipantIn] = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid")

    @field_validator("playedAt")
    @classmethod
    def _require_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        return require_utc(value, field_name="playedAt")

    @model_validator(mode="after")
    def _unique_holes_and_players(self) -> "RoundCreate":
        numbers = [h.holeNumber for h in self.holes]
        if len(set(numbers)) != len(numbers):
            raise ValueError("hole numbers must be unique")
        players = [p.playerId for p in self.participants]
        if len(set(players)) != len(players):
            raise ValueError("a player can only appear once in a round")
        return self


class RoundHoleOut(BaseModel):
    holeNumber: int
    par: int
    strokeIndex: Optional[int] = None
    distance: Optional[int] = None


class RoundParticipantOut(BaseModel):
    id: str
    playerId: str
    name: str
    displayPosition: int
    playingHandicap: Optional[float] = None
    grossScore: Optional[int] = None
    adjustedGrossScore: Optional[int] = None
    netScore: Optional[int] = None


class ScoreEntryOut(BaseModel):
    entryId: str
    participantId: str
    holeNumber: int
    par: int
    strokes: Optional[int] = None
    putts: Optional[int] = None
    fairwayHit: Optional[bool] = None
    greenInRegulation: Optional[bool] = None
    updatedAt: Optional[datetime] = None


class ScorecardOut(BaseModel):
    id: str
    courseName: str
    teeName: Optional[str] = None
    courseRating: float
    slopeRating: int
    status: str
    nineHoleSelection: Optional[str] = None
    notes: Optional[str] = None
    playedAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
    completedAt: Optional[datetime] = None
    holes: List[RoundHoleOut]
    participants: List[RoundParticipantOut]
    entries: List[ScoreEntryOut]


class RoundStatusOut(BaseModel):
    id: str
    status: str
    updatedAt: Optional[datetime] = None


class ScoreUpdateIn(BaseModel):
    """Full field set for one entry; omitted fields are left untouched."""

    entryId: str = Field(..., min_length=1)
    strokes: Optional[int] = None
    putts: Optional[int] = None
    fairwayHit: Optional[bool] = None
    greenInRegulation: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")


class ScoreBatchIn(BaseModel):
    generation: Optional[int] = Field(default=None, ge=0)
    entries: List[ScoreUpdateIn] = Field(default_factory=list)


class ScoreBatchOut(BaseModel):
    roundId: str
    generation: Optional[int] = None
    savedAt: datetime
    entries: List[ScoreEntryOut]


class CompleteRoundIn(BaseModel):
    nine: Optional[NineSelection] = None


class NineSummaryOut(BaseModel):
    score: int
    par: int
    toPar: int


class HoleResultOut(BaseModel):
    hole: int
    strokes: int
    par: int
    diff: int


class PlayerCompletionOut(BaseModel):
    participantId: str
    playerId: str
    playerName: str
    grossScore: int
    adjustedGrossScore: Optional[int] = None
    netScore: Optional[int] = None
    scoreToPar: int
    playingHandicap: Optional[float] = None
    courseHandicap: Optional[int] = None
    scoreDifferential: Optional[float] = None
    handicapIndex: Optional[float] = None
    handicapError: Optional[str] = None
    frontNine: NineSummaryOut
    backNine: NineSummaryOut
    stats: Dict[str, int]
    bestHoles: List[HoleResultOut]
    worstHoles: List[HoleResultOut]


class RoundCompletionOut(BaseModel):
    roundId: str
    status: str
    completedAt: datetime
    courseRating: float
    slopeRating: int
    totalPar: int
    isNineHole: bool
    nine: Optional[NineSelection] = None
    holesPlayed: int
    players: List[PlayerCompletionOut]


class ScoreCorrectionIn(BaseModel):
    entryId: str = Field(..., min_length=1)
    strokes: Optional[int] = None
    putts: Optional[int] = None

    model_config = ConfigDict(extra="forbid")


class EditScoresIn(BaseModel):
    edits: List[ScoreCorrectionIn] = Field(..., min_length=1)
    editedBy: str = Field(..., min_length=1, max_length=100)
    reason: Optional[str] = Field(default=None, max_length=500)


class EditedPlayerOut(BaseModel):
    participantId: str
    playerId: str
    playerName: str
    grossScore: int
    adjustedGrossScore: int
    netScore: Optional[int] = None
    scoreDifferential: float
    handicapIndex: Optional[float] = None


class EditScoresOut(BaseModel):
    roundId: str
    changesCount: int
    message: str
    players: List[EditedPlayerOut] = Field(default_factory=list)


class ScoreEditOut(BaseModel):
    id: str
    scoreId: str
    participantId: str
    playerName: str
    holeNumber: int
    oldStrokes: Optional[int] = None
    newStrokes: Optional[int] = None
    oldPutts: Optional[int] = None
    newPutts: Optional[int] = None
    editedBy: str
    reason: Optional[str] = None
    editedAt: datetime


class HandicapDifferentialOut(BaseModel):
    roundId: str
    value: float
    courseRating: float
    slopeRating: int
    isNineHole: bool
    nine: Optional[str] = None
    grossScore: int
    adjustedGrossScore: int
    playedAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    editedAt: Optional[datetime] = None


class HandicapSnapshotOut(BaseModel):
    roundId: Optional[str] = None
    value: Optional[float] = None
    differentialsUsed: int
    source: str
    effectiveAt: datetime


class PlayerHandicapOut(BaseModel):
    playerId: str
    playerName: str
    handicapIndex: Optional[float] = None
    display: str
    differentialsCount: int
    differentialsUsed: int
    history: List[HandicapSnapshotOut]
    recentDifferentials: List[HandicapDifferentialOut]
