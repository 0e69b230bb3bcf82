from sqlalchemy.orm import relationship
from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    Integer,
    Float,
    Boolean,
    Text,
    Index,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from .db import Base

ROUND_IN_PROGRESS = "in_progress"
ROUND_COMPLETED = "completed"
ROUND_ABANDONED = "abandoned"
ROUND_STATUSES = (ROUND_IN_PROGRESS, ROUND_COMPLETED, ROUND_ABANDONED)


class Player(Base):
    __tablename__ = "player"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)


class Round(Base):
    __tablename__ = "round"
    id = Column(String, primary_key=True)
    course_name = Column(String, nullable=False)
    tee_name = Column(String, nullable=True)
    course_rating = Column(Float, nullable=False)
    slope_rating = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default=ROUND_IN_PROGRESS)  # see ROUND_STATUSES
    nine_hole_selection = Column(String, nullable=True)  # "front" | "back"
    notes = Column(Text, nullable=True)
    played_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    holes = relationship(
        "RoundHole",
        order_by="RoundHole.hole_number",
        cascade="all, delete-orphan",
        back_populates="round",
    )
    participants = relationship(
        "RoundParticipant",
        order_by="RoundParticipant.display_position",
        cascade="all, delete-orphan",
        back_populates="round",
    )


class RoundHole(Base):
    """Hole definition as supplied by course management when the round started."""

    __tablename__ = "round_hole"
    id = Column(String, primary_key=True)
    round_id = Column(String, ForeignKey("round.id", ondelete="CASCADE"), nullable=False)
    hole_number = Column(Integer, nullable=False)
    par = Column(Integer, nullable=False)
    stroke_index = Column(Integer, nullable=True)
    distance = Column(Integer, nullable=True)

    round = relationship("Round", back_populates="holes")

    __table_args__ = (
        UniqueConstraint("round_id", "hole_number", name="uq_round_hole_round_id_hole_number"),
    )


class RoundParticipant(Base):
    __tablename__ = "round_participant"
    id = Column(String, primary_key=True)
    round_id = Column(String, ForeignKey("round.id", ondelete="CASCADE"), nullable=False)
    player_id = Column(String, ForeignKey("player.id"), nullable=False)
    display_position = Column(Integer, nullable=False, default=0)
    playing_handicap = Column(Float, nullable=True)
    gross_score = Column(Integer, nullable=True)
    adjusted_gross_score = Column(Integer, nullable=True)
    net_score = Column(Integer, nullable=True)

    round = relationship("Round", back_populates="participants")
    player = relationship("Player")
    scores = relationship(
        "Score",
        order_by="Score.hole_number",
        cascade="all, delete-orphan",
        back_populates="participant",
    )

    __table_args__ = (
        UniqueConstraint("round_id", "player_id", name="uq_round_participant_round_id_player_id"),
    )


class Score(Base):
    __tablename__ = "score"
    id = Column(String, primary_key=True)
    round_id = Column(String, ForeignKey("round.id", ondelete="CASCADE"), nullable=False)
    participant_id = Column(
        String, ForeignKey("round_participant.id", ondelete="CASCADE"), nullable=False
    )
    hole_number = Column(Integer, nullable=False)
    strokes = Column(Integer, nullable=True)
    putts = Column(Integer, nullable=True)
    fairway_hit = Column(Boolean, nullable=True)
    green_in_regulation = Column(Boolean, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    participant = relationship("RoundParticipant", back_populates="scores")

    __table_args__ = (
        UniqueConstraint(
            "participant_id", "hole_number", name="uq_score_participant_id_hole_number"
        ),
        Index("ix_score_round_id", "round_id"),
    )


class HandicapDifferential(Base):
    """Score differential produced by one completed round for one player."""

    __tablename__ = "handicap_differential"
    id = Column(String, primary_key=True)
    player_id = Column(String, ForeignKey("player.id"), nullable=False)
    round_id = Column(String, ForeignKey("round.id"), nullable=False)
    value = Column(Float, nullable=False)
    course_rating = Column(Float, nullable=False)
    slope_rating = Column(Integer, nullable=False)
    is_nine_hole = Column(Boolean, nullable=False, default=False)
    nine = Column(String, nullable=True)
    gross_score = Column(Integer, nullable=False)
    adjusted_gross_score = Column(Integer, nullable=False)
    esc_course_handicap = Column(Integer, nullable=True)  # cap basis reused by edits
    played_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    edited_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "player_id", "round_id", name="uq_handicap_differential_player_id_round_id"
        ),
    )


class HandicapIndexSnapshot(Base):
    """Append-only history of a player's handicap index."""

    __tablename__ = "handicap_index_snapshot"
    id = Column(String, primary_key=True)
    player_id = Column(String, ForeignKey("player.id"), nullable=False)
    round_id = Column(String, ForeignKey("round.id"), nullable=True)
    value = Column(Float, nullable=True)  # NULL until three differentials exist
    differentials_used = Column(Integer, nullable=False, default=0)
    source = Column(String, nullable=False, default="round")  # "round" | "edit"
    effective_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_handicap_index_snapshot_player_effective", "player_id", "effective_at"),
    )


class ScoreEdit(Base):
    """Audit record for a score corrected after the round was completed."""

    __tablename__ = "score_edit"
    id = Column(String, primary_key=True)
    round_id = Column(String, ForeignKey("round.id"), nullable=False)
    score_id = Column(String, ForeignKey("score.id"), nullable=False)
    participant_id = Column(String, ForeignKey("round_participant.id"), nullable=False)
    player_name = Column(String, nullable=False)
    hole_number = Column(Integer, nullable=False)
    old_strokes = Column(Integer, nullable=True)
    new_strokes = Column(Integer, nullable=True)
    old_putts = Column(Integer, nullable=True)
    new_putts = Column(Integer, nullable=True)
    edited_by = Column(String, nullable=False)
    reason = Column(Text, nullable=True)
    edited_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
