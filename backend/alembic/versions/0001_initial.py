from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "player",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
    )
    op.create_table(
        "round",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("course_name", sa.String(), nullable=False),
        sa.Column("tee_name", sa.String(), nullable=True),
        sa.Column("course_rating", sa.Float(), nullable=False),
        sa.Column("slope_rating", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="in_progress"),
        sa.Column("nine_hole_selection", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("played_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "round_hole",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "round_id",
            sa.String(),
            sa.ForeignKey("round.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("hole_number", sa.Integer(), nullable=False),
        sa.Column("par", sa.Integer(), nullable=False),
        sa.Column("stroke_index", sa.Integer(), nullable=True),
        sa.Column("distance", sa.Integer(), nullable=True),
        sa.UniqueConstraint(
            "round_id", "hole_number", name="uq_round_hole_round_id_hole_number"
        ),
    )
    op.create_table(
        "round_participant",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "round_id",
            sa.String(),
            sa.ForeignKey("round.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("player_id", sa.String(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("display_position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("playing_handicap", sa.Float(), nullable=True),
        sa.Column("gross_score", sa.Integer(), nullable=True),
        sa.Column("adjusted_gross_score", sa.Integer(), nullable=True),
        sa.Column("net_score", sa.Integer(), nullable=True),
        sa.UniqueConstraint(
            "round_id", "player_id", name="uq_round_participant_round_id_player_id"
        ),
    )
    op.create_table(
        "score",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "round_id",
            sa.String(),
            sa.ForeignKey("round.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "participant_id",
            sa.String(),
            sa.ForeignKey("round_participant.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("hole_number", sa.Integer(), nullable=False),
        sa.Column("strokes", sa.Integer(), nullable=True),
        sa.Column("putts", sa.Integer(), nullable=True),
        sa.Column("fairway_hit", sa.Boolean(), nullable=True),
        sa.Column("green_in_regulation", sa.Boolean(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "participant_id", "hole_number", name="uq_score_participant_id_hole_number"
        ),
    )
    op.create_index("ix_score_round_id", "score", ["round_id"])
    op.create_table(
        "handicap_differential",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("player_id", sa.String(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("round_id", sa.String(), sa.ForeignKey("round.id"), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("course_rating", sa.Float(), nullable=False),
        sa.Column("slope_rating", sa.Integer(), nullable=False),
        sa.Column("is_nine_hole", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("nine", sa.String(), nullable=True),
        sa.Column("gross_score", sa.Integer(), nullable=False),
        sa.Column("adjusted_gross_score", sa.Integer(), nullable=False),
        sa.Column("esc_course_handicap", sa.Integer(), nullable=True),
        sa.Column("played_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("edited_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "player_id", "round_id", name="uq_handicap_differential_player_id_round_id"
        ),
    )
    op.create_table(
        "handicap_index_snapshot",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("player_id", sa.String(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("round_id", sa.String(), sa.ForeignKey("round.id"), nullable=True),
        sa.Column("value", sa.Float(), nullable=True),
        sa.Column("differentials_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("source", sa.String(), nullable=False, server_default="round"),
        sa.Column("effective_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(
        "ix_handicap_index_snapshot_player_effective",
        "handicap_index_snapshot",
        ["player_id", "effective_at"],
    )
    op.create_table(
        "score_edit",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("round_id", sa.String(), sa.ForeignKey("round.id"), nullable=False),
        sa.Column("score_id", sa.String(), sa.ForeignKey("score.id"), nullable=False),
        sa.Column(
            "participant_id",
            sa.String(),
            sa.ForeignKey("round_participant.id"),
            nullable=False,
        ),
        sa.Column("player_name", sa.String(), nullable=False),
        sa.Column("hole_number", sa.Integer(), nullable=False),
        sa.Column("old_strokes", sa.Integer(), nullable=True),
        sa.Column("new_strokes", sa.Integer(), nullable=True),
        sa.Column("old_putts", sa.Integer(), nullable=True),
        sa.Column("new_putts", sa.Integer(), nullable=True),
        sa.Column("edited_by", sa.String(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column(
            "edited_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )


def downgrade():
    op.drop_table("score_edit")
    op.drop_index(
        "ix_handicap_index_snapshot_player_effective", table_name="handicap_index_snapshot"
    )
    op.drop_table("handicap_index_snapshot")
    op.drop_table("handicap_differential")
    op.drop_index("ix_score_round_id", table_name="score")
    op.drop_table("score")
    op.drop_table("round_participant")
    op.drop_table("round_hole")
    op.drop_table("round")
    op.drop_table("player")
