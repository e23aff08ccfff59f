"""Initial LMS schema: competitions, rounds, fixtures, entries and tick runs

Revision ID: 3a1f0c6b9d42
Revises:
Create Date: 2026-10-01 09:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# Revision identifiers, used by Alembic.
revision: str = "3a1f0c6b9d42"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "competitions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="upcoming"),
        sa.Column("current_round", sa.Integer(), nullable=True),
        sa.Column("fpl_start_event", sa.Integer(), nullable=True),
        sa.Column("winner_entrant_id", sa.String(length=36), nullable=True),
        sa.Column("finished_at", sa.DateTime(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=True,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_competitions_status", "competitions", ["status"], unique=False)

    op.create_table(
        "contestants",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("competition_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("short_name", sa.String(length=20), nullable=True),
        sa.Column("external_id", sa.String(length=50), nullable=True),
        sa.ForeignKeyConstraint(["competition_id"], ["competitions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("competition_id", "external_id", name="uq_contestants_external"),
    )

    op.create_table(
        "rounds",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("competition_id", sa.String(length=36), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="upcoming"),
        sa.Column("pick_deadline_utc", sa.DateTime(), nullable=True),
        sa.Column("locked_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=True,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.CheckConstraint("round_number >= 1", name="ck_round_number_positive"),
        sa.ForeignKeyConstraint(["competition_id"], ["competitions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("competition_id", "round_number", name="uq_rounds_competition_number"),
    )
    op.create_index("idx_rounds_status", "rounds", ["status"], unique=False)

    op.create_table(
        "fixtures",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("round_id", sa.String(length=36), nullable=False),
        sa.Column("home_contestant_id", sa.String(length=36), nullable=True),
        sa.Column("away_contestant_id", sa.String(length=36), nullable=True),
        sa.Column("kickoff_utc", sa.DateTime(), nullable=True),
        sa.Column("result", sa.String(length=20), nullable=False, server_default="not_set"),
        sa.Column("winning_contestant_id", sa.String(length=36), nullable=True),
        sa.Column("home_score", sa.Integer(), nullable=True),
        sa.Column("away_score", sa.Integer(), nullable=True),
        sa.Column("external_id", sa.String(length=50), nullable=True),
        sa.ForeignKeyConstraint(["round_id"], ["rounds.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["home_contestant_id"], ["contestants.id"]),
        sa.ForeignKeyConstraint(["away_contestant_id"], ["contestants.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("round_id", "external_id", name="uq_fixtures_round_external"),
    )
    op.create_index("idx_fixtures_round", "fixtures", ["round_id"], unique=False)

    op.create_table(
        "memberships",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("competition_id", sa.String(length=36), nullable=False),
        sa.Column("entrant_id", sa.String(length=36), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "joined_at",
            sa.DateTime(),
            nullable=True,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("eliminated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["competition_id"], ["competitions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("competition_id", "entrant_id", name="uq_memberships_entrant"),
    )

    op.create_table(
        "entries",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("competition_id", sa.String(length=36), nullable=False),
        sa.Column("round_id", sa.String(length=36), nullable=False),
        sa.Column("entrant_id", sa.String(length=36), nullable=False),
        sa.Column("contestant_id", sa.String(length=36), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("reason", sa.String(length=20), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=True,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["competition_id"], ["competitions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["round_id"], ["rounds.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("round_id", "entrant_id", name="uq_entries_round_entrant"),
    )
    op.create_index("idx_entries_round_status", "entries", ["round_id", "status"], unique=False)

    op.create_table(
        "tick_runs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("run_key", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="running"),
        sa.Column(
            "started_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("summary_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("run_key"),
    )
    op.create_index("idx_tick_runs_started_at", "tick_runs", ["started_at"], unique=False)


def downgrade() -> None:
    op.drop_index("idx_tick_runs_started_at", table_name="tick_runs")
    op.drop_table("tick_runs")
    op.drop_index("idx_entries_round_status", table_name="entries")
    op.drop_table("entries")
    op.drop_table("memberships")
    op.drop_index("idx_fixtures_round", table_name="fixtures")
    op.drop_table("fixtures")
    op.drop_index("idx_rounds_status", table_name="rounds")
    op.drop_table("rounds")
    op.drop_table("contestants")
    op.drop_index("idx_competitions_status", table_name="competitions")
    op.drop_table("competitions")
