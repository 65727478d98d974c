"""Lifecycle tables: games, job locks/runs/cursors, settlement queue, payload archive

Revision ID: 0001_lifecycle_tables
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_lifecycle_tables"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "games",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("league", sa.String(length=32), nullable=False),
        sa.Column("external_game_id", sa.String(), nullable=False),
        sa.Column(
            "provider", sa.String(), server_default=sa.text("'api_sports'"), nullable=False
        ),
        sa.Column("season", sa.Integer(), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status_raw", sa.String(), nullable=True),
        sa.Column("status_norm", sa.String(length=32), nullable=False),
        sa.Column("unknown_status_since", sa.DateTime(timezone=True), nullable=True),
        sa.Column("home_team", sa.String(), nullable=False),
        sa.Column("away_team", sa.String(), nullable=False),
        sa.Column("home_score", sa.Integer(), nullable=True),
        sa.Column("away_score", sa.Integer(), nullable=True),
        sa.Column("winner_side", sa.String(length=32), nullable=True),
        sa.Column("forced_final", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("finalized_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "league", "external_game_id", name="uq_games_league_external_game_id"
        ),
    )
    op.create_index("ix_games_league_starts_at", "games", ["league", "starts_at"], unique=False)
    op.create_index("ix_games_status_norm", "games", ["status_norm"], unique=False)
    op.create_index("ix_games_finalized_at", "games", ["finalized_at"], unique=False)

    op.create_table(
        "ingested_payloads",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("provider", sa.String(), nullable=False),
        sa.Column("entity_type", sa.String(), nullable=False),
        sa.Column("entity_key", sa.String(), nullable=False),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("payload_json", _JSON, nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_ingested_payloads_lookup",
        "ingested_payloads",
        ["provider", "entity_type", "entity_key", "fetched_at"],
        unique=False,
    )

    op.create_table(
        "job_locks",
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("locked_by", sa.String(), nullable=False),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("cancel_requested", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("meta", _JSON, nullable=True),
        sa.PrimaryKeyConstraint("key"),
    )

    op.create_table(
        "job_runs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("job_name", sa.String(), nullable=False),
        sa.Column("run_type", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("counts", _JSON, nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_job_runs_job_started", "job_runs", ["job_name", "started_at"], unique=False)
    op.create_index("ix_job_runs_status", "job_runs", ["status"], unique=False)

    op.create_table(
        "job_cursors",
        sa.Column("job_name", sa.String(length=64), nullable=False),
        sa.Column("step", sa.String(length=64), nullable=False),
        sa.Column("league_index", sa.Integer(), nullable=False),
        sa.Column("day_index", sa.Integer(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("job_name"),
    )

    op.create_table(
        "settlement_queue",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("game_id", sa.Integer(), nullable=False),
        sa.Column("league", sa.String(length=32), nullable=False),
        sa.Column("external_game_id", sa.String(), nullable=False),
        sa.Column("provider", sa.String(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("outcome", sa.String(length=32), nullable=True),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("attempts", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("locked_by", sa.String(), nullable=True),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["game_id"], ["games.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("game_id", name="uq_settlement_queue_game_id"),
    )
    op.create_index(
        "ix_settlement_queue_status_next_attempt",
        "settlement_queue",
        ["status", "next_attempt_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_settlement_queue_status_next_attempt", table_name="settlement_queue")
    op.drop_table("settlement_queue")
    op.drop_table("job_cursors")
    op.drop_index("ix_job_runs_status", table_name="job_runs")
    op.drop_index("ix_job_runs_job_started", table_name="job_runs")
    op.drop_table("job_runs")
    op.drop_table("job_locks")
    op.drop_index("ix_ingested_payloads_lookup", table_name="ingested_payloads")
    op.drop_table("ingested_payloads")
    op.drop_index("ix_games_finalized_at", table_name="games")
    op.drop_index("ix_games_status_norm", table_name="games")
    op.drop_index("ix_games_league_starts_at", table_name="games")
    op.drop_table("games")
