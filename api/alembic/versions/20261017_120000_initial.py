"""initial catalog schema

Revision ID: 20261017_120000_initial
Revises:
Create Date: 2026-10-17 12:00:00
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20261017_120000_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # games
    op.create_table(
        "games",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("steam_app_id", sa.String(50), nullable=True, unique=True),
        sa.Column("epic_game_id", sa.String(100), nullable=True, unique=True),
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("developer", sa.String(200), nullable=True),
        sa.Column("publisher", sa.String(200), nullable=True),
        sa.Column("release_date", sa.DateTime(), nullable=True),
        sa.Column("header_image", sa.String(), nullable=True),
        sa.Column("capsule_image", sa.String(), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("price_formatted", sa.String(), nullable=True),
        sa.Column("platform", sa.String(), nullable=False),
        sa.Column(
            "completion_status",
            sa.String(),
            nullable=False,
            server_default="NotStarted",
        ),
        sa.Column("playtime_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_played", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_owned", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint(
            "steam_app_id IS NOT NULL OR epic_game_id IS NOT NULL",
            name="ck_games_external_id",
        ),
        sa.CheckConstraint("playtime_minutes >= 0", name="ck_games_playtime"),
    )
    op.create_index("ix_games_name", "games", ["name"])
    op.create_index("ix_games_platform", "games", ["platform"])
    op.create_index("ix_games_completion_status", "games", ["completion_status"])

    # achievements
    op.create_table(
        "achievements",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "game_id",
            sa.Integer(),
            sa.ForeignKey("games.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("external_id", sa.String(100), nullable=False),
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("icon_url", sa.String(), nullable=True),
        sa.Column("icon_gray_url", sa.String(), nullable=True),
        sa.Column("is_unlocked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("global_percentage", sa.Float(), nullable=False, server_default="0"),
        sa.Column("is_hidden", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint("game_id", "external_id", name="uq_game_achievement"),
    )
    op.create_index("ix_achievements_game_id", "achievements", ["game_id"])

    # genres
    op.create_table(
        "genres",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.String(), nullable=True),
    )
    op.create_table(
        "game_genres",
        sa.Column(
            "game_id",
            sa.Integer(),
            sa.ForeignKey("games.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "genre_id",
            sa.Integer(),
            sa.ForeignKey("genres.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    # tags
    op.create_table(
        "tags",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
    )
    op.create_table(
        "game_tags",
        sa.Column(
            "game_id",
            sa.Integer(),
            sa.ForeignKey("games.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "tag_id",
            sa.Integer(),
            sa.ForeignKey("tags.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )


def downgrade() -> None:
    op.drop_table("game_tags")
    op.drop_table("tags")
    op.drop_table("game_genres")
    op.drop_table("genres")
    op.drop_index("ix_achievements_game_id", table_name="achievements")
    op.drop_table("achievements")
    op.drop_index("ix_games_completion_status", table_name="games")
    op.drop_index("ix_games_platform", table_name="games")
    op.drop_index("ix_games_name", table_name="games")
    op.drop_table("games")
