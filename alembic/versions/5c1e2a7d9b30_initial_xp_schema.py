"""Initial XP accounting schema

Revision ID: 5c1e2a7d9b30
Revises:
Create Date: 2026-10-17 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "5c1e2a7d9b30"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "user_levels",
        sa.Column("user_id", sa.BigInteger(), primary_key=True),
        sa.Column("guild_id", sa.BigInteger(), primary_key=True),
        sa.Column("total_xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("messages", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reactions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("voice_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_xp_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_user_levels_guild_xp", "user_levels", ["guild_id", "total_xp"])

    op.create_table(
        "daily_xp",
        sa.Column("user_id", sa.BigInteger(), primary_key=True),
        sa.Column("guild_id", sa.BigInteger(), primary_key=True),
        sa.Column("effective_date", sa.String(10), primary_key=True),
        sa.Column("total_xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("message_xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("voice_xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reaction_xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("daily_cap", sa.Integer(), nullable=False),
        sa.Column("tier_level", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tier_role_id", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_daily_xp_date", "daily_xp", ["effective_date"])
    op.create_index("ix_daily_xp_guild_date", "daily_xp", ["guild_id", "effective_date"])

    op.create_table(
        "voice_sessions",
        sa.Column("user_id", sa.BigInteger(), primary_key=True),
        sa.Column("guild_id", sa.BigInteger(), primary_key=True),
        sa.Column("channel_id", sa.BigInteger(), nullable=False),
        sa.Column("join_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_xp_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_muted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_deafened", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_voice_sessions_guild", "voice_sessions", ["guild_id"])

    op.create_table(
        "guild_settings",
        sa.Column("guild_id", sa.BigInteger(), primary_key=True),
        sa.Column("levelup_channel_id", sa.BigInteger(), nullable=True),
        sa.Column("levelup_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("xp_log_channel_id", sa.BigInteger(), nullable=True),
        sa.Column("xp_log_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("guild_settings")
    op.drop_index("ix_voice_sessions_guild", table_name="voice_sessions")
    op.drop_table("voice_sessions")
    op.drop_index("ix_daily_xp_guild_date", table_name="daily_xp")
    op.drop_index("ix_daily_xp_date", table_name="daily_xp")
    op.drop_table("daily_xp")
    op.drop_index("ix_user_levels_guild_xp", table_name="user_levels")
    op.drop_table("user_levels")
