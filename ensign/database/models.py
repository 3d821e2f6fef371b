"""
ensign.database.models — SQLAlchemy 2.0 Data Models
====================================================

Tables:
- user_levels     — Lifetime XP account per (user, guild)
- daily_xp        — Per (user, guild, effective day) running totals + cap/tier
- voice_sessions  — Who is in voice right now, and since when
- guild_settings  — Level-up / XP-log channel routing and toggles

All mutation of ``user_levels.total_xp`` and the ``daily_xp`` counters goes
through single-statement upserts in :mod:`ensign.services.accounts` and
:mod:`ensign.services.ledger`; the ORM classes are used for reads and for
the low-traffic tables.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Ensign ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class XPSource(enum.StrEnum):
    """Where a unit of XP came from."""
    MESSAGE = "message"
    REACTION = "reaction"
    VOICE = "voice"
    ADMIN = "admin"


# Sources that count towards the daily cap and have a daily column
CAPPED_SOURCES: frozenset[XPSource] = frozenset(
    {XPSource.MESSAGE, XPSource.REACTION, XPSource.VOICE}
)


# ---------------------------------------------------------------------------
# Lifetime account — one row per member per guild
# ---------------------------------------------------------------------------
class UserLevel(Base):
    __tablename__ = "user_levels"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    total_xp: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    level: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    messages: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    reactions: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    voice_minutes: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    last_xp_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_user_levels_guild_xp", "guild_id", "total_xp"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserLevel user={self.user_id} guild={self.guild_id} "
            f"xp={self.total_xp} level={self.level}>"
        )


# ---------------------------------------------------------------------------
# Daily progress — one row per member per guild per effective day
# ---------------------------------------------------------------------------
class DailyXP(Base):
    __tablename__ = "daily_xp"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    # ISO date of the effective day (YYYY-MM-DD), see ensign.engine.clock
    effective_date: Mapped[str] = mapped_column(String(10), primary_key=True)
    total_xp: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    message_xp: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    voice_xp: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    reaction_xp: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    daily_cap: Mapped[int] = mapped_column(Integer, nullable=False)
    tier_level: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    tier_role_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_daily_xp_date", "effective_date"),
        Index("ix_daily_xp_guild_date", "guild_id", "effective_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<DailyXP user={self.user_id} guild={self.guild_id} "
            f"date={self.effective_date} xp={self.total_xp}/{self.daily_cap}>"
        )


# ---------------------------------------------------------------------------
# Voice sessions — presence tracking for the voice tick loop
# ---------------------------------------------------------------------------
class VoiceSession(Base):
    __tablename__ = "voice_sessions"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    channel_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    join_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_xp_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    is_muted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_deafened: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("ix_voice_sessions_guild", "guild_id"),
    )


# ---------------------------------------------------------------------------
# Guild settings — presentation routing, never read by the XP core
# ---------------------------------------------------------------------------
class GuildSettings(Base):
    __tablename__ = "guild_settings"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    levelup_channel_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    levelup_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    xp_log_channel_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    xp_log_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
