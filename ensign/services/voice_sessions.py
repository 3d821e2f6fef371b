"""
ensign.services.voice_sessions — Voice presence tracking
=========================================================

Maintains ``voice_sessions``: one row per member currently in a voice
channel.  The voice cog writes rows from gateway voice-state updates and
reads them on every tick; the XP core never touches this table.

Synchronous; call through ``run_db``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import Engine, delete, select, update

from ensign.database.engine import get_session
from ensign.database.models import VoiceSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class VoiceSessionInfo:
    """Detached view of a ``voice_sessions`` row."""

    user_id: int
    guild_id: int
    channel_id: int
    join_time: datetime
    last_xp_time: datetime | None
    is_muted: bool
    is_deafened: bool

    @property
    def is_suppressed(self) -> bool:
        return self.is_muted or self.is_deafened


def _info(row: VoiceSession) -> VoiceSessionInfo:
    return VoiceSessionInfo(
        user_id=row.user_id,
        guild_id=row.guild_id,
        channel_id=row.channel_id,
        join_time=row.join_time,
        last_xp_time=row.last_xp_time,
        is_muted=row.is_muted,
        is_deafened=row.is_deafened,
    )


def start_session(
    engine: Engine,
    user_id: int,
    guild_id: int,
    channel_id: int,
    *,
    is_muted: bool = False,
    is_deafened: bool = False,
    now: datetime | None = None,
) -> None:
    """Open (or replace) the member's session in *channel_id*."""
    now = now or datetime.now(UTC)
    with get_session(engine) as session:
        session.merge(VoiceSession(
            user_id=user_id,
            guild_id=guild_id,
            channel_id=channel_id,
            join_time=now,
            last_xp_time=None,
            is_muted=is_muted,
            is_deafened=is_deafened,
        ))
    logger.debug("Voice session started: user %s in channel %s", user_id, channel_id)


def end_session(engine: Engine, user_id: int, guild_id: int) -> bool:
    with get_session(engine) as session:
        result = session.execute(
            delete(VoiceSession).where(
                VoiceSession.user_id == user_id, VoiceSession.guild_id == guild_id,
            )
        )
        return result.rowcount > 0


def move_session(
    engine: Engine,
    user_id: int,
    guild_id: int,
    channel_id: int,
    *,
    is_muted: bool = False,
    is_deafened: bool = False,
    now: datetime | None = None,
) -> None:
    """Switch channels, keeping the original join time (opens a session if missing)."""
    with get_session(engine) as session:
        row = session.get(VoiceSession, (user_id, guild_id))
        if row is None:
            session.add(VoiceSession(
                user_id=user_id,
                guild_id=guild_id,
                channel_id=channel_id,
                join_time=now or datetime.now(UTC),
                is_muted=is_muted,
                is_deafened=is_deafened,
            ))
            return
        row.channel_id = channel_id
        row.is_muted = is_muted
        row.is_deafened = is_deafened


def update_state(
    engine: Engine, user_id: int, guild_id: int, *, is_muted: bool, is_deafened: bool,
) -> bool:
    with get_session(engine) as session:
        result = session.execute(
            update(VoiceSession)
            .where(VoiceSession.user_id == user_id, VoiceSession.guild_id == guild_id)
            .values(is_muted=is_muted, is_deafened=is_deafened)
        )
        return result.rowcount > 0


def mark_awarded(
    engine: Engine, user_id: int, guild_id: int, now: datetime | None = None,
) -> None:
    with get_session(engine) as session:
        session.execute(
            update(VoiceSession)
            .where(VoiceSession.user_id == user_id, VoiceSession.guild_id == guild_id)
            .values(last_xp_time=now or datetime.now(UTC))
        )


def get_voice_session(engine: Engine, user_id: int, guild_id: int) -> VoiceSessionInfo | None:
    with get_session(engine) as session:
        row = session.get(VoiceSession, (user_id, guild_id))
        return _info(row) if row is not None else None


def list_sessions(engine: Engine, guild_id: int | None = None) -> list[VoiceSessionInfo]:
    stmt = select(VoiceSession).order_by(VoiceSession.guild_id, VoiceSession.join_time)
    if guild_id is not None:
        stmt = stmt.where(VoiceSession.guild_id == guild_id)
    with get_session(engine) as session:
        return [_info(row) for row in session.scalars(stmt)]


def sync_guild_sessions(
    engine: Engine,
    guild_id: int,
    present: dict[int, tuple[int, bool, bool]],
    now: datetime | None = None,
) -> tuple[int, int]:
    """Reconcile stored sessions with who is actually in voice right now.

    *present* maps ``user_id → (channel_id, is_muted, is_deafened)``.  Missing
    sessions are opened, stale ones removed, moved members updated.
    Returns ``(opened, removed)``.
    """
    now = now or datetime.now(UTC)
    opened = removed = 0
    with get_session(engine) as session:
        rows = {
            row.user_id: row
            for row in session.scalars(
                select(VoiceSession).where(VoiceSession.guild_id == guild_id)
            )
        }
        for user_id, row in rows.items():
            if user_id not in present:
                session.delete(row)
                removed += 1
        for user_id, (channel_id, muted, deafened) in present.items():
            row = rows.get(user_id)
            if row is None:
                session.add(VoiceSession(
                    user_id=user_id,
                    guild_id=guild_id,
                    channel_id=channel_id,
                    join_time=now,
                    is_muted=muted,
                    is_deafened=deafened,
                ))
                opened += 1
            else:
                row.channel_id = channel_id
                row.is_muted = muted
                row.is_deafened = deafened
    if opened or removed:
        logger.info(
            "Voice sessions synced for guild %s: %d opened, %d removed",
            guild_id, opened, removed,
        )
    return opened, removed
