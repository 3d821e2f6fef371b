"""
ensign.services.accounts — Lifetime XP Accounts
================================================

Persistence for ``user_levels``.  Every change to ``total_xp`` is a single
``INSERT … ON CONFLICT … DO UPDATE … RETURNING`` statement, so two awards
for the same member landing at once can never lose an update.  Level
writes are guarded by the total they were computed from: if another award
moved the total in between, the stale level is simply not written (that
other award writes its own).

All functions are synchronous; call them through ``run_db``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import Engine, delete, func, select, text

from ensign.database.engine import get_session
from ensign.database.models import UserLevel, XPSource
from ensign.errors import InvalidInput

logger = logging.getLogger(__name__)

# Source → activity counter column; admin changes touch no counter
_COUNTER_COLUMNS: dict[XPSource, str] = {
    XPSource.MESSAGE: "messages",
    XPSource.REACTION: "reactions",
    XPSource.VOICE: "voice_minutes",
}


@dataclass(frozen=True, slots=True)
class AccountTotals:
    """``total_xp`` after a write, with the level stored at that moment."""

    total_xp: int
    stored_level: int


@dataclass(frozen=True, slots=True)
class RankEntry:
    rank: int
    user_id: int
    total_xp: int
    level: int


def _counter_values(source: XPSource) -> dict[str, int]:
    column = _COUNTER_COLUMNS.get(source)
    return {col: int(col == column) for col in _COUNTER_COLUMNS.values()}


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_account(engine: Engine, user_id: int, guild_id: int) -> UserLevel | None:
    """Return a detached :class:`UserLevel`, or ``None`` if the member has no XP yet."""
    with get_session(engine) as session:
        account = session.get(UserLevel, (user_id, guild_id))
        if account is not None:
            session.expunge(account)
        return account


def get_rank(engine: Engine, user_id: int, guild_id: int) -> int | None:
    """1-based leaderboard position, or ``None`` if the member has no account."""
    with get_session(engine) as session:
        total = session.scalar(
            select(UserLevel.total_xp).where(
                UserLevel.user_id == user_id, UserLevel.guild_id == guild_id,
            )
        )
        if total is None:
            return None
        ahead = session.scalar(
            select(func.count()).select_from(UserLevel).where(
                UserLevel.guild_id == guild_id, UserLevel.total_xp > total,
            )
        )
        return int(ahead or 0) + 1


def get_leaderboard(
    engine: Engine, guild_id: int, limit: int = 10, offset: int = 0,
) -> list[RankEntry]:
    with get_session(engine) as session:
        rows = session.execute(
            select(UserLevel.user_id, UserLevel.total_xp, UserLevel.level)
            .where(UserLevel.guild_id == guild_id)
            .order_by(UserLevel.total_xp.desc(), UserLevel.user_id)
            .limit(limit)
            .offset(offset)
        ).all()
    return [
        RankEntry(rank=offset + i + 1, user_id=r.user_id, total_xp=r.total_xp, level=r.level)
        for i, r in enumerate(rows)
    ]


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------
def apply_award(
    engine: Engine, user_id: int, guild_id: int, amount: int, source: XPSource,
) -> AccountTotals:
    """Add *amount* to the member's lifetime total and bump the source counter by one.

    Creates the account on first XP.  Returns the new total together with
    the level currently stored (not yet recomputed).
    """
    if amount < 0:
        raise InvalidInput(f"award amount must not be negative, got {amount}")
    counters = _counter_values(XPSource(source))

    with get_session(engine) as session:
        row = session.execute(
            text("""
                INSERT INTO user_levels
                    (user_id, guild_id, total_xp, level,
                     messages, reactions, voice_minutes, last_xp_at)
                VALUES (:user_id, :guild_id, :amount, 0,
                        :messages, :reactions, :voice_minutes, CURRENT_TIMESTAMP)
                ON CONFLICT (user_id, guild_id) DO UPDATE SET
                    total_xp = user_levels.total_xp + :amount,
                    messages = user_levels.messages + :messages,
                    reactions = user_levels.reactions + :reactions,
                    voice_minutes = user_levels.voice_minutes + :voice_minutes,
                    last_xp_at = CURRENT_TIMESTAMP,
                    updated_at = CURRENT_TIMESTAMP
                RETURNING total_xp, level
            """),
            {"user_id": user_id, "guild_id": guild_id, "amount": amount, **counters},
        ).one()
    return AccountTotals(total_xp=row.total_xp, stored_level=row.level)


def adjust_xp(engine: Engine, user_id: int, guild_id: int, delta: int) -> AccountTotals:
    """Add a signed *delta* to the lifetime total, clamping at zero.

    Used by admin adjustments only; activity counters are untouched.
    """
    with get_session(engine) as session:
        row = session.execute(
            text("""
                INSERT INTO user_levels
                    (user_id, guild_id, total_xp, level, messages, reactions, voice_minutes)
                VALUES (:user_id, :guild_id, :initial, 0, 0, 0, 0)
                ON CONFLICT (user_id, guild_id) DO UPDATE SET
                    total_xp = CASE
                        WHEN user_levels.total_xp + :delta < 0 THEN 0
                        ELSE user_levels.total_xp + :delta
                    END,
                    updated_at = CURRENT_TIMESTAMP
                RETURNING total_xp, level
            """),
            {
                "user_id": user_id,
                "guild_id": guild_id,
                "delta": delta,
                "initial": max(delta, 0),
            },
        ).one()
    return AccountTotals(total_xp=row.total_xp, stored_level=row.level)


def set_xp(engine: Engine, user_id: int, guild_id: int, total_xp: int) -> AccountTotals:
    """Overwrite the lifetime total with an exact value."""
    if total_xp < 0:
        raise InvalidInput(f"total XP must not be negative, got {total_xp}")
    with get_session(engine) as session:
        row = session.execute(
            text("""
                INSERT INTO user_levels
                    (user_id, guild_id, total_xp, level, messages, reactions, voice_minutes)
                VALUES (:user_id, :guild_id, :total_xp, 0, 0, 0, 0)
                ON CONFLICT (user_id, guild_id) DO UPDATE SET
                    total_xp = :total_xp,
                    updated_at = CURRENT_TIMESTAMP
                RETURNING total_xp, level
            """),
            {"user_id": user_id, "guild_id": guild_id, "total_xp": total_xp},
        ).one()
    return AccountTotals(total_xp=row.total_xp, stored_level=row.level)


def store_level(
    engine: Engine, user_id: int, guild_id: int, level: int, expected_total: int,
) -> bool:
    """Persist *level* only if ``total_xp`` still equals *expected_total*.

    Returns True when the level was written.
    """
    with get_session(engine) as session:
        result = session.execute(
            text("""
                UPDATE user_levels
                SET level = :level
                WHERE user_id = :user_id
                  AND guild_id = :guild_id
                  AND total_xp = :expected_total
            """),
            {
                "level": level,
                "user_id": user_id,
                "guild_id": guild_id,
                "expected_total": expected_total,
            },
        )
        written = result.rowcount > 0
    if not written:
        logger.debug(
            "Level write for user %s in guild %s skipped: total moved past %d",
            user_id, guild_id, expected_total,
        )
    return written


def reset_account(engine: Engine, user_id: int, guild_id: int) -> bool:
    """Delete the member's account.  Returns True if a row existed."""
    with get_session(engine) as session:
        result = session.execute(
            delete(UserLevel).where(
                UserLevel.user_id == user_id, UserLevel.guild_id == guild_id,
            )
        )
        return result.rowcount > 0
