"""
ensign.services.ledger — Daily Cap Ledger
==========================================

Per (user, guild, effective day) XP accounting.  One ``daily_xp`` row holds
the day's running totals split by source, the cap in effect, and the tier
that cap came from.

Contract:

* :meth:`DailyCapLedger.can_gain_xp` answers "may this member gain more XP
  today?".  It never creates a row.  If the member's tier changed since the
  row was written, the stored cap/tier are reconciled in place.
* :meth:`DailyCapLedger.add_xp` is an unconditional atomic add.  It does
  **not** clip at the cap; the caller gates admission with ``can_gain_xp``
  first, so at most one award can cross the cap per day.
* :meth:`DailyCapLedger.reset_daily` removes every row from before the
  current effective day, so it is idempotent and survives multi-day
  downtime.  :meth:`DailyCapLedger.cleanup_old_records` is pure retention.

Role data is always supplied by the caller; the ledger never looks
members up.  All methods are synchronous; call them through ``run_db``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Engine, delete, func, select, text, update

from ensign.database.engine import get_session
from ensign.database.models import CAPPED_SOURCES, DailyXP, XPSource
from ensign.engine.clock import ResetClock
from ensign.engine.results import CapCheck, DailyCapSnapshot
from ensign.engine.tiers import TierResolution, TierResolver
from ensign.errors import InvalidInput

logger = logging.getLogger(__name__)

_SOURCE_COLUMNS: dict[XPSource, str] = {
    XPSource.MESSAGE: "message_xp",
    XPSource.REACTION: "reaction_xp",
    XPSource.VOICE: "voice_xp",
}


@dataclass(frozen=True, slots=True)
class DailyStats:
    """One member's breakdown for one effective day."""

    effective_date: str
    total_xp: int
    message_xp: int
    reaction_xp: int
    voice_xp: int
    daily_cap: int
    remaining: int
    percentage: float
    tier: int
    tier_role_id: int | None

    @property
    def is_at_cap(self) -> bool:
        return self.total_xp >= self.daily_cap


@dataclass(frozen=True, slots=True)
class GuildDailyStats:
    """Guild-wide totals for one effective day."""

    effective_date: str
    active_users: int
    total_xp: int
    message_xp: int
    reaction_xp: int
    voice_xp: int
    average_xp: float
    highest_xp: int
    users_at_cap: int
    next_reset_at: datetime


@dataclass(frozen=True, slots=True)
class DailyStanding:
    """One row of the daily leaderboard."""

    rank: int
    user_id: int
    total_xp: int
    daily_cap: int
    tier: int

    @property
    def is_at_cap(self) -> bool:
        return self.total_xp >= self.daily_cap

    @property
    def percentage(self) -> float:
        if self.daily_cap <= 0:
            return 100.0
        return round(min(100.0, self.total_xp / self.daily_cap * 100), 2)


def _validate_source(source: XPSource | str) -> XPSource:
    try:
        parsed = XPSource(source)
    except ValueError as exc:
        raise InvalidInput(f"unknown XP source: {source!r}") from exc
    if parsed not in CAPPED_SOURCES:
        raise InvalidInput(f"source {parsed.value!r} does not count towards the daily cap")
    return parsed


class DailyCapLedger:
    """Gate and record per-day XP for every guild this process serves."""

    def __init__(self, engine: Engine, resolver: TierResolver, clock: ResetClock) -> None:
        self.engine = engine
        self.resolver = resolver
        self.clock = clock

    @property
    def base_cap(self) -> int:
        return self.resolver.base_cap

    def current_day(self, now: datetime | None = None) -> str:
        return self.clock.effective_day_key(now)

    def next_reset_at(self, now: datetime | None = None) -> datetime:
        return self.clock.next_reset_at(now)

    # -------------------------------------------------------------------
    # Tier / cap
    # -------------------------------------------------------------------
    def tier_for(self, role_ids: Iterable[int]) -> TierResolution:
        """Pure tier lookup, no storage."""
        return self.resolver.resolve(role_ids)

    def resolve_cap(
        self,
        user_id: int,
        guild_id: int,
        role_ids: Iterable[int],
        now: datetime | None = None,
    ) -> TierResolution:
        """Resolve the member's tier and write it through to today's row.

        Creates a zero row if the member has not earned anything today, so
        later cap comparisons see the up-to-date tier.
        """
        tier = self.resolver.resolve(role_ids)
        day = self.current_day(now)
        with get_session(self.engine) as session:
            session.execute(
                text("""
                    INSERT INTO daily_xp
                        (user_id, guild_id, effective_date, total_xp, message_xp,
                         voice_xp, reaction_xp, daily_cap, tier_level, tier_role_id)
                    VALUES (:user_id, :guild_id, :day, 0, 0, 0, 0,
                            :cap, :tier, :role_id)
                    ON CONFLICT (user_id, guild_id, effective_date) DO UPDATE SET
                        daily_cap = :cap,
                        tier_level = :tier,
                        tier_role_id = :role_id,
                        updated_at = CURRENT_TIMESTAMP
                """),
                {
                    "user_id": user_id,
                    "guild_id": guild_id,
                    "day": day,
                    "cap": tier.cap,
                    "tier": tier.tier,
                    "role_id": tier.role_id,
                },
            )
        return tier

    def can_gain_xp(
        self,
        user_id: int,
        guild_id: int,
        role_ids: Iterable[int],
        now: datetime | None = None,
    ) -> CapCheck:
        """Report whether the member is still below today's cap.

        Absent rows count as zero and are not created.  A stored row whose
        tier differs from the freshly resolved one is updated in place.
        """
        tier = self.resolver.resolve(role_ids)
        day = self.current_day(now)

        with get_session(self.engine) as session:
            row = session.get(DailyXP, (user_id, guild_id, day))
            if row is None:
                current = 0
            else:
                current = row.total_xp
                if row.tier_level != tier.tier or row.daily_cap != tier.cap:
                    logger.info(
                        "Tier change for user %s in guild %s: tier %d → %d (cap %d → %d)",
                        user_id, guild_id, row.tier_level, tier.tier, row.daily_cap, tier.cap,
                    )
                    session.execute(
                        update(DailyXP)
                        .where(
                            DailyXP.user_id == user_id,
                            DailyXP.guild_id == guild_id,
                            DailyXP.effective_date == day,
                        )
                        .values(
                            daily_cap=tier.cap,
                            tier_level=tier.tier,
                            tier_role_id=tier.role_id,
                        )
                    )

        allowed = current < tier.cap
        if not allowed:
            logger.debug(
                "Daily cap reached for user %s in guild %s (%d/%d)",
                user_id, guild_id, current, tier.cap,
            )
        return CapCheck(
            allowed=allowed,
            current_xp=current,
            daily_cap=tier.cap,
            remaining=max(tier.cap - current, 0),
            tier=tier.tier,
            tier_role_id=tier.role_id,
        )

    # -------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------
    def add_xp(
        self,
        user_id: int,
        guild_id: int,
        amount: int,
        source: XPSource | str,
        role_ids: Iterable[int],
        now: datetime | None = None,
    ) -> int:
        """Atomically add *amount* to today's row.  Returns the new daily total.

        Non-clipping: the row may end above the cap by at most the one award
        that crossed it.

        Raises
        ------
        InvalidInput
            If *amount* is negative or *source* is not a capped XP source.
        """
        if amount < 0:
            raise InvalidInput(f"daily XP amount must not be negative, got {amount}")
        parsed = _validate_source(source)
        tier = self.resolver.resolve(role_ids)
        day = self.current_day(now)

        per_source = {
            col: (amount if col == _SOURCE_COLUMNS[parsed] else 0)
            for col in _SOURCE_COLUMNS.values()
        }
        with get_session(self.engine) as session:
            new_total = session.execute(
                text("""
                    INSERT INTO daily_xp
                        (user_id, guild_id, effective_date, total_xp, message_xp,
                         voice_xp, reaction_xp, daily_cap, tier_level, tier_role_id)
                    VALUES (:user_id, :guild_id, :day, :amount, :message_xp,
                            :voice_xp, :reaction_xp, :cap, :tier, :role_id)
                    ON CONFLICT (user_id, guild_id, effective_date) DO UPDATE SET
                        total_xp = daily_xp.total_xp + :amount,
                        message_xp = daily_xp.message_xp + :message_xp,
                        voice_xp = daily_xp.voice_xp + :voice_xp,
                        reaction_xp = daily_xp.reaction_xp + :reaction_xp,
                        daily_cap = :cap,
                        tier_level = :tier,
                        tier_role_id = :role_id,
                        updated_at = CURRENT_TIMESTAMP
                    RETURNING total_xp
                """),
                {
                    "user_id": user_id,
                    "guild_id": guild_id,
                    "day": day,
                    "amount": amount,
                    "cap": tier.cap,
                    "tier": tier.tier,
                    "role_id": tier.role_id,
                    **per_source,
                },
            ).scalar_one()

        logger.debug(
            "Daily XP for user %s in guild %s on %s: +%d %s → %d/%d",
            user_id, guild_id, day, amount, parsed.value, new_total, tier.cap,
        )
        return int(new_total)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def snapshot(
        self, user_id: int, guild_id: int, now: datetime | None = None,
    ) -> DailyCapSnapshot:
        """Today's used/cap/tier from the stored row alone (base cap if none)."""
        day = self.current_day(now)
        with get_session(self.engine) as session:
            row = session.get(DailyXP, (user_id, guild_id, day))
            if row is None:
                return DailyCapSnapshot.build(used=0, cap=self.base_cap, tier=0)
            return DailyCapSnapshot.build(
                used=row.total_xp, cap=row.daily_cap, tier=row.tier_level,
            )

    def get_daily_stats(
        self,
        user_id: int,
        guild_id: int,
        role_ids: Iterable[int] | None = None,
        now: datetime | None = None,
    ) -> DailyStats:
        """Per-source breakdown of the member's current effective day.

        With *role_ids* the cap reflects the member's current tier;
        without, the stored cap (or the base cap) is reported.
        """
        day = self.current_day(now)
        with get_session(self.engine) as session:
            row = session.get(DailyXP, (user_id, guild_id, day))
            values = (
                (row.total_xp, row.message_xp, row.reaction_xp, row.voice_xp,
                 row.daily_cap, row.tier_level, row.tier_role_id)
                if row is not None
                else (0, 0, 0, 0, self.base_cap, 0, None)
            )
        total, msg, react, voice, cap, tier, tier_role = values

        if role_ids is not None:
            resolved = self.resolver.resolve(role_ids)
            cap, tier, tier_role = resolved.cap, resolved.tier, resolved.role_id

        pct = round(min(100.0, total / cap * 100), 2) if cap > 0 else 100.0
        return DailyStats(
            effective_date=day,
            total_xp=total,
            message_xp=msg,
            reaction_xp=react,
            voice_xp=voice,
            daily_cap=cap,
            remaining=max(cap - total, 0),
            percentage=pct,
            tier=tier,
            tier_role_id=tier_role,
        )

    def get_guild_daily_stats(
        self, guild_id: int, now: datetime | None = None,
    ) -> GuildDailyStats:
        day = self.current_day(now)
        with get_session(self.engine) as session:
            row = session.execute(
                select(
                    func.count().label("active_users"),
                    func.coalesce(func.sum(DailyXP.total_xp), 0).label("total_xp"),
                    func.coalesce(func.sum(DailyXP.message_xp), 0).label("message_xp"),
                    func.coalesce(func.sum(DailyXP.reaction_xp), 0).label("reaction_xp"),
                    func.coalesce(func.sum(DailyXP.voice_xp), 0).label("voice_xp"),
                    func.coalesce(func.max(DailyXP.total_xp), 0).label("highest_xp"),
                ).where(
                    DailyXP.guild_id == guild_id,
                    DailyXP.effective_date == day,
                    DailyXP.total_xp > 0,
                )
            ).one()
            at_cap = session.scalar(
                select(func.count()).select_from(DailyXP).where(
                    DailyXP.guild_id == guild_id,
                    DailyXP.effective_date == day,
                    DailyXP.total_xp >= DailyXP.daily_cap,
                )
            )

        active = int(row.active_users)
        total = int(row.total_xp)
        return GuildDailyStats(
            effective_date=day,
            active_users=active,
            total_xp=total,
            message_xp=int(row.message_xp),
            reaction_xp=int(row.reaction_xp),
            voice_xp=int(row.voice_xp),
            average_xp=round(total / active, 2) if active else 0.0,
            highest_xp=int(row.highest_xp),
            users_at_cap=int(at_cap or 0),
            next_reset_at=self.clock.next_reset_at(now),
        )

    def get_daily_leaderboard(
        self, guild_id: int, limit: int = 10, now: datetime | None = None,
    ) -> list[DailyStanding]:
        """Top *limit* members by XP earned in the current effective day."""
        day = self.current_day(now)
        with get_session(self.engine) as session:
            rows = session.execute(
                select(DailyXP.user_id, DailyXP.total_xp, DailyXP.daily_cap, DailyXP.tier_level)
                .where(
                    DailyXP.guild_id == guild_id,
                    DailyXP.effective_date == day,
                    DailyXP.total_xp > 0,
                )
                .order_by(DailyXP.total_xp.desc(), DailyXP.user_id)
                .limit(limit)
            ).all()
        return [
            DailyStanding(
                rank=i,
                user_id=row.user_id,
                total_xp=row.total_xp,
                daily_cap=row.daily_cap,
                tier=row.tier_level,
            )
            for i, row in enumerate(rows, start=1)
        ]

    # -------------------------------------------------------------------
    # Housekeeping
    # -------------------------------------------------------------------
    def reset_daily(self, now: datetime | None = None) -> int:
        """Delete every row from before the current effective day.

        Safe to run any number of times; returns the number of rows removed.
        """
        day = self.current_day(now)
        with get_session(self.engine) as session:
            result = session.execute(
                delete(DailyXP).where(DailyXP.effective_date < day)
            )
            removed = result.rowcount or 0
        logger.info("Daily reset for %s: removed %d stale row(s)", day, removed)
        return removed

    def cleanup_old_records(self, retention_days: int, now: datetime | None = None) -> int:
        """Delete rows older than *retention_days* effective days."""
        if retention_days < 1:
            raise InvalidInput("retention_days must be at least 1")
        cutoff = self.clock.day_key_before(retention_days, now)
        with get_session(self.engine) as session:
            result = session.execute(
                delete(DailyXP).where(DailyXP.effective_date < cutoff)
            )
            removed = result.rowcount or 0
        if removed:
            logger.info("Retention: removed %d daily row(s) older than %s", removed, cutoff)
        return removed
