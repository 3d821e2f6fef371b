"""
ensign.services.xp_service — Inbound XP Entry Points
=====================================================

The async surface the cogs call.  Each handler receives only plain data
(user ID, guild ID, the member's role IDs) and returns an
:class:`~ensign.engine.results.XPEventResult`; no Discord object ever
reaches the core.

Order of checks for activity events:

1. voice only: channel occupancy against ``voice.min_members``,
2. cooldown (synchronous, in-memory, marks the key on admission),
3. daily cap via :meth:`DailyCapLedger.can_gain_xp` (awaited storage read),
4. roll the per-source amount (voice: AFK penalty applied) and award it
   through the coordinator.

Cooldown and cap outcomes are results.  Storage failures propagate; the
cog logs and drops the event.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime

from ensign.config import EnsignConfig
from ensign.database.engine import run_db
from ensign.database.models import XPSource
from ensign.engine.cooldown import CooldownGate, cooldown_key
from ensign.engine.results import AwardOutcome, DailyCapSnapshot, XPEventResult
from ensign.engine.rewards import apply_afk_penalty, roll_base_xp
from ensign.errors import InvalidInput
from ensign.services import accounts
from ensign.services.award import XPAwardCoordinator
from ensign.services.ledger import DailyCapLedger

logger = logging.getLogger(__name__)


class XPService:
    """Glue between gateway adapters and the XP accounting core."""

    def __init__(
        self,
        cfg: EnsignConfig,
        ledger: DailyCapLedger,
        coordinator: XPAwardCoordinator,
        cooldowns: CooldownGate | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.cfg = cfg
        self.ledger = ledger
        self.coordinator = coordinator
        self.cooldowns = cooldowns or CooldownGate()
        self.rng = rng or random.Random()

    # -------------------------------------------------------------------
    # Activity events
    # -------------------------------------------------------------------
    async def on_message_event(
        self, user_id: int, guild_id: int, role_ids: Iterable[int],
        now: datetime | None = None,
    ) -> XPEventResult:
        return await self._handle_activity(XPSource.MESSAGE, user_id, guild_id, role_ids, now)

    async def on_reaction_event(
        self, user_id: int, guild_id: int, role_ids: Iterable[int],
        now: datetime | None = None,
    ) -> XPEventResult:
        return await self._handle_activity(XPSource.REACTION, user_id, guild_id, role_ids, now)

    async def on_voice_presence_tick(
        self,
        user_id: int,
        guild_id: int,
        role_ids: Iterable[int],
        channel_occupancy: int,
        is_suppressed: bool,
        now: datetime | None = None,
    ) -> XPEventResult:
        """Called once per tracked voice session per tick.

        *channel_occupancy* counts human members in the session's channel.
        """
        if channel_occupancy < self.cfg.voice.min_members:
            logger.debug(
                "Voice tick for user %s skipped: %d/%d members",
                user_id, channel_occupancy, self.cfg.voice.min_members,
            )
            return XPEventResult(outcome=AwardOutcome.INSUFFICIENT_MEMBERS)

        roles = frozenset(role_ids)
        return await self._handle_activity(
            XPSource.VOICE, user_id, guild_id, roles, now,
            adjust=lambda amount: apply_afk_penalty(
                amount,
                user_id=user_id,
                role_ids=roles,
                is_suppressed=is_suppressed,
                voice=self.cfg.voice,
            ),
        )

    async def _handle_activity(
        self,
        source: XPSource,
        user_id: int,
        guild_id: int,
        role_ids: Iterable[int],
        now: datetime | None,
        adjust=None,
    ) -> XPEventResult:
        roles = frozenset(role_ids)
        source_cfg = self.cfg.source(source.value)

        # Gate 1: cooldown, before any storage round-trip
        key = cooldown_key(guild_id, user_id, source)
        stamp = now.timestamp() if now is not None else time.time()
        if not self.cooldowns.try_acquire(key, source_cfg.cooldown_seconds, now=stamp):
            logger.debug("Cooldown active for user %s (%s)", user_id, source.value)
            return XPEventResult(outcome=AwardOutcome.COOLDOWN)

        # Gate 2: daily cap
        check = await run_db(self.ledger.can_gain_xp, user_id, guild_id, roles, now)
        if not check.allowed:
            return XPEventResult(
                outcome=AwardOutcome.CAP_REACHED,
                daily=DailyCapSnapshot.build(
                    used=check.current_xp, cap=check.daily_cap, tier=check.tier,
                ),
            )

        amount = roll_base_xp(source_cfg, self.rng)
        if adjust is not None:
            amount = adjust(amount)

        result = await run_db(
            self.coordinator.award, user_id, guild_id, amount, source, roles, now,
        )
        return XPEventResult.from_award(result)

    # -------------------------------------------------------------------
    # Admin operations (no cooldown, no daily cap)
    # -------------------------------------------------------------------
    async def on_admin_adjust(
        self, user_id: int, guild_id: int, delta: int, reason: str = "",
        now: datetime | None = None,
    ) -> XPEventResult:
        """Add (positive) or remove (negative) lifetime XP directly."""
        if delta == 0:
            raise InvalidInput("adjustment must be non-zero")
        result = await run_db(self.coordinator.adjust, user_id, guild_id, delta)
        daily = await run_db(self.ledger.snapshot, user_id, guild_id, now)
        logger.info(
            "Admin adjustment of %+d XP for user %s in guild %s (%s) → total %d",
            delta, user_id, guild_id, reason or "no reason", result.total_xp,
        )
        event = XPEventResult.from_award(result, AwardOutcome.ADMIN_ADJUSTED)
        return replace(event, daily=daily)

    async def on_admin_set(
        self, user_id: int, guild_id: int, total_xp: int, reason: str = "",
        now: datetime | None = None,
    ) -> XPEventResult:
        result = await run_db(self.coordinator.set_total, user_id, guild_id, total_xp)
        daily = await run_db(self.ledger.snapshot, user_id, guild_id, now)
        logger.info(
            "Admin set user %s in guild %s to %d XP (%s)",
            user_id, guild_id, total_xp, reason or "no reason",
        )
        event = XPEventResult.from_award(result, AwardOutcome.ADMIN_ADJUSTED)
        return replace(event, daily=daily)

    async def on_admin_reset(self, user_id: int, guild_id: int) -> bool:
        """Delete the member's lifetime account.  Returns True if one existed."""
        existed = await run_db(accounts.reset_account, self.ledger.engine, user_id, guild_id)
        logger.info("Admin reset of user %s in guild %s (existed=%s)", user_id, guild_id, existed)
        return existed

    async def on_daily_reset_requested(self, now: datetime | None = None) -> int:
        """Idempotent within an effective day: the second call removes nothing."""
        return await run_db(self.ledger.reset_daily, now)

    # -------------------------------------------------------------------
    # Housekeeping
    # -------------------------------------------------------------------
    def prune_cooldowns(self, now: float | None = None) -> int:
        longest = max(s.cooldown_seconds for s in self.cfg.sources.values())
        return self.cooldowns.prune(longest, now=now)
