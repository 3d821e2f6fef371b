"""
ensign.bot.cogs.tasks — Periodic Background Tasks
==================================================

Scheduled jobs that run on ``discord.ext.tasks`` loops:

- **Daily reset** — sleeps until the next effective-day boundary computed
  by :class:`~ensign.engine.clock.ResetClock` (the same clock the ledger
  uses), then clears rows from earlier days.  Recomputed every iteration,
  so DST transitions and downtime need no special handling.
- **Retention cleanup** — at startup and every 24 hours, removes daily rows
  older than ``daily_cap.retention_days``.
- **Cooldown pruning** — every 5 minutes, drops expired cooldown entries.

They run via ``run_db()`` to avoid blocking the event loop.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import discord
from discord.ext import commands, tasks

from ensign.database.engine import run_db

if TYPE_CHECKING:
    from ensign.bot.core import EnsignBot

logger = logging.getLogger(__name__)


class PeriodicTasks(commands.Cog):
    """Cog for scheduled background maintenance tasks."""

    def __init__(self, bot: EnsignBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        """Start task loops when the cog is loaded."""
        self.daily_reset_loop.start()
        self.retention_loop.start()
        self.cooldown_prune_loop.start()

    async def cog_unload(self) -> None:
        """Cancel task loops on unload."""
        self.daily_reset_loop.cancel()
        self.retention_loop.cancel()
        self.cooldown_prune_loop.cancel()

    # -------------------------------------------------------------------
    # Daily reset — once per effective-day boundary
    # -------------------------------------------------------------------
    @tasks.loop()
    async def daily_reset_loop(self):
        """Sleep until the next reset boundary, then run the reset."""
        when = self.bot.clock.next_reset_at(datetime.now(UTC))
        logger.info("Next daily reset scheduled for %s", when.isoformat())
        await discord.utils.sleep_until(when)

        try:
            removed = await self.bot.xp.on_daily_reset_requested()
            logger.info("Scheduled daily reset complete: %d row(s) removed", removed)
        except Exception:
            logger.exception("Daily reset failed", extra={"task": "daily_reset"})

    @daily_reset_loop.before_loop
    async def _wait_daily_reset(self):
        await self.bot.wait_until_ready()

    # -------------------------------------------------------------------
    # Retention cleanup — runs at startup, then every 24 hours
    # -------------------------------------------------------------------
    @tasks.loop(hours=24)
    async def retention_loop(self):
        """Delete daily rows older than the configured retention window."""
        try:
            removed = await run_db(
                self.bot.ledger.cleanup_old_records,
                self.bot.cfg.daily_cap.retention_days,
            )
            logger.info("Retention task complete: %d daily row(s) deleted", removed)
        except Exception:
            logger.exception("Retention task failed", extra={"task": "retention"})

    @retention_loop.before_loop
    async def _wait_retention(self):
        await self.bot.wait_until_ready()

    # -------------------------------------------------------------------
    # Cooldown pruning — every 5 minutes
    # -------------------------------------------------------------------
    @tasks.loop(minutes=5)
    async def cooldown_prune_loop(self):
        """Prune expired entries from the in-memory cooldown map."""
        self.bot.xp.prune_cooldowns()


async def setup(bot: EnsignBot) -> None:
    await bot.add_cog(PeriodicTasks(bot))
