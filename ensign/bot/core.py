"""
ensign.bot.core — Bot Instance & Cog Loader
============================================

Defines :class:`EnsignBot`, a ``commands.Bot`` subclass that:

1. Holds the frozen config (``bot.cfg``) and DB engine (``bot.engine``).
2. Builds the XP core once: level curve, reset clock, tier resolver,
   daily ledger, award coordinator, cooldown gate, and the
   :class:`~ensign.services.xp_service.XPService` the cogs call.
3. Loads every cog in ``EXTENSIONS``.
4. Syncs the slash-command tree on startup (guild-scoped for dev, global
   for production, controlled by ``DEV_GUILD_ID``).
"""

from __future__ import annotations

import logging
import os

import discord
from discord.ext import commands
from sqlalchemy import Engine

from ensign.config import EnsignConfig
from ensign.engine.cooldown import CooldownGate
from ensign.engine.curve import LevelCurve
from ensign.engine.tiers import TierResolver
from ensign.services.award import XPAwardCoordinator
from ensign.services.ledger import DailyCapLedger
from ensign.services.xp_service import XPService

logger = logging.getLogger(__name__)

# Cog modules to load on startup
EXTENSIONS: list[str] = [
    "ensign.bot.cogs.messages",
    "ensign.bot.cogs.reactions",
    "ensign.bot.cogs.voice",
    "ensign.bot.cogs.meta",
    "ensign.bot.cogs.admin",
    "ensign.bot.cogs.tasks",
]


class EnsignBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`EnsignConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine` connected to PostgreSQL.
    """

    def __init__(self, cfg: EnsignConfig, engine: Engine) -> None:
        intents = discord.Intents.default()
        intents.members = True            # Privileged: role sets for tier resolution
        intents.voice_states = True
        intents.message_content = False   # XP never depends on message text
        intents.presences = False

        super().__init__(command_prefix=cfg.bot_prefix, intents=intents)

        self.cfg = cfg
        self.engine = engine

        # --- XP core ---------------------------------------------------------
        self.curve = LevelCurve.from_config(cfg.curve)
        self.clock = cfg.daily_cap.clock()
        self.ledger = DailyCapLedger(
            engine,
            TierResolver(cfg.daily_cap.tiers, cfg.daily_cap.base_cap),
            self.clock,
        )
        self.coordinator = XPAwardCoordinator(
            engine, self.ledger, self.curve, xp_multiplier=cfg.xp_multiplier,
        )
        self.cooldowns = CooldownGate()
        self.xp = XPService(cfg, self.ledger, self.coordinator, self.cooldowns)

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load all cog extensions before connecting.

        One broken cog is logged and skipped rather than taking the bot down.
        """
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the cache is populated."""
        assert self.user is not None  # guaranteed after on_ready
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)
        logger.info(
            "Level curve %s; daily cap %d with %d tier(s); next reset %s",
            self.curve, self.cfg.daily_cap.base_cap, len(self.cfg.daily_cap.tiers),
            self.clock.next_reset_at().isoformat(),
        )
        for issue in self.cfg.issues:
            logger.warning("Config issue: %s", issue)

        dev_guild_id = os.getenv("DEV_GUILD_ID")
        if dev_guild_id:
            guild = discord.Object(id=int(dev_guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
        else:
            synced = await self.tree.sync()
            logger.info("Synced %d commands globally", len(synced))

    async def close(self) -> None:
        logger.info("Bot shutting down…")
        await super().close()
