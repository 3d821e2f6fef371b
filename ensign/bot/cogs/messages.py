"""
ensign.bot.cogs.messages — Message XP
======================================

Listens for on_message, projects the author down to
``(user_id, guild_id, role_ids)`` and hands it to
:meth:`XPService.on_message_event`.  Level-ups are announced through
:mod:`ensign.services.announcements`.

Pipeline:
1. on_message fires → gate checks (bot, DM, webhook)
2. XPService: cooldown → daily cap → roll → award
3. announce_level_up if the level increased
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from ensign.engine.results import AwardOutcome
from ensign.services.announcements import announce_level_up

if TYPE_CHECKING:
    from ensign.bot.core import EnsignBot

logger = logging.getLogger(__name__)


def member_role_ids(member: discord.abc.User) -> frozenset[int]:
    """Role IDs of a guild member (empty for plain users)."""
    return frozenset(role.id for role in getattr(member, "roles", ()))


class Messages(commands.Cog, name="Messages"):
    """Awards XP for guild messages."""

    def __init__(self, bot: EnsignBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        try:
            await self._handle_message(message)
        except Exception:
            logger.exception(
                "Error processing message %s from user %s",
                message.id, message.author.id,
            )

    async def _handle_message(self, message: discord.Message) -> None:
        """Inner message handler (separated for error isolation)."""

        # Gate 1: Ignore bots and webhooks
        if message.author.bot or message.webhook_id is not None:
            return

        # Gate 2: Ignore DMs
        if message.guild is None:
            return

        result = await self.bot.xp.on_message_event(
            message.author.id,
            message.guild.id,
            member_role_ids(message.author),
        )
        if result.outcome is not AwardOutcome.AWARDED:
            logger.debug(
                "Message from %s not rewarded: %s", message.author.name, result.outcome,
            )
            return

        await announce_level_up(
            self.bot,
            guild_id=message.guild.id,
            user_id=message.author.id,
            avatar_url=message.author.display_avatar.url,
            result=result,
            fallback_channel=message.channel,
        )


async def setup(bot: EnsignBot) -> None:
    await bot.add_cog(Messages(bot))
