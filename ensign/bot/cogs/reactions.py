"""
ensign.bot.cogs.reactions — Reaction XP
========================================

Listens for on_raw_reaction_add and rewards the member who *added* the
reaction.  Raw events are used so reactions on uncached messages count.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from ensign.bot.cogs.messages import member_role_ids
from ensign.engine.results import AwardOutcome
from ensign.services.announcements import announce_level_up

if TYPE_CHECKING:
    from ensign.bot.core import EnsignBot

logger = logging.getLogger(__name__)


class Reactions(commands.Cog, name="Reactions"):
    """Awards XP for adding reactions."""

    def __init__(self, bot: EnsignBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        """Fire when any reaction is added, even on uncached messages."""
        try:
            await self._handle_reaction(payload)
        except Exception:
            logger.exception(
                "Error processing reaction on message %s from user %s",
                payload.message_id, payload.user_id,
            )

    async def _handle_reaction(self, payload: discord.RawReactionActionEvent) -> None:
        if payload.guild_id is None:
            return
        member = payload.member
        if member is None or member.bot:
            return

        result = await self.bot.xp.on_reaction_event(
            member.id, payload.guild_id, member_role_ids(member),
        )
        if result.outcome is not AwardOutcome.AWARDED:
            return

        await announce_level_up(
            self.bot,
            guild_id=payload.guild_id,
            user_id=member.id,
            avatar_url=member.display_avatar.url,
            result=result,
            fallback_channel=self.bot.get_channel(payload.channel_id),
        )


async def setup(bot: EnsignBot) -> None:
    await bot.add_cog(Reactions(bot))
