"""
ensign.bot.cogs.voice — Voice Presence XP
==========================================

Keeps ``voice_sessions`` in step with gateway voice-state updates and runs
a periodic tick (``voice.tick_seconds``, default 5 minutes) that calls
:meth:`XPService.on_voice_presence_tick` once per tracked session.

Per tick and session:
- the session is dropped if the member or channel is gone, or the member
  is no longer in the recorded channel,
- occupancy counts human members in the channel,
- the mute/deafen state stored on the session decides the AFK penalty.

On ready, members already sitting in voice are synced into sessions.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands, tasks

from ensign.bot.cogs.messages import member_role_ids
from ensign.database.engine import run_db
from ensign.engine.results import AwardOutcome
from ensign.services import voice_sessions
from ensign.services.announcements import announce_level_up

if TYPE_CHECKING:
    from ensign.bot.core import EnsignBot

logger = logging.getLogger(__name__)


def human_count(channel: discord.VoiceChannel | discord.StageChannel) -> int:
    return sum(1 for m in channel.members if not m.bot)


class Voice(commands.Cog, name="Voice"):
    """Tracks voice channel presence and awards XP on ticks."""

    def __init__(self, bot: EnsignBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        """Start the voice tick loop when the cog is loaded."""
        self.voice_tick_loop.change_interval(seconds=self.bot.cfg.voice.tick_seconds)
        self.voice_tick_loop.start()

    async def cog_unload(self) -> None:
        self.voice_tick_loop.cancel()

    # -------------------------------------------------------------------
    # Startup sync
    # -------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_ready(self) -> None:
        for guild in self.bot.guilds:
            present: dict[int, tuple[int, bool, bool]] = {}
            for channel in [*guild.voice_channels, *guild.stage_channels]:
                if guild.afk_channel is not None and channel.id == guild.afk_channel.id:
                    continue
                for member in channel.members:
                    if member.bot or member.voice is None:
                        continue
                    present[member.id] = (
                        channel.id,
                        bool(member.voice.self_mute or member.voice.mute),
                        bool(member.voice.self_deaf or member.voice.deaf),
                    )
            try:
                await run_db(voice_sessions.sync_guild_sessions, self.bot.engine, guild.id, present)
            except Exception:
                logger.exception("Voice session sync failed for guild %s", guild.id)

    # -------------------------------------------------------------------
    # Voice state tracking
    # -------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        """Track voice join/leave/move/mute events."""
        try:
            await self._handle_voice_update(member, before, after)
        except Exception:
            logger.exception("Error processing voice state update for user %s", member.id)

    async def _handle_voice_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        if member.bot:
            return

        engine = self.bot.engine
        guild_id = member.guild.id
        afk = member.guild.afk_channel
        after_channel = after.channel
        if afk is not None and after_channel is not None and after_channel.id == afk.id:
            after_channel = None  # The AFK channel never earns XP

        muted = bool(after.self_mute or after.mute)
        deafened = bool(after.self_deaf or after.deaf)

        # --- LEAVE ---
        if after_channel is None:
            if before.channel is not None:
                await run_db(voice_sessions.end_session, engine, member.id, guild_id)
                logger.debug("%s left voice channel %s", member, before.channel)

        # --- JOIN ---
        elif before.channel is None:
            await run_db(
                voice_sessions.start_session, engine, member.id, guild_id, after_channel.id,
                is_muted=muted, is_deafened=deafened,
            )
            logger.debug("%s joined voice channel %s", member, after_channel)

        # --- MOVE ---
        elif before.channel.id != after_channel.id:
            await run_db(
                voice_sessions.move_session, engine, member.id, guild_id, after_channel.id,
                is_muted=muted, is_deafened=deafened,
            )
            logger.debug("%s moved voice %s → %s", member, before.channel, after_channel)

        # --- Mute/deaf change (same channel) ---
        else:
            await run_db(
                voice_sessions.update_state, engine, member.id, guild_id,
                is_muted=muted, is_deafened=deafened,
            )

    # -------------------------------------------------------------------
    # Tick loop
    # -------------------------------------------------------------------
    @tasks.loop(seconds=300)
    async def voice_tick_loop(self) -> None:
        """Periodic tick that awards voice XP to every tracked session."""
        for guild in self.bot.guilds:
            try:
                await self._tick_guild(guild)
            except Exception:
                logger.exception("Voice tick failed for guild %s", guild.id)

    @voice_tick_loop.before_loop
    async def before_voice_tick(self) -> None:
        await self.bot.wait_until_ready()

    async def _tick_guild(self, guild: discord.Guild) -> None:
        engine = self.bot.engine
        sessions = await run_db(voice_sessions.list_sessions, engine, guild.id)

        for session in sessions:
            member = guild.get_member(session.user_id)
            channel = guild.get_channel(session.channel_id)
            state = member.voice if member is not None else None
            if (
                member is None
                or channel is None
                or state is None
                or state.channel is None
                or state.channel.id != session.channel_id
            ):
                await run_db(voice_sessions.end_session, engine, session.user_id, guild.id)
                logger.debug("Removed stale voice session for user %s", session.user_id)
                continue

            try:
                result = await self.bot.xp.on_voice_presence_tick(
                    member.id,
                    guild.id,
                    member_role_ids(member),
                    channel_occupancy=human_count(channel),
                    is_suppressed=session.is_suppressed,
                )
            except Exception:
                logger.exception("Voice XP failed for user %s in guild %s", member.id, guild.id)
                continue

            if result.outcome is not AwardOutcome.AWARDED:
                continue

            await run_db(voice_sessions.mark_awarded, engine, member.id, guild.id)
            await announce_level_up(
                self.bot,
                guild_id=guild.id,
                user_id=member.id,
                avatar_url=member.display_avatar.url,
                result=result,
                fallback_channel=None,  # Voice ticks have no text channel
            )


async def setup(bot: EnsignBot) -> None:
    await bot.add_cog(Voice(bot))
