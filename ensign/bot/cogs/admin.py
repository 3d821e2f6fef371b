"""
ensign.bot.cogs.admin — Admin Slash Commands
=============================================

``/xp-admin`` command group for server admins:
- add / remove — signed lifetime XP adjustment (no cooldown, no daily cap)
- set — overwrite a member's lifetime XP
- reset — delete a member's XP account
- daily-reset — manually run the daily reset (idempotent)
- guild-stats — today's guild-wide XP summary
- curve — level curve summary and configuration issues
- levelup-channel / xp-log-channel — announcement routing

All commands require the configured ``admin_role_id``.  Unlike ordinary
events, failures here are reported back to the admin.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from ensign.database.engine import run_db
from ensign.errors import InvalidInput, StorageUnavailable
from ensign.services.announcements import announce_level_up, log_admin_action
from ensign.services.embeds import build_admin_adjust_embed, build_guild_stats_embed
from ensign.services.guild_settings import update_guild_settings

if TYPE_CHECKING:
    from ensign.bot.core import EnsignBot
    from ensign.engine.results import XPEventResult

logger = logging.getLogger(__name__)

MAX_ADJUSTMENT = 10_000_000


def is_admin():
    """Decorator that checks if the user has the configured admin role."""
    async def predicate(interaction: discord.Interaction) -> bool:
        bot: EnsignBot = interaction.client  # type: ignore[assignment]
        if not interaction.user or not hasattr(interaction.user, "roles"):
            return False
        admin_role_id = bot.cfg.admin_role_id
        return any(role.id == admin_role_id for role in interaction.user.roles)
    return app_commands.check(predicate)


async def _reply_error(interaction: discord.Interaction, message: str) -> None:
    if interaction.response.is_done():
        await interaction.followup.send(f"❌ {message}", ephemeral=True)
    else:
        await interaction.response.send_message(f"❌ {message}", ephemeral=True)


class Admin(commands.Cog, name="Admin"):
    """Server administration commands for Ensign."""

    xp_admin = app_commands.Group(
        name="xp-admin",
        description="Manage member XP and daily caps.",
        guild_only=True,
    )

    def __init__(self, bot: EnsignBot) -> None:
        self.bot = bot

    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError,
    ) -> None:
        original = getattr(error, "original", error)
        if isinstance(error, app_commands.CheckFailure):
            await _reply_error(interaction, "You need the admin role to use this command.")
        elif isinstance(original, StorageUnavailable):
            logger.error("Admin command failed, storage unavailable: %s", original)
            await _reply_error(interaction, "The database is unavailable. Nothing was changed.")
        elif isinstance(original, InvalidInput):
            await _reply_error(interaction, str(original))
        else:
            logger.exception("Admin command failed", exc_info=original)
            await _reply_error(interaction, "Something went wrong. Check the bot logs.")

    # -------------------------------------------------------------------
    # Shared completion for add/remove/set
    # -------------------------------------------------------------------
    async def _finish_adjustment(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        result: XPEventResult,
        delta: int | None,
        reason: str,
    ) -> None:
        embed = build_admin_adjust_embed(
            member.id, result, delta, reason, interaction.user.display_name,
        )
        await interaction.response.send_message(embed=embed, ephemeral=True)

        guild_id = interaction.guild_id or 0
        await log_admin_action(
            self.bot,
            guild_id=guild_id,
            user_id=member.id,
            result=result,
            delta=delta,
            reason=reason,
            admin_name=interaction.user.display_name,
        )
        await announce_level_up(
            self.bot,
            guild_id=guild_id,
            user_id=member.id,
            avatar_url=member.display_avatar.url,
            result=result,
            fallback_channel=interaction.channel,
        )

    # -------------------------------------------------------------------
    # /xp-admin add | remove | set | reset
    # -------------------------------------------------------------------
    @xp_admin.command(name="add", description="Give a member XP (bypasses cooldowns and the daily cap).")
    @app_commands.describe(member="The member to award", amount="XP to add", reason="Reason")
    @is_admin()
    async def add(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        amount: app_commands.Range[int, 1, MAX_ADJUSTMENT],
        reason: str = "Manual admin award",
    ) -> None:
        result = await self.bot.xp.on_admin_adjust(
            member.id, interaction.guild_id or 0, amount, reason,
        )
        await self._finish_adjustment(interaction, member, result, amount, reason)

    @xp_admin.command(name="remove", description="Take XP away from a member (never below zero).")
    @app_commands.describe(member="The member", amount="XP to remove", reason="Reason")
    @is_admin()
    async def remove(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        amount: app_commands.Range[int, 1, MAX_ADJUSTMENT],
        reason: str = "Manual admin removal",
    ) -> None:
        result = await self.bot.xp.on_admin_adjust(
            member.id, interaction.guild_id or 0, -amount, reason,
        )
        await self._finish_adjustment(interaction, member, result, -amount, reason)

    @xp_admin.command(name="set", description="Set a member's total XP to an exact value.")
    @app_commands.describe(member="The member", total="New total XP", reason="Reason")
    @is_admin()
    async def set_total(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        total: app_commands.Range[int, 0, 2_000_000_000],
        reason: str = "Manual admin set",
    ) -> None:
        result = await self.bot.xp.on_admin_set(
            member.id, interaction.guild_id or 0, total, reason,
        )
        await self._finish_adjustment(interaction, member, result, None, reason)

    @xp_admin.command(name="reset", description="Delete a member's XP account entirely.")
    @is_admin()
    async def reset(self, interaction: discord.Interaction, member: discord.Member) -> None:
        existed = await self.bot.xp.on_admin_reset(member.id, interaction.guild_id or 0)
        text = (
            f"✅ Reset **{member.display_name}** to zero XP."
            if existed else f"ℹ️ **{member.display_name}** had no XP to reset."
        )
        await interaction.response.send_message(text, ephemeral=True)

    # -------------------------------------------------------------------
    # /xp-admin daily-reset | guild-stats | curve
    # -------------------------------------------------------------------
    @xp_admin.command(name="daily-reset", description="Clear daily XP rows from previous days now.")
    @is_admin()
    async def daily_reset(self, interaction: discord.Interaction) -> None:
        removed = await self.bot.xp.on_daily_reset_requested()
        await interaction.response.send_message(
            f"✅ Daily reset complete — removed {removed} row(s) from earlier days.",
            ephemeral=True,
        )

    @xp_admin.command(name="guild-stats", description="Today's XP totals for this server.")
    @is_admin()
    async def guild_stats(self, interaction: discord.Interaction) -> None:
        stats = await run_db(self.bot.ledger.get_guild_daily_stats, interaction.guild_id or 0)
        guild_name = interaction.guild.name if interaction.guild else "Server"
        await interaction.response.send_message(
            embed=build_guild_stats_embed(guild_name, stats), ephemeral=True,
        )

    @xp_admin.command(name="curve", description="Show the level curve and any config issues.")
    @is_admin()
    async def curve(self, interaction: discord.Interaction) -> None:
        stats = self.bot.curve.stats()
        milestones = "\n".join(
            f"Level {lvl}: {xp:,} XP" for lvl, xp in stats["milestones"].items()
        )
        embed = discord.Embed(
            title="\U0001f4c8 Level Curve",
            description=f"`{stats['formula']}`",
            color=discord.Color.blurple(),
        )
        embed.add_field(name="Milestones", value=milestones or "—", inline=False)
        embed.add_field(
            name="Config Issues",
            value="\n".join(f"• {i}" for i in self.bot.cfg.issues)[:1024] or "None",
            inline=False,
        )
        await interaction.response.send_message(embed=embed, ephemeral=True)

    # -------------------------------------------------------------------
    # Announcement routing
    # -------------------------------------------------------------------
    @app_commands.command(
        name="levelup-channel",
        description="Choose where level-up announcements are posted.",
    )
    @app_commands.describe(
        channel="Channel for level-ups (omit to post where the member was active)",
        enabled="Turn level-up announcements on or off",
    )
    @app_commands.guild_only()
    @is_admin()
    async def levelup_channel(
        self,
        interaction: discord.Interaction,
        channel: discord.TextChannel | None = None,
        enabled: bool = True,
    ) -> None:
        await run_db(
            update_guild_settings,
            self.bot.engine,
            interaction.guild_id or 0,
            levelup_channel_id=channel.id if channel else None,
            levelup_enabled=enabled,
        )
        where = channel.mention if channel else "the member's current channel"
        state = f"enabled in {where}" if enabled else "disabled"
        await interaction.response.send_message(f"✅ Level-up announcements {state}.", ephemeral=True)

    @app_commands.command(
        name="xp-log-channel",
        description="Choose where admin XP changes are logged.",
    )
    @app_commands.guild_only()
    @is_admin()
    async def xp_log_channel(
        self,
        interaction: discord.Interaction,
        channel: discord.TextChannel | None = None,
        enabled: bool = True,
    ) -> None:
        if enabled and channel is None:
            raise InvalidInput("Pick a channel to enable the XP log.")
        await run_db(
            update_guild_settings,
            self.bot.engine,
            interaction.guild_id or 0,
            xp_log_channel_id=channel.id if channel else None,
            xp_log_enabled=enabled,
        )
        state = f"enabled in {channel.mention}" if enabled and channel else "disabled"
        await interaction.response.send_message(f"✅ XP log {state}.", ephemeral=True)


async def setup(bot: EnsignBot) -> None:
    await bot.add_cog(Admin(bot))
