"""
ensign.bot.cogs.meta — Member Slash Commands
=============================================

- /level — level, rank and progress for yourself or another member
- /daily — today's XP against your daily cap, the daily leaderboard,
  server totals, or the tier table
- /leaderboard — top members by lifetime XP
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from ensign.bot.cogs.messages import member_role_ids
from ensign.constants import LEADERBOARD_SIZE
from ensign.database.engine import run_db
from ensign.services import accounts
from ensign.services.embeds import (
    build_daily_embed,
    build_daily_leaderboard_embed,
    build_guild_stats_embed,
    build_leaderboard_embed,
    build_level_embed,
    build_tier_info_embed,
)

if TYPE_CHECKING:
    from ensign.bot.core import EnsignBot

logger = logging.getLogger(__name__)


class Meta(commands.Cog, name="Meta"):
    """Read-only XP commands for everyone."""

    def __init__(self, bot: EnsignBot) -> None:
        self.bot = bot

    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError,
    ) -> None:
        logger.error("Command /%s failed: %s", getattr(interaction.command, "name", "?"), error)
        message = "❌ Couldn't load XP data right now. Try again shortly."
        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)

    @app_commands.command(name="level", description="Show level and progress.")
    @app_commands.describe(member="Member to look up (defaults to you)")
    @app_commands.guild_only()
    async def level(
        self, interaction: discord.Interaction, member: discord.Member | None = None,
    ) -> None:
        target = member or interaction.user
        guild_id = interaction.guild_id or 0
        account = await run_db(accounts.get_account, self.bot.engine, target.id, guild_id)
        rank = await run_db(accounts.get_rank, self.bot.engine, target.id, guild_id)
        progress = self.bot.curve.progress(account.total_xp if account else 0)
        embed = build_level_embed(
            target.display_name, target.display_avatar.url, progress, rank,
        )
        await interaction.response.send_message(embed=embed)

    @app_commands.command(name="daily", description="Show today's XP and daily cap.")
    @app_commands.describe(
        view="What to show (defaults to your own progress)",
        member="Member to look up (progress view only)",
    )
    @app_commands.choices(view=[
        app_commands.Choice(name="My Progress", value="progress"),
        app_commands.Choice(name="Daily Leaderboard", value="leaderboard"),
        app_commands.Choice(name="Server Stats", value="server"),
        app_commands.Choice(name="Tier Information", value="tiers"),
    ])
    @app_commands.guild_only()
    async def daily(
        self,
        interaction: discord.Interaction,
        view: str = "progress",
        member: discord.Member | None = None,
    ) -> None:
        guild_id = interaction.guild_id or 0
        guild_name = interaction.guild.name if interaction.guild else "Server"
        ledger = self.bot.ledger

        if view == "leaderboard":
            standings = await run_db(ledger.get_daily_leaderboard, guild_id, LEADERBOARD_SIZE)
            embed = build_daily_leaderboard_embed(guild_name, standings, ledger.next_reset_at())
        elif view == "server":
            stats = await run_db(ledger.get_guild_daily_stats, guild_id)
            embed = build_guild_stats_embed(guild_name, stats)
        elif view == "tiers":
            cap_cfg = self.bot.cfg.daily_cap
            embed = build_tier_info_embed(
                ledger.resolver.tiers, cap_cfg.base_cap, cap_cfg.tier_issues,
            )
        else:
            target = member or interaction.user
            stats = await run_db(
                ledger.get_daily_stats, target.id, guild_id, member_role_ids(target),
            )
            embed = build_daily_embed(target.display_name, stats, ledger.next_reset_at())
            await interaction.response.send_message(embed=embed, ephemeral=member is None)
            return

        await interaction.response.send_message(embed=embed)

    @app_commands.command(name="leaderboard", description="Top members by lifetime XP.")
    @app_commands.describe(page="Page number (10 members per page)")
    @app_commands.guild_only()
    async def leaderboard(
        self,
        interaction: discord.Interaction,
        page: app_commands.Range[int, 1, 100] = 1,
    ) -> None:
        entries = await run_db(
            accounts.get_leaderboard,
            self.bot.engine,
            interaction.guild_id or 0,
            LEADERBOARD_SIZE,
            (page - 1) * LEADERBOARD_SIZE,
        )
        guild_name = interaction.guild.name if interaction.guild else "Server"
        await interaction.response.send_message(
            embed=build_leaderboard_embed(guild_name, entries),
        )


async def setup(bot: EnsignBot) -> None:
    await bot.add_cog(Meta(bot))
