"""
ensign.services.embeds — Discord embed builders
================================================

All embed construction lives here so the cogs and the announcement
service only supply data: no layout concerns elsewhere.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

import discord

from ensign.constants import RANK_BADGES, SOURCE_EMOJI
from ensign.engine.curve import LevelCurve, LevelProgress
from ensign.engine.results import XPEventResult
from ensign.engine.tiers import TierSlot
from ensign.services.accounts import RankEntry
from ensign.services.ledger import DailyStanding, DailyStats, GuildDailyStats


def _bar(pct: float) -> str:
    return f"`{LevelCurve.progress_bar(pct, 16)}` {pct:.1f}%"


def build_level_up_embed(
    user_id: int,
    avatar_url: str,
    old_level: int,
    new_level: int,
    progress: LevelProgress,
) -> discord.Embed:
    """Build a level-up celebration embed with @mention."""
    jumped = new_level - old_level
    embed = discord.Embed(
        title="⚡ Level Up!",
        description=(
            f"<@{user_id}> reached **Level {new_level}**!"
            + (f"\n(+{jumped} levels at once)" if jumped > 1 else "")
        ),
        color=discord.Color.gold(),
    )
    embed.add_field(name="Total XP", value=f"{progress.total_xp:,}", inline=True)
    if progress.is_max_level:
        embed.add_field(name="Next Level", value="Max level reached", inline=True)
    else:
        embed.add_field(
            name="Next Level", value=f"{progress.xp_to_next:,} XP to go", inline=True,
        )
    embed.set_thumbnail(url=avatar_url)
    return embed


def build_level_embed(
    display_name: str,
    avatar_url: str,
    progress: LevelProgress,
    rank: int | None,
) -> discord.Embed:
    """``/level`` card: level, rank and progress towards the next level."""
    embed = discord.Embed(
        title=f"{display_name} — Level {progress.level}",
        color=discord.Color.blurple(),
    )
    embed.add_field(name="Total XP", value=f"{progress.total_xp:,}", inline=True)
    embed.add_field(name="Rank", value=f"#{rank}" if rank else "Unranked", inline=True)
    if progress.is_max_level:
        embed.add_field(name="Progress", value="Max level reached \U0001f451", inline=False)
    else:
        embed.add_field(
            name=f"Progress to Level {progress.level + 1}",
            value=(
                f"{_bar(progress.percentage)}\n"
                f"{progress.progress_xp:,} / {progress.level_span:,} XP "
                f"({progress.xp_to_next:,} to go)"
            ),
            inline=False,
        )
    embed.set_thumbnail(url=avatar_url)
    return embed


def build_daily_embed(display_name: str, stats: DailyStats, next_reset: datetime) -> discord.Embed:
    """``/daily`` card: today's XP against the cap, split by source."""
    color = discord.Color.red() if stats.is_at_cap else discord.Color.green()
    embed = discord.Embed(
        title=f"{display_name} — Daily XP",
        description=(
            f"{_bar(stats.percentage)}\n"
            f"**{stats.total_xp:,} / {stats.daily_cap:,} XP** "
            f"({stats.remaining:,} remaining)"
        ),
        color=color,
    )
    embed.add_field(
        name="By Source",
        value=(
            f"{SOURCE_EMOJI['message']} Messages: {stats.message_xp:,}\n"
            f"{SOURCE_EMOJI['reaction']} Reactions: {stats.reaction_xp:,}\n"
            f"{SOURCE_EMOJI['voice']} Voice: {stats.voice_xp:,}"
        ),
        inline=True,
    )
    tier_text = (
        f"Tier {stats.tier} (<@&{stats.tier_role_id}>)" if stats.tier else "No tier"
    )
    embed.add_field(name="Tier", value=tier_text, inline=True)
    embed.add_field(
        name="Resets",
        value=discord.utils.format_dt(next_reset, style="R"),
        inline=True,
    )
    embed.set_footer(text=f"Effective day {stats.effective_date}")
    return embed


def build_daily_leaderboard_embed(
    guild_name: str, standings: Sequence[DailyStanding], next_reset: datetime,
) -> discord.Embed:
    """``/daily view:leaderboard``: today's most active members against their caps."""
    embed = discord.Embed(
        title=f"\U0001f3c6 {guild_name} — Today's Most Active",
        color=discord.Color.blurple(),
    )
    if not standings:
        embed.description = "No XP earned yet today."
    else:
        lines = []
        for s in standings:
            badge = RANK_BADGES[s.rank - 1] if s.rank <= len(RANK_BADGES) else f"`#{s.rank}`"
            tier = f"T{s.tier}" if s.tier else "Base"
            status = " \U0001f534 capped" if s.is_at_cap else ""
            lines.append(
                f"{badge} <@{s.user_id}> — {s.total_xp:,} / {s.daily_cap:,} XP "
                f"({s.percentage:.0f}%) · {tier}{status}"
            )
        embed.description = "\n".join(lines)
    embed.add_field(
        name="Resets", value=discord.utils.format_dt(next_reset, style="R"), inline=False,
    )
    return embed


def build_tier_info_embed(
    tiers: Sequence[TierSlot], base_cap: int, issues: Sequence[str],
) -> discord.Embed:
    """``/daily view:tiers``: configured tier roles and any skipped slots."""
    embed = discord.Embed(
        title="\U0001f3af Daily Cap Tiers",
        description=f"Base cap: **{base_cap:,} XP**. The highest tier role held wins.",
        color=discord.Color.orange() if issues else discord.Color.green(),
    )
    if tiers:
        embed.add_field(
            name="Tiers",
            value="\n".join(
                f"**Tier {slot.rank}** <@&{slot.role_id}> — {slot.cap:,} XP "
                f"(+{slot.cap - base_cap:,})"
                for slot in tiers
            ),
            inline=False,
        )
    else:
        embed.add_field(name="Tiers", value="No tier roles configured.", inline=False)
    if issues:
        embed.add_field(
            name="Configuration Issues",
            value="\n".join(f"• {issue}" for issue in issues)[:1024],
            inline=False,
        )
    return embed


def build_leaderboard_embed(guild_name: str, entries: list[RankEntry]) -> discord.Embed:
    embed = discord.Embed(
        title=f"\U0001f3c6 {guild_name} Leaderboard",
        color=discord.Color.gold(),
    )
    if not entries:
        embed.description = "No one has earned XP yet."
        return embed

    lines = []
    for entry in entries:
        badge = RANK_BADGES[entry.rank - 1] if entry.rank <= len(RANK_BADGES) else f"`#{entry.rank}`"
        lines.append(
            f"{badge} <@{entry.user_id}> — Level {entry.level} · {entry.total_xp:,} XP"
        )
    embed.description = "\n".join(lines)
    return embed


def build_admin_adjust_embed(
    user_id: int,
    result: XPEventResult,
    delta: int | None,
    reason: str,
    admin_name: str,
) -> discord.Embed:
    """Confirmation / XP-log embed for admin add, remove and set."""
    if delta is None:
        title, color = "\U0001f6e0 XP Set", discord.Color.blue()
        change = f"set to **{result.total_xp:,} XP**"
    elif delta >= 0:
        title, color = "➕ XP Added", discord.Color.green()
        change = f"**+{delta:,} XP**"
    else:
        title, color = "➖ XP Removed", discord.Color.orange()
        change = f"**{delta:,} XP**"

    embed = discord.Embed(
        title=title,
        description=f"<@{user_id}> {change}\nReason: {reason}",
        color=color,
    )
    embed.add_field(name="Total XP", value=f"{result.total_xp:,}", inline=True)
    level_text = f"{result.level}"
    if result.leveled_up and result.old_level is not None:
        level_text = f"{result.old_level} → {result.level}"
    embed.add_field(name="Level", value=level_text, inline=True)
    embed.set_footer(text=f"By {admin_name}")
    return embed


def build_guild_stats_embed(guild_name: str, stats: GuildDailyStats) -> discord.Embed:
    embed = discord.Embed(
        title=f"\U0001f4ca {guild_name} — Today",
        description=f"Effective day {stats.effective_date}",
        color=discord.Color.blurple(),
    )
    embed.add_field(name="Active Members", value=str(stats.active_users), inline=True)
    embed.add_field(name="Total XP", value=f"{stats.total_xp:,}", inline=True)
    embed.add_field(name="At Cap", value=str(stats.users_at_cap), inline=True)
    embed.add_field(
        name="By Source",
        value=(
            f"{SOURCE_EMOJI['message']} {stats.message_xp:,} · "
            f"{SOURCE_EMOJI['reaction']} {stats.reaction_xp:,} · "
            f"{SOURCE_EMOJI['voice']} {stats.voice_xp:,}"
        ),
        inline=False,
    )
    embed.add_field(name="Average", value=f"{stats.average_xp:,.0f}", inline=True)
    embed.add_field(name="Highest", value=f"{stats.highest_xp:,}", inline=True)
    embed.add_field(
        name="Next Reset",
        value=discord.utils.format_dt(stats.next_reset_at, style="R"),
        inline=True,
    )
    return embed
