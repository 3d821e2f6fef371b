"""
ensign.services.announcements — Level-up & XP-log routing
==========================================================

Consumes the ``leveled_up`` signal and admin results produced by the XP
core and decides where (and whether) to post them, based on the guild's
:mod:`~ensign.services.guild_settings`.

Embed construction lives in :mod:`ensign.services.embeds`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.abc import Messageable

from ensign.database.engine import run_db
from ensign.engine.results import XPEventResult
from ensign.services.embeds import build_admin_adjust_embed, build_level_up_embed
from ensign.services.guild_settings import GuildSettingsView, get_guild_settings

if TYPE_CHECKING:
    from ensign.bot.core import EnsignBot

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Channel resolution
# ---------------------------------------------------------------------------
def resolve_levelup_channel(
    bot: EnsignBot,
    settings: GuildSettingsView,
    fallback_channel: Messageable | None = None,
) -> Messageable | None:
    """Configured level-up channel → fallback (the channel the member spoke in).

    Returns ``None`` when level-up announcements are disabled for the guild.
    """
    if not settings.levelup_enabled:
        return None
    if settings.levelup_channel_id:
        ch = bot.get_channel(settings.levelup_channel_id)
        if ch is not None and isinstance(ch, Messageable):
            return ch
        logger.warning(
            "Level-up channel %s for guild %s not found, using fallback",
            settings.levelup_channel_id, settings.guild_id,
        )
    if isinstance(fallback_channel, Messageable):
        return fallback_channel
    return None


def resolve_xp_log_channel(bot: EnsignBot, settings: GuildSettingsView) -> Messageable | None:
    if not settings.xp_log_enabled or not settings.xp_log_channel_id:
        return None
    ch = bot.get_channel(settings.xp_log_channel_id)
    if ch is not None and isinstance(ch, Messageable):
        return ch
    return None


async def _send_embed(channel: Messageable, embed: discord.Embed) -> bool:
    try:
        await channel.send(embed=embed)
        return True
    except discord.Forbidden:
        logger.warning("Missing permissions to post in channel %s", getattr(channel, "id", "?"))
    except discord.HTTPException:
        logger.exception("Failed to send announcement to channel %s", getattr(channel, "id", "?"))
    return False


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
async def announce_level_up(
    bot: EnsignBot,
    *,
    guild_id: int,
    user_id: int,
    avatar_url: str,
    result: XPEventResult,
    fallback_channel: Messageable | None = None,
) -> bool:
    """Post a level-up embed if *result* carries a level increase."""
    if not result.leveled_up or result.level is None or result.old_level is None:
        return False
    if result.level < result.old_level:
        return False

    settings = await run_db(get_guild_settings, bot.engine, guild_id)
    channel = resolve_levelup_channel(bot, settings, fallback_channel)
    if channel is None:
        logger.debug("Level-up for user %s in guild %s not announced", user_id, guild_id)
        return False

    embed = build_level_up_embed(
        user_id=user_id,
        avatar_url=avatar_url,
        old_level=result.old_level,
        new_level=result.level,
        progress=bot.curve.progress(result.total_xp or 0),
    )
    return await _send_embed(channel, embed)


async def log_admin_action(
    bot: EnsignBot,
    *,
    guild_id: int,
    user_id: int,
    result: XPEventResult,
    delta: int | None,
    reason: str,
    admin_name: str,
) -> bool:
    """Mirror an admin XP change into the guild's XP-log channel, if enabled."""
    settings = await run_db(get_guild_settings, bot.engine, guild_id)
    channel = resolve_xp_log_channel(bot, settings)
    if channel is None:
        return False
    embed = build_admin_adjust_embed(user_id, result, delta, reason, admin_name)
    return await _send_embed(channel, embed)
