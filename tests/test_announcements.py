"""
tests/test_announcements.py — Unit Tests for Announcements & Embeds
====================================================================

Channel resolution, the level-up / XP-log gates driven by guild
settings, send-failure handling, and the embed builders.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord

from ensign.engine.curve import LevelCurve
from ensign.engine.results import AwardOutcome, XPEventResult
from ensign.services.accounts import RankEntry
from ensign.services.announcements import (
    _send_embed,
    announce_level_up,
    log_admin_action,
    resolve_levelup_channel,
    resolve_xp_log_channel,
)
from ensign.services.embeds import (
    build_admin_adjust_embed,
    build_daily_embed,
    build_daily_leaderboard_embed,
    build_leaderboard_embed,
    build_level_up_embed,
    build_tier_info_embed,
)
from ensign.services.guild_settings import GuildSettingsView, update_guild_settings

from conftest import AFTER_RESET, run_async

GUILD = 10


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _make_bot(engine, channels: dict[int, object] | None = None) -> MagicMock:
    """Create a lightweight mock EnsignBot backed by the test database."""
    bot = MagicMock()
    bot.engine = engine
    bot.curve = LevelCurve()

    def _get_channel(ch_id):
        if channels and ch_id in channels:
            return channels[ch_id]
        return None

    bot.get_channel = _get_channel
    return bot


def _make_messageable(channel_id: int = 100) -> MagicMock:
    ch = MagicMock(spec=discord.TextChannel)
    ch.id = channel_id
    ch.send = AsyncMock()
    return ch


def _level_up_result(old_level: int = 1, level: int = 2) -> XPEventResult:
    return XPEventResult(
        outcome=AwardOutcome.AWARDED,
        xp_awarded=90,
        total_xp=2000,
        level=level,
        old_level=old_level,
        leveled_up=old_level != level,
    )


# ---------------------------------------------------------------------------
# Channel resolution
# ---------------------------------------------------------------------------
class TestResolveChannels:
    def test_configured_channel_wins(self):
        configured = _make_messageable(200)
        bot = _make_bot(None, {200: configured})
        settings = GuildSettingsView(guild_id=GUILD, levelup_channel_id=200)
        assert resolve_levelup_channel(bot, settings, _make_messageable(100)) is configured

    def test_missing_configured_channel_uses_fallback(self):
        fallback = _make_messageable(100)
        bot = _make_bot(None)
        settings = GuildSettingsView(guild_id=GUILD, levelup_channel_id=200)
        assert resolve_levelup_channel(bot, settings, fallback) is fallback

    def test_disabled_returns_none(self):
        bot = _make_bot(None)
        settings = GuildSettingsView(guild_id=GUILD, levelup_enabled=False)
        assert resolve_levelup_channel(bot, settings, _make_messageable()) is None

    def test_xp_log_requires_enabled_and_channel(self):
        log = _make_messageable(300)
        bot = _make_bot(None, {300: log})
        assert resolve_xp_log_channel(bot, GuildSettingsView(guild_id=GUILD)) is None
        assert resolve_xp_log_channel(
            bot, GuildSettingsView(guild_id=GUILD, xp_log_channel_id=300, xp_log_enabled=True),
        ) is log


# ---------------------------------------------------------------------------
# Level-up announcements
# ---------------------------------------------------------------------------
class TestAnnounceLevelUp:
    def test_posts_in_fallback_by_default(self, db_engine):
        fallback = _make_messageable()
        bot = _make_bot(db_engine)
        sent = run_async(announce_level_up(
            bot, guild_id=GUILD, user_id=1, avatar_url="https://cdn.example/a.png",
            result=_level_up_result(), fallback_channel=fallback,
        ))
        assert sent is True
        fallback.send.assert_awaited_once()
        embed = fallback.send.call_args.kwargs["embed"]
        assert "Level 2" in embed.description

    def test_no_level_change_posts_nothing(self, db_engine):
        fallback = _make_messageable()
        sent = run_async(announce_level_up(
            _make_bot(db_engine), guild_id=GUILD, user_id=1, avatar_url="",
            result=_level_up_result(2, 2), fallback_channel=fallback,
        ))
        assert sent is False
        fallback.send.assert_not_awaited()

    def test_level_down_posts_nothing(self, db_engine):
        fallback = _make_messageable()
        sent = run_async(announce_level_up(
            _make_bot(db_engine), guild_id=GUILD, user_id=1, avatar_url="",
            result=_level_up_result(3, 1), fallback_channel=fallback,
        ))
        assert sent is False

    def test_disabled_guild_posts_nothing(self, db_engine):
        update_guild_settings(db_engine, GUILD, levelup_enabled=False)
        fallback = _make_messageable()
        sent = run_async(announce_level_up(
            _make_bot(db_engine), guild_id=GUILD, user_id=1, avatar_url="",
            result=_level_up_result(), fallback_channel=fallback,
        ))
        assert sent is False
        fallback.send.assert_not_awaited()


class TestLogAdminAction:
    def test_disabled_by_default(self, db_engine):
        sent = run_async(log_admin_action(
            _make_bot(db_engine), guild_id=GUILD, user_id=1,
            result=_level_up_result(), delta=500, reason="prize", admin_name="mod",
        ))
        assert sent is False

    def test_posts_to_log_channel(self, db_engine):
        log = _make_messageable(300)
        update_guild_settings(db_engine, GUILD, xp_log_channel_id=300, xp_log_enabled=True)
        sent = run_async(log_admin_action(
            _make_bot(db_engine, {300: log}), guild_id=GUILD, user_id=1,
            result=_level_up_result(), delta=500, reason="prize", admin_name="mod",
        ))
        assert sent is True
        log.send.assert_awaited_once()


class TestSendEmbed:
    def test_forbidden_is_swallowed(self):
        ch = _make_messageable()
        ch.send.side_effect = discord.Forbidden(
            SimpleNamespace(status=403, reason="Forbidden"), "Missing Access",
        )
        assert run_async(_send_embed(ch, discord.Embed(title="x"))) is False

    def test_success(self):
        ch = _make_messageable()
        assert run_async(_send_embed(ch, discord.Embed(title="x"))) is True


# ---------------------------------------------------------------------------
# Embed builders
# ---------------------------------------------------------------------------
class TestEmbeds:
    def test_level_up_embed_multi_level(self):
        curve = LevelCurve()
        embed = build_level_up_embed(1, "https://cdn.example/a.png", 0, 3, curve.progress(curve.xp_for(3)))
        assert "<@1>" in embed.description
        assert "+3 levels" in embed.description

    def test_level_up_embed_at_max_level(self):
        curve = LevelCurve(max_level=3)
        embed = build_level_up_embed(1, "", 2, 3, curve.progress(curve.xp_for(3)))
        assert any(f.value == "Max level reached" for f in embed.fields)

    def test_admin_embed_titles(self):
        result = _level_up_result()
        assert "Added" in build_admin_adjust_embed(1, result, 500, "r", "mod").title
        assert "Removed" in build_admin_adjust_embed(1, result, -500, "r", "mod").title
        assert "Set" in build_admin_adjust_embed(1, result, None, "r", "mod").title

    def test_admin_embed_shows_level_change(self):
        embed = build_admin_adjust_embed(1, _level_up_result(1, 2), 500, "r", "mod")
        level_field = next(f for f in embed.fields if f.name == "Level")
        assert level_field.value == "1 → 2"

    def test_leaderboard_badges(self):
        entries = [RankEntry(rank=i, user_id=i, total_xp=1000 - i, level=1) for i in range(1, 5)]
        embed = build_leaderboard_embed("Guild", entries)
        lines = embed.description.splitlines()
        assert lines[0].startswith("\U0001f947")
        assert len(lines) == 4

    def test_daily_embed_at_cap(self, ledger):
        ledger.add_xp(1, GUILD, 15000, "message", [], now=AFTER_RESET)
        stats = ledger.get_daily_stats(1, GUILD, now=AFTER_RESET)
        embed = build_daily_embed("Ana", stats, ledger.next_reset_at(AFTER_RESET))
        assert embed.color == discord.Color.red()
        assert "15,000 / 15,000" in embed.description
        assert embed.footer.text == "Effective day 2026-07-15"

    def test_daily_leaderboard_embed(self, ledger):
        ledger.add_xp(1, GUILD, 15000, "message", [], now=AFTER_RESET)
        ledger.add_xp(2, GUILD, 300, "voice", [], now=AFTER_RESET)
        standings = ledger.get_daily_leaderboard(GUILD, now=AFTER_RESET)
        embed = build_daily_leaderboard_embed("Guild", standings, ledger.next_reset_at(AFTER_RESET))
        lines = embed.description.splitlines()
        assert len(lines) == 2
        assert "<@1>" in lines[0] and "capped" in lines[0]
        assert "capped" not in lines[1]

    def test_daily_leaderboard_embed_empty(self, ledger):
        embed = build_daily_leaderboard_embed("Guild", [], ledger.next_reset_at(AFTER_RESET))
        assert embed.description == "No XP earned yet today."

    def test_tier_info_embed(self, cfg, resolver):
        embed = build_tier_info_embed(resolver.tiers, cfg.daily_cap.base_cap, cfg.daily_cap.tier_issues)
        tiers = next(f for f in embed.fields if f.name == "Tiers")
        assert tiers.value.splitlines()[0].startswith("**Tier 7**")
        assert "(+15,000)" in tiers.value
        assert embed.color == discord.Color.green()
        assert not any(f.name == "Configuration Issues" for f in embed.fields)

    def test_tier_info_embed_lists_issues(self):
        embed = build_tier_info_embed([], 15000, ["tier 3: cap configured without a role, ignored"])
        assert embed.color == discord.Color.orange()
        assert any(f.value == "No tier roles configured." for f in embed.fields)
        issues = next(f for f in embed.fields if f.name == "Configuration Issues")
        assert "tier 3" in issues.value
