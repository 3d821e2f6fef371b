"""
tests/test_voice_cog.py — Voice Tick Loop Tests
================================================

Drives ``Voice._tick_guild`` against the test database with lightweight
guild/member stand-ins.  The stored session row supplies the mute/deafen
state; the live gateway state only confirms the member is still present.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from ensign.bot.cogs.voice import Voice
from ensign.engine.results import AwardOutcome
from ensign.services import voice_sessions

from conftest import AFTER_RESET, run_async

GUILD = 10
CHANNEL = 500


def _member(user_id: int, channel_id: int = CHANNEL) -> SimpleNamespace:
    return SimpleNamespace(
        id=user_id,
        bot=False,
        roles=[],
        voice=SimpleNamespace(channel=SimpleNamespace(id=channel_id)),
        display_avatar=SimpleNamespace(url=""),
    )


def _guild(members: list[SimpleNamespace]) -> MagicMock:
    channel = SimpleNamespace(id=CHANNEL, members=members)
    guild = MagicMock()
    guild.id = GUILD
    guild.get_member = {m.id: m for m in members}.get
    guild.get_channel = {CHANNEL: channel}.get
    return guild


def _cog(engine, outcome: AwardOutcome = AwardOutcome.COOLDOWN) -> Voice:
    bot = MagicMock()
    bot.engine = engine
    bot.xp.on_voice_presence_tick = AsyncMock(return_value=SimpleNamespace(outcome=outcome))
    return Voice(bot)


class TestVoiceTick:
    def test_stored_mute_state_drives_afk_flag(self, db_engine):
        voice_sessions.start_session(db_engine, 1, GUILD, CHANNEL, is_muted=True, now=AFTER_RESET)
        voice_sessions.start_session(db_engine, 2, GUILD, CHANNEL, now=AFTER_RESET)
        cog = _cog(db_engine)

        run_async(cog._tick_guild(_guild([_member(1), _member(2), _member(3)])))

        calls = {
            c.args[0]: c.kwargs for c in cog.bot.xp.on_voice_presence_tick.await_args_list
        }
        assert calls[1]["is_suppressed"] is True
        assert calls[2]["is_suppressed"] is False
        assert calls[1]["channel_occupancy"] == 3

    def test_state_update_is_seen_by_next_tick(self, db_engine):
        voice_sessions.start_session(db_engine, 1, GUILD, CHANNEL, is_muted=True, now=AFTER_RESET)
        voice_sessions.update_state(db_engine, 1, GUILD, is_muted=False, is_deafened=False)
        cog = _cog(db_engine)

        run_async(cog._tick_guild(_guild([_member(1), _member(2)])))

        kwargs = cog.bot.xp.on_voice_presence_tick.await_args.kwargs
        assert kwargs["is_suppressed"] is False

    def test_member_in_other_channel_is_dropped(self, db_engine):
        voice_sessions.start_session(db_engine, 1, GUILD, CHANNEL, now=AFTER_RESET)
        cog = _cog(db_engine)
        moved = _member(1, channel_id=CHANNEL + 1)

        run_async(cog._tick_guild(_guild([moved])))

        cog.bot.xp.on_voice_presence_tick.assert_not_awaited()
        assert voice_sessions.get_voice_session(db_engine, 1, GUILD) is None

    def test_award_marks_session(self, db_engine):
        voice_sessions.start_session(db_engine, 1, GUILD, CHANNEL, now=AFTER_RESET)
        cog = _cog(db_engine, AwardOutcome.AWARDED)

        with patch("ensign.bot.cogs.voice.announce_level_up", new=AsyncMock()) as announce:
            run_async(cog._tick_guild(_guild([_member(1), _member(2)])))

        announce.assert_awaited_once()
        assert voice_sessions.get_voice_session(db_engine, 1, GUILD).last_xp_time is not None
