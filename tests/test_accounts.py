"""
tests/test_accounts.py — Lifetime Account Persistence Tests
============================================================

Runs the atomic upserts in ``ensign.services.accounts`` against the
in-memory SQLite engine from conftest.
"""

from __future__ import annotations

import pytest

from ensign.database.models import XPSource
from ensign.errors import InvalidInput
from ensign.services import accounts

GUILD = 10


class TestApplyAward:
    def test_first_award_creates_account(self, db_engine):
        totals = accounts.apply_award(db_engine, 1, GUILD, 80, XPSource.MESSAGE)
        assert totals.total_xp == 80
        assert totals.stored_level == 0

        account = accounts.get_account(db_engine, 1, GUILD)
        assert account is not None
        assert account.messages == 1
        assert account.last_xp_at is not None

    def test_counters_bump_by_one_per_award(self, db_engine):
        accounts.apply_award(db_engine, 1, GUILD, 80, XPSource.MESSAGE)
        accounts.apply_award(db_engine, 1, GUILD, 90, XPSource.MESSAGE)
        accounts.apply_award(db_engine, 1, GUILD, 300, XPSource.VOICE)
        accounts.apply_award(db_engine, 1, GUILD, 75, XPSource.REACTION)

        account = accounts.get_account(db_engine, 1, GUILD)
        assert account.total_xp == 545
        assert (account.messages, account.voice_minutes, account.reactions) == (2, 1, 1)

    def test_negative_amount_rejected(self, db_engine):
        with pytest.raises(InvalidInput):
            accounts.apply_award(db_engine, 1, GUILD, -5, XPSource.MESSAGE)

    def test_guilds_are_separate(self, db_engine):
        accounts.apply_award(db_engine, 1, GUILD, 80, XPSource.MESSAGE)
        accounts.apply_award(db_engine, 1, GUILD + 1, 20, XPSource.MESSAGE)
        assert accounts.get_account(db_engine, 1, GUILD).total_xp == 80
        assert accounts.get_account(db_engine, 1, GUILD + 1).total_xp == 20


class TestAdminWrites:
    def test_adjust_clamps_at_zero(self, db_engine):
        accounts.apply_award(db_engine, 1, GUILD, 300, XPSource.MESSAGE)
        assert accounts.adjust_xp(db_engine, 1, GUILD, -1000).total_xp == 0

    def test_adjust_on_missing_account(self, db_engine):
        assert accounts.adjust_xp(db_engine, 1, GUILD, 250).total_xp == 250
        assert accounts.adjust_xp(db_engine, 2, GUILD, -250).total_xp == 0

    def test_adjust_leaves_counters_alone(self, db_engine):
        accounts.apply_award(db_engine, 1, GUILD, 300, XPSource.MESSAGE)
        accounts.adjust_xp(db_engine, 1, GUILD, 100)
        account = accounts.get_account(db_engine, 1, GUILD)
        assert account.total_xp == 400
        assert account.messages == 1

    def test_set_xp(self, db_engine):
        accounts.apply_award(db_engine, 1, GUILD, 300, XPSource.MESSAGE)
        assert accounts.set_xp(db_engine, 1, GUILD, 5000).total_xp == 5000
        with pytest.raises(InvalidInput):
            accounts.set_xp(db_engine, 1, GUILD, -1)

    def test_reset_account(self, db_engine):
        accounts.apply_award(db_engine, 1, GUILD, 300, XPSource.MESSAGE)
        assert accounts.reset_account(db_engine, 1, GUILD) is True
        assert accounts.get_account(db_engine, 1, GUILD) is None
        assert accounts.reset_account(db_engine, 1, GUILD) is False


class TestStoreLevel:
    def test_written_when_total_unchanged(self, db_engine):
        accounts.apply_award(db_engine, 1, GUILD, 500, XPSource.MESSAGE)
        assert accounts.store_level(db_engine, 1, GUILD, 1, expected_total=500)
        assert accounts.get_account(db_engine, 1, GUILD).level == 1

    def test_skipped_when_total_moved(self, db_engine):
        accounts.apply_award(db_engine, 1, GUILD, 500, XPSource.MESSAGE)
        accounts.apply_award(db_engine, 1, GUILD, 100, XPSource.MESSAGE)
        assert not accounts.store_level(db_engine, 1, GUILD, 1, expected_total=500)
        assert accounts.get_account(db_engine, 1, GUILD).level == 0


class TestRanking:
    @pytest.fixture
    def populated(self, db_engine):
        for user_id, xp in ((1, 100), (2, 300), (3, 200), (4, 50)):
            accounts.apply_award(db_engine, user_id, GUILD, xp, XPSource.MESSAGE)
        accounts.apply_award(db_engine, 5, GUILD + 1, 9999, XPSource.MESSAGE)
        return db_engine

    def test_leaderboard_order(self, populated):
        board = accounts.get_leaderboard(populated, GUILD, limit=3)
        assert [(e.rank, e.user_id, e.total_xp) for e in board] == [
            (1, 2, 300), (2, 3, 200), (3, 1, 100),
        ]

    def test_leaderboard_offset(self, populated):
        board = accounts.get_leaderboard(populated, GUILD, limit=10, offset=3)
        assert [(e.rank, e.user_id) for e in board] == [(4, 4)]

    def test_rank(self, populated):
        assert accounts.get_rank(populated, 2, GUILD) == 1
        assert accounts.get_rank(populated, 1, GUILD) == 3
        assert accounts.get_rank(populated, 99, GUILD) is None
