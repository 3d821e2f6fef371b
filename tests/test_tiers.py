"""
tests/test_tiers.py — Role Tier Resolution Tests
=================================================

Highest-rank-wins precedence, the no-tier fallback, and load-time
validation of raw tier mappings.
"""

from __future__ import annotations

from ensign.engine.tiers import TierResolver, validate_tiers

from conftest import TIER_2_ROLE, TIER_5_ROLE, TIER_7_ROLE, make_tiers


class TestResolve:
    def test_highest_rank_wins(self):
        resolver = TierResolver(make_tiers((3, 303, 20000), (7, 707, 30000)), 15000)
        resolution = resolver.resolve({303, 707})
        assert resolution.tier == 7
        assert resolution.role_id == 707
        assert resolution.cap == 30000

    def test_member_with_tier_two_and_five(self, resolver):
        resolution = resolver.resolve([TIER_2_ROLE, TIER_5_ROLE, 123])
        assert resolution.tier == 5
        assert resolution.cap == 25000
        assert resolution.role_id == TIER_5_ROLE

    def test_no_tier_role_uses_base_cap(self, resolver):
        resolution = resolver.resolve({42, 43})
        assert resolution.tier == 0
        assert resolution.role_id is None
        assert resolution.cap == 15000
        assert not resolution.has_tier

    def test_tiers_ordered_highest_first(self, resolver):
        assert [slot.role_id for slot in resolver.tiers] == [TIER_7_ROLE, TIER_5_ROLE, TIER_2_ROLE]


class TestValidateTiers:
    def test_valid_tiers_pass(self):
        slots, issues = validate_tiers(
            [{"rank": 1, "role_id": "11", "cap": 16000}, {"rank": 2, "role_id": 22, "cap": 17000}],
            15000,
        )
        assert [(s.rank, s.role_id, s.cap) for s in slots] == [(1, 11, 16000), (2, 22, 17000)]
        assert issues == []

    def test_cap_below_base_is_ignored(self):
        slots, issues = validate_tiers([{"rank": 1, "role_id": 11, "cap": 14000}], 15000)
        assert slots == []
        assert "below the base cap" in issues[0]

    def test_cap_equal_to_base_is_kept_with_warning(self):
        slots, issues = validate_tiers([{"rank": 1, "role_id": 11, "cap": 15000}], 15000)
        assert len(slots) == 1
        assert "no effect" in issues[0]

    def test_duplicate_rank_keeps_first(self):
        slots, issues = validate_tiers(
            [{"rank": 4, "role_id": 1, "cap": 20000}, {"rank": 4, "role_id": 2, "cap": 21000}],
            15000,
        )
        assert [s.role_id for s in slots] == [1]
        assert "duplicate" in issues[0]

    def test_rank_out_of_range(self):
        slots, issues = validate_tiers([{"rank": 11, "role_id": 1, "cap": 20000}], 15000)
        assert slots == []
        assert len(issues) == 1

    def test_half_configured_slots(self):
        slots, issues = validate_tiers(
            [{"rank": 1, "cap": 20000}, {"rank": 2, "role_id": 5}], 15000,
        )
        assert slots == []
        assert len(issues) == 2

    def test_empty_slot_is_silently_skipped(self):
        slots, issues = validate_tiers([{"rank": 3, "role_id": None, "cap": None}], 15000)
        assert slots == []
        assert issues == []

    def test_non_integer_values(self):
        slots, issues = validate_tiers(
            [{"rank": "x", "role_id": 1, "cap": 1}, {"rank": 1, "role_id": "abc", "cap": 20000}],
            15000,
        )
        assert slots == []
        assert len(issues) == 2
