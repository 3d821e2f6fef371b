"""
tests/test_level_curve.py — Level Curve Tests
==============================================

Covers the three curve kinds, the early-level penalty, inverse
consistency, saturation at max level, progress/range helpers and the
monotonicity checks used at configuration load.
"""

from __future__ import annotations

import math

import pytest

from ensign.config import CurveConfig
from ensign.engine.curve import CurveKind, LevelCurve, build_level_curve
from ensign.errors import ConfigurationError


def _steep_early_curve() -> LevelCurve:
    """base 500, multiplier 1.75, exponential, max 50, early ≤10 × 1.8."""
    return LevelCurve(
        base_xp=500,
        multiplier=1.75,
        kind="exponential",
        max_level=50,
        early_level_threshold=10,
        early_level_penalty=1.8,
    )


class TestFormulas:
    def test_exponential_early_level_uses_penalised_multiplier(self):
        curve = _steep_early_curve()
        assert curve.effective_multiplier(1) == pytest.approx(3.15)
        assert curve.xp_for(1) == 500
        assert curve.xp_for(2) == math.floor(500 * 2 ** 3.15)

    def test_exponential_above_threshold_uses_plain_multiplier(self):
        curve = _steep_early_curve()
        assert curve.effective_multiplier(11) == 1.75
        assert curve.xp_for(11) == math.floor(500 * 11 ** 1.75)

    def test_linear(self):
        curve = LevelCurve(base_xp=100, multiplier=2, kind=CurveKind.LINEAR, max_level=20,
                           early_level_threshold=0)
        assert curve.xp_for(5) == 1000

    def test_logarithmic(self):
        curve = LevelCurve(base_xp=100, multiplier=1.5, kind="logarithmic", max_level=20,
                           early_level_threshold=0)
        assert curve.xp_for(3) == math.floor(100 * math.log(4) * 1.5 * 2)

    def test_xp_for_zero_and_negative(self):
        curve = LevelCurve()
        assert curve.xp_for(0) == 0
        assert curve.xp_for(-3) == 0


class TestEarlyPenalty:
    def test_threshold_of_level_one(self):
        curve = _steep_early_curve()
        assert curve.level_for(499) == 0
        assert curve.level_for(500) == 1

    def test_steep_early_penalty_fails_validation(self):
        """xp_for(11) drops below xp_for(10) once the early penalty stops applying."""
        curve = _steep_early_curve()
        assert curve.xp_for(11) < curve.xp_for(10)
        issues = curve.validate()
        assert any("xp_for(11)" in issue for issue in issues)
        assert any("self-check" in issue for issue in issues)

    def test_build_level_curve_rejects_steep_early_penalty(self):
        cfg = CurveConfig(early_level_penalty=1.8)
        with pytest.raises(ConfigurationError):
            build_level_curve(cfg)


class TestInverse:
    @pytest.mark.parametrize("kind", list(CurveKind))
    def test_shipped_defaults_are_strictly_increasing(self, kind):
        curve = LevelCurve(kind=kind)
        assert curve.validate() == []
        for level in range(curve.max_level):
            assert curve.xp_for(level + 1) > curve.xp_for(level)

    @pytest.mark.parametrize("kind", list(CurveKind))
    def test_level_for_xp_for_round_trip(self, kind):
        curve = LevelCurve(kind=kind)
        for level in range(curve.max_level + 1):
            assert curve.level_for(curve.xp_for(level)) == level

    def test_one_below_threshold_is_previous_level(self):
        curve = LevelCurve()
        for level in range(1, curve.max_level + 1):
            assert curve.level_for(curve.xp_for(level) - 1) == level - 1

    def test_zero_and_negative_xp_is_level_zero(self):
        curve = LevelCurve()
        assert curve.level_for(0) == 0
        assert curve.level_for(-100) == 0


class TestSaturation:
    def test_level_never_exceeds_max(self):
        curve = LevelCurve(max_level=5)
        assert curve.level_for(10 ** 12) == 5

    def test_xp_to_next_is_zero_at_max(self):
        curve = LevelCurve(max_level=5)
        assert curve.xp_to_next_level(curve.xp_for(5)) == 0
        assert curve.xp_to_next_level(10 ** 12) == 0

    def test_xp_to_next_below_max(self):
        curve = LevelCurve()
        assert curve.xp_to_next_level(0) == curve.xp_for(1)


class TestProgress:
    def test_midway_progress(self):
        curve = LevelCurve(base_xp=100, multiplier=1, kind="linear", max_level=10,
                           early_level_threshold=0)
        # level 1 at 100, level 2 at 200
        progress = curve.progress(150)
        assert progress.level == 1
        assert progress.current_level_xp == 100
        assert progress.next_level_xp == 200
        assert progress.progress_xp == 50
        assert progress.level_span == 100
        assert progress.percentage == 50.0
        assert progress.xp_to_next == 50
        assert not progress.is_max_level

    def test_progress_at_max_level(self):
        curve = LevelCurve(max_level=3)
        progress = curve.progress(curve.xp_for(3) + 10)
        assert progress.is_max_level
        assert progress.percentage == 100.0
        assert progress.xp_to_next == 0

    def test_progress_bar(self):
        assert LevelCurve.progress_bar(50, 10) == "█" * 5 + "░" * 5
        assert LevelCurve.progress_bar(150, 4) == "█" * 4
        assert LevelCurve.progress_bar(-5, 4) == "░" * 4


class TestRangeQueries:
    def test_level_range_is_clamped(self):
        curve = LevelCurve(max_level=5)
        pairs = curve.level_range(3, 10)
        assert [lvl for lvl, _ in pairs] == [3, 4, 5]
        assert pairs[0][1] == curve.xp_for(3)

    def test_levels_in_xp_range(self):
        curve = LevelCurve(base_xp=100, multiplier=1, kind="linear", max_level=10,
                           early_level_threshold=0)
        assert curve.levels_in_xp_range(150, 450) == [2, 3, 4]

    def test_xp_range_total(self):
        curve = LevelCurve()
        assert curve.xp_range_total(2, 5) == curve.xp_for(5) - curve.xp_for(2)
        assert curve.xp_range_total(5, 2) == 0

    def test_simulate_gain(self):
        curve = LevelCurve()
        sim = curve.simulate_gain(0, curve.xp_for(3))
        assert sim.old_level == 0
        assert sim.new_level == 3
        assert sim.levels_gained == 3
        assert sim.leveled_up

    def test_stats_reports_validity(self):
        stats = LevelCurve().stats()
        assert stats["is_valid"] is True
        assert 50 in stats["milestones"]
        assert stats["kind"] == "exponential"


class TestConstruction:
    @pytest.mark.parametrize("kwargs", [
        {"base_xp": 0},
        {"multiplier": -1},
        {"max_level": 0},
        {"kind": "quadratic"},
        {"early_level_threshold": -1},
        {"early_level_penalty": 0},
    ])
    def test_meaningless_parameters_raise(self, kwargs):
        with pytest.raises(ConfigurationError):
            LevelCurve(**kwargs)
