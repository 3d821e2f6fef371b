"""
ensign.engine.curve — Level Curve
==================================

Pure mapping between cumulative XP and level.  Three curve shapes are
supported, and the first ``early_level_threshold`` levels can be made
harder (or easier) with an extra ``early_level_penalty`` factor::

    exponential  required = floor(base * level ** m)
    linear       required = floor(base * level * m)
    logarithmic  required = floor(base * ln(level + 1) * m * 2)

where ``m = multiplier * early_level_penalty`` for levels at or below the
threshold and ``m = multiplier`` above it.

Thresholds for ``0..max_level`` are computed once at construction time;
every lookup after that is a scan over a small list.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ensign.constants import (
    DEFAULT_CURVE_BASE_XP,
    DEFAULT_CURVE_KIND,
    DEFAULT_CURVE_MULTIPLIER,
    DEFAULT_EARLY_LEVEL_PENALTY,
    DEFAULT_EARLY_LEVEL_THRESHOLD,
    DEFAULT_MAX_LEVEL,
    PROGRESS_EMPTY,
    PROGRESS_FILLED,
    SELF_CHECK_LEVEL,
)
from ensign.errors import ConfigurationError

if TYPE_CHECKING:
    from ensign.config import CurveConfig


class CurveKind(enum.StrEnum):
    """Shape of the XP-per-level curve."""
    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    LOGARITHMIC = "logarithmic"


# ---------------------------------------------------------------------------
# Result records
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class LevelProgress:
    """Where a total XP value sits inside its level."""

    level: int
    total_xp: int
    current_level_xp: int   # threshold of the current level
    next_level_xp: int      # threshold of the next level (== current at max)
    progress_xp: int        # XP earned since reaching the current level
    level_span: int         # XP between current and next threshold
    percentage: float       # 0.0 – 100.0
    xp_to_next: int
    is_max_level: bool


@dataclass(frozen=True, slots=True)
class GainSimulation:
    """Outcome of a hypothetical XP gain."""

    current_xp: int
    gain: int
    new_xp: int
    old_level: int
    new_level: int
    levels_gained: int

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level


# ---------------------------------------------------------------------------
# LevelCurve
# ---------------------------------------------------------------------------
class LevelCurve:
    """XP ↔ level calculator.

    Construction only rejects parameters that make the formula itself
    meaningless.  A curve that is not strictly increasing can still be
    built (and inspected with :meth:`validate`); use
    :func:`build_level_curve` on the configuration path, which refuses it.
    """

    def __init__(
        self,
        base_xp: float = DEFAULT_CURVE_BASE_XP,
        multiplier: float = DEFAULT_CURVE_MULTIPLIER,
        kind: CurveKind | str = DEFAULT_CURVE_KIND,
        max_level: int = DEFAULT_MAX_LEVEL,
        early_level_threshold: int = DEFAULT_EARLY_LEVEL_THRESHOLD,
        early_level_penalty: float = DEFAULT_EARLY_LEVEL_PENALTY,
    ) -> None:
        try:
            self.kind = CurveKind(kind)
        except ValueError as exc:
            raise ConfigurationError(f"Unknown curve kind: {kind!r}") from exc
        if base_xp <= 0:
            raise ConfigurationError(f"base_xp must be positive, got {base_xp}")
        if multiplier <= 0:
            raise ConfigurationError(f"multiplier must be positive, got {multiplier}")
        if max_level <= 0:
            raise ConfigurationError(f"max_level must be positive, got {max_level}")
        if early_level_threshold < 0:
            raise ConfigurationError(
                f"early_level_threshold must not be negative, got {early_level_threshold}"
            )
        if early_level_penalty <= 0:
            raise ConfigurationError(
                f"early_level_penalty must be positive, got {early_level_penalty}"
            )

        self.base_xp = base_xp
        self.multiplier = multiplier
        self.max_level = max_level
        self.early_level_threshold = early_level_threshold
        self.early_level_penalty = early_level_penalty

        # thresholds[L] == xp_for(L) for L in 0..max_level
        self._thresholds: list[int] = [self._required(lvl) for lvl in range(max_level + 1)]

    @classmethod
    def from_config(cls, cfg: CurveConfig) -> LevelCurve:
        return cls(
            base_xp=cfg.base_xp,
            multiplier=cfg.multiplier,
            kind=cfg.kind,
            max_level=cfg.max_level,
            early_level_threshold=cfg.early_level_threshold,
            early_level_penalty=cfg.early_level_penalty,
        )

    def __repr__(self) -> str:
        return (
            f"LevelCurve(kind={self.kind.value}, base_xp={self.base_xp}, "
            f"multiplier={self.multiplier}, max_level={self.max_level}, "
            f"early={self.early_level_threshold}x{self.early_level_penalty})"
        )

    # -------------------------------------------------------------------
    # Formula
    # -------------------------------------------------------------------
    def effective_multiplier(self, level: int) -> float:
        if level <= self.early_level_threshold:
            return self.multiplier * self.early_level_penalty
        return self.multiplier

    def _required(self, level: int) -> int:
        if level <= 0:
            return 0
        m = self.effective_multiplier(level)
        if self.kind is CurveKind.EXPONENTIAL:
            return math.floor(self.base_xp * level ** m)
        if self.kind is CurveKind.LINEAR:
            return math.floor(self.base_xp * level * m)
        return math.floor(self.base_xp * math.log(level + 1) * m * 2)

    # -------------------------------------------------------------------
    # Core lookups
    # -------------------------------------------------------------------
    def xp_for(self, level: int) -> int:
        """Cumulative XP required to reach *level* (``xp_for(0) == 0``)."""
        if level <= 0:
            return 0
        if level <= self.max_level:
            return self._thresholds[level]
        return self._required(level)

    def level_for(self, total_xp: int) -> int:
        """Level reached with *total_xp* cumulative XP, saturating at ``max_level``."""
        if total_xp <= 0:
            return 0
        for level in range(1, self.max_level + 1):
            if total_xp < self._thresholds[level]:
                return level - 1
        return self.max_level

    def xp_to_next_level(self, total_xp: int) -> int:
        level = self.level_for(total_xp)
        if level >= self.max_level:
            return 0
        return max(0, self.xp_for(level + 1) - max(total_xp, 0))

    def progress(self, total_xp: int) -> LevelProgress:
        """Progress-within-level breakdown for *total_xp*."""
        total_xp = max(total_xp, 0)
        level = self.level_for(total_xp)
        current = self.xp_for(level)
        if level >= self.max_level:
            return LevelProgress(
                level=level,
                total_xp=total_xp,
                current_level_xp=current,
                next_level_xp=current,
                progress_xp=total_xp - current,
                level_span=0,
                percentage=100.0,
                xp_to_next=0,
                is_max_level=True,
            )

        nxt = self.xp_for(level + 1)
        span = max(nxt - current, 0)
        earned = max(total_xp - current, 0)
        pct = min(100.0, earned / span * 100) if span else 100.0
        return LevelProgress(
            level=level,
            total_xp=total_xp,
            current_level_xp=current,
            next_level_xp=nxt,
            progress_xp=earned,
            level_span=span,
            percentage=round(pct, 2),
            xp_to_next=max(nxt - total_xp, 0),
            is_max_level=False,
        )

    # -------------------------------------------------------------------
    # Range queries
    # -------------------------------------------------------------------
    def level_range(self, start: int, end: int) -> list[tuple[int, int]]:
        """``(level, xp_required)`` pairs for levels *start*..*end*, clamped to the curve."""
        lo = max(start, 0)
        hi = min(end, self.max_level)
        return [(lvl, self.xp_for(lvl)) for lvl in range(lo, hi + 1)]

    def levels_in_xp_range(self, min_xp: int, max_xp: int) -> list[int]:
        """Levels whose threshold falls inside ``[min_xp, max_xp]``."""
        return [
            lvl for lvl in range(1, self.max_level + 1)
            if min_xp <= self._thresholds[lvl] <= max_xp
        ]

    def xp_range_total(self, start_level: int, end_level: int) -> int:
        """XP needed to climb from *start_level* to *end_level*."""
        return max(0, self.xp_for(end_level) - self.xp_for(start_level))

    def simulate_gain(self, current_xp: int, gain: int) -> GainSimulation:
        new_xp = max(current_xp + gain, 0)
        old_level = self.level_for(current_xp)
        new_level = self.level_for(new_xp)
        return GainSimulation(
            current_xp=current_xp,
            gain=gain,
            new_xp=new_xp,
            old_level=old_level,
            new_level=new_level,
            levels_gained=new_level - old_level,
        )

    # -------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------
    def formula_info(self) -> str:
        m = self.multiplier
        early = self.multiplier * self.early_level_penalty
        if self.kind is CurveKind.EXPONENTIAL:
            shape = f"{self.base_xp} × level^{m}"
        elif self.kind is CurveKind.LINEAR:
            shape = f"{self.base_xp} × level × {m}"
        else:
            shape = f"{self.base_xp} × ln(level + 1) × {m} × 2"
        if self.early_level_penalty != 1 and self.early_level_threshold > 0:
            shape += f" (levels ≤ {self.early_level_threshold} use {early:g})"
        return shape

    def stats(self) -> dict:
        """Summary used by the admin embed and the self-check."""
        milestones = [lvl for lvl in (1, 5, 10, 25, 50, 75, 100) if lvl <= self.max_level]
        return {
            "kind": self.kind.value,
            "formula": self.formula_info(),
            "max_level": self.max_level,
            "xp_for_max_level": self.xp_for(self.max_level),
            "milestones": {lvl: self.xp_for(lvl) for lvl in milestones},
            "is_valid": not self.validate(),
        }

    def validate(self) -> list[str]:
        """Return a list of problems with this curve (empty means usable).

        Checks strict monotonicity of the threshold table and the
        round-trip self-check at level 10.
        """
        issues: list[str] = []
        for lvl in range(1, self.max_level + 1):
            prev, cur = self._thresholds[lvl - 1], self._thresholds[lvl]
            if cur <= prev:
                issues.append(
                    f"xp_for({lvl})={cur} is not greater than xp_for({lvl - 1})={prev}"
                )
        if self.max_level >= SELF_CHECK_LEVEL:
            back = self.level_for(self.xp_for(SELF_CHECK_LEVEL))
            if back != SELF_CHECK_LEVEL:
                issues.append(
                    f"self-check failed: level_for(xp_for({SELF_CHECK_LEVEL})) == {back}"
                )
        return issues

    @staticmethod
    def progress_bar(percentage: float, length: int = 20) -> str:
        pct = min(max(percentage, 0.0), 100.0)
        filled = round(length * pct / 100)
        return PROGRESS_FILLED * filled + PROGRESS_EMPTY * (length - filled)


def build_level_curve(cfg: CurveConfig) -> LevelCurve:
    """Build a curve from configuration, refusing one that is not strictly increasing.

    Raises
    ------
    ConfigurationError
        If the parameters are meaningless or the threshold table is not
        strictly increasing (which would make ``level_for`` ill-defined).
    """
    curve = LevelCurve.from_config(cfg)
    issues = curve.validate()
    if issues:
        raise ConfigurationError(
            f"Level curve {curve!r} rejected: " + "; ".join(issues[:3])
        )
    return curve
