"""
ensign.engine.results — Result records
=======================================

Plain frozen dataclasses handed back from the core to the cogs.  Business
outcomes such as "cooldown active" or "daily cap reached" are values of
:class:`AwardOutcome`, never exceptions.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class AwardOutcome(enum.StrEnum):
    """Why an inbound event did (or did not) produce XP."""
    AWARDED = "awarded"
    COOLDOWN = "cooldown"
    CAP_REACHED = "cap_reached"
    INSUFFICIENT_MEMBERS = "insufficient_members"
    ADMIN_ADJUSTED = "admin_adjusted"


@dataclass(frozen=True, slots=True)
class CapCheck:
    """Answer to "may this user gain more XP today?"."""

    allowed: bool
    current_xp: int
    daily_cap: int
    remaining: int
    tier: int = 0
    tier_role_id: int | None = None

    @property
    def percentage(self) -> float:
        if self.daily_cap <= 0:
            return 100.0
        return round(min(100.0, self.current_xp / self.daily_cap * 100), 2)


@dataclass(frozen=True, slots=True)
class DailyCapSnapshot:
    """Daily-cap state attached to every outbound result."""

    used: int
    cap: int
    remaining: int
    tier: int

    @classmethod
    def build(cls, used: int, cap: int, tier: int) -> DailyCapSnapshot:
        return cls(used=used, cap=cap, remaining=max(cap - used, 0), tier=tier)

    @property
    def is_at_cap(self) -> bool:
        return self.used >= self.cap


@dataclass(frozen=True, slots=True)
class AwardResult:
    """Outcome of :meth:`XPAwardCoordinator.award`."""

    awarded: int
    total_xp: int
    old_level: int
    new_level: int
    daily: DailyCapSnapshot | None = None

    @property
    def leveled_up(self) -> bool:
        return self.new_level != self.old_level


@dataclass(frozen=True, slots=True)
class XPEventResult:
    """What every inbound handler returns to the presentation layer."""

    outcome: AwardOutcome
    xp_awarded: int = 0
    total_xp: int | None = None
    level: int | None = None
    old_level: int | None = None
    leveled_up: bool = False
    daily: DailyCapSnapshot | None = None

    @property
    def awarded(self) -> bool:
        return self.outcome in (AwardOutcome.AWARDED, AwardOutcome.ADMIN_ADJUSTED)

    @classmethod
    def from_award(
        cls, result: AwardResult, outcome: AwardOutcome = AwardOutcome.AWARDED,
    ) -> XPEventResult:
        return cls(
            outcome=outcome,
            xp_awarded=result.awarded,
            total_xp=result.total_xp,
            level=result.new_level,
            old_level=result.old_level,
            leveled_up=result.leveled_up,
            daily=result.daily,
        )
