"""
ensign.engine.tiers — Role Tier Resolution
===========================================

A guild may configure up to ten ranked tiers, each linking a Discord role
to a raised daily XP cap.  A member gets exactly one tier: the highest
rank whose role they hold.  Tiers never stack.

Validation lives here too but runs at configuration load only; the
resolver itself trusts the slots it is handed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ensign.constants import TIER_RANKS

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TierSlot:
    """One configured tier: rank 1–10, a role, and the cap that role grants."""

    rank: int
    role_id: int
    cap: int


@dataclass(frozen=True, slots=True)
class TierResolution:
    """The tier in effect for one member.  ``tier == 0`` means no tier role."""

    tier: int
    role_id: int | None
    cap: int

    @property
    def has_tier(self) -> bool:
        return self.tier > 0


class TierResolver:
    """Pure role-set → (tier, role, cap) lookup."""

    def __init__(self, tiers: Iterable[TierSlot], base_cap: int) -> None:
        self.base_cap = base_cap
        # Highest rank first; one slot per rank
        by_rank: dict[int, TierSlot] = {}
        for slot in tiers:
            by_rank[slot.rank] = slot
        self._ordered: tuple[TierSlot, ...] = tuple(
            by_rank[rank] for rank in sorted(by_rank, reverse=True)
        )

    @property
    def tiers(self) -> tuple[TierSlot, ...]:
        return self._ordered

    def resolve(self, role_ids: Iterable[int]) -> TierResolution:
        roles = role_ids if isinstance(role_ids, (set, frozenset)) else set(role_ids)
        for slot in self._ordered:
            if slot.role_id in roles:
                return TierResolution(tier=slot.rank, role_id=slot.role_id, cap=slot.cap)
        return TierResolution(tier=0, role_id=None, cap=self.base_cap)


# ---------------------------------------------------------------------------
# Load-time validation
# ---------------------------------------------------------------------------
def validate_tiers(
    raw_tiers: Iterable[dict], base_cap: int,
) -> tuple[list[TierSlot], list[str]]:
    """Turn raw tier mappings into valid :class:`TierSlot` objects.

    Malformed slots are skipped, never raised: a broken tier should not
    take the whole bot down.  Returns ``(slots, issues)``.
    """
    slots: list[TierSlot] = []
    issues: list[str] = []
    seen: set[int] = set()

    for raw in raw_tiers:
        rank = raw.get("rank")
        role_id = raw.get("role_id")
        cap = raw.get("cap")

        try:
            rank = int(rank)
        except (TypeError, ValueError):
            issues.append(f"tier with invalid rank {rank!r} ignored")
            continue
        if rank not in TIER_RANKS:
            issues.append(f"tier {rank}: rank must be between 1 and 10, ignored")
            continue
        if rank in seen:
            issues.append(f"tier {rank}: duplicate rank, later entry ignored")
            continue
        if role_id in (None, "") and cap in (None, ""):
            continue
        if role_id in (None, ""):
            issues.append(f"tier {rank}: cap configured without a role, ignored")
            continue
        if cap in (None, ""):
            issues.append(f"tier {rank}: role configured without a cap, ignored")
            continue
        try:
            role_id, cap = int(role_id), int(cap)
        except (TypeError, ValueError):
            issues.append(f"tier {rank}: role_id and cap must be integers, ignored")
            continue
        if cap < base_cap:
            issues.append(
                f"tier {rank}: cap {cap} is below the base cap {base_cap}, ignored"
            )
            continue
        if cap == base_cap:
            issues.append(f"tier {rank}: cap {cap} equals the base cap and has no effect")

        seen.add(rank)
        slots.append(TierSlot(rank=rank, role_id=role_id, cap=cap))

    for issue in issues:
        logger.warning("Tier configuration: %s", issue)
    return slots, issues
