"""
ensign.services.award — XP Award Coordinator
=============================================

The single path by which XP enters a member's lifetime account:

1. scale the raw amount by the global multiplier (the only place it happens),
2. record it on today's ledger row (non-clipping, cap already checked),
3. add it to the lifetime account and bump the source counter by one,
4. recompute the level from the new total,
5. persist the level if it changed and report the level-up.

The coordinator trusts its caller for the allow decision.  Storage errors
propagate as :class:`~ensign.errors.StorageUnavailable`; when the account
write fails no level-up is ever reported.  A ledger write followed by a
failed account write is not rolled back (the two live in separate
transactions); the event is logged and dropped by the caller.

Synchronous; call through ``run_db``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import Engine

from ensign.database.models import CAPPED_SOURCES, XPSource
from ensign.engine.curve import LevelCurve
from ensign.engine.results import AwardResult, DailyCapSnapshot
from ensign.engine.rewards import apply_global_multiplier
from ensign.errors import InvalidInput
from ensign.services import accounts
from ensign.services.accounts import AccountTotals
from ensign.services.ledger import DailyCapLedger

logger = logging.getLogger(__name__)


class XPAwardCoordinator:
    """Orchestrates one award end-to-end."""

    def __init__(
        self,
        engine: Engine,
        ledger: DailyCapLedger,
        curve: LevelCurve,
        xp_multiplier: float = 1.0,
    ) -> None:
        self.engine = engine
        self.ledger = ledger
        self.curve = curve
        self.xp_multiplier = xp_multiplier

    def award(
        self,
        user_id: int,
        guild_id: int,
        raw_amount: int,
        source: XPSource | str,
        role_ids: Iterable[int],
        now: datetime | None = None,
    ) -> AwardResult:
        """Grant *raw_amount* (before the global multiplier) from *source*.

        Raises
        ------
        InvalidInput
            Negative amount or a source that is not message/reaction/voice.
        StorageUnavailable
            The database could not be reached.
        """
        if raw_amount < 0:
            raise InvalidInput(f"XP amount must not be negative, got {raw_amount}")
        try:
            parsed = XPSource(source)
        except ValueError as exc:
            raise InvalidInput(f"unknown XP source: {source!r}") from exc
        if parsed not in CAPPED_SOURCES:
            raise InvalidInput(f"use an admin adjustment for source {parsed.value!r}")

        roles = frozenset(role_ids)
        amount = apply_global_multiplier(raw_amount, self.xp_multiplier)

        daily_total = self.ledger.add_xp(user_id, guild_id, amount, parsed, roles, now=now)
        totals = accounts.apply_award(self.engine, user_id, guild_id, amount, parsed)
        old_level, new_level = self._sync_level(user_id, guild_id, totals)

        tier = self.ledger.tier_for(roles)
        result = AwardResult(
            awarded=amount,
            total_xp=totals.total_xp,
            old_level=old_level,
            new_level=new_level,
            daily=DailyCapSnapshot.build(used=daily_total, cap=tier.cap, tier=tier.tier),
        )
        logger.info(
            "Awarded %d %s XP to user %s in guild %s (total %d, level %d%s, daily %d/%d)",
            amount, parsed.value, user_id, guild_id, totals.total_xp, new_level,
            " ↑" if result.leveled_up else "", daily_total, tier.cap,
        )
        return result

    # -------------------------------------------------------------------
    # Admin paths — lifetime account only, no ledger, no multiplier
    # -------------------------------------------------------------------
    def adjust(self, user_id: int, guild_id: int, delta: int) -> AwardResult:
        """Apply a signed admin delta (clamped at zero total)."""
        totals = accounts.adjust_xp(self.engine, user_id, guild_id, delta)
        old_level, new_level = self._sync_level(user_id, guild_id, totals)
        return AwardResult(
            awarded=delta,
            total_xp=totals.total_xp,
            old_level=old_level,
            new_level=new_level,
        )

    def set_total(self, user_id: int, guild_id: int, total_xp: int) -> AwardResult:
        totals = accounts.set_xp(self.engine, user_id, guild_id, total_xp)
        old_level, new_level = self._sync_level(user_id, guild_id, totals)
        return AwardResult(
            awarded=0,
            total_xp=totals.total_xp,
            old_level=old_level,
            new_level=new_level,
        )

    # -------------------------------------------------------------------
    # Level bookkeeping
    # -------------------------------------------------------------------
    def _sync_level(
        self, user_id: int, guild_id: int, totals: AccountTotals,
    ) -> tuple[int, int]:
        old_level = totals.stored_level
        new_level = self.curve.level_for(totals.total_xp)
        if new_level != old_level:
            accounts.store_level(
                self.engine, user_id, guild_id, new_level, expected_total=totals.total_xp,
            )
            if new_level > old_level:
                logger.info(
                    "Level up: user %s in guild %s %d → %d",
                    user_id, guild_id, old_level, new_level,
                )
        return old_level, new_level
