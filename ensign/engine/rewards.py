"""
ensign.engine.rewards — XP amount calculation
==============================================

Per-source random rolls, the voice AFK penalty, and the global multiplier.
All pure; the random source is injectable for tests.
"""

from __future__ import annotations

import math
import random
from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ensign.config import SourceConfig, VoiceConfig


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def roll_base_xp(source: SourceConfig, rng: random.Random | None = None) -> int:
    """Uniform integer roll in ``[xp_min, xp_max]`` for one event."""
    return (rng or random).randint(source.xp_min, source.xp_max)


def is_afk_exempt(user_id: int, role_ids: Iterable[int], voice: VoiceConfig) -> bool:
    if user_id in voice.exempt_user_ids:
        return True
    return any(role in voice.exempt_role_ids for role in role_ids)


def apply_afk_penalty(
    amount: int,
    *,
    user_id: int,
    role_ids: Iterable[int],
    is_suppressed: bool,
    voice: VoiceConfig,
) -> int:
    """Scale voice XP for a muted/deafened member.

    Only applies when anti-AFK is enabled.  Exempt users and roles get the
    exemption multiplier instead of the penalty.
    """
    if not voice.anti_afk or not is_suppressed:
        return amount
    if is_afk_exempt(user_id, role_ids, voice):
        return _round_half_up(amount * voice.exempt_multiplier)
    return _round_half_up(amount * voice.afk_penalty)


def apply_global_multiplier(amount: int, multiplier: float) -> int:
    """Scale *amount* by the global multiplier, rounding half up."""
    return _round_half_up(amount * multiplier)
