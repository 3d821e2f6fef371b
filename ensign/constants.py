"""
ensign.constants — Shipped Defaults & Shared Constants
=======================================================

Single source of truth for default tunables and presentation constants.
``config.yaml`` overrides the defaults; nothing else should hard-code them.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Daily cap & reset boundary
# ---------------------------------------------------------------------------
DEFAULT_DAILY_CAP = 15_000
DEFAULT_RESET_HOUR = 19
DEFAULT_RESET_MINUTE = 35
DEFAULT_STANDARD_UTC_OFFSET = -5   # Eastern Standard Time
DEFAULT_DAYLIGHT_UTC_OFFSET = -4   # Eastern Daylight Time
DEFAULT_RETENTION_DAYS = 30
TIER_RANKS = range(1, 11)

# ---------------------------------------------------------------------------
# Level curve
# ---------------------------------------------------------------------------
DEFAULT_CURVE_BASE_XP = 500
DEFAULT_CURVE_MULTIPLIER = 1.75
DEFAULT_CURVE_KIND = "exponential"
DEFAULT_MAX_LEVEL = 50
DEFAULT_EARLY_LEVEL_THRESHOLD = 10
DEFAULT_EARLY_LEVEL_PENALTY = 1.0
SELF_CHECK_LEVEL = 10

# ---------------------------------------------------------------------------
# Per-source XP ranges & cooldowns: (xp_min, xp_max, cooldown_seconds)
# ---------------------------------------------------------------------------
DEFAULT_SOURCE_SETTINGS: dict[str, tuple[int, int, int]] = {
    "message": (75, 100, 60),
    "reaction": (75, 100, 300),
    "voice": (250, 350, 240),   # Shorter than the voice tick
}

# ---------------------------------------------------------------------------
# Voice presence
# ---------------------------------------------------------------------------
DEFAULT_VOICE_MIN_MEMBERS = 2
DEFAULT_VOICE_TICK_SECONDS = 300
DEFAULT_AFK_PENALTY = 0.25
DEFAULT_EXEMPT_MULTIPLIER = 1.0

# ---------------------------------------------------------------------------
# Presentation (used by embeds)
# ---------------------------------------------------------------------------
RANK_BADGES: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉

SOURCE_EMOJI: dict[str, str] = {
    "message": "\U0001f4ac",   # 💬
    "reaction": "\U0001f44d",  # 👍
    "voice": "\U0001f3a4",     # 🎤
    "admin": "\U0001f6e1",     # 🛡
}

PROGRESS_FILLED = "█"  # █
PROGRESS_EMPTY = "░"   # ░
LEADERBOARD_SIZE = 10

# ---------------------------------------------------------------------------
# Guild settings allow list (columns an admin may change)
# ---------------------------------------------------------------------------
ALLOWED_GUILD_SETTING_FIELDS: set[str] = {
    "levelup_channel_id",
    "levelup_enabled",
    "xp_log_channel_id",
    "xp_log_enabled",
}
