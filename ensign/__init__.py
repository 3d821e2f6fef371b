"""
Ensign — XP Accounting & Daily-Cap Bot for Discord
===================================================
Awards experience points for messages, reactions and voice presence,
turns lifetime XP into levels on a configurable curve, and enforces a
rolling daily XP cap with per-role tier overrides.

Package layout::

    ensign/
    ├── config.py          # YAML → frozen, validated config tree
    ├── errors.py          # ConfigurationError / StorageUnavailable / InvalidInput
    ├── constants.py       # Shipped defaults + presentation constants
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async bridge
    │   └── models.py      # user_levels, daily_xp, voice_sessions, guild_settings
    ├── engine/            # Pure logic, no I/O
    │   ├── curve.py       # LevelCurve
    │   ├── clock.py       # Effective-day boundary (fixed zone + DST)
    │   ├── tiers.py       # Role tier → daily cap resolution
    │   ├── cooldown.py    # Per (guild, user, source) rate limiter
    │   ├── rewards.py     # XP rolls, AFK penalty, global multiplier
    │   └── results.py     # Result records handed to the presentation layer
    ├── services/
    │   ├── accounts.py    # Lifetime XP account persistence (atomic upserts)
    │   ├── ledger.py      # DailyCapLedger
    │   ├── award.py       # XPAwardCoordinator
    │   ├── xp_service.py  # Async inbound entry points used by the cogs
    │   ├── voice_sessions.py
    │   ├── guild_settings.py
    │   ├── embeds.py
    │   └── announcements.py
    └── bot/
        ├── core.py        # Bot subclass, cog loader
        └── cogs/          # messages, reactions, voice, admin, meta, tasks
"""

__version__ = "0.1.0"
