"""
ensign.config — YAML Configuration Loader
==========================================

Reads ``config.yaml`` once at startup and freezes every tunable into an
immutable :class:`EnsignConfig` tree.  Components receive the slice they
need through their constructors; nothing re-reads YAML or the environment
at request time.  Secrets (``DISCORD_TOKEN``, ``DATABASE_URL``) stay in
``.env``.

Validation policy:

* A malformed tier is skipped and reported; the rest of the config applies.
* A level curve that is not strictly increasing is rejected and replaced
  by the shipped default curve.
* Anything without a safe fallback (missing ``admin_role_id``, an XP range
  with min > max, …) raises :class:`~ensign.errors.ConfigurationError`.

Every skipped or replaced value is logged and collected in
:attr:`EnsignConfig.issues` so ``/xp-admin curve`` can show it.

Usage::

    from ensign.config import load_config

    cfg = load_config()                  # reads ./config.yaml by default
    print(cfg.daily_cap.base_cap)        # 15000
    print(cfg.sources["message"].cooldown_seconds)   # 60
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ensign.constants import (
    DEFAULT_AFK_PENALTY,
    DEFAULT_CURVE_BASE_XP,
    DEFAULT_CURVE_KIND,
    DEFAULT_CURVE_MULTIPLIER,
    DEFAULT_DAILY_CAP,
    DEFAULT_DAYLIGHT_UTC_OFFSET,
    DEFAULT_EARLY_LEVEL_PENALTY,
    DEFAULT_EARLY_LEVEL_THRESHOLD,
    DEFAULT_EXEMPT_MULTIPLIER,
    DEFAULT_MAX_LEVEL,
    DEFAULT_RESET_HOUR,
    DEFAULT_RESET_MINUTE,
    DEFAULT_RETENTION_DAYS,
    DEFAULT_SOURCE_SETTINGS,
    DEFAULT_STANDARD_UTC_OFFSET,
    DEFAULT_VOICE_MIN_MEMBERS,
    DEFAULT_VOICE_TICK_SECONDS,
)
from ensign.engine.clock import ResetClock
from ensign.engine.curve import build_level_curve
from ensign.engine.tiers import TierSlot, validate_tiers
from ensign.errors import ConfigurationError

logger = logging.getLogger(__name__)

XP_SOURCES: tuple[str, ...] = ("message", "reaction", "voice")


# ---------------------------------------------------------------------------
# Typed settings objects
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class CurveConfig:
    base_xp: float = DEFAULT_CURVE_BASE_XP
    multiplier: float = DEFAULT_CURVE_MULTIPLIER
    kind: str = DEFAULT_CURVE_KIND
    max_level: int = DEFAULT_MAX_LEVEL
    early_level_threshold: int = DEFAULT_EARLY_LEVEL_THRESHOLD
    early_level_penalty: float = DEFAULT_EARLY_LEVEL_PENALTY


@dataclass(frozen=True, slots=True)
class DailyCapConfig:
    base_cap: int = DEFAULT_DAILY_CAP
    tiers: tuple[TierSlot, ...] = ()
    reset_hour: int = DEFAULT_RESET_HOUR
    reset_minute: int = DEFAULT_RESET_MINUTE
    standard_utc_offset: int = DEFAULT_STANDARD_UTC_OFFSET
    daylight_utc_offset: int = DEFAULT_DAYLIGHT_UTC_OFFSET
    retention_days: int = DEFAULT_RETENTION_DAYS
    tier_issues: tuple[str, ...] = ()

    def clock(self) -> ResetClock:
        return ResetClock(
            reset_hour=self.reset_hour,
            reset_minute=self.reset_minute,
            standard_offset_hours=self.standard_utc_offset,
            daylight_offset_hours=self.daylight_utc_offset,
        )


@dataclass(frozen=True, slots=True)
class SourceConfig:
    """XP range and cooldown for one XP source."""

    xp_min: int
    xp_max: int
    cooldown_seconds: int


@dataclass(frozen=True, slots=True)
class VoiceConfig:
    min_members: int = DEFAULT_VOICE_MIN_MEMBERS
    tick_seconds: int = DEFAULT_VOICE_TICK_SECONDS
    anti_afk: bool = False
    afk_penalty: float = DEFAULT_AFK_PENALTY
    exempt_user_ids: frozenset[int] = frozenset()
    exempt_role_ids: frozenset[int] = frozenset()
    exempt_multiplier: float = DEFAULT_EXEMPT_MULTIPLIER


def _default_sources() -> dict[str, SourceConfig]:
    return {
        name: SourceConfig(xp_min=lo, xp_max=hi, cooldown_seconds=cd)
        for name, (lo, hi, cd) in DEFAULT_SOURCE_SETTINGS.items()
    }


@dataclass(frozen=True, slots=True)
class EnsignConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Discord / access
    admin_role_id: int
    bot_prefix: str = "!"

    # XP accounting
    xp_multiplier: float = 1.0
    curve: CurveConfig = field(default_factory=CurveConfig)
    daily_cap: DailyCapConfig = field(default_factory=DailyCapConfig)
    sources: Mapping[str, SourceConfig] = field(default_factory=_default_sources)
    voice: VoiceConfig = field(default_factory=VoiceConfig)

    # Problems found while loading (skipped tiers, rejected curve, …)
    issues: tuple[str, ...] = ()

    def source(self, name: str) -> SourceConfig:
        return self.sources[name]


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------
def _section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key) or {}
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"'{key}' must be a mapping, got {type(value).__name__}")
    return value


def _int(raw: Mapping[str, Any], key: str, default: int, where: str) -> int:
    value = raw.get(key, default)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{where}.{key} must be an integer, got {value!r}") from exc


def _float(raw: Mapping[str, Any], key: str, default: float, where: str) -> float:
    value = raw.get(key, default)
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{where}.{key} must be a number, got {value!r}") from exc


def _id_set(raw: Mapping[str, Any], key: str, where: str) -> frozenset[int]:
    values = raw.get(key) or []
    try:
        return frozenset(int(v) for v in values)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{where}.{key} must be a list of IDs") from exc


def _parse_curve(raw: Mapping[str, Any], issues: list[str]) -> CurveConfig:
    where = "level_curve"
    candidate = CurveConfig(
        base_xp=_float(raw, "base_xp", DEFAULT_CURVE_BASE_XP, where),
        multiplier=_float(raw, "multiplier", DEFAULT_CURVE_MULTIPLIER, where),
        kind=str(raw.get("kind", DEFAULT_CURVE_KIND)).lower(),
        max_level=_int(raw, "max_level", DEFAULT_MAX_LEVEL, where),
        early_level_threshold=_int(
            raw, "early_level_threshold", DEFAULT_EARLY_LEVEL_THRESHOLD, where,
        ),
        early_level_penalty=_float(
            raw, "early_level_penalty", DEFAULT_EARLY_LEVEL_PENALTY, where,
        ),
    )
    try:
        build_level_curve(candidate)
    except ConfigurationError as exc:
        message = f"{exc}; falling back to the default curve"
        logger.error("Configuration: %s", message)
        issues.append(message)
        return CurveConfig()
    return candidate


def _parse_daily_cap(raw: Mapping[str, Any], issues: list[str]) -> DailyCapConfig:
    where = "daily_cap"
    base_cap = _int(raw, "base_cap", DEFAULT_DAILY_CAP, where)
    if base_cap <= 0:
        raise ConfigurationError(f"{where}.base_cap must be positive, got {base_cap}")

    reset_hour = _int(raw, "reset_hour", DEFAULT_RESET_HOUR, where)
    reset_minute = _int(raw, "reset_minute", DEFAULT_RESET_MINUTE, where)
    if not 0 <= reset_hour <= 23 or not 0 <= reset_minute <= 59:
        raise ConfigurationError(
            f"{where}: reset time {reset_hour:02d}:{reset_minute:02d} is not a valid time of day"
        )

    retention_days = _int(raw, "retention_days", DEFAULT_RETENTION_DAYS, where)
    if retention_days < 1:
        raise ConfigurationError(f"{where}.retention_days must be at least 1")

    raw_tiers = raw.get("tiers") or []
    if not isinstance(raw_tiers, list):
        raise ConfigurationError(f"{where}.tiers must be a list")
    tiers, tier_issues = validate_tiers(
        (t if isinstance(t, Mapping) else {} for t in raw_tiers), base_cap,
    )
    issues.extend(tier_issues)

    return DailyCapConfig(
        base_cap=base_cap,
        tiers=tuple(tiers),
        reset_hour=reset_hour,
        reset_minute=reset_minute,
        standard_utc_offset=_int(
            raw, "standard_utc_offset", DEFAULT_STANDARD_UTC_OFFSET, where,
        ),
        daylight_utc_offset=_int(
            raw, "daylight_utc_offset", DEFAULT_DAYLIGHT_UTC_OFFSET, where,
        ),
        retention_days=retention_days,
        tier_issues=tuple(tier_issues),
    )


def _parse_sources(raw: Mapping[str, Any]) -> dict[str, SourceConfig]:
    sources: dict[str, SourceConfig] = {}
    for name in XP_SOURCES:
        lo, hi, cd = DEFAULT_SOURCE_SETTINGS[name]
        section = _section(raw, name)
        where = f"sources.{name}"
        cfg = SourceConfig(
            xp_min=_int(section, "xp_min", lo, where),
            xp_max=_int(section, "xp_max", hi, where),
            cooldown_seconds=_int(section, "cooldown_seconds", cd, where),
        )
        if cfg.xp_min < 0 or cfg.xp_max < cfg.xp_min:
            raise ConfigurationError(
                f"{where}: XP range {cfg.xp_min}..{cfg.xp_max} is invalid"
            )
        if cfg.cooldown_seconds <= 0:
            raise ConfigurationError(f"{where}.cooldown_seconds must be positive")
        sources[name] = cfg
    unknown = set(raw) - set(XP_SOURCES)
    if unknown:
        raise ConfigurationError(f"Unknown XP source(s) in config: {sorted(unknown)}")
    return sources


def _parse_voice(raw: Mapping[str, Any]) -> VoiceConfig:
    where = "voice"
    voice = VoiceConfig(
        min_members=_int(raw, "min_members", DEFAULT_VOICE_MIN_MEMBERS, where),
        tick_seconds=_int(raw, "tick_seconds", DEFAULT_VOICE_TICK_SECONDS, where),
        anti_afk=bool(raw.get("anti_afk", False)),
        afk_penalty=_float(raw, "afk_penalty", DEFAULT_AFK_PENALTY, where),
        exempt_user_ids=_id_set(raw, "exempt_user_ids", where),
        exempt_role_ids=_id_set(raw, "exempt_role_ids", where),
        exempt_multiplier=_float(raw, "exempt_multiplier", DEFAULT_EXEMPT_MULTIPLIER, where),
    )
    if voice.min_members < 1:
        raise ConfigurationError(f"{where}.min_members must be at least 1")
    if voice.tick_seconds <= 0:
        raise ConfigurationError(f"{where}.tick_seconds must be positive")
    if not 0 <= voice.afk_penalty <= 1:
        raise ConfigurationError(f"{where}.afk_penalty must be between 0 and 1")
    if voice.exempt_multiplier < 0:
        raise ConfigurationError(f"{where}.exempt_multiplier must not be negative")
    return voice


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def parse_config(raw: Mapping[str, Any] | None) -> EnsignConfig:
    """Build an :class:`EnsignConfig` from an already-parsed YAML mapping.

    Raises
    ------
    ConfigurationError
        If a required key is missing or a value has no safe fallback.
    """
    raw = raw or {}
    if raw.get("admin_role_id") in (None, ""):
        raise ConfigurationError("admin_role_id is required in config.yaml")

    issues: list[str] = []
    admin_role_id = _int(raw, "admin_role_id", 0, "config")

    xp_multiplier = _float(raw, "xp_multiplier", 1.0, "config")
    if xp_multiplier <= 0:
        raise ConfigurationError(f"xp_multiplier must be positive, got {xp_multiplier}")

    sources = _parse_sources(_section(raw, "sources"))
    voice = _parse_voice(_section(raw, "voice"))
    # Voice ticks drift, so the cooldown has to fit inside one tick
    if sources["voice"].cooldown_seconds >= voice.tick_seconds:
        raise ConfigurationError(
            f"sources.voice.cooldown_seconds ({sources['voice'].cooldown_seconds}) "
            f"must be shorter than voice.tick_seconds ({voice.tick_seconds})"
        )

    cfg = EnsignConfig(
        admin_role_id=admin_role_id,
        bot_prefix=str(raw.get("bot_prefix", "!")),
        xp_multiplier=xp_multiplier,
        curve=_parse_curve(_section(raw, "level_curve"), issues),
        daily_cap=_parse_daily_cap(_section(raw, "daily_cap"), issues),
        sources=sources,
        voice=voice,
        issues=tuple(issues),
    )
    if issues:
        logger.warning("Configuration loaded with %d issue(s)", len(issues))
    return cfg


def load_config(path: str | Path = "config.yaml") -> EnsignConfig:
    """Read *path* and return an :class:`EnsignConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    ConfigurationError
        If a required key is missing or a value is unusable.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    if raw is not None and not isinstance(raw, Mapping):
        raise ConfigurationError(f"{config_path} must contain a YAML mapping")
    return parse_config(raw)
