"""
ensign.services.guild_settings — Per-guild presentation settings
=================================================================

Level-up and XP-log channel routing.  Only the columns in
:data:`~ensign.constants.ALLOWED_GUILD_SETTING_FIELDS` may be changed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import Engine

from ensign.constants import ALLOWED_GUILD_SETTING_FIELDS
from ensign.database.engine import get_session
from ensign.database.models import GuildSettings
from ensign.errors import InvalidInput

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GuildSettingsView:
    guild_id: int
    levelup_channel_id: int | None = None
    levelup_enabled: bool = True
    xp_log_channel_id: int | None = None
    xp_log_enabled: bool = False


def _view(row: GuildSettings) -> GuildSettingsView:
    return GuildSettingsView(
        guild_id=row.guild_id,
        levelup_channel_id=row.levelup_channel_id,
        levelup_enabled=row.levelup_enabled,
        xp_log_channel_id=row.xp_log_channel_id,
        xp_log_enabled=row.xp_log_enabled,
    )


def get_guild_settings(engine: Engine, guild_id: int) -> GuildSettingsView:
    """Stored settings, or the defaults if the guild never changed any."""
    with get_session(engine) as session:
        row = session.get(GuildSettings, guild_id)
        return _view(row) if row is not None else GuildSettingsView(guild_id=guild_id)


def update_guild_settings(engine: Engine, guild_id: int, /, **fields) -> GuildSettingsView:
    """Update allow-listed columns, creating the row on first use.

    Raises
    ------
    InvalidInput
        If *fields* is empty or names a column outside the allow list.
    """
    if not fields:
        raise InvalidInput("no guild settings to update")
    unknown = set(fields) - ALLOWED_GUILD_SETTING_FIELDS
    if unknown:
        raise InvalidInput(f"unknown guild setting(s): {sorted(unknown)}")

    with get_session(engine) as session:
        row = session.get(GuildSettings, guild_id)
        if row is None:
            row = GuildSettings(guild_id=guild_id, levelup_enabled=True, xp_log_enabled=False)
            session.add(row)
        for key, value in fields.items():
            setattr(row, key, value)
        session.flush()
        view = _view(row)

    logger.info("Guild %s settings updated: %s", guild_id, sorted(fields))
    return view
