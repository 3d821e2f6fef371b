"""
ensign.bot.__main__ — Entry point for ``python -m ensign.bot``
==============================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (tunables, validated once).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Create the EnsignBot and hand it config + engine.
5. Start the bot (blocking — runs the asyncio event loop).
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from ensign.bot.core import EnsignBot
from ensign.config import load_config
from ensign.database.engine import create_db_engine, init_db
from ensign.errors import ConfigurationError, StorageUnavailable

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("ensign")


def main() -> None:
    """Bootstrap and run the Ensign bot."""

    # 1. Environment variables (secrets).
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN")
    if not token or token == "your-discord-bot-token-here":
        logger.critical(
            "DISCORD_TOKEN is not set.  "
            "Copy .env.example → .env and paste your bot token."
        )
        sys.exit(1)

    # 2. Configuration.
    try:
        cfg = load_config(os.getenv("ENSIGN_CONFIG", "config.yaml"))
    except (FileNotFoundError, ConfigurationError) as exc:
        logger.critical("Invalid configuration: %s", exc)
        sys.exit(1)
    logger.info(
        "Config loaded — base cap %d, %d tier(s), %d issue(s)",
        cfg.daily_cap.base_cap, len(cfg.daily_cap.tiers), len(cfg.issues),
    )

    # 3. Database.
    engine = create_db_engine()
    try:
        init_db(engine)
    except StorageUnavailable as exc:
        logger.critical("Database unreachable at startup: %s", exc)
        sys.exit(1)

    # 4. Bot.
    bot = EnsignBot(cfg=cfg, engine=engine)

    # 5. Run (blocks until Ctrl+C or SIGTERM).
    logger.info("Starting Ensign bot…")
    try:
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
