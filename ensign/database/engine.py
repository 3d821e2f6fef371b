"""
ensign.database.engine — Database Connection & Async Helper
============================================================

Discord bots run on an ``asyncio`` event loop, while SQLAlchemy + psycopg2
is synchronous.  Cogs therefore never touch the database directly: they
call ``await run_db(some_function, arg1, arg2)``, which ships the sync
function to a worker thread with :func:`asyncio.to_thread` and awaits the
result.  The event loop stays free while the query runs.

Connectivity failures (``OperationalError`` / ``InterfaceError``) are
translated into :class:`~ensign.errors.StorageUnavailable` at the session
boundary, so callers above this module only ever see Ensign's own error
taxonomy.

Usage::

    from ensign.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    # Inside an async Cog method:
    account = await run_db(get_account, engine, user_id, guild_id)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session

from ensign.database.models import Base
from ensign.errors import StorageUnavailable

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build a SQLAlchemy :class:`Engine` from *url* or the ``DATABASE_URL`` env var.

    Returns
    -------
    Engine
        A configured SQLAlchemy engine instance.

    Raises
    ------
    RuntimeError
        If no URL is given and ``DATABASE_URL`` is not set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    engine = create_engine(
        url,
        echo=False,        # Set True for SQL debugging
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,   # Reconnect stale connections automatically
        pool_timeout=10,      # Fail after 10s instead of hanging forever
        pool_recycle=3600,
    )
    logger.info("Database engine created → %s", engine.url.host)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`ensign.database.models`.

    .. note::

        In production the schema is managed by Alembic (``alembic upgrade
        head``).  ``create_all`` is retained as a safety net for dev/test
        environments where Alembic may not have run.
    """
    with storage_errors():
        Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------
@contextmanager
def storage_errors() -> Iterator[None]:
    """Re-raise driver connectivity failures as :class:`StorageUnavailable`."""
    try:
        yield
    except (OperationalError, InterfaceError) as exc:
        logger.error("Storage unavailable: %s", exc.orig or exc)
        raise StorageUnavailable(str(exc.orig or exc)) from exc


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine) -> Iterator[Session]:
    """Yield a :class:`Session` that auto-commits on success and rolls back
    on exception.

    Usage::

        with get_session(engine) as session:
            session.add(GuildSettings(guild_id=123))
            # commit happens automatically on block exit
    """
    with storage_errors():
        session = Session(engine)
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** database function on a background thread.

    Every DB call in a Cog or in :class:`~ensign.services.xp_service.XPService`
    goes through this wrapper::

        result = await run_db(my_sync_db_function, engine, user_id)

    Parameters
    ----------
    func:
        Any sync callable (typically a function that opens a session and
        runs queries).
    *args, **kwargs:
        Forwarded to *func*.
    """
    return await asyncio.to_thread(func, *args, **kwargs)
