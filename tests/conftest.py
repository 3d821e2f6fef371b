"""
tests/conftest.py — Shared Test Fixtures
=========================================

In-memory SQLite stands in for PostgreSQL.  Both accept the
``INSERT … ON CONFLICT … DO UPDATE … RETURNING`` statements the services
use, so the atomic-upsert paths are exercised for real.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from ensign.config import EnsignConfig, parse_config
from ensign.database.models import Base
from ensign.engine.clock import ResetClock
from ensign.engine.cooldown import CooldownGate
from ensign.engine.curve import LevelCurve
from ensign.engine.tiers import TierResolver, TierSlot
from ensign.services.award import XPAwardCoordinator
from ensign.services.ledger import DailyCapLedger
from ensign.services.xp_service import XPService

# 19:40 EDT on 2026-07-15 → effective day 2026-07-15
AFTER_RESET = datetime(2026, 7, 15, 23, 40, tzinfo=UTC)
AFTER_RESET_DAY = "2026-07-15"

TIER_2_ROLE = 2002
TIER_5_ROLE = 5005
TIER_7_ROLE = 7007


def run_async(coro):
    """Run an async coroutine in a new event loop (no pytest-asyncio needed)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Ensign tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` inside ``run_db``).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session for inspecting rows directly."""
    with Session(db_engine) as session:
        yield session


@pytest.fixture
def cfg() -> EnsignConfig:
    return parse_config({
        "admin_role_id": 999,
        "daily_cap": {
            "base_cap": 15000,
            "tiers": [
                {"rank": 2, "role_id": TIER_2_ROLE, "cap": 18000},
                {"rank": 5, "role_id": TIER_5_ROLE, "cap": 25000},
                {"rank": 7, "role_id": TIER_7_ROLE, "cap": 30000},
            ],
        },
    })


@pytest.fixture
def clock() -> ResetClock:
    return ResetClock()


@pytest.fixture
def curve() -> LevelCurve:
    return LevelCurve()


@pytest.fixture
def resolver(cfg: EnsignConfig) -> TierResolver:
    return TierResolver(cfg.daily_cap.tiers, cfg.daily_cap.base_cap)


@pytest.fixture
def ledger(db_engine, resolver, clock) -> DailyCapLedger:
    return DailyCapLedger(db_engine, resolver, clock)


@pytest.fixture
def coordinator(db_engine, ledger, curve) -> XPAwardCoordinator:
    return XPAwardCoordinator(db_engine, ledger, curve, xp_multiplier=1.0)


@pytest.fixture
def xp_service(cfg, ledger, coordinator) -> XPService:
    return XPService(cfg, ledger, coordinator, CooldownGate())


def make_tiers(*pairs: tuple[int, int, int]) -> list[TierSlot]:
    """Build tier slots from ``(rank, role_id, cap)`` tuples."""
    return [TierSlot(rank=r, role_id=role, cap=cap) for r, role, cap in pairs]
