"""
ensign.engine.cooldown — Per-source XP rate limiter
====================================================

In-memory map of ``(guild_id, user_id, source) → last accepted timestamp``.
Windows are supplied by the caller per source, so the gate itself knows
nothing about messages, reactions or voice.

Thread-safe.  State is lost on restart; the daily cap remains the backstop.
"""

from __future__ import annotations

import logging
import time
from threading import Lock

logger = logging.getLogger(__name__)

CooldownKey = tuple[int, int, str]


def cooldown_key(guild_id: int, user_id: int, source: str) -> CooldownKey:
    return (guild_id, user_id, str(source))


class CooldownGate:
    """Tracks the last accepted event per key."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._last_used: dict[CooldownKey, float] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._last_used)

    def is_on_cooldown(
        self, key: CooldownKey, window_seconds: float, now: float | None = None,
    ) -> bool:
        now = time.time() if now is None else now
        with self._lock:
            last = self._last_used.get(key)
        return last is not None and now - last < window_seconds

    def remaining(
        self, key: CooldownKey, window_seconds: float, now: float | None = None,
    ) -> float:
        """Seconds left on *key*'s cooldown (0.0 when free)."""
        now = time.time() if now is None else now
        with self._lock:
            last = self._last_used.get(key)
        if last is None:
            return 0.0
        return max(0.0, window_seconds - (now - last))

    def mark_used(self, key: CooldownKey, now: float | None = None) -> None:
        now = time.time() if now is None else now
        with self._lock:
            self._last_used[key] = now

    def try_acquire(
        self, key: CooldownKey, window_seconds: float, now: float | None = None,
    ) -> bool:
        """Check and mark in one step.  Returns False if still cooling down."""
        now = time.time() if now is None else now
        with self._lock:
            last = self._last_used.get(key)
            if last is not None and now - last < window_seconds:
                return False
            self._last_used[key] = now
            return True

    def prune(self, max_window_seconds: float, now: float | None = None) -> int:
        """Drop entries older than *max_window_seconds*.  Returns how many went."""
        now = time.time() if now is None else now
        cutoff = now - max_window_seconds
        with self._lock:
            expired = [k for k, t in self._last_used.items() if t <= cutoff]
            for k in expired:
                del self._last_used[k]
        if expired:
            logger.debug("Pruned %d expired cooldown entries", len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._last_used.clear()
