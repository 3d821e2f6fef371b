"""
ensign.errors — Error Taxonomy
===============================

Only infrastructure and caller mistakes travel on the exception channel.
"Cooldown active" and "daily cap reached" are ordinary outcomes and are
reported through :class:`ensign.engine.results.AwardOutcome` instead.
"""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Configuration that cannot be applied (bad curve, bad tiers, missing keys)."""


class InvalidInput(ValueError):
    """A caller handed the core an impossible request (negative XP, unknown source).

    Raised synchronously, before any storage round-trip.
    """


class StorageUnavailable(RuntimeError):
    """The relational store could not be reached or refused the connection."""
