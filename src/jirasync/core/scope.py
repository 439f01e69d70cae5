"""Scope classification for raw Jira payloads."""

from __future__ import annotations

from typing import Any


def is_scoped(payload: Any) -> bool:
    """
    True iff the payload carries a ``scope`` key, whatever its value.

    Jira only attaches ``scope`` to entities owned by a single (team-managed)
    project; global entities omit the key entirely, so ``{"scope": None}``
    still counts as scoped.
    """
    return isinstance(payload, dict) and "scope" in payload
