"""Deterministic per-entity merge policy.

Pure functions of (incoming value, stored value); they never look at
arrival order, so re-delivery and reordering converge to the same state.
"""

from __future__ import annotations

from collections.abc import Container, Hashable
from datetime import datetime


def is_newer(*, incoming: datetime, stored: datetime | None) -> bool:
    """Last-write-wins by event timestamp.

    Accept only when strictly newer than what is stored; an equal timestamp
    is a re-delivery and is discarded.
    """
    if stored is None:
        return True
    return incoming > stored


def is_unseen(identity: Hashable, seen: Container[Hashable]) -> bool:
    """Dedup rule for id-keyed streams (messages, announcements)."""
    return identity not in seen
