"""Offline outbox models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class QueueKind(StrEnum):
    MESSAGES = "messages"
    LOCATION_UPDATES = "location_updates"


class QueuedAction(BaseModel):
    """An outbound action awaiting a confirmed send."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    """Wire event name the payload is emitted under."""
    queue: QueueKind
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class FlushResult(BaseModel):
    """Outcome of one :meth:`pycourier.outbox.OfflineOutbox.flush` call."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    sent: dict[QueueKind, int] = Field(default_factory=dict)
    halted: tuple[QueueKind, ...] = ()
    skipped: bool = False
    """``True`` when the flush did not run because the transport is not connected."""

    @property
    def total_sent(self) -> int:
        return sum(self.sent.values())
