"""Connection state model."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class ConnectionStatus(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class ConnectionState(BaseModel):
    """Snapshot of the realtime connection.

    Instances are immutable; the connection manager replaces its state on
    every transition, so a reference held by a reader never changes.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    connection_id: str | None = None
    last_heartbeat: datetime | None = None
    reconnect_attempts: int = Field(default=0, ge=0)

    @property
    def is_connected(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED
