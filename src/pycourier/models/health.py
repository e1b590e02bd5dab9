"""System health models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HealthStatus(StrEnum):
    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    DOWN = "down"


class ApiConnectivity(StrEnum):
    ONLINE = "online"
    OFFLINE = "offline"
    DEGRADED = "degraded"


class ErrorType(StrEnum):
    CONNECTIVITY = "connectivity"
    MALFORMED_EVENT = "malformed_event"
    API = "api"


class ErrorReport(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    error_id: str
    error_type: str
    message: str
    timestamp: datetime
    context: dict[str, Any] = Field(default_factory=dict)
    resolved: bool = False
