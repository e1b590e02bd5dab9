"""Notification and notification preference models."""

from __future__ import annotations

from datetime import datetime, time
from enum import StrEnum
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NotificationType(StrEnum):
    ORDER_UPDATE = "order_update"
    MESSAGE = "message"
    PAYMENT = "payment"
    SYSTEM = "system"
    COURIER_ASSIGNMENT = "courier_assignment"
    ETA_UPDATE = "eta_update"


class DeliveryChannel(StrEnum):
    """External channels a notification may be routed to besides in-app."""

    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"


class Notification(BaseModel):
    """A user-facing notification.

    Only ``is_read`` ever changes, by replacing the record with a copy.
    ``type`` is a plain string because ``notification_push`` events may
    carry server-defined types beyond :class:`NotificationType`.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    title: str
    message: str
    timestamp: datetime
    is_read: bool = False
    order_id: str | None = None
    data: dict[str, Any] | None = None


def _parse_hhmm(value: str) -> time:
    hours, _, minutes = value.partition(":")
    return time(int(hours), int(minutes))


class QuietHours(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = False
    start_time: str = "22:00"
    end_time: str = "07:00"
    timezone: str = "America/New_York"

    @field_validator("start_time", "end_time")
    @classmethod
    def _valid_hhmm(cls, value: str) -> str:
        try:
            _parse_hhmm(value)
        except ValueError as exc:
            raise ValueError(f"expected HH:MM, got {value!r}") from exc
        return value

    @field_validator("timezone")
    @classmethod
    def _valid_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone {value!r}") from exc
        return value

    def active_at(self, moment: datetime) -> bool:
        """Whether *moment* falls inside the quiet window (local to ``timezone``)."""
        if not self.enabled:
            return False
        local = moment.astimezone(ZoneInfo(self.timezone)).time()
        start = _parse_hhmm(self.start_time)
        end = _parse_hhmm(self.end_time)
        if start == end:
            return False
        if start < end:
            return start <= local < end
        # Window wraps midnight.
        return local >= start or local < end


class NotificationPreferences(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    in_app: bool = True
    email: bool = True
    sms: bool = True
    push: bool = False
    quiet_hours: QuietHours = Field(default_factory=QuietHours)
