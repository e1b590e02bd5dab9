"""Inbound realtime event models.

Each model accepts both the flat payload shape and the nested shape the
backend documents, so reconciliation never has to look at raw dicts.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from pycourier.models._base import CourierEventModel, EventTimestamp, NonEmptyStr, OptionalTimestamp


class Location(BaseModel):
    """A WGS84 coordinate."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    latitude: float = Field(..., ge=-90, le=90, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(..., ge=-180, le=180, validation_alias=AliasChoices("longitude", "lng", "lon"))
    accuracy: float | None = Field(default=None, ge=0)
    """GPS accuracy in meters."""


class LocationUpdate(CourierEventModel):
    """Courier position for an order (``location_update``)."""

    order_id: NonEmptyStr
    courier_id: str | None = None
    location: Location
    timestamp: EventTimestamp
    speed: float | None = Field(default=None, ge=0)
    """Speed in km/h."""
    heading: float | None = Field(default=None, ge=0, le=360)
    battery_level: float | None = Field(default=None, ge=0, le=100)
    eta_update: OptionalTimestamp = None

    @classmethod
    def _unwrap(cls, values: dict[str, Any]) -> dict[str, Any]:
        return cls._lift(values, "courier", {"id": "courier_id", "user_id": "courier_id"})


class StatusChange(CourierEventModel):
    """A single order status transition (``order_status_change``)."""

    order_id: NonEmptyStr
    previous_status: str | None = None
    new_status: NonEmptyStr
    timestamp: EventTimestamp
    order_number: str | None = None
    changed_by: str | None = None
    notes: str | None = None

    @classmethod
    def _unwrap(cls, values: dict[str, Any]) -> dict[str, Any]:
        return cls._lift(values, "status", {"current": "new_status", "previous": "previous_status"})


class MessageReceived(CourierEventModel):
    """A chat message on an order thread (``message_received``)."""

    message_id: NonEmptyStr
    order_id: NonEmptyStr
    sender_id: NonEmptyStr
    content: str = ""
    timestamp: EventTimestamp

    @classmethod
    def _unwrap(cls, values: dict[str, Any]) -> dict[str, Any]:
        merged = cls._lift(values, "sender", {"user_id": "sender_id", "name": "sender_name"})
        if isinstance(merged.get("message"), dict):
            merged = cls._lift(merged, "message")
        elif isinstance(merged.get("message"), str):
            merged.setdefault("content", merged.pop("message"))
        return merged


class SystemAnnouncement(CourierEventModel):
    """Platform-wide alert (``system_alert``)."""

    id: NonEmptyStr = Field(..., validation_alias=AliasChoices("id", "alert_id"))
    type: NonEmptyStr
    message: NonEmptyStr
    timestamp: EventTimestamp
    severity: str | None = None
    title: str | None = None

    @classmethod
    def _unwrap(cls, values: dict[str, Any]) -> dict[str, Any]:
        return cls._lift(values, "alert")


class CourierAssignment(CourierEventModel):
    """A delivery offered to a courier (``courier_assignment``)."""

    assignment_id: NonEmptyStr
    order_id: NonEmptyStr
    order_number: str | None = None
    response_deadline: OptionalTimestamp = None
    estimated_earnings: float | None = None

    @classmethod
    def _unwrap(cls, values: dict[str, Any]) -> dict[str, Any]:
        return cls._lift(values, "order")


class EtaUpdate(CourierEventModel):
    """Revised pickup/delivery estimates for an order (``eta_update``)."""

    order_id: NonEmptyStr
    updated_at: EventTimestamp = Field(..., validation_alias=AliasChoices("updated_at", "timestamp"))
    pickup_eta: OptionalTimestamp = None
    delivery_eta: OptionalTimestamp = None
    delay_reason: str | None = None

    @classmethod
    def _unwrap(cls, values: dict[str, Any]) -> dict[str, Any]:
        return cls._lift(values, "estimates")


class NotificationPush(CourierEventModel):
    """Server-composed notification (``notification_push``)."""

    id: NonEmptyStr
    type: NonEmptyStr
    title: NonEmptyStr
    message: NonEmptyStr
    timestamp: OptionalTimestamp = None
    order_id: str | None = None
    data: dict[str, Any] | None = None

    @classmethod
    def _unwrap(cls, values: dict[str, Any]) -> dict[str, Any]:
        return cls._lift(values, "notification")
