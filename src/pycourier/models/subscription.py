"""Subscription model."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pycourier.models._base import utcnow


class SubscriptionKind(StrEnum):
    ORDER_TRACKING = "order_tracking"
    NOTIFICATION_FEED = "notification_feed"
    MESSAGING = "messaging"
    SYSTEM_ALERTS = "system_alerts"

    @property
    def subscribe_event(self) -> str | None:
        """Outbound request that (re-)establishes this channel, if any."""
        return _SUBSCRIBE_EVENTS.get(self)

    @property
    def unsubscribe_event(self) -> str | None:
        """Outbound request that tears this channel down, if any."""
        return _UNSUBSCRIBE_EVENTS.get(self)


# System alerts are broadcast to every socket, so that channel is local-only.
_SUBSCRIBE_EVENTS: dict[SubscriptionKind, str] = {
    SubscriptionKind.ORDER_TRACKING: "subscribe_order_tracking",
    SubscriptionKind.NOTIFICATION_FEED: "subscribe_notifications",
    SubscriptionKind.MESSAGING: "subscribe_messaging",
}

_UNSUBSCRIBE_EVENTS: dict[SubscriptionKind, str] = {
    SubscriptionKind.ORDER_TRACKING: "unsubscribe_order_tracking",
}


class Subscription(BaseModel):
    """A desired channel, keyed by ``(kind, key)``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: SubscriptionKind
    key: str = Field(..., min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)
    subscribed_at: datetime = Field(default_factory=utcnow)

    @property
    def identity(self) -> tuple[SubscriptionKind, str]:
        return (self.kind, self.key)

    def subscribe_payload(self) -> dict[str, Any]:
        """Payload for :attr:`SubscriptionKind.subscribe_event`."""
        if self.kind is SubscriptionKind.ORDER_TRACKING:
            return {"order_id": self.key}
        if self.kind is SubscriptionKind.NOTIFICATION_FEED:
            return {"channels": list(self.metadata.get("channels", []))}
        if self.kind is SubscriptionKind.MESSAGING:
            return {"order_id": self.key, "participants": list(self.metadata.get("participants", []))}
        return {"alert_types": list(self.metadata.get("alert_types", []))}

    def unsubscribe_payload(self) -> dict[str, Any]:
        """Payload for :attr:`SubscriptionKind.unsubscribe_event`."""
        return {"order_id": self.key}
