"""Typed data models for pycourier."""

from pycourier.models.connection import ConnectionState, ConnectionStatus
from pycourier.models.events import (
    CourierAssignment,
    EtaUpdate,
    Location,
    LocationUpdate,
    MessageReceived,
    NotificationPush,
    StatusChange,
    SystemAnnouncement,
)
from pycourier.models.health import ApiConnectivity, ErrorReport, ErrorType, HealthStatus
from pycourier.models.notification import (
    DeliveryChannel,
    Notification,
    NotificationPreferences,
    NotificationType,
    QuietHours,
)
from pycourier.models.outbox import FlushResult, QueuedAction, QueueKind
from pycourier.models.subscription import Subscription, SubscriptionKind

__all__ = [
    "ApiConnectivity",
    "ConnectionState",
    "ConnectionStatus",
    "CourierAssignment",
    "DeliveryChannel",
    "ErrorReport",
    "ErrorType",
    "EtaUpdate",
    "FlushResult",
    "HealthStatus",
    "Location",
    "LocationUpdate",
    "MessageReceived",
    "Notification",
    "NotificationPreferences",
    "NotificationPush",
    "NotificationType",
    "QueueKind",
    "QueuedAction",
    "QuietHours",
    "StatusChange",
    "Subscription",
    "SubscriptionKind",
    "SystemAnnouncement",
]
