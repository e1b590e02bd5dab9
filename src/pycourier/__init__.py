"""pycourier - Async realtime synchronization engine for a same-day delivery client."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pycourier")
except PackageNotFoundError:
    __version__ = "0+local"
from pycourier.config import SyncConfig
from pycourier.connection import ConnectionManager
from pycourier.engine import SyncEngine
from pycourier.exceptions import (
    CourierConfigError,
    CourierConnectivityError,
    CourierError,
    CourierNotConnectedError,
    CourierTransportError,
    MalformedEventError,
)
from pycourier.health import SystemHealthTracker
from pycourier.ingestion import EVENT_HANDLERS, EventDispatcher
from pycourier.models import (
    ApiConnectivity,
    ConnectionState,
    ConnectionStatus,
    CourierAssignment,
    DeliveryChannel,
    ErrorReport,
    ErrorType,
    EtaUpdate,
    FlushResult,
    HealthStatus,
    Location,
    LocationUpdate,
    MessageReceived,
    Notification,
    NotificationPreferences,
    NotificationPush,
    NotificationType,
    QueuedAction,
    QueueKind,
    QuietHours,
    StatusChange,
    Subscription,
    SubscriptionKind,
    SystemAnnouncement,
)
from pycourier.notifications import NotificationCenter
from pycourier.outbox import OfflineOutbox
from pycourier.session import Credential
from pycourier.state.reconciler import EventReconciler
from pycourier.subscriptions import SubscriptionRegistry

__all__ = [
    "EVENT_HANDLERS",
    "ApiConnectivity",
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",
    "CourierAssignment",
    "CourierConfigError",
    "CourierConnectivityError",
    "CourierError",
    "CourierNotConnectedError",
    "CourierTransportError",
    "Credential",
    "DeliveryChannel",
    "ErrorReport",
    "ErrorType",
    "EtaUpdate",
    "EventDispatcher",
    "EventReconciler",
    "FlushResult",
    "HealthStatus",
    "Location",
    "LocationUpdate",
    "MalformedEventError",
    "MessageReceived",
    "Notification",
    "NotificationCenter",
    "NotificationPreferences",
    "NotificationPush",
    "NotificationType",
    "OfflineOutbox",
    "QueueKind",
    "QueuedAction",
    "QuietHours",
    "StatusChange",
    "Subscription",
    "SubscriptionKind",
    "SubscriptionRegistry",
    "SyncConfig",
    "SyncEngine",
    "SystemAnnouncement",
    "SystemHealthTracker",
    "__version__",
]
