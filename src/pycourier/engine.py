"""High-level async facade for the realtime synchronization engine."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime
from typing import Any

import aiohttp

from pycourier._transport import SocketIOTransport, Transport
from pycourier.config import SyncConfig
from pycourier.connection import ConnectionManager
from pycourier.health import SystemHealthTracker
from pycourier.ingestion.dispatch import EventDispatcher
from pycourier.models.connection import ConnectionState
from pycourier.models.notification import DeliveryChannel, Notification, NotificationPreferences
from pycourier.models.outbox import FlushResult, QueuedAction
from pycourier.models.subscription import Subscription, SubscriptionKind
from pycourier.notifications import NotificationCenter
from pycourier.outbox import OfflineOutbox
from pycourier.session import Credential
from pycourier.state.reconciler import EventReconciler
from pycourier.subscriptions import SubscriptionRegistry

_logger = logging.getLogger(__name__)

SEND_MESSAGE_EVENT = "send_message"
SYSTEM_ALERTS_KEY = "system"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SyncEngine:
    """Realtime synchronization engine.

    Usage::

        async with SyncEngine(SyncConfig(base_url="https://api.example.com")) as engine:
            engine.subscribe_order_tracking("O1")
            await engine.connect(credential)
            engine.send_message("O1", "On my way")

    Subscribe/unsubscribe and outbound sends never block: they update local
    state immediately and schedule transport work when connected.
    """

    def __init__(
        self,
        config: SyncConfig | None = None,
        *,
        transport: Transport | None = None,
        session: aiohttp.ClientSession | None = None,
        preferences: NotificationPreferences | None = None,
        on_notification: Callable[[Notification, frozenset[DeliveryChannel]], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._config = config or SyncConfig()
        self._clock = clock
        self._external_session = session is not None
        self._http_session = session
        self._socketio: SocketIOTransport | None = None
        if transport is None:
            self._socketio = SocketIOTransport(self._config, http_session=session)
            transport = self._socketio
        self._transport: Transport = transport
        self._flush_tasks: set[asyncio.Task[FlushResult]] = set()

        self._health = SystemHealthTracker(limit=self._config.error_history_limit, clock=clock)
        self._notifications = NotificationCenter(
            limit=self._config.notification_limit,
            preferences=preferences,
            on_route=on_notification,
            clock=clock,
        )
        self._reconciler = EventReconciler(notify=self._notifications.record, clock=clock)
        self._dispatcher = EventDispatcher(self._reconciler, on_malformed=self._health.on_malformed_event)
        self._connection = ConnectionManager(
            self._transport,
            self._config,
            on_connected=self._on_connected,
            on_event=self._dispatcher.dispatch,
            on_status_change=self._health.on_connection_state,
            on_terminal_error=self._health.on_terminal_error,
            clock=clock,
            sleep=sleep,
        )
        self._subscriptions = SubscriptionRegistry(self._connection)
        self._outbox = OfflineOutbox(
            self._connection.send,
            is_connected=lambda: self._connection.is_connected,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SyncEngine:
        if self._socketio is not None and self._http_session is None:
            self._http_session = aiohttp.ClientSession()
            self._socketio.attach_http_session(self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.disconnect()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            if self._socketio is not None:
                self._socketio.attach_http_session(None)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    async def connect(self, credential: Credential | None) -> bool:
        """Connect (or reconnect with a fresh credential). See :meth:`ConnectionManager.connect`."""
        return await self._connection.connect(credential)

    async def disconnect(self) -> None:
        """Disconnect, cancelling pending subscription sends and flushes.

        Subscriptions and queued actions are kept for the next connect.
        """
        self._subscriptions.cancel_pending()
        for task in list(self._flush_tasks):
            task.cancel()
        await self._connection.disconnect()

    async def end_session(self) -> None:
        """Disconnect and forget every subscription (logout)."""
        await self.disconnect()
        _logger.info("Session ended, clearing %d subscription(s)", len(self._subscriptions))
        self._subscriptions.clear()

    async def _on_connected(self) -> None:
        await self._subscriptions.replay_all()
        await self._outbox.flush()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe_order_tracking(self, order_id: str) -> Subscription:
        return self._subscriptions.subscribe(SubscriptionKind.ORDER_TRACKING, order_id)

    def unsubscribe_order_tracking(self, order_id: str) -> bool:
        return self._subscriptions.unsubscribe(SubscriptionKind.ORDER_TRACKING, order_id)

    def subscribe_notifications(self, user_id: str, channels: Sequence[str]) -> Subscription:
        return self._subscriptions.subscribe(
            SubscriptionKind.NOTIFICATION_FEED,
            user_id,
            {"channels": list(channels)},
        )

    def unsubscribe_notifications(self, user_id: str) -> bool:
        return self._subscriptions.unsubscribe(SubscriptionKind.NOTIFICATION_FEED, user_id)

    def subscribe_messaging(self, order_id: str, participants: Sequence[str]) -> Subscription:
        return self._subscriptions.subscribe(
            SubscriptionKind.MESSAGING,
            order_id,
            {"participants": list(participants)},
        )

    def unsubscribe_messaging(self, order_id: str) -> bool:
        return self._subscriptions.unsubscribe(SubscriptionKind.MESSAGING, order_id)

    def subscribe_system_alerts(self, alert_types: Sequence[str]) -> Subscription:
        return self._subscriptions.subscribe(
            SubscriptionKind.SYSTEM_ALERTS,
            SYSTEM_ALERTS_KEY,
            {"alert_types": list(alert_types)},
        )

    # ------------------------------------------------------------------
    # Outbound actions
    # ------------------------------------------------------------------

    def send_message(
        self,
        order_id: str,
        content: str,
        *,
        recipient_id: str | None = None,
        message_type: str = "text",
    ) -> QueuedAction:
        """Queue a chat message; it is flushed now if connected, else on reconnect."""
        payload: dict[str, Any] = {"order_id": order_id, "message_type": message_type, "content": content}
        if recipient_id is not None:
            payload["recipient_id"] = recipient_id
        action = self._outbox.enqueue_message(SEND_MESSAGE_EVENT, payload)
        self._schedule_flush()
        return action

    def send_location_update(
        self,
        order_id: str,
        latitude: float,
        longitude: float,
        *,
        accuracy: float | None = None,
        speed: float | None = None,
        heading: float | None = None,
        battery_level: float | None = None,
    ) -> QueuedAction:
        """Queue a courier location ping stamped with the current time."""
        location: dict[str, Any] = {"latitude": latitude, "longitude": longitude}
        if accuracy is not None:
            location["accuracy"] = accuracy
        payload: dict[str, Any] = {
            "order_id": order_id,
            "location": location,
            "timestamp": self._clock().isoformat(),
        }
        optional = {"speed": speed, "heading": heading, "battery_level": battery_level}
        payload.update({k: v for k, v in optional.items() if v is not None})
        action = self._outbox.enqueue_location_update(payload)
        self._schedule_flush()
        return action

    def _schedule_flush(self) -> None:
        if not self._connection.is_connected:
            return
        task = asyncio.get_running_loop().create_task(self._outbox.flush())
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_tasks.discard)

    async def flush_outbox(self) -> FlushResult:
        return await self._outbox.flush()

    async def drain(self) -> None:
        """Wait for scheduled subscription sends and flushes to settle."""
        await self._subscriptions.drain()
        while self._flush_tasks:
            await asyncio.wait(set(self._flush_tasks))

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def handle_event(self, event: str, payload: Any) -> Any:
        """Apply one inbound event (normally called by the transport)."""
        return self._dispatcher.dispatch(event, payload)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def config(self) -> SyncConfig:
        return self._config

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection.state

    @property
    def is_connected(self) -> bool:
        return self._connection.is_connected

    @property
    def subscriptions(self) -> SubscriptionRegistry:
        return self._subscriptions

    @property
    def reconciler(self) -> EventReconciler:
        return self._reconciler

    @property
    def outbox(self) -> OfflineOutbox:
        return self._outbox

    @property
    def notifications(self) -> NotificationCenter:
        return self._notifications

    @property
    def health(self) -> SystemHealthTracker:
        return self._health
