"""In-app notification center."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from pycourier.models.notification import DeliveryChannel, Notification, NotificationPreferences

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class NotificationCenter:
    """Most-recent-first notification list with an unread counter.

    The list is bounded by *limit*; recording into a full list evicts the
    oldest entry. ``unread_count`` always equals the number of retained
    unread notifications, so evicting an unread entry decrements it.

    Preferences only decide which external channels a notification is routed
    to; the in-app record is never suppressed.
    """

    def __init__(
        self,
        *,
        limit: int = 100,
        preferences: NotificationPreferences | None = None,
        on_route: Callable[[Notification, frozenset[DeliveryChannel]], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._notifications: deque[Notification] = deque()
        self._limit = limit
        self._ids: set[str] = set()
        self._unread = 0
        self._preferences = preferences or NotificationPreferences()
        self._on_route = on_route
        self._clock = clock
        self._last_checked: datetime | None = None

    @property
    def unread_count(self) -> int:
        return self._unread

    @property
    def last_checked(self) -> datetime | None:
        return self._last_checked

    @property
    def preferences(self) -> NotificationPreferences:
        return self._preferences

    def notifications(self) -> tuple[Notification, ...]:
        return tuple(self._notifications)

    def get(self, notification_id: str) -> Notification | None:
        for notification in self._notifications:
            if notification.id == notification_id:
                return notification
        return None

    def record(self, notification: Notification) -> bool:
        """Prepend *notification*. A duplicate id is a no-op returning ``False``."""
        if notification.id in self._ids:
            _logger.debug("Duplicate notification %s ignored", notification.id)
            return False

        if len(self._notifications) >= self._limit:
            evicted = self._notifications.pop()
            self._ids.discard(evicted.id)
            if not evicted.is_read:
                self._unread -= 1

        self._notifications.appendleft(notification)
        self._ids.add(notification.id)
        if not notification.is_read:
            self._unread += 1

        if self._on_route is not None:
            self._on_route(notification, self.delivery_channels())
        return True

    def mark_read(self, notification_id: str) -> bool:
        """Mark one notification read. Unknown or already-read ids are no-ops."""
        for index, notification in enumerate(self._notifications):
            if notification.id != notification_id:
                continue
            if notification.is_read:
                return False
            self._notifications[index] = notification.model_copy(update={"is_read": True})
            self._unread = max(0, self._unread - 1)
            return True
        return False

    def mark_all_read(self) -> int:
        """Mark everything read. Returns how many were unread."""
        changed = 0
        for index, notification in enumerate(self._notifications):
            if not notification.is_read:
                self._notifications[index] = notification.model_copy(update={"is_read": True})
                changed += 1
        self._unread = 0
        self._last_checked = self._clock()
        return changed

    def update_preferences(self, **changes: Any) -> NotificationPreferences:
        """Merge *changes* into the current preferences (validated)."""
        merged = self._preferences.model_dump() | changes
        self._preferences = NotificationPreferences.model_validate(merged)
        return self._preferences

    def delivery_channels(self) -> frozenset[DeliveryChannel]:
        """External channels a notification recorded now is routed to.

        Quiet hours mute the interruptive channels (SMS and push); email is
        unaffected.
        """
        prefs = self._preferences
        channels: set[DeliveryChannel] = set()
        if prefs.email:
            channels.add(DeliveryChannel.EMAIL)
        if prefs.sms:
            channels.add(DeliveryChannel.SMS)
        if prefs.push:
            channels.add(DeliveryChannel.PUSH)
        if channels and prefs.quiet_hours.active_at(self._clock()):
            channels -= {DeliveryChannel.SMS, DeliveryChannel.PUSH}
        return frozenset(channels)
