"""Canonical realtime state.

This is the only component allowed to merge inbound events. Every rule is
a pure function of (event, stored value), see :mod:`pycourier.state.policy`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from pycourier.models.events import (
    CourierAssignment,
    EtaUpdate,
    LocationUpdate,
    MessageReceived,
    NotificationPush,
    StatusChange,
    SystemAnnouncement,
)
from pycourier.models.notification import Notification, NotificationType
from pycourier.state.policy import is_newer, is_unseen

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class EventReconciler:
    """Applies inbound events to deduplicated per-entity state.

    Derived notifications are built here, from validated models only, and
    handed to *notify* (normally :meth:`NotificationCenter.record`).

    Rules:
    - location: last-write-wins by event timestamp per order
    - status changes: append-only per order, never deduplicated
    - messages / announcements: deduplicated by id
    - ETA: latest ``updated_at`` per order
    """

    def __init__(
        self,
        *,
        notify: Callable[[Notification], Any] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._notify = notify
        self._clock = clock
        self._locations: dict[str, LocationUpdate] = {}
        self._status_logs: dict[str, list[StatusChange]] = {}
        self._messages: list[MessageReceived] = []
        self._message_ids: set[str] = set()
        self._announcements: list[SystemAnnouncement] = []
        self._announcement_ids: set[str] = set()
        self._assignments: dict[str, CourierAssignment] = {}
        self._etas: dict[str, EtaUpdate] = {}

    def _forward(self, notification: Notification) -> None:
        if self._notify is not None:
            self._notify(notification)

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def apply_location_update(self, update: LocationUpdate) -> bool:
        """Store *update* if it is strictly newer than the stored one."""
        stored = self._locations.get(update.order_id)
        if not is_newer(incoming=update.timestamp, stored=stored.timestamp if stored else None):
            _logger.debug(
                "Stale location for order=%s discarded (%s <= %s)",
                update.order_id,
                update.timestamp,
                stored.timestamp if stored else None,
            )
            return False
        self._locations[update.order_id] = update
        return True

    def apply_status_change(self, change: StatusChange) -> Notification:
        """Append *change* to the order's log and derive its notification."""
        log = self._status_logs.setdefault(change.order_id, [])
        log.append(change)
        notification = Notification(
            id=f"status_change_{change.order_id}_{len(log)}",
            type=NotificationType.ORDER_UPDATE,
            title="Order Status Updated",
            message=f"Your order status changed to {change.new_status}",
            timestamp=change.timestamp,
            order_id=change.order_id,
            data={"previous_status": change.previous_status, "new_status": change.new_status},
        )
        self._forward(notification)
        return notification

    def apply_message(self, message: MessageReceived) -> bool:
        if not is_unseen(message.message_id, self._message_ids):
            _logger.debug("Duplicate message %s ignored", message.message_id)
            return False
        self._message_ids.add(message.message_id)
        self._messages.append(message)
        self._forward(
            Notification(
                id=f"message_{message.message_id}",
                type=NotificationType.MESSAGE,
                title="New Message",
                message=message.content,
                timestamp=message.timestamp,
                order_id=message.order_id,
            )
        )
        return True

    def apply_system_announcement(self, announcement: SystemAnnouncement) -> bool:
        if not is_unseen(announcement.id, self._announcement_ids):
            _logger.debug("Duplicate system alert %s ignored", announcement.id)
            return False
        self._announcement_ids.add(announcement.id)
        self._announcements.append(announcement)
        self._forward(
            Notification(
                id=f"system_{announcement.id}",
                type=NotificationType.SYSTEM,
                title=announcement.title or "System Alert",
                message=announcement.message,
                timestamp=announcement.timestamp,
                data=announcement.model_dump(mode="json", exclude={"raw"}),
            )
        )
        return True

    def apply_courier_assignment(self, assignment: CourierAssignment) -> bool:
        if not is_unseen(assignment.assignment_id, self._assignments):
            return False
        self._assignments[assignment.assignment_id] = assignment
        self._forward(
            Notification(
                id=f"courier_assignment_{assignment.assignment_id}",
                type=NotificationType.COURIER_ASSIGNMENT,
                title="New Delivery Assignment",
                message="You have a new delivery assignment",
                timestamp=self._clock(),
                order_id=assignment.order_id,
                data=assignment.raw,
            )
        )
        return True

    def apply_eta_update(self, update: EtaUpdate) -> bool:
        stored = self._etas.get(update.order_id)
        if not is_newer(incoming=update.updated_at, stored=stored.updated_at if stored else None):
            return False
        self._etas[update.order_id] = update
        stamp = int(update.updated_at.timestamp() * 1000)
        self._forward(
            Notification(
                id=f"eta_update_{update.order_id}_{stamp}",
                type=NotificationType.ETA_UPDATE,
                title="Delivery Time Updated",
                message="Your delivery ETA has been updated",
                timestamp=update.updated_at,
                order_id=update.order_id,
                data=update.raw,
            )
        )
        return True

    def apply_notification_push(self, push: NotificationPush) -> Notification:
        """Rebuild a server-composed notification from its validated fields."""
        notification = Notification(
            id=push.id,
            type=push.type,
            title=push.title,
            message=push.message,
            timestamp=push.timestamp or self._clock(),
            order_id=push.order_id,
            data=push.data,
        )
        self._forward(notification)
        return notification

    # ------------------------------------------------------------------
    # Read access (copies)
    # ------------------------------------------------------------------

    def location(self, order_id: str) -> LocationUpdate | None:
        return self._locations.get(order_id)

    def locations(self) -> dict[str, LocationUpdate]:
        return dict(self._locations)

    def status_log(self, order_id: str) -> tuple[StatusChange, ...]:
        return tuple(self._status_logs.get(order_id, ()))

    def current_status(self, order_id: str) -> str | None:
        log = self._status_logs.get(order_id)
        return log[-1].new_status if log else None

    def messages(self, order_id: str | None = None) -> tuple[MessageReceived, ...]:
        if order_id is None:
            return tuple(self._messages)
        return tuple(m for m in self._messages if m.order_id == order_id)

    def announcements(self) -> tuple[SystemAnnouncement, ...]:
        return tuple(self._announcements)

    def assignment(self, assignment_id: str) -> CourierAssignment | None:
        return self._assignments.get(assignment_id)

    def eta(self, order_id: str) -> EtaUpdate | None:
        return self._etas.get(order_id)
