"""Inbound event dispatch table.

Each inbound event name maps to the pydantic model that validates it and
the reconciler method that applies it. Dispatch is synchronous, one event
at a time, in arrival order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ValidationError

from pycourier._redact import redact_for_log
from pycourier.exceptions import MalformedEventError
from pycourier.models.events import (
    CourierAssignment,
    EtaUpdate,
    LocationUpdate,
    MessageReceived,
    NotificationPush,
    StatusChange,
    SystemAnnouncement,
)
from pycourier.state.reconciler import EventReconciler

_logger = logging.getLogger(__name__)

Handler = Callable[[EventReconciler, Any], Any]

EVENT_HANDLERS: dict[str, tuple[type[BaseModel], Handler]] = {
    "location_update": (LocationUpdate, EventReconciler.apply_location_update),
    "order_status_change": (StatusChange, EventReconciler.apply_status_change),
    "message_received": (MessageReceived, EventReconciler.apply_message),
    "courier_assignment": (CourierAssignment, EventReconciler.apply_courier_assignment),
    "notification_push": (NotificationPush, EventReconciler.apply_notification_push),
    "eta_update": (EtaUpdate, EventReconciler.apply_eta_update),
    "system_alert": (SystemAnnouncement, EventReconciler.apply_system_announcement),
}


class EventDispatcher:
    """Validates inbound payloads and applies them to the reconciler.

    A payload that fails validation is reported through *on_malformed* and
    dropped; it never reaches the reconciler and is never raised to the
    transport.
    """

    def __init__(
        self,
        reconciler: EventReconciler,
        *,
        on_malformed: Callable[[MalformedEventError], None] | None = None,
        handlers: dict[str, tuple[type[BaseModel], Handler]] | None = None,
    ) -> None:
        self._reconciler = reconciler
        self._on_malformed = on_malformed
        self._handlers = handlers if handlers is not None else EVENT_HANDLERS

    def handles(self, event: str) -> bool:
        return event in self._handlers

    def dispatch(self, event: str, payload: Any) -> Any:
        """Apply one inbound event. Returns the reconciler's result, or ``None``."""
        entry = self._handlers.get(event)
        if entry is None:
            _logger.debug("Ignoring unhandled event=%s", event)
            return None
        model_cls, handler = entry

        if not isinstance(payload, dict):
            self._report(MalformedEventError(f"{event} payload is not an object", event=event), payload)
            return None
        try:
            model = model_cls.model_validate(payload)
        except ValidationError as exc:
            errors = [
                {"loc": ".".join(str(part) for part in err["loc"]), "type": err["type"], "msg": err["msg"]}
                for err in exc.errors()
            ]
            self._report(
                MalformedEventError(f"{event} failed validation ({exc.error_count()} error(s))", event=event, errors=errors),
                payload,
            )
            return None
        return handler(self._reconciler, model)

    def _report(self, error: MalformedEventError, payload: Any) -> None:
        _logger.warning("Dropped malformed event: %s payload=%s", error, redact_for_log(payload))
        if self._on_malformed is not None:
            self._on_malformed(error)
