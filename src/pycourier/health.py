"""System health aggregation for gating UI affordances."""

from __future__ import annotations

import logging
import uuid
from collections import deque
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from pycourier.exceptions import CourierConnectivityError, MalformedEventError
from pycourier.models.connection import ConnectionState, ConnectionStatus
from pycourier.models.health import ApiConnectivity, ErrorReport, ErrorType, HealthStatus

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SystemHealthTracker:
    """Aggregates connection state and error reports into one status.

    Only terminal connectivity loss and malformed inbound events are
    escalated here by the engine; the HTTP collaborator reports API
    connectivity through :meth:`set_api_connectivity` and
    :meth:`report_error`.
    """

    def __init__(
        self,
        *,
        limit: int = 50,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._clock = clock
        self._errors: deque[ErrorReport] = deque(maxlen=limit)
        self._websocket_status = ConnectionStatus.DISCONNECTED
        self._api_connectivity = ApiConnectivity.ONLINE
        self._maintenance_mode = False

    @property
    def websocket_status(self) -> ConnectionStatus:
        return self._websocket_status

    @property
    def api_connectivity(self) -> ApiConnectivity:
        return self._api_connectivity

    def errors(self, *, include_resolved: bool = False) -> tuple[ErrorReport, ...]:
        return tuple(e for e in self._errors if include_resolved or not e.resolved)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def on_connection_state(self, state: ConnectionState) -> None:
        previous = self._websocket_status
        self._websocket_status = state.status
        if state.status is ConnectionStatus.CONNECTED and previous is not ConnectionStatus.CONNECTED:
            self._resolve_type(ErrorType.CONNECTIVITY)

    def on_terminal_error(self, error: CourierConnectivityError) -> None:
        self.report_error(ErrorType.CONNECTIVITY, str(error), {"attempts": error.attempts})

    def on_malformed_event(self, error: MalformedEventError) -> None:
        self.report_error(ErrorType.MALFORMED_EVENT, str(error), {"event": error.event, "errors": error.errors})

    def set_api_connectivity(self, connectivity: ApiConnectivity) -> None:
        self._api_connectivity = connectivity

    def set_maintenance_mode(self, enabled: bool) -> None:
        self._maintenance_mode = enabled

    def report_error(
        self,
        error_type: str,
        message: str,
        context: Mapping[str, Any] | None = None,
    ) -> ErrorReport:
        report = ErrorReport(
            error_id=uuid.uuid4().hex,
            error_type=error_type,
            message=message,
            timestamp=self._clock(),
            context=dict(context or {}),
        )
        self._errors.append(report)
        _logger.debug("Health error recorded type=%s id=%s", error_type, report.error_id)
        return report

    def resolve_error(self, error_id: str) -> bool:
        for index, report in enumerate(self._errors):
            if report.error_id == error_id and not report.resolved:
                self._errors[index] = report.model_copy(update={"resolved": True})
                return True
        return False

    def _resolve_type(self, error_type: str) -> None:
        for index, report in enumerate(self._errors):
            if report.error_type == error_type and not report.resolved:
                self._errors[index] = report.model_copy(update={"resolved": True})

    # ------------------------------------------------------------------
    # Derived
    # ------------------------------------------------------------------

    @property
    def realtime_available(self) -> bool:
        """Whether live features (tracking, chat) should be offered as live."""
        return self._websocket_status is ConnectionStatus.CONNECTED and not self._maintenance_mode

    @property
    def overall_status(self) -> HealthStatus:
        unresolved = self.errors()
        if self._maintenance_mode or self._api_connectivity is ApiConnectivity.OFFLINE:
            return HealthStatus.DOWN
        if any(e.error_type == ErrorType.CONNECTIVITY for e in unresolved):
            return HealthStatus.DOWN
        if (
            unresolved
            or self._api_connectivity is ApiConnectivity.DEGRADED
            or self._websocket_status is ConnectionStatus.RECONNECTING
        ):
            return HealthStatus.DEGRADED
        return HealthStatus.OPERATIONAL
