"""Custom exception hierarchy for pycourier."""

from __future__ import annotations

from typing import Any


class CourierError(Exception):
    """Base exception for all pycourier errors."""


class CourierConfigError(CourierError):
    """Invalid or missing configuration."""


class CourierTransportError(CourierError):
    """Realtime transport failure (connect refused, emit failed, socket gone)."""

    def __init__(self, message: str, *, event: str = "") -> None:
        self.event = event
        super().__init__(message)


class CourierNotConnectedError(CourierTransportError):
    """An outbound send was attempted while the connection is not ``connected``."""


class CourierConnectivityError(CourierError):
    """Terminal connectivity loss.

    Raised (reported, not thrown) once the reconnect policy has exhausted
    its attempt budget or can no longer authenticate.  The connection is
    left ``disconnected`` and no further automatic reconnect is attempted.
    """

    def __init__(self, message: str, *, attempts: int = 0) -> None:
        self.attempts = attempts
        super().__init__(message)


class MalformedEventError(CourierError):
    """Inbound event missing required fields or carrying invalid values.

    These are handed to the health tracker; the event is dropped and the
    targeted entity log is left untouched.
    """

    def __init__(
        self,
        message: str,
        *,
        event: str = "",
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        self.event = event
        self.errors = errors or []
        super().__init__(message)
