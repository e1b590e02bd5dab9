"""Client configuration for pycourier."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from pycourier.exceptions import CourierConfigError


def _env_float(env: Mapping[str, str], key: str) -> float | None:
    value = env.get(key)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise CourierConfigError(f"{key} must be a number, got {value!r}") from exc


def _env_int(env: Mapping[str, str], key: str) -> int | None:
    value = env.get(key)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise CourierConfigError(f"{key} must be an integer, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class SyncConfig:
    """Realtime engine configuration.

    Parameters
    ----------
    base_url : str
        Backend URL the Socket.IO client connects to.
    socketio_path : str
        Socket.IO endpoint path on the backend.
    transports : tuple of str
        Engine.IO transports to allow. Defaults to websocket only, matching
        the web client.
    connect_timeout : float
        Seconds to wait for the connect acknowledgement of a single attempt.
    reconnect_base_delay : float
        Backoff delay in seconds before the first reconnect attempt. Each
        subsequent attempt doubles it.
    reconnect_max_delay : float
        Upper bound for a single backoff delay.
    reconnect_max_attempts : int
        Consecutive failed reconnect attempts after which the connection is
        declared lost and left ``disconnected``.
    notification_limit : int
        Maximum number of notifications retained; the oldest is evicted.
    error_history_limit : int
        Maximum number of error reports retained by the health tracker.
    """

    base_url: str = "http://localhost:3000"
    socketio_path: str = "socket.io"
    transports: tuple[str, ...] = ("websocket",)
    connect_timeout: float = 10.0
    reconnect_base_delay: float = 1.0
    reconnect_max_delay: float = 5.0
    reconnect_max_attempts: int = 10
    notification_limit: int = 100
    error_history_limit: int = 50

    def __post_init__(self) -> None:
        if not self.base_url:
            raise CourierConfigError("base_url must be non-empty")
        if self.reconnect_base_delay < 0 or self.reconnect_max_delay < 0:
            raise CourierConfigError("reconnect delays must be non-negative")
        if self.reconnect_max_delay < self.reconnect_base_delay:
            raise CourierConfigError("reconnect_max_delay must be >= reconnect_base_delay")
        if self.reconnect_max_attempts < 0:
            raise CourierConfigError("reconnect_max_attempts must be non-negative")
        if self.notification_limit <= 0:
            raise CourierConfigError("notification_limit must be positive")
        if self.error_history_limit <= 0:
            raise CourierConfigError("error_history_limit must be positive")

    def backoff_delay(self, attempt: int) -> float:
        """Delay in seconds before reconnect *attempt* (1-based)."""
        if attempt <= 1:
            return self.reconnect_base_delay
        return min(self.reconnect_base_delay * (2 ** (attempt - 1)), self.reconnect_max_delay)

    @classmethod
    def from_env(cls, **overrides: Any) -> SyncConfig:
        """Create configuration from environment variables.

        Reads ``COURIER_BASE_URL``, ``COURIER_SOCKETIO_PATH``,
        ``COURIER_TRANSPORTS`` (comma separated) and the numeric
        ``COURIER_*`` tuning variables. Explicit keyword arguments
        override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        base_url = env.get("COURIER_BASE_URL")
        if base_url is not None:
            config_kwargs["base_url"] = base_url.rstrip("/")

        path = env.get("COURIER_SOCKETIO_PATH")
        if path is not None:
            config_kwargs["socketio_path"] = path

        transports = env.get("COURIER_TRANSPORTS")
        if transports is not None:
            config_kwargs["transports"] = tuple(t.strip() for t in transports.split(",") if t.strip())

        _ENV_FLOAT_MAP = {
            "COURIER_CONNECT_TIMEOUT": "connect_timeout",
            "COURIER_RECONNECT_BASE_DELAY": "reconnect_base_delay",
            "COURIER_RECONNECT_MAX_DELAY": "reconnect_max_delay",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            value = _env_float(env, env_key)
            if value is not None:
                config_kwargs[field_name] = value

        _ENV_INT_MAP = {
            "COURIER_RECONNECT_MAX_ATTEMPTS": "reconnect_max_attempts",
            "COURIER_NOTIFICATION_LIMIT": "notification_limit",
            "COURIER_ERROR_HISTORY_LIMIT": "error_history_limit",
        }
        for env_key, field_name in _ENV_INT_MAP.items():
            parsed = _env_int(env, env_key)
            if parsed is not None:
                config_kwargs[field_name] = parsed

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
