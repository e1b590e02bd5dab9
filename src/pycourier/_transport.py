"""Socket.IO transport for the realtime connection."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol

import aiohttp
import socketio
from socketio import exceptions as sio_exceptions

from pycourier._redact import redact_for_log
from pycourier.config import SyncConfig
from pycourier.exceptions import CourierTransportError

_logger = logging.getLogger(__name__)

EventCallback = Callable[[str, Any], None]
DisconnectCallback = Callable[[str | None], None]


class Transport(Protocol):
    """Structural transport interface used by the connection manager.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`SocketIOTransport`) concrete.

    ``on_disconnect`` must fire only for connection loss the caller did not
    request; a :meth:`disconnect` call never triggers it.
    """

    @property
    def connected(self) -> bool: ...

    def bind(self, *, on_event: EventCallback, on_disconnect: DisconnectCallback) -> None: ...

    async def connect(self, token: str) -> str: ...

    async def disconnect(self) -> None: ...

    async def emit(self, event: str, payload: Mapping[str, Any]) -> None: ...


class SocketIOTransport:
    """python-socketio client with library-level reconnection disabled.

    Reconnection, backoff and resubscription are owned by
    :class:`pycourier.connection.ConnectionManager`, so every attempt builds
    a fresh ``AsyncClient``. Events from a superseded client are ignored.
    """

    def __init__(
        self,
        config: SyncConfig,
        *,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config
        self._http_session = http_session
        self._client: socketio.AsyncClient | None = None
        self._on_event: EventCallback | None = None
        self._on_disconnect: DisconnectCallback | None = None

    @property
    def connected(self) -> bool:
        return self._client is not None and self._client.connected

    def attach_http_session(self, session: aiohttp.ClientSession | None) -> None:
        """Use *session* for clients built from now on."""
        self._http_session = session

    def bind(self, *, on_event: EventCallback, on_disconnect: DisconnectCallback) -> None:
        self._on_event = on_event
        self._on_disconnect = on_disconnect

    def _build_client(self) -> socketio.AsyncClient:
        client = socketio.AsyncClient(
            reconnection=False,
            logger=False,
            engineio_logger=False,
            handle_sigint=False,
            http_session=self._http_session,
        )

        async def on_disconnect(reason: Any = None) -> None:
            if client is not self._client:
                return
            self._client = None
            _logger.debug("Socket.IO disconnected: %s", reason)
            if self._on_disconnect is not None:
                self._on_disconnect(str(reason) if reason is not None else None)

        async def on_any(event: str, *args: Any) -> None:
            if client is not self._client:
                return
            data = args[0] if args else None
            _logger.debug("Received event=%s payload=%s", event, redact_for_log(data))
            if self._on_event is not None:
                self._on_event(event, data)

        client.on("disconnect", on_disconnect)
        client.on("*", on_any)
        return client

    async def connect(self, token: str) -> str:
        """Open a new connection and return its connection id (the Socket.IO sid)."""
        await self.disconnect()

        client = self._build_client()
        self._client = client
        _logger.debug(
            "Socket.IO connect url=%s path=%s transports=%s",
            self._config.base_url,
            self._config.socketio_path,
            self._config.transports,
        )
        try:
            await client.connect(
                self._config.base_url,
                auth={"token": token},
                transports=list(self._config.transports),
                socketio_path=self._config.socketio_path,
                wait_timeout=self._config.connect_timeout,
            )
        except (sio_exceptions.ConnectionError, aiohttp.ClientError) as exc:
            if self._client is client:
                self._client = None
            raise CourierTransportError(f"Connect to {self._config.base_url} failed: {exc}") from exc

        if self._client is not client:
            # disconnect() ran while the connect was pending.
            try:
                await client.disconnect()
            except sio_exceptions.SocketIOError:
                _logger.debug("Socket.IO disconnect of superseded client failed", exc_info=True)
            raise CourierTransportError(f"Connect to {self._config.base_url} superseded by disconnect")

        return client.get_sid() or ""

    async def disconnect(self) -> None:
        """Close the current connection without reporting it as lost."""
        client = self._client
        self._client = None
        if client is None:
            return
        try:
            await client.disconnect()
        except sio_exceptions.SocketIOError:
            _logger.debug("Socket.IO disconnect failed", exc_info=True)

    async def emit(self, event: str, payload: Mapping[str, Any]) -> None:
        client = self._client
        if client is None or not client.connected:
            raise CourierTransportError(f"Cannot emit {event!r}: socket is not connected", event=event)
        _logger.debug("Emit event=%s payload=%s", event, redact_for_log(payload))
        try:
            await client.emit(event, dict(payload))
        except sio_exceptions.SocketIOError as exc:
            raise CourierTransportError(f"Emit {event!r} failed: {exc}", event=event) from exc
