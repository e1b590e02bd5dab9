"""Realtime connection lifecycle and reconnection policy.

Owns:
- the single transport connection and its :class:`ConnectionState`
- the explicit reconnect-with-backoff state machine
- the ``connected`` side-effect (resubscribe + outbox flush) run after
  every successful (re)connect

State machine::

    disconnected --connect--> connecting --ack--> connected
    connected --transport loss--> reconnecting --ack--> connected
    reconnecting --attempts exhausted--> disconnected
    connecting/connected/reconnecting --disconnect--> disconnected
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from pycourier._transport import Transport
from pycourier.config import SyncConfig
from pycourier.exceptions import CourierConnectivityError, CourierNotConnectedError, CourierTransportError
from pycourier.models.connection import ConnectionState, ConnectionStatus
from pycourier.session import Credential

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ConnectionManager:
    """Owns the realtime transport and its reconnection policy.

    Every other component treats the connection as read-only: they query
    :attr:`is_connected` / :attr:`state` and send through :meth:`send`.
    """

    def __init__(
        self,
        transport: Transport,
        config: SyncConfig,
        *,
        on_connected: Callable[[], Awaitable[None]] | None = None,
        on_event: Callable[[str, Any], None] | None = None,
        on_status_change: Callable[[ConnectionState], None] | None = None,
        on_terminal_error: Callable[[CourierConnectivityError], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._config = config
        self._on_connected = on_connected
        self._on_event = on_event
        self._on_status_change = on_status_change
        self._on_terminal_error = on_terminal_error
        self._clock = clock
        self._sleep = sleep

        self._state = ConnectionState()
        self._credential: Credential | None = None
        # Bumped on every connect/disconnect; async completions carrying an
        # older generation are discarded.
        self._generation = 0
        self._reconnect_task: asyncio.Task[None] | None = None
        self._side_effect_task: asyncio.Task[None] | None = None

        transport.bind(on_event=self._handle_transport_event, on_disconnect=self.handle_transport_lost)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state.status is ConnectionStatus.CONNECTED

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(self, status: ConnectionStatus, **changes: Any) -> None:
        previous = self._state
        current = previous.model_copy(update={"status": status, **changes})
        if current == previous:
            return
        self._state = current
        if previous.status is not status:
            _logger.info("Realtime connection %s -> %s", previous.status, status)
        if self._on_status_change is not None:
            self._on_status_change(current)

    async def _acknowledge(self, connection_id: str) -> None:
        """Enter ``connected`` and run the connected side-effect."""
        self._transition(
            ConnectionStatus.CONNECTED,
            connection_id=connection_id,
            last_heartbeat=self._clock(),
            reconnect_attempts=0,
        )
        if self._on_connected is None:
            return

        task = asyncio.get_running_loop().create_task(self._on_connected())
        self._side_effect_task = task
        await asyncio.wait({task})
        if self._side_effect_task is task:
            self._side_effect_task = None
        if task.cancelled():
            _logger.debug("Post-connect replay cancelled")
            return
        exc = task.exception()
        if exc is not None:
            _logger.warning("Post-connect replay failed", exc_info=exc)

    def _give_up(self, reason: str) -> None:
        attempts = self._state.reconnect_attempts
        self._reconnect_task = None
        self._transition(ConnectionStatus.DISCONNECTED, connection_id=None)
        error = CourierConnectivityError(
            f"Realtime connection lost after {attempts} reconnect attempt(s): {reason}",
            attempts=attempts,
        )
        _logger.error("%s", error)
        if self._on_terminal_error is not None:
            self._on_terminal_error(error)

    # ------------------------------------------------------------------
    # Public lifecycle
    # ------------------------------------------------------------------

    async def connect(self, credential: Credential | None) -> bool:
        """Connect with *credential*.

        Returns ``False`` without touching the connection when the
        credential is missing or expired. A failed attempt hands over to
        the reconnect policy and also returns ``False``, as does a connect
        that :meth:`disconnect` overtook before the connected side-effect
        finished.
        """
        if credential is None or credential.expired_at(self._clock()):
            _logger.warning("Realtime connect skipped: credential missing or expired")
            return False

        if self._state.status is not ConnectionStatus.DISCONNECTED:
            await self.disconnect()

        self._credential = credential
        self._generation += 1
        generation = self._generation
        self._transition(ConnectionStatus.CONNECTING, connection_id=None)

        try:
            connection_id = await self._transport.connect(credential.token)
        except CourierTransportError as exc:
            if generation != self._generation:
                return False
            _logger.warning("Realtime connect failed: %s", exc)
            self._start_reconnect(generation)
            return False

        if generation != self._generation:
            # disconnect() ran while the connect was pending.
            await self._transport.disconnect()
            return False

        await self._acknowledge(connection_id)
        return generation == self._generation

    async def disconnect(self) -> None:
        """Tear the connection down and cancel pending reconnects and flushes.

        Idempotent. Resets the reconnect counter.
        """
        self._generation += 1
        current = asyncio.current_task()
        pending = [
            task
            for task in (self._reconnect_task, self._side_effect_task)
            if task is not None and not task.done() and task is not current
        ]
        self._reconnect_task = None
        self._side_effect_task = None
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        await self._transport.disconnect()
        self._transition(ConnectionStatus.DISCONNECTED, connection_id=None, reconnect_attempts=0)

    # ------------------------------------------------------------------
    # Transport loss and reconnection
    # ------------------------------------------------------------------

    def handle_transport_lost(self, reason: str | None = None) -> None:
        """Transport callback for connection loss the caller did not request."""
        if self._state.status is not ConnectionStatus.CONNECTED:
            return
        _logger.warning("Realtime connection lost: %s", reason or "unknown reason")
        self._start_reconnect(self._generation)

    def _start_reconnect(self, generation: int) -> None:
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        stale = self._side_effect_task
        if stale is not None and not stale.done() and stale is not asyncio.current_task():
            stale.cancel()
        self._transition(ConnectionStatus.RECONNECTING, connection_id=None)
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect(generation))

    async def _reconnect(self, generation: int) -> None:
        max_attempts = self._config.reconnect_max_attempts
        while generation == self._generation:
            if self._state.reconnect_attempts >= max_attempts:
                self._give_up("attempt limit reached")
                return

            attempt = self._state.reconnect_attempts + 1
            self._transition(ConnectionStatus.RECONNECTING, reconnect_attempts=attempt)
            delay = self._config.backoff_delay(attempt)
            _logger.info("Reconnecting in %.1fs (attempt %d/%d)", delay, attempt, max_attempts)
            await self._sleep(delay)
            if generation != self._generation:
                return

            credential = self._credential
            if credential is None or credential.expired_at(self._clock()):
                self._give_up("credential expired")
                return

            try:
                connection_id = await self._transport.connect(credential.token)
            except CourierTransportError as exc:
                _logger.warning("Reconnect attempt %d failed: %s", attempt, exc)
                continue

            if generation != self._generation:
                await self._transport.disconnect()
                return

            # A drop during the side-effect must be able to start a new cycle.
            self._reconnect_task = None
            await self._acknowledge(connection_id)
            return

    # ------------------------------------------------------------------
    # Traffic
    # ------------------------------------------------------------------

    def _handle_transport_event(self, event: str, payload: Any) -> None:
        if self.is_connected:
            self._transition(ConnectionStatus.CONNECTED, last_heartbeat=self._clock())
        if self._on_event is not None:
            self._on_event(event, payload)

    async def send(self, event: str, payload: Mapping[str, Any]) -> None:
        """Emit *event*; a transport failure is treated as connection loss.

        Raises
        ------
        CourierNotConnectedError
            The connection is not ``connected``.
        CourierTransportError
            The send failed; the reconnect policy has been started.
        """
        if not self.is_connected:
            raise CourierNotConnectedError(
                f"Cannot send {event!r} while {self._state.status}",
                event=event,
            )
        try:
            await self._transport.emit(event, payload)
        except CourierTransportError as exc:
            self.handle_transport_lost(f"send {event!r} failed: {exc}")
            raise
