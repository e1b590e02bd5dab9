from __future__ import annotations

import asyncio
from typing import Any

import pytest
import socketio
from conftest import FixedClock, RecordingSleep, wait_until

from pycourier._transport import SocketIOTransport
from pycourier.config import SyncConfig
from pycourier.connection import ConnectionManager
from pycourier.exceptions import CourierTransportError
from pycourier.models.connection import ConnectionStatus
from pycourier.session import Credential


class _GatedClient:
    """Stand-in for ``socketio.AsyncClient`` whose connect waits on a gate."""

    def __init__(self, **kwargs: Any) -> None:
        self.options = kwargs
        self.connected = False
        self.gate = asyncio.Event()
        self.handlers: dict[str, Any] = {}
        self.connect_kwargs: dict[str, Any] | None = None
        self.disconnect_calls = 0

    def on(self, event: str, handler: Any) -> None:
        self.handlers[event] = handler

    async def connect(self, url: str, **kwargs: Any) -> None:
        self.connect_kwargs = kwargs
        await self.gate.wait()
        self.connected = True

    def get_sid(self) -> str:
        return "sid-x"

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.connected = False


@pytest.fixture
def clients(monkeypatch: pytest.MonkeyPatch) -> list[_GatedClient]:
    built: list[_GatedClient] = []

    def factory(**kwargs: Any) -> _GatedClient:
        client = _GatedClient(**kwargs)
        built.append(client)
        return client

    monkeypatch.setattr(socketio, "AsyncClient", factory)
    return built


@pytest.mark.asyncio
async def test_connect_sends_token_and_returns_sid(clients: list[_GatedClient]) -> None:
    transport = SocketIOTransport(SyncConfig(base_url="http://courier.test"))

    pending = asyncio.create_task(transport.connect("tok-1"))
    await wait_until(lambda: bool(clients) and clients[0].connect_kwargs is not None)
    clients[0].gate.set()

    assert await pending == "sid-x"
    assert transport.connected is True
    assert clients[0].options["reconnection"] is False
    assert clients[0].connect_kwargs is not None
    assert clients[0].connect_kwargs["auth"] == {"token": "tok-1"}
    assert clients[0].connect_kwargs["transports"] == ["websocket"]


@pytest.mark.asyncio
async def test_disconnect_during_pending_connect_closes_late_socket(clients: list[_GatedClient]) -> None:
    transport = SocketIOTransport(SyncConfig())

    pending = asyncio.create_task(transport.connect("tok-1"))
    await wait_until(lambda: bool(clients) and clients[0].connect_kwargs is not None)
    await transport.disconnect()
    clients[0].gate.set()

    with pytest.raises(CourierTransportError):
        await pending
    assert clients[0].connected is False
    assert transport.connected is False


@pytest.mark.asyncio
async def test_manager_disconnect_during_pending_socket_connect(
    clients: list[_GatedClient], clock: FixedClock, fake_sleep: RecordingSleep, credential: Credential
) -> None:
    manager = ConnectionManager(SocketIOTransport(SyncConfig()), SyncConfig(), clock=clock, sleep=fake_sleep)

    pending = asyncio.create_task(manager.connect(credential))
    await wait_until(lambda: bool(clients) and clients[0].connect_kwargs is not None)
    await manager.disconnect()
    clients[0].gate.set()

    assert await pending is False
    assert manager.state.status is ConnectionStatus.DISCONNECTED
    assert clients[0].connected is False
    assert fake_sleep.delays == []
