from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from conftest import FakeTransport, FixedClock, RecordingSleep, refused, wait_until

from pycourier.config import SyncConfig
from pycourier.connection import ConnectionManager
from pycourier.exceptions import CourierConnectivityError, CourierNotConnectedError, CourierTransportError
from pycourier.models.connection import ConnectionState, ConnectionStatus
from pycourier.session import Credential


class _Recorder:
    def __init__(self) -> None:
        self.states: list[ConnectionState] = []
        self.terminal: list[CourierConnectivityError] = []
        self.connected_calls = 0
        self.events: list[tuple[str, object]] = []

    async def on_connected(self) -> None:
        self.connected_calls += 1

    @property
    def statuses(self) -> list[ConnectionStatus]:
        return [s.status for s in self.states]


def _manager(
    transport: FakeTransport,
    clock: FixedClock,
    sleep: RecordingSleep,
    recorder: _Recorder,
    **config: object,
) -> ConnectionManager:
    return ConnectionManager(
        transport,
        SyncConfig(**config),  # type: ignore[arg-type]
        on_connected=recorder.on_connected,
        on_event=lambda event, payload: recorder.events.append((event, payload)),
        on_status_change=recorder.states.append,
        on_terminal_error=recorder.terminal.append,
        clock=clock,
        sleep=sleep,
    )


@pytest.mark.asyncio
async def test_connect_acknowledged_enters_connected(
    transport: FakeTransport, clock: FixedClock, fake_sleep: RecordingSleep, credential: Credential
) -> None:
    recorder = _Recorder()
    manager = _manager(transport, clock, fake_sleep, recorder)

    assert await manager.connect(credential) is True

    state = manager.state
    assert state.status is ConnectionStatus.CONNECTED
    assert state.connection_id == "sid-1"
    assert state.reconnect_attempts == 0
    assert state.last_heartbeat == clock.now
    assert recorder.statuses == [ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED]
    assert recorder.connected_calls == 1
    assert transport.connect_calls == ["tok-1"]


@pytest.mark.asyncio
async def test_connect_without_usable_credential_is_a_no_op(
    transport: FakeTransport, clock: FixedClock, fake_sleep: RecordingSleep
) -> None:
    recorder = _Recorder()
    manager = _manager(transport, clock, fake_sleep, recorder)
    expired = Credential(token="old", expires_at=clock.now - timedelta(seconds=1))

    assert await manager.connect(None) is False
    assert await manager.connect(expired) is False

    assert manager.state.status is ConnectionStatus.DISCONNECTED
    assert transport.connect_calls == []
    assert recorder.states == []


@pytest.mark.asyncio
async def test_transport_loss_reconnects_with_backoff_and_reruns_side_effect(
    transport: FakeTransport, clock: FixedClock, fake_sleep: RecordingSleep, credential: Credential
) -> None:
    recorder = _Recorder()
    manager = _manager(transport, clock, fake_sleep, recorder)
    await manager.connect(credential)

    transport.connect_results = [refused(), "sid-again"]
    transport.drop()
    assert manager.state.status is ConnectionStatus.RECONNECTING

    await wait_until(lambda: recorder.connected_calls == 2)

    assert fake_sleep.delays == [1.0, 2.0]
    assert manager.state.connection_id == "sid-again"
    assert manager.state.reconnect_attempts == 0
    assert recorder.connected_calls == 2
    assert ConnectionStatus.RECONNECTING in recorder.statuses
    assert recorder.terminal == []


@pytest.mark.asyncio
async def test_reconnect_gives_up_after_attempt_limit(
    transport: FakeTransport, clock: FixedClock, fake_sleep: RecordingSleep, credential: Credential
) -> None:
    recorder = _Recorder()
    manager = _manager(transport, clock, fake_sleep, recorder, reconnect_max_attempts=3)
    await manager.connect(credential)

    transport.connect_results = [refused(), refused(), refused(), refused()]
    transport.drop()
    await wait_until(lambda: bool(recorder.terminal))

    assert fake_sleep.delays == [1.0, 2.0, 4.0]
    assert manager.state.status is ConnectionStatus.DISCONNECTED
    assert manager.state.reconnect_attempts == 3
    assert recorder.terminal[0].attempts == 3
    # One initial connect plus three attempts; nothing automatic afterwards.
    assert len(transport.connect_calls) == 4
    await asyncio.sleep(0)
    assert len(transport.connect_calls) == 4

    await manager.disconnect()
    assert manager.state.reconnect_attempts == 0


@pytest.mark.asyncio
async def test_failed_initial_connect_enters_reconnect_policy(
    transport: FakeTransport, clock: FixedClock, fake_sleep: RecordingSleep, credential: Credential
) -> None:
    recorder = _Recorder()
    manager = _manager(transport, clock, fake_sleep, recorder)
    transport.connect_results = [refused()]

    assert await manager.connect(credential) is False
    assert manager.state.status is ConnectionStatus.RECONNECTING

    await wait_until(lambda: recorder.connected_calls == 1)
    assert manager.is_connected


@pytest.mark.asyncio
async def test_disconnect_cancels_pending_reconnect(
    transport: FakeTransport, clock: FixedClock, credential: Credential
) -> None:
    gate = asyncio.Event()

    async def blocking_sleep(delay: float) -> None:
        await gate.wait()

    recorder = _Recorder()
    manager = ConnectionManager(
        transport,
        SyncConfig(),
        on_connected=recorder.on_connected,
        on_status_change=recorder.states.append,
        clock=clock,
        sleep=blocking_sleep,
    )
    await manager.connect(credential)
    transport.drop()
    await asyncio.sleep(0)

    await manager.disconnect()
    gate.set()
    await asyncio.sleep(0)

    assert manager.state.status is ConnectionStatus.DISCONNECTED
    assert manager.state.reconnect_attempts == 0
    assert transport.connect_calls == ["tok-1"]


@pytest.mark.asyncio
async def test_expired_credential_during_reconnect_is_terminal(
    transport: FakeTransport, clock: FixedClock, fake_sleep: RecordingSleep
) -> None:
    recorder = _Recorder()
    manager = _manager(transport, clock, fake_sleep, recorder)
    short = Credential(token="short", expires_at=clock.now + timedelta(seconds=30))
    await manager.connect(short)

    clock.advance(60)
    transport.drop()
    await wait_until(lambda: bool(recorder.terminal))

    assert manager.state.status is ConnectionStatus.DISCONNECTED
    assert transport.connect_calls == ["short"]


@pytest.mark.asyncio
async def test_send_requires_connection(
    transport: FakeTransport, clock: FixedClock, fake_sleep: RecordingSleep
) -> None:
    manager = _manager(transport, clock, fake_sleep, _Recorder())

    with pytest.raises(CourierNotConnectedError):
        await manager.send("send_message", {"order_id": "O1"})
    assert transport.emitted == []


@pytest.mark.asyncio
async def test_send_failure_is_treated_as_connection_loss(
    transport: FakeTransport, clock: FixedClock, fake_sleep: RecordingSleep, credential: Credential
) -> None:
    recorder = _Recorder()
    manager = _manager(transport, clock, fake_sleep, recorder)
    await manager.connect(credential)
    transport.fail_emit = CourierTransportError("socket closed")

    with pytest.raises(CourierTransportError):
        await manager.send("send_message", {"order_id": "O1"})

    assert manager.state.status is ConnectionStatus.RECONNECTING
    transport.fail_emit = None
    await wait_until(lambda: recorder.connected_calls == 2)


@pytest.mark.asyncio
async def test_inbound_event_refreshes_heartbeat_and_is_forwarded(
    transport: FakeTransport, clock: FixedClock, fake_sleep: RecordingSleep, credential: Credential
) -> None:
    recorder = _Recorder()
    manager = _manager(transport, clock, fake_sleep, recorder)
    await manager.connect(credential)

    clock.advance(5)
    transport.push("eta_update", {"order_id": "O1"})

    assert manager.state.last_heartbeat == clock.now
    assert recorder.events == [("eta_update", {"order_id": "O1"})]


@pytest.mark.asyncio
async def test_connect_while_connected_replaces_connection(
    transport: FakeTransport, clock: FixedClock, fake_sleep: RecordingSleep, credential: Credential
) -> None:
    recorder = _Recorder()
    manager = _manager(transport, clock, fake_sleep, recorder)
    await manager.connect(credential)

    fresh = credential.model_copy(update={"token": "tok-2"})
    assert await manager.connect(fresh) is True

    assert transport.connect_calls == ["tok-1", "tok-2"]
    assert transport.disconnect_calls == 1
    assert manager.state.connection_id == "sid-2"


@pytest.mark.asyncio
async def test_disconnect_during_pending_connect_discards_late_completion(
    transport: FakeTransport, clock: FixedClock, fake_sleep: RecordingSleep, credential: Credential
) -> None:
    recorder = _Recorder()
    manager = _manager(transport, clock, fake_sleep, recorder)
    transport.connect_gate = asyncio.Event()

    pending = asyncio.create_task(manager.connect(credential))
    await wait_until(lambda: bool(transport.connect_calls))
    assert manager.state.status is ConnectionStatus.CONNECTING

    await manager.disconnect()
    transport.connect_gate.set()

    assert await pending is False
    assert manager.state.status is ConnectionStatus.DISCONNECTED
    # The late connection is torn down again and nothing is replayed.
    assert transport.connected is False
    assert transport.disconnect_calls == 2
    assert recorder.connected_calls == 0
    assert fake_sleep.delays == []


@pytest.mark.asyncio
async def test_connect_overtaken_during_side_effect_returns_false(
    transport: FakeTransport, clock: FixedClock, fake_sleep: RecordingSleep, credential: Credential
) -> None:
    gate = asyncio.Event()
    started: list[bool] = []

    async def slow_replay() -> None:
        started.append(True)
        await gate.wait()

    manager = ConnectionManager(transport, SyncConfig(), on_connected=slow_replay, clock=clock, sleep=fake_sleep)

    pending = asyncio.create_task(manager.connect(credential))
    await wait_until(lambda: bool(started))
    await manager.disconnect()

    assert await pending is False
    assert manager.state.status is ConnectionStatus.DISCONNECTED
