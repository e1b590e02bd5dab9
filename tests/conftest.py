from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from pycourier.exceptions import CourierTransportError
from pycourier.session import Credential


class FakeTransport:
    """In-memory transport double.

    ``connect_results`` scripts successive connect outcomes: a string is the
    connection id to hand out, an exception is raised. When empty, connects
    succeed with ``sid-<n>``.
    """

    def __init__(self) -> None:
        self.connected = False
        self.connect_results: list[str | Exception] = []
        self.connect_calls: list[str] = []
        self.emitted: list[tuple[str, dict[str, Any]]] = []
        self.fail_emit: Exception | None = None
        self.emit_failures: list[Exception] = []
        self.connect_gate: asyncio.Event | None = None
        self.emit_gate: asyncio.Event | None = None
        self.disconnect_calls = 0
        self._on_event: Callable[[str, Any], None] | None = None
        self._on_disconnect: Callable[[str | None], None] | None = None
        self._sid = 0

    def bind(self, *, on_event: Callable[[str, Any], None], on_disconnect: Callable[[str | None], None]) -> None:
        self._on_event = on_event
        self._on_disconnect = on_disconnect

    async def connect(self, token: str) -> str:
        self.connect_calls.append(token)
        await asyncio.sleep(0)
        if self.connect_gate is not None:
            await self.connect_gate.wait()
        if self.connect_results:
            result = self.connect_results.pop(0)
            if isinstance(result, Exception):
                raise result
            self.connected = True
            return result
        self._sid += 1
        self.connected = True
        return f"sid-{self._sid}"

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.connected = False

    async def emit(self, event: str, payload: Mapping[str, Any]) -> None:
        await asyncio.sleep(0)
        if self.emit_gate is not None:
            await self.emit_gate.wait()
        if self.emit_failures:
            raise self.emit_failures.pop(0)
        if self.fail_emit is not None:
            raise self.fail_emit
        self.emitted.append((event, dict(payload)))

    # Test controls

    def drop(self, reason: str = "transport close") -> None:
        self.connected = False
        assert self._on_disconnect is not None
        self._on_disconnect(reason)

    def push(self, event: str, payload: Any) -> None:
        assert self._on_event is not None
        self._on_event(event, payload)

    def events(self, name: str) -> list[dict[str, Any]]:
        return [payload for event, payload in self.emitted if event == name]

    def event_names(self) -> list[str]:
        return [event for event, _ in self.emitted]


def refused() -> CourierTransportError:
    return CourierTransportError("connection refused")


class RecordingSleep:
    """Backoff sleep that records delays and only yields to the loop."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class FixedClock:
    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


async def wait_until(predicate: Callable[[], bool], *, turns: int = 500) -> None:
    for _ in range(turns):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def fake_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def credential(clock: FixedClock) -> Credential:
    return Credential(token="tok-1", expires_at=clock.now + timedelta(hours=1), user_id="U1")
