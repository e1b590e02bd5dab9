"""Offline outbox for outbound realtime actions.

Chat messages and courier location pings are appended here and only
removed once the transport has accepted them, so nothing issued while
offline (or while a send is failing) is lost or reordered.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import deque
from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from pycourier.exceptions import CourierError
from pycourier.models.outbox import FlushResult, QueuedAction, QueueKind

_logger = logging.getLogger(__name__)

LOCATION_UPDATE_EVENT = "location_update"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return uuid.uuid4().hex


class OfflineOutbox:
    """Two independent FIFO queues (messages, location updates).

    Invariants:
    - actions leave a queue only after a confirmed send, head first
    - a failed send halts that queue; the failed action and everything
      behind it stay queued in their original order
    - ``sync_pending`` is ``True`` from the first enqueue until both
      queues have been fully drained
    """

    def __init__(
        self,
        send: Callable[[str, Mapping[str, Any]], Awaitable[None]],
        *,
        is_connected: Callable[[], bool] = lambda: True,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._send = send
        self._is_connected = is_connected
        self._clock = clock
        self._id_factory = id_factory
        self._queues: dict[QueueKind, deque[QueuedAction]] = {
            QueueKind.MESSAGES: deque(),
            QueueKind.LOCATION_UPDATES: deque(),
        }
        self._sync_pending = False
        self._flush_lock = asyncio.Lock()

    @property
    def sync_pending(self) -> bool:
        return self._sync_pending

    def pending(self, queue: QueueKind) -> tuple[QueuedAction, ...]:
        return tuple(self._queues[queue])

    def __len__(self) -> int:
        return sum(len(q) for q in self._queues.values())

    def _enqueue(self, queue: QueueKind, event_type: str, payload: Mapping[str, Any]) -> QueuedAction:
        action = QueuedAction(
            id=self._id_factory(),
            type=event_type,
            queue=queue,
            payload=dict(payload),
            created_at=self._clock(),
        )
        self._queues[queue].append(action)
        self._sync_pending = True
        _logger.debug("Queued %s action id=%s type=%s (depth=%d)", queue, action.id, event_type, len(self._queues[queue]))
        return action

    def enqueue_message(self, event_type: str, payload: Mapping[str, Any]) -> QueuedAction:
        """Queue a chat action (e.g. ``send_message``) emitted verbatim as *event_type*."""
        return self._enqueue(QueueKind.MESSAGES, event_type, payload)

    def enqueue_location_update(self, payload: Mapping[str, Any]) -> QueuedAction:
        return self._enqueue(QueueKind.LOCATION_UPDATES, LOCATION_UPDATE_EVENT, payload)

    async def flush(self) -> FlushResult:
        """Drain both queues head to tail while the transport is connected.

        Concurrent calls are serialized; a later call picks up whatever the
        earlier one left behind.
        """
        async with self._flush_lock:
            if not self._is_connected():
                _logger.debug("Flush skipped: not connected")
                return FlushResult(skipped=True)

            sent: dict[QueueKind, int] = {}
            halted: list[QueueKind] = []
            for kind, queue in self._queues.items():
                count = 0
                while queue:
                    action = queue[0]
                    try:
                        await self._send(action.type, action.payload)
                    except CourierError as exc:
                        _logger.info(
                            "Flush of %s halted at id=%s (%d left): %s",
                            kind,
                            action.id,
                            len(queue),
                            exc,
                        )
                        halted.append(kind)
                        break
                    # Only a confirmed send removes the head.
                    queue.popleft()
                    count += 1
                sent[kind] = count

            if not any(self._queues.values()):
                self._sync_pending = False
            result = FlushResult(sent=sent, halted=tuple(halted))
            if result.total_sent or halted:
                _logger.debug("Flush sent=%s halted=%s", sent, halted)
            return result
