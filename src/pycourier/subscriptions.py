"""Desired realtime subscriptions and their replay after (re)connect."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from pycourier.connection import ConnectionManager
from pycourier.exceptions import CourierError
from pycourier.models.subscription import Subscription, SubscriptionKind

_logger = logging.getLogger(__name__)


class SubscriptionRegistry:
    """Set of channels the client wants, keyed by ``(kind, key)``.

    The backend keeps no subscription state across connections, so the
    registry is the source of truth: entries are created and removed only
    by explicit calls and re-sent in full by :meth:`replay_all` after every
    ``connected`` transition.

    :meth:`subscribe` and :meth:`unsubscribe` never block. While connected
    they schedule the request; scheduled requests are chained so they reach
    the transport in call order.
    """

    def __init__(self, connection: ConnectionManager) -> None:
        self._connection = connection
        self._entries: dict[tuple[SubscriptionKind, str], Subscription] = {}
        self._pending: set[asyncio.Task[None]] = set()
        self._tail: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identity: object) -> bool:
        return identity in self._entries

    def get(self, kind: SubscriptionKind, key: str) -> Subscription | None:
        return self._entries.get((kind, key))

    def snapshot(self) -> tuple[Subscription, ...]:
        return tuple(self._entries.values())

    def subscribe(
        self,
        kind: SubscriptionKind,
        key: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> Subscription:
        """Insert or replace the subscription for ``(kind, key)``."""
        subscription = Subscription(kind=kind, key=key, metadata=dict(metadata or {}))
        replaced = subscription.identity in self._entries
        self._entries[subscription.identity] = subscription
        _logger.debug("Subscription %s %s %s", "replaced" if replaced else "added", kind, key)

        event = kind.subscribe_event
        if event is not None and self._connection.is_connected:
            self._schedule(event, subscription.subscribe_payload())
        return subscription

    def unsubscribe(self, kind: SubscriptionKind, key: str) -> bool:
        """Remove ``(kind, key)``. Returns ``False`` if it was not held."""
        subscription = self._entries.pop((kind, key), None)
        if subscription is None:
            return False
        _logger.debug("Subscription removed %s %s", kind, key)

        event = kind.unsubscribe_event
        if event is not None and self._connection.is_connected:
            self._schedule(event, subscription.unsubscribe_payload())
        return True

    def clear(self) -> None:
        """Drop every entry (session termination). Sends nothing."""
        self._entries.clear()
        self.cancel_pending()

    async def replay_all(self) -> int:
        """Re-send a subscribe request for every held entry.

        Runs on every ``connected`` transition. A failed send is logged and
        left for the next replay. Returns the number of requests sent.
        """
        await self.drain()
        sent = 0
        for subscription in list(self._entries.values()):
            event = subscription.kind.subscribe_event
            if event is None:
                continue
            if not self._connection.is_connected:
                _logger.debug("Replay interrupted: connection no longer available")
                break
            try:
                await self._connection.send(event, subscription.subscribe_payload())
            except CourierError as exc:
                _logger.debug("Replay of %s %s failed: %s", subscription.kind, subscription.key, exc)
                break
            sent += 1
        _logger.debug("Replayed %d of %d subscription(s)", sent, len(self._entries))
        return sent

    # ------------------------------------------------------------------
    # Scheduled sends
    # ------------------------------------------------------------------

    def _schedule(self, event: str, payload: dict[str, Any]) -> None:
        task = asyncio.get_running_loop().create_task(self._send_after(self._tail, event, payload))
        self._tail = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send_after(self, previous: asyncio.Task[None] | None, event: str, payload: dict[str, Any]) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait({previous})
        if not self._connection.is_connected:
            # The next replay_all() covers it.
            return
        try:
            await self._connection.send(event, payload)
        except CourierError as exc:
            _logger.debug("Send of %s deferred to next replay: %s", event, exc)

    async def drain(self) -> None:
        """Wait for every scheduled request to finish."""
        while self._pending:
            await asyncio.wait(set(self._pending))

    def cancel_pending(self) -> None:
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()
        self._tail = None
