"""
Change observation for habits and completions.

The bridge only relays "something changed" signals: each subscription owns
a fetch coroutine and re-runs it whenever a mutation touching its habit has
been committed.
"""
import asyncio
import logging
import uuid
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

import sentry_sdk

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CHANGED = object()
_CLOSED = object()


class Subscription(Generic[T]):
    """Async iterator over successive values of ``fetch``.

    Yields the current value immediately, then once per batch of committed
    changes. A failed recomputation is logged and skipped so the consumer
    keeps the last value it received.
    """

    def __init__(
        self,
        bridge: "ObservationBridge",
        key: uuid.UUID | None,
        fetch: Callable[[], Awaitable[T]],
    ):
        self._bridge = bridge
        self._key = key
        self._fetch = fetch
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._has_value = False
        self._queue.put_nowait(_CHANGED)

    @property
    def closed(self) -> bool:
        return self._closed

    def notify(self) -> None:
        # Coalesce bursts: one pending signal is enough to trigger a refetch
        if not self._closed and self._queue.empty():
            self._queue.put_nowait(_CHANGED)

    def cancel(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._bridge._detach(self._key, self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        while True:
            if self._closed:
                raise StopAsyncIteration
            signal = await self._queue.get()
            if signal is _CLOSED or self._closed:
                raise StopAsyncIteration

            try:
                value = await self._fetch()
            except Exception as exc:
                if not self._has_value:
                    raise
                logger.exception("Recomputation failed for subscription on %s", self._key or "all habits")
                sentry_sdk.capture_exception(exc)
                continue

            self._has_value = True
            return value

    async def __aenter__(self) -> "Subscription[T]":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cancel()


class ObservationBridge:
    """Fan-out of committed-change signals to subscriptions.

    Subscriptions keyed by a habit id wake on changes to that habit;
    subscriptions keyed by None wake on every change.
    """

    def __init__(self):
        self._subscriptions: dict[uuid.UUID | None, set[Subscription]] = defaultdict(set)

    def subscribe(
        self,
        fetch: Callable[[], Awaitable[T]],
        habit_id: uuid.UUID | None = None,
    ) -> Subscription[T]:
        subscription = Subscription(self, habit_id, fetch)
        self._subscriptions[habit_id].add(subscription)
        return subscription

    def publish(self, habit_id: uuid.UUID | None = None) -> None:
        """Signal a committed change. Call only after the transaction commits."""
        targets = set(self._subscriptions.get(None, ()))
        if habit_id is not None:
            targets |= self._subscriptions.get(habit_id, set())
        for subscription in targets:
            subscription.notify()

    def subscriber_count(self, habit_id: uuid.UUID | None = None) -> int:
        return len(self._subscriptions.get(habit_id, ()))

    def close(self) -> None:
        for subscriptions in list(self._subscriptions.values()):
            for subscription in list(subscriptions):
                subscription.cancel()

    def _detach(self, key: uuid.UUID | None, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(key)
        if subscriptions is None:
            return
        subscriptions.discard(subscription)
        if not subscriptions:
            del self._subscriptions[key]
