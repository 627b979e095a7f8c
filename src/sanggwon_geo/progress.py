"""Structured progress events for long-running fetches."""

from __future__ import annotations

import asyncio
from collections import deque

from .models import ProgressEvent

HISTORY_LIMIT = 256
SUBSCRIPTION_BUFFER = 256

_CLOSED = object()


class Subscription:
    """Async iterator over the events published after it was created."""

    def __init__(self, channel: "ProgressChannel") -> None:
        self._channel = channel
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=SUBSCRIPTION_BUFFER)

    def _push(self, item: object) -> None:
        # A slow consumer loses the oldest events, never the close marker.
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(item)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ProgressEvent:
        item = await self._queue.get()
        if item is _CLOSED:
            self._channel.unsubscribe(self)
            raise StopAsyncIteration
        return item


class ProgressChannel:
    """Fan-out channel for progress events."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._closed = False
        self.history: deque[ProgressEvent] = deque(maxlen=HISTORY_LIMIT)

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self) -> Subscription:
        subscription = Subscription(self)
        if self._closed:
            subscription._push(_CLOSED)
        else:
            self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def publish(self, event: ProgressEvent) -> None:
        if self._closed:
            return
        self.history.append(event)
        for subscription in self._subscriptions:
            subscription._push(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for subscription in list(self._subscriptions):
            subscription._push(_CLOSED)
