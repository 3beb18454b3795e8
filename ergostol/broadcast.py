"""
Fan-out channel for desk events.

Every live subscriber receives every event sent after it subscribed. Sending
never blocks: a subscriber whose buffer is full loses its oldest event.
"""

import asyncio
import logging
from collections.abc import AsyncIterator

from ergostol.exceptions import ChannelClosedError
from ergostol.protocol import DeskEvent

_LOGGER = logging.getLogger(__name__)

DEFAULT_CAPACITY = 16

_CLOSED = object()


class Subscription:
    """One subscriber's view of an EventBroadcast."""

    def __init__(self, broadcast: "EventBroadcast", capacity: int):
        self._broadcast = broadcast
        # One extra slot so the closed marker always fits
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=capacity + 1)
        self._capacity = capacity
        self._closed = False
        self.lagged = 0

    def _push(self, item) -> None:
        if item is not _CLOSED and self._queue.qsize() >= self._capacity:
            self._queue.get_nowait()
            self.lagged += 1
            _LOGGER.debug("Subscriber lagging, dropped oldest event (%d total)", self.lagged)
        self._queue.put_nowait(item)

    async def recv(self) -> DeskEvent:
        """
        Wait for the next event.

        Raises:
            ChannelClosedError: If the broadcast was closed and no events remain
        """
        if self._closed:
            raise ChannelClosedError("Event channel closed")
        item = await self._queue.get()
        if item is _CLOSED:
            self._closed = True
            raise ChannelClosedError("Event channel closed")
        return item

    def unsubscribe(self) -> None:
        """Stop receiving events."""
        self._broadcast._remove(self)

    def __aiter__(self) -> AsyncIterator[DeskEvent]:
        return self

    async def __anext__(self) -> DeskEvent:
        try:
            return await self.recv()
        except ChannelClosedError:
            raise StopAsyncIteration from None


class EventBroadcast:
    """Multi-consumer, best-effort event channel."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._subscribers: list[Subscription] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        """Create a subscription that sees events sent from now on."""
        subscription = Subscription(self, self.capacity)
        if self._closed:
            subscription._push(_CLOSED)
        else:
            self._subscribers.append(subscription)
        return subscription

    def send(self, event: DeskEvent) -> int:
        """Deliver an event to every subscriber. Returns how many received it."""
        if self._closed:
            raise ChannelClosedError("Event channel closed")
        for subscription in self._subscribers:
            subscription._push(event)
        return len(self._subscribers)

    def close(self) -> None:
        """Close the channel; subscribers drain what is buffered, then see closure."""
        if self._closed:
            return
        self._closed = True
        for subscription in self._subscribers:
            subscription._push(_CLOSED)
        self._subscribers.clear()

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)
