"""
Change Feed - Coarse "record K changed" notifications.

Events carry no payload: a subscriber that cares refetches the record.
Delivery is at-least-once and unordered, so consumers must treat every
event as a hint, never as the new state.

Each subscription owns an asyncio queue bound to the loop it was created
on. Publishing is synchronous and may happen from any thread or loop;
deliveries to a subscription on another loop are handed over with
``call_soon_threadsafe``.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any
import asyncio
import logging
import threading

logger = logging.getLogger(__name__)


class EventType(Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    """Notification that one session record changed."""
    event_type: EventType
    record_id: str
    partner_link_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "record_id": self.record_id,
            "partner_link_id": self.partner_link_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChangeEvent:
        return cls(
            event_type=EventType(data["event_type"]),
            record_id=data["record_id"],
            partner_link_id=data["partner_link_id"],
        )


_CLOSED = object()


class Subscription:
    """
    One subscriber's view of the feed for a partnership.

    Iterate with ``async for``; iteration stops after close().
    Must be created from inside a running event loop.
    """

    def __init__(self, feed: ChangeFeed, partner_link_id: str):
        self.partner_link_id = partner_link_id
        self._feed = feed
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        """Number of events delivered but not yet consumed."""
        return self._queue.qsize()

    def deliver(self, item: Any) -> bool:
        """Queue an event (or the close marker) on the subscriber's loop."""
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._queue.put_nowait(item)
            return True

        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            # Subscriber loop already closed
            logger.debug("Dropping event for closed loop on %s", self.partner_link_id)
            self._closed = True
            return False
        return True

    async def get(self, timeout: float | None = None) -> ChangeEvent | None:
        """
        Next event, or None once closed.

        Raises asyncio.TimeoutError if ``timeout`` elapses first.
        """
        if self._closed and self._queue.empty():
            return None
        if timeout is None:
            item = await self._queue.get()
        else:
            item = await asyncio.wait_for(self._queue.get(), timeout)
        if item is _CLOSED:
            return None
        return item

    def close(self):
        """Stop receiving events and end any pending iteration."""
        if self._closed:
            return
        self._closed = True
        self._feed.unsubscribe(self)
        self.deliver(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


class ChangeFeed:
    """
    In-process change feed keyed by partnership.

    Stores publish after every successful write; the API forwards the same
    events to WebSocket clients.
    """

    def __init__(self):
        self._subscribers: dict[str, list[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, partner_link_id: str) -> Subscription:
        subscription = Subscription(self, partner_link_id)
        with self._lock:
            self._subscribers.setdefault(partner_link_id, []).append(subscription)
        logger.debug("Subscribed to feed for %s", partner_link_id)
        return subscription

    def unsubscribe(self, subscription: Subscription):
        with self._lock:
            subscribers = self._subscribers.get(subscription.partner_link_id, [])
            if subscription in subscribers:
                subscribers.remove(subscription)
            if not subscribers:
                self._subscribers.pop(subscription.partner_link_id, None)

    def publish(self, event: ChangeEvent) -> int:
        """Deliver an event to every subscriber of its partnership; returns the count."""
        with self._lock:
            subscribers = list(self._subscribers.get(event.partner_link_id, []))

        delivered = 0
        for subscription in subscribers:
            if not subscription.closed and subscription.deliver(event):
                delivered += 1

        logger.debug(
            "Published %s %s to %d subscriber(s)",
            event.event_type.value, event.record_id, delivered,
        )
        return delivered

    def subscriber_count(self, partner_link_id: str | None = None) -> int:
        with self._lock:
            if partner_link_id is not None:
                return len(self._subscribers.get(partner_link_id, []))
            return sum(len(subs) for subs in self._subscribers.values())
