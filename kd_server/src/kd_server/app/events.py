from __future__ import annotations

"""
In-process publish/subscribe bus for lifecycle events.

- Broadcast: every subscriber receives every event published while it is
  registered, in publication order.
- Non-blocking publish: each subscriber owns a bounded asyncio.Queue. When it
  is full the event is dropped for that subscriber only, so a slow or stuck
  stream never holds up the publisher or the other subscribers.
- Publishing from a thread other than the subscriber's event loop (e.g. a
  sync route running in the threadpool) is marshalled with
  call_soon_threadsafe, which keeps FIFO order.

event_stream() is the async generator behind GET /events and
GET /libpod/events.
"""

import asyncio
import json
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, Optional

from kd_server.app.entities import Event
from kd_server.app.filters import Filter

_LOGGER = logging.getLogger("kd_server.events")


@dataclass
class Subscription:
    id: str
    queue: "asyncio.Queue[Event]"
    loop: asyncio.AbstractEventLoop


class EventBus:
    def __init__(self, buffer_size: int = 256) -> None:
        self._buffer_size = max(1, int(buffer_size))
        self._lock = threading.Lock()
        self._subscribers: Dict[str, Subscription] = {}

    def subscribe(self) -> Subscription:
        """
        Register a new delivery queue. Must be called from the event loop that
        will consume it.
        """
        sub = Subscription(
            id=uuid.uuid4().hex,
            queue=asyncio.Queue(maxsize=self._buffer_size),
            loop=asyncio.get_running_loop(),
        )
        with self._lock:
            self._subscribers[sub.id] = sub
        _LOGGER.debug("subscribed %s", sub.id)
        return sub

    def unsubscribe(self, subscription_id: str) -> None:
        with self._lock:
            removed = self._subscribers.pop(subscription_id, None)
        if removed is not None:
            _LOGGER.debug("unsubscribed %s", subscription_id)

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: Event) -> None:
        with self._lock:
            targets = list(self._subscribers.values())
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        for sub in targets:
            if sub.loop is current:
                self._offer(sub, event)
                continue
            try:
                sub.loop.call_soon_threadsafe(self._offer, sub, event)
            except RuntimeError:
                # Loop already closed; the stream is gone
                self.unsubscribe(sub.id)

    def _offer(self, sub: Subscription, event: Event) -> None:
        try:
            sub.queue.put_nowait(event)
        except asyncio.QueueFull:
            _LOGGER.warning("dropping %s %s event for slow subscriber %s", event.type, event.action, sub.id)


def docker_event_json(event: Event) -> Dict[str, Any]:
    return {
        "Type": event.type,
        "Action": event.action,
        "status": event.action,
        "id": event.id,
        "Actor": {"ID": event.id, "Attributes": {}},
        "scope": "local",
        "time": event.time,
        "timeNano": event.time_nano,
    }


def libpod_event_json(event: Event) -> Dict[str, Any]:
    return {
        "Type": event.type,
        "Status": event.action,
        "Action": event.action,
        "Actor": {"ID": event.id, "Attributes": {}},
        "time": event.time,
        "timeNano": event.time_nano,
    }


async def event_stream(
    request: Any,
    bus: EventBus,
    filtr: Optional[Filter] = None,
    render: Callable[[Event], Dict[str, Any]] = docker_event_json,
    poll_seconds: float = 1.0,
) -> AsyncIterator[bytes]:
    """
    Yield one JSON line per matching event until the client disconnects.

    request only needs an async is_disconnected(). The subscription is removed
    when the client goes away or the generator is closed/cancelled.
    """
    filtr = filtr or Filter.empty()
    sub = bus.subscribe()
    try:
        while not await request.is_disconnected():
            try:
                event = await asyncio.wait_for(sub.queue.get(), timeout=poll_seconds)
            except asyncio.TimeoutError:
                continue
            if filtr.match(event):
                _LOGGER.debug("sending %s %s to %s", event.type, event.action, sub.id)
                yield (json.dumps(render(event)) + "\n").encode("utf-8")
    finally:
        bus.unsubscribe(sub.id)


__all__ = [
    "Subscription",
    "EventBus",
    "docker_event_json",
    "libpod_event_json",
    "event_stream",
]
