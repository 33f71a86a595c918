import asyncio
import json
import threading

import pytest

from kd_server.app.entities import Event
from kd_server.app.events import EventBus, event_stream, libpod_event_json
from kd_server.app.filters import Filter

pytestmark = pytest.mark.unit


class _FakeRequest:
    """Only what event_stream needs: an awaitable is_disconnected()."""

    def __init__(self) -> None:
        self.disconnected = False

    async def is_disconnected(self) -> bool:
        return self.disconnected


def test_broadcast_in_publication_order():
    async def scenario():
        bus = EventBus()
        a, b = bus.subscribe(), bus.subscribe()
        assert a.id != b.id
        for action in ("create", "connect", "destroy"):
            bus.publish(Event.now("network", action, "n1"))
        got_a = [a.queue.get_nowait().action for _ in range(3)]
        got_b = [b.queue.get_nowait().action for _ in range(3)]
        return got_a, got_b

    got_a, got_b = asyncio.run(scenario())
    assert got_a == got_b == ["create", "connect", "destroy"]


def test_full_queue_drops_for_that_subscriber_only(caplog):
    async def scenario():
        bus = EventBus(buffer_size=1)
        slow, other = bus.subscribe(), bus.subscribe()
        bus.publish(Event.now("volume", "create", "v1"))
        other.queue.get_nowait()
        bus.publish(Event.now("volume", "destroy", "v1"))
        return slow.queue.qsize(), other.queue.get_nowait().action

    slow_size, other_action = asyncio.run(scenario())
    assert slow_size == 1
    assert other_action == "destroy"
    assert "dropping volume destroy" in caplog.text


def test_unsubscribe_is_idempotent():
    async def scenario():
        bus = EventBus()
        sub = bus.subscribe()
        bus.unsubscribe(sub.id)
        bus.unsubscribe(sub.id)
        bus.publish(Event.now("volume", "create", "v1"))
        return bus.subscriber_count(), sub.queue.qsize()

    assert asyncio.run(scenario()) == (0, 0)


def test_publish_from_another_thread():
    async def scenario():
        bus = EventBus()
        sub = bus.subscribe()
        t = threading.Thread(target=bus.publish, args=(Event.now("volume", "create", "v1"),))
        t.start()
        t.join()
        return await asyncio.wait_for(sub.queue.get(), timeout=2)

    assert asyncio.run(scenario()).id == "v1"


def test_event_stream_filters_and_unsubscribes_on_disconnect():
    async def scenario():
        bus = EventBus()
        request = _FakeRequest()
        stream = event_stream(
            request,
            bus,
            Filter.from_query('{"type": ["volume"]}'),
            render=libpod_event_json,
            poll_seconds=0.01,
        )

        async def produce():
            while bus.subscriber_count() == 0:
                await asyncio.sleep(0.005)
            bus.publish(Event.now("network", "create", "n1"))
            bus.publish(Event.now("volume", "create", "v1"))

        producer = asyncio.ensure_future(produce())
        line = await asyncio.wait_for(stream.__anext__(), timeout=2)
        await producer
        request.disconnected = True
        with pytest.raises(StopAsyncIteration):
            await asyncio.wait_for(stream.__anext__(), timeout=2)
        return line, bus.subscriber_count()

    line, remaining = asyncio.run(scenario())
    body = json.loads(line)
    assert body["Type"] == "volume"
    assert body["Status"] == "create"
    assert body["Actor"]["ID"] == "v1"
    assert line.endswith(b"\n")
    assert remaining == 0


def test_unsubscribed_after_first_event_gets_only_first():
    async def scenario():
        bus = EventBus()
        sub = bus.subscribe()
        bus.publish(Event.now("volume", "create", "e1"))
        bus.unsubscribe(sub.id)
        bus.publish(Event.now("volume", "create", "e2"))
        bus.publish(Event.now("volume", "create", "e3"))
        return [sub.queue.get_nowait().id for _ in range(sub.queue.qsize())]

    assert asyncio.run(scenario()) == ["e1"]
