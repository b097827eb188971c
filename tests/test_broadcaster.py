"""Event broadcaster fan-out and push-channel message handling."""

import asyncio
import json

from mixer.api.ws import handle_client_message
from mixer.services.broadcaster import EventBroadcaster, Observer, QueuedObserver

from .conftest import RecordingObserver


class ExplodingObserver(Observer):
    def deliver(self, message: str) -> None:
        raise ConnectionError("socket closed")


def test_publish_reaches_every_observer():
    broadcaster = EventBroadcaster()
    first, second = RecordingObserver(), RecordingObserver()
    broadcaster.register(first)
    broadcaster.register(second)
    first.subscriptions.add("tx_other")

    delivered = broadcaster.publish({"type": "transactionUpdate", "transactionId": "tx_1"})

    assert delivered == 2
    for observer in (first, second):
        assert observer.events[0]["transactionId"] == "tx_1"
        assert isinstance(observer.events[0]["timestamp"], int)


def test_failing_observer_is_dropped_without_affecting_others():
    broadcaster = EventBroadcaster()
    healthy = RecordingObserver()
    broadcaster.register(ExplodingObserver())
    broadcaster.register(healthy)

    assert broadcaster.publish({"type": "transactionCreated"}) == 1
    assert broadcaster.observer_count == 1
    assert broadcaster.publish({"type": "transactionCompleted"}) == 1
    assert [e["type"] for e in healthy.events] == ["transactionCreated", "transactionCompleted"]


def test_unregister_stops_delivery():
    broadcaster = EventBroadcaster()
    observer = RecordingObserver()
    broadcaster.register(observer)
    broadcaster.unregister(observer)
    broadcaster.unregister(observer)

    assert broadcaster.publish({"type": "transactionUpdate"}) == 0
    assert observer.events == []


async def test_queued_observer_sends_in_order():
    sent = []

    async def send(message):
        sent.append(json.loads(message))

    broadcaster = EventBroadcaster()
    observer = QueuedObserver(send)
    broadcaster.register(observer)
    pump = asyncio.create_task(observer.pump())

    for i in range(3):
        broadcaster.publish({"type": "transactionUpdate", "progress": i})
    while len(sent) < 3:
        await asyncio.sleep(0)
    pump.cancel()

    assert [m["progress"] for m in sent] == [0, 1, 2]


async def test_queued_observer_drops_when_full():
    async def send(message):
        pass

    observer = QueuedObserver(send, max_queue=1)
    observer.deliver("a")
    observer.deliver("b")

    assert observer.dropped == 1


async def test_closed_observer_is_unregistered():
    async def send(message):
        raise ConnectionError("gone")

    broadcaster = EventBroadcaster()
    observer = QueuedObserver(send)
    broadcaster.register(observer)
    broadcaster.publish({"type": "transactionUpdate"})
    await observer.pump()

    assert observer.closed
    assert broadcaster.publish({"type": "transactionUpdate"}) == 0
    assert broadcaster.observer_count == 0


# ============ Client messages ============


def reply(observer, payload):
    raw = payload if isinstance(payload, str) else json.dumps(payload)
    return json.loads(handle_client_message(observer, raw))


def test_subscribe_and_unsubscribe_are_acknowledged():
    observer = RecordingObserver()

    subscribed = reply(observer, {"type": "subscribe", "transactionId": "tx_9"})
    assert subscribed["type"] == "subscribed"
    assert subscribed["transactionId"] == "tx_9"
    assert observer.subscriptions == {"tx_9"}

    unsubscribed = reply(observer, {"type": "unsubscribe", "transactionId": "tx_9"})
    assert unsubscribed["type"] == "unsubscribed"
    assert observer.subscriptions == set()


def test_ping_gets_pong():
    assert reply(RecordingObserver(), {"type": "ping"})["type"] == "pong"


def test_malformed_messages_get_error_replies():
    observer = RecordingObserver()

    assert reply(observer, "not json")["message"] == "Invalid message format"
    assert reply(observer, "[1, 2]")["message"] == "Invalid message format"
    assert reply(observer, {"type": "dance"})["message"] == "Unknown message type: dance"
    assert reply(observer, {"type": "subscribe"})["type"] == "error"
