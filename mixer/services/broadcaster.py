"""Event Broadcaster - Fan-out of lifecycle events to push-channel observers.

``publish`` is synchronous and never blocks on I/O: each observer buffers the
encoded message and sends it from its own task. A failing observer is
dropped without affecting delivery to the others.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from mixer.utils.helpers import generate_id, now_ms

logger = logging.getLogger(__name__)


class ObserverClosedError(Exception):
    """Raised when delivering to an observer whose connection is gone."""

    pass


def encode_event(event: Mapping[str, Any]) -> str:
    """Serialize an event with a millisecond timestamp."""
    return json.dumps({**event, "timestamp": now_ms()}, default=str)


class Observer(ABC):
    """A connected push-channel client."""

    def __init__(self) -> None:
        self.id = generate_id("obs")
        # Advisory only: every observer receives every event
        self.subscriptions: set[str] = set()

    @abstractmethod
    def deliver(self, message: str) -> None:
        """Hand a message to the observer without blocking."""
        pass


class QueuedObserver(Observer):
    """Observer that buffers messages for an async sender such as a WebSocket."""

    def __init__(self, send: Callable[[str], Awaitable[None]], max_queue: int = 100) -> None:
        super().__init__()
        self._send = send
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=max_queue)
        self.closed = False
        self.dropped = 0

    def deliver(self, message: str) -> None:
        if self.closed:
            raise ObserverClosedError(self.id)
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"[broadcast] observer {self.id} queue full, message dropped")

    async def pump(self) -> None:
        """Send queued messages until the connection fails or the task is cancelled."""
        while True:
            message = await self._queue.get()
            try:
                await self._send(message)
            except Exception as e:
                self.closed = True
                logger.debug(f"[broadcast] observer {self.id} send failed: {e}")
                return


class EventBroadcaster:
    """Registry of connected observers."""

    def __init__(self) -> None:
        self._observers: dict[str, Observer] = {}

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def register(self, observer: Observer) -> None:
        self._observers[observer.id] = observer
        logger.info(f"[broadcast] observer {observer.id} connected ({self.observer_count} total)")

    def unregister(self, observer: Observer) -> None:
        if self._observers.pop(observer.id, None) is not None:
            logger.info(
                f"[broadcast] observer {observer.id} disconnected ({self.observer_count} total)"
            )

    def publish(self, event: Mapping[str, Any]) -> int:
        """Deliver ``event`` to every registered observer.

        Args:
            event: Event payload including its ``type``

        Returns:
            Number of observers the event was handed to
        """
        message = encode_event(event)
        delivered = 0
        for observer in list(self._observers.values()):
            try:
                observer.deliver(message)
            except Exception as e:
                logger.warning(f"[broadcast] dropping observer {observer.id}: {e!r}")
                self.unregister(observer)
                continue
            delivered += 1
        logger.debug(f"[broadcast] {event.get('type')} -> {delivered} observers")
        return delivered
