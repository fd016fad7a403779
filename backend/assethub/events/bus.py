"""
AssetHub Backend — Event Bus
=============================

What:  Transport abstraction for change events: publish, subscribe, close.
Why:   Business services and the CacheInvalidator depend on this capability
       set only. Kafka in production, an in-process queue for single-node
       runs and tests, a no-op when eventing is disabled.

Handlers receive the raw serialized payload (bytes) and parse it themselves
by its `eventType` discriminant. A handler is awaited to completion before
the next message of the same topic is delivered, so per-topic order holds.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Tuple

from assethub.events.types import ChangeEvent
from assethub.exceptions import EventBusError

logger = logging.getLogger(__name__)

MessageHandler = Callable[[bytes], Awaitable[Any]]


class EventBus(ABC):

    backend_name: str = "abstract"

    @abstractmethod
    async def publish(self, topic: str, event: ChangeEvent) -> None:
        """
        Deliver one event to `topic`, keyed by its aggregate id.

        Raises:
            EventBusError: the transport rejected or timed out the message.
        """

    @abstractmethod
    async def subscribe(self, topic: str, handler: MessageHandler) -> None:
        """Start a background consumer for `topic` that feeds `handler`."""

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "unknown", "backend": self.backend_name}

    async def close(self) -> None:
        """Stop consumers and release connections."""


# ══════════════════════════════════════════════════════════════════════════
# In-process bus
# ══════════════════════════════════════════════════════════════════════════

class InMemoryEventBus(EventBus):
    """
    asyncio.Queue per subscription, one worker task per queue.

    Every published message is also appended to `published` as
    (topic, key, payload) so callers can inspect what went out.
    """

    backend_name = "memory"

    def __init__(self):
        self.published: List[Tuple[str, str, bytes]] = []
        self._queues: Dict[str, List[asyncio.Queue]] = {}
        self._workers: List[asyncio.Task] = []
        self._closed = False

    async def publish(self, topic: str, event: ChangeEvent) -> None:
        if self._closed:
            raise EventBusError(message="Event bus is closed", context={"topic": topic})

        payload = event.to_payload()
        self.published.append((topic, event.partition_key, payload))
        for queue in self._queues.get(topic, []):
            queue.put_nowait(payload)

    async def subscribe(self, topic: str, handler: MessageHandler) -> None:
        if self._closed:
            raise EventBusError(message="Event bus is closed", context={"topic": topic})

        queue: asyncio.Queue = asyncio.Queue()
        self._queues.setdefault(topic, []).append(queue)
        self._workers.append(
            asyncio.create_task(self._consume(topic, queue, handler), name=f"consumer:{topic}")
        )
        logger.info("Subscribed to in-memory topic %s", topic)

    async def _consume(self, topic: str, queue: asyncio.Queue, handler: MessageHandler) -> None:
        while True:
            payload = await queue.get()
            try:
                await handler(payload)
            except Exception:
                logger.exception("Handler for topic %s raised", topic)
            finally:
                queue.task_done()

    async def join(self) -> None:
        """Wait until every delivered message has been handled."""
        for queues in list(self._queues.values()):
            for queue in queues:
                await queue.join()

    def events(self, topic: str) -> List[bytes]:
        return [payload for t, _, payload in self.published if t == topic]

    async def health_check(self) -> Dict[str, Any]:
        return {
            "status": "unhealthy" if self._closed else "healthy",
            "backend": self.backend_name,
            "subscriptions": sum(len(q) for q in self._queues.values()),
        }

    async def close(self) -> None:
        self._closed = True
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        self._queues.clear()
        logger.info("In-memory event bus closed")


# ══════════════════════════════════════════════════════════════════════════
# Disabled bus
# ══════════════════════════════════════════════════════════════════════════

class NoOpEventBus(EventBus):
    """Drops every event. Used when eventing is off or the broker was unreachable."""

    backend_name = "none"

    async def publish(self, topic: str, event: ChangeEvent) -> None:
        logger.debug("Event bus disabled, dropping %s", event.event_type.value)

    async def subscribe(self, topic: str, handler: MessageHandler) -> None:
        logger.info("Event bus disabled, not consuming %s", topic)

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "disabled", "backend": self.backend_name}
