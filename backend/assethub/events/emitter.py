"""
AssetHub Backend — Event Emitter
=================================

What:  Publishes change events after a mutation has committed.
Why:   The business operation has already succeeded when an event is built.
       A slow or dead broker must neither fail it nor slow it down.
How:   `emit()` puts the event on the stream's queue and returns at once.
       One sender task per stream publishes queued events one at a time, so
       events leave in the order they were emitted (commit order).
       Each publish is bounded by `publish_timeout`; failures are logged and
       the sender moves on. Shutdown waits a bounded time for the queues
       to empty (`drain`) instead of letting them die with the event loop.

Flow:
    service commits → emitter.emit(event) → Queue[stream]
                                              ↳ sender: bus.publish(topic, event)
                                                ↳ timeout / EventBusError → WARNING log
"""

import asyncio
import logging
from typing import Dict

from assethub.config import Settings
from assethub.events.bus import EventBus
from assethub.events.types import STREAM_ASSET, STREAM_TEAM, ChangeEvent
from assethub.exceptions import EventBusError

logger = logging.getLogger(__name__)


class EventEmitter:

    def __init__(
        self,
        bus: EventBus,
        topics: Dict[str, str],
        publish_timeout: float = 5.0,
    ):
        self.bus = bus
        self.topics = topics
        self.publish_timeout = publish_timeout
        self._queues: Dict[str, asyncio.Queue] = {}
        self._senders: Dict[str, asyncio.Task] = {}
        self._pending = 0
        self._closed = False

    @classmethod
    def from_settings(cls, bus: EventBus, settings: Settings) -> "EventEmitter":
        return cls(
            bus=bus,
            topics={STREAM_ASSET: settings.asset_topic, STREAM_TEAM: settings.team_topic},
            publish_timeout=settings.event_publish_timeout_seconds,
        )

    @property
    def pending(self) -> int:
        """Events queued or in flight."""
        return self._pending

    def emit(self, event: ChangeEvent) -> bool:
        """Queue a background publish. Never raises, never blocks."""
        if self._closed:
            logger.warning("Emitter closed, dropping %s", event.event_type.value)
            return False

        stream = event.stream
        queue = self._queues.get(stream)
        if queue is None:
            queue = self._queues[stream] = asyncio.Queue()
            self._senders[stream] = asyncio.create_task(
                self._send(self.topics[stream], queue), name=f"publisher:{stream}"
            )
        queue.put_nowait(event)
        self._pending += 1
        return True

    async def _send(self, topic: str, queue: asyncio.Queue) -> None:
        while True:
            event: ChangeEvent = await queue.get()
            try:
                await self._publish(topic, event)
            except Exception:
                # The sender outlives any single event
                logger.exception("Publishing %s crashed", event.event_type.value)
            finally:
                self._pending -= 1
                queue.task_done()

    async def _publish(self, topic: str, event: ChangeEvent) -> None:
        try:
            await asyncio.wait_for(self.bus.publish(topic, event), timeout=self.publish_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Publishing %s for %s timed out after %.1fs",
                event.event_type.value,
                event.partition_key,
                self.publish_timeout,
            )
        except EventBusError as e:
            logger.warning(
                "Failed to publish %s for %s: %s",
                event.event_type.value,
                event.partition_key,
                e.message,
            )
        else:
            logger.debug("Published %s for %s", event.event_type.value, event.partition_key)

    async def flush(self) -> None:
        """Wait until every event emitted so far was handed to the bus. The emitter stays open."""
        await asyncio.gather(*(queue.join() for queue in list(self._queues.values())))

    async def drain(self, timeout: float = 5.0) -> int:
        """
        Stop accepting events and wait up to `timeout` seconds for the
        queues to empty. Senders are then stopped.

        Returns:
            Number of events that were never published.
        """
        self._closed = True
        if self._pending:
            try:
                await asyncio.wait_for(self.flush(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Event drain timed out after %.1fs", timeout)

        dropped = self._pending
        for sender in self._senders.values():
            sender.cancel()
        await asyncio.gather(*self._senders.values(), return_exceptions=True)
        self._senders.clear()
        self._queues.clear()
        self._pending = 0

        if dropped:
            logger.warning("Dropped %d unpublished events at shutdown", dropped)
        return dropped
