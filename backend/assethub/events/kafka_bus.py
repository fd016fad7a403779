"""
AssetHub Backend — Kafka Event Bus
===================================

What:  EventBus over Kafka (or any Kafka-API broker) using aiokafka.
Why:   Durable, partitioned, at-least-once delivery. Every replica's
       invalidator joins one consumer group, so each event is applied once
       per group under normal operation and again only on redelivery.

Producer:
    - acks="all" by default: wait for all in-sync replicas
    - enable_idempotence: broker drops duplicates caused by producer retries
    - key = aggregate id, so one asset's (or team's) events share a partition

Consumer:
    - one AIOKafkaConsumer and one task per subscribed topic
    - manual commit after the handler returns; the handler owns its retry
      budget and always returns, so a poison message never stalls a partition
    - a failed commit is logged and the message is redelivered later
    - any other KafkaError replaces the consumer after an exponential
      backoff (tenacity); health reports the topic as stalled meanwhile
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer
from aiokafka.errors import KafkaError
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, wait_exponential

from assethub.config import Settings
from assethub.events.bus import EventBus, MessageHandler
from assethub.events.types import ChangeEvent
from assethub.exceptions import EventBusError

logger = logging.getLogger(__name__)


class KafkaEventBus(EventBus):

    backend_name = "kafka"

    def __init__(
        self,
        brokers: List[str],
        group_id: str,
        acks: str = "all",
        compression_type: Optional[str] = None,
        request_timeout_ms: int = 5000,
        auto_offset_reset: str = "latest",
        restart_min_wait: float = 1.0,
        restart_max_wait: float = 30.0,
    ):
        self.brokers = brokers
        self.group_id = group_id
        self.acks = acks
        self.compression_type = compression_type
        self.request_timeout_ms = request_timeout_ms
        self.auto_offset_reset = auto_offset_reset
        self.restart_min_wait = restart_min_wait
        self.restart_max_wait = restart_max_wait

        self._producer: Optional[AIOKafkaProducer] = None
        self._consumers: Dict[str, AIOKafkaConsumer] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._consuming: Dict[str, bool] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "KafkaEventBus":
        return cls(
            brokers=settings.kafka_brokers_list,
            group_id=settings.kafka_consumer_group,
            acks=settings.kafka_acks,
            compression_type=settings.kafka_compression_type or None,
            request_timeout_ms=settings.kafka_request_timeout_ms,
            auto_offset_reset=settings.kafka_auto_offset_reset,
            restart_min_wait=settings.kafka_consumer_restart_min_wait,
            restart_max_wait=settings.kafka_consumer_restart_max_wait,
        )

    async def connect(self) -> None:
        """
        Start the producer.

        Raises:
            EventBusError: no broker reachable.
        """
        acks: Any = int(self.acks) if self.acks.lstrip("-").isdigit() else self.acks
        producer = AIOKafkaProducer(
            bootstrap_servers=self.brokers,
            acks=acks,
            enable_idempotence=True,
            compression_type=self.compression_type,
            request_timeout_ms=self.request_timeout_ms,
            linger_ms=5,
            retry_backoff_ms=100,
        )
        try:
            await producer.start()
        except (KafkaError, OSError) as e:
            await producer.stop()
            raise EventBusError(
                message="Failed to connect to Kafka",
                context={"brokers": self.brokers, "error": str(e)},
            ) from e

        self._producer = producer
        logger.info("Connected to Kafka at %s (acks=%s)", ",".join(self.brokers), self.acks)

    async def publish(self, topic: str, event: ChangeEvent) -> None:
        if self._producer is None:
            raise EventBusError(message="Kafka producer is not started", context={"topic": topic})

        try:
            metadata = await self._producer.send_and_wait(
                topic,
                value=event.to_payload(),
                key=event.partition_key.encode("utf-8"),
            )
        except KafkaError as e:
            raise EventBusError(
                message="Kafka send failed",
                context={
                    "topic": topic,
                    "event_type": event.event_type.value,
                    "error": str(e),
                },
            ) from e

        logger.debug(
            "Published %s to %s[%d]@%d",
            event.event_type.value,
            topic,
            metadata.partition,
            metadata.offset,
        )

    async def subscribe(self, topic: str, handler: MessageHandler) -> None:
        """
        Start a consumer for `topic` and keep it running in the background.

        Raises:
            EventBusError: the first consumer could not join the group.
        """
        consumer = self._new_consumer(topic)
        try:
            await consumer.start()
        except (KafkaError, OSError) as e:
            await consumer.stop()
            raise EventBusError(
                message="Failed to start Kafka consumer",
                context={"topic": topic, "error": str(e)},
            ) from e

        self._consumers[topic] = consumer
        self._consuming[topic] = True
        self._tasks[topic] = asyncio.create_task(
            self._consume(topic, handler), name=f"consumer:{topic}"
        )
        logger.info("Subscribed to %s as group %s", topic, self.group_id)

    def _new_consumer(self, topic: str) -> AIOKafkaConsumer:
        return AIOKafkaConsumer(
            topic,
            bootstrap_servers=self.brokers,
            group_id=self.group_id,
            auto_offset_reset=self.auto_offset_reset,
            enable_auto_commit=False,
            session_timeout_ms=30000,
            heartbeat_interval_ms=10000,
        )

    async def _consume(self, topic: str, handler: MessageHandler) -> None:
        """
        Consume `topic` until the bus is closed.

        A KafkaError stops the current consumer; a fresh one replaces it
        after an exponential backoff, and the group resumes from the last
        committed offset.
        """

        def on_failure(retry_state: RetryCallState) -> None:
            self._consuming[topic] = False
            logger.error(
                "Kafka consumer for %s failed (%s), restarting in %.1fs (restart #%d)",
                topic,
                retry_state.outcome.exception() if retry_state.outcome else "unknown",
                retry_state.next_action.sleep if retry_state.next_action else 0.0,
                retry_state.attempt_number,
            )

        retrying = AsyncRetrying(
            retry=retry_if_exception_type((KafkaError, OSError)),
            wait=wait_exponential(
                multiplier=self.restart_min_wait, min=self.restart_min_wait, max=self.restart_max_wait
            ),
            before_sleep=on_failure,
        )
        async for attempt in retrying:
            with attempt:
                await self._consume_once(topic, handler)

    async def _consume_once(self, topic: str, handler: MessageHandler) -> None:
        consumer = self._consumers.get(topic)
        if consumer is None:
            consumer = self._new_consumer(topic)
            try:
                await consumer.start()
            except (KafkaError, OSError):
                await consumer.stop()
                raise
            self._consumers[topic] = consumer
            logger.info("Kafka consumer for %s restarted", topic)
        self._consuming[topic] = True

        try:
            while True:
                message = await consumer.getone()
                try:
                    await handler(message.value)
                except Exception:
                    logger.exception(
                        "Handler for %s[%d]@%d raised",
                        topic,
                        message.partition,
                        message.offset,
                    )
                try:
                    await consumer.commit()
                except KafkaError as e:
                    # Uncommitted messages are redelivered; handlers are idempotent
                    logger.warning(
                        "Commit of %s[%d]@%d failed: %s",
                        topic,
                        message.partition,
                        message.offset,
                        e,
                    )
        except (KafkaError, OSError):
            self._consumers.pop(topic, None)
            try:
                await consumer.stop()
            except KafkaError as e:
                logger.warning("Error stopping failed Kafka consumer for %s: %s", topic, e)
            raise

    async def health_check(self) -> Dict[str, Any]:
        if self._producer is None:
            return {"status": "unhealthy", "backend": self.backend_name, "error": "not connected"}

        stalled = sorted(
            topic
            for topic, task in self._tasks.items()
            if task.done() or not self._consuming.get(topic, False)
        )
        health: Dict[str, Any] = {
            "status": "degraded" if stalled else "healthy",
            "backend": self.backend_name,
            "brokers": self.brokers,
            "consumers": len(self._tasks) - len(stalled),
        }
        if stalled:
            health["stalled_topics"] = stalled
        return health

    async def close(self) -> None:
        for task in self._tasks.values():
            task.cancel()
        await asyncio.gather(*self._tasks.values(), return_exceptions=True)
        self._tasks.clear()
        self._consuming.clear()

        for consumer in self._consumers.values():
            try:
                await consumer.stop()
            except KafkaError as e:
                logger.warning("Error closing Kafka consumer: %s", e)
        self._consumers.clear()

        if self._producer is not None:
            try:
                await self._producer.stop()
            except KafkaError as e:
                logger.warning("Error closing Kafka producer: %s", e)
            self._producer = None
        logger.info("Kafka connections closed")
