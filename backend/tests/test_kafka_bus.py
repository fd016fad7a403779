"""
AssetHub Backend — Kafka Event Bus Tests
=========================================

What:  Consumer lifecycle of KafkaEventBus against a mocked aiokafka.
Why:   Cache invalidation stops silently if a topic consumer dies, so the
       bus must outlive broker hiccups and say so in its health report.

What we test:
    ✅ A failed offset commit is logged and consumption continues
    ✅ A KafkaError replaces the consumer and resumes consumption
    ✅ A topic that cannot be consumed is reported as degraded
    ✅ Unreachable broker on subscribe → EventBusError
"""

import asyncio
import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from aiokafka.errors import CommitFailedError, KafkaConnectionError, KafkaError

from assethub.events.kafka_bus import KafkaEventBus
from assethub.exceptions import EventBusError

TOPIC = "asset.changes"


def _message(value: bytes, offset: int) -> SimpleNamespace:
    return SimpleNamespace(value=value, partition=0, offset=offset)


def _consumer(messages=(), then=None, commit_error=None, start_error=None) -> MagicMock:
    """
    Mocked AIOKafkaConsumer: hands out `messages`, then raises `then`
    (or blocks until cancelled when `then` is None).
    """
    pending = list(messages)

    async def getone():
        if pending:
            return pending.pop(0)
        if then is not None:
            raise then
        await asyncio.Event().wait()

    consumer = MagicMock()
    consumer.start = AsyncMock(side_effect=start_error)
    consumer.stop = AsyncMock()
    consumer.commit = AsyncMock(side_effect=commit_error)
    consumer.getone = AsyncMock(side_effect=getone)
    return consumer


async def _eventually(condition, timeout: float = 2.0) -> None:
    async def poll():
        while not condition():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout)


@pytest_asyncio.fixture
async def bus():
    producer = MagicMock()
    producer.start = AsyncMock()
    producer.stop = AsyncMock()
    kafka = KafkaEventBus(
        brokers=["kafka:9092"],
        group_id="asset-management-api",
        restart_min_wait=0.01,
        restart_max_wait=0.01,
    )
    with patch("assethub.events.kafka_bus.AIOKafkaProducer", return_value=producer):
        await kafka.connect()
    yield kafka
    await kafka.close()


class TestConsumerLifecycle:

    @pytest.mark.asyncio
    async def test_commit_failure_keeps_consuming(self, bus, caplog):
        consumer = _consumer(
            [_message(b"one", 1), _message(b"two", 2)],
            commit_error=CommitFailedError("group rebalanced"),
        )
        handled = []

        async def handler(payload):
            handled.append(payload)

        with patch("assethub.events.kafka_bus.AIOKafkaConsumer", return_value=consumer), \
                caplog.at_level(logging.WARNING, logger="assethub.events.kafka_bus"):
            await bus.subscribe(TOPIC, handler)
            await _eventually(lambda: len(handled) == 2)

        assert handled == [b"one", b"two"]
        assert consumer.commit.await_count == 2
        assert "Commit of asset.changes[0]@1 failed" in caplog.text
        health = await bus.health_check()
        assert health["status"] == "healthy"
        assert health["consumers"] == 1

    @pytest.mark.asyncio
    async def test_kafka_error_replaces_consumer(self, bus):
        first = _consumer([_message(b"one", 1)], then=KafkaConnectionError("broker gone"))
        second = _consumer([_message(b"two", 2)])
        handled = []

        async def handler(payload):
            handled.append(payload)

        with patch(
            "assethub.events.kafka_bus.AIOKafkaConsumer", side_effect=[first, second]
        ) as factory:
            await bus.subscribe(TOPIC, handler)
            await _eventually(lambda: len(handled) == 2)

        assert handled == [b"one", b"two"]
        assert factory.call_count == 2
        first.stop.assert_awaited_once()
        second.start.assert_awaited_once()
        assert (await bus.health_check())["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_unrecoverable_topic_is_degraded(self, bus):
        first = _consumer(then=KafkaConnectionError("broker gone"))
        unreachable = KafkaConnectionError("still down")

        def factory(*args, **kwargs):
            return first if factory.calls == 0 else _consumer(start_error=unreachable)

        factory.calls = 0

        def build(*args, **kwargs):
            consumer = factory(*args, **kwargs)
            factory.calls += 1
            return consumer

        with patch("assethub.events.kafka_bus.AIOKafkaConsumer", side_effect=build):
            await bus.subscribe(TOPIC, AsyncMock())
            await _eventually(lambda: factory.calls >= 3)

            health = await bus.health_check()

        assert health["status"] == "degraded"
        assert health["stalled_topics"] == [TOPIC]
        assert health["consumers"] == 0

    @pytest.mark.asyncio
    async def test_exited_consumer_is_degraded(self, bus):
        consumer = _consumer(then=RuntimeError("decoder bug"))

        with patch("assethub.events.kafka_bus.AIOKafkaConsumer", return_value=consumer):
            await bus.subscribe(TOPIC, AsyncMock())
            await _eventually(lambda: bus._tasks[TOPIC].done())

        assert (await bus.health_check())["status"] == "degraded"

    @pytest.mark.asyncio
    async def test_subscribe_without_broker_raises(self, bus):
        consumer = _consumer(start_error=KafkaError("no brokers"))

        with patch("assethub.events.kafka_bus.AIOKafkaConsumer", return_value=consumer):
            with pytest.raises(EventBusError):
                await bus.subscribe(TOPIC, AsyncMock())

        consumer.stop.assert_awaited_once()
        assert (await bus.health_check())["status"] == "healthy"
