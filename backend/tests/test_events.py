"""
AssetHub Backend — Change Event, Bus and Emitter Tests
=======================================================

What we test:
    ✅ camelCase wire format and partition keys
    ✅ Decoding by eventType; unknown types are skipped, bad payloads raise
    ✅ In-memory bus delivers in order and survives handler errors
    ✅ Emitting never blocks or raises, even with a broken or slow bus
    ✅ Events of one stream are published in emit order
    ✅ Drain waits for queued publishes, then drops the rest
"""

import asyncio
import json
import logging
import uuid

import pytest

from assethub.events.bus import EventBus, InMemoryEventBus, NoOpEventBus
from assethub.events.emitter import EventEmitter
from assethub.events.types import (
    STREAM_ASSET,
    STREAM_TEAM,
    AssetSharedEvent,
    AssetUpdatedEvent,
    EventType,
    TeamMembershipEvent,
    decode_event,
)
from assethub.exceptions import EventBusError, EventDecodeError
from assethub.schemas.common import AssetType

TOPICS = {STREAM_ASSET: "asset-changes", STREAM_TEAM: "team-changes"}


def _shared_event(**overrides) -> AssetSharedEvent:
    values = dict(
        event_type=EventType.FOLDER_SHARED,
        asset_type=AssetType.FOLDER,
        asset_id=uuid.uuid4(),
        owner_id=uuid.uuid4(),
        action_by=uuid.uuid4(),
        shared_with_user_id=uuid.uuid4(),
        access_level="read",
        shared_by_user_name="alice",
    )
    values.update(overrides)
    return AssetSharedEvent(**values)


class TestEventTypes:

    def test_for_asset(self):
        assert EventType.for_asset(AssetType.NOTE, "SHARED") is EventType.NOTE_SHARED
        assert EventType.for_asset(AssetType.FOLDER, "DELETED") is EventType.FOLDER_DELETED

    def test_payload_uses_camel_case(self):
        event = _shared_event()
        data = json.loads(event.to_payload())

        assert data["eventType"] == "FOLDER_SHARED"
        assert data["assetId"] == str(event.asset_id)
        assert data["sharedWithUserId"] == str(event.shared_with_user_id)
        assert data["sharedByUserName"] == "alice"
        assert "timestamp" in data

    def test_partition_keys(self):
        asset_event = _shared_event()
        team_event = TeamMembershipEvent(
            event_type=EventType.MEMBER_ADDED,
            team_id=uuid.uuid4(),
            performed_by=uuid.uuid4(),
            target_user_id=uuid.uuid4(),
        )
        assert asset_event.partition_key == str(asset_event.asset_id)
        assert team_event.partition_key == str(team_event.team_id)
        assert asset_event.stream == STREAM_ASSET
        assert team_event.stream == STREAM_TEAM

    def test_model_rejects_foreign_event_type(self):
        with pytest.raises(ValueError):
            _shared_event(event_type=EventType.FOLDER_DELETED)

    def test_decode_picks_model_by_event_type(self):
        event = AssetUpdatedEvent(
            event_type=EventType.NOTE_UPDATED,
            asset_type=AssetType.NOTE,
            asset_id=uuid.uuid4(),
            owner_id=uuid.uuid4(),
            action_by=uuid.uuid4(),
            name="Q3",
            changes=["title"],
        )
        decoded = decode_event(event.to_payload())

        assert isinstance(decoded, AssetUpdatedEvent)
        assert decoded.asset_id == event.asset_id
        assert decoded.changes == ["title"]

    def test_unknown_event_type_is_skipped(self):
        assert decode_event(b'{"eventType": "FOLDER_ARCHIVED"}') is None

    @pytest.mark.parametrize(
        "payload",
        [
            b"not json",
            b"[1, 2, 3]",
            b'{"assetId": "x"}',
            b'{"eventType": "FOLDER_SHARED", "assetId": "not-a-uuid"}',
        ],
    )
    def test_malformed_payload_raises(self, payload):
        with pytest.raises(EventDecodeError):
            decode_event(payload)


class TestInMemoryBus:

    @pytest.mark.asyncio
    async def test_delivers_in_publish_order(self):
        bus = InMemoryEventBus()
        received = []

        async def handler(payload: bytes) -> None:
            received.append(json.loads(payload)["sharedWithUserId"])

        await bus.subscribe("asset-changes", handler)
        events = [_shared_event() for _ in range(5)]
        for event in events:
            await bus.publish("asset-changes", event)
        await bus.join()

        assert received == [str(e.shared_with_user_id) for e in events]
        assert len(bus.events("asset-changes")) == 5
        await bus.close()

    @pytest.mark.asyncio
    async def test_handler_error_does_not_stop_consumer(self):
        bus = InMemoryEventBus()
        calls = []

        async def flaky(payload: bytes) -> None:
            calls.append(payload)
            if len(calls) == 1:
                raise RuntimeError("boom")

        await bus.subscribe("t", flaky)
        await bus.publish("t", _shared_event())
        await bus.publish("t", _shared_event())
        await bus.join()

        assert len(calls) == 2
        await bus.close()

    @pytest.mark.asyncio
    async def test_closed_bus_rejects_publish(self):
        bus = InMemoryEventBus()
        await bus.close()

        with pytest.raises(EventBusError):
            await bus.publish("t", _shared_event())
        assert (await bus.health_check())["status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_noop_bus_drops_silently(self):
        bus = NoOpEventBus()
        await bus.publish("t", _shared_event())
        assert (await bus.health_check())["status"] == "disabled"


class _BrokenBus(EventBus):
    backend_name = "broken"

    async def publish(self, topic, event):
        raise EventBusError(message="broker unreachable")

    async def subscribe(self, topic, handler):
        pass


class _SlowBus(EventBus):
    backend_name = "slow"

    def __init__(self, delay: float):
        self.delay = delay
        self.delivered = 0

    async def publish(self, topic, event):
        await asyncio.sleep(self.delay)
        self.delivered += 1

    async def subscribe(self, topic, handler):
        pass


class _RecordingBus(EventBus):
    """The first publish is the slowest; the second one fails."""

    backend_name = "recording"

    def __init__(self):
        self.calls = 0
        self.delivered = []

    async def publish(self, topic, event):
        self.calls += 1
        if self.calls == 1:
            await asyncio.sleep(0.05)
        if self.calls == 2:
            raise EventBusError(message="leader moved")
        self.delivered.append(event.access_level)

    async def subscribe(self, topic, handler):
        pass


class TestEmitter:

    @pytest.mark.asyncio
    async def test_emit_routes_by_stream(self):
        bus = InMemoryEventBus()
        emitter = EventEmitter(bus, TOPICS)

        emitter.emit(_shared_event())
        emitter.emit(
            TeamMembershipEvent(
                event_type=EventType.MANAGER_ADDED,
                team_id=uuid.uuid4(),
                performed_by=uuid.uuid4(),
                target_user_id=uuid.uuid4(),
            )
        )
        await emitter.flush()

        assert len(bus.events("asset-changes")) == 1
        assert len(bus.events("team-changes")) == 1

    @pytest.mark.asyncio
    async def test_emit_does_not_wait_for_publish(self):
        bus = _SlowBus(delay=0.2)
        emitter = EventEmitter(bus, TOPICS)

        assert emitter.emit(_shared_event()) is True
        assert bus.delivered == 0
        assert emitter.pending == 1

        await emitter.flush()
        assert bus.delivered == 1
        assert emitter.pending == 0

    @pytest.mark.asyncio
    async def test_publish_failure_is_logged(self, caplog):
        emitter = EventEmitter(_BrokenBus(), TOPICS)

        with caplog.at_level(logging.WARNING, logger="assethub.events.emitter"):
            emitter.emit(_shared_event())
            await emitter.flush()

        assert "Failed to publish FOLDER_SHARED" in caplog.text

    @pytest.mark.asyncio
    async def test_publish_timeout_is_logged(self, caplog):
        emitter = EventEmitter(_SlowBus(delay=1.0), TOPICS, publish_timeout=0.05)

        with caplog.at_level(logging.WARNING, logger="assethub.events.emitter"):
            emitter.emit(_shared_event())
            await emitter.flush()

        assert "timed out" in caplog.text

    @pytest.mark.asyncio
    async def test_drain_cancels_stragglers_and_closes(self):
        bus = _SlowBus(delay=5.0)
        emitter = EventEmitter(bus, TOPICS, publish_timeout=10.0)
        emitter.emit(_shared_event())

        dropped = await emitter.drain(timeout=0.05)

        assert dropped == 1
        assert bus.delivered == 0
        assert emitter.emit(_shared_event()) is False

    @pytest.mark.asyncio
    async def test_drain_waits_for_fast_publishes(self):
        bus = _SlowBus(delay=0.01)
        emitter = EventEmitter(bus, TOPICS)
        emitter.emit(_shared_event())
        emitter.emit(_shared_event())

        assert await emitter.drain(timeout=2.0) == 0
        assert bus.delivered == 2

    @pytest.mark.asyncio
    async def test_stream_publishes_in_emit_order(self):
        bus = _RecordingBus()
        emitter = EventEmitter(bus, TOPICS)
        asset_id = uuid.uuid4()

        for level in ("read", "lost", "write", "read"):
            emitter.emit(_shared_event(asset_id=asset_id, access_level=level))
        await emitter.flush()

        # A slow first send does not let later events overtake it, and a
        # failed send does not stop the stream
        assert bus.delivered == ["read", "write", "read"]
        assert emitter.pending == 0
