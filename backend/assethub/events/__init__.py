"""
Change events: typed payloads, the transports that carry them, the emitter
that publishes them after a commit and the consumer that applies them to
the cache.
"""

from assethub.events.bus import EventBus, InMemoryEventBus, NoOpEventBus
from assethub.events.emitter import EventEmitter
from assethub.events.invalidator import CacheInvalidator, Outcome
from assethub.events.kafka_bus import KafkaEventBus
from assethub.events.types import (
    AssetCreatedEvent,
    AssetDeletedEvent,
    AssetSharedEvent,
    AssetUnsharedEvent,
    AssetUpdatedEvent,
    ChangeEvent,
    EventType,
    TeamCreatedEvent,
    TeamMembershipEvent,
    decode_event,
)

__all__ = [
    "AssetCreatedEvent",
    "AssetDeletedEvent",
    "AssetSharedEvent",
    "AssetUnsharedEvent",
    "AssetUpdatedEvent",
    "CacheInvalidator",
    "ChangeEvent",
    "EventBus",
    "EventEmitter",
    "EventType",
    "InMemoryEventBus",
    "KafkaEventBus",
    "NoOpEventBus",
    "Outcome",
    "TeamCreatedEvent",
    "TeamMembershipEvent",
    "decode_event",
]
