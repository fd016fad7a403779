"""
AssetHub Backend — Service Container
=====================================

What:  Builds every process-wide component once and owns its lifetime.
Why:   No module-level singletons: the app, the test suite and any worker
       process each construct their own container from a Settings object.
How:   `from_settings()` picks cache and bus implementations, connecting to
       Redis / Kafka when configured. An unreachable backend is replaced by
       its no-op twin with a warning, so the API still starts and serves
       from the Store alone.

Dependency graph:
    Settings
      ├─ Database
      ├─ CacheService ────────────┬─ AccessResolver ─┬─ FolderService
      ├─ EventBus ─ EventEmitter ─┤                  ├─ NoteService
      │                           │                  ├─ ShareService
      │                           │                  └─ TeamService
      └───────────────────────────┴─ CacheInvalidator (subscribed on start)
    ManagerService (Store only)

Shutdown order:
    drain emitter → close bus (stops consumers) → close cache → dispose engine
"""

import logging
from typing import Optional

from assethub.cache.base import CacheService, CacheTTLs
from assethub.cache.memory import InMemoryCacheService
from assethub.cache.noop import NoOpCacheService
from assethub.cache.redis_cache import RedisCacheService
from assethub.config import Settings
from assethub.database import Database
from assethub.events.bus import EventBus, InMemoryEventBus, NoOpEventBus
from assethub.events.emitter import EventEmitter
from assethub.events.invalidator import CacheInvalidator
from assethub.events.kafka_bus import KafkaEventBus
from assethub.exceptions import CacheError, EventBusError
from assethub.services.access import AccessResolver
from assethub.services.folder_service import FolderService
from assethub.services.manager_service import ManagerService
from assethub.services.note_service import NoteService
from assethub.services.share_service import ShareService
from assethub.services.team_service import TeamService

logger = logging.getLogger(__name__)


async def build_cache(settings: Settings) -> CacheService:
    if settings.cache_backend == "none":
        logger.info("Cache disabled")
        return NoOpCacheService()
    if settings.cache_backend == "memory":
        logger.info("Using in-process cache")
        return InMemoryCacheService(ttls=CacheTTLs.from_settings(settings))

    cache = RedisCacheService.from_settings(settings)
    try:
        await cache.connect()
    except CacheError as e:
        logger.warning("Redis unavailable (%s), continuing without cache", e.message)
        await cache.close()
        return NoOpCacheService()
    return cache


async def build_event_bus(settings: Settings) -> EventBus:
    if settings.event_bus_backend == "none":
        logger.info("Event bus disabled")
        return NoOpEventBus()
    if settings.event_bus_backend == "memory":
        logger.info("Using in-process event bus")
        return InMemoryEventBus()

    bus = KafkaEventBus.from_settings(settings)
    try:
        await bus.connect()
    except EventBusError as e:
        logger.warning("Kafka unavailable (%s), continuing without events", e.message)
        return NoOpEventBus()
    return bus


class ServiceContainer:

    def __init__(
        self,
        settings: Settings,
        database: Database,
        cache: CacheService,
        bus: EventBus,
    ):
        self.settings = settings
        self.database = database
        self.cache = cache
        self.bus = bus

        self.emitter = EventEmitter.from_settings(bus, settings)
        self.invalidator = CacheInvalidator.from_settings(cache, settings)
        self.resolver = AccessResolver(cache)

        self.folders = FolderService(self.resolver, self.emitter, cache)
        self.notes = NoteService(self.resolver, self.emitter, cache)
        self.shares = ShareService(self.resolver, self.emitter, cache)
        self.teams = TeamService(self.resolver, self.emitter, cache)
        self.managers = ManagerService()

        self._started = False

    @classmethod
    async def from_settings(
        cls, settings: Settings, database: Optional[Database] = None
    ) -> "ServiceContainer":
        return cls(
            settings=settings,
            database=database or Database.from_settings(settings),
            cache=await build_cache(settings),
            bus=await build_event_bus(settings),
        )

    async def start(self) -> None:
        """Subscribe the cache invalidator to both change topics."""
        if self._started:
            return
        for topic in (self.settings.asset_topic, self.settings.team_topic):
            try:
                await self.bus.subscribe(topic, self.invalidator.handler_for(topic))
            except EventBusError as e:
                logger.warning(
                    "Cannot consume %s (%s); cache relies on TTLs and request-path invalidation",
                    topic,
                    e.message,
                )
        self._started = True
        logger.info(
            "Container started (cache=%s, event_bus=%s)",
            self.cache.backend_name,
            self.bus.backend_name,
        )

    async def close(self) -> None:
        dropped = await self.emitter.drain(self.settings.event_drain_timeout_seconds)
        if dropped:
            logger.warning("%d events were not published before shutdown", dropped)
        await self.bus.close()
        await self.cache.close()
        await self.database.dispose()
        self._started = False
        logger.info("Container closed")
