"""
AssetHub Backend — Event-Driven Cache Invalidator
==================================================

What:  Consumes change events and brings the cache in line with the Store.
Why:   Services write to the Store, not the cache. This consumer is what makes
       the next read observe fresh data instead of waiting out a TTL.

Per message:
    received → parsed → dispatched (by eventType) → applied → ack
                  ↘ EventDecodeError / CacheError → retry (tenacity, bounded)
                                                     ↘ exhausted → FAILED MESSAGE log → ack

Dispatch table:
    TEAM_CREATED              → seed team members (managers + members)
    MEMBER/MANAGER_ADDED      → add one member      (fallback: invalidate list)
    MEMBER/MANAGER_REMOVED    → remove one member   (fallback: invalidate list)
    *_CREATED (assets)        → nothing, filled lazily on first read
    *_UPDATED                 → invalidate metadata
    *_DELETED                 → invalidate metadata + ACL
    *_SHARED                  → set one ACL entry   (fallback: invalidate ACL)
    *_UNSHARED                → remove one ACL entry (fallback: invalidate ACL)

Idempotency:
    Every handler is a set/remove of one element or an unconditional delete,
    so at-least-once redelivery converges to the same cache state.
"""

import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from assethub.cache.base import CacheService
from assethub.config import Settings
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
from assethub.exceptions import CacheError, DependencyError, EventDecodeError

logger = logging.getLogger(__name__)

# Payload prefix included in FAILED MESSAGE logs
_EXCERPT_LENGTH = 256


class Outcome(str, Enum):
    ACKED = "acked"
    RETRIED = "retried"
    DEAD_LETTERED = "dead_lettered"


class CacheInvalidator:

    def __init__(
        self,
        cache: CacheService,
        max_attempts: int = 3,
        min_wait: float = 1.0,
        max_wait: float = 4.0,
    ):
        self.cache = cache
        self.max_attempts = max_attempts
        self.min_wait = min_wait
        self.max_wait = max_wait
        self.stats: Dict[str, int] = {outcome.value: 0 for outcome in Outcome}

    @classmethod
    def from_settings(cls, cache: CacheService, settings: Settings) -> "CacheInvalidator":
        return cls(
            cache=cache,
            max_attempts=settings.consumer_max_attempts,
            min_wait=settings.consumer_retry_min_wait,
            max_wait=settings.consumer_retry_max_wait,
        )

    def handler_for(self, topic: str) -> Callable[[bytes], Awaitable[Outcome]]:
        """Bind a topic name for EventBus.subscribe, which hands over payloads only."""

        async def handle(payload: bytes) -> Outcome:
            return await self.handle_message(topic, payload)

        return handle

    async def handle_message(self, topic: str, payload: bytes) -> Outcome:
        """
        Process one message with a bounded retry budget.

        Never raises for decode or cache failures: once the budget is spent
        the message is logged as failed and acknowledged so the partition
        keeps moving.
        """
        attempts = 0
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            # wait = min_wait * 2^n, capped at max_wait
            wait=wait_exponential(multiplier=self.min_wait, min=self.min_wait, max=self.max_wait),
            retry=retry_if_exception_type((EventDecodeError, DependencyError)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    attempts += 1
                    await self._process(payload)
        except (EventDecodeError, DependencyError) as e:
            logger.error(
                "FAILED MESSAGE on %s after %d attempts: %s | payload=%r",
                topic,
                attempts,
                e.message,
                payload[:_EXCERPT_LENGTH],
            )
            outcome = Outcome.DEAD_LETTERED
        else:
            outcome = Outcome.ACKED if attempts == 1 else Outcome.RETRIED

        self.stats[outcome.value] += 1
        return outcome

    async def _process(self, payload: bytes) -> None:
        event = decode_event(payload)
        if event is None:
            logger.info("Ignoring change event of unknown type")
            return
        await self.apply(event)

    async def apply(self, event: ChangeEvent) -> None:
        """Dispatch a decoded event. Raises CacheError if even the fallback failed."""
        logger.debug("Applying %s for %s", event.event_type.value, event.partition_key)

        if isinstance(event, TeamCreatedEvent):
            await self._on_team_created(event)
        elif isinstance(event, TeamMembershipEvent):
            await self._on_membership_changed(event)
        elif isinstance(event, AssetCreatedEvent):
            logger.debug("Asset %s created, cache fills on first read", event.asset_id)
        elif isinstance(event, AssetUpdatedEvent):
            await self.cache.invalidate_asset_metadata(event.asset_type, event.asset_id)
        elif isinstance(event, AssetDeletedEvent):
            await self.cache.invalidate_asset_metadata(event.asset_type, event.asset_id)
            await self.cache.invalidate_asset_acl(event.asset_id)
        elif isinstance(event, AssetSharedEvent):
            await self._incremental(
                lambda: self.cache.set_acl_entry(
                    event.asset_id, event.shared_with_user_id, event.access_level
                ),
                lambda: self.cache.invalidate_asset_acl(event.asset_id),
                f"ACL of {event.asset_id}",
            )
        elif isinstance(event, AssetUnsharedEvent):
            await self._incremental(
                lambda: self.cache.remove_acl_entry(event.asset_id, event.unshared_from_user_id),
                lambda: self.cache.invalidate_asset_acl(event.asset_id),
                f"ACL of {event.asset_id}",
            )

    # ── Team handlers ─────────────────────────────────────────────────────

    async def _on_team_created(self, event: TeamCreatedEvent) -> None:
        seeded = await self.cache.cache_team_members(
            event.team_id, [*event.managers, *event.members]
        )
        if not seeded:
            logger.warning("Could not seed members of team %s", event.team_id)

    async def _on_membership_changed(self, event: TeamMembershipEvent) -> None:
        if event.event_type in (EventType.MEMBER_ADDED, EventType.MANAGER_ADDED):
            primary = lambda: self.cache.add_team_member(event.team_id, event.target_user_id)
        else:
            primary = lambda: self.cache.remove_team_member(event.team_id, event.target_user_id)

        await self._incremental(
            primary,
            lambda: self.cache.invalidate_team_members(event.team_id),
            f"members of team {event.team_id}",
        )

    # ── Fallback ──────────────────────────────────────────────────────────

    async def _incremental(
        self,
        update: Callable[[], Awaitable[bool]],
        invalidate: Callable[[], Awaitable[None]],
        description: str,
    ) -> Optional[bool]:
        """
        Apply an incremental update; on failure drop the whole entry instead.

        Returns:
            True if applied, False if the entry was absent, None if the
            fallback invalidation ran.
        """
        try:
            return await update()
        except CacheError as e:
            logger.warning(
                "Incremental update of %s failed (%s), invalidating", description, e.message
            )
        await invalidate()
        return None
