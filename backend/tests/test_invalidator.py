"""
AssetHub Backend — Cache Invalidator Tests
===========================================

What:  Tests for CacheInvalidator dispatch and its tenacity retry budget.
How:   Events are fed straight into handle_message(); the cache is either a
       real InMemoryCacheService or an AsyncMock that fails on demand.

What we test:
    ✅ Each event type reaches the right cache operation
    ✅ Redelivery converges (idempotent handlers)
    ✅ A failed incremental update falls back to invalidation
    ✅ Undecodable payloads are dead-lettered after the attempt budget
    ✅ Transient cache failures are retried and recorded as such
"""

import logging
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from assethub.cache.base import CacheService
from assethub.cache.memory import InMemoryCacheService
from assethub.events.invalidator import CacheInvalidator, Outcome
from assethub.events.types import (
    AssetDeletedEvent,
    AssetSharedEvent,
    AssetUnsharedEvent,
    AssetUpdatedEvent,
    EventType,
    TeamCreatedEvent,
    TeamMembershipEvent,
)
from assethub.exceptions import CacheError
from assethub.schemas.common import AssetType


def _invalidator(cache) -> CacheInvalidator:
    return CacheInvalidator(cache, max_attempts=3, min_wait=0, max_wait=0)


def _membership(event_type: EventType, team_id, user_id) -> TeamMembershipEvent:
    return TeamMembershipEvent(
        event_type=event_type,
        team_id=team_id,
        performed_by=uuid.uuid4(),
        target_user_id=user_id,
    )


def _asset_fields(asset_id, asset_type=AssetType.FOLDER):
    return dict(
        asset_type=asset_type,
        asset_id=asset_id,
        owner_id=uuid.uuid4(),
        action_by=uuid.uuid4(),
    )


def _failing_cache() -> MagicMock:
    cache = MagicMock(spec=CacheService)
    for name in (
        "add_team_member",
        "remove_team_member",
        "invalidate_team_members",
        "cache_team_members",
        "set_acl_entry",
        "remove_acl_entry",
        "invalidate_asset_acl",
        "invalidate_asset_metadata",
    ):
        setattr(cache, name, AsyncMock())
    return cache


class TestTeamEvents:

    @pytest.mark.asyncio
    async def test_team_created_seeds_members(self):
        cache = InMemoryCacheService()
        team_id, manager, member = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        event = TeamCreatedEvent(
            event_type=EventType.TEAM_CREATED,
            team_id=team_id,
            performed_by=manager,
            team_name="Core",
            managers=[manager],
            members=[member],
        )

        outcome = await _invalidator(cache).handle_message("team-changes", event.to_payload())

        assert outcome is Outcome.ACKED
        assert await cache.get_team_members(team_id) == [manager, member]

    @pytest.mark.asyncio
    async def test_member_removed_twice_converges(self):
        cache = InMemoryCacheService()
        team_id, a, b = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        await cache.cache_team_members(team_id, [a, b])
        invalidator = _invalidator(cache)
        payload = _membership(EventType.MEMBER_REMOVED, team_id, b).to_payload()

        await invalidator.handle_message("team-changes", payload)
        await invalidator.handle_message("team-changes", payload)

        assert await cache.get_team_members(team_id) == [a]
        assert invalidator.stats[Outcome.ACKED.value] == 2

    @pytest.mark.asyncio
    async def test_member_added_to_absent_entry_stays_absent(self):
        cache = InMemoryCacheService()
        team_id = uuid.uuid4()

        await _invalidator(cache).handle_message(
            "team-changes", _membership(EventType.MANAGER_ADDED, team_id, uuid.uuid4()).to_payload()
        )

        assert await cache.get_team_members(team_id) is None

    @pytest.mark.asyncio
    async def test_failed_increment_falls_back_to_invalidation(self):
        cache = _failing_cache()
        cache.remove_team_member.side_effect = CacheError(message="down")
        team_id = uuid.uuid4()

        outcome = await _invalidator(cache).handle_message(
            "team-changes", _membership(EventType.MEMBER_REMOVED, team_id, uuid.uuid4()).to_payload()
        )

        assert outcome is Outcome.ACKED
        cache.invalidate_team_members.assert_awaited_once_with(team_id)


class TestAssetEvents:

    @pytest.mark.asyncio
    async def test_shared_updates_cached_acl(self):
        cache = InMemoryCacheService()
        asset_id, user_id = uuid.uuid4(), uuid.uuid4()
        await cache.cache_asset_acl(asset_id, {})
        event = AssetSharedEvent(
            event_type=EventType.FOLDER_SHARED,
            shared_with_user_id=user_id,
            access_level="write",
            **_asset_fields(asset_id),
        )

        await _invalidator(cache).handle_message("asset-changes", event.to_payload())

        assert await cache.get_asset_acl(asset_id) == {str(user_id): "write"}

    @pytest.mark.asyncio
    async def test_unshared_fallback_leaves_clean_miss(self):
        cache = _failing_cache()
        cache.remove_acl_entry.side_effect = CacheError(message="down")
        asset_id = uuid.uuid4()
        event = AssetUnsharedEvent(
            event_type=EventType.NOTE_UNSHARED,
            unshared_from_user_id=uuid.uuid4(),
            **_asset_fields(asset_id, AssetType.NOTE),
        )

        outcome = await _invalidator(cache).handle_message("asset-changes", event.to_payload())

        assert outcome is Outcome.ACKED
        cache.invalidate_asset_acl.assert_awaited_once_with(asset_id)

    @pytest.mark.asyncio
    async def test_updated_invalidates_metadata_only(self):
        cache = InMemoryCacheService()
        asset_id = uuid.uuid4()
        await cache.cache_asset_metadata(AssetType.FOLDER, asset_id, {"name": "old"})
        await cache.cache_asset_acl(asset_id, {})
        event = AssetUpdatedEvent(
            event_type=EventType.FOLDER_UPDATED, name="new", changes=["name"], **_asset_fields(asset_id)
        )

        await _invalidator(cache).handle_message("asset-changes", event.to_payload())

        assert await cache.get_asset_metadata(AssetType.FOLDER, asset_id) is None
        assert await cache.get_asset_acl(asset_id) == {}

    @pytest.mark.asyncio
    async def test_deleted_invalidates_metadata_and_acl(self):
        cache = InMemoryCacheService()
        asset_id = uuid.uuid4()
        await cache.cache_asset_metadata(AssetType.NOTE, asset_id, {"title": "x"})
        await cache.cache_asset_acl(asset_id, {})
        event = AssetDeletedEvent(
            event_type=EventType.NOTE_DELETED, name="x", **_asset_fields(asset_id, AssetType.NOTE)
        )

        await _invalidator(cache).handle_message("asset-changes", event.to_payload())

        assert await cache.get_asset_metadata(AssetType.NOTE, asset_id) is None
        assert await cache.get_asset_acl(asset_id) is None


class TestRetryBudget:

    @pytest.mark.asyncio
    async def test_undecodable_payload_dead_lettered(self, caplog):
        invalidator = _invalidator(InMemoryCacheService())

        with caplog.at_level(logging.ERROR, logger="assethub.events.invalidator"):
            outcome = await invalidator.handle_message("asset-changes", b"{broken")

        assert outcome is Outcome.DEAD_LETTERED
        assert invalidator.stats[Outcome.DEAD_LETTERED.value] == 1
        assert "FAILED MESSAGE on asset-changes after 3 attempts" in caplog.text

    @pytest.mark.asyncio
    async def test_persistent_cache_failure_dead_lettered(self):
        cache = _failing_cache()
        cache.invalidate_asset_metadata.side_effect = CacheError(message="down")
        asset_id = uuid.uuid4()
        event = AssetUpdatedEvent(
            event_type=EventType.FOLDER_UPDATED, name="n", **_asset_fields(asset_id)
        )

        outcome = await _invalidator(cache).handle_message("asset-changes", event.to_payload())

        assert outcome is Outcome.DEAD_LETTERED
        assert cache.invalidate_asset_metadata.await_count == 3

    @pytest.mark.asyncio
    async def test_transient_failure_recorded_as_retried(self):
        cache = _failing_cache()
        cache.invalidate_asset_metadata.side_effect = [CacheError(message="blip"), None]
        event = AssetUpdatedEvent(
            event_type=EventType.FOLDER_UPDATED, name="n", **_asset_fields(uuid.uuid4())
        )
        invalidator = _invalidator(cache)

        outcome = await invalidator.handle_message("asset-changes", event.to_payload())

        assert outcome is Outcome.RETRIED
        assert invalidator.stats == {"acked": 0, "retried": 1, "dead_lettered": 0}

    @pytest.mark.asyncio
    async def test_unknown_event_type_acked(self):
        invalidator = _invalidator(InMemoryCacheService())

        outcome = await invalidator.handle_message(
            "asset-changes", b'{"eventType": "FOLDER_ARCHIVED", "assetId": "x"}'
        )

        assert outcome is Outcome.ACKED

    @pytest.mark.asyncio
    async def test_handler_for_binds_topic(self, caplog):
        invalidator = _invalidator(InMemoryCacheService())
        handle = invalidator.handler_for("team-changes")

        with caplog.at_level(logging.ERROR, logger="assethub.events.invalidator"):
            assert await handle(b"nope") is Outcome.DEAD_LETTERED

        assert "on team-changes" in caplog.text
