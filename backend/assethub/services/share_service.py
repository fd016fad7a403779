"""
AssetHub Backend — Share Service
=================================

What:  Grants and revokes read/write access on folders and notes.
Why:   Grant changes are the main source of ACL cache churn, so their
       ordering with respect to cache and events matters most.

Check order for share():
    1. access level is read|write          → ValidationError
    2. target is not the caller            → ValidationError
    3. asset exists                         → NotFoundError
    4. caller owns the asset                → AccessDeniedError
    5. target user exists                   → NotFoundError
    Steps 1-2 run before the Store is touched at all.

Cache:
    Every grant change drops the asset's ACL entry right after the commit.
    The event that follows applies the same change incrementally for any
    replica that refilled the entry in between.
"""

import logging
import uuid
from typing import List

from assethub.cache.base import CacheService, invalidate_quietly
from assethub.events.emitter import EventEmitter
from assethub.events.types import AssetSharedEvent, AssetUnsharedEvent, EventType
from assethub.exceptions import NotFoundError, ValidationError
from assethub.schemas.common import AccessLevel, AssetType, Identity
from assethub.schemas.share import ShareGrantResponse, ShareRequest
from assethub.services.access import AccessResolver, Operation
from assethub.store.base import Store

logger = logging.getLogger(__name__)


class ShareService:

    def __init__(self, resolver: AccessResolver, emitter: EventEmitter, cache: CacheService):
        self.resolver = resolver
        self.emitter = emitter
        self.cache = cache

    async def _username(self, store: Store, user_id: uuid.UUID) -> str:
        user = await store.users.get(user_id)
        return user.username if user is not None else ""

    async def share(
        self,
        store: Store,
        identity: Identity,
        asset_type: AssetType,
        asset_id: uuid.UUID,
        request: ShareRequest,
    ) -> ShareGrantResponse:
        """
        Grant `request.user_id` access to the asset, overwriting any existing
        grant for that user.

        Raises:
            ValidationError: unknown access level, or sharing with yourself.
            NotFoundError: unknown asset or target user.
            AccessDeniedError: caller does not own the asset.
        """
        level = AccessLevel.parse(request.access_level)
        if level is None:
            raise ValidationError(
                message="Access level must be 'read' or 'write'",
                field="access_level",
                context={"value": request.access_level},
            )
        if request.user_id == identity.user_id:
            raise ValidationError(message="You cannot share an asset with yourself", field="user_id")

        snapshot, _ = await self.resolver.authorize(
            store, identity, asset_type, asset_id, Operation.OWN
        )
        if await store.users.get(request.user_id) is None:
            raise NotFoundError(resource="User", resource_id=str(request.user_id))

        grant = await store.shares.upsert(
            asset_type, asset_id, request.user_id, level.value, shared_by=identity.user_id
        )
        await store.commit()
        logger.info(
            "%s %s shared with %s (%s)", asset_type.value, asset_id, request.user_id, level.value
        )

        await invalidate_quietly(self.cache.invalidate_asset_acl(asset_id), f"ACL of {asset_id}")
        self.emitter.emit(
            AssetSharedEvent(
                event_type=EventType.for_asset(asset_type, "SHARED"),
                asset_type=asset_type,
                asset_id=asset_id,
                owner_id=snapshot.owner_id,
                action_by=identity.user_id,
                shared_with_user_id=request.user_id,
                access_level=level.value,
                shared_by_user_name=await self._username(store, identity.user_id),
            )
        )
        return grant

    async def unshare(
        self,
        store: Store,
        identity: Identity,
        asset_type: AssetType,
        asset_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> None:
        """
        Revoke the grant `user_id` holds on the asset. Owner only.

        Raises:
            NotFoundError: unknown asset, or the user holds no grant.
        """
        snapshot, _ = await self.resolver.authorize(
            store, identity, asset_type, asset_id, Operation.OWN
        )
        if not await store.shares.remove(asset_type, asset_id, user_id):
            raise NotFoundError(resource="Share", resource_id=str(user_id))
        await store.commit()
        logger.info("%s %s unshared from %s", asset_type.value, asset_id, user_id)

        await invalidate_quietly(self.cache.invalidate_asset_acl(asset_id), f"ACL of {asset_id}")
        self.emitter.emit(
            AssetUnsharedEvent(
                event_type=EventType.for_asset(asset_type, "UNSHARED"),
                asset_type=asset_type,
                asset_id=asset_id,
                owner_id=snapshot.owner_id,
                action_by=identity.user_id,
                unshared_from_user_id=user_id,
                unshared_by_user_name=await self._username(store, identity.user_id),
            )
        )

    async def list_shares(
        self, store: Store, identity: Identity, asset_type: AssetType, asset_id: uuid.UUID
    ) -> List[ShareGrantResponse]:
        await self.resolver.authorize(store, identity, asset_type, asset_id, Operation.OWN)
        return await store.shares.list_grants(asset_type, asset_id)
