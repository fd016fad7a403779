"""
AssetHub Backend — Access Resolver
===================================

What:  Decides whether a user may perform an operation on a folder or note.
Why:   Every asset operation funnels through here, so the precedence rules
       and the cache trust policy live in exactly one place.

Precedence (first match wins):
    1. Owner of the asset              → write
    2. Direct grant on the asset       → grant level
    3. Notes only: grant on the folder → folder grant level
       (the higher of 2 and 3 applies, so a folder write grant gives write
       on every note inside it)
    4. Otherwise                       → "" (no access; not an error)

Cache trust policy:
    - Asset metadata is read through: a hit saves the Store lookup. Owner
      and parent folder never change after creation, so a cached snapshot
      is always safe for ownership decisions; deletions invalidate it
      synchronously.
    - Grants and team membership are always decided by the Store
      predicates (check_access, is_team_manager, is_team_member). The ACL
      and team-member cache entries are maintained from change events and
      may lag behind the Store, so they are never consulted here.

Result: a stale or re-widened cache entry cannot change a decision.
"""

import logging
import uuid
from enum import Enum
from typing import Optional, Tuple, Union

from assethub.cache.base import CacheService
from assethub.exceptions import AccessDeniedError, NotFoundError
from assethub.schemas.asset import FolderResponse, NoteResponse
from assethub.schemas.common import AccessLevel, AssetType, Identity
from assethub.store.base import Store

logger = logging.getLogger(__name__)

AssetSnapshot = Union[FolderResponse, NoteResponse]


class Operation(str, Enum):
    """What the caller intends to do. OWN covers delete and share management."""

    READ = "read"
    WRITE = "write"
    OWN = "own"


def _max_level(a: str, b: str) -> str:
    if AccessLevel.WRITE.value in (a, b):
        return AccessLevel.WRITE.value
    if AccessLevel.READ.value in (a, b):
        return AccessLevel.READ.value
    return ""


class AccessResolver:

    def __init__(self, cache: CacheService):
        self.cache = cache

    # ── Asset metadata (read-through) ─────────────────────────────────────

    async def load_asset(
        self, store: Store, asset_type: AssetType, asset_id: uuid.UUID
    ) -> AssetSnapshot:
        """
        Fetch an asset snapshot, cache first.

        Raises:
            NotFoundError: no such asset in the Store.
        """
        model = FolderResponse if asset_type is AssetType.FOLDER else NoteResponse

        cached = await self.cache.get_asset_metadata(asset_type, asset_id)
        if cached is not None:
            try:
                return model.model_validate(cached)
            except ValueError:
                logger.warning("Ignoring malformed cached snapshot of %s %s", asset_type.value, asset_id)

        if asset_type is AssetType.FOLDER:
            row = await store.folders.get(asset_id)
        else:
            row = await store.notes.get(asset_id)
        if row is None:
            raise NotFoundError(resource=asset_type.value.capitalize(), resource_id=str(asset_id))

        snapshot = model.model_validate(row)
        await self.remember(asset_type, snapshot)
        return snapshot

    async def remember(self, asset_type: AssetType, snapshot: AssetSnapshot) -> None:
        """Write-through of a fresh snapshot. Best-effort."""
        await self.cache.cache_asset_metadata(
            asset_type, snapshot.id, snapshot.model_dump(mode="json")
        )

    # ── Grants ────────────────────────────────────────────────────────────

    async def _grant_level(
        self, store: Store, asset_type: AssetType, asset_id: uuid.UUID, user_id: uuid.UUID
    ) -> str:
        return await store.shares.check_access(asset_type, asset_id, user_id)

    async def resolve_snapshot(
        self, store: Store, user_id: uuid.UUID, asset_type: AssetType, snapshot: AssetSnapshot
    ) -> str:
        if snapshot.owner_id == user_id:
            return AccessLevel.WRITE.value

        level = await self._grant_level(store, asset_type, snapshot.id, user_id)
        if asset_type is AssetType.NOTE and level != AccessLevel.WRITE.value:
            folder_level = await self._grant_level(
                store, AssetType.FOLDER, snapshot.folder_id, user_id
            )
            level = _max_level(level, folder_level)
        return level

    async def resolve(
        self, store: Store, user_id: uuid.UUID, asset_type: AssetType, asset_id: uuid.UUID
    ) -> str:
        """
        Effective access level of `user_id` on the asset.

        Returns:
            "write", "read", or "" for no access.

        Raises:
            NotFoundError: unknown asset.
        """
        snapshot = await self.load_asset(store, asset_type, asset_id)
        return await self.resolve_snapshot(store, user_id, asset_type, snapshot)

    async def authorize(
        self,
        store: Store,
        identity: Identity,
        asset_type: AssetType,
        asset_id: uuid.UUID,
        operation: Operation,
    ) -> Tuple[AssetSnapshot, str]:
        """
        Require `operation` on the asset and return its snapshot and the
        caller's effective level.

        Raises:
            NotFoundError: unknown asset.
            AccessDeniedError: insufficient level; `unrelated` is set when
                the caller has no access at all.
        """
        snapshot = await self.load_asset(store, asset_type, asset_id)
        level = await self.resolve_snapshot(store, identity.user_id, asset_type, snapshot)

        if operation is Operation.OWN:
            allowed = snapshot.owner_id == identity.user_id
        else:
            parsed: Optional[AccessLevel] = AccessLevel.parse(level)
            allowed = parsed is not None and parsed.satisfies(AccessLevel(operation.value))

        if not allowed:
            logger.info(
                "Denied %s on %s %s to user %s (level=%r)",
                operation.value,
                asset_type.value,
                asset_id,
                identity.user_id,
                level,
            )
            raise AccessDeniedError(
                message=f"You do not have {operation.value} access to this {asset_type.value}",
                unrelated=level == "",
                context={"asset_type": asset_type.value, "asset_id": str(asset_id)},
            )
        return snapshot, level

    # ── Teams ─────────────────────────────────────────────────────────────

    async def is_in_team(self, store: Store, team_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        """True if the user manages or belongs to the team."""
        if await store.teams.is_team_manager(team_id, user_id):
            return True
        return await store.teams.is_team_member(team_id, user_id)
