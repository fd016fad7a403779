"""
AssetHub Backend — In-Process Cache
====================================

What:  CacheService backed by a dict with per-entry expiry.
Why:   Single-process deployments and the test suite get real cache
       semantics (TTL, apply-only-if-present) without a Redis server.
How:   Every operation is synchronous under the hood and runs between two
       awaits on one event loop, so no lock is needed.

Values are copied on the way in and out; callers can never mutate an entry
in place.
"""

import copy
import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from assethub.cache.base import (
    CacheService,
    CacheTTLs,
    asset_acl_key,
    asset_metadata_key,
    team_members_key,
)
from assethub.schemas.common import AssetType


class InMemoryCacheService(CacheService):

    backend_name = "memory"

    def __init__(self, ttls: Optional[CacheTTLs] = None, clock: Callable[[], float] = time.monotonic):
        self.ttls = ttls or CacheTTLs()
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}

    # ── Primitives ────────────────────────────────────────────────────────

    def _get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def _put(self, key: str, value: Any, ttl: int) -> None:
        self._entries[key] = (copy.deepcopy(value), self._clock() + ttl)

    def _delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    # ── Team members ──────────────────────────────────────────────────────

    async def get_team_members(self, team_id: uuid.UUID) -> Optional[List[uuid.UUID]]:
        value = self._get(team_members_key(team_id))
        if value is None:
            return None
        return [uuid.UUID(v) for v in value]

    async def cache_team_members(
        self, team_id: uuid.UUID, user_ids: Sequence[uuid.UUID]
    ) -> bool:
        ordered: List[str] = []
        for user_id in user_ids:
            if str(user_id) not in ordered:
                ordered.append(str(user_id))
        self._put(team_members_key(team_id), ordered, self.ttls.team_members)
        return True

    async def add_team_member(self, team_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        value = self._get(team_members_key(team_id))
        if value is None:
            return False
        if str(user_id) not in value:
            value.append(str(user_id))
        return True

    async def remove_team_member(self, team_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        value = self._get(team_members_key(team_id))
        if value is None:
            return False
        if str(user_id) in value:
            value.remove(str(user_id))
        return True

    async def invalidate_team_members(self, team_id: uuid.UUID) -> None:
        self._delete(team_members_key(team_id))

    # ── Asset metadata ────────────────────────────────────────────────────

    async def get_asset_metadata(
        self, asset_type: AssetType, asset_id: uuid.UUID
    ) -> Optional[Dict[str, Any]]:
        value = self._get(asset_metadata_key(asset_type, asset_id))
        return copy.deepcopy(value) if value is not None else None

    async def cache_asset_metadata(
        self, asset_type: AssetType, asset_id: uuid.UUID, snapshot: Dict[str, Any]
    ) -> bool:
        self._put(asset_metadata_key(asset_type, asset_id), snapshot, self.ttls.asset_metadata)
        return True

    async def invalidate_asset_metadata(
        self, asset_type: AssetType, asset_id: uuid.UUID
    ) -> None:
        self._delete(asset_metadata_key(asset_type, asset_id))

    # ── Asset ACL ─────────────────────────────────────────────────────────

    async def get_asset_acl(self, asset_id: uuid.UUID) -> Optional[Dict[str, str]]:
        value = self._get(asset_acl_key(asset_id))
        return dict(value) if value is not None else None

    async def cache_asset_acl(self, asset_id: uuid.UUID, acl: Dict[str, str]) -> bool:
        self._put(asset_acl_key(asset_id), dict(acl), self.ttls.asset_acl)
        return True

    async def set_acl_entry(
        self, asset_id: uuid.UUID, user_id: uuid.UUID, access_level: str
    ) -> bool:
        value = self._get(asset_acl_key(asset_id))
        if value is None:
            return False
        value[str(user_id)] = access_level
        return True

    async def remove_acl_entry(self, asset_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        value = self._get(asset_acl_key(asset_id))
        if value is None:
            return False
        value.pop(str(user_id), None)
        return True

    async def invalidate_asset_acl(self, asset_id: uuid.UUID) -> None:
        self._delete(asset_acl_key(asset_id))

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy", "backend": self.backend_name, "entries": len(self._entries)}
