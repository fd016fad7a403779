"""
AssetHub Backend — No-op Cache
===============================

Used when caching is disabled or the cache was unreachable at startup.
Reads always miss, puts succeed trivially, incremental updates report
"entry absent", invalidations do nothing. Every read therefore goes to the
Store, which is exactly the behaviour of a cold cache.
"""

import uuid
from typing import Any, Dict, List, Optional, Sequence

from assethub.cache.base import CacheService
from assethub.schemas.common import AssetType


class NoOpCacheService(CacheService):

    backend_name = "none"

    async def get_team_members(self, team_id: uuid.UUID) -> Optional[List[uuid.UUID]]:
        return None

    async def cache_team_members(
        self, team_id: uuid.UUID, user_ids: Sequence[uuid.UUID]
    ) -> bool:
        return True

    async def add_team_member(self, team_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        return False

    async def remove_team_member(self, team_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        return False

    async def invalidate_team_members(self, team_id: uuid.UUID) -> None:
        return None

    async def get_asset_metadata(
        self, asset_type: AssetType, asset_id: uuid.UUID
    ) -> Optional[Dict[str, Any]]:
        return None

    async def cache_asset_metadata(
        self, asset_type: AssetType, asset_id: uuid.UUID, snapshot: Dict[str, Any]
    ) -> bool:
        return True

    async def invalidate_asset_metadata(
        self, asset_type: AssetType, asset_id: uuid.UUID
    ) -> None:
        return None

    async def get_asset_acl(self, asset_id: uuid.UUID) -> Optional[Dict[str, str]]:
        return None

    async def cache_asset_acl(self, asset_id: uuid.UUID, acl: Dict[str, str]) -> bool:
        return True

    async def set_acl_entry(
        self, asset_id: uuid.UUID, user_id: uuid.UUID, access_level: str
    ) -> bool:
        return False

    async def remove_acl_entry(self, asset_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        return False

    async def invalidate_asset_acl(self, asset_id: uuid.UUID) -> None:
        return None

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "disabled", "backend": self.backend_name}
