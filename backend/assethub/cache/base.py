"""
AssetHub Backend — Cache Service Interface
===========================================

What:  Abstract contract for the three cache namespaces (team members,
       asset metadata, asset ACL) plus the key scheme and TTLs.
Why:   The cache is a latency accelerator that must be safe to lose. Every
       implementation (Redis, in-memory, no-op) satisfies the same contract,
       and callers never branch on which one is configured.

Contract:
    get_*          Never raises. None means miss; a transport error is
                   reported as a miss too, so callers fall back to the Store.
    cache_*        Best-effort put with the namespace TTL. Never raises;
                   returns whether the value was stored.
    add_/remove_/set_  Incremental updates. Applied only when the entry
                   already exists (returns False otherwise). Raise CacheError
                   on transport failure; the caller must then invalidate.
    invalidate_*   Unconditional, idempotent delete. Raises CacheError on
                   transport failure.

Key scheme:
    team:{team_id}:members     ordered list of manager + member ids
    folder:{id} / note:{id}    JSON snapshot (FolderResponse / NoteResponse)
    asset:{asset_id}:acl       {grantee id: "read" | "write"}
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, List, Optional, Sequence

from assethub.config import Settings
from assethub.exceptions import CacheError
from assethub.schemas.common import AssetType

logger = logging.getLogger(__name__)


# ── Keys ──────────────────────────────────────────────────────────────────

def team_members_key(team_id: uuid.UUID) -> str:
    return f"team:{team_id}:members"


def asset_metadata_key(asset_type: AssetType, asset_id: uuid.UUID) -> str:
    return f"{asset_type.value}:{asset_id}"


def asset_acl_key(asset_id: uuid.UUID) -> str:
    return f"asset:{asset_id}:acl"


# ── TTLs ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CacheTTLs:
    """Seconds each namespace may live without an invalidation."""

    team_members: int = 3600
    asset_metadata: int = 1800
    asset_acl: int = 900

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheTTLs":
        return cls(
            team_members=settings.cache_team_members_ttl,
            asset_metadata=settings.cache_asset_metadata_ttl,
            asset_acl=settings.cache_asset_acl_ttl,
        )


class CacheService(ABC):
    """Namespaced read-through cache. See module docstring for the contract."""

    backend_name = "abstract"

    # ── Team members ──────────────────────────────────────────────────────

    @abstractmethod
    async def get_team_members(self, team_id: uuid.UUID) -> Optional[List[uuid.UUID]]:
        ...

    @abstractmethod
    async def cache_team_members(
        self, team_id: uuid.UUID, user_ids: Sequence[uuid.UUID]
    ) -> bool:
        """Replace the whole entry."""
        ...

    @abstractmethod
    async def add_team_member(self, team_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        ...

    @abstractmethod
    async def remove_team_member(self, team_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        ...

    @abstractmethod
    async def invalidate_team_members(self, team_id: uuid.UUID) -> None:
        ...

    # ── Asset metadata ────────────────────────────────────────────────────

    @abstractmethod
    async def get_asset_metadata(
        self, asset_type: AssetType, asset_id: uuid.UUID
    ) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def cache_asset_metadata(
        self, asset_type: AssetType, asset_id: uuid.UUID, snapshot: Dict[str, Any]
    ) -> bool:
        ...

    @abstractmethod
    async def invalidate_asset_metadata(
        self, asset_type: AssetType, asset_id: uuid.UUID
    ) -> None:
        ...

    # ── Asset ACL ─────────────────────────────────────────────────────────

    @abstractmethod
    async def get_asset_acl(self, asset_id: uuid.UUID) -> Optional[Dict[str, str]]:
        """An empty dict is a hit: the asset is known to have no grants."""
        ...

    @abstractmethod
    async def cache_asset_acl(self, asset_id: uuid.UUID, acl: Dict[str, str]) -> bool:
        ...

    @abstractmethod
    async def set_acl_entry(
        self, asset_id: uuid.UUID, user_id: uuid.UUID, access_level: str
    ) -> bool:
        ...

    @abstractmethod
    async def remove_acl_entry(self, asset_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        ...

    @abstractmethod
    async def invalidate_asset_acl(self, asset_id: uuid.UUID) -> None:
        ...

    # ── Lifecycle ─────────────────────────────────────────────────────────

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Status summary: at least `status` and `backend`."""
        ...

    async def close(self) -> None:
        return None


async def invalidate_quietly(operation: Awaitable[None], description: str) -> None:
    """
    Run an invalidation on the request path, downgrading failure to a warning.

    The TTL bounds how long a missed invalidation can matter, and the
    consumed change event retries it in the background.
    """
    try:
        await operation
    except CacheError as e:
        logger.warning("Cache invalidation of %s failed: %s", description, e.message)
