"""
AssetHub Backend — Redis Cache Implementation
==============================================

What:  CacheService backed by Redis (redis-py asyncio client).
Why:   A shared cache lets every API replica benefit from one read-through
       fill, and Redis data types map onto the namespaces directly:
       team members → LIST, asset metadata → STRING (JSON), ACL → HASH.
How:   Every call goes through `_call`, which checks the circuit breaker,
       bounds the round trip with `cache_timeout_seconds`, and records the
       outcome. Reads and puts swallow failures (miss / False); mutations
       re-raise them as CacheError so the caller can fall back to invalidation.

Atomicity:
    Incremental updates run as Lua scripts: the existence check and the write
    happen in one server-side step, so an update can never recreate an entry
    that expired or was invalidated a moment earlier. Full replacements run in
    a MULTI/EXEC pipeline (DEL + write + EXPIRE).

Empty ACLs:
    A Redis hash cannot be empty, so cached ACLs carry a marker field. An
    asset with no grants is then still a cache hit instead of a perpetual miss.
"""

import asyncio
import json
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from assethub.cache.base import (
    CacheService,
    CacheTTLs,
    asset_acl_key,
    asset_metadata_key,
    team_members_key,
)
from assethub.cache.circuit_breaker import CircuitBreaker
from assethub.config import Settings
from assethub.exceptions import CacheError, CircuitBreakerOpenError
from assethub.schemas.common import AssetType

logger = logging.getLogger(__name__)

T = TypeVar("T")

ACL_MARKER_FIELD = "__acl__"

# KEYS[1] = list key, ARGV[1] = user id
_ADD_MEMBER_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return 0
end
redis.call('LREM', KEYS[1], 0, ARGV[1])
redis.call('RPUSH', KEYS[1], ARGV[1])
return 1
"""

_REMOVE_MEMBER_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return 0
end
redis.call('LREM', KEYS[1], 0, ARGV[1])
return 1
"""

# KEYS[1] = hash key, ARGV[1] = grantee id, ARGV[2] = level
_SET_ACL_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return 0
end
redis.call('HSET', KEYS[1], ARGV[1], ARGV[2])
return 1
"""

_REMOVE_ACL_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return 0
end
redis.call('HDEL', KEYS[1], ARGV[1])
return 1
"""


class RedisCacheService(CacheService):

    backend_name = "redis"

    def __init__(
        self,
        client: Redis,
        ttls: Optional[CacheTTLs] = None,
        timeout: float = 2.0,
        breaker: Optional[CircuitBreaker] = None,
        address: str = "",
    ):
        self._client = client
        self.ttls = ttls or CacheTTLs()
        self.timeout = timeout
        self.circuit_breaker = breaker or CircuitBreaker(name="redis")
        self.address = address

        self._add_member = client.register_script(_ADD_MEMBER_SCRIPT)
        self._remove_member = client.register_script(_REMOVE_MEMBER_SCRIPT)
        self._set_acl = client.register_script(_SET_ACL_SCRIPT)
        self._remove_acl = client.register_script(_REMOVE_ACL_SCRIPT)

        self._last_health_check = 0.0
        self._health: Dict[str, Any] = {"status": "unknown", "backend": self.backend_name}

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisCacheService":
        pool = ConnectionPool.from_url(
            settings.redis_url,
            max_connections=settings.redis_max_connections,
            socket_timeout=settings.cache_timeout_seconds,
            socket_connect_timeout=settings.cache_timeout_seconds,
            decode_responses=True,
        )
        return cls(
            client=Redis(connection_pool=pool),
            ttls=CacheTTLs.from_settings(settings),
            timeout=settings.cache_timeout_seconds,
            breaker=CircuitBreaker(
                failure_threshold=settings.cb_failure_threshold,
                recovery_timeout=settings.cb_recovery_timeout,
                name="redis",
            ),
            address=settings.redis_url.rsplit("@", 1)[-1],
        )

    async def connect(self) -> None:
        """Verify the server answers. Raises CacheError otherwise."""
        await self._call("ping", self._client.ping)
        logger.info("Connected to Redis at %s", self.address)

    # ── Call wrappers ─────────────────────────────────────────────────────

    async def _call(self, operation: str, fn: Callable[[], Awaitable[T]]) -> T:
        self.circuit_breaker.can_execute()
        try:
            result = await asyncio.wait_for(fn(), timeout=self.timeout)
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            self.circuit_breaker.record_failure()
            raise CacheError(
                message=f"Redis {operation} failed",
                context={"operation": operation, "error_type": type(e).__name__},
            ) from e
        self.circuit_breaker.record_success()
        return result

    async def _read(self, operation: str, key: str, fn: Callable[[], Awaitable[T]]) -> Optional[T]:
        try:
            return await self._call(operation, fn)
        except CircuitBreakerOpenError:
            return None
        except CacheError as e:
            logger.warning("Cache %s for %s failed, treating as miss: %s", operation, key, e.context)
            return None

    async def _write(self, operation: str, key: str, fn: Callable[[], Awaitable[Any]]) -> bool:
        try:
            await self._call(operation, fn)
            return True
        except CircuitBreakerOpenError:
            return False
        except CacheError as e:
            logger.warning("Cache %s for %s failed: %s", operation, key, e.context)
            return False

    async def _replace_list(self, key: str, values: List[str], ttl: int) -> None:
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.delete(key)
            if values:
                pipe.rpush(key, *values)
                pipe.expire(key, ttl)
            await pipe.execute()

    async def _replace_hash(self, key: str, mapping: Dict[str, str], ttl: int) -> None:
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.delete(key)
            pipe.hset(key, mapping=mapping)
            pipe.expire(key, ttl)
            await pipe.execute()

    # ── Team members ──────────────────────────────────────────────────────

    async def get_team_members(self, team_id: uuid.UUID) -> Optional[List[uuid.UUID]]:
        key = team_members_key(team_id)
        values = await self._read("lrange", key, lambda: self._client.lrange(key, 0, -1))
        if not values:
            return None
        return [uuid.UUID(v) for v in values]

    async def cache_team_members(
        self, team_id: uuid.UUID, user_ids: Sequence[uuid.UUID]
    ) -> bool:
        key = team_members_key(team_id)
        ordered = list(dict.fromkeys(str(u) for u in user_ids))
        return await self._write(
            "replace_list", key, lambda: self._replace_list(key, ordered, self.ttls.team_members)
        )

    async def add_team_member(self, team_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        key = team_members_key(team_id)
        applied = await self._call(
            "add_member", lambda: self._add_member(keys=[key], args=[str(user_id)])
        )
        return bool(applied)

    async def remove_team_member(self, team_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        key = team_members_key(team_id)
        applied = await self._call(
            "remove_member", lambda: self._remove_member(keys=[key], args=[str(user_id)])
        )
        return bool(applied)

    async def invalidate_team_members(self, team_id: uuid.UUID) -> None:
        key = team_members_key(team_id)
        await self._call("delete", lambda: self._client.delete(key))

    # ── Asset metadata ────────────────────────────────────────────────────

    async def get_asset_metadata(
        self, asset_type: AssetType, asset_id: uuid.UUID
    ) -> Optional[Dict[str, Any]]:
        key = asset_metadata_key(asset_type, asset_id)
        raw = await self._read("get", key, lambda: self._client.get(key))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    async def cache_asset_metadata(
        self, asset_type: AssetType, asset_id: uuid.UUID, snapshot: Dict[str, Any]
    ) -> bool:
        key = asset_metadata_key(asset_type, asset_id)
        payload = json.dumps(snapshot, default=str)
        return await self._write(
            "set", key, lambda: self._client.set(key, payload, ex=self.ttls.asset_metadata)
        )

    async def invalidate_asset_metadata(
        self, asset_type: AssetType, asset_id: uuid.UUID
    ) -> None:
        key = asset_metadata_key(asset_type, asset_id)
        await self._call("delete", lambda: self._client.delete(key))

    # ── Asset ACL ─────────────────────────────────────────────────────────

    async def get_asset_acl(self, asset_id: uuid.UUID) -> Optional[Dict[str, str]]:
        key = asset_acl_key(asset_id)
        values = await self._read("hgetall", key, lambda: self._client.hgetall(key))
        if not values or ACL_MARKER_FIELD not in values:
            return None
        values.pop(ACL_MARKER_FIELD)
        return values

    async def cache_asset_acl(self, asset_id: uuid.UUID, acl: Dict[str, str]) -> bool:
        key = asset_acl_key(asset_id)
        mapping = {ACL_MARKER_FIELD: "1", **acl}
        return await self._write(
            "replace_hash", key, lambda: self._replace_hash(key, mapping, self.ttls.asset_acl)
        )

    async def set_acl_entry(
        self, asset_id: uuid.UUID, user_id: uuid.UUID, access_level: str
    ) -> bool:
        key = asset_acl_key(asset_id)
        applied = await self._call(
            "set_acl", lambda: self._set_acl(keys=[key], args=[str(user_id), access_level])
        )
        return bool(applied)

    async def remove_acl_entry(self, asset_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        key = asset_acl_key(asset_id)
        applied = await self._call(
            "remove_acl", lambda: self._remove_acl(keys=[key], args=[str(user_id)])
        )
        return bool(applied)

    async def invalidate_asset_acl(self, asset_id: uuid.UUID) -> None:
        key = asset_acl_key(asset_id)
        await self._call("delete", lambda: self._client.delete(key))

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def health_check(self) -> Dict[str, Any]:
        """Ping with latency. Results are reused for 5 seconds."""
        now = time.time()
        if now - self._last_health_check < 5:
            return self._health

        if self.circuit_breaker.state == CircuitBreaker.OPEN:
            self._health = {
                "status": "circuit_open",
                "backend": self.backend_name,
                "address": self.address,
            }
        else:
            started = time.perf_counter()
            try:
                await self._call("ping", self._client.ping)
                self._health = {
                    "status": "healthy",
                    "backend": self.backend_name,
                    "address": self.address,
                    "latency_ms": round((time.perf_counter() - started) * 1000, 2),
                }
            except CacheError as e:
                self._health = {
                    "status": "unhealthy",
                    "backend": self.backend_name,
                    "address": self.address,
                    "error": e.message,
                }
        self._last_health_check = now
        return self._health

    async def close(self) -> None:
        try:
            await self._client.aclose()
            await self._client.connection_pool.disconnect()
        except (RedisError, OSError) as e:
            logger.warning("Error closing Redis client: %s", e)
        logger.info("Redis cache closed")
