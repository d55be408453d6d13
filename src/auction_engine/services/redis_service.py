"""Redis service for distributed locks and user / auction caches."""

import uuid
from typing import Any

from redis.asyncio import Redis


class RedisService:
    """Service class for Redis key operations.

    Pub/sub for bid and status events lives in ``services.realtime``.
    """

    # Lua script for safe lock release (only delete own lock)
    RELEASE_LOCK_SCRIPT = """
    if redis.call("GET", KEYS[1]) == ARGV[1] then
        return redis.call("DEL", KEYS[1])
    else
        return 0
    end
    """

    USER_CACHE_TTL = 120
    AUCTION_CACHE_TTL = 30

    def __init__(self, redis: Redis):
        """Initialize Redis service with a Redis client.

        Args:
            redis: Async Redis client instance
        """
        self.redis = redis
        self._release_lock_script = None

    async def _get_release_lock_script(self):
        """Get or register the release lock Lua script."""
        if self._release_lock_script is None:
            self._release_lock_script = self.redis.register_script(self.RELEASE_LOCK_SCRIPT)
        return self._release_lock_script

    # ==================== Distributed Lock Operations ====================

    async def acquire_lock(
        self, name: str, owner_id: str | None = None, ttl: int = 10
    ) -> tuple[bool, str]:
        """Acquire a named distributed lock.

        Key pattern: lock:{name}
        Uses SET NX EX for atomic lock acquisition. The background lifecycle
        loops take one per pass so that only one worker sweeps at a time.

        Args:
            name: Lock name, e.g. ``lifecycle:expiry``
            owner_id: Unique identifier for lock owner (auto-generated if None)
            ttl: Lock timeout in seconds

        Returns:
            Tuple of (success, owner_id)
        """
        key = f"lock:{name}"
        if owner_id is None:
            owner_id = str(uuid.uuid4())

        acquired = await self.redis.set(key, owner_id, nx=True, ex=ttl)
        return (bool(acquired), owner_id)

    async def release_lock(self, name: str, owner_id: str) -> bool:
        """Release a distributed lock (only if owner matches).

        Args:
            name: Lock name passed to acquire_lock
            owner_id: The owner_id returned from acquire_lock

        Returns:
            True if lock was released, False if not owner or not locked
        """
        key = f"lock:{name}"
        script = await self._get_release_lock_script()
        result = await script(keys=[key], args=[owner_id])
        return int(result) == 1

    # ==================== Auction Cache Operations ====================

    async def cache_auction(
        self, auction_id: str, data: dict[str, Any], ttl: int | None = None
    ) -> None:
        """Cache an auction snapshot in a Redis Hash.

        Key pattern: auction:{auction_id}
        None values are dropped since Redis hashes cannot hold them.
        """
        key = f"auction:{auction_id}"
        string_data = {k: str(v) for k, v in data.items() if v is not None}
        pipe = self.redis.pipeline()
        pipe.hset(key, mapping=string_data)
        pipe.expire(key, ttl if ttl is not None else self.AUCTION_CACHE_TTL)
        await pipe.execute()

    async def get_cached_auction(self, auction_id: str) -> dict[str, str] | None:
        key = f"auction:{auction_id}"
        data = await self.redis.hgetall(key)
        return data if data else None

    async def invalidate_auction_cache(self, auction_id: str) -> bool:
        """Drop the cached end_time/status snapshot after a status change.

        Returns:
            True if cache was deleted, False if didn't exist
        """
        result = await self.redis.delete(f"auction:{auction_id}")
        return result > 0

    # ==================== User Cache Operations ====================

    async def cache_user(
        self, user_id: str, user_data: dict[str, Any], ttl: int | None = None
    ) -> None:
        """Cache user data in Redis Hash.

        Key pattern: user:{user_id}

        Args:
            user_id: User UUID string
            user_data: User data dict (values will be converted to strings)
            ttl: Optional TTL in seconds (defaults to USER_CACHE_TTL)
        """
        key = f"user:{user_id}"
        cache_ttl = ttl if ttl is not None else self.USER_CACHE_TTL
        string_data = {k: str(v) for k, v in user_data.items() if v is not None}
        pipe = self.redis.pipeline()
        pipe.hset(key, mapping=string_data)
        pipe.expire(key, cache_ttl)
        await pipe.execute()

    async def get_cached_user(self, user_id: str) -> dict[str, str] | None:
        key = f"user:{user_id}"
        data = await self.redis.hgetall(key)
        return data if data else None

    async def invalidate_user_cache(self, user_id: str) -> bool:
        """Invalidate (delete) user cache.

        Should be called when user status changes.
        """
        result = await self.redis.delete(f"user:{user_id}")
        return result > 0
