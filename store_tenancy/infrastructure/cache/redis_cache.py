"""Redis-backed key-value store with TTL.

Holds delegated OAuth tokens shared across worker processes. Values are
stored as JSON. Call connect() at startup and disconnect() at shutdown;
when Redis is unreachable the service reports unavailable and callers fall
back to InMemoryCache.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import redis.asyncio as redis

from store_tenancy.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheService:
    """Async Redis cache with TTL support and one reconnect attempt per failed call."""

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize cache service.

        Args:
            redis_client: Optional Redis client for testing or DI (treated as connected).
            settings: Optional settings; defaults to get_settings().
        """
        self.redis = redis_client
        self.settings = settings or get_settings()
        self._connected = redis_client is not None

    async def connect(self) -> None:
        """Establish the Redis connection. Leaves the service unavailable on failure."""
        if self.redis is not None:
            return
        password = (
            self.settings.redis_password.get_secret_value()
            if self.settings.redis_password
            else None
        )
        client = redis.Redis(
            host=self.settings.redis_host,
            port=self.settings.redis_port,
            db=self.settings.redis_db,
            password=password,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            socket_keepalive=True,
        )
        try:
            await client.ping()
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning("Redis connection failed: %s. Cache disabled.", e)
            await client.aclose()
            return
        self.redis = client
        self._connected = True
        logger.info(
            "Redis cache connected: %s:%s",
            self.settings.redis_host,
            self.settings.redis_port,
        )

    async def disconnect(self) -> None:
        """Close the Redis connection."""
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None
            self._connected = False
            logger.info("Redis cache disconnected")

    async def _reconnect(self) -> bool:
        """Drop the current client and connect again. Returns True if reconnected."""
        if self.redis is not None:
            try:
                await self.redis.aclose()
            except redis.RedisError:
                logger.debug("Ignoring error while closing stale Redis client")
        self.redis = None
        self._connected = False
        await self.connect()
        return self._connected

    def is_available(self) -> bool:
        """Return True if Redis is connected and usable."""
        return self._connected and self.redis is not None

    async def _call(
        self,
        op: str,
        key: str,
        fn: Callable[[redis.Redis], Awaitable[T]],
        default: T,
    ) -> T:
        """Run fn against Redis, retrying once after a reconnect on connection errors."""
        if not self.is_available() or self.redis is None:
            return default
        try:
            return await fn(self.redis)
        except (redis.ConnectionError, redis.TimeoutError):
            if await self._reconnect() and self.redis is not None:
                try:
                    return await fn(self.redis)
                except redis.RedisError:
                    logger.exception("Cache %s error for key %s after reconnect", op, key)
                    return default
            logger.warning("Cache %s unavailable for key %s (Redis disconnected)", op, key)
            return default
        except redis.RedisError:
            logger.exception("Cache %s error for key %s", op, key)
            return default

    async def get(self, key: str) -> Any | None:
        """Return the JSON-decoded value, or None if missing or unavailable."""

        async def _get(client: redis.Redis) -> Any | None:
            raw = await client.get(key)
            return json.loads(raw) if raw is not None else None

        return await self._call("get", key, _get, None)

    async def set(self, key: str, value: Any, ttl: int = 300) -> bool:
        """Store value as JSON with TTL in seconds. Returns True on success."""
        serialized = json.dumps(value)

        async def _set(client: redis.Redis) -> bool:
            await client.setex(key, ttl, serialized)
            return True

        return await self._call("set", key, _set, False)

    async def delete(self, key: str) -> bool:
        """Remove key. Returns True if Redis accepted the delete."""

        async def _delete(client: redis.Redis) -> bool:
            await client.delete(key)
            return True

        return await self._call("delete", key, _delete, False)
