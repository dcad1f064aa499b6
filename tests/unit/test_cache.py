"""Unit tests for InMemoryCache, CacheService (mocked Redis) and cache key builders."""

import json
from unittest.mock import AsyncMock

import pytest
import redis.asyncio as redis

from store_tenancy.infrastructure.cache.keys import pending_oauth_key
from store_tenancy.infrastructure.cache.memory_cache import InMemoryCache
from store_tenancy.infrastructure.cache.redis_cache import CacheService


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_pending_oauth_key_format() -> None:
    """Keys follow oauth:pending:<store_id>."""
    assert pending_oauth_key("store-1") == "oauth:pending:store-1"


@pytest.mark.parametrize("bad", ["", "a:b"])
def test_pending_oauth_key_rejects_bad_components(bad: str) -> None:
    """Empty ids and ids containing the separator are refused."""
    with pytest.raises(ValueError):
        pending_oauth_key(bad)


@pytest.mark.asyncio
async def test_memory_cache_expires_entries() -> None:
    """Values disappear once their TTL has passed."""
    clock = FakeClock()
    cache = InMemoryCache(clock=clock)
    await cache.set("k", {"a": 1}, ttl=10)
    assert await cache.get("k") == {"a": 1}

    clock.now += 11
    assert await cache.get("k") is None
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_memory_cache_copies_values() -> None:
    """Mutating a returned value does not change the stored one."""
    cache = InMemoryCache()
    await cache.set("k", {"items": [1]})
    value = await cache.get("k")
    value["items"].append(2)
    assert await cache.get("k") == {"items": [1]}


@pytest.mark.asyncio
async def test_memory_cache_delete() -> None:
    """delete removes the key and is safe for unknown keys."""
    cache = InMemoryCache()
    await cache.set("k", 1)
    assert await cache.delete("k") is True
    assert await cache.delete("missing") is True
    assert await cache.get("k") is None


@pytest.mark.asyncio
async def test_cache_service_stores_json_with_ttl(settings) -> None:
    """set() writes JSON with SETEX; get() decodes it."""
    client = AsyncMock()
    client.get = AsyncMock(return_value=json.dumps({"access_token": "x"}))
    service = CacheService(redis_client=client, settings=settings)

    assert await service.set("oauth:pending:store-1", {"access_token": "x"}, ttl=600) is True
    client.setex.assert_awaited_once_with(
        "oauth:pending:store-1", 600, json.dumps({"access_token": "x"})
    )
    assert await service.get("oauth:pending:store-1") == {"access_token": "x"}


@pytest.mark.asyncio
async def test_cache_service_unavailable_returns_defaults(settings) -> None:
    """Without a connection every call degrades to its default."""
    service = CacheService(settings=settings)
    assert service.is_available() is False
    assert await service.get("k") is None
    assert await service.set("k", 1) is False
    assert await service.delete("k") is False


@pytest.mark.asyncio
async def test_cache_service_redis_error_returns_default(settings) -> None:
    """Redis errors other than connection loss are logged and swallowed into the default."""
    client = AsyncMock()
    client.get = AsyncMock(side_effect=redis.ResponseError("WRONGTYPE"))
    service = CacheService(redis_client=client, settings=settings)
    assert await service.get("k") is None
