"""Key-value stores with TTL: protocol, Redis and in-memory implementations."""

from store_tenancy.infrastructure.cache.cache_protocol import CacheProtocol
from store_tenancy.infrastructure.cache.keys import pending_oauth_key
from store_tenancy.infrastructure.cache.memory_cache import InMemoryCache
from store_tenancy.infrastructure.cache.redis_cache import CacheService

__all__ = ["CacheProtocol", "CacheService", "InMemoryCache", "pending_oauth_key"]
