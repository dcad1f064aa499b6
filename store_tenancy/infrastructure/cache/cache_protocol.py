"""Key-value store protocol with TTL (DIP).

Implemented by the Redis CacheService and by InMemoryCache, so the delegated
token store does not know which backend holds pending OAuth state.
"""

from typing import Any, Protocol


class CacheProtocol(Protocol):
    """Protocol for TTL key-value backends. Values must be JSON-serializable."""

    def is_available(self) -> bool:
        """Return True if the backend is connected and usable."""
        ...

    async def get(self, key: str) -> Any:
        """Return stored value or None."""
        ...

    async def set(self, key: str, value: Any, ttl: int = 300) -> bool:
        """Store value with TTL in seconds. Returns True on success."""
        ...

    async def delete(self, key: str) -> bool:
        """Remove key. Returns True if the backend accepted the delete."""
        ...
