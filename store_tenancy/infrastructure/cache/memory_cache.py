"""In-process key-value store with TTL (single worker or Redis disabled)."""

import copy
import time
from typing import Any


class InMemoryCache:
    """Dict-backed CacheProtocol implementation.

    Expired entries are dropped lazily on read and on every write. Values are
    deep-copied in and out so callers never share mutable state with the store.
    """

    def __init__(self, clock: Any = time.monotonic) -> None:
        self._data: dict[str, tuple[float, Any]] = {}
        self._clock = clock

    def is_available(self) -> bool:
        return True

    def _purge_expired(self) -> None:
        now = self._clock()
        for key in [k for k, (exp, _) in self._data.items() if exp <= now]:
            del self._data[key]

    async def get(self, key: str) -> Any | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= self._clock():
            del self._data[key]
            return None
        return copy.deepcopy(value)

    async def set(self, key: str, value: Any, ttl: int = 300) -> bool:
        self._purge_expired()
        self._data[key] = (self._clock() + ttl, copy.deepcopy(value))
        return True

    async def delete(self, key: str) -> bool:
        self._data.pop(key, None)
        return True

    def __len__(self) -> int:
        self._purge_expired()
        return len(self._data)
